"""VectorIndex — embedding similarity search with metadata filters.

Vectors are stored as JSON text next to a denormalized metadata payload and
ranked in-process with numpy cosine similarity. The index is a best-effort
secondary copy keyed by the durable memory id; it never decides whether a
memory exists.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import numpy as np

from taskmind.db import TableStore

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS memory_vectors (
    id         TEXT PRIMARY KEY,
    memory_id  TEXT UNIQUE,
    embedding  TEXT NOT NULL,
    payload    TEXT NOT NULL,
    created_at TEXT NOT NULL
)
"""


@dataclass
class VectorHit:
    """One search hit: index id, similarity and the stored payload."""

    id: str
    similarity: float
    payload: dict[str, Any]


def _matches(payload: dict[str, Any], filters: dict[str, Any]) -> bool:
    return all(payload.get(key) == value for key, value in filters.items())


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against each row of *matrix* (zero-safe)."""
    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * query_norm
    dots = matrix @ query
    return np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)


class VectorIndex(TableStore):
    """Similarity index persisted in SQLite / Turso."""

    schema = (_CREATE_TABLE,)

    # -- Write ---------------------------------------------------------------

    async def upsert(self, vector: list[float], payload: dict[str, Any]) -> str:
        """Store *vector* with *payload* and return its index id.

        Entries are keyed by ``payload["durable_id"]``: indexing the same
        memory again replaces its vector and keeps the existing index id.
        """
        memory_id = payload.get("durable_id")
        created_at = payload.get("created_at") or datetime.now(UTC).isoformat()
        embedding = json.dumps([float(x) for x in vector])
        db = await self._connect()
        try:
            row = None
            if memory_id:
                cursor = await db.execute(
                    "SELECT id FROM memory_vectors WHERE memory_id = ?", (memory_id,)
                )
                row = await cursor.fetchone()

            if row is None:
                index_id = uuid.uuid4().hex
                await db.execute(
                    "INSERT INTO memory_vectors (id, memory_id, embedding, payload, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (index_id, memory_id, embedding, json.dumps(payload), created_at),
                )
            else:
                index_id = row[0]
                await db.execute(
                    "UPDATE memory_vectors SET embedding = ?, payload = ?, created_at = ? "
                    "WHERE id = ?",
                    (embedding, json.dumps(payload), created_at, index_id),
                )
            await db.commit()
            logger.debug("Indexed vector %s for memory %s", index_id, memory_id)
            return index_id
        finally:
            await db.close()

    # -- Read ----------------------------------------------------------------

    async def search(
        self,
        vector: list[float],
        limit: int = 10,
        min_similarity: float = 0.0,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        """Return up to *limit* hits with similarity >= *min_similarity*.

        Every key in *filters* must equal the payload value. Hits are ordered
        by similarity (desc), ties by payload ``created_at`` (newest first).
        """
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT id, embedding, payload, created_at FROM memory_vectors"
            )
            rows = await cursor.fetchall()
        finally:
            await db.close()

        query = np.asarray(vector, dtype=np.float64)
        candidates: list[tuple[str, list[float], dict[str, Any], str]] = []
        for row_id, raw_embedding, raw_payload, created_at in rows:
            payload = json.loads(raw_payload)
            if filters and not _matches(payload, filters):
                continue
            embedding = json.loads(raw_embedding)
            if len(embedding) != len(query):
                logger.warning(
                    "Skipping vector %s: dimension %d != query dimension %d",
                    row_id,
                    len(embedding),
                    len(query),
                )
                continue
            candidates.append((row_id, embedding, payload, created_at))

        if not candidates:
            return []

        matrix = np.asarray([c[1] for c in candidates], dtype=np.float64)
        scores = cosine_similarities(query, matrix)

        hits = [
            (float(score), created_at, VectorHit(row_id, float(score), payload))
            for (row_id, _, payload, created_at), score in zip(candidates, scores, strict=True)
            if score >= min_similarity
        ]
        hits.sort(key=lambda h: (h[0], h[1]), reverse=True)
        return [hit for _, _, hit in hits[:limit]]
