"""MemoryRecordStore — durable memory rows in libsql.

This is the source of truth for whether a memory exists. Semantic search goes
through the vector index instead; see ``taskmind.memory.hybrid``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from taskmind.db import TableStore
from taskmind.memory.models import MemoryRecord

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS memories (
    id          TEXT PRIMARY KEY,
    content     TEXT NOT NULL,
    memory_type TEXT NOT NULL,
    importance  REAL,
    entity_id   TEXT,
    source      TEXT,
    created_at  TEXT NOT NULL,
    index_id    TEXT
)
"""

_COLUMNS = "id, content, memory_type, importance, entity_id, source, created_at, index_id"


def _from_row(row: tuple) -> MemoryRecord:
    return MemoryRecord(
        id=row[0],
        content=row[1],
        type=row[2],
        importance=row[3],
        entity_id=row[4],
        source=row[5],
        created_at=row[6],
        index_id=row[7],
    )


class MemoryRecordStore(TableStore):
    """Persists memory records in SQLite / Turso."""

    schema = (_CREATE_TABLE,)

    # -- Write ---------------------------------------------------------------

    async def insert(
        self,
        content: str,
        memory_type: str,
        importance: float | None = None,
        entity_id: str | None = None,
        source: str | None = None,
    ) -> MemoryRecord:
        """Insert a new memory and return it with its durable id."""
        record = MemoryRecord(
            id=uuid.uuid4().hex,
            content=content,
            type=memory_type,
            importance=importance,
            entity_id=entity_id,
            source=source,
            created_at=datetime.now(UTC).isoformat(),
        )
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO memories ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.content,
                    record.type,
                    record.importance,
                    record.entity_id,
                    record.source,
                    record.created_at,
                    None,
                ),
            )
            await db.commit()
            logger.debug("Stored memory %s [%s]: %s", record.id, record.type, content[:80])
            return record
        finally:
            await db.close()

    async def set_index_id(self, memory_id: str, index_id: str) -> bool:
        """Record the vector index id on the durable row."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE memories SET index_id = ? WHERE id = ?", (index_id, memory_id)
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    # -- Read ----------------------------------------------------------------

    async def get(self, memory_id: str) -> MemoryRecord | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
            )
            row = await cursor.fetchone()
            return _from_row(row) if row else None
        finally:
            await db.close()

    async def list_recent(self, limit: int = 10) -> list[MemoryRecord]:
        """Newest memories first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM memories ORDER BY created_at DESC LIMIT ?",
                (limit,),
            )
            return [_from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def list_by_entity(self, entity_id: str, limit: int = 20) -> list[MemoryRecord]:
        """Memories linked to *entity_id*, newest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM memories WHERE entity_id = ? "
                "ORDER BY created_at DESC LIMIT ?",
                (entity_id, limit),
            )
            return [_from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def list_unindexed(self, limit: int = 50) -> list[MemoryRecord]:
        """Memories whose vector index write never succeeded, oldest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM memories WHERE index_id IS NULL "
                "ORDER BY created_at LIMIT ?",
                (limit,),
            )
            return [_from_row(row) for row in await cursor.fetchall()]
        finally:
            await db.close()

    async def max_importance_by_entity(self, entity_ids: list[str]) -> dict[str, float]:
        """Highest linked-memory importance per entity id (entities without any are omitted)."""
        if not entity_ids:
            return {}
        placeholders = ", ".join("?" for _ in entity_ids)
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT entity_id, MAX(importance) FROM memories "
                f"WHERE entity_id IN ({placeholders}) AND importance IS NOT NULL "
                "GROUP BY entity_id",
                tuple(entity_ids),
            )
            return {row[0]: float(row[1]) for row in await cursor.fetchall()}
        finally:
            await db.close()
