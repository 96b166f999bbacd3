"""HybridMemory — durable relational writes with a best-effort vector index.

Every memory lands in the relational store first; that write decides whether
the memory exists. The embedding and the index write are secondary: when
either fails the memory is still saved but not yet searchable, and
``reindex_missing`` can fill the gap later.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from taskmind.errors import DependencyError, TaskmindError, ValidationError, with_timeout
from taskmind.memory.models import (
    MEMORY_TYPES,
    MIN_CONTENT_LENGTH,
    MemoryRecord,
    MemorySearchResult,
    RememberResult,
)
from taskmind.tasks.models import BatchResult, ItemFailure

if TYPE_CHECKING:
    from taskmind.memory.store import MemoryRecordStore
    from taskmind.memory.vector_index import VectorIndex

logger = logging.getLogger(__name__)

FILTER_KEYS = frozenset({"type", "entity_id", "source", "importance", "durable_id"})


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


# -- Validation --------------------------------------------------------------


def _validate_memory(content: Any, memory_type: Any, importance: Any) -> None:
    if not isinstance(content, str) or len(content) < MIN_CONTENT_LENGTH:
        msg = f"content must be a string of at least {MIN_CONTENT_LENGTH} characters"
        raise ValidationError(msg)
    if memory_type not in MEMORY_TYPES:
        msg = f"type must be one of: {', '.join(MEMORY_TYPES)}"
        raise ValidationError(msg)
    if importance is not None:
        if isinstance(importance, bool) or not isinstance(importance, int | float):
            msg = "importance must be a number between 0 and 1"
            raise ValidationError(msg)
        if not 0 <= importance <= 1:
            msg = "importance must be a number between 0 and 1"
            raise ValidationError(msg)


def _validate_search(
    query: Any, limit: Any, min_similarity: Any, filters: dict[str, Any] | None
) -> None:
    if not isinstance(query, str) or not query.strip():
        msg = "query must be a non-empty string"
        raise ValidationError(msg)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        msg = "limit must be an integer >= 1"
        raise ValidationError(msg)
    if isinstance(min_similarity, bool) or not isinstance(min_similarity, int | float):
        msg = "min_similarity must be a number between 0 and 1"
        raise ValidationError(msg)
    if not 0 <= min_similarity <= 1:
        msg = "min_similarity must be a number between 0 and 1"
        raise ValidationError(msg)
    if filters:
        unknown = sorted(set(filters) - FILTER_KEYS)
        if unknown:
            msg = f"unsupported filter field(s): {', '.join(unknown)}"
            raise ValidationError(msg)


# -- Engine ------------------------------------------------------------------


class HybridMemory:
    """Dual-store memory engine.

    Args:
        records: Relational store, the source of truth.
        index: Vector index used for semantic search.
        embedder: Anything with an async ``embed(text)`` method.
        store_timeout: Seconds allowed for each store or index call.
    """

    def __init__(
        self,
        records: MemoryRecordStore,
        index: VectorIndex,
        embedder: Embedder,
        *,
        store_timeout: float = 10.0,
    ) -> None:
        self._records = records
        self._index = index
        self._embedder = embedder
        self._store_timeout = store_timeout

    async def remember(
        self,
        content: str,
        *,
        type: str = "general",  # noqa: A002
        importance: float | None = None,
        entity_id: str | None = None,
        source: str | None = None,
    ) -> RememberResult:
        """Persist a memory, durable first, then index it if possible.

        Raises:
            ValidationError: Bad input; nothing is written.
            DependencyError: The relational write failed; nothing is saved.
        """
        _validate_memory(content, type, importance)
        result = RememberResult()

        vector: list[float] | None = None
        try:
            vector = await self._embedder.embed(content)
        except DependencyError as exc:
            logger.warning("Embedding failed, memory will not be searchable: %s", exc)
            result.failed.append("embedding")

        record = await self._insert_durable(content, type, importance, entity_id, source)
        result.durable_id = record.id

        if vector is None:
            return result

        try:
            index_id = await with_timeout(
                self._index.upsert(vector, record.index_payload()),
                self._store_timeout,
                "vector_index",
            )
        except Exception:
            logger.exception("Vector index write failed for memory %s", record.id)
            result.failed.append("vector_index")
            return result

        result.index_id = index_id
        await self._link_index(record.id, index_id)
        logger.info("Remembered %s [%s]: %s", record.id, type, content[:60])
        return result

    async def _insert_durable(
        self,
        content: str,
        memory_type: str,
        importance: float | None,
        entity_id: str | None,
        source: str | None,
    ) -> MemoryRecord:
        try:
            return await with_timeout(
                self._records.insert(content, memory_type, importance, entity_id, source),
                self._store_timeout,
                "relational_store",
            )
        except TaskmindError:
            raise
        except Exception as exc:
            logger.exception("Relational memory write failed")
            raise DependencyError("relational_store", str(exc)) from exc

    async def _link_index(self, memory_id: str, index_id: str) -> None:
        try:
            await with_timeout(
                self._records.set_index_id(memory_id, index_id),
                self._store_timeout,
                "relational_store",
            )
        except Exception:
            logger.warning("Could not record index id on memory %s", memory_id, exc_info=True)

    async def search(
        self,
        query: str,
        *,
        limit: int = 10,
        min_similarity: float = 0.7,
        filter: dict[str, Any] | None = None,  # noqa: A002
    ) -> list[MemorySearchResult]:
        """Semantic search over the vector index.

        Only memories whose index write succeeded can be found. Embedding
        and index failures raise ``DependencyError``.
        """
        _validate_search(query, limit, min_similarity, filter)
        vector = await self._embedder.embed(query)

        try:
            hits = await with_timeout(
                self._index.search(
                    vector, limit=limit, min_similarity=min_similarity, filters=filter
                ),
                self._store_timeout,
                "vector_index",
            )
        except TaskmindError:
            raise
        except Exception as exc:
            raise DependencyError("vector_index", str(exc)) from exc

        return [
            MemorySearchResult(
                content=hit.payload.get("content", ""),
                type=hit.payload.get("type") or "general",
                similarity=hit.similarity,
                durable_id=hit.payload.get("durable_id"),
                index_id=hit.id,
                entity_id=hit.payload.get("entity_id"),
                source=hit.payload.get("source"),
                importance=hit.payload.get("importance"),
                created_at=hit.payload.get("created_at") or "",
            )
            for hit in hits
        ]

    # -- Relational reads ----------------------------------------------------

    async def get_recent(self, limit: int = 10) -> list[MemoryRecord]:
        """Newest durable memories, searchable or not."""
        return await self._records.list_recent(limit)

    async def get_by_entity(self, entity_id: str, limit: int = 20) -> list[MemoryRecord]:
        """Durable memories linked to *entity_id*, newest first."""
        if not entity_id:
            msg = "entity_id is required"
            raise ValidationError(msg)
        return await self._records.list_by_entity(entity_id, limit)

    # -- Reconciliation ------------------------------------------------------

    async def reindex_missing(self, limit: int = 50) -> BatchResult:
        """Embed and index durable memories that never reached the index."""
        pending = await self._records.list_unindexed(limit)
        result = BatchResult()
        for record in pending:
            try:
                vector = await self._embedder.embed(record.content)
                index_id = await with_timeout(
                    self._index.upsert(vector, record.index_payload()),
                    self._store_timeout,
                    "vector_index",
                )
                await self._records.set_index_id(record.id, index_id)
            except Exception as exc:
                logger.warning("Reindex failed for memory %s: %s", record.id, exc)
                result.failures.append(ItemFailure(record.id, str(exc)))
                continue
            result.succeeded.append(record.id)

        if pending:
            logger.info(
                "Reindexed %d/%d memories", result.success_count, len(pending)
            )
        return result
