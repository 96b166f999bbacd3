"""Data models for hybrid memory storage."""

from typing import Any, Literal

from pydantic import BaseModel, Field

MemoryType = Literal["conversation", "fact", "preference", "task", "general"]
MEMORY_TYPES: tuple[str, ...] = ("conversation", "fact", "preference", "task", "general")

MIN_CONTENT_LENGTH = 5


class MemoryRecord(BaseModel):
    """The canonical memory row held by the relational store."""

    id: str
    content: str
    type: MemoryType = "general"
    importance: float | None = None
    entity_id: str | None = None
    source: str | None = None
    created_at: str = ""
    index_id: str | None = None

    def index_payload(self) -> dict[str, Any]:
        """Denormalized metadata stored next to the vector."""
        return {
            "content": self.content,
            "type": self.type,
            "importance": self.importance,
            "entity_id": self.entity_id,
            "source": self.source,
            "durable_id": self.id,
            "created_at": self.created_at,
        }


class RememberResult(BaseModel):
    """Outcome of a dual-store write.

    ``failed`` names the side(s) that did not succeed: ``embedding`` and/or
    ``vector_index``. A durable-store failure is raised instead.
    """

    durable_id: str | None = None
    index_id: str | None = None
    failed: list[str] = Field(default_factory=list)

    @property
    def saved(self) -> bool:
        return self.durable_id is not None

    @property
    def searchable(self) -> bool:
        return self.index_id is not None


class MemorySearchResult(BaseModel):
    """A memory returned by semantic search."""

    content: str
    type: str = "general"
    similarity: float = 0.0
    durable_id: str | None = None
    index_id: str = ""
    entity_id: str | None = None
    source: str | None = None
    importance: float | None = None
    created_at: str = ""
