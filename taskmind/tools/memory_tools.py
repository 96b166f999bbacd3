"""Explicit ("conscious") memory tools.

These are tools the model calls when the user explicitly asks to remember
or recall something.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from taskmind.tools.base import ToolParams, ToolResult

if TYPE_CHECKING:
    from taskmind.memory.hybrid import HybridMemory
    from taskmind.tools.registry import ToolRegistry

_CATEGORY = "memory"

# Looser than the chat retrieval threshold.
RECALL_MIN_SIMILARITY = 0.5


class RememberParams(ToolParams):
    content: str = Field(description="The information to remember")
    type: str = Field(
        default="fact",
        description="Kind of memory: fact, preference, task, conversation or general",
    )
    importance: float | None = Field(
        default=None, description="How important this is, from 0 (trivial) to 1 (critical)"
    )
    entity_id: str | None = Field(
        default=None, description="ID of a task or person this memory is about"
    )


class RecallParams(ToolParams):
    query: str = Field(description="What to search for in memory")
    limit: int = Field(default=5, description="Maximum number of results")
    type: str | None = Field(default=None, description="Only return memories of this type")


def register_memory_tools(registry: ToolRegistry, memory: HybridMemory) -> None:
    """Register ``remember_this`` and ``recall`` on *registry*."""

    @registry.tool(
        name="remember_this",
        description=(
            "Store something in long-term memory. Use when the user says "
            "'remember X', 'from now on', 'don't forget', etc."
        ),
        category=_CATEGORY,
        params_model=RememberParams,
    )
    async def remember_this(
        content: str,
        type: str = "fact",  # noqa: A002
        importance: float | None = None,
        entity_id: str | None = None,
    ) -> ToolResult:
        result = await memory.remember(
            content, type=type, importance=importance, entity_id=entity_id, source="explicit"
        )
        return ToolResult(data={
            "remembered": result.saved,
            "searchable": result.searchable,
            "durable_id": result.durable_id,
            "content": content,
            "type": type,
        })

    @registry.tool(
        name="recall",
        description=(
            "Search long-term memory. Use when the user asks 'what do you "
            "remember about X' or when you need context that is not in the "
            "conversation."
        ),
        category=_CATEGORY,
        params_model=RecallParams,
    )
    async def recall(
        query: str, limit: int = 5, type: str | None = None  # noqa: A002
    ) -> ToolResult:
        filters = {"type": type} if type else None
        entries = await memory.search(
            query, limit=limit, min_similarity=RECALL_MIN_SIMILARITY, filter=filters
        )
        results = [
            {"content": e.content, "type": e.type, "similarity": e.similarity}
            for e in entries
        ]
        return ToolResult(data={"results": results, "count": len(results)})
