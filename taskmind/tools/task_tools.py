"""Task tools — look up, edit and prioritize tasks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import Field

from taskmind.errors import ValidationError
from taskmind.tasks.models import parse_timestamp
from taskmind.tools.base import BaseTool, ToolParams, ToolResult

if TYPE_CHECKING:
    from taskmind.tasks.engine import PriorityEngine
    from taskmind.tasks.store import TaskStore
    from taskmind.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_CATEGORY = "tasks"


# -- search_tasks --------------------------------------------------------------


class SearchTasksParams(ToolParams):
    query: str = Field(description="Text to look for in task titles and descriptions")
    status: str | None = Field(
        default=None,
        description="Optional status filter: open, in_progress, blocked or done",
    )
    limit: int = Field(default=10, ge=1, le=50, description="Maximum number of tasks")


class SearchTasksTool(BaseTool):
    name = "search_tasks"
    description = (
        "Find tasks by text. Use before updating a task to get its id, or when "
        "the user asks about a specific task."
    )
    category = _CATEGORY
    params_model = SearchTasksParams

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    async def execute(self, **kwargs: Any) -> ToolResult:
        tasks = await self._store.search_tasks(
            kwargs["query"], status=kwargs.get("status"), limit=kwargs.get("limit", 10)
        )
        return ToolResult(data={"tasks": [t.to_dict() for t in tasks], "count": len(tasks)})


# -- update_task ---------------------------------------------------------------


class UpdateTaskParams(ToolParams):
    task_id: str = Field(description="ID of the task to update")
    title: str | None = Field(default=None, description="New title")
    description: str | None = Field(default=None, description="New description")
    status: str | None = Field(
        default=None, description="New status: open, in_progress, blocked or done"
    )
    due_date: str | None = Field(
        default=None,
        description="New due date as ISO 8601 (e.g. '2025-06-01' or '2025-06-01T17:00:00Z')",
    )
    clear_due_date: bool = Field(default=False, description="Remove the due date")


class UpdateTaskTool(BaseTool):
    name = "update_task"
    description = (
        "Change a task's title, description, status or due date. "
        "Priority scores cannot be set directly; use recalculate_priorities."
    )
    category = _CATEGORY
    params_model = UpdateTaskParams

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    async def execute(self, **kwargs: Any) -> ToolResult:
        changes: dict[str, Any] = {
            key: kwargs[key]
            for key in ("title", "description", "status")
            if kwargs.get(key) is not None
        }
        if kwargs.get("clear_due_date"):
            changes["due_date"] = None
        elif kwargs.get("due_date"):
            try:
                changes["due_date"] = parse_timestamp(kwargs["due_date"])
            except ValueError as exc:
                msg = f"Invalid due_date '{kwargs['due_date']}': expected ISO 8601"
                raise ValidationError(msg) from exc

        if not changes:
            return ToolResult(error="Nothing to update: pass at least one field.")

        task = await self._store.update_task(kwargs["task_id"], **changes)
        return ToolResult(data={"updated": True, "task": task.to_dict()})


# -- Engine-backed tools -------------------------------------------------------


def register_task_tools(registry: ToolRegistry, store: TaskStore, engine: PriorityEngine) -> None:
    """Register the task tools on *registry*."""
    registry.register(SearchTasksTool(store))
    registry.register(UpdateTaskTool(store))

    @registry.tool(
        name="recalculate_priorities",
        description=(
            "Recompute priority scores for all tasks from due dates, status and "
            "linked memories. Returns the tasks ordered by priority."
        ),
        category=_CATEGORY,
    )
    async def recalculate_priorities() -> ToolResult:
        result = await engine.recompute_priorities()
        return ToolResult(data={
            "updated_count": result.success_count,
            "tasks": [t.to_dict() for t in result.tasks[:10]],
            "failures": [{"task_id": f.item_id, "error": f.error} for f in result.failures],
        })

    @registry.tool(
        name="get_next_action",
        description="Recommend the single most important task to work on next.",
        category=_CATEGORY,
    )
    async def get_next_action() -> ToolResult:
        action = await engine.get_next_action_recommendation()
        return ToolResult(data={"recommendation": action.to_dict() if action else None})
