"""Tests for the task tools, executed through the registry."""

from datetime import UTC, datetime, timedelta

import pytest

from taskmind.memory.hybrid import HybridMemory
from taskmind.tasks.engine import PriorityEngine
from taskmind.tasks.models import Task
from taskmind.tasks.store import TaskStore
from taskmind.tools import build_registry
from taskmind.tools.registry import ToolRegistry


@pytest.fixture
def registry(task_store: TaskStore, record_store, memory: HybridMemory, clock) -> ToolRegistry:
    engine = PriorityEngine(task_store, record_store, clock=clock)
    return build_registry(task_store, engine, memory)


def test_core_tool_set(registry: ToolRegistry) -> None:
    assert set(registry.tool_names) == {
        "search_tasks",
        "update_task",
        "recalculate_priorities",
        "get_next_action",
        "remember_this",
        "recall",
    }


# -- search_tasks --------------------------------------------------------------


async def test_search_tasks(registry: ToolRegistry, task_store: TaskStore) -> None:
    await task_store.add_task(Task(id="t1", title="Call Miller about invoice"))
    await task_store.add_task(Task(id="t2", title="Dentist"))

    result = await registry.execute("search_tasks", {"query": "miller"})

    assert result.success
    assert result.data["count"] == 1
    assert result.data["tasks"][0]["id"] == "t1"


async def test_search_tasks_limit_validated(registry: ToolRegistry) -> None:
    result = await registry.execute("search_tasks", {"query": "x", "limit": 0})
    assert result.error.startswith("Invalid arguments")


# -- update_task ---------------------------------------------------------------


async def test_update_task_status_and_due_date(
    registry: ToolRegistry, task_store: TaskStore
) -> None:
    await task_store.add_task(Task(id="t1", title="File taxes"))

    result = await registry.execute(
        "update_task",
        {"task_id": "t1", "status": "in_progress", "due_date": "2030-04-15T17:00:00Z"},
    )

    assert result.success
    stored = await task_store.get_task("t1")
    assert stored.status == "in_progress"
    assert stored.due_date == datetime(2030, 4, 15, 17, 0, tzinfo=UTC)


async def test_update_task_clear_due_date(registry: ToolRegistry, task_store: TaskStore) -> None:
    due = datetime.now(UTC) + timedelta(days=3)
    await task_store.add_task(Task(id="t1", title="File taxes", due_date=due))

    result = await registry.execute("update_task", {"task_id": "t1", "clear_due_date": True})

    assert result.success
    assert (await task_store.get_task("t1")).due_date is None


async def test_update_task_bad_date(registry: ToolRegistry, task_store: TaskStore) -> None:
    await task_store.add_task(Task(id="t1", title="File taxes"))

    result = await registry.execute("update_task", {"task_id": "t1", "due_date": "next week"})

    assert result.error == "Invalid due_date 'next week': expected ISO 8601"


async def test_update_task_unknown_id(registry: ToolRegistry) -> None:
    result = await registry.execute("update_task", {"task_id": "ghost", "title": "x"})
    assert result.error == "Task 'ghost' not found"


async def test_update_task_bad_status(registry: ToolRegistry, task_store: TaskStore) -> None:
    await task_store.add_task(Task(id="t1", title="File taxes"))
    result = await registry.execute("update_task", {"task_id": "t1", "status": "archived"})
    assert result.error == "Unknown task status 'archived'"


async def test_update_task_nothing_to_change(registry: ToolRegistry) -> None:
    result = await registry.execute("update_task", {"task_id": "t1"})
    assert "Nothing to update" in result.error


async def test_update_task_cannot_set_priority(
    registry: ToolRegistry, task_store: TaskStore
) -> None:
    await task_store.add_task(Task(id="t1", title="File taxes"))

    await registry.execute("update_task", {"task_id": "t1", "priority_score": 99})

    assert (await task_store.get_task("t1")).priority_score == 0.0


# -- engine-backed tools -------------------------------------------------------


async def test_recalculate_priorities(registry: ToolRegistry, task_store: TaskStore) -> None:
    await task_store.add_task(Task(id="t1", title="File taxes"))

    result = await registry.execute("recalculate_priorities", {})

    assert result.data["updated_count"] == 1
    assert result.data["failures"] == []
    assert result.data["tasks"][0]["priority_score"] > 0


async def test_get_next_action(registry: ToolRegistry, task_store: TaskStore) -> None:
    result = await registry.execute("get_next_action", {})
    assert result.data == {"recommendation": None}

    await task_store.add_task(Task(id="t1", title="File taxes", priority_score=12.0))
    result = await registry.execute("get_next_action", {})
    assert result.data["recommendation"]["task_id"] == "t1"
