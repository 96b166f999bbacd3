"""Tool framework — ``build_registry`` wires the core tools to their services."""

from __future__ import annotations

from typing import TYPE_CHECKING

from taskmind.tools.memory_tools import register_memory_tools
from taskmind.tools.registry import ToolRegistry
from taskmind.tools.task_tools import register_task_tools

if TYPE_CHECKING:
    from taskmind.memory.hybrid import HybridMemory
    from taskmind.tasks.engine import PriorityEngine
    from taskmind.tasks.store import TaskStore


def build_registry(tasks: TaskStore, engine: PriorityEngine, memory: HybridMemory) -> ToolRegistry:
    """Create a registry holding the task and memory tools."""
    registry = ToolRegistry()
    register_task_tools(registry, tasks, engine)
    register_memory_tools(registry, memory)
    return registry


__all__ = ["ToolRegistry", "build_registry"]
