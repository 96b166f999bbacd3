"""Base types for the tool-calling framework."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel


@dataclass
class ToolResult:
    """Result of a tool execution.

    Every tool returns one of these. The orchestrator serializes it into a
    ``tool_result`` content block for the model.
    """

    data: dict[str, Any] | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_content(self) -> str:
        """Serialize for the tool_result content field."""
        if self.error:
            return json.dumps({"error": self.error})
        return json.dumps(self.data or {}, default=str)


class ToolParams(BaseModel):
    """Base class for tool parameter models.

    Subclass with Field() definitions. The JSON schema is generated via
    model_json_schema() for the tool definitions sent to the model.
    """


class BaseTool(ABC):
    """Abstract base for class-based tools that hold a service handle.

    Example::

        class SearchTasksTool(BaseTool):
            name = "search_tasks"
            description = "Find tasks by text"
            category = "tasks"
            params_model = SearchTasksParams

            def __init__(self, store: TaskStore) -> None:
                self._store = store

            async def execute(self, **kwargs) -> ToolResult:
                ...
    """

    name: str = ""
    description: str = ""
    category: str = ""
    params_model: type[ToolParams] | None = None

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool with validated parameters."""
        ...
