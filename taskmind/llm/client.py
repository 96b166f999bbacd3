"""Generation service: async Claude client for text and tool calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import anthropic

from taskmind.errors import DependencyError, with_timeout

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    """A structured request from the model to invoke a tool."""

    id: str
    name: str
    input: dict[str, Any]


@dataclass
class Generation:
    """One model turn: text, tool calls, and the raw content for history."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    content: list[dict[str, Any]] = field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


def _serialize_content(content: list[Any]) -> list[dict[str, Any]]:
    """Convert SDK content blocks to plain dicts for message history."""
    result: list[dict[str, Any]] = []
    for block in content:
        if block.type == "text":
            result.append({"type": "text", "text": block.text})
        elif block.type == "tool_use":
            result.append({
                "type": "tool_use",
                "id": block.id,
                "name": block.name,
                "input": block.input,
            })
    return result


class GenerationService:
    """Wraps ``anthropic.AsyncAnthropic`` with timeouts and error mapping.

    Every failure (API error or timeout) surfaces as ``DependencyError`` so
    callers can decide whether it is fatal.
    """

    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None = None,
        *,
        api_key: str = "",
        model: str = "claude-sonnet-4-5-20250929",
        max_tokens: int = 4096,
        timeout: float = 60.0,
    ) -> None:
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key or None)
        self._model = model
        self._max_tokens = max_tokens
        self._timeout = timeout

    async def _create(self, **kwargs: Any) -> Any:
        try:
            return await with_timeout(
                self._client.messages.create(**kwargs), self._timeout, "generation"
            )
        except anthropic.APIError as exc:
            logger.warning("Generation request failed: %s", exc)
            raise DependencyError("generation", str(exc)) from exc

    async def generate(
        self,
        messages: list[dict[str, Any]],
        *,
        system: str | list[dict[str, Any]] | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> Generation:
        """Run one model turn, returning text and/or tool calls."""
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": messages,
        }
        if system is not None:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = tools

        response = await self._create(**kwargs)

        text = "".join(b.text for b in response.content if b.type == "text")
        tool_calls = [
            ToolCall(id=b.id, name=b.name, input=dict(b.input or {}))
            for b in response.content
            if b.type == "tool_use"
        ]
        return Generation(
            text=text,
            tool_calls=tool_calls,
            content=_serialize_content(response.content),
        )

    async def complete_text(
        self,
        messages: list[dict[str, Any]],
        *,
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Single-shot call — no tools, no memory.

        Use this for isolated tasks (drafting, summarization) where the full
        agent loop is not needed.
        """
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "messages": messages,
        }
        if system is not None:
            kwargs["system"] = system
        response = await self._create(**kwargs)
        return "".join(b.text for b in response.content if b.type == "text")
