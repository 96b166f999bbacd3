"""Error taxonomy shared by the memory, priority and agent engines."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")


class TaskmindError(Exception):
    """Base class for errors surfaced to callers of the core."""

    code = "error"


class ValidationError(TaskmindError):
    """Malformed or missing input. Raised before any side effect."""

    code = "validation_error"


class NotFoundError(TaskmindError):
    """A referenced task, thread or memory does not exist."""

    code = "not_found"


class DependencyError(TaskmindError):
    """An external call (embedding, generation, store, index) failed or timed out.

    Attributes:
        dependency: One of ``embedding``, ``generation``,
            ``relational_store`` or ``vector_index``.
    """

    code = "dependency_error"

    def __init__(self, dependency: str, message: str) -> None:
        super().__init__(f"{dependency}: {message}")
        self.dependency = dependency


class LoopBoundExceeded(TaskmindError):
    """The agent asked for more tool rounds than allowed.

    Carries whatever text the model produced so far so the caller can
    answer with a partial response.
    """

    code = "loop_bound_exceeded"

    def __init__(self, partial_text: str, rounds: int) -> None:
        super().__init__(f"Tool loop stopped after {rounds} round(s)")
        self.partial_text = partial_text
        self.rounds = rounds


async def with_timeout(awaitable: Awaitable[T], seconds: float, dependency: str) -> T:
    """Await *awaitable*, converting a timeout into a ``DependencyError``."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except TimeoutError as exc:
        msg = f"timed out after {seconds:g}s"
        raise DependencyError(dependency, msg) from exc
