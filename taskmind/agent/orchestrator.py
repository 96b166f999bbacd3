"""AgentOrchestrator — the per-thread conversation loop.

One ``chat`` call walks an explicit state machine::

    IDLE -> RETRIEVING -> GENERATING <-> TOOL_DISPATCH -> RESPONDING -> IDLE

Every transition is logged and recorded in ``ChatResult.trace``. Requests
for the same thread are serialized by a per-thread lock; different threads
run concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

from taskmind.agent.threads import ConversationThread
from taskmind.config import settings
from taskmind.errors import DependencyError, LoopBoundExceeded, ValidationError, with_timeout
from taskmind.llm.prompt import build_draft_prompt, build_system_prompt
from taskmind.memory.automatic import summarize_exchange
from taskmind.tasks.models import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from taskmind.agent.threads import ThreadStore
    from taskmind.llm.client import Generation
    from taskmind.memory.hybrid import HybridMemory
    from taskmind.memory.models import MemorySearchResult
    from taskmind.tasks.models import Task
    from taskmind.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

APOLOGY_TEXT = (
    "Sorry, I can't reach my language service right now. "
    "Your message was received; please try again in a moment."
)
LOOP_BOUND_TEXT = "I ran out of steps while working on that. Here is what I have so far."

# User turns from the thread folded into the retrieval query.
RETRIEVAL_CONTEXT_TURNS = 2


class AgentState(StrEnum):
    IDLE = "IDLE"
    RETRIEVING = "RETRIEVING"
    GENERATING = "GENERATING"
    TOOL_DISPATCH = "TOOL_DISPATCH"
    RESPONDING = "RESPONDING"


class Generator(Protocol):
    async def generate(
        self,
        messages: list[dict[str, Any]],
        *,
        system: str | list[dict[str, Any]] | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> Generation: ...

    async def complete_text(
        self,
        messages: list[dict[str, Any]],
        *,
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> str: ...


@dataclass
class ChatResult:
    """What one ``chat`` call returns to the caller."""

    response: str
    thread_id: str
    timestamp: str
    warnings: list[str] = field(default_factory=list)
    trace: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "thread_id": self.thread_id,
            "timestamp": self.timestamp,
            "warnings": list(self.warnings),
        }


@dataclass
class _Turn:
    """Mutable state carried through one pass of the state machine."""

    thread_id: str
    trace: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    memory_ids: list[str] = field(default_factory=list)
    tool_results: list[dict[str, Any]] = field(default_factory=list)
    persist: bool = True

    def enter(self, state: AgentState) -> None:
        self.trace.append(state.value)
        logger.debug("Thread %s -> %s", self.thread_id, state.value)


class AgentOrchestrator:
    """Retrieve, generate, dispatch tools, respond.

    Args:
        memory: Hybrid memory used for retrieval and conversation summaries.
        generator: Generation service (see ``taskmind.llm.client``).
        tools: Registry of the tools the model may call.
        threads: Conversation thread persistence.
        max_tool_rounds: Dispatch rounds allowed per message.
        window_size: Turns of history sent to the generation service.
        memory_limit: Memories retrieved per message.
        min_similarity: Retrieval similarity floor.
        retrieval_timeout: Seconds before retrieval is abandoned.
        summary_mode: ``heuristic``, ``always`` or ``off``.
        clock: Returns the current time (UTC).
    """

    def __init__(
        self,
        memory: HybridMemory,
        generator: Generator,
        tools: ToolRegistry,
        threads: ThreadStore,
        *,
        max_tool_rounds: int | None = None,
        window_size: int | None = None,
        memory_limit: int | None = None,
        min_similarity: float | None = None,
        retrieval_timeout: float | None = None,
        summary_mode: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._memory = memory
        self._generator = generator
        self._tools = tools
        self._threads = threads
        self._max_tool_rounds = (
            settings.max_tool_rounds if max_tool_rounds is None else max_tool_rounds
        )
        self._window_size = window_size or settings.conversation_window_size
        self._memory_limit = memory_limit or settings.chat_memory_limit
        self._min_similarity = (
            settings.chat_min_similarity if min_similarity is None else min_similarity
        )
        self._retrieval_timeout = retrieval_timeout or settings.retrieval_timeout
        self._summary_mode = summary_mode or settings.conversation_summary_mode
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()
        self._background: set[asyncio.Task] = set()

    # -- Public API ----------------------------------------------------------

    async def chat(self, message: str, thread_id: str) -> ChatResult:
        """Handle one user message on *thread_id*."""
        if not isinstance(message, str) or not message.strip():
            msg = "message must be a non-empty string"
            raise ValidationError(msg)
        if not isinstance(thread_id, str) or not thread_id.strip():
            msg = "thread_id must be a non-empty string"
            raise ValidationError(msg)

        # Locks are dropped once no request for the thread is running or waiting.
        lock = self._locks.setdefault(thread_id, asyncio.Lock())
        self._lock_users[thread_id] += 1
        try:
            async with lock:
                return await self._run(message, thread_id)
        finally:
            self._lock_users[thread_id] -= 1
            if not self._lock_users[thread_id]:
                del self._lock_users[thread_id]
                del self._locks[thread_id]

    async def generate_message_draft(
        self, task: Task, message_type: str, language: str
    ) -> str:
        """Draft a message about *task*. Stateless: no thread, no memory."""
        system, user = build_draft_prompt(task, message_type, language)
        draft = await self._generator.complete_text(
            [{"role": "user", "content": user}], system=system
        )
        logger.info("Drafted %s (%s) for task %s", message_type, language, task.id)
        return draft.strip()

    async def wait_for_background(self) -> None:
        """Await pending conversation-summary writes."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -- State machine -------------------------------------------------------

    async def _run(self, message: str, thread_id: str) -> ChatResult:
        turn = _Turn(thread_id=thread_id)
        turn.enter(AgentState.IDLE)

        thread = await self._load_thread(thread_id, turn)

        turn.enter(AgentState.RETRIEVING)
        memories = await self._retrieve(message, thread, turn)

        turn.enter(AgentState.GENERATING)
        messages = [
            *thread.to_api_messages(self._window_size),
            {"role": "user", "content": message},
        ]
        system = build_system_prompt(memories, now=self._clock())
        try:
            response = await self._generate_loop(messages, system, turn)
        except LoopBoundExceeded as exc:
            logger.warning("Thread %s: %s", thread_id, exc)
            turn.warnings.append(f"tool loop stopped after {exc.rounds} round(s)")
            response = exc.partial_text or LOOP_BOUND_TEXT
        except DependencyError as exc:
            logger.warning("Thread %s: generation unavailable: %s", thread_id, exc)
            turn.warnings.append(str(exc))
            response = APOLOGY_TEXT

        turn.enter(AgentState.RESPONDING)
        await self._respond(thread, message, response, turn)

        turn.enter(AgentState.IDLE)
        return ChatResult(
            response=response,
            thread_id=thread_id,
            timestamp=self._clock().isoformat(),
            warnings=turn.warnings,
            trace=turn.trace,
        )

    async def _load_thread(self, thread_id: str, turn: _Turn) -> ConversationThread:
        try:
            return await self._threads.get_or_create(thread_id)
        except Exception:
            logger.exception("Failed to load thread %s, answering without history", thread_id)
            turn.warnings.append("conversation history could not be loaded")
            turn.persist = False
            return ConversationThread(id=thread_id)

    async def _retrieve(
        self, message: str, thread: ConversationThread, turn: _Turn
    ) -> list[MemorySearchResult]:
        query = "\n".join([*thread.recent_user_texts(RETRIEVAL_CONTEXT_TURNS), message])
        try:
            memories = await with_timeout(
                self._memory.search(
                    query, limit=self._memory_limit, min_similarity=self._min_similarity
                ),
                self._retrieval_timeout,
                "vector_index",
            )
        except DependencyError as exc:
            logger.warning("Memory retrieval degraded to empty: %s", exc)
            return []
        turn.memory_ids = [m.durable_id for m in memories if m.durable_id]
        logger.debug("Retrieved %d memories for thread %s", len(memories), thread.id)
        return memories

    async def _generate_loop(
        self, messages: list[dict[str, Any]], system: list[dict], turn: _Turn
    ) -> str:
        schemas = self._tools.get_schemas()
        loop_messages = list(messages)
        texts: list[str] = []
        rounds = 0

        while True:
            generation = await self._generator.generate(
                loop_messages, system=system, tools=schemas
            )
            if generation.text:
                texts.append(generation.text)

            if not generation.tool_calls:
                return "\n\n".join(texts)

            if rounds >= self._max_tool_rounds:
                raise LoopBoundExceeded("\n\n".join(texts), rounds)

            turn.enter(AgentState.TOOL_DISPATCH)
            rounds += 1
            logger.info(
                "Round %d: %d tool call(s): %s",
                rounds,
                len(generation.tool_calls),
                ", ".join(c.name for c in generation.tool_calls),
            )
            loop_messages.append({"role": "assistant", "content": generation.content})

            tool_results: list[dict[str, Any]] = []
            for call in generation.tool_calls:
                result = await self._tools.execute(call.name, call.input)
                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": call.id,
                    "content": result.to_content(),
                    "is_error": not result.success,
                })
                turn.tool_results.append({
                    "tool": call.name,
                    "success": result.success,
                    "error": result.error,
                })
            loop_messages.append({"role": "user", "content": tool_results})

            turn.enter(AgentState.GENERATING)

    async def _respond(
        self, thread: ConversationThread, message: str, response: str, turn: _Turn
    ) -> None:
        thread.add("user", message)
        thread.add("assistant", response)
        thread.scratch = {
            "last_memory_ids": turn.memory_ids,
            "last_tool_results": turn.tool_results,
            "last_trace": [*turn.trace, AgentState.IDLE.value],
        }
        # A thread that failed to load must not overwrite the stored history.
        if turn.persist:
            try:
                await self._threads.save(thread)
            except Exception:
                logger.exception("Failed to persist thread %s", thread.id)
                turn.warnings.append("conversation history could not be saved")

        self._schedule_summary(thread.id, message, response)

    def _schedule_summary(self, thread_id: str, message: str, response: str) -> None:
        if self._summary_mode == "off":
            return
        task = asyncio.create_task(
            summarize_exchange(self._memory, self._summary_mode, thread_id, message, response)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
