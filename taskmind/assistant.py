"""Assistant — transport-agnostic request surface over the core engines.

Every method returns a JSON-shaped dict. Core errors come back as
``{"error": <code>, "message": <reason>}`` instead of raising, so any
transport (console, HTTP handler, bot) can pass them through unchanged.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any

from taskmind.agent.orchestrator import AgentOrchestrator
from taskmind.agent.threads import ThreadStore
from taskmind.config import settings as default_settings
from taskmind.errors import TaskmindError
from taskmind.llm.client import GenerationService
from taskmind.llm.embeddings import EmbeddingService
from taskmind.memory.hybrid import HybridMemory
from taskmind.memory.store import MemoryRecordStore
from taskmind.memory.vector_index import VectorIndex
from taskmind.tasks.engine import PriorityEngine
from taskmind.tasks.models import utcnow
from taskmind.tasks.scoring import AlertThresholds
from taskmind.tasks.store import TaskStore
from taskmind.tools import build_registry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from taskmind.config import Settings
    from taskmind.tasks.models import AlertReport, BatchResult

logger = logging.getLogger(__name__)


def _error_response(exc: TaskmindError) -> dict[str, Any]:
    return {"error": exc.code, "message": str(exc)}


def returns_error_dict(
    fn: Callable[..., Awaitable[dict[str, Any]]],
) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Convert core errors raised by *fn* into an error dict."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> dict[str, Any]:
        try:
            return await fn(*args, **kwargs)
        except TaskmindError as exc:
            logger.warning("%s failed: %s", fn.__name__, exc)
            return _error_response(exc)

    return wrapper


def _failures(result: BatchResult) -> list[dict[str, str]]:
    return [{"task_id": f.item_id, "error": f.error} for f in result.failures]


class Assistant:
    """Facade wiring the orchestrator, memory and priority engines together."""

    def __init__(
        self,
        *,
        tasks: TaskStore,
        memory: HybridMemory,
        engine: PriorityEngine,
        orchestrator: AgentOrchestrator,
        default_language: str = "de",
        search_limit: int = 10,
        min_similarity: float = 0.7,
    ) -> None:
        self.tasks = tasks
        self.memory = memory
        self.engine = engine
        self.orchestrator = orchestrator
        self._default_language = default_language
        self._search_limit = search_limit
        self._min_similarity = min_similarity

    # -- Conversation --------------------------------------------------------

    @returns_error_dict
    async def chat(self, message: str, thread_id: str) -> dict[str, Any]:
        result = await self.orchestrator.chat(message, thread_id)
        return result.to_dict()

    @returns_error_dict
    async def compose_draft(
        self, task_id: str, message_type: str, language: str | None = None
    ) -> dict[str, Any]:
        """Draft a message about a task and cache it on the task."""
        task = await self.tasks.require_task(task_id)
        language = language or self._default_language
        draft = await self.orchestrator.generate_message_draft(task, message_type, language)

        recommendations = dict(task.recommendations)
        recommendations[f"message_draft_{message_type}"] = draft
        recommendations["last_generated"] = utcnow().isoformat()
        try:
            await self.tasks.save_recommendations(task.id, recommendations)
        except Exception:
            logger.warning("Could not cache draft on task %s", task.id, exc_info=True)

        return {
            "draft": draft,
            "message_type": message_type,
            "language": language,
            "task_title": task.title,
        }

    # -- Priorities & alerts -------------------------------------------------

    @returns_error_dict
    async def recalculate_priorities(self) -> dict[str, Any]:
        result = await self.engine.recompute_priorities()
        return {
            "updated_count": result.success_count,
            "tasks": [t.to_dict() for t in result.tasks],
            "failures": _failures(result),
        }

    @returns_error_dict
    async def get_next_action(self) -> dict[str, Any]:
        action = await self.engine.get_next_action_recommendation()
        return {"recommendation": action.to_dict() if action else None}

    @returns_error_dict
    async def suggest_deadlines(self) -> dict[str, Any]:
        result = await self.engine.suggest_deadlines()
        return {
            "success": not result.partial,
            "updated_count": result.success_count,
            "failures": _failures(result),
        }

    @returns_error_dict
    async def check_alerts(self) -> dict[str, Any]:
        newly_flagged = await self.engine.check_overdue_tasks()
        report = await self.engine.check_all()
        if report.alerts:
            await self._remember_alert_check(report)
        return {
            "overdue_count": len(report.overdue),
            "stuck_count": len(report.stuck),
            "critical_count": report.count("critical"),
            "high_count": report.count("high"),
            "newly_flagged": newly_flagged,
            "overdue_tasks": [a.to_dict() for a in report.overdue],
            "stuck_tasks": [a.to_dict() for a in report.stuck],
            "recommendations": list(report.recommendations),
        }

    async def _remember_alert_check(self, report: AlertReport) -> None:
        """Keep a summary of the check so later conversations can recall it."""
        importance = 1.0 if report.count("critical") else 0.7
        try:
            await self.memory.remember(
                report.summary_text(), type="general", importance=importance, source="alert_check"
            )
        except Exception:
            logger.warning("Could not remember alert check", exc_info=True)

    # -- Memory --------------------------------------------------------------

    @returns_error_dict
    async def remember_memory(
        self,
        content: str,
        type: str = "general",  # noqa: A002
        importance: float | None = None,
        entity_id: str | None = None,
        source: str | None = None,
    ) -> dict[str, Any]:
        result = await self.memory.remember(
            content, type=type, importance=importance, entity_id=entity_id, source=source
        )
        return {
            "durable_id": result.durable_id,
            "index_id": result.index_id,
            "saved_to": {"relational": result.saved, "vector": result.searchable},
        }

    @returns_error_dict
    async def search_memory(
        self,
        query: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        filter: dict[str, Any] | None = None,  # noqa: A002
    ) -> dict[str, Any]:
        results = await self.memory.search(
            query,
            limit=self._search_limit if limit is None else limit,
            min_similarity=self._min_similarity if min_similarity is None else min_similarity,
            filter=filter,
        )
        return {"results": [r.model_dump() for r in results], "count": len(results)}

    @returns_error_dict
    async def reconcile_memories(self) -> dict[str, Any]:
        result = await self.memory.reindex_missing()
        return {
            "reindexed_count": result.success_count,
            "failures": [{"memory_id": f.item_id, "error": f.error} for f in result.failures],
        }

    async def close(self) -> None:
        """Wait for background work started by ``chat``."""
        await self.orchestrator.wait_for_background()


def create_assistant(settings: Settings | None = None) -> Assistant:
    """Wire production services from *settings*."""
    cfg = settings or default_settings

    tasks = TaskStore()
    records = MemoryRecordStore()
    index = VectorIndex(cfg.vector_index_path)
    embedder = EmbeddingService(
        api_key=cfg.openai_api_key,
        model=cfg.embedding_model,
        dimensions=cfg.embedding_dimensions,
        timeout=cfg.embedding_timeout,
    )
    generator = GenerationService(
        api_key=cfg.anthropic_api_key,
        model=cfg.claude_model,
        max_tokens=cfg.max_output_tokens,
        timeout=cfg.generation_timeout,
    )

    memory = HybridMemory(records, index, embedder, store_timeout=cfg.store_timeout)
    engine = PriorityEngine(
        tasks,
        records,
        thresholds=AlertThresholds.from_settings(cfg),
        fanout=cfg.priority_fanout,
        store_timeout=cfg.store_timeout,
        default_deadline_days=cfg.default_deadline_days,
        suggestion_limit=cfg.deadline_suggestion_limit,
    )
    orchestrator = AgentOrchestrator(
        memory,
        generator,
        build_registry(tasks, engine, memory),
        ThreadStore(),
        max_tool_rounds=cfg.max_tool_rounds,
        window_size=cfg.conversation_window_size,
        memory_limit=cfg.chat_memory_limit,
        min_similarity=cfg.chat_min_similarity,
        retrieval_timeout=cfg.retrieval_timeout,
        summary_mode=cfg.conversation_summary_mode,
    )
    return Assistant(
        tasks=tasks,
        memory=memory,
        engine=engine,
        orchestrator=orchestrator,
        default_language=cfg.default_draft_language,
        search_limit=cfg.memory_search_limit,
        min_similarity=cfg.memory_min_similarity,
    )
