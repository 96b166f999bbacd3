"""PriorityEngine — priority recompute, overdue/stuck alerts, next action."""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import timedelta
from typing import TYPE_CHECKING

from taskmind.errors import with_timeout
from taskmind.tasks.models import (
    ACTIVE_STATUSES,
    Alert,
    AlertReport,
    BatchResult,
    ItemFailure,
    NextAction,
    PriorityRecomputeResult,
    Task,
    utcnow,
)
from taskmind.tasks.scoring import AlertThresholds, compute_priority_score

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from taskmind.memory.store import MemoryRecordStore
    from taskmind.tasks.store import TaskStore

logger = logging.getLogger(__name__)

URGENT_KEYWORDS = ("urgent", "asap", "immediately", "dringend", "sofort")
PAYMENT_KEYWORDS = (
    "payment",
    "pay",
    "debt",
    "invoice",
    "bill",
    "rechnung",
    "zahlung",
)


def _keyword_pattern(words: tuple[str, ...]) -> re.Pattern[str]:
    # Whole words, with an optional plural ending (bills, rechnungen).
    alternatives = "|".join(re.escape(w) for w in words)
    return re.compile(rf"\b(?:{alternatives})(?:s|en)?\b", re.IGNORECASE)


_URGENT_RE = _keyword_pattern(URGENT_KEYWORDS)
_PAYMENT_RE = _keyword_pattern(PAYMENT_KEYWORDS)

_NO_DUE_DATE = float("inf")


def _days_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 86400


def _recommendations(report: AlertReport) -> list[str]:
    hints: list[str] = []
    critical = report.count("critical")
    if critical:
        hints.append(f"{critical} critical item(s) need immediate attention")
    if len(report.overdue) > 3:
        hints.append(
            f"{len(report.overdue)} overdue tasks: work through them by priority score"
        )
    elif report.overdue:
        hints.append(f"Start with the most overdue task: {report.overdue[0].title}")
    if report.stuck:
        hints.append(
            f"{len(report.stuck)} task(s) without recent progress: update or close them"
        )
    return hints


def _next_action_key(task: Task) -> tuple:
    """Sort key: score desc, earliest due (none last), most recently updated, id."""
    due = task.due_date.timestamp() if task.due_date else _NO_DUE_DATE
    return (-task.priority_score, due, -task.last_updated.timestamp(), task.id)


class PriorityEngine:
    """Derives priority scores and alerts from task state.

    Args:
        tasks: Task persistence.
        memories: Memory records, used for linked-memory importance.
        thresholds: Day thresholds for overdue/stuck severity.
        fanout: Max concurrent writes during a bulk recompute.
        store_timeout: Seconds allowed per store write.
        default_deadline_days: Fallback offset for suggested deadlines.
        suggestion_limit: Max tasks touched by one ``suggest_deadlines`` call.
        clock: Returns the current time (UTC). Injected for tests.
    """

    def __init__(
        self,
        tasks: TaskStore,
        memories: MemoryRecordStore | None = None,
        *,
        thresholds: AlertThresholds | None = None,
        fanout: int = 8,
        store_timeout: float = 10.0,
        default_deadline_days: int = 14,
        suggestion_limit: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._tasks = tasks
        self._memories = memories
        self._thresholds = thresholds or AlertThresholds()
        self._fanout = max(1, fanout)
        self._store_timeout = store_timeout
        self._default_deadline_days = default_deadline_days
        self._suggestion_limit = suggestion_limit
        self._clock = clock

    @property
    def thresholds(self) -> AlertThresholds:
        return self._thresholds

    # -- Priorities ----------------------------------------------------------

    async def _linked_importance(self, tasks: list[Task]) -> dict[str, float]:
        if self._memories is None or not tasks:
            return {}
        try:
            return await self._memories.max_importance_by_entity([t.id for t in tasks])
        except Exception:
            logger.warning("Linked-memory importance unavailable", exc_info=True)
            return {}

    async def recompute_priorities(
        self, tasks: list[Task] | None = None
    ) -> PriorityRecomputeResult:
        """Recompute and persist priority scores.

        Writes run concurrently (bounded by the fan-out); a failing task keeps
        its previous score and is reported in ``failures``.
        """
        if tasks is None:
            tasks = await self._tasks.list_tasks()
        now = self._clock()
        importance = await self._linked_importance(tasks)
        semaphore = asyncio.Semaphore(self._fanout)

        async def _write(task: Task) -> Task:
            score = compute_priority_score(task, now, importance.get(task.id))
            async with semaphore:
                updated = await with_timeout(
                    self._tasks.set_priority(task.id, score, now),
                    self._store_timeout,
                    "relational_store",
                )
            if not updated:
                msg = f"Task '{task.id}' not found"
                raise LookupError(msg)
            task.priority_score = score
            task.last_updated = now
            return task

        outcomes = await asyncio.gather(*(_write(t) for t in tasks), return_exceptions=True)

        result = PriorityRecomputeResult()
        for task, outcome in zip(tasks, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.warning("Priority update failed for %s: %s", task.id, outcome)
                result.failures.append(ItemFailure(task.id, str(outcome)))
            else:
                result.succeeded.append(task.id)
                result.tasks.append(outcome)

        result.tasks.sort(key=_next_action_key)
        logger.info(
            "Recomputed priorities: %d updated, %d failed",
            result.success_count,
            len(result.failures),
        )
        return result

    # -- Alerts --------------------------------------------------------------

    async def _active_tasks(self) -> list[Task]:
        return await self._tasks.list_tasks(ACTIVE_STATUSES)

    def _overdue(self, tasks: list[Task], now: datetime) -> list[Task]:
        return [t for t in tasks if t.due_date is not None and t.due_date < now]

    def _stuck(self, tasks: list[Task], now: datetime) -> list[Task]:
        limit = self._thresholds.stuck_threshold_days
        return [t for t in tasks if _days_between(now, t.last_updated) > limit]

    async def check_overdue_tasks(self) -> int:
        """Flag active tasks past their due date. Returns how many were newly flagged."""
        now = self._clock()
        candidates = [t for t in self._overdue(await self._active_tasks(), now) if not t.overdue]
        flagged = 0
        for task in candidates:
            if await self._tasks.flag_overdue(task.id):
                flagged += 1
        if flagged:
            logger.info("Flagged %d task(s) as overdue", flagged)
        return flagged

    async def check_stuck_tasks(self) -> list[Task]:
        """Active tasks without an update for longer than the stuck threshold."""
        return self._stuck(await self._active_tasks(), self._clock())

    async def check_all(self) -> AlertReport:
        """Build overdue and stuck alerts for every active task."""
        now = self._clock()
        active = await self._active_tasks()
        report = AlertReport()

        for task in self._overdue(active, now):
            days = _days_between(now, task.due_date)
            report.overdue.append(
                Alert(
                    task_id=task.id,
                    title=task.title,
                    kind="overdue",
                    severity=self._thresholds.overdue_severity(days),
                    days=days,
                    description=f"Overdue by {days:.1f} day(s)",
                )
            )

        for task in self._stuck(active, now):
            days = _days_between(now, task.last_updated)
            report.stuck.append(
                Alert(
                    task_id=task.id,
                    title=task.title,
                    kind="stuck",
                    severity=self._thresholds.stuck_severity(days),
                    days=days,
                    description=f"No progress for {days:.1f} day(s)",
                )
            )

        report.overdue.sort(key=lambda a: a.days, reverse=True)
        report.stuck.sort(key=lambda a: a.days, reverse=True)
        report.recommendations = _recommendations(report)
        return report

    # -- Recommendations -----------------------------------------------------

    async def get_next_action_recommendation(self) -> NextAction | None:
        """The single highest-priority task that is not done, or None."""
        candidates = [t for t in await self._tasks.list_tasks() if not t.is_done]
        if not candidates:
            return None
        task = min(candidates, key=_next_action_key)
        urgency, reason = self._urgency(task, self._clock())
        return NextAction(task=task, urgency=urgency, reason=reason)

    def _urgency(self, task: Task, now: datetime) -> tuple[str, str]:
        days = task.days_until_due(now)
        if days is None:
            return "low", f"No deadline, highest score ({task.priority_score:g})"
        if days < 0:
            overdue_days = -days
            if overdue_days > self._thresholds.overdue_critical_days:
                return "critical", f"Overdue by {overdue_days:.0f} days"
            return "high", f"Overdue by {overdue_days:.1f} day(s)"
        if days <= 3:
            return "high", f"Due in {days:.1f} day(s)"
        return "medium", f"Due in {days:.0f} days"

    def _suggest_offset(self, task: Task, now: datetime) -> int:
        text = f"{task.title} {task.description}"
        if _URGENT_RE.search(text):
            return 2
        if _PAYMENT_RE.search(text):
            return 5
        if task.status == "in_progress":
            return 7
        if _days_between(now, task.created_at) > 14:
            return 3
        return self._default_deadline_days

    async def suggest_deadlines(self, limit: int | None = None) -> BatchResult:
        """Propose and write due dates for active tasks that have none."""
        now = self._clock()
        pending = [t for t in await self._active_tasks() if t.due_date is None]
        pending = pending[: limit or self._suggestion_limit]

        result = BatchResult()
        for task in pending:
            due = now + timedelta(days=self._suggest_offset(task, now))
            try:
                await with_timeout(
                    self._tasks.update_task(task.id, due_date=due),
                    self._store_timeout,
                    "relational_store",
                )
            except Exception as exc:
                logger.warning("Deadline suggestion failed for %s: %s", task.id, exc)
                result.failures.append(ItemFailure(task.id, str(exc)))
                continue
            result.succeeded.append(task.id)

        logger.info("Suggested deadlines for %d task(s)", result.success_count)
        return result
