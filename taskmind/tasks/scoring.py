"""Priority scoring and severity classification.

Everything here is a pure function of its inputs (including ``now``), so
scores and severities are reproducible in tests.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from taskmind.config import Settings
    from taskmind.tasks.models import Severity, Task

DUE_SOON_MAX = 50.0
DUE_DECAY_DAYS = 7.0
OVERDUE_CAP_DAYS = 30.0
NO_DUE_DATE_POINTS = 5.0
IMPORTANCE_WEIGHT = 20.0

STATUS_WEIGHTS: dict[str, float] = {
    "in_progress": 1.25,
    "open": 1.0,
    "blocked": 0.5,
    "done": 0.0,
}


def due_points(days_until_due: float | None) -> float:
    """Urgency from the due date; non-increasing in *days_until_due*.

    Overdue tasks always score at or above ``DUE_SOON_MAX``.
    """
    if days_until_due is None:
        return NO_DUE_DATE_POINTS
    if days_until_due >= 0:
        return DUE_SOON_MAX * math.exp(-days_until_due / DUE_DECAY_DAYS)
    return DUE_SOON_MAX + min(-days_until_due, OVERDUE_CAP_DAYS)


def compute_priority_score(task: Task, now: datetime, importance: float | None = None) -> float:
    """Derive a task's priority score.

    Args:
        task: The task to score.
        now: Evaluation time.
        importance: Highest importance (0-1) among memories linked to the task.
    """
    base = due_points(task.days_until_due(now))
    base += (importance or 0.0) * IMPORTANCE_WEIGHT
    weight = STATUS_WEIGHTS.get(task.status, 1.0)
    return round(base * weight, 4)


@dataclass(frozen=True)
class AlertThresholds:
    """Day thresholds for alert detection and severity tiers."""

    overdue_high_days: float = 0.0
    overdue_critical_days: float = 14.0
    stuck_threshold_days: float = 7.0
    stuck_high_days: float = 14.0
    stuck_critical_days: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> AlertThresholds:
        return cls(
            overdue_high_days=settings.overdue_high_days,
            overdue_critical_days=settings.overdue_critical_days,
            stuck_threshold_days=settings.stuck_threshold_days,
            stuck_high_days=settings.stuck_high_days,
            stuck_critical_days=settings.stuck_critical_days,
        )

    def overdue_severity(self, days_overdue: float) -> Severity:
        if days_overdue > self.overdue_critical_days:
            return "critical"
        if days_overdue > self.overdue_high_days:
            return "high"
        return "medium"

    def stuck_severity(self, days_stalled: float) -> Severity:
        if days_stalled > self.stuck_critical_days:
            return "critical"
        if days_stalled > self.stuck_high_days:
            return "high"
        return "medium"
