"""Task system — models, persistence, scoring and the priority & alert engine."""

from taskmind.tasks.engine import PriorityEngine
from taskmind.tasks.models import Alert, AlertReport, BatchResult, NextAction, Task
from taskmind.tasks.scoring import AlertThresholds, compute_priority_score
from taskmind.tasks.store import TaskStore

__all__ = [
    "Alert",
    "AlertReport",
    "AlertThresholds",
    "BatchResult",
    "NextAction",
    "PriorityEngine",
    "Task",
    "TaskStore",
    "compute_priority_score",
]
