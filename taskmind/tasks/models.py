"""Task, alert and batch-result data models."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

TaskStatus = Literal["open", "in_progress", "blocked", "done"]
TASK_STATUSES: tuple[str, ...] = ("open", "in_progress", "blocked", "done")
ACTIVE_STATUSES: tuple[str, ...] = ("open", "in_progress")

AlertKind = Literal["overdue", "stuck"]
Severity = Literal["critical", "high", "medium"]
_SEVERITY_RANK = {"critical": 0, "high": 1, "medium": 2}


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 string, assuming UTC when no offset is given."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class Task:
    """A unit of work tracked by the assistant.

    Attributes:
        id: Unique identifier (UUID hex).
        title: Short human-readable title.
        description: Free-text details.
        status: ``open``, ``in_progress``, ``blocked`` or ``done``.
        due_date: Optional deadline (UTC).
        priority_score: Derived score. Only the priority engine writes it.
        last_updated: Set on every content update and every recompute.
        created_at: Creation time.
        overdue: Overdue flag set by the overdue check.
        recommendations: Generated artefacts keyed by name (message drafts, ...).
    """

    id: str
    title: str
    description: str = ""
    status: str = "open"
    due_date: datetime | None = None
    priority_score: float = 0.0
    last_updated: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)
    overdue: bool = False
    recommendations: dict[str, Any] = field(default_factory=dict)

    # -- Convenience properties ------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_done(self) -> bool:
        return self.status == "done"

    def days_until_due(self, now: datetime) -> float | None:
        """Fractional days until the due date (negative once past due)."""
        if self.due_date is None:
            return None
        return (self.due_date - now).total_seconds() / 86400

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``tasks`` column order."""
        return (
            self.id,
            self.title,
            self.description,
            self.status,
            _iso(self.due_date),
            self.priority_score,
            _iso(self.last_updated),
            _iso(self.created_at),
            int(self.overdue),
            json.dumps(self.recommendations),
        )

    @classmethod
    def from_row(cls, row: tuple) -> Task:
        """Deserialize from a SQLite row tuple."""
        return cls(
            id=row[0],
            title=row[1],
            description=row[2] or "",
            status=row[3],
            due_date=parse_timestamp(row[4]),
            priority_score=float(row[5] or 0.0),
            last_updated=parse_timestamp(row[6]) or utcnow(),
            created_at=parse_timestamp(row[7]) or utcnow(),
            overdue=bool(row[8]),
            recommendations=json.loads(row[9]) if row[9] else {},
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-shaped view for API responses and tool results."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "due_date": _iso(self.due_date),
            "priority_score": self.priority_score,
            "last_updated": _iso(self.last_updated),
            "overdue": self.overdue,
        }


def make_task_id() -> str:
    """Generate a new task ID."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Alert:
    """An overdue or stuck finding. Recomputed on every check, never stored."""

    task_id: str
    title: str
    kind: AlertKind
    severity: Severity
    days: float
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "title": self.title,
            "kind": self.kind,
            "severity": self.severity,
            "days": round(self.days, 2),
            "description": self.description,
        }


@dataclass
class AlertReport:
    """Result of a full alert check.

    ``recommendations`` are short follow-up hints derived from the alerts.
    """

    overdue: list[Alert] = field(default_factory=list)
    stuck: list[Alert] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def alerts(self) -> list[Alert]:
        return [*self.overdue, *self.stuck]

    def count(self, severity: Severity) -> int:
        return sum(1 for a in self.alerts if a.severity == severity)

    def summary_text(self, top: int = 3) -> str:
        """One memory-sized summary of the check, most severe issues first."""
        lines = [
            f"Alert check: {len(self.alerts)} alert(s), "
            f"{self.count('critical')} critical, {self.count('high')} high."
        ]
        ranked = sorted(self.alerts, key=lambda a: _SEVERITY_RANK[a.severity])
        if ranked:
            lines.append("Top issues:")
            lines.extend(f"- {a.title}: {a.description}" for a in ranked[:top])
        return "\n".join(lines)


@dataclass
class ItemFailure:
    """One failed item in a bulk operation."""

    item_id: str
    error: str


@dataclass
class BatchResult:
    """Outcome of a bulk operation whose items succeed or fail independently."""

    succeeded: list[str] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def partial(self) -> bool:
        """True when at least one item failed."""
        return bool(self.failures)


@dataclass
class PriorityRecomputeResult(BatchResult):
    """Bulk recompute outcome, including the tasks whose writes succeeded."""

    tasks: list[Task] = field(default_factory=list)


@dataclass
class NextAction:
    """The single task recommended as the next thing to do."""

    task: Task
    urgency: Literal["critical", "high", "medium", "low"]
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task.id,
            "title": self.task.title,
            "status": self.task.status,
            "priority_score": self.task.priority_score,
            "urgency": self.urgency,
            "reason": self.reason,
        }
