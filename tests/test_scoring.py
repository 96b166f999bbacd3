"""Tests for priority scoring and severity thresholds."""

from datetime import UTC, datetime, timedelta

import pytest

from taskmind.config import Settings
from taskmind.tasks.models import Task
from taskmind.tasks.scoring import (
    DUE_SOON_MAX,
    NO_DUE_DATE_POINTS,
    AlertThresholds,
    compute_priority_score,
    due_points,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)


def _task(days_until_due: float | None = None, status: str = "open") -> Task:
    due = NOW + timedelta(days=days_until_due) if days_until_due is not None else None
    return Task(id="t", title="Task", status=status, due_date=due)


# -- due_points ----------------------------------------------------------------


def test_no_due_date_points() -> None:
    assert due_points(None) == NO_DUE_DATE_POINTS


def test_due_today_is_max_band() -> None:
    assert due_points(0) == pytest.approx(DUE_SOON_MAX)


def test_overdue_scores_above_due_soon() -> None:
    assert due_points(-0.01) >= DUE_SOON_MAX
    assert due_points(-5) > due_points(-1)


def test_overdue_bonus_is_capped() -> None:
    assert due_points(-365) == due_points(-30)


@pytest.mark.parametrize("earlier,later", [(-10, -2), (-1, 0), (0, 1), (1, 7), (3, 30), (30, 365)])
def test_due_points_non_increasing(earlier: float, later: float) -> None:
    assert due_points(earlier) >= due_points(later)


# -- compute_priority_score ----------------------------------------------------


def test_earlier_due_date_scores_at_least_as_high() -> None:
    a = _task(days_until_due=2)
    b = _task(days_until_due=9)
    assert compute_priority_score(a, NOW) >= compute_priority_score(b, NOW)


def test_deterministic() -> None:
    task = _task(days_until_due=3.3)
    assert compute_priority_score(task, NOW, 0.4) == compute_priority_score(task, NOW, 0.4)


def test_status_weights() -> None:
    open_score = compute_priority_score(_task(1, "open"), NOW)
    assert compute_priority_score(_task(1, "in_progress"), NOW) > open_score
    assert compute_priority_score(_task(1, "blocked"), NOW) < open_score
    assert compute_priority_score(_task(1, "done"), NOW) == 0


def test_linked_importance_raises_score() -> None:
    task = _task(days_until_due=None)
    assert compute_priority_score(task, NOW, 1.0) == pytest.approx(NO_DUE_DATE_POINTS + 20)
    assert compute_priority_score(task, NOW, None) == pytest.approx(NO_DUE_DATE_POINTS)


# -- AlertThresholds -----------------------------------------------------------


def test_overdue_severity_tiers() -> None:
    t = AlertThresholds()
    assert t.overdue_severity(15) == "critical"
    assert t.overdue_severity(14) == "high"
    assert t.overdue_severity(1) == "high"
    assert t.overdue_severity(0) == "medium"


def test_stuck_severity_tiers() -> None:
    t = AlertThresholds()
    assert t.stuck_severity(31) == "critical"
    assert t.stuck_severity(20) == "high"
    assert t.stuck_severity(8) == "medium"


def test_thresholds_from_settings() -> None:
    t = AlertThresholds.from_settings(Settings(overdue_critical_days=3, stuck_high_days=5))
    assert t.overdue_critical_days == 3
    assert t.stuck_high_days == 5
    assert t.overdue_severity(4) == "critical"
