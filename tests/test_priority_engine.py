"""Tests for PriorityEngine — recompute, alerts, next action, deadlines."""

from datetime import timedelta

import pytest

from taskmind.memory.store import MemoryRecordStore
from taskmind.tasks.engine import PriorityEngine
from taskmind.tasks.models import Task
from taskmind.tasks.scoring import AlertThresholds
from taskmind.tasks.store import TaskStore
from tests.fakes import NOW


class FlakyTaskStore(TaskStore):
    """TaskStore whose priority writes fail for selected ids."""

    def __init__(self, db_path, fail_ids: set[str]) -> None:
        super().__init__(db_path=db_path)
        self.fail_ids = fail_ids

    async def set_priority(self, task_id, score, last_updated):
        if task_id in self.fail_ids:
            msg = "disk I/O error"
            raise RuntimeError(msg)
        return await super().set_priority(task_id, score, last_updated)


class FlakyDeadlineStore(TaskStore):
    """TaskStore whose due date edits fail for selected ids."""

    def __init__(self, db_path, fail_ids: set[str]) -> None:
        super().__init__(db_path=db_path)
        self.fail_ids = fail_ids

    async def update_task(self, task_id, **changes):
        if task_id in self.fail_ids:
            msg = "database is locked"
            raise RuntimeError(msg)
        return await super().update_task(task_id, **changes)


def _task(task_id: str, title: str = "", **kwargs) -> Task:
    kwargs.setdefault("last_updated", NOW)
    kwargs.setdefault("created_at", NOW)
    return Task(id=task_id, title=title or task_id, **kwargs)


def _days(n: float):
    return NOW + timedelta(days=n)


@pytest.fixture
def engine(task_store: TaskStore, record_store: MemoryRecordStore, clock) -> PriorityEngine:
    return PriorityEngine(task_store, record_store, thresholds=AlertThresholds(), clock=clock)


# -- recompute_priorities ------------------------------------------------------


async def test_recompute_writes_scores(engine: PriorityEngine, task_store: TaskStore) -> None:
    await task_store.add_task(_task("soon", due_date=_days(1)))
    await task_store.add_task(_task("later", due_date=_days(20)))
    await task_store.add_task(_task("undated"))

    result = await engine.recompute_priorities()

    assert result.success_count == 3
    assert not result.partial
    assert [t.id for t in result.tasks] == ["soon", "undated", "later"]
    stored = await task_store.get_task("soon")
    assert stored.priority_score > 0
    assert stored.last_updated == NOW


async def test_recompute_uses_linked_memory_importance(
    engine: PriorityEngine, task_store: TaskStore, record_store: MemoryRecordStore
) -> None:
    await task_store.add_task(_task("plain"))
    await task_store.add_task(_task("linked"))
    await record_store.insert("Miller is our biggest client", "fact", 0.9, "linked")

    await engine.recompute_priorities()

    plain = await task_store.get_task("plain")
    linked = await task_store.get_task("linked")
    assert linked.priority_score > plain.priority_score


async def test_recompute_collects_failures(db_path, record_store, clock) -> None:
    store = FlakyTaskStore(db_path, fail_ids={"b"})
    for task_id in ("a", "b", "c"):
        await store.add_task(_task(task_id, due_date=_days(2), priority_score=1.5))
    engine = PriorityEngine(store, record_store, clock=clock, fanout=2)

    result = await engine.recompute_priorities()

    assert sorted(result.succeeded) == ["a", "c"]
    assert [f.item_id for f in result.failures] == ["b"]
    assert "disk I/O error" in result.failures[0].error
    assert (await store.get_task("b")).priority_score == 1.5
    assert (await store.get_task("a")).priority_score != 1.5


async def test_recompute_reports_deleted_task(engine: PriorityEngine) -> None:
    result = await engine.recompute_priorities([_task("ghost")])
    assert result.success_count == 0
    assert result.failures[0].item_id == "ghost"


# -- check_overdue_tasks -------------------------------------------------------


async def test_check_overdue_is_idempotent(engine: PriorityEngine, task_store: TaskStore) -> None:
    await task_store.add_task(_task("late", due_date=_days(-1)))
    await task_store.add_task(_task("later", status="in_progress", due_date=_days(-3)))
    await task_store.add_task(_task("future", due_date=_days(2)))

    assert await engine.check_overdue_tasks() == 2
    assert await engine.check_overdue_tasks() == 0
    assert (await task_store.get_task("late")).overdue is True
    assert (await task_store.get_task("future")).overdue is False


async def test_check_overdue_ignores_done_and_blocked(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    await task_store.add_task(_task("done", status="done", due_date=_days(-5)))
    await task_store.add_task(_task("blocked", status="blocked", due_date=_days(-5)))

    assert await engine.check_overdue_tasks() == 0


# -- check_all -----------------------------------------------------------------


async def test_task_due_yesterday_is_one_high_alert(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    await task_store.add_task(_task("late", "File taxes", due_date=_days(-1)))

    report = await engine.check_all()

    assert len(report.overdue) == 1
    alert = report.overdue[0]
    assert alert.task_id == "late"
    assert alert.kind == "overdue"
    assert alert.severity == "high"
    assert alert.days == pytest.approx(1.0)


async def test_long_overdue_is_critical(engine: PriorityEngine, task_store: TaskStore) -> None:
    await task_store.add_task(_task("very_late", due_date=_days(-20)))

    report = await engine.check_all()
    assert report.overdue[0].severity == "critical"
    assert report.count("critical") == 1


async def test_flagged_tasks_still_reported(engine: PriorityEngine, task_store: TaskStore) -> None:
    await task_store.add_task(_task("late", due_date=_days(-2)))
    await engine.check_overdue_tasks()

    report = await engine.check_all()
    assert [a.task_id for a in report.overdue] == ["late"]


async def test_stuck_tasks_by_last_updated(engine: PriorityEngine, task_store: TaskStore) -> None:
    await task_store.add_task(_task("fresh", last_updated=_days(-2)))
    await task_store.add_task(_task("stalled", last_updated=_days(-10)))
    await task_store.add_task(_task("stale", status="in_progress", last_updated=_days(-20)))
    await task_store.add_task(_task("ancient", last_updated=_days(-45)))
    await task_store.add_task(_task("finished", status="done", last_updated=_days(-45)))

    stuck = await engine.check_stuck_tasks()
    assert {t.id for t in stuck} == {"stalled", "stale", "ancient"}

    report = await engine.check_all()
    severities = {a.task_id: a.severity for a in report.stuck}
    assert severities == {"stalled": "medium", "stale": "high", "ancient": "critical"}
    assert [a.task_id for a in report.stuck] == ["ancient", "stale", "stalled"]


async def test_recommendations_follow_alerts(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    await task_store.add_task(_task("late", "Pay rent", due_date=_days(-20)))
    await task_store.add_task(_task("recent", "Book flights", due_date=_days(-1)))
    await task_store.add_task(_task("stalled", "Fix bike", last_updated=_days(-10)))

    report = await engine.check_all()

    assert report.recommendations == [
        "1 critical item(s) need immediate attention",
        "Start with the most overdue task: Pay rent",
        "1 task(s) without recent progress: update or close them",
    ]
    assert report.summary_text(top=2).splitlines() == [
        "Alert check: 3 alert(s), 1 critical, 1 high.",
        "Top issues:",
        "- Pay rent: Overdue by 20.0 day(s)",
        "- Book flights: Overdue by 1.0 day(s)",
    ]


async def test_many_overdue_tasks_get_one_batch_hint(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    for i in range(4):
        await task_store.add_task(_task(f"late{i}", due_date=_days(-2)))

    report = await engine.check_all()

    assert report.recommendations == ["4 overdue tasks: work through them by priority score"]


async def test_no_alerts_no_recommendations(engine: PriorityEngine) -> None:
    report = await engine.check_all()
    assert report.recommendations == []
    assert report.summary_text() == "Alert check: 0 alert(s), 0 critical, 0 high."


# -- get_next_action_recommendation -------------------------------------------


async def test_next_action_none_when_all_done(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    await task_store.add_task(_task("a", status="done"))
    assert await engine.get_next_action_recommendation() is None


async def test_next_action_none_when_empty(engine: PriorityEngine) -> None:
    assert await engine.get_next_action_recommendation() is None


async def test_next_action_picks_highest_score(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    await task_store.add_task(_task("low", priority_score=10.0))
    await task_store.add_task(_task("high", priority_score=60.0, due_date=_days(-2)))
    await task_store.add_task(_task("done", status="done", priority_score=99.0))

    first = await engine.get_next_action_recommendation()
    second = await engine.get_next_action_recommendation()

    assert first.task.id == "high"
    assert second.task.id == "high"
    assert first.urgency == "high"
    assert "Overdue" in first.reason


async def test_next_action_ties_broken_by_due_date(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    await task_store.add_task(_task("undated", priority_score=20.0))
    await task_store.add_task(_task("later", priority_score=20.0, due_date=_days(10)))
    await task_store.add_task(_task("sooner", priority_score=20.0, due_date=_days(5)))

    action = await engine.get_next_action_recommendation()
    assert action.task.id == "sooner"
    assert action.urgency == "medium"


async def test_next_action_without_due_date_is_low(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    await task_store.add_task(_task("only", priority_score=5.0))
    action = await engine.get_next_action_recommendation()
    assert action.urgency == "low"


# -- suggest_deadlines ---------------------------------------------------------


async def test_suggest_deadlines_only_touches_undated(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    await task_store.add_task(_task("dated", due_date=_days(30)))
    await task_store.add_task(_task("urgent", "URGENT: renew passport"))
    await task_store.add_task(_task("bill", "Pay electricity invoice"))
    await task_store.add_task(_task("plain", "Clean garage"))
    await task_store.add_task(_task("closed", "Old thing", status="done"))

    result = await engine.suggest_deadlines()

    assert sorted(result.succeeded) == ["bill", "plain", "urgent"]
    assert (await task_store.get_task("dated")).due_date == _days(30)
    assert (await task_store.get_task("urgent")).due_date == _days(2)
    assert (await task_store.get_task("bill")).due_date == _days(5)
    assert (await task_store.get_task("plain")).due_date == _days(14)
    assert (await task_store.get_task("closed")).due_date is None


async def test_suggest_deadlines_respects_limit(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    for i in range(4):
        await task_store.add_task(_task(f"t{i}"))

    result = await engine.suggest_deadlines(limit=2)
    assert result.success_count == 2


async def test_suggest_deadline_for_old_task(
    engine: PriorityEngine, task_store: TaskStore
) -> None:
    await task_store.add_task(_task("old", "Sort photos", created_at=_days(-30)))
    await engine.suggest_deadlines()
    assert (await task_store.get_task("old")).due_date == _days(3)


async def test_suggest_deadlines_keeps_going_after_write_failure(
    db_path, record_store, clock
) -> None:
    store = FlakyDeadlineStore(db_path, fail_ids={"b"})
    for task_id in ("a", "b", "c"):
        await store.add_task(_task(task_id))
    engine = PriorityEngine(store, record_store, clock=clock)

    result = await engine.suggest_deadlines()

    assert sorted(result.succeeded) == ["a", "c"]
    assert result.partial
    assert [f.item_id for f in result.failures] == ["b"]
    assert "database is locked" in result.failures[0].error
    assert (await store.get_task("a")).due_date == _days(14)
    assert (await store.get_task("c")).due_date == _days(14)
    assert (await store.get_task("b")).due_date is None


@pytest.mark.parametrize(
    ("title", "days"),
    [
        ("Update billing address", 14),
        ("Prepare payroll export", 14),
        ("Remember to pay.", 5),
        ("Sort old bills", 5),
        ("Zwei Rechnungen prüfen", 5),
        ("Reply ASAP to landlord", 2),
    ],
)
async def test_suggest_deadline_keywords_match_whole_words(
    engine: PriorityEngine, task_store: TaskStore, title: str, days: int
) -> None:
    await task_store.add_task(_task("t", title))
    await engine.suggest_deadlines()
    assert (await task_store.get_task("t")).due_date == _days(days)
