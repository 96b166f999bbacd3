"""TaskStore — CRUD for tasks via libsql."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from taskmind.db import TableStore
from taskmind.errors import NotFoundError, ValidationError
from taskmind.tasks.models import TASK_STATUSES, Task, utcnow

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS tasks (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    description     TEXT NOT NULL DEFAULT '',
    status          TEXT NOT NULL,
    due_date        TEXT,
    priority_score  REAL NOT NULL DEFAULT 0,
    last_updated    TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    overdue         INTEGER NOT NULL DEFAULT 0,
    recommendations TEXT NOT NULL DEFAULT '{}'
)
"""

_COLUMNS = (
    "id, title, description, status, due_date, priority_score, "
    "last_updated, created_at, overdue, recommendations"
)

# Fields callers may change. priority_score and last_updated are derived.
_EDITABLE_FIELDS = frozenset({"title", "description", "status", "due_date"})


class TaskStore(TableStore):
    """Persists tasks in SQLite / Turso."""

    schema = (_CREATE_TABLE,)

    # -- CRUD ------------------------------------------------------------------

    async def add_task(self, task: Task) -> Task:
        """Insert a new task. Returns the same task object."""
        if task.status not in TASK_STATUSES:
            msg = f"Unknown task status '{task.status}'"
            raise ValidationError(msg)
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                task.to_row(),
            )
            await db.commit()
            logger.info("Added task: %s (%s)", task.title, task.id)
            return task
        finally:
            await db.close()

    async def get_task(self, task_id: str) -> Task | None:
        """Fetch a task by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            )
            row = await cursor.fetchone()
            return Task.from_row(row) if row else None
        finally:
            await db.close()

    async def require_task(self, task_id: str) -> Task:
        """Fetch a task by ID or raise ``NotFoundError``."""
        task = await self.get_task(task_id)
        if task is None:
            msg = f"Task '{task_id}' not found"
            raise NotFoundError(msg)
        return task

    async def list_tasks(self, statuses: tuple[str, ...] | None = None) -> list[Task]:
        """Return tasks, optionally restricted to *statuses*, highest score first."""
        db = await self._connect()
        try:
            if statuses:
                placeholders = ", ".join("?" for _ in statuses)
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM tasks WHERE status IN ({placeholders}) "
                    "ORDER BY priority_score DESC, created_at",
                    tuple(statuses),
                )
            else:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM tasks ORDER BY priority_score DESC, created_at"
                )
            rows = await cursor.fetchall()
            return [Task.from_row(row) for row in rows]
        finally:
            await db.close()

    async def search_tasks(
        self, query: str, status: str | None = None, limit: int = 10
    ) -> list[Task]:
        """Search by title or description (case-insensitive LIKE)."""
        pattern = f"%{query}%"
        sql = f"SELECT {_COLUMNS} FROM tasks WHERE (title LIKE ? OR description LIKE ?)"
        params: list[Any] = [pattern, pattern]
        if status:
            sql += " AND status = ?"
            params.append(status)
        sql += " ORDER BY priority_score DESC LIMIT ?"
        params.append(limit)

        db = await self._connect()
        try:
            cursor = await db.execute(sql, tuple(params))
            rows = await cursor.fetchall()
            return [Task.from_row(row) for row in rows]
        finally:
            await db.close()

    async def update_task(self, task_id: str, **changes: Any) -> Task:
        """Apply user-level edits to a task and return the updated task.

        Only title, description, status and due_date may be changed.
        ``last_updated`` is bumped; the overdue flag is cleared when the task
        is done or its due date moves into the future.
        """
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            msg = f"Cannot update task field(s): {', '.join(sorted(unknown))}"
            raise ValidationError(msg)
        if "status" in changes and changes["status"] not in TASK_STATUSES:
            msg = f"Unknown task status '{changes['status']}'"
            raise ValidationError(msg)
        if "due_date" in changes:
            due = changes["due_date"]
            if due is not None and not isinstance(due, datetime):
                msg = "due_date must be a datetime or None"
                raise ValidationError(msg)
            if due is not None and due.tzinfo is None:
                changes["due_date"] = due.replace(tzinfo=UTC)

        task = await self.require_task(task_id)
        for name, value in changes.items():
            setattr(task, name, value)
        now = utcnow()
        task.last_updated = now
        if task.is_done or (task.due_date is not None and task.due_date > now):
            task.overdue = False

        db = await self._connect()
        try:
            await db.execute(
                """
                UPDATE tasks
                SET title = ?, description = ?, status = ?, due_date = ?,
                    last_updated = ?, overdue = ?
                WHERE id = ?
                """,
                (
                    task.title,
                    task.description,
                    task.status,
                    task.due_date.isoformat() if task.due_date else None,
                    task.last_updated.isoformat(),
                    int(task.overdue),
                    task.id,
                ),
            )
            await db.commit()
            logger.info("Updated task %s: %s", task_id, ", ".join(sorted(changes)))
            return task
        finally:
            await db.close()

    async def save_recommendations(self, task_id: str, recommendations: dict[str, Any]) -> bool:
        """Replace the recommendations blob. Does not count as task activity."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE tasks SET recommendations = ? WHERE id = ?",
                (json.dumps(recommendations), task_id),
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    async def set_priority(self, task_id: str, score: float, last_updated: datetime) -> bool:
        """Write a recomputed priority score. Returns True if a row was updated."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE tasks SET priority_score = ?, last_updated = ? WHERE id = ?",
                (score, last_updated.isoformat(), task_id),
            )
            await db.commit()
            return cursor.rowcount > 0
        finally:
            await db.close()

    async def flag_overdue(self, task_id: str) -> bool:
        """Set the overdue flag. Returns True only if the flag was not already set."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE tasks SET overdue = 1 WHERE id = ? AND overdue = 0",
                (task_id,),
            )
            await db.commit()
            flagged = cursor.rowcount > 0
            if flagged:
                logger.info("Flagged task overdue: %s", task_id)
            return flagged
        finally:
            await db.close()
