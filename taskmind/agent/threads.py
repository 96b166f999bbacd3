"""Conversation threads: turn history plus per-thread scratch state."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from taskmind.db import TableStore
from taskmind.tasks.models import parse_timestamp, utcnow

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS conversation_threads (
    id         TEXT PRIMARY KEY,
    turns      TEXT NOT NULL DEFAULT '[]',
    scratch    TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


@dataclass
class Turn:
    """A single conversation turn."""

    role: str  # "user" or "assistant"
    text: str
    timestamp: str = field(default_factory=lambda: utcnow().isoformat())


@dataclass
class ConversationThread:
    """Conversation history and scratch state for one thread id.

    All turns are kept; ``to_api_messages`` applies the sliding window.
    """

    id: str
    turns: list[Turn] = field(default_factory=list)
    scratch: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def add(self, role: str, text: str) -> None:
        self.turns.append(Turn(role=role, text=text))

    def recent_user_texts(self, count: int) -> list[str]:
        """The last *count* user turns, oldest first."""
        texts = [t.text for t in self.turns if t.role == "user"]
        return texts[-count:] if count > 0 else []

    def to_api_messages(self, window: int) -> list[dict[str, str]]:
        """Format the last *window* turns for the messages API.

        A leading assistant turn is dropped so the history starts with a
        user message.
        """
        recent = self.turns[-window:] if window > 0 else []
        while recent and recent[0].role != "user":
            recent = recent[1:]
        return [{"role": t.role, "content": t.text} for t in recent]


class ThreadStore(TableStore):
    """Persists conversation threads in SQLite / Turso."""

    schema = (_CREATE_TABLE,)

    async def get(self, thread_id: str) -> ConversationThread | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT id, turns, scratch, created_at, updated_at "
                "FROM conversation_threads WHERE id = ?",
                (thread_id,),
            )
            row = await cursor.fetchone()
        finally:
            await db.close()
        if row is None:
            return None
        return ConversationThread(
            id=row[0],
            turns=[Turn(**t) for t in json.loads(row[1] or "[]")],
            scratch=json.loads(row[2] or "{}"),
            created_at=parse_timestamp(row[3]) or utcnow(),
            updated_at=parse_timestamp(row[4]) or utcnow(),
        )

    async def get_or_create(self, thread_id: str) -> ConversationThread:
        """Load a thread, or return a fresh unsaved one."""
        thread = await self.get(thread_id)
        if thread is None:
            logger.info("Starting new conversation thread %s", thread_id)
            thread = ConversationThread(id=thread_id)
        return thread

    async def save(self, thread: ConversationThread) -> None:
        thread.updated_at = utcnow()
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO conversation_threads (id, turns, scratch, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    turns = excluded.turns,
                    scratch = excluded.scratch,
                    updated_at = excluded.updated_at
                """,
                (
                    thread.id,
                    json.dumps([asdict(t) for t in thread.turns]),
                    json.dumps(thread.scratch, default=str),
                    thread.created_at.isoformat(),
                    thread.updated_at.isoformat(),
                ),
            )
            await db.commit()
        finally:
            await db.close()
