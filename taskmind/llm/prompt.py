"""System prompt and drafting prompt assembly."""

from __future__ import annotations

import logging
import zoneinfo
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from taskmind.config import settings

if TYPE_CHECKING:
    from taskmind.memory.models import MemorySearchResult
    from taskmind.tasks.models import Task

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"

DEFAULT_PERSONA = """\
You are a personal task assistant. You help the user keep track of tasks,
deadlines, people and commitments.

- Be concise and concrete. Prefer one clear next step over a list of options.
- Use the tools to look up or change tasks instead of guessing their state.
- When the user states a lasting fact or preference, store it with
  `remember_this`.
- Never invent due dates, amounts or names that are not in the conversation,
  the recalled memories or a tool result."""

MESSAGE_TYPES: dict[str, str] = {
    "email": "an email",
    "letter": "a formal letter",
    "reminder": "a short reminder message",
    "follow_up": "a polite follow-up message",
    "sms": "a short text message",
}

_LANGUAGES = {"de": "German", "en": "English", "fr": "French", "es": "Spanish"}


def _read_config(filename: str) -> str:
    """Read a config markdown file, returning empty string if missing."""
    path = CONFIG_DIR / filename
    if path.exists():
        return path.read_text(encoding="utf-8")
    return ""


def _format_memories(memories: list[MemorySearchResult]) -> str:
    """Format retrieved memories for injection into the system prompt."""
    if not memories:
        return ""

    lines = ["## Recalled Memories\n"]
    for memory in memories:
        lines.append(f"- [{memory.type}] {memory.content}")
    return "\n".join(lines)


def build_system_prompt(
    memories: list[MemorySearchResult] | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """Assemble the system prompt for one generation round.

    The persona (``config/PERSONA.md`` when present) gets ``cache_control``
    so it is cached across tool-calling rounds. The current time and the
    recalled memories are appended as separate blocks.

    Args:
        memories: Memories retrieved for the current message.
        now: Clock override; defaults to the current time.

    Returns:
        List of content blocks for the Claude ``system`` parameter.
    """
    persona = _read_config("PERSONA.md") or DEFAULT_PERSONA

    tz = zoneinfo.ZoneInfo(settings.timezone)
    local_now = (now or datetime.now(tz)).astimezone(tz)
    time_text = (
        f"Current time: {local_now.strftime('%A, %B %d, %Y %I:%M %p %Z')} "
        f"({settings.timezone})"
    )

    blocks: list[dict] = [
        {
            "type": "text",
            "text": persona,
            "cache_control": {"type": "ephemeral"},
        },
        {
            "type": "text",
            "text": time_text,
        },
    ]

    memory_text = _format_memories(memories or [])
    if memory_text:
        blocks.append({"type": "text", "text": memory_text})

    return blocks


def build_draft_prompt(task: Task, message_type: str, language: str) -> tuple[str, str]:
    """Return ``(system, user)`` prompts for drafting a message about *task*."""
    kind = MESSAGE_TYPES.get(message_type, f"a {message_type.replace('_', ' ')} message")
    language_name = _LANGUAGES.get(language, language)

    system = (
        f"You write {kind} on behalf of the user. Write in {language_name}. "
        "Return only the message text, ready to send, without commentary."
    )

    details = [f"Task: {task.title}"]
    if task.description:
        details.append(f"Details: {task.description}")
    if task.due_date:
        details.append(f"Due: {task.due_date.date().isoformat()}")
    details.append(f"Status: {task.status}")
    if task.overdue:
        details.append("The deadline has passed.")

    user = "\n".join(details) + f"\n\nDraft {kind} about this task."
    return system, user
