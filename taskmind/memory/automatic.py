"""Automatic conversation memories.

After each exchange the orchestrator schedules ``summarize_exchange`` in the
background. Whether a ``conversation`` memory gets written depends on the
summary mode:

- ``heuristic``: only when the user message carries a durable-fact marker
- ``always``: after every exchange
- ``off``: never
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskmind.memory.hybrid import HybridMemory

logger = logging.getLogger(__name__)

DURABLE_FACT_MARKERS: tuple[str, ...] = (
    "remember",
    "always",
    "never",
    "from now on",
    "every time",
    "don't forget",
    "do not forget",
    "prefer",
    "my name is",
    "deadline",
    "birthday",
    "i am allergic",
)

_MARKER_RE = re.compile(
    "|".join(rf"\b{re.escape(m)}\b" for m in DURABLE_FACT_MARKERS), re.IGNORECASE
)

_MAX_PART_CHARS = 400


def contains_durable_facts(text: str) -> bool:
    """True when *text* reads like an instruction or fact worth keeping."""
    return bool(_MARKER_RE.search(text or ""))


def _clip(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= _MAX_PART_CHARS:
        return text
    return text[: _MAX_PART_CHARS - 3] + "..."


def build_exchange_summary(user_message: str, response: str) -> str:
    """Compact one exchange into a single memory text."""
    return f"User: {_clip(user_message)}\nAssistant: {_clip(response)}"


def should_summarize(mode: str, user_message: str) -> bool:
    if mode == "always":
        return True
    if mode == "heuristic":
        return contains_durable_facts(user_message)
    return False


async def summarize_exchange(
    memory: HybridMemory,
    mode: str,
    thread_id: str,
    user_message: str,
    response: str,
) -> str | None:
    """Background task: store a conversation memory for one exchange.

    Call via ``asyncio.create_task(summarize_exchange(...))``. Returns the
    durable id when a memory was written. Never raises.
    """
    if not should_summarize(mode, user_message):
        return None

    try:
        result = await memory.remember(
            build_exchange_summary(user_message, response),
            type="conversation",
            source=f"thread:{thread_id}",
        )
    except Exception:
        logger.exception("Conversation summary failed (non-fatal)")
        return None

    if result.failed:
        logger.warning(
            "Conversation summary %s saved without %s", result.durable_id, ", ".join(result.failed)
        )
    return result.durable_id
