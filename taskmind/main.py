"""taskmind console entry point."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from taskmind.config import settings

if TYPE_CHECKING:
    from taskmind.assistant import Assistant

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)

HELP_TEXT = """\
Commands:
  /next                          next recommended task
  /alerts                        overdue and stuck tasks
  /prioritize                    recompute priority scores
  /deadlines                     suggest due dates for undated tasks
  /remember <text>               store a memory
  /search <query>                search memories
  /draft <task_id> <type> [lang] draft a message about a task
  /reindex                       index memories missing from search
  /quit                          exit
Anything else is sent to the assistant."""


def _dump(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


async def handle_line(assistant: Assistant, line: str, thread_id: str) -> str | None:
    """Run one console line. Returns the text to print, or None to exit."""
    line = line.strip()
    if not line:
        return ""
    if not line.startswith("/"):
        result = await assistant.chat(line, thread_id)
        if "error" in result:
            return f"[{result['error']}] {result['message']}"
        warnings = "".join(f"\n(warning: {w})" for w in result["warnings"])
        return result["response"] + warnings

    command, _, rest = line.partition(" ")
    rest = rest.strip()
    if command in ("/quit", "/exit"):
        return None
    if command == "/next":
        return _dump(await assistant.get_next_action())
    if command == "/alerts":
        return _dump(await assistant.check_alerts())
    if command == "/prioritize":
        return _dump(await assistant.recalculate_priorities())
    if command == "/deadlines":
        return _dump(await assistant.suggest_deadlines())
    if command == "/remember":
        return _dump(await assistant.remember_memory(rest))
    if command == "/search":
        return _dump(await assistant.search_memory(rest))
    if command == "/reindex":
        return _dump(await assistant.reconcile_memories())
    if command == "/draft":
        parts = rest.split()
        if len(parts) < 2:
            return "Usage: /draft <task_id> <type> [lang]"
        language = parts[2] if len(parts) > 2 else None
        return _dump(await assistant.compose_draft(parts[0], parts[1], language))
    return HELP_TEXT


async def run_console(thread_id: str = "console") -> None:
    """Read lines from stdin until EOF or /quit."""
    from taskmind.assistant import create_assistant

    assistant = create_assistant()
    logger.info("Starting taskmind console with model %s...", settings.claude_model)
    print(HELP_TEXT)
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            output = await handle_line(assistant, line, thread_id)
            if output is None:
                break
            if output:
                print(output)
    finally:
        await assistant.close()


def main() -> None:
    """Start the interactive console."""
    asyncio.run(run_console())


if __name__ == "__main__":
    main()
