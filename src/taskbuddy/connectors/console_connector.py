# src/taskbuddy/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")


def _stamp() -> str:
    return datetime.now().astimezone().strftime("%H:%M:%S")


def _prompt(state: AppState) -> str:
    """'user1> ' or 'user1 (3 unread)> ' from the refresher's last report."""
    total = sum(state.unread_counts.values())
    badge = f" ({total} unread)" if total else ""
    return f"{state.current_user.id}{badge}> "


def render_reply(reply: str) -> str:
    """Timestamp the first line, indent the rest under it."""
    head, *rest = reply.splitlines() or [""]
    lines = [f"[{_stamp()}] {head}"]
    lines.extend(f"           {line}" for line in rest)
    return "\n".join(lines)


async def run_console_loop(state: AppState) -> None:
    """
    Read slash commands until /exit or EOF.

    input() blocks, so it runs in a worker thread; the engagement and unread
    loops keep running on the event loop meanwhile.
    """
    logger.info("Console connector started (user=%s).", state.current_user.id)
    print(render_reply("Type a command. Use /help for commands. Use /exit to quit."))

    while True:
        try:
            line = (await asyncio.to_thread(input, _prompt(state))).strip()
        except (EOFError, KeyboardInterrupt):
            logger.info("Console input closed, exiting.")
            print()
            break

        if not line:
            continue
        if line.lower() in EXIT_COMMANDS:
            logger.info("Console exit command received.")
            break

        try:
            reply = await command_registry.handle(state, line)
        except Exception:
            logger.exception("Command handler crashed: %r", line)
            reply = "Internal error while handling a command."

        print(render_reply(reply if reply is not None else "Commands start with '/'. Use /help to list them."))

    logger.info("Console connector finished.")
