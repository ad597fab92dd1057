# src/taskbuddy/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs on one asyncio loop:
- engagement monitor + unread refresher for the acting user,
- console REPL (optional),
- Matrix notifications instead of log-only ones (optional).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state, start_background_loops, stop_background_loops
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import StorageFailure
from ..core.ports import Notifier
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _create_notifier(settings) -> Notifier | None:
    """Matrix notifier when enabled and reachable; None falls back to LogNotifier."""
    if not settings.matrix_enabled:
        return None

    from ..connectors.matrix_client import create_matrix_client
    from ..connectors.matrix_notifier import MatrixNotifier

    client = await create_matrix_client(settings)
    if client is None:
        logger.warning("Matrix enabled but client could not be created; notifications go to the log.")
        return None
    return MatrixNotifier(client, rooms=settings.matrix_rooms, default_room=settings.matrix_default_room)


def _pair_at_startup(state) -> None:
    """Pair the acting user if needed. A storage failure is logged; /pair or /login retries."""
    try:
        outcome = state.matching.ensure_paired(state.current_user)
    except StorageFailure:
        logger.exception("Pairing at startup failed for user=%s", state.current_user.id)
        return
    logger.info("%s", outcome.message)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        store = getattr(state, "store", None)
        if store is not None and hasattr(store, "close"):
            store.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


async def _run(settings) -> None:
    notifier = await _create_notifier(settings)
    state = create_initial_state(settings=settings, notifier=notifier)

    _pair_at_startup(state)

    start_background_loops(state)

    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Some platforms do not support signal handlers on the loop.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_main.set)

    try:
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(state))
            stopper = asyncio.create_task(stop_main.wait())
            await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for t in (console, stopper):
                t.cancel()
            await asyncio.gather(console, stopper, return_exceptions=True)
        else:
            logger.info("Console disabled. Running background loops only. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        await stop_background_loops(state)
        close = getattr(notifier, "close", None)
        if close is not None:
            try:
                await close()
            except Exception:
                logger.debug("Notifier close failed.", exc_info=True)
        _shutdown(state)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level, user_id=settings.user_id)

    # keep noisy libs readable
    logging.getLogger("nio").setLevel(max(console_level, logging.INFO))
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logger.info("Starting %s...", getattr(settings, "app_name", "taskbuddy"))

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run(settings))
    logger.info("Bye.")


if __name__ == "__main__":
    main()
