# src/taskbuddy/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Acting user stamped on every record; switched by /login.
_acting_user = "-"

# Prefix -> minimum console level. First match wins; our own loggers default to everything.
_CONSOLE_LEVELS: tuple[tuple[str, int], ...] = (
    # background delivery: only problems
    ("taskbuddy.connectors.matrix_", logging.WARNING),
    # polling loops tick every few seconds
    ("taskbuddy.engagement.", logging.INFO),
    ("taskbuddy.storage.", logging.WARNING),
    ("taskbuddy.", logging.NOTSET),
)


def set_log_user(user_id: str | None) -> None:
    """Set the user id shown in log lines (the user this process acts for)."""
    global _acting_user
    _acting_user = user_id or "-"


class _ActingUserFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.acting_user = _acting_user
        return True


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable while the REPL is waiting for input.

    File logs are not filtered; third-party libraries (nio, aiohttp) and
    captured Python warnings reach the console only at ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for prefix, level in _CONSOLE_LEVELS:
            if record.name.startswith(prefix):
                return record.levelno >= level
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskbuddy",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    user_id: str | None = None,
) -> Path:
    """
    Configure root logging once, before the first logger call.

    Console: stderr, filtered. File: <log_dir>/taskbuddy.log, rotated, full DEBUG.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "taskbuddy.log"
    set_log_user(user_id)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(acting_user)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ActingUserFilter())
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = RotatingFileHandler(str(log_file), maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    fh.addFilter(_ActingUserFilter())
    root.addHandler(fh)

    logging.captureWarnings(True)
    return log_file
