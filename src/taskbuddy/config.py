# src/taskbuddy/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Composition root may inject its own settings object (tests use SimpleNamespace).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKBUDDY"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def parse_room_map(entries: list[str]) -> dict[str, str]:
    """
    Parse "user_id=!room:server" pairs into a mapping.

    Entries without "=" are ignored.
    """
    out: dict[str, str] = {}
    for entry in entries:
        user_id, sep, room_id = entry.partition("=")
        if not sep or not user_id.strip() or not room_id.strip():
            continue
        out[user_id.strip()] = room_id.strip()
    return out


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Current user (this process acts on behalf of one user) ----
    user_id: str
    user_name: str
    user_email: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Polling loops ----
    engagement_interval_seconds: float
    unread_refresh_seconds: float

    # ---- Engagement tuning ----
    congrats_cooldown_hours: float
    encouragement_cooldown_hours: float
    stale_activity_hours: float

    # ---- Reminders ----
    default_reminder_hour: int

    # ---- Connector flags ----
    console_enabled: bool
    matrix_enabled: bool

    # ---- Matrix (notification delivery) ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_store_path: Path
    matrix_rooms: dict[str, str]
    matrix_default_room: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskbuddy")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        user_id = _env(_k("USER_ID"), "user1").strip()
        user_name = _env(_k("USER_NAME"), "Test User 1").strip()
        user_email = _env(_k("USER_EMAIL"), "user1@test.com").strip()

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskbuddy"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "records.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            user_id=user_id,
            user_name=user_name,
            user_email=user_email,
            data_dir=data_dir,
            db_path=db_path,
            engagement_interval_seconds=_env_float(_k("ENGAGEMENT_INTERVAL_SECONDS"), 60.0),
            unread_refresh_seconds=_env_float(_k("UNREAD_REFRESH_SECONDS"), 30.0),
            congrats_cooldown_hours=_env_float(_k("CONGRATS_COOLDOWN_HOURS"), 6.0),
            encouragement_cooldown_hours=_env_float(_k("ENCOURAGEMENT_COOLDOWN_HOURS"), 12.0),
            stale_activity_hours=_env_float(_k("STALE_ACTIVITY_HOURS"), 24.0),
            default_reminder_hour=_env_int(_k("DEFAULT_REMINDER_HOUR"), 9),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            matrix_enabled=_env_bool(_k("MATRIX_ENABLED"), False),
            matrix_homeserver=_env(_k("MATRIX_HOMESERVER"), "").strip(),
            matrix_user_id=_env(_k("MATRIX_USER_ID"), "").strip(),
            matrix_password=_env(_k("MATRIX_PASSWORD"), "").strip(),
            matrix_store_path=_env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store"),
            matrix_rooms=parse_room_map(_env_list(_k("MATRIX_ROOMS"), [])),
            matrix_default_room=_env(_k("MATRIX_DEFAULT_ROOM"), "").strip(),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
