# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKBUDDY_APP_NAME": "App display name (default: taskbuddy).",
    "TASKBUDDY_LOG_LEVEL": "Logging level (default: INFO).",
    # Acting user
    "TASKBUDDY_USER_ID": "Id of the user this process acts for (default: user1).",
    "TASKBUDDY_USER_NAME": "Display name registered for that user (default: Test User 1).",
    "TASKBUDDY_USER_EMAIL": "Email registered for that user (default: user1@test.com).",
    # Paths (gitignored)
    "TASKBUDDY_DATA_DIR": "Local data directory (default: .local/taskbuddy).",
    "TASKBUDDY_DB_PATH": "RecordStore SQLite path (default: <data_dir>/records.sqlite3).",
    # Polling loops
    "TASKBUDDY_ENGAGEMENT_INTERVAL_SECONDS": "Engagement monitor period (default: 60).",
    "TASKBUDDY_UNREAD_REFRESH_SECONDS": "Unread counter refresh period (default: 30).",
    # Engagement tuning
    "TASKBUDDY_CONGRATS_COOLDOWN_HOURS": "Min hours between congratulations per conversation (default: 6).",
    "TASKBUDDY_ENCOURAGEMENT_COOLDOWN_HOURS": "Min hours between nudges per conversation (default: 12).",
    "TASKBUDDY_STALE_ACTIVITY_HOURS": "Hours without activity before a task counts as stale (default: 24).",
    # Reminders
    "TASKBUDDY_DEFAULT_REMINDER_HOUR": "Reminder hour when there is no history (default: 9).",
    # Connectors
    "TASKBUDDY_CONSOLE_ENABLED": "Enable console REPL (true/false).",
    "TASKBUDDY_MATRIX_ENABLED": "Deliver notifications through Matrix (true/false).",
    # Matrix
    "TASKBUDDY_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "TASKBUDDY_MATRIX_USER_ID": "Matrix user ID (bot).",
    "TASKBUDDY_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "TASKBUDDY_MATRIX_STORE_PATH": "Matrix session directory (default: <data_dir>/matrix_store).",
    "TASKBUDDY_MATRIX_ROOMS": "Recipient to room map: 'user1=!abc:server, user2=!def:server'.",
    "TASKBUDDY_MATRIX_DEFAULT_ROOM": "Room used for recipients missing from the map.",
}
