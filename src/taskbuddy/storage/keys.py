# src/taskbuddy/storage/keys.py

from __future__ import annotations

from enum import StrEnum

KEY_SEPARATOR = ":"


class Category(StrEnum):
    USERS = "users"
    TASKS = "tasks"
    BUDDIES = "buddies"
    BUDDY_REQUESTS = "buddyRequests"
    CHAT = "chat"
    UNREAD = "unread"
    REMINDER_HISTORY = "reminderHistory"
    LAST_ENGAGEMENT_CHECK = "lastEngagementCheck"
    LAST_ENCOURAGEMENT_SENT = "lastEncouragementSent"


def record_key(category: str, owner_id: str) -> str:
    """Render the storage key, e.g. "tasks:user1"."""
    return f"{category}{KEY_SEPARATOR}{owner_id}"


def split_key(key: str) -> tuple[str, str]:
    category, _, owner_id = key.partition(KEY_SEPARATOR)
    return category, owner_id


def reminder_owner(user_id: str, task_id: str) -> str:
    return f"{user_id}_{task_id}"
