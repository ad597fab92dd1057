# src/taskbuddy/buddies/users.py

from __future__ import annotations

import logging

from ..core.models import User
from ..core.ports import RecordRepo
from ..storage.keys import Category

logger = logging.getLogger(__name__)

DEMO_USERS = (
    User(id="user1", name="Test User 1", email="user1@test.com"),
    User(id="user2", name="Test User 2", email="user2@test.com"),
    User(id="user3", name="Test User 3", email="user3@test.com"),
)


class UserDirectory:
    """Known users, one record per user under users:{id}."""

    def __init__(self, store: RecordRepo) -> None:
        self._store = store

    def register(self, user: User) -> User:
        if not user.id or not user.id.strip():
            raise ValueError("user id is required")
        self._store.set(Category.USERS, user.id, user.to_record())
        logger.info("User registered id=%s email=%s", user.id, user.email)
        return user

    def seed_demo_users(self) -> None:
        for user in DEMO_USERS:
            if self.get(user.id) is None:
                self.register(user)

    def get(self, user_id: str) -> User | None:
        raw = self._store.get(Category.USERS, user_id)
        return User.from_record(raw) if isinstance(raw, dict) else None

    def list_users(self) -> list[User]:
        out: list[User] = []
        for user_id in self._store.list_owners(Category.USERS):
            user = self.get(user_id)
            if user is not None:
                out.append(user)
        return out

    def find_by_email(self, email: str) -> User | None:
        needle = (email or "").strip().lower()
        if not needle:
            return None
        for user in self.list_users():
            if user.email.lower() == needle:
                return user
        return None
