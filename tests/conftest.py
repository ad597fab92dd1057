# tests/conftest.py

from __future__ import annotations

import random
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskbuddy.buddies.matching import MatchingEngine
from taskbuddy.buddies.requests import BuddyRequestService
from taskbuddy.buddies.users import UserDirectory
from taskbuddy.chat.conversations import ConversationTracker
from taskbuddy.core.models import User
from taskbuddy.engagement.monitor import EngagementMonitor
from taskbuddy.reminders.estimator import ReminderTimeEstimator
from taskbuddy.sharing.synchronizer import SharingSynchronizer
from taskbuddy.storage.record_store import RecordStore
from taskbuddy.tasks.task_service import TaskService

from .fakes import FakeClock, FakeNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with create_initial_state().

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskbuddy-test",
        log_level="DEBUG",
        user_id="user1",
        user_name="Test User 1",
        user_email="user1@test.com",
        data_dir=tmp_path / "data",
        db_path=tmp_path / "data" / "records.sqlite3",
        engagement_interval_seconds=0.01,
        unread_refresh_seconds=0.01,
        congrats_cooldown_hours=6.0,
        encouragement_cooldown_hours=12.0,
        stale_activity_hours=24.0,
        default_reminder_hour=9,
        console_enabled=False,
        matrix_enabled=False,
    )


@pytest.fixture()
def store(tmp_path: Path) -> RecordStore:
    """Real SQLite store: its behaviour is part of what we test."""
    return RecordStore(tmp_path / "records.sqlite3")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def users(store: RecordStore) -> UserDirectory:
    directory = UserDirectory(store)
    directory.seed_demo_users()
    return directory


@pytest.fixture()
def alice(users: UserDirectory) -> User:
    return users.get("user1")


@pytest.fixture()
def bob(users: UserDirectory) -> User:
    return users.get("user2")


@pytest.fixture()
def carol(users: UserDirectory) -> User:
    return users.get("user3")


@pytest.fixture()
def synchronizer(store: RecordStore) -> SharingSynchronizer:
    return SharingSynchronizer(store)


@pytest.fixture()
def matching(store, users, synchronizer, clock) -> MatchingEngine:
    return MatchingEngine(store, users, synchronizer, rng=random.Random(7), clock=clock)


@pytest.fixture()
def buddy_requests(store, users, synchronizer, clock) -> BuddyRequestService:
    return BuddyRequestService(store, users, synchronizer, clock=clock)


@pytest.fixture()
def tracker(store, notifier, clock) -> ConversationTracker:
    return ConversationTracker(store, notifier, clock=clock)


@pytest.fixture()
def estimator(store) -> ReminderTimeEstimator:
    return ReminderTimeEstimator(store)


@pytest.fixture()
def tasks(store, synchronizer, tracker, estimator, clock) -> TaskService:
    return TaskService(store, synchronizer, tracker, estimator, clock=clock)


@pytest.fixture()
def monitor(store, tasks, tracker) -> EngagementMonitor:
    return EngagementMonitor(store, tasks, tracker)


@pytest.fixture()
def paired(buddy_requests, alice, bob) -> tuple[User, User]:
    """alice and bob as active buddies (request + accept)."""
    req = buddy_requests.send_request(alice, bob.email)
    buddy_requests.respond(bob, req.id, accept=True)
    return alice, bob
