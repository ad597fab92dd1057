# src/taskbuddy/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState,
- starts/stops the per-user polling loops.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..buddies.matching import MatchingEngine
from ..buddies.requests import BuddyRequestService
from ..buddies.users import UserDirectory
from ..chat.conversations import ConversationTracker
from ..config import get_settings
from ..connectors.log_notifier import LogNotifier
from ..core.models import User
from ..core.ports import Notifier
from ..core.state import AppState
from ..engagement.monitor import EngagementMonitor, run_engagement_monitor, run_unread_refresher
from ..reminders.estimator import ReminderTimeEstimator
from ..sharing.synchronizer import SharingSynchronizer
from ..storage.record_store import RecordStore
from ..tasks.task_service import TaskService

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, notifier: Notifier | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = RecordStore(settings.db_path)
    if notifier is None:
        notifier = LogNotifier()

    users = UserDirectory(store)
    users.seed_demo_users()
    current = users.get(settings.user_id)
    if current is None:
        current = users.register(User(id=settings.user_id, name=settings.user_name, email=settings.user_email))

    synchronizer = SharingSynchronizer(store)
    tracker = ConversationTracker(store, notifier)
    estimator = ReminderTimeEstimator(store, default_hour=settings.default_reminder_hour)
    tasks = TaskService(store, synchronizer, tracker, estimator)

    return AppState(
        settings=settings,
        store=store,
        notifier=notifier,
        users=users,
        synchronizer=synchronizer,
        matching=MatchingEngine(store, users, synchronizer),
        buddy_requests=BuddyRequestService(store, users, synchronizer),
        tracker=tracker,
        estimator=estimator,
        tasks=tasks,
        monitor=EngagementMonitor(
            store,
            tasks,
            tracker,
            congrats_cooldown_hours=settings.congrats_cooldown_hours,
            encouragement_cooldown_hours=settings.encouragement_cooldown_hours,
            stale_activity_hours=settings.stale_activity_hours,
        ),
        current_user=current,
    )


def start_background_loops(state: AppState) -> None:
    """Start engagement + unread polling for the current user (must run inside an event loop)."""
    user = state.current_user

    def _on_unread(counts: dict[str, int]) -> None:
        state.unread_counts = counts
        total = sum(counts.values())
        if total:
            logger.info("Unread messages for %s: %d", user.id, total)

    state.background = [
        asyncio.create_task(
            run_engagement_monitor(
                state.monitor,
                user,
                interval_seconds=state.settings.engagement_interval_seconds,
            )
        ),
        asyncio.create_task(
            run_unread_refresher(
                state.tracker,
                user.id,
                _on_unread,
                interval_seconds=state.settings.unread_refresh_seconds,
            )
        ),
    ]
    logger.info("Background loops started for %s", user.id)


async def stop_background_loops(state: AppState) -> None:
    """Cancel the polling loops (sign-out / shutdown)."""
    for task in state.background:
        task.cancel()
    for task in state.background:
        with contextlib.suppress(asyncio.CancelledError):
            await task
    state.background = []
    state.unread_counts = {}
