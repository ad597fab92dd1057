# src/taskbuddy/core/state.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .models import User
from .ports import Notifier, RecordRepo

if TYPE_CHECKING:
    from ..buddies.matching import MatchingEngine
    from ..buddies.requests import BuddyRequestService
    from ..buddies.users import UserDirectory
    from ..chat.conversations import ConversationTracker
    from ..engagement.monitor import EngagementMonitor
    from ..reminders.estimator import ReminderTimeEstimator
    from ..sharing.synchronizer import SharingSynchronizer
    from ..tasks.task_service import TaskService


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    store: RecordRepo
    notifier: Notifier
    users: UserDirectory
    synchronizer: SharingSynchronizer
    matching: MatchingEngine
    buddy_requests: BuddyRequestService
    tracker: ConversationTracker
    estimator: ReminderTimeEstimator
    tasks: TaskService
    monitor: EngagementMonitor

    current_user: User

    unread_counts: dict[str, int] = field(default_factory=dict)
    background: list[asyncio.Task] = field(default_factory=list)
