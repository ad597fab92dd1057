# src/taskbuddy/engagement/monitor.py

from __future__ import annotations

"""
Engagement monitor.

A small polling loop that, for the viewing user:
- congratulates the buddy on tasks completed since the last check,
- nudges the buddy on incomplete tasks with no recent activity,
- rate-limits both per conversation with a cooldown map.

last_check and the cooldown map are kept per viewing user. Two users
watching the same conversation keep independent cooldowns.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..buddies.relations import load_relations
from ..chat.conversations import ConversationTracker, conversation_key
from ..core.models import BuddyStatus, Task, User
from ..core.ports import RecordRepo
from ..storage.keys import Category
from ..tasks.task_service import TaskService

logger = logging.getLogger(__name__)

HOUR = 3600.0


class NudgeKind(str, Enum):
    CONGRATULATE = "congratulate"
    ENCOURAGE = "encourage"


@dataclass(slots=True, frozen=True)
class Nudge:
    kind: NudgeKind
    task: Task
    key: str


def render_nudge(kind: NudgeKind, task: Task) -> str:
    if kind == NudgeKind.CONGRATULATE:
        return f'Great job completing "{task.title}"! 🎉'
    return f'Hey! How\'s it going with "{task.title}"? Let me know if you need any help! 💪'


class EngagementMonitor:
    def __init__(
        self,
        store: RecordRepo,
        tasks: TaskService,
        tracker: ConversationTracker,
        *,
        congrats_cooldown_hours: float = 6.0,
        encouragement_cooldown_hours: float = 12.0,
        stale_activity_hours: float = 24.0,
    ) -> None:
        self._store = store
        self._tasks = tasks
        self._tracker = tracker
        self._congrats_cooldown = congrats_cooldown_hours * HOUR
        self._encourage_cooldown = encouragement_cooldown_hours * HOUR
        self._stale_after = stale_activity_hours * HOUR

    def last_check(self, user_id: str) -> float:
        raw = self._store.get(Category.LAST_ENGAGEMENT_CHECK, user_id)
        try:
            return float(raw) if raw is not None else 0.0
        except (TypeError, ValueError):
            return 0.0

    def cooldowns(self, user_id: str) -> dict[str, float]:
        raw = self._store.get(Category.LAST_ENCOURAGEMENT_SENT, user_id)
        if not isinstance(raw, dict):
            return {}
        return {str(k): float(v) for k, v in raw.items() if isinstance(v, (int, float))}

    def find_nudges(self, user_id: str, *, now: float, last_check: float) -> list[Nudge]:
        """Candidate nudges before cooldown filtering, congratulations first."""
        buddy_ids = {
            rel.user_id
            for rel in load_relations(self._store, user_id)
            if rel.status == BuddyStatus.ACCEPTED
        }
        buddy_tasks = [
            t
            for t in self._tasks.visible_tasks(user_id)
            if t.owner_id != user_id and t.owner_id in buddy_ids
        ]

        completed = [
            Nudge(NudgeKind.CONGRATULATE, t, conversation_key(user_id, t.owner_id, t.id))
            for t in buddy_tasks
            if t.completed and t.completed_at is not None and t.completed_at > last_check
        ]
        stale = [
            Nudge(NudgeKind.ENCOURAGE, t, conversation_key(user_id, t.owner_id, t.id))
            for t in buddy_tasks
            if not t.completed
            and (t.last_activity_at is None or t.last_activity_at + self._stale_after < now)
        ]
        return completed + stale

    async def tick(self, user: User, now: float | None = None) -> list[Nudge]:
        """
        Run one engagement pass for user. Returns the nudges actually sent.

        A tick whose `now` is older than the stored last check is skipped.
        """
        if now is None:
            now = time.time()

        last_check = self.last_check(user.id)
        if last_check > now:
            logger.debug("Engagement tick skipped user=%s (last_check=%s > now=%s)", user.id, last_check, now)
            return []

        sent: list[Nudge] = []
        cooldowns = self.cooldowns(user.id)

        for nudge in self.find_nudges(user.id, now=now, last_check=last_check):
            window = self._congrats_cooldown if nudge.kind == NudgeKind.CONGRATULATE else self._encourage_cooldown
            if now - cooldowns.get(nudge.key, 0.0) <= window:
                continue

            await self._tracker.send(
                user,
                nudge.task.owner_id,
                task_id=nudge.task.id,
                task_title=nudge.task.title,
                text=render_nudge(nudge.kind, nudge.task),
                timestamp=now,
            )
            cooldowns[nudge.key] = now
            self._store.set(Category.LAST_ENCOURAGEMENT_SENT, user.id, cooldowns)
            sent.append(nudge)
            logger.info("Engagement %s sent task=%s key=%s", nudge.kind.value, nudge.task.id, nudge.key)

        self._store.set(Category.LAST_ENGAGEMENT_CHECK, user.id, now)
        return sent


async def run_engagement_monitor(
        monitor: EngagementMonitor,
        user: User,
        *,
        interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
) -> None:
    """
    Polling loop around EngagementMonitor.tick().

    Failures (e.g. StorageFailure) are logged and the next tick retries
    naturally. To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        try:
            await monitor.tick(user, clock())
        except Exception:
            logger.exception("engagement tick failed user=%s", user.id)

        await asyncio.sleep(sleep_s)


async def run_unread_refresher(
        tracker: ConversationTracker,
        user_id: str,
        on_change: Callable[[dict[str, int]], None],
        *,
        interval_seconds: float = 30.0,
) -> None:
    """
    Poll the user's unread counters and report them whenever they change.

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    last: dict[str, int] | None = None

    while True:
        try:
            counts = tracker.unread_counts_for(user_id)
            if counts != last:
                last = counts
                on_change(dict(counts))
        except Exception:
            logger.exception("unread refresh failed user=%s", user_id)

        await asyncio.sleep(sleep_s)
