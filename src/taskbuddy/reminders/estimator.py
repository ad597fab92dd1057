# src/taskbuddy/reminders/estimator.py

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timedelta

from ..core.models import ReminderHistory
from ..core.ports import RecordRepo
from ..storage.keys import Category, reminder_owner

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_HOUR = 9


def best_hour(successful_times: Iterable[float], *, default_hour: int = DEFAULT_REMINDER_HOUR) -> int:
    """
    Most frequent local hour-of-day among successful reminder timestamps.

    Ties go to the earliest hour of the day.
    """
    counts = Counter(datetime.fromtimestamp(ts).hour for ts in successful_times)
    if not counts:
        return default_hour
    top = max(counts.values())
    return min(hour for hour, n in counts.items() if n == top)


def next_occurrence(hour: int, now: datetime) -> datetime:
    """hour:00 today, or tomorrow if that moment has already passed."""
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate < now:
        candidate += timedelta(days=1)
    return candidate


class ReminderTimeEstimator:
    """
    Picks the time of day at which reminders for a task have worked best.

    Unsuccessful times are recorded alongside successful ones but are not
    consulted by the estimate.
    """

    def __init__(self, store: RecordRepo, *, default_hour: int = DEFAULT_REMINDER_HOUR) -> None:
        if not 0 <= default_hour <= 23:
            raise ValueError("default_hour must be within 0..23")
        self._store = store
        self._default_hour = default_hour

    def history(self, user_id: str, task_id: str) -> ReminderHistory:
        raw = self._store.get(Category.REMINDER_HISTORY, reminder_owner(user_id, task_id))
        if isinstance(raw, dict):
            return ReminderHistory.from_record(raw)
        return ReminderHistory(user_id=user_id, task_id=task_id)

    def _save(self, history: ReminderHistory) -> None:
        self._store.set(
            Category.REMINDER_HISTORY,
            reminder_owner(history.user_id, history.task_id),
            history.to_record(),
        )

    def record_success(self, user_id: str, task_id: str, ts: float) -> None:
        hist = self.history(user_id, task_id)
        hist.successful_times.append(float(ts))
        self._save(hist)
        logger.debug("Reminder success recorded user=%s task=%s ts=%s", user_id, task_id, ts)

    def record_failure(self, user_id: str, task_id: str, ts: float) -> None:
        hist = self.history(user_id, task_id)
        hist.unsuccessful_times.append(float(ts))
        self._save(hist)
        logger.debug("Reminder failure recorded user=%s task=%s ts=%s", user_id, task_id, ts)

    def best_time(self, user_id: str, task_id: str, now: datetime | None = None) -> datetime:
        if now is None:
            now = datetime.now()
        hist = self.history(user_id, task_id)
        hour = best_hour(hist.successful_times, default_hour=self._default_hour)
        when = next_occurrence(hour, now)
        logger.debug(
            "Best reminder time user=%s task=%s -> %s (samples=%d)",
            user_id,
            task_id,
            when.isoformat(timespec="minutes"),
            len(hist.successful_times),
        )
        return when
