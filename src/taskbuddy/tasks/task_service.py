# src/taskbuddy/tasks/task_service.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime

from ..buddies.relations import active_buddy_id
from ..chat.conversations import ConversationTracker
from ..core.errors import NotFoundPrecondition, PermissionDenied
from ..core.models import Task, User, new_id
from ..core.ports import RecordRepo
from ..reminders.estimator import ReminderTimeEstimator
from ..sharing.synchronizer import SharingSynchronizer
from ..storage.keys import Category
from .task_store import find_in_tree, load_tasks, remove_from_tree, save_tasks

logger = logging.getLogger(__name__)


class TaskService:
    """
    Task operations on behalf of one acting user.

    Owner-only operations check ownership before any write and raise
    PermissionDenied / NotFoundPrecondition without touching storage.
    Every successful owner mutation re-runs sharing propagation for the
    owner's active buddy.
    """

    def __init__(
        self,
        store: RecordRepo,
        synchronizer: SharingSynchronizer,
        tracker: ConversationTracker,
        estimator: ReminderTimeEstimator,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._sync = synchronizer
        self._tracker = tracker
        self._estimator = estimator
        self._clock = clock

    # ---- reads ----

    def own_tasks(self, user_id: str) -> list[Task]:
        return load_tasks(self._store, user_id)

    def visible_tasks(self, user_id: str) -> list[Task]:
        """
        Own tasks plus tasks from other partitions that are shared with the
        user or owned by the user's active buddy.
        """
        out = load_tasks(self._store, user_id)
        buddy_id = active_buddy_id(self._store, user_id)
        for owner_id in self._store.list_owners(Category.TASKS):
            if owner_id == user_id:
                continue
            for task in load_tasks(self._store, owner_id):
                if user_id in task.shared_with or (buddy_id is not None and task.owner_id == buddy_id):
                    out.append(task)
        return out

    def find_visible(self, user_id: str, task_id: str) -> Task:
        task = find_in_tree(self.visible_tasks(user_id), task_id)
        if task is None:
            raise NotFoundPrecondition(f"Task {task_id!r} not found.")
        return task

    # ---- helpers ----

    def _owner_of(self, task_id: str) -> str | None:
        for owner_id in self._store.list_owners(Category.TASKS):
            if find_in_tree(load_tasks(self._store, owner_id), task_id) is not None:
                return owner_id
        return None

    def _owned(self, user_id: str, task_id: str, action: str) -> tuple[list[Task], Task]:
        tasks = load_tasks(self._store, user_id)
        task = find_in_tree(tasks, task_id)
        if task is not None:
            return tasks, task
        if self._owner_of(task_id) is not None:
            raise PermissionDenied(
                f"Only the task owner can {action} it. You can send encouragement instead!"
            )
        raise NotFoundPrecondition(f"Task {task_id!r} not found.")

    def _commit(self, user_id: str, tasks: list[Task]) -> None:
        save_tasks(self._store, user_id, tasks)
        buddy_id = active_buddy_id(self._store, user_id)
        if buddy_id is not None:
            self._sync.propagate(user_id, buddy_id)

    def _schedule_reminder(self, task: Task, now: float) -> None:
        when = self._estimator.best_time(task.owner_id, task.id, datetime.fromtimestamp(now))
        task.notification_time = when.timestamp()
        logger.info("Reminder for task %s scheduled at %s", task.id, when.isoformat(timespec="minutes"))

    # ---- owner operations ----

    async def create_task(self, user: User, title: str, *, description: str | None = None) -> Task:
        title = (title or "").strip()
        if not title:
            raise ValueError("title is required")

        now = self._clock()
        buddy_id = active_buddy_id(self._store, user.id)
        task = Task(
            id=new_id(),
            title=title,
            owner_id=user.id,
            created_at=now,
            shared_with=[buddy_id] if buddy_id else [],
            description=description,
        )
        self._schedule_reminder(task, now)

        tasks = load_tasks(self._store, user.id)
        tasks.append(task)
        self._commit(user.id, tasks)
        logger.info("Task created id=%s owner=%s buddy=%s", task.id, user.id, buddy_id)

        if buddy_id is not None:
            await self._tracker.send(
                user,
                buddy_id,
                task_id=task.id,
                task_title=task.title,
                text=f'I just added a new task: "{task.title}". Let\'s work on our goals together! 🎯',
                timestamp=now,
            )
        return task

    def toggle_complete(self, user_id: str, task_id: str) -> Task:
        tasks, task = self._owned(user_id, task_id, "complete")
        now = self._clock()

        task.completed = not task.completed
        task.last_activity_at = now
        if task.completed:
            task.completed_at = now
            self._estimator.record_success(user_id, task.id, now)
        else:
            task.completed_at = None
        self._schedule_reminder(task, now)

        self._commit(user_id, tasks)
        logger.info("Task %s completed=%s by owner=%s", task.id, task.completed, user_id)
        return task

    def delete_task(self, user_id: str, task_id: str) -> Task:
        tasks, _ = self._owned(user_id, task_id, "delete")
        removed = remove_from_tree(tasks, task_id)
        if removed is None:
            raise NotFoundPrecondition(f"Task {task_id!r} not found.")
        self._commit(user_id, tasks)
        logger.info("Task %s deleted by owner=%s", task_id, user_id)
        return removed

    def add_subtask(self, user_id: str, parent_id: str, title: str) -> Task:
        title = (title or "").strip()
        if not title:
            raise ValueError("title is required")
        tasks, parent = self._owned(user_id, parent_id, "break down")

        sub = Task(
            id=new_id(),
            title=title,
            owner_id=user_id,
            created_at=self._clock(),
            shared_with=list(parent.shared_with),
        )
        parent.sub_tasks.append(sub)
        self._commit(user_id, tasks)
        logger.info("Sub-task %s added under %s", sub.id, parent_id)
        return sub

    async def record_attempt(self, user: User, task_id: str) -> Task:
        """
        Count an effort on a task ("progress is progress").

        The owner or a user the task is shared with may record one; the
        counter lives in the owner's partition. A buddy's attempt also sends
        the owner a cheer about the task.
        """
        own = load_tasks(self._store, user.id)
        task = find_in_tree(own, task_id)
        if task is not None:
            task.attempts += 1
            self._commit(user.id, own)
            logger.info("Attempt recorded task=%s attempts=%d", task.id, task.attempts)
            return task

        owner_id = self._owner_of(task_id)
        if owner_id is None:
            raise NotFoundPrecondition(f"Task {task_id!r} not found.")
        owner_tasks = load_tasks(self._store, owner_id)
        task = find_in_tree(owner_tasks, task_id)
        if task is None:
            # Deleted by its owner since the lookup.
            raise NotFoundPrecondition(f"Task {task_id!r} not found.")
        if user.id not in task.shared_with:
            raise PermissionDenied("You do not have permission to celebrate this task.")

        task.attempts += 1
        save_tasks(self._store, owner_id, owner_tasks)
        logger.info("Attempt cheered task=%s by=%s attempts=%d", task.id, user.id, task.attempts)

        await self._tracker.send(
            user,
            owner_id,
            task_id=task.id,
            task_title=task.title,
            text=f'Great effort on "{task.title}"! Progress is progress, no matter how small. 🎉',
        )
        return task
