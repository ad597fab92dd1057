# src/taskbuddy/tasks/task_store.py

from __future__ import annotations

from collections.abc import Iterable

from ..core.models import Task
from ..core.ports import RecordRepo, RecordTxn
from ..storage.keys import Category


def load_tasks(store: RecordRepo | RecordTxn, owner_id: str) -> list[Task]:
    raw = store.get(Category.TASKS, owner_id)
    if not isinstance(raw, list):
        return []
    return [Task.from_record(item) for item in raw if isinstance(item, dict)]


def save_tasks(store: RecordRepo | RecordTxn, owner_id: str, tasks: Iterable[Task]) -> None:
    store.set(Category.TASKS, owner_id, [t.to_record() for t in tasks])


def find_in_tree(tasks: Iterable[Task], task_id: str) -> Task | None:
    """Find a task (or nested sub-task) by id."""
    for task in tasks:
        for node in task.iter_tree():
            if node.id == task_id:
                return node
    return None


def remove_from_tree(tasks: list[Task], task_id: str) -> Task | None:
    """Remove a task (or nested sub-task) in place; return it if found."""
    for i, task in enumerate(tasks):
        if task.id == task_id:
            return tasks.pop(i)
        removed = remove_from_tree(task.sub_tasks, task_id)
        if removed is not None:
            return removed
    return None
