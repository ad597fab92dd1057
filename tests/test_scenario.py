# tests/test_scenario.py

from __future__ import annotations

import random

import pytest

from taskbuddy.buddies.matching import MatchingEngine
from taskbuddy.buddies.relations import load_relations
from taskbuddy.buddies.users import UserDirectory
from taskbuddy.chat.conversations import ConversationTracker, conversation_key
from taskbuddy.core.models import Task, User
from taskbuddy.reminders.estimator import ReminderTimeEstimator
from taskbuddy.sharing.synchronizer import SharingSynchronizer
from taskbuddy.tasks.task_service import TaskService
from taskbuddy.tasks.task_store import load_tasks, save_tasks

from .fakes import FakeClock, FakeNotifier


@pytest.mark.asyncio
async def test_pair_share_create_message_and_read(store) -> None:
    clock = FakeClock()
    notifier = FakeNotifier()
    users = UserDirectory(store)
    a = users.register(User(id="A", name="Alex", email="a@test.com"))
    b = users.register(User(id="B", name="Blair", email="b@test.com"))

    save_tasks(store, "A", [Task(id=f"a{i}", title=f"A task {i}", owner_id="A", created_at=clock()) for i in (1, 2)])
    save_tasks(store, "B", [Task(id="b1", title="B task", owner_id="B", created_at=clock())])

    sync = SharingSynchronizer(store)
    tracker = ConversationTracker(store, notifier, clock=clock)
    tasks = TaskService(store, sync, tracker, ReminderTimeEstimator(store), clock=clock)
    matching = MatchingEngine(store, users, sync, rng=random.Random(0), clock=clock)

    # A (no buddy) pairs with the only candidate, B.
    outcome = matching.ensure_paired(a)
    assert outcome.created and outcome.relation.user_id == "B"
    for owner, other in (("A", "B"), ("B", "A")):
        [rel] = load_relations(store, owner)
        assert rel.user_id == other and rel.is_active

    # Existing tasks flow both ways.
    assert {t.id for t in tasks.visible_tasks("B")} == {"a1", "a2", "b1"}
    assert {t.id for t in tasks.visible_tasks("A")} == {"a1", "a2", "b1"}
    assert all(t.shared_with == ["B"] for t in load_tasks(store, "A"))
    assert all(t.shared_with == ["A"] for t in load_tasks(store, "B"))

    # A creates "Clean desk"; B sees it, shared with B.
    desk = await tasks.create_task(a, "Clean desk")
    seen_by_b = tasks.find_visible("B", desk.id)
    assert seen_by_b.shared_with == ["B"]

    # B writes about it; A has exactly one unread in that conversation.
    clock.advance(seconds=10)
    key, _ = await tracker.send(b, "A", task_id=desk.id, task_title=desk.title, text="Nice, me too!")
    assert key == conversation_key("A", "B", desk.id)
    assert tracker.unread_counts_for("A") == {key: 1}
    assert notifier.sent[-1].recipient_id == "A"
    assert notifier.sent[-1].body == "Re: Clean desk\nNice, me too!"

    # A reads it; the counter is gone.
    tracker.mark_read(key, "A")
    assert tracker.unread_counts_for("A") == {}
    assert tracker.total_unread("A") == 0
