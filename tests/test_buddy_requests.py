# tests/test_buddy_requests.py

from __future__ import annotations

import pytest

from taskbuddy.buddies.relations import active_relation
from taskbuddy.core.errors import NotFoundPrecondition, PermissionDenied
from taskbuddy.core.models import BuddyStatus
from taskbuddy.tasks.task_store import load_tasks


def test_send_request_lands_in_both_lists(buddy_requests, alice, bob) -> None:
    req = buddy_requests.send_request(alice, "USER2@test.com")

    assert req.sender_id == alice.id
    assert req.receiver_id == bob.id
    assert req.status == BuddyStatus.PENDING
    assert [r.id for r in buddy_requests.pending_requests(alice.id)] == [req.id]
    assert [r.id for r in buddy_requests.pending_requests(bob.id)] == [req.id]


def test_send_request_errors(buddy_requests, paired, alice) -> None:
    with pytest.raises(NotFoundPrecondition):
        buddy_requests.send_request(alice, "nobody@test.com")
    with pytest.raises(PermissionDenied, match="yourself"):
        buddy_requests.send_request(alice, alice.email)
    with pytest.raises(PermissionDenied, match="already your buddy"):
        buddy_requests.send_request(alice, "user2@test.com")


def test_accept_creates_reciprocal_active_relations(buddy_requests, alice, bob) -> None:
    req = buddy_requests.send_request(alice, bob.email)

    rel = buddy_requests.respond(bob, req.id, accept=True)

    assert rel.user_id == alice.id and rel.is_active
    alice_side = buddy_requests.relations(alice.id)
    assert [(r.user_id, r.status, r.is_active) for r in alice_side] == [(bob.id, BuddyStatus.ACCEPTED, True)]
    assert buddy_requests.pending_requests(alice.id) == []
    assert buddy_requests.pending_requests(bob.id) == []


@pytest.mark.asyncio
async def test_second_buddy_is_not_active_by_default(store, buddy_requests, tasks, paired, carol) -> None:
    alice, bob = paired
    mine = await tasks.create_task(alice, "Keep sharing with bob")
    req = buddy_requests.send_request(carol, alice.email)

    rel = buddy_requests.respond(alice, req.id, accept=True)

    assert rel.user_id == carol.id and not rel.is_active
    assert active_relation(buddy_requests.relations(alice.id)).user_id == bob.id
    # alice is busy, so the new relation is inactive on carol's side as well.
    assert active_relation(buddy_requests.relations(carol.id)) is None

    theirs = await tasks.create_task(carol, "Carol's own goal")

    assert theirs.shared_with == []
    assert [t.shared_with for t in load_tasks(store, alice.id)] == [[bob.id]]
    assert tasks.find_visible(alice.id, mine.id).shared_with == [bob.id]


def test_reject_removes_request_without_relation(buddy_requests, alice, bob) -> None:
    req = buddy_requests.send_request(alice, bob.email)

    assert buddy_requests.respond(bob, req.id, accept=False) is None
    assert buddy_requests.relations(alice.id) == []
    assert buddy_requests.pending_requests(alice.id) == []


def test_only_receiver_answers(buddy_requests, alice, bob) -> None:
    req = buddy_requests.send_request(alice, bob.email)
    with pytest.raises(PermissionDenied):
        buddy_requests.respond(alice, req.id, accept=True)
    with pytest.raises(NotFoundPrecondition):
        buddy_requests.respond(bob, "nope", accept=True)


@pytest.mark.asyncio
async def test_remove_buddy_unshares_tasks_and_allows_repairing(
    buddy_requests, matching, tasks, paired, carol
) -> None:
    alice, bob = paired
    task = await tasks.create_task(alice, "Shared then not")

    buddy_requests.remove_buddy(alice.id, bob.id)

    assert buddy_requests.relations(alice.id) == []
    assert buddy_requests.relations(bob.id) == []
    assert tasks.find_visible(alice.id, task.id).shared_with == []
    assert task.id not in {t.id for t in tasks.visible_tasks(bob.id)}

    outcome = matching.ensure_paired(alice)
    assert outcome.created

    with pytest.raises(NotFoundPrecondition):
        buddy_requests.remove_buddy(alice.id, "user9")


@pytest.mark.asyncio
async def test_set_active_buddy_redirects_sharing(store, buddy_requests, tasks, paired, carol) -> None:
    alice, bob = paired
    await tasks.create_task(bob, "Bob goal")
    await tasks.create_task(carol, "Carol goal")
    req = buddy_requests.send_request(carol, alice.email)
    buddy_requests.respond(alice, req.id, accept=True)
    task = await tasks.create_task(alice, "Follow the active buddy")
    assert task.shared_with == [bob.id]

    rel = buddy_requests.set_active_buddy(alice.id, carol.id)

    assert rel.user_id == carol.id
    assert active_relation(buddy_requests.relations(alice.id)).user_id == carol.id
    assert tasks.find_visible(alice.id, task.id).shared_with == [carol.id]
    # bob lost alice on his side too, and his tasks no longer point at her.
    assert active_relation(buddy_requests.relations(bob.id)) is None
    assert active_relation(buddy_requests.relations(carol.id)).user_id == alice.id
    assert task.id not in {t.id for t in tasks.visible_tasks(bob.id)}
    assert all(t.shared_with == [] for t in load_tasks(store, bob.id))
    assert all(t.shared_with == [alice.id] for t in load_tasks(store, carol.id))

    with pytest.raises(PermissionDenied):
        buddy_requests.set_active_buddy(alice.id, "user9")
