# src/taskbuddy/buddies/requests.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..core.errors import NotFoundPrecondition, PermissionDenied
from ..core.models import BuddyRelation, BuddyRequest, BuddyStatus, User, new_id
from ..core.ports import RecordRepo
from ..sharing.synchronizer import SharingSynchronizer
from .relations import (
    active_relation,
    find_relation,
    load_relations,
    load_requests,
    save_relations,
    save_requests,
)
from .users import UserDirectory

logger = logging.getLogger(__name__)


class BuddyRequestService:
    """
    Explicit buddy management: requests, accept/reject, removal, active-buddy switch.

    Re-pairing after a removal goes through here or through MatchingEngine
    once the user has no relations left.
    """

    def __init__(
        self,
        store: RecordRepo,
        users: UserDirectory,
        synchronizer: SharingSynchronizer,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._users = users
        self._sync = synchronizer
        self._clock = clock

    def relations(self, user_id: str) -> list[BuddyRelation]:
        return load_relations(self._store, user_id)

    def pending_requests(self, user_id: str) -> list[BuddyRequest]:
        return load_requests(self._store, user_id)

    def send_request(self, sender: User, receiver_email: str) -> BuddyRequest:
        target = self._users.find_by_email(receiver_email)
        if target is None:
            raise NotFoundPrecondition(f"No user with email {receiver_email!r}.")
        if target.id == sender.id:
            raise PermissionDenied("You cannot add yourself as a buddy.")
        if find_relation(load_relations(self._store, sender.id), target.id) is not None:
            raise PermissionDenied(f"{target.name} is already your buddy.")

        request = BuddyRequest(
            id=new_id(),
            sender_id=sender.id,
            sender_name=sender.name,
            sender_email=sender.email,
            receiver_id=target.id,
            created_at=self._clock(),
        )

        # Sender's list first, then the receiver's; no rollback if the second write fails.
        sender_list = load_requests(self._store, sender.id)
        save_requests(self._store, sender.id, [*sender_list, request])
        receiver_list = load_requests(self._store, target.id)
        save_requests(self._store, target.id, [*receiver_list, request])

        logger.info("Buddy request %s sent %s -> %s", request.id, sender.id, target.id)
        return request

    def respond(self, user: User, request_id: str, *, accept: bool) -> BuddyRelation | None:
        """
        Accept or reject a request addressed to user.

        The request disappears from both lists. On accept both sides get an
        accepted relation. It is active on both sides only when neither side
        has an active buddy yet, otherwise on neither.
        """
        request = next((r for r in load_requests(self._store, user.id) if r.id == request_id), None)
        if request is None:
            raise NotFoundPrecondition(f"No pending buddy request {request_id!r}.")
        if request.receiver_id != user.id:
            raise PermissionDenied("Only the receiver can answer a buddy request.")

        now = self._clock()
        mine: BuddyRelation | None = None

        with self._store.transaction() as txn:
            for owner_id in (user.id, request.sender_id):
                remaining = [r for r in load_requests(txn, owner_id) if r.id != request.id]
                save_requests(txn, owner_id, remaining)

            if accept:
                own = [r for r in load_relations(txn, user.id) if r.user_id != request.sender_id]
                sender_rel = [r for r in load_relations(txn, request.sender_id) if r.user_id != user.id]
                both_free = active_relation(own) is None and active_relation(sender_rel) is None
                mine = BuddyRelation(
                    user_id=request.sender_id,
                    name=request.sender_name,
                    email=request.sender_email,
                    status=BuddyStatus.ACCEPTED,
                    since=now,
                    is_active=both_free,
                )
                theirs = BuddyRelation(
                    user_id=user.id,
                    name=user.name,
                    email=user.email,
                    status=BuddyStatus.ACCEPTED,
                    since=now,
                    is_active=both_free,
                )
                save_relations(txn, user.id, [*own, mine])
                save_relations(txn, request.sender_id, [*sender_rel, theirs])

        if mine is None:
            logger.info("Buddy request %s rejected by %s", request.id, user.id)
            return None

        logger.info("Buddy request %s accepted by %s (active=%s)", request.id, user.id, mine.is_active)
        if mine.is_active:
            self._sync.propagate(user.id, request.sender_id)
        return mine

    def remove_buddy(self, user_id: str, buddy_id: str) -> None:
        own = load_relations(self._store, user_id)
        if find_relation(own, buddy_id) is None:
            raise NotFoundPrecondition(f"{buddy_id!r} is not your buddy.")

        save_relations(self._store, user_id, [r for r in own if r.user_id != buddy_id])
        theirs = load_relations(self._store, buddy_id)
        save_relations(self._store, buddy_id, [r for r in theirs if r.user_id != user_id])
        self._sync.unshare(user_id, buddy_id)
        logger.info("Buddy relation removed %s <-> %s", user_id, buddy_id)

    def set_active_buddy(self, user_id: str, buddy_id: str) -> BuddyRelation:
        """
        Make user_id and buddy_id each other's single active buddy.

        Whoever either of them was active with before loses that pairing on
        both sides and the old grants are dropped, then sharing is redirected.
        """
        target = find_relation(load_relations(self._store, user_id), buddy_id)
        if target is None or target.status != BuddyStatus.ACCEPTED:
            raise PermissionDenied(f"{buddy_id!r} is not an accepted buddy.")

        dropped: list[tuple[str, str]] = []
        with self._store.transaction() as txn:
            for me, other in ((user_id, buddy_id), (buddy_id, user_id)):
                own = load_relations(txn, me)
                previous = active_relation(own)
                if previous is not None and previous.user_id != other:
                    old = load_relations(txn, previous.user_id)
                    for rel in old:
                        if rel.user_id == me:
                            rel.is_active = False
                    save_relations(txn, previous.user_id, old)
                    dropped.append((me, previous.user_id))
                for rel in own:
                    rel.is_active = rel.user_id == other
                save_relations(txn, me, own)

        for me, former in dropped:
            self._sync.unshare(me, former)
        self._sync.propagate(user_id, buddy_id)
        logger.info("Active buddy for %s is now %s", user_id, buddy_id)
        target.is_active = True
        return target
