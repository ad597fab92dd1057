# src/taskbuddy/buddies/matching.py

from __future__ import annotations

"""
Matching engine.

Pairs a user that has no buddy relations with a random user that is not
part of any pair yet, then propagates task sharing for the new pair.

The availability scan runs outside the write lock; the pair itself is written
in one transaction that re-checks both relation lists are still empty
(compare-and-set). A candidate taken concurrently is dropped from the pool and
another one is tried.
"""

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..core.models import BuddyRelation, BuddyStatus, User
from ..core.ports import RecordRepo
from ..sharing.synchronizer import SharingSynchronizer
from ..storage.keys import Category
from .relations import active_relation, load_relations, save_relations
from .users import UserDirectory

logger = logging.getLogger(__name__)

NO_CANDIDATE_MESSAGE = (
    "There are no available users to pair with right now. "
    "Try again later or invite a friend to join."
)


@dataclass(frozen=True, slots=True)
class PairingOutcome:
    """
    Result of ensure_paired().

    relation is None when nobody was available; that is informational,
    not an error, and the caller may retry on a later poll.
    """

    relation: BuddyRelation | None
    created: bool
    message: str

    @property
    def paired(self) -> bool:
        return self.relation is not None


class MatchingEngine:
    def __init__(
        self,
        store: RecordRepo,
        users: UserDirectory,
        synchronizer: SharingSynchronizer,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._users = users
        self._sync = synchronizer
        self._rng = rng or random.Random()
        self._clock = clock

    def unavailable_ids(self) -> set[str]:
        """Owners of non-empty relation lists plus every buddy id listed in them."""
        out: set[str] = set()
        for owner_id in self._store.list_owners(Category.BUDDIES):
            relations = load_relations(self._store, owner_id)
            if not relations:
                continue
            out.add(owner_id)
            out.update(rel.user_id for rel in relations)
        return out

    def candidate_pool(self, user: User) -> list[User]:
        unavailable = self.unavailable_ids()
        return [u for u in self._users.list_users() if u.id != user.id and u.id not in unavailable]

    def ensure_paired(self, user: User) -> PairingOutcome:
        existing = load_relations(self._store, user.id)
        if existing:
            rel = active_relation(existing) or existing[0]
            return PairingOutcome(relation=rel, created=False, message=f"Already paired with {rel.name}.")

        pool = self.candidate_pool(user)
        while pool:
            candidate = self._rng.choice(pool)
            outcome = self._try_pair(user, candidate)
            if outcome is not None:
                return outcome
            pool = [u for u in pool if u.id != candidate.id]

        logger.info("No pairing candidate available for user=%s", user.id)
        return PairingOutcome(relation=None, created=False, message=NO_CANDIDATE_MESSAGE)

    def _try_pair(self, user: User, candidate: User) -> PairingOutcome | None:
        now = self._clock()
        mine = BuddyRelation(
            user_id=candidate.id,
            name=candidate.name,
            email=candidate.email,
            status=BuddyStatus.ACCEPTED,
            since=now,
            is_active=True,
        )
        theirs = BuddyRelation(
            user_id=user.id,
            name=user.name,
            email=user.email,
            status=BuddyStatus.ACCEPTED,
            since=now,
            is_active=True,
        )

        with self._store.transaction() as txn:
            own_now = load_relations(txn, user.id)
            if own_now:
                # Someone paired with us between the scan and the write.
                rel = active_relation(own_now) or own_now[0]
                return PairingOutcome(relation=rel, created=False, message=f"Already paired with {rel.name}.")
            if load_relations(txn, candidate.id):
                logger.info("Candidate %s was taken concurrently; retrying", candidate.id)
                return None
            save_relations(txn, user.id, [mine])
            save_relations(txn, candidate.id, [theirs])

        logger.info("Paired user=%s with buddy=%s", user.id, candidate.id)
        self._sync.propagate(user.id, candidate.id)
        return PairingOutcome(
            relation=mine,
            created=True,
            message=(
                f"You've been paired with {candidate.name}. "
                "All your tasks will be automatically shared with them."
            ),
        )
