# src/taskbuddy/sharing/synchronizer.py

from __future__ import annotations

"""
Sharing synchronizer.

Propagation rewrites shared_with on every task (and sub-task) of both
partitions so that each side's tasks point at exactly the other side. The
buddy side is skipped unless its own active relation points back.

The two partitions are written independently: if the second write fails the
first one stays applied (one-directional visibility). Calling propagate()
again with the same pair converges to the same end state.
"""

import logging

from ..buddies.relations import active_buddy_id
from ..core.ports import RecordRepo
from ..tasks.task_store import load_tasks, save_tasks

logger = logging.getLogger(__name__)


class SharingSynchronizer:
    def __init__(self, store: RecordRepo) -> None:
        self._store = store

    def share_partition(self, owner_id: str, target_id: str) -> int:
        """Point every task owned by owner_id at target_id. Returns the number of tasks touched."""
        tasks = load_tasks(self._store, owner_id)
        touched = 0
        for task in tasks:
            for node in task.iter_tree():
                node.shared_with = [target_id]
                touched += 1
        save_tasks(self._store, owner_id, tasks)
        return touched

    def propagate(self, owner_id: str, buddy_id: str) -> None:
        """
        Point owner_id's tasks at buddy_id, and buddy_id's tasks back at owner_id.

        The buddy's partition is only rewritten when the buddy's own active
        relation points at owner_id; otherwise it belongs to another pairing.
        """
        if not owner_id or not buddy_id:
            raise ValueError("owner_id and buddy_id are required")
        if owner_id == buddy_id:
            raise ValueError("cannot share tasks with oneself")

        n_owner = self.share_partition(owner_id, buddy_id)
        if active_buddy_id(self._store, buddy_id) != owner_id:
            logger.info(
                "Sharing propagated %s->%s only; %s is not actively paired back",
                owner_id,
                buddy_id,
                buddy_id,
            )
            return
        n_buddy = self.share_partition(buddy_id, owner_id)
        logger.info(
            "Sharing propagated %s<->%s (owner_tasks=%d buddy_tasks=%d)",
            owner_id,
            buddy_id,
            n_owner,
            n_buddy,
        )

    def unshare(self, owner_id: str, former_buddy_id: str) -> None:
        """Drop former_buddy_id from shared_with in both partitions (used on buddy removal)."""
        for owner, other in ((owner_id, former_buddy_id), (former_buddy_id, owner_id)):
            tasks = load_tasks(self._store, owner)
            changed = False
            for task in tasks:
                for node in task.iter_tree():
                    if other in node.shared_with:
                        node.shared_with = [u for u in node.shared_with if u != other]
                        changed = True
            if changed:
                save_tasks(self._store, owner, tasks)
        logger.info("Sharing removed between %s and %s", owner_id, former_buddy_id)
