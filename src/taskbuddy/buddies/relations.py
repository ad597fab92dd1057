# src/taskbuddy/buddies/relations.py

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..core.models import BuddyRelation, BuddyRequest, BuddyStatus
from ..core.ports import RecordRepo, RecordTxn
from ..storage.keys import Category


def _parse_list(raw: Any, factory) -> list:
    if not isinstance(raw, list):
        return []
    return [factory(item) for item in raw if isinstance(item, dict)]


def load_relations(store: RecordRepo | RecordTxn, user_id: str) -> list[BuddyRelation]:
    return _parse_list(store.get(Category.BUDDIES, user_id), BuddyRelation.from_record)


def save_relations(
    store: RecordRepo | RecordTxn, user_id: str, relations: Iterable[BuddyRelation]
) -> None:
    store.set(Category.BUDDIES, user_id, [r.to_record() for r in relations])


def load_requests(store: RecordRepo | RecordTxn, user_id: str) -> list[BuddyRequest]:
    return _parse_list(store.get(Category.BUDDY_REQUESTS, user_id), BuddyRequest.from_record)


def save_requests(
    store: RecordRepo | RecordTxn, user_id: str, requests: Iterable[BuddyRequest]
) -> None:
    store.set(Category.BUDDY_REQUESTS, user_id, [r.to_record() for r in requests])


def active_relation(relations: Iterable[BuddyRelation]) -> BuddyRelation | None:
    for rel in relations:
        if rel.is_active and rel.status == BuddyStatus.ACCEPTED:
            return rel
    return None


def find_relation(relations: Iterable[BuddyRelation], buddy_id: str) -> BuddyRelation | None:
    for rel in relations:
        if rel.user_id == buddy_id:
            return rel
    return None


def active_buddy_id(store: RecordRepo, user_id: str) -> str | None:
    rel = active_relation(load_relations(store, user_id))
    return rel.user_id if rel else None
