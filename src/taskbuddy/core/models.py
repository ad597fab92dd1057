# src/taskbuddy/core/models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


def new_id() -> str:
    return uuid.uuid4().hex


def _opt_float(raw: Any) -> float | None:
    return float(raw) if raw is not None else None


class BuddyStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @classmethod
    def from_db(cls, raw: str | None) -> BuddyStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: str
    email: str

    def to_record(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}

    @classmethod
    def from_record(cls, raw: dict[str, Any]) -> User:
        return cls(id=str(raw["id"]), name=str(raw.get("name") or ""), email=str(raw.get("email") or ""))


@dataclass(slots=True)
class Task:
    """
    A task owned by exactly one user.

    shared_with is derived from the owner's active buddy and is rewritten
    wholesale by the sharing synchronizer.
    """

    id: str
    title: str
    owner_id: str
    created_at: float

    completed: bool = False
    completed_at: float | None = None
    last_activity_at: float | None = None
    attempts: int = 0
    shared_with: list[str] = field(default_factory=list)
    sub_tasks: list[Task] = field(default_factory=list)

    description: str | None = None
    notification_time: float | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "ownerId": self.owner_id,
            "createdAt": self.created_at,
            "completed": self.completed,
            "completedAt": self.completed_at,
            "lastActivityAt": self.last_activity_at,
            "attempts": self.attempts,
            "sharedWith": list(self.shared_with),
            "subTasks": [s.to_record() for s in self.sub_tasks],
            "description": self.description,
            "notificationTime": self.notification_time,
        }

    @classmethod
    def from_record(cls, raw: dict[str, Any]) -> Task:
        return cls(
            id=str(raw["id"]),
            title=str(raw.get("title") or ""),
            owner_id=str(raw["ownerId"]),
            created_at=float(raw.get("createdAt") or 0.0),
            completed=bool(raw.get("completed", False)),
            completed_at=_opt_float(raw.get("completedAt")),
            last_activity_at=_opt_float(raw.get("lastActivityAt")),
            attempts=int(raw.get("attempts") or 0),
            shared_with=[str(u) for u in raw.get("sharedWith") or []],
            sub_tasks=[cls.from_record(s) for s in raw.get("subTasks") or []],
            description=raw.get("description"),
            notification_time=_opt_float(raw.get("notificationTime")),
        )

    def iter_tree(self):
        """Yield this task and all nested sub-tasks (depth-first)."""
        yield self
        for sub in self.sub_tasks:
            yield from sub.iter_tree()


@dataclass(slots=True)
class BuddyRelation:
    # The *other* user; the owning user is implied by the partition key.
    user_id: str
    name: str
    email: str
    status: BuddyStatus = BuddyStatus.ACCEPTED
    since: float | None = None
    is_active: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "name": self.name,
            "email": self.email,
            "status": self.status.value,
            "since": self.since,
            "isActive": self.is_active,
        }

    @classmethod
    def from_record(cls, raw: dict[str, Any]) -> BuddyRelation:
        return cls(
            user_id=str(raw["userId"]),
            name=str(raw.get("name") or ""),
            email=str(raw.get("email") or ""),
            status=BuddyStatus.from_db(raw.get("status")),
            since=_opt_float(raw.get("since")),
            is_active=bool(raw.get("isActive", False)),
        )


@dataclass(slots=True)
class BuddyRequest:
    id: str
    sender_id: str
    sender_name: str
    sender_email: str
    receiver_id: str
    created_at: float
    status: BuddyStatus = BuddyStatus.PENDING

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "senderEmail": self.sender_email,
            "receiverId": self.receiver_id,
            "createdAt": self.created_at,
            "status": self.status.value,
        }

    @classmethod
    def from_record(cls, raw: dict[str, Any]) -> BuddyRequest:
        return cls(
            id=str(raw["id"]),
            sender_id=str(raw["senderId"]),
            sender_name=str(raw.get("senderName") or ""),
            sender_email=str(raw.get("senderEmail") or ""),
            receiver_id=str(raw["receiverId"]),
            created_at=float(raw.get("createdAt") or 0.0),
            status=BuddyStatus.from_db(raw.get("status")),
        )


@dataclass(slots=True)
class Message:
    id: str
    sender_id: str
    sender_name: str
    text: str
    timestamp: float
    task_id: str | None = None
    task_title: str | None = None
    read: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "senderName": self.sender_name,
            "text": self.text,
            "timestamp": self.timestamp,
            "taskId": self.task_id,
            "taskTitle": self.task_title,
            "read": self.read,
        }

    @classmethod
    def from_record(cls, raw: dict[str, Any]) -> Message:
        return cls(
            id=str(raw.get("id") or new_id()),
            sender_id=str(raw["senderId"]),
            sender_name=str(raw.get("senderName") or ""),
            text=str(raw.get("text") or ""),
            timestamp=float(raw.get("timestamp") or 0.0),
            task_id=raw.get("taskId"),
            task_title=raw.get("taskTitle"),
            read=bool(raw.get("read", False)),
        )


@dataclass(slots=True)
class ReminderHistory:
    user_id: str
    task_id: str
    successful_times: list[float] = field(default_factory=list)
    unsuccessful_times: list[float] = field(default_factory=list)

    def to_record(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "taskId": self.task_id,
            "successfulTimes": list(self.successful_times),
            "unsuccessfulTimes": list(self.unsuccessful_times),
        }

    @classmethod
    def from_record(cls, raw: dict[str, Any]) -> ReminderHistory:
        return cls(
            user_id=str(raw["userId"]),
            task_id=str(raw["taskId"]),
            successful_times=[float(t) for t in raw.get("successfulTimes") or []],
            unsuccessful_times=[float(t) for t in raw.get("unsuccessfulTimes") or []],
        )
