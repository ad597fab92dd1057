# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from taskbuddy.core.errors import StorageFailure
from taskbuddy.storage.record_store import RecordStore


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = (start or datetime(2024, 5, 1, 12, 0)).timestamp()

    def __call__(self) -> float:
        return self.now

    def advance(self, *, hours: float = 0.0, seconds: float = 0.0) -> float:
        self.now += hours * 3600.0 + seconds
        return self.now


@dataclass(slots=True)
class SentNotification:
    recipient_id: str
    title: str
    body: str
    correlation_tag: str


@dataclass(slots=True)
class FakeNotifier:
    """
    Fake Notifier used by chat/engagement tests.

    Captures notify()/dismiss() calls for assertions.
    """

    sent: list[SentNotification] = field(default_factory=list)
    dismissed: list[tuple[str, str]] = field(default_factory=list)
    fail: bool = False

    async def notify(self, recipient_id: str, *, title: str, body: str, correlation_tag: str) -> None:
        if self.fail:
            raise RuntimeError("delivery unavailable")
        self.sent.append(
            SentNotification(
                recipient_id=recipient_id,
                title=title,
                body=body,
                correlation_tag=correlation_tag,
            )
        )

    async def dismiss(self, sender_id: str, *, recipient_id: str) -> None:
        self.dismissed.append((recipient_id, sender_id))


class FlakyStore(RecordStore):
    """
    RecordStore that fails plain set() calls for chosen (category, owner) keys.

    Used to reproduce a write failing halfway through a multi-write sequence.
    """

    def __init__(self, db_path) -> None:
        super().__init__(db_path)
        self.failing: set[tuple[str, str]] = set()

    def set(self, category, owner_id, value) -> None:
        if (str(category), owner_id) in self.failing:
            raise StorageFailure(f"injected failure for {category}:{owner_id}")
        super().set(category, owner_id, value)
