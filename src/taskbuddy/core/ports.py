# src/taskbuddy/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage and notification delivery swappable and makes testing easier.
"""

from contextlib import AbstractContextManager
from typing import Any, Awaitable, Protocol


class RecordTxn(Protocol):
    """A set of reads/writes committed (or discarded) together."""

    def get(self, category: str, owner_id: str) -> Any | None: ...
    def set(self, category: str, owner_id: str, value: Any) -> None: ...
    def delete(self, category: str, owner_id: str) -> None: ...


class RecordRepo(Protocol):
    """
    Per-owner key-value store.

    Keys are (category, owner_id); values are JSON-compatible documents.
    Single calls are atomic per key; transaction() makes several keys atomic.
    """

    def get(self, category: str, owner_id: str) -> Any | None: ...
    def set(self, category: str, owner_id: str, value: Any) -> None: ...
    def delete(self, category: str, owner_id: str) -> None: ...
    def list_keys(self, category: str) -> list[str]: ...
    def list_owners(self, category: str) -> list[str]: ...
    def transaction(self) -> AbstractContextManager[RecordTxn]: ...


class Notifier(Protocol):
    """
    Delivery-side port: how the core asks for a user to be notified.

    correlation_tag identifies the sender. dismiss(sender_id, recipient_id=...)
    retracts what that sender caused for one recipient only.
    """

    def notify(
            self,
            recipient_id: str,
            *,
            title: str,
            body: str,
            correlation_tag: str,
    ) -> Awaitable[None]: ...

    def dismiss(self, sender_id: str, *, recipient_id: str) -> Awaitable[None]: ...
