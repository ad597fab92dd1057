# src/taskbuddy/connectors/log_notifier.py

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PendingNotification:
    recipient_id: str
    title: str
    body: str


class LogNotifier:
    """
    Notifier used by the console app: logs each notification and keeps it
    until the recipient dismisses it, grouped by (recipient, sender).
    """

    def __init__(self) -> None:
        self._pending: dict[tuple[str, str], list[PendingNotification]] = defaultdict(list)

    async def notify(self, recipient_id: str, *, title: str, body: str, correlation_tag: str) -> None:
        self._pending[(recipient_id, correlation_tag)].append(
            PendingNotification(recipient_id=recipient_id, title=title, body=body)
        )
        logger.info("Notify %s: %s | %s", recipient_id, title, body.replace("\n", " / "))

    async def dismiss(self, sender_id: str, *, recipient_id: str) -> None:
        dropped = self._pending.pop((recipient_id, sender_id), [])
        if dropped:
            logger.info("Dismissed %d notification(s) from %s for %s", len(dropped), sender_id, recipient_id)

    def pending_for(self, recipient_id: str) -> list[PendingNotification]:
        return [n for (rid, _), items in self._pending.items() if rid == recipient_id for n in items]
