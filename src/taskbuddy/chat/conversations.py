# src/taskbuddy/chat/conversations.py

from __future__ import annotations

"""
Conversation tracker.

A conversation is scoped to one task between two users; its key is derived
from the sorted participant ids plus the task id, so both sides compute it
independently.

post() appends the message and bumps the recipient's unread counter in one
transaction, then asks the notifier to alert the recipient. Notification
delivery is fire-and-forget: failures are logged, never raised.
"""

import logging
import time
from collections.abc import Callable

from ..core.models import Message, User, new_id
from ..core.ports import Notifier, RecordRepo, RecordTxn
from ..storage.keys import Category

logger = logging.getLogger(__name__)

KEY_JOIN = "_"


def conversation_key(user_a: str, user_b: str, task_id: str) -> str:
    return KEY_JOIN.join([*sorted([user_a, user_b]), task_id])


def chat_notification(sender_name: str, text: str, task_title: str | None) -> tuple[str, str]:
    title = f"New message from {sender_name}"
    body = f"Re: {task_title}\n{text}" if task_title else text
    return title, body


def _load_log(store: RecordRepo | RecordTxn, key: str) -> list[Message]:
    raw = store.get(Category.CHAT, key)
    if not isinstance(raw, list):
        return []
    return [Message.from_record(m) for m in raw if isinstance(m, dict)]


def _load_unread(store: RecordRepo | RecordTxn, user_id: str) -> dict[str, int]:
    raw = store.get(Category.UNREAD, user_id)
    if not isinstance(raw, dict):
        return {}
    out: dict[str, int] = {}
    for key, count in raw.items():
        try:
            out[str(key)] = int(count)
        except (TypeError, ValueError):
            continue
    return out


class ConversationTracker:
    def __init__(
        self,
        store: RecordRepo,
        notifier: Notifier,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock

    # ---- reads ----

    def messages(self, key: str) -> list[Message]:
        """Conversation log, newest first."""
        log = _load_log(self._store, key)
        log.sort(key=lambda m: m.timestamp, reverse=True)
        return log

    def unread_counts_for(self, user_id: str) -> dict[str, int]:
        return _load_unread(self._store, user_id)

    def total_unread(self, user_id: str) -> int:
        return sum(self.unread_counts_for(user_id).values())

    # ---- writes ----

    async def post(self, key: str, message: Message, *, recipient_id: str) -> None:
        if recipient_id == message.sender_id:
            raise ValueError("recipient must differ from the sender")

        with self._store.transaction() as txn:
            log = _load_log(txn, key)
            txn.set(Category.CHAT, key, [message.to_record(), *(m.to_record() for m in log)])

            unread = _load_unread(txn, recipient_id)
            unread[key] = unread.get(key, 0) + 1
            txn.set(Category.UNREAD, recipient_id, unread)

        logger.info(
            "Message %s posted key=%s sender=%s recipient=%s",
            message.id,
            key,
            message.sender_id,
            recipient_id,
        )

        title, body = chat_notification(message.sender_name, message.text, message.task_title)
        try:
            await self._notifier.notify(
                recipient_id,
                title=title,
                body=body,
                correlation_tag=message.sender_id,
            )
        except Exception:
            logger.exception("notify failed recipient=%s key=%s", recipient_id, key)

    async def send(
        self,
        sender: User,
        recipient_id: str,
        *,
        task_id: str,
        text: str,
        task_title: str | None = None,
        timestamp: float | None = None,
    ) -> tuple[str, Message]:
        """Build a message about task_id and post it. Returns (key, message)."""
        text = (text or "").strip()
        if not text:
            raise ValueError("message text is required")

        key = conversation_key(sender.id, recipient_id, task_id)
        message = Message(
            id=new_id(),
            sender_id=sender.id,
            sender_name=sender.name,
            text=text,
            timestamp=self._clock() if timestamp is None else timestamp,
            task_id=task_id,
            task_title=task_title,
            read=False,
        )
        await self.post(key, message, recipient_id=recipient_id)
        return key, message

    def mark_read(self, key: str, reader_id: str) -> None:
        """Mark the other participant's messages read and drop the reader's unread entry."""
        with self._store.transaction() as txn:
            log = _load_log(txn, key)
            changed = False
            for msg in log:
                if msg.sender_id != reader_id and not msg.read:
                    msg.read = True
                    changed = True
            if changed:
                txn.set(Category.CHAT, key, [m.to_record() for m in log])

            unread = _load_unread(txn, reader_id)
            if key in unread:
                del unread[key]
                txn.set(Category.UNREAD, reader_id, unread)

        logger.debug("Conversation %s read by %s", key, reader_id)

    async def open_conversation(self, key: str, reader_id: str, partner_id: str) -> list[Message]:
        """Mark read, retract the partner's pending notifications to the reader, return the log."""
        self.mark_read(key, reader_id)
        try:
            await self._notifier.dismiss(partner_id, recipient_id=reader_id)
        except Exception:
            logger.exception("dismiss failed sender=%s reader=%s", partner_id, reader_id)
        return self.messages(key)
