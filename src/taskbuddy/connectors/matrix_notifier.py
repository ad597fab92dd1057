# src/taskbuddy/connectors/matrix_notifier.py

from __future__ import annotations

import logging
from collections import defaultdict

from nio import AsyncClient, RoomSendResponse

logger = logging.getLogger(__name__)


class MatrixNotifier:
    """
    Deliver notifications as m.notice events into a per-recipient Matrix room.

    Sent event ids are remembered per (recipient, correlation tag) so that a
    reader dismissing a sender only redacts the notices in their own room.
    """

    def __init__(
        self,
        client: AsyncClient,
        *,
        rooms: dict[str, str],
        default_room: str = "",
    ) -> None:
        self._client = client
        self._rooms = dict(rooms)
        self._default_room = default_room
        self._sent: dict[tuple[str, str], list[tuple[str, str]]] = defaultdict(list)

    def room_for(self, recipient_id: str) -> str | None:
        return self._rooms.get(recipient_id) or self._default_room or None

    async def notify(self, recipient_id: str, *, title: str, body: str, correlation_tag: str) -> None:
        room_id = self.room_for(recipient_id)
        if not room_id:
            logger.warning("No Matrix room for recipient %s; notification dropped", recipient_id)
            return

        resp = await self._client.room_send(
            room_id=room_id,
            message_type="m.room.message",
            content={"msgtype": "m.notice", "body": f"{title}\n{body}"},
            ignore_unverified_devices=True,
        )
        if isinstance(resp, RoomSendResponse):
            self._sent[(recipient_id, correlation_tag)].append((room_id, resp.event_id))
            logger.debug("Matrix notice %s sent to %s", resp.event_id, room_id)
        else:
            logger.warning("Matrix room_send failed room=%s: %r", room_id, resp)

    async def dismiss(self, sender_id: str, *, recipient_id: str) -> None:
        for room_id, event_id in self._sent.pop((recipient_id, sender_id), []):
            resp = await self._client.room_redact(room_id, event_id, reason="read")
            logger.debug("Matrix redact %s in %s -> %r", event_id, room_id, resp)

    async def close(self) -> None:
        await self._client.close()
