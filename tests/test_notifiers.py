# tests/test_notifiers.py

from __future__ import annotations

import pytest
from nio import RoomSendResponse

from taskbuddy.connectors.log_notifier import LogNotifier
from taskbuddy.connectors.matrix_client import MatrixSession
from taskbuddy.connectors.matrix_notifier import MatrixNotifier


class FakeMatrixClient:
    """Records room_send/room_redact calls instead of talking to a homeserver."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict]] = []
        self.redacted: list[tuple[str, str, str | None]] = []
        self.closed = False

    async def room_send(self, room_id, message_type, content, ignore_unverified_devices=False):
        self.sent.append((room_id, content))
        return RoomSendResponse(event_id=f"$event{len(self.sent)}", room_id=room_id)

    async def room_redact(self, room_id, event_id, reason=None):
        self.redacted.append((room_id, event_id, reason))

    async def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_log_notifier_keeps_until_dismissed() -> None:
    n = LogNotifier()
    await n.notify("user2", title="New message from A", body="hi", correlation_tag="user1")
    await n.notify("user2", title="New message from C", body="yo", correlation_tag="user3")

    assert len(n.pending_for("user2")) == 2

    await n.dismiss("user1", recipient_id="user2")
    assert [p.title for p in n.pending_for("user2")] == ["New message from C"]
    await n.dismiss("nobody", recipient_id="user2")


@pytest.mark.asyncio
async def test_matrix_notifier_routes_and_redacts() -> None:
    client = FakeMatrixClient()
    n = MatrixNotifier(client, rooms={"user2": "!bob:hs"}, default_room="!lobby:hs")

    await n.notify("user2", title="New message from A", body="Re: Run\nhi", correlation_tag="user1")
    await n.notify("user9", title="New message from A", body="hey", correlation_tag="user1")

    assert client.sent[0] == (
        "!bob:hs",
        {"msgtype": "m.notice", "body": "New message from A\nRe: Run\nhi"},
    )
    assert client.sent[1][0] == "!lobby:hs"

    await n.dismiss("user1", recipient_id="user2")
    assert client.redacted == [("!bob:hs", "$event1", "read")]

    await n.dismiss("user1", recipient_id="user9")
    assert client.redacted[-1] == ("!lobby:hs", "$event2", "read")

    await n.dismiss("user1", recipient_id="user2")
    assert len(client.redacted) == 2

    await n.close()
    assert client.closed


@pytest.mark.asyncio
async def test_matrix_notifier_without_room_drops() -> None:
    client = FakeMatrixClient()
    n = MatrixNotifier(client, rooms={})

    assert n.room_for("user2") is None
    await n.notify("user2", title="t", body="b", correlation_tag="user1")
    assert client.sent == []


def test_matrix_session_round_trip_and_incomplete_files(tmp_path) -> None:
    path = tmp_path / "session.json"
    assert MatrixSession.load(path) is None

    MatrixSession(access_token="tok", user_id="@bot:hs", device_id="DEV").save(path)
    assert MatrixSession.load(path) == MatrixSession(access_token="tok", user_id="@bot:hs", device_id="DEV")

    path.write_text('{"access_token": "tok"}', "utf-8")
    assert MatrixSession.load(path) is None
    path.write_text("not json", "utf-8")
    assert MatrixSession.load(path) is None


@pytest.mark.asyncio
async def test_log_notifier_dismiss_is_scoped_to_the_reader() -> None:
    n = LogNotifier()
    await n.notify("user1", title="New message from B", body="to A", correlation_tag="user2")
    await n.notify("user3", title="New message from B", body="to C", correlation_tag="user2")

    await n.dismiss("user2", recipient_id="user1")

    assert n.pending_for("user1") == []
    assert [p.body for p in n.pending_for("user3")] == ["to C"]


@pytest.mark.asyncio
async def test_matrix_notifier_dismiss_leaves_other_rooms_alone() -> None:
    client = FakeMatrixClient()
    n = MatrixNotifier(client, rooms={"user1": "!alice:hs", "user3": "!carol:hs"})

    await n.notify("user1", title="New message from B", body="to A", correlation_tag="user2")
    await n.notify("user3", title="New message from B", body="to C", correlation_tag="user2")

    await n.dismiss("user2", recipient_id="user1")

    assert client.redacted == [("!alice:hs", "$event1", "read")]
