# src/taskbuddy/connectors/matrix_client.py

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from nio import AsyncClient, AsyncClientConfig, JoinResponse, LoginResponse

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"


@dataclass(frozen=True, slots=True)
class MatrixSession:
    """Access token + device of the notification bot, reused across restarts."""

    access_token: str
    user_id: str
    device_id: str

    @classmethod
    def load(cls, path: Path) -> MatrixSession | None:
        """Read session.json; None when absent or incomplete."""
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text("utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable Matrix session file %s: %r", path, e)
            return None
        if not isinstance(data, dict):
            return None
        fields = {k: str(data.get(k) or "") for k in ("access_token", "user_id", "device_id")}
        if not all(fields.values()):
            logger.warning("Matrix session file %s is missing fields; ignoring it", path)
            return None
        return cls(**fields)

    def save(self, path: Path) -> None:
        # Atomic replace: readers never see a partial file.
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(asdict(self)), "utf-8")
        os.replace(tmp, path)
        try:
            os.chmod(path, 0o600)
        except OSError:
            logger.debug("chmod failed for %s", path)


async def _login(client: AsyncClient, password: str, device_name: str) -> MatrixSession | None:
    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        return None
    return MatrixSession(access_token=resp.access_token, user_id=resp.user_id, device_id=resp.device_id)


async def join_notification_rooms(client: AsyncClient, room_ids: set[str]) -> set[str]:
    """Join every room notifications may be sent to. Returns the rooms actually joined."""
    joined: set[str] = set()
    for room_id in sorted(r for r in room_ids if r):
        resp = await client.join(room_id)
        if isinstance(resp, JoinResponse):
            joined.add(room_id)
        else:
            logger.warning("Could not join Matrix room %s: %r", room_id, resp)
    return joined


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create the AsyncClient that delivers buddy notifications.

    The bot logs in with a password only once; afterwards session.json under
    the (gitignored) matrix store dir carries the token. Rooms from
    TASKBUDDY_MATRIX_ROOMS / TASKBUDDY_MATRIX_DEFAULT_ROOM are joined up front.
    Notices go to plain rooms, so encryption stays off.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/taskbuddy/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set TASKBUDDY_MATRIX_HOMESERVER and TASKBUDDY_MATRIX_USER_ID")
        return None

    store_dir.mkdir(parents=True, exist_ok=True)
    session_path = store_dir / SESSION_FILE

    client = AsyncClient(
        homeserver,
        user_id,
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    session = MatrixSession.load(session_path)
    if session is None:
        if not password:
            logger.error(
                "No Matrix session yet and TASKBUDDY_MATRIX_PASSWORD is empty; "
                "set it once to bootstrap the notification bot."
            )
            await client.close()
            return None

        device_name = f"{getattr(settings, 'app_name', 'taskbuddy')} notifier"
        session = await _login(client, password, device_name)
        if session is None:
            await client.close()
            return None
        try:
            session.save(session_path)
            logger.info("Matrix session saved to %s", session_path)
        except OSError as e:
            logger.error("Failed to write %s: %r", session_path, e)
    else:
        client.access_token = session.access_token
        client.user_id = session.user_id
        client.device_id = session.device_id
        logger.info("Matrix session restored for %s", session.user_id)

    rooms = set(dict(getattr(settings, "matrix_rooms", {}) or {}).values())
    rooms.add(getattr(settings, "matrix_default_room", "") or "")
    joined = await join_notification_rooms(client, rooms)
    logger.info("Matrix notifier ready (%d room(s) joined)", len(joined))
    return client
