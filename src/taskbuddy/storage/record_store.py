# src/taskbuddy/storage/record_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from ..core.errors import StorageFailure
from .keys import record_key, split_key

logger = logging.getLogger(__name__)


def _encode(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise StorageFailure(f"Value is not JSON-serializable: {e}") from e


def _decode(raw: str | None) -> Any | None:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.exception("Corrupt record payload; treating as missing.")
        return None


class _SqliteTxn:
    """Reads/writes bound to one connection inside BEGIN IMMEDIATE ... COMMIT."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, category: str, owner_id: str) -> Any | None:
        try:
            row = self._conn.execute(
                "SELECT value FROM records WHERE category = ? AND owner_id = ?",
                (str(category), owner_id),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageFailure(f"read failed for {record_key(category, owner_id)}") from e
        return _decode(row["value"]) if row else None

    def set(self, category: str, owner_id: str, value: Any) -> None:
        payload = _encode(value)
        try:
            self._conn.execute(
                """
                INSERT INTO records(category, owner_id, value, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(category, owner_id)
                    DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (str(category), owner_id, payload, time.time()),
            )
        except sqlite3.Error as e:
            raise StorageFailure(f"write failed for {record_key(category, owner_id)}") from e

    def delete(self, category: str, owner_id: str) -> None:
        try:
            self._conn.execute(
                "DELETE FROM records WHERE category = ? AND owner_id = ?",
                (str(category), owner_id),
            )
        except sqlite3.Error as e:
            raise StorageFailure(f"delete failed for {record_key(category, owner_id)}") from e


class RecordStore:
    """
    SQLite record store: one JSON document per (category, owner_id).

    Thread-safety:
    - each method opens its own SQLite connection
    - single calls autocommit; transaction() groups several keys atomically
    """

    def __init__(self, db_path: str | Path = "records.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_records()
        except StorageFailure:
            total = -1
        logger.info("RecordStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageFailure(f"cannot open {self._db_path}") from e
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    category TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL DEFAULT 0,
                    PRIMARY KEY (category, owner_id)
                )
                """
            )

            cur.execute("PRAGMA table_info(records)")
            cols = {row["name"] for row in cur.fetchall()}
            if "updated_at" not in cols:
                cur.execute("ALTER TABLE records ADD COLUMN updated_at REAL NOT NULL DEFAULT 0")
                logger.info("RecordStore migration: added column updated_at")
        except sqlite3.Error as e:
            raise StorageFailure(f"schema setup failed for {self._db_path}") from e
        finally:
            conn.close()

    # ---- public API ----

    def count_records(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM records").fetchone()
            return int(n)
        except sqlite3.Error as e:
            raise StorageFailure("count failed") from e
        finally:
            conn.close()

    def get(self, category: str, owner_id: str) -> Any | None:
        conn = self._get_conn()
        try:
            return _SqliteTxn(conn).get(category, owner_id)
        finally:
            conn.close()

    def set(self, category: str, owner_id: str, value: Any) -> None:
        conn = self._get_conn()
        try:
            _SqliteTxn(conn).set(category, owner_id, value)
            logger.debug("Record written key=%s", record_key(category, owner_id))
        finally:
            conn.close()

    def delete(self, category: str, owner_id: str) -> None:
        conn = self._get_conn()
        try:
            _SqliteTxn(conn).delete(category, owner_id)
        finally:
            conn.close()

    def list_keys(self, category: str) -> list[str]:
        """All keys of a category, rendered as "category:owner_id"."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT owner_id FROM records WHERE category = ? ORDER BY owner_id",
                (str(category),),
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageFailure(f"key scan failed for category {category}") from e
        finally:
            conn.close()
        return [record_key(category, row["owner_id"]) for row in rows]

    def list_owners(self, category: str) -> list[str]:
        return [split_key(k)[1] for k in self.list_keys(category)]

    @contextlib.contextmanager
    def transaction(self) -> Iterator[_SqliteTxn]:
        """
        Group reads and writes into one atomic unit.

        BEGIN IMMEDIATE takes the write lock up front, so a read-modify-write
        inside the block cannot interleave with another writer.
        """
        conn = self._get_conn()
        try:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageFailure("could not start transaction") from e

            try:
                yield _SqliteTxn(conn)
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                with contextlib.suppress(sqlite3.Error):
                    conn.execute("ROLLBACK")
                raise StorageFailure("commit failed") from e
        finally:
            conn.close()
