"""SQLite-backed persistent store backend."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator

from modelstore.codec import bytes_to_record, record_to_bytes
from modelstore.config import StoreConfig
from modelstore.errors import StorageBackendError, StoreTimeoutError
from modelstore.key import Key
from modelstore.record import Record
from modelstore.store import BaseStore

logger = logging.getLogger(__name__)

_BUSY_MARKERS = ("database is locked", "database is busy", "database table is locked")


class SqliteStore(BaseStore):
    """Store records in their binary encoding inside a SQLite database.

    Lock contention surfaces as StoreTimeoutError so the datastore facade
    retries it; other SQLite failures raise StorageBackendError.
    """

    def __init__(self, db_path: str, config: StoreConfig | None = None) -> None:
        super().__init__()
        self.config = config or StoreConfig()
        self.db_path = db_path
        with self._translate("open"):
            self._conn = sqlite3.connect(
                db_path,
                timeout=self.config.sqlite_timeout_s,
                check_same_thread=False,
            )
            self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS records (
                key_text TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                data BLOB NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_records_kind ON records(kind);

            CREATE TABLE IF NOT EXISTS sequences (
                kind TEXT NOT NULL,
                parent TEXT NOT NULL,
                next_id INTEGER NOT NULL,
                PRIMARY KEY (kind, parent)
            );
        """)
        self._conn.commit()

    @contextmanager
    def _translate(self, operation: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.OperationalError as e:
            message = str(e).lower()
            if any(marker in message for marker in _BUSY_MARKERS):
                raise StoreTimeoutError(f"SQLite {operation} timed out: {e}") from e
            raise StorageBackendError(operation, str(e)) from e
        except sqlite3.Error as e:
            raise StorageBackendError(operation, str(e)) from e

    @staticmethod
    def _parent_text(parent: Key | None) -> str:
        return str(parent) if parent is not None else ""

    def _load(self, key: Key) -> Record | None:
        with self._translate("get"):
            row = self._conn.execute(
                "SELECT data FROM records WHERE key_text = ?", (str(key),)
            ).fetchone()
        return bytes_to_record(row[0]) if row else None

    def _scan(self, kind: str) -> list[Record]:
        with self._translate("query"):
            rows = self._conn.execute(
                "SELECT data FROM records WHERE kind = ? ORDER BY key_text", (kind,)
            ).fetchall()
        return [bytes_to_record(row[0]) for row in rows]

    def _apply(self, puts: list[Record], deletes: list[Key]) -> None:
        with self._translate("write"), self._conn:
            for key in deletes:
                self._conn.execute("DELETE FROM records WHERE key_text = ?", (str(key),))
            for record in puts:
                self._conn.execute(
                    "INSERT OR REPLACE INTO records (key_text, kind, data) VALUES (?, ?, ?)",
                    (str(record.key), record.kind, record_to_bytes(record)),
                )
                if record.key.id:
                    self._conn.execute(
                        "INSERT INTO sequences (kind, parent, next_id) VALUES (?, ?, ?) "
                        "ON CONFLICT(kind, parent) DO UPDATE SET "
                        "next_id = MAX(next_id, excluded.next_id)",
                        (record.kind, self._parent_text(record.key.parent), record.key.id + 1),
                    )
        logger.debug("Applied %d puts and %d deletes to %s", len(puts), len(deletes), self.db_path)

    def _reserve_ids(self, kind: str, parent: Key | None, count: int) -> int:
        parent_text = self._parent_text(parent)
        with self._translate("allocate_ids"), self._conn:
            row = self._conn.execute(
                "SELECT next_id FROM sequences WHERE kind = ? AND parent = ?",
                (kind, parent_text),
            ).fetchone()
            start = row[0] if row else 1
            self._conn.execute(
                "INSERT OR REPLACE INTO sequences (kind, parent, next_id) VALUES (?, ?, ?)",
                (kind, parent_text, start + count),
            )
        return start

    def kinds(self) -> list[str]:
        with self._lock, self._translate("kinds"):
            rows = self._conn.execute("SELECT DISTINCT kind FROM records ORDER BY kind").fetchall()
        return [row[0] for row in rows]

    def count_records(self, kind: str | None = None) -> int:
        with self._lock, self._translate("count"):
            if kind is None:
                row = self._conn.execute("SELECT COUNT(*) FROM records").fetchone()
            else:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM records WHERE kind = ?", (kind,)
                ).fetchone()
        return int(row[0])

    def storage_info(self) -> dict[str, Any]:
        return {"backend": "sqlite", "db_path": self.db_path, "records": self.count_records()}

    def close(self) -> None:
        self._conn.close()
