# amazbot/storage/kv_store.py

"""SQLite-backed bucketed key-value store for tracked searches and config."""

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from amazbot.config.settings import Settings

logger = logging.getLogger("amazbot.store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS kv (
    bucket TEXT NOT NULL,
    key    TEXT NOT NULL,
    value  TEXT NOT NULL,
    PRIMARY KEY (bucket, key)
);
"""


class KVStore:
    """Durable JSON values grouped in named buckets.

    Buckets in use: ``db`` (tracked searches and their item state) and
    ``config`` (per-user default destination).
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("KVStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def get(self, bucket: str, key: str) -> Any | None:
        """Return the decoded value, or ``None`` when absent."""
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE bucket = ? AND key = ?",
                (bucket, key),
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def put(self, bucket: str, key: str, value: Any) -> None:
        """Insert or replace a JSON-serialisable value."""
        encoded = json.dumps(value, ensure_ascii=False)
        with self._lock:
            self._conn.execute(
                "INSERT INTO kv (bucket, key, value) VALUES (?, ?, ?) "
                "ON CONFLICT(bucket, key) DO UPDATE SET value=excluded.value",
                (bucket, key, encoded),
            )
            self._conn.commit()

    def delete(self, bucket: str, key: str) -> None:
        """Remove a key; deleting a missing key is a no-op."""
        with self._lock:
            self._conn.execute(
                "DELETE FROM kv WHERE bucket = ? AND key = ?",
                (bucket, key),
            )
            self._conn.commit()
        logger.debug("Deleted %s/%s", bucket, key)

    def keys(self, bucket: str) -> list[str]:
        """Return every key in *bucket*, sorted."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT key FROM kv WHERE bucket = ? ORDER BY key",
                (bucket,),
            ).fetchall()
        return [r[0] for r in rows]
