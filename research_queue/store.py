"""
SQLite-backed local key-value cache for the research queue.

Plays the part a browser's local storage plays for a single-page app: one
string value per key, read and written synchronously.

Schema
──────
table: kv
  key        TEXT PRIMARY KEY
  value      TEXT NOT NULL  (JSON text, stored verbatim)
  updated_at TEXT NOT NULL  (ISO-8601 UTC)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class LocalStore:
    """Synchronous string store keyed by name, persisted in one SQLite file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._init_db()

    @contextmanager
    def _connect(self):
        """Yield a connected sqlite3.Connection, creating the file/dir if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key        TEXT PRIMARY KEY,
                    value      TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
        logger.info("Local store initialised at %s", self.path)

    def get(self, key: str) -> Optional[str]:
        """Return the raw value stored under *key*, or None."""
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return None if row is None else row["value"]

    def set(self, key: str, value: str) -> None:
        """Insert or replace the value under *key*."""
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = excluded.updated_at",
                (key, value, now),
            )
        logger.debug("Stored key=%r (%d bytes)", key, len(value))

    def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if it existed."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def keys(self, prefix: str = "") -> list[str]:
        """All keys starting with *prefix*, sorted."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row["key"] for row in rows]
