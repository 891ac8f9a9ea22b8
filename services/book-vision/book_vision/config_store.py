"""SQLite-backed key/value store for persisted service configuration.

Holds values such as the Gemini API key set from the settings page.
Each operation opens its own short-lived connection, so a single store
can be shared across request handlers.
"""

import logging
import sqlite3
from datetime import datetime, timezone

from book_vision.models import CredentialRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    encrypted INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class ConfigStore:
    """Persisted configuration records keyed by name."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        with self._connect() as conn:
            conn.execute(_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=15)
        conn.row_factory = sqlite3.Row
        return conn

    def get(self, key: str) -> CredentialRecord | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT key, value, encrypted, created_at, updated_at FROM config WHERE key = ?",
                (key,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return _to_record(row)

    def set(self, key: str, value: str, encrypted: bool = False) -> CredentialRecord:
        """Insert or update a record and return the stored version."""
        now = datetime.now(timezone.utc).isoformat()
        conn = self._connect()
        try:
            with conn:
                row = conn.execute(
                    """
                    INSERT INTO config (key, value, encrypted, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        encrypted = excluded.encrypted,
                        updated_at = excluded.updated_at
                    RETURNING key, value, encrypted, created_at, updated_at
                    """,
                    (key, value, int(encrypted), now, now),
                ).fetchone()
        finally:
            conn.close()

        logger.info("Saved config key=%s encrypted=%s", key, encrypted)
        return _to_record(row)

    def delete(self, key: str) -> bool:
        """Delete a record. Returns False if there was nothing to delete."""
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute("DELETE FROM config WHERE key = ?", (key,))
        finally:
            conn.close()

        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted config key=%s", key)
        return deleted


def _to_record(row: sqlite3.Row) -> CredentialRecord:
    return CredentialRecord(
        key=row["key"],
        value=row["value"],
        encrypted=bool(row["encrypted"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )
