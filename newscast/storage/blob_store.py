"""SQLite-backed key/blob persistence.

Each collection is stored as one JSON blob under a key. Loads never raise:
a missing, unreadable or corrupt blob yields the caller's default. Saves
report failure by returning False.
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class BlobStore:
    """Single-writer key/blob store in a SQLite file."""

    def __init__(self, db_path: str | Path):
        """Initialize the blob store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> bool:
        """Open the database and create the schema.

        Returns:
            True if the database is usable. On failure the store stays
            disconnected: loads return defaults and saves return False.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"BlobStore unavailable at {self.db_path}: {e}")
            self.close()
            return False

        logger.info(f"BlobStore connected to {self.db_path}")
        return True

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            try:
                self._conn.close()
            except sqlite3.Error:
                pass
            self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def load(self, key: str, default: Any = None) -> Any:
        """Load the blob stored under a key.

        Args:
            key: Collection key.
            default: Value returned when the blob is absent or unreadable.

        Returns:
            The decoded JSON value, or ``default``.
        """
        if self._conn is None:
            return default

        try:
            row = self._conn.execute(
                "SELECT value FROM blobs WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Failed to read {key!r}: {e}")
            return default

        if row is None:
            return default

        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.warning(f"Stored {key!r} is corrupt, starting empty: {e}")
            return default

    def save(self, key: str, value: Any) -> bool:
        """Replace the blob stored under a key.

        Returns:
            True if the value was written durably.
        """
        if self._conn is None:
            logger.warning(f"Cannot save {key!r}: store not connected")
            return False

        try:
            blob = json.dumps(value)
            self._conn.execute(
                """
                INSERT INTO blobs (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, blob, datetime.now().isoformat()),
            )
            self._conn.commit()
        except (TypeError, ValueError, sqlite3.Error) as e:
            logger.warning(f"Failed to save {key!r}: {e}")
            return False

        return True
