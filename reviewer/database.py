"""
Database layer: remembers which reviews were already posted.

Uses SQLite: a file-based database built into Python.
Each app gets its own .db file, so watching a new app starts from a clean slate.

The store is a plain key/value table. A review is "seen" when the key
"r<review id>" is present. Whether the file existed before we opened it tells
the caller if this is the very first run for the app.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class StorageInitError(Exception):
    """Raised when the seen-review database cannot be opened."""
    pass


def seen_key(review_id: int) -> str:
    """Key under which a review id is stored, e.g. 42 -> "r42"."""
    return f"r{int(review_id)}"


class SeenStore:
    """
    Durable set of review ids that were already delivered.

    Usage:
        store = SeenStore.open("data/storage", app_id=123)
        if not store.has(42):
            ...
            store.mark_seen(42)

    A new connection is opened for every call, so worker threads can
    read from the same store at the same time.
    """

    def __init__(self, db_path: str, first_time: bool = False):
        self.db_path = db_path
        self.first_time = first_time

    @classmethod
    def open(cls, storage_dir: str, app_id: int) -> "SeenStore":
        """
        Create the storage folder and table if needed.

        Raises:
            StorageInitError: the folder is not writable or SQLite refused the file.
        """
        db_path = _get_db_path(storage_dir, app_id)
        try:
            os.makedirs(storage_dir, exist_ok=True)
            if not os.access(storage_dir, os.W_OK):
                raise StorageInitError(f"Please make '{storage_dir}' dir writable")

            # Must be checked before connecting: sqlite creates the file on connect
            existed = os.path.exists(db_path)

            store = cls(db_path)
            store.initialize()
            # A store left empty by an earlier run (feed down, no endpoint) still
            # has no history to hold back
            first_time = not existed or store.count() == 0
            store.first_time = first_time
        except (OSError, sqlite3.Error) as e:
            raise StorageInitError(f"Cannot open review storage at {db_path}: {e}") from e

        if first_time:
            logger.debug("Review storage is empty, first run: %s", db_path)
        return store

    @contextmanager
    def _get_connection(self):
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the table. Safe to call multiple times."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS seen (
                    key         TEXT PRIMARY KEY,
                    value       INTEGER NOT NULL DEFAULT 1,
                    created_at  TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)

    def has(self, review_id: int) -> bool:
        """Has this review already been delivered (or seeded on the first run)?"""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM seen WHERE key = ?",
                (seen_key(review_id),)
            ).fetchone()
        return bool(row and row[0])

    def mark_seen(self, review_id: int) -> None:
        """Record a review as delivered. Marking twice is harmless."""
        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO seen (key, value) VALUES (?, 1)",
                (seen_key(review_id),)
            )

    def count(self) -> int:
        """Number of reviews recorded so far."""
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM seen").fetchone()[0]


def _get_db_path(storage_dir: str, app_id: int) -> str:
    """
    e.g. app 284882215 -> "data/storage/reviews_284882215.db"
    """
    return os.path.join(storage_dir, f"reviews_{int(app_id)}.db")
