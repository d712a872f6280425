"""
HashGuard - SQLite storage shared by the history log and snapshot store.

One connection, serialized by a re-entrant lock: the scan thread writes
while the consumer thread reads; readers only ever see committed rows.
"""

import contextlib
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterator, Union

from hashguard.core.errors import PersistenceFailure

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        path TEXT NOT NULL,
        hash TEXT NOT NULL,
        result TEXT NOT NULL,
        algorithm TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_history_hash ON history(hash)",
    "CREATE INDEX IF NOT EXISTS idx_history_path ON history(path)",
    """
    CREATE TABLE IF NOT EXISTS snapshots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        description TEXT NOT NULL,
        root_dir TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_snapshots_root ON snapshots(root_dir)",
    """
    CREATE TABLE IF NOT EXISTS snapshot_entries (
        snapshot_id INTEGER NOT NULL REFERENCES snapshots(id) ON DELETE CASCADE,
        path TEXT NOT NULL,
        hash TEXT NOT NULL,
        PRIMARY KEY (snapshot_id, path)
    )
    """,
)


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


class Database:
    """Owns the SQLite connection and the lock guarding it."""

    def __init__(self, db_path: Union[str, Path] = MEMORY) -> None:
        self.path = str(db_path)
        if self.path != MEMORY:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys=ON")
            if self.path != MEMORY:
                self._conn.execute("PRAGMA journal_mode=WAL")
                self._conn.execute("PRAGMA synchronous=NORMAL")
            with self._conn:
                for statement in _SCHEMA:
                    self._conn.execute(statement)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot open database {self.path}: {e}") from e
        logger.debug("Opened database %s", self.path)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back and raise PersistenceFailure on error."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as e:
                raise PersistenceFailure(f"Database write failed: {e}") from e

    @contextlib.contextmanager
    def reader(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as e:
                raise PersistenceFailure(f"Database read failed: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()
