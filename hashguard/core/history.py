"""
HashGuard - Append-only history of hash events.

Every computed, scanned, saved and verified hash becomes one row. Rows are
never edited or deleted; queries return the most recent events first.
"""

import logging
import sqlite3
from typing import Iterator, Optional

from hashguard.core.database import Database, parse_timestamp
from hashguard.core.models import ResultLabel, ScanEvent, TimelinePoint

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 100
TIMELINE_LIMIT = 20


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_event(row: sqlite3.Row) -> ScanEvent:
    return ScanEvent(
        timestamp=parse_timestamp(row["timestamp"]),
        path=row["path"],
        hash=row["hash"],
        result=ResultLabel(row["result"]),
        algorithm=row["algorithm"],
    )


class HistoryLog:
    """Persistent ScanEvent log backed by the shared Database."""

    def __init__(self, database: Database) -> None:
        self.db = database

    def append(self, event: ScanEvent) -> None:
        """
        Record one event.

        Raises:
            PersistenceFailure: the write failed (callers scanning a tree
                report it and keep going).
        """
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO history (timestamp, path, hash, result, algorithm) VALUES (?, ?, ?, ?, ?)",
                (
                    event.timestamp.isoformat(),
                    event.path,
                    event.hash,
                    event.result.value,
                    event.algorithm,
                ),
            )

    def query(self, filter_text: Optional[str] = None, limit: int = DEFAULT_QUERY_LIMIT) -> list[ScanEvent]:
        """Most recent events first, optionally filtered by a path/hash substring."""
        limit = max(1, int(limit))
        sql = "SELECT timestamp, path, hash, result, algorithm FROM history"
        params: list = []
        if filter_text:
            pattern = f"%{_escape_like(filter_text)}%"
            sql += " WHERE path LIKE ? ESCAPE '\\' OR hash LIKE ? ESCAPE '\\'"
            params.extend([pattern, pattern])
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with self.db.reader() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_event(r) for r in rows]

    def timeline(self, path: str, limit: int = TIMELINE_LIMIT) -> list[TimelinePoint]:
        """Events for one file, oldest first."""
        with self.db.reader() as conn:
            rows = conn.execute(
                "SELECT timestamp, result FROM history WHERE path = ? ORDER BY id ASC LIMIT ?",
                (path, max(1, int(limit))),
            ).fetchall()
        return [
            TimelinePoint(timestamp=parse_timestamp(r["timestamp"]), result=ResultLabel(r["result"]))
            for r in rows
        ]

    def label_counts(self) -> dict[ResultLabel, int]:
        with self.db.reader() as conn:
            rows = conn.execute("SELECT result, COUNT(*) AS n FROM history GROUP BY result").fetchall()
        return {ResultLabel(r["result"]): r["n"] for r in rows}

    def verification_stats(self) -> tuple[int, int]:
        """(matches, failures) over all verification events."""
        counts = self.label_counts()
        return counts.get(ResultLabel.VERIFIED_MATCH, 0), counts.get(ResultLabel.VERIFIED_FAIL, 0)

    def iter_events(self) -> Iterator[ScanEvent]:
        """Every event in insertion order."""
        with self.db.reader() as conn:
            rows = conn.execute(
                "SELECT timestamp, path, hash, result, algorithm FROM history ORDER BY id ASC"
            ).fetchall()
        for row in rows:
            yield _row_to_event(row)

    def __len__(self) -> int:
        with self.db.reader() as conn:
            return conn.execute("SELECT COUNT(*) FROM history").fetchone()[0]
