"""
HashGuard - Baseline snapshots.

A snapshot is a named path -> hash map for one root directory. Entries are
written in the same transaction as the header, so a partially recorded
snapshot is never visible.
"""

import logging
from typing import Iterable, Optional

from hashguard.core.database import Database, parse_timestamp
from hashguard.core.errors import NoBaselineError
from hashguard.core.models import FileRecord, Snapshot, SnapshotEntry, utc_now

logger = logging.getLogger(__name__)


def _row_to_snapshot(row) -> Snapshot:
    return Snapshot(
        id=row["id"],
        timestamp=parse_timestamp(row["timestamp"]),
        description=row["description"],
        root_dir=row["root_dir"],
    )


class SnapshotStore:
    """Creates, reads and deletes baseline snapshots."""

    def __init__(self, database: Database) -> None:
        self.db = database

    def create_snapshot(self, description: str, root_dir: str, entries: Iterable[FileRecord]) -> int:
        """
        Record a baseline for root_dir.

        Returns:
            The new snapshot id.

        Raises:
            PersistenceFailure: nothing was recorded.
        """
        # Paths are unique keys; a repeated path keeps its last hash.
        baseline = {record.path: record.hash for record in entries}
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO snapshots (timestamp, description, root_dir) VALUES (?, ?, ?)",
                (utc_now().isoformat(), description, root_dir),
            )
            snapshot_id = cur.lastrowid
            conn.executemany(
                "INSERT INTO snapshot_entries (snapshot_id, path, hash) VALUES (?, ?, ?)",
                [(snapshot_id, path, digest) for path, digest in baseline.items()],
            )
        logger.info("Snapshot %d created for %s (%d files)", snapshot_id, root_dir, len(baseline))
        return snapshot_id

    def latest_snapshot(self, root_dir: str) -> Snapshot:
        """
        Most recently created snapshot whose root_dir matches exactly.

        Raises:
            NoBaselineError: no snapshot exists for root_dir.
        """
        with self.db.reader() as conn:
            row = conn.execute(
                "SELECT id, timestamp, description, root_dir FROM snapshots "
                "WHERE root_dir = ? ORDER BY id DESC LIMIT 1",
                (root_dir,),
            ).fetchone()
        if row is None:
            raise NoBaselineError(root_dir)
        return _row_to_snapshot(row)

    def get_snapshot(self, snapshot_id: int) -> Optional[Snapshot]:
        with self.db.reader() as conn:
            row = conn.execute(
                "SELECT id, timestamp, description, root_dir FROM snapshots WHERE id = ?",
                (snapshot_id,),
            ).fetchone()
        return _row_to_snapshot(row) if row else None

    def entries(self, snapshot_id: int) -> dict[str, str]:
        """Baseline map path -> hash for one snapshot."""
        with self.db.reader() as conn:
            rows = conn.execute(
                "SELECT path, hash FROM snapshot_entries WHERE snapshot_id = ?",
                (snapshot_id,),
            ).fetchall()
        return {r["path"]: r["hash"] for r in rows}

    def entry_list(self, snapshot_id: int) -> list[SnapshotEntry]:
        return [
            SnapshotEntry(snapshot_id=snapshot_id, path=path, hash=digest)
            for path, digest in sorted(self.entries(snapshot_id).items())
        ]

    def list_snapshots(self, root_dir: Optional[str] = None) -> list[Snapshot]:
        """Snapshots newest first, optionally for one root."""
        sql = "SELECT id, timestamp, description, root_dir FROM snapshots"
        params: tuple = ()
        if root_dir is not None:
            sql += " WHERE root_dir = ?"
            params = (root_dir,)
        sql += " ORDER BY id DESC"
        with self.db.reader() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_snapshot(r) for r in rows]

    def delete_snapshot(self, snapshot_id: int) -> bool:
        """Remove a snapshot and its entries. Returns False if it did not exist."""
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM snapshot_entries WHERE snapshot_id = ?", (snapshot_id,))
            cur = conn.execute("DELETE FROM snapshots WHERE id = ?", (snapshot_id,))
        deleted = cur.rowcount > 0
        if deleted:
            logger.info("Snapshot %d deleted", snapshot_id)
        return deleted
