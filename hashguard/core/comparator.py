"""
HashGuard - Baseline comparison module.

Compares the records of a scan against a stored baseline map and
classifies each path as ADDED, MODIFIED or REMOVED.
"""

import logging
from collections import Counter
from typing import Iterable, Mapping

from hashguard.core.models import DiffEntry, DiffStatus, FileRecord

logger = logging.getLogger(__name__)


class BaselineComparator:
    """Single-pass set difference between a scan and a baseline."""

    def diff(
        self,
        current: Iterable[FileRecord],
        baseline: Mapping[str, str],
    ) -> list[DiffEntry]:
        """
        Compare current records with a baseline path -> hash map.

        - In current but not baseline -> ADDED
        - In both but hash differs    -> MODIFIED
        - In baseline but not current -> REMOVED
        Unchanged paths produce nothing.
        """
        remaining: dict[str, str] = dict(baseline)
        entries: list[DiffEntry] = []
        for record in current:
            old_hash = remaining.pop(record.path, None)
            if old_hash is None:
                entries.append(DiffEntry(DiffStatus.ADDED, record.path, new_hash=record.hash))
            elif old_hash != record.hash:
                entries.append(
                    DiffEntry(DiffStatus.MODIFIED, record.path, old_hash=old_hash, new_hash=record.hash)
                )
        for path in sorted(remaining):
            entries.append(DiffEntry(DiffStatus.REMOVED, path, old_hash=remaining[path]))
        logger.debug("Diff produced %d entries", len(entries))
        return entries

    @staticmethod
    def summarize(entries: Iterable[DiffEntry]) -> dict[DiffStatus, int]:
        counts = Counter(e.status for e in entries)
        return {status: counts.get(status, 0) for status in DiffStatus}

    @staticmethod
    def unchanged_count(current: Iterable[FileRecord], baseline: Mapping[str, str]) -> int:
        return sum(1 for r in current if baseline.get(r.path) == r.hash)
