"""
HashGuard - Duplicate content detection over history.
"""

from typing import Iterable

from hashguard.core.models import DuplicateGroup, ScanEvent

DEFAULT_SAMPLE_SIZE = 5


def find_duplicates(events: Iterable[ScanEvent], sample_size: int = DEFAULT_SAMPLE_SIZE) -> list[DuplicateGroup]:
    """
    Group observed hashes shared by more than one distinct path.

    A path seen several times with the same hash counts once. Groups are
    ordered by size (largest first), then by hash; sample paths keep
    first-seen order and are capped at sample_size.
    """
    paths_by_hash: dict[str, dict[str, None]] = {}
    for event in events:
        paths_by_hash.setdefault(event.hash, {})[event.path] = None

    groups = [
        DuplicateGroup(hash=digest, count=len(paths), sample_paths=list(paths)[: max(0, sample_size)])
        for digest, paths in paths_by_hash.items()
        if len(paths) > 1
    ]
    groups.sort(key=lambda g: (-g.count, g.hash))
    return groups
