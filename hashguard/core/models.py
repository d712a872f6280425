"""
HashGuard - Shared data models (records, events, snapshots, notifications).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from hashguard.core.errors import ConfigError

_MB = 1024 * 1024


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HashAlgorithm(str, Enum):
    """Digest algorithms selectable per scan. Values are hashlib names."""

    FAST = "md5"
    LEGACY = "sha1"
    STRONG = "sha256"

    @classmethod
    def parse(cls, name: str) -> "HashAlgorithm":
        """Accept member names, hashlib names, and 'default' (= STRONG)."""
        key = str(name).strip().lower().replace("-", "")
        if key == "default":
            return cls.STRONG
        for member in cls:
            if key in (member.name.lower(), member.value):
                return member
        raise ConfigError(f"Unknown hash algorithm: {name!r} (use fast, legacy or strong)")

    @property
    def label(self) -> str:
        return {"md5": "MD5", "sha1": "SHA-1", "sha256": "SHA-256"}[self.value]


class ResultLabel(str, Enum):
    """Closed set of history event outcomes."""

    COMPUTED = "Computed"
    AUTO_SCAN = "AutoScan"
    SAVED_HASH = "SavedHash"
    VERIFIED_MATCH = "VerifiedMatch"
    VERIFIED_FAIL = "VerifiedFail"

    @property
    def ok(self) -> bool:
        return self is not ResultLabel.VERIFIED_FAIL


@dataclass(frozen=True)
class FileDescriptor:
    """One directory entry yielded by the walker."""

    path: str
    is_directory: bool


@dataclass(frozen=True)
class FileRecord:
    """Hash of one scanned file."""

    path: str
    hash: str
    extension: str
    size_bytes: int
    observed_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "hash": self.hash,
            "extension": self.extension,
            "size_bytes": self.size_bytes,
            "observed_at": self.observed_at.isoformat(),
        }


@dataclass(frozen=True)
class ScanEvent:
    """One row of the append-only history log."""

    timestamp: datetime
    path: str
    hash: str
    result: ResultLabel
    algorithm: Optional[str] = None

    @classmethod
    def from_record(
        cls,
        record: FileRecord,
        result: ResultLabel,
        algorithm: Optional[HashAlgorithm] = None,
    ) -> "ScanEvent":
        return cls(
            timestamp=record.observed_at,
            path=record.path,
            hash=record.hash,
            result=result,
            algorithm=algorithm.value if algorithm else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "path": self.path,
            "hash": self.hash,
            "result": self.result.value,
            "algorithm": self.algorithm,
        }


@dataclass(frozen=True)
class Snapshot:
    """Header of one baseline capture."""

    id: int
    timestamp: datetime
    description: str
    root_dir: str


@dataclass(frozen=True)
class SnapshotEntry:
    snapshot_id: int
    path: str
    hash: str


class DiffStatus(str, Enum):
    """Baseline drift classification."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    REMOVED = "REMOVED"


@dataclass(frozen=True)
class DiffEntry:
    status: DiffStatus
    path: str
    old_hash: Optional[str] = None
    new_hash: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "path": self.path,
            "old_hash": self.old_hash,
            "new_hash": self.new_hash,
        }


@dataclass(frozen=True)
class DuplicateGroup:
    """Distinct paths sharing one content hash (derived, never stored)."""

    hash: str
    count: int
    sample_paths: list[str]

    @property
    def has_more(self) -> bool:
        return self.count > len(self.sample_paths)


@dataclass(frozen=True)
class TimelinePoint:
    """One history event for a single file, oldest first."""

    timestamp: datetime
    result: ResultLabel

    @property
    def ok(self) -> bool:
        return self.result.ok


@dataclass(frozen=True)
class RunningMetrics:
    """Throughput of the active scan."""

    files_scanned: int
    bytes_scanned: int
    elapsed_seconds: float

    @property
    def files_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.files_scanned / self.elapsed_seconds

    @property
    def mb_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.bytes_scanned / _MB / self.elapsed_seconds


@dataclass(frozen=True)
class ScanAccepted:
    root_dir: str
    algorithm: HashAlgorithm
    started_at: datetime


# Notifications pushed from the scan thread to the consumer.


@dataclass(frozen=True)
class ScanProgress:
    record: FileRecord
    metrics: RunningMetrics


@dataclass(frozen=True)
class ScanSkipped:
    path: str
    reason: str


@dataclass(frozen=True)
class PersistenceWarning:
    message: str


@dataclass(frozen=True)
class ScanComplete:
    root_dir: str
    elapsed: float
    total_files: int
    total_bytes: int
