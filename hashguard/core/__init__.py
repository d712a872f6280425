"""
HashGuard - File Integrity Core Module.

Provides hashing, directory walking, history, baseline snapshots,
drift comparison, duplicate detection and the scan orchestrator.
"""

from hashguard.core.alerts import AlertManager
from hashguard.core.comparator import BaselineComparator
from hashguard.core.database import Database
from hashguard.core.duplicates import find_duplicates
from hashguard.core.hashing import HashEngine
from hashguard.core.history import HistoryLog
from hashguard.core.models import HashAlgorithm, ResultLabel
from hashguard.core.orchestrator import ScanOrchestrator, build_orchestrator
from hashguard.core.scanner import DirectoryWalker, NoiseFilter
from hashguard.core.snapshots import SnapshotStore
from hashguard.core.watchdog_handler import WatchdogScheduler

__all__ = [
    "AlertManager",
    "BaselineComparator",
    "Database",
    "DirectoryWalker",
    "HashAlgorithm",
    "HashEngine",
    "HistoryLog",
    "NoiseFilter",
    "ResultLabel",
    "ScanOrchestrator",
    "SnapshotStore",
    "WatchdogScheduler",
    "build_orchestrator",
    "find_duplicates",
]
