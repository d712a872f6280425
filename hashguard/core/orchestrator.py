"""
HashGuard - Scan orchestrator.

Owns the single background scan: walks the tree, hashes each file,
appends one AutoScan event per file to the history log, and streams
progress to the consumer over a queue (or a listener callback).

Also the entry point for every other core operation: history queries,
snapshots, baseline comparison, duplicates and single-file checks.
"""

import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, Union

from hashguard.core.checksum import VerificationResult, save_checksum, verify_checksum
from hashguard.core.comparator import BaselineComparator
from hashguard.core.database import Database
from hashguard.core.duplicates import DEFAULT_SAMPLE_SIZE, find_duplicates
from hashguard.core.errors import (
    AlreadyRunningError,
    DirectoryAccessDenied,
    NoPriorScanError,
    PersistenceFailure,
    UnreadableFileError,
)
from hashguard.core.hashing import HashEngine
from hashguard.core.history import DEFAULT_QUERY_LIMIT, HistoryLog
from hashguard.core.models import (
    DiffEntry,
    DuplicateGroup,
    FileRecord,
    HashAlgorithm,
    PersistenceWarning,
    ResultLabel,
    RunningMetrics,
    ScanAccepted,
    ScanComplete,
    ScanEvent,
    ScanProgress,
    ScanSkipped,
    TimelinePoint,
    utc_now,
)
from hashguard.core.scanner import DEFAULT_NOISE_EXTENSIONS, DirectoryWalker, NoiseFilter, file_extension
from hashguard.core.snapshots import SnapshotStore
from hashguard.core.watchdog_handler import DEFAULT_INTERVAL_SECONDS, WatchdogScheduler

logger = logging.getLogger(__name__)

Notification = Union[ScanProgress, ScanSkipped, PersistenceWarning, ScanComplete]
Listener = Callable[[Notification], None]


def canonical_path(path: Union[str, Path]) -> str:
    """Absolute, symlink-free form used as the key for results and snapshots."""
    return str(Path(path).expanduser().resolve())


class ScanOrchestrator:
    """
    At most one scan runs at a time. The running flag, current root and
    per-scan counters are guarded by one lock shared with the watchdog.
    """

    def __init__(
        self,
        history: HistoryLog,
        snapshots: SnapshotStore,
        hash_engine: Optional[HashEngine] = None,
        noise_extensions: tuple[str, ...] = DEFAULT_NOISE_EXTENSIONS,
        noise_filter_enabled: bool = False,
        exclude_patterns: Optional[list[str]] = None,
        listener: Optional[Listener] = None,
        duplicate_sample_size: int = DEFAULT_SAMPLE_SIZE,
        watchdog_interval: float = DEFAULT_INTERVAL_SECONDS,
        watch_events: bool = False,
        debounce_seconds: float = 2.0,
    ) -> None:
        self.history = history
        self.snapshots = snapshots
        self.hash_engine = hash_engine or HashEngine()
        self.comparator = BaselineComparator()
        self.exclude_patterns = list(exclude_patterns or [])
        self.duplicate_sample_size = duplicate_sample_size
        self.notifications: "queue.Queue[Notification]" = queue.Queue()
        self._listener = listener

        self._lock = threading.Lock()
        # Set when the current (or last) scan has fully finished.
        self._done = threading.Event()
        self._done.set()
        self._scanning = False
        self._current_root: Optional[str] = None
        self._last_root: Optional[str] = None
        self._algorithm = self.hash_engine.algorithm
        self._noise_filter = NoiseFilter(noise_extensions, enabled=noise_filter_enabled)
        self._results: dict[str, list[FileRecord]] = {}
        self._files_scanned = 0
        self._bytes_scanned = 0
        self._started = 0.0
        self._finished: Optional[float] = None
        self._thread: Optional[threading.Thread] = None

        self._watchdog_interval = watchdog_interval
        self._watch_events = watch_events
        self._debounce_seconds = debounce_seconds
        self._watchdog: Optional[WatchdogScheduler] = None

    # -- state ---------------------------------------------------------------

    @property
    def is_scanning(self) -> bool:
        with self._lock:
            return self._scanning

    @property
    def last_root(self) -> Optional[str]:
        with self._lock:
            return self._last_root

    @property
    def algorithm(self) -> HashAlgorithm:
        with self._lock:
            return self._algorithm

    @property
    def filter_predicate(self) -> NoiseFilter:
        with self._lock:
            return self._noise_filter

    @property
    def watchdog(self) -> Optional[WatchdogScheduler]:
        return self._watchdog

    def metrics(self) -> RunningMetrics:
        """Counters of the active (or last) scan."""
        with self._lock:
            if not self._started:
                return RunningMetrics(0, 0, 0.0)
            end = time.monotonic() if self._finished is None else self._finished
            elapsed = end - self._started
            return RunningMetrics(self._files_scanned, self._bytes_scanned, elapsed)

    def last_results(self, root_dir: Union[str, Path]) -> Optional[list[FileRecord]]:
        with self._lock:
            records = self._results.get(canonical_path(root_dir))
        return list(records) if records is not None else None

    # -- settings ------------------------------------------------------------

    def set_algorithm(self, algorithm: Union[str, HashAlgorithm]) -> HashAlgorithm:
        """Select the digest for the next scan; an in-flight scan is unaffected."""
        algo = algorithm if isinstance(algorithm, HashAlgorithm) else HashAlgorithm.parse(algorithm)
        with self._lock:
            self._algorithm = algo
        logger.info("Hash algorithm set to %s", algo.label)
        return algo

    def set_noise_filter(self, enabled: bool) -> None:
        with self._lock:
            self._noise_filter = NoiseFilter(self._noise_filter.extensions, enabled=bool(enabled))
        logger.info("Noise filter %s", "enabled" if enabled else "disabled")

    def set_watchdog(self, enabled: bool) -> None:
        if enabled:
            if self._watchdog is None:
                self._watchdog = WatchdogScheduler(
                    self,
                    interval_seconds=self._watchdog_interval,
                    watch_events=self._watch_events,
                    debounce_seconds=self._debounce_seconds,
                )
            self._watchdog.start()
        elif self._watchdog is not None:
            self._watchdog.stop()
            self._watchdog = None

    # -- scanning ------------------------------------------------------------

    def start_scan(self, root_dir: Union[str, Path]) -> ScanAccepted:
        """
        Start a background scan of root_dir.

        Raises:
            AlreadyRunningError: another scan is active; it is left untouched.
            DirectoryAccessDenied: root_dir is not a directory.
        """
        root = canonical_path(root_dir)
        with self._lock:
            if self._scanning:
                raise AlreadyRunningError(self._current_root or "")
            if not os.path.isdir(root):
                raise DirectoryAccessDenied(root, "not a directory")
            self._scanning = True
            self._current_root = root
            self._last_root = root
            self._files_scanned = 0
            self._bytes_scanned = 0
            self._started = time.monotonic()
            self._finished = None
            done = threading.Event()
            self._done = done
            algorithm = self._algorithm
            walker = DirectoryWalker(
                filter_predicate=self._noise_filter,
                exclude_patterns=self.exclude_patterns,
            )
        accepted = ScanAccepted(root_dir=root, algorithm=algorithm, started_at=utc_now())
        logger.info("Scan started: %s (%s)", root, algorithm.label)
        self._thread = threading.Thread(
            target=self._run_scan,
            args=(root, algorithm, walker, done),
            name="hashguard-scan",
            daemon=True,
        )
        self._thread.start()
        return accepted

    def try_start_scan(self, root_dir: Optional[Union[str, Path]]) -> bool:
        """Start a scan unless one is running. Never raises for a busy orchestrator."""
        if root_dir is None:
            return False
        try:
            self.start_scan(root_dir)
        except AlreadyRunningError:
            logger.debug("Scan already running; skipping request for %s", root_dir)
            return False
        except DirectoryAccessDenied as e:
            logger.warning("%s", e)
            return False
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no scan is running. Returns False on timeout.

        A scan accepted while the previous one was finishing is waited for too.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                done = self._done
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not done.wait(remaining):
                return False
            with self._lock:
                if self._done is done:
                    return True

    def _run_scan(
        self,
        root: str,
        algorithm: HashAlgorithm,
        walker: DirectoryWalker,
        done: threading.Event,
    ) -> None:
        records: list[FileRecord] = []
        total_bytes = 0
        persistence_failures = 0
        error: Optional[str] = None
        try:
            for descriptor in walker.walk(root):
                if descriptor.is_directory:
                    continue
                path = descriptor.path
                try:
                    size = os.path.getsize(path)
                    digest = self.hash_engine.digest(path, algorithm)
                except UnreadableFileError as e:
                    logger.warning("Skipping %s", e)
                    self._publish(ScanSkipped(path=path, reason=e.reason))
                    continue
                except OSError as e:
                    logger.warning("Skipping %s: %s", path, e)
                    self._publish(ScanSkipped(path=path, reason=e.strerror or str(e)))
                    continue
                record = FileRecord(
                    path=path,
                    hash=digest,
                    extension=file_extension(path),
                    size_bytes=size,
                )
                records.append(record)
                total_bytes += size
                with self._lock:
                    self._files_scanned += 1
                    self._bytes_scanned += size
                    metrics = RunningMetrics(
                        self._files_scanned,
                        self._bytes_scanned,
                        time.monotonic() - self._started,
                    )
                logger.debug("Hashed %s %s", digest, path)
                self._publish(ScanProgress(record=record, metrics=metrics))
                if not self._record(ScanEvent.from_record(record, ResultLabel.AUTO_SCAN, algorithm)):
                    persistence_failures += 1
                    if persistence_failures == 1:
                        self._publish(
                            PersistenceWarning("History write failed; history for this scan may be incomplete")
                        )
        except Exception as e:
            logger.exception("Scan of %s failed: %s", root, e)
            error = str(e)
        finally:
            with self._lock:
                self._finished = time.monotonic()
                elapsed = self._finished - self._started
                if error is None:
                    self._results[root] = records
                self._scanning = False
                self._current_root = None
            if persistence_failures:
                logger.warning("%d history writes failed during scan of %s", persistence_failures, root)
            logger.info(
                "Scan complete: %s (%d files, %d bytes, %.2fs)",
                root, len(records), total_bytes, elapsed,
            )
            self._publish(
                ScanComplete(root_dir=root, elapsed=elapsed, total_files=len(records), total_bytes=total_bytes)
            )
            done.set()

    def _publish(self, notification: Notification) -> None:
        if self._listener is None:
            self.notifications.put(notification)
            return
        try:
            self._listener(notification)
        except Exception as e:
            logger.exception("Notification listener failed: %s", e)

    def _record(self, event: ScanEvent) -> bool:
        """Append to history; a failure is logged and reported, never raised."""
        try:
            self.history.append(event)
        except PersistenceFailure as e:
            logger.warning("History append failed for %s: %s", event.path, e)
            return False
        return True

    # -- history, snapshots, duplicates -------------------------------------

    def query_history(self, filter_text: Optional[str] = None, limit: int = DEFAULT_QUERY_LIMIT) -> list[ScanEvent]:
        return self.history.query(filter_text, limit)

    def file_timeline(self, path: Union[str, Path]) -> list[TimelinePoint]:
        return self.history.timeline(canonical_path(path))

    def create_snapshot(self, description: str, root_dir: Union[str, Path]) -> int:
        """
        Save the last completed scan of root_dir as its new baseline.

        Raises:
            NoPriorScanError: root_dir has not been scanned to completion.
            PersistenceFailure: the snapshot could not be written.
        """
        root = canonical_path(root_dir)
        with self._lock:
            records = self._results.get(root)
        if records is None:
            raise NoPriorScanError(root)
        return self.snapshots.create_snapshot(description, root, records)

    def compare_to_baseline(self, root_dir: Union[str, Path]) -> list[DiffEntry]:
        """
        Diff the last completed scan of root_dir against its latest snapshot.

        Raises:
            NoBaselineError: no snapshot exists for root_dir.
            NoPriorScanError: root_dir has not been scanned to completion.
        """
        root = canonical_path(root_dir)
        snapshot = self.snapshots.latest_snapshot(root)
        with self._lock:
            records = self._results.get(root)
        if records is None:
            raise NoPriorScanError(root)
        baseline = self.snapshots.entries(snapshot.id)
        return self.comparator.diff(records, baseline)

    def list_duplicates(self) -> list[DuplicateGroup]:
        return find_duplicates(self.history.iter_events(), self.duplicate_sample_size)

    # -- single files --------------------------------------------------------

    def _hash_single(self, file_path: Union[str, Path], algorithm: Optional[HashAlgorithm] = None) -> FileRecord:
        path = canonical_path(file_path)
        algo = algorithm or self.algorithm
        digest = self.hash_engine.digest(path, algo)
        try:
            size = os.path.getsize(path)
        except OSError as e:
            raise UnreadableFileError(path, e.strerror or str(e)) from e
        return FileRecord(path=path, hash=digest, extension=file_extension(path), size_bytes=size)

    def compute_file(self, file_path: Union[str, Path]) -> FileRecord:
        """
        Hash one file and record a Computed event.

        Raises:
            UnreadableFileError: the file cannot be read.
        """
        algo = self.algorithm
        record = self._hash_single(file_path, algo)
        self._record(ScanEvent.from_record(record, ResultLabel.COMPUTED, algo))
        return record

    def save_checksum(self, file_path: Union[str, Path], checksum_path: Union[str, Path]) -> FileRecord:
        """Hash one file, write its digest to checksum_path and record SavedHash."""
        algo = self.algorithm
        record = self._hash_single(file_path, algo)
        save_checksum(checksum_path, record.hash)
        self._record(ScanEvent.from_record(record, ResultLabel.SAVED_HASH, algo))
        return record

    def verify_file(self, file_path: Union[str, Path], checksum_path: Union[str, Path]) -> VerificationResult:
        """Compare a file with a stored checksum and record the outcome."""
        path = canonical_path(file_path)
        result = verify_checksum(self.hash_engine, path, checksum_path, self.algorithm)
        label = ResultLabel.VERIFIED_MATCH if result.matched else ResultLabel.VERIFIED_FAIL
        self._record(
            ScanEvent(
                timestamp=utc_now(),
                path=path,
                hash=result.actual,
                result=label,
                algorithm=result.algorithm.value,
            )
        )
        return result

    # -- lifecycle -----------------------------------------------------------

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the watchdog and wait for an in-flight scan."""
        self.set_watchdog(False)
        self.wait(timeout)


def build_orchestrator(config: dict[str, Any], listener: Optional[Listener] = None) -> ScanOrchestrator:
    """Wire storage, hashing and scan settings from a loaded config."""
    database = Database(config["database_path"])
    engine = HashEngine(algorithm=config["algorithm"], chunk_size=config["chunk_size"])
    return ScanOrchestrator(
        history=HistoryLog(database),
        snapshots=SnapshotStore(database),
        hash_engine=engine,
        noise_extensions=tuple(config["noise_extensions"]),
        noise_filter_enabled=config["noise_filter"],
        exclude_patterns=config["exclude_patterns"],
        listener=listener,
        duplicate_sample_size=config["duplicate_sample_size"],
        watchdog_interval=config["watchdog_interval_seconds"],
        watch_events=config["watchdog_watch_events"],
        debounce_seconds=config["watchdog_debounce_seconds"],
    )
