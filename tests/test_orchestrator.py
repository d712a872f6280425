"""
Tests for ScanOrchestrator: scan lifecycle, notifications, history,
snapshots, comparison and single-file operations.
"""
import queue
import threading

import pytest

from hashguard.core.errors import (
    AlreadyRunningError,
    DirectoryAccessDenied,
    NoBaselineError,
    NoPriorScanError,
    PersistenceFailure,
    UnreadableFileError,
)
from hashguard.core.hashing import HashEngine
from hashguard.core.history import HistoryLog
from hashguard.core.models import (
    DiffStatus,
    HashAlgorithm,
    PersistenceWarning,
    ResultLabel,
    ScanComplete,
    ScanProgress,
    ScanSkipped,
)
from hashguard.core.orchestrator import ScanOrchestrator


def drain(orch):
    """All notifications queued so far."""
    out = []
    while True:
        try:
            out.append(orch.notifications.get_nowait())
        except queue.Empty:
            return out


def scan_and_wait(orch, root):
    orch.start_scan(root)
    assert orch.wait(timeout=10.0)
    return drain(orch)


class BlockingEngine(HashEngine):
    """Holds the scan thread inside digest() until released."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def digest(self, file_path, algorithm=None):
        self.entered.set()
        self.release.wait(10)
        return super().digest(file_path, algorithm)


class FailingEngine(HashEngine):
    """Refuses to read one specific file."""

    def __init__(self, bad_path):
        super().__init__()
        self.bad_path = str(bad_path)

    def digest(self, file_path, algorithm=None):
        if str(file_path) == self.bad_path:
            raise UnreadableFileError(self.bad_path, "Permission denied")
        return super().digest(file_path, algorithm)


class BrokenHistory(HistoryLog):
    def append(self, event):
        raise PersistenceFailure("disk full")


class TestScanLifecycle:
    """Starting, running and completing scans."""

    def test_scan_records_every_file(self, orchestrator, sample_tree, temp_dir):
        accepted = orchestrator.start_scan(temp_dir)
        assert accepted.root_dir == str(temp_dir)
        assert accepted.algorithm is HashAlgorithm.STRONG
        assert orchestrator.wait(10)

        records = orchestrator.last_results(temp_dir)
        assert sorted(r.path for r in records) == sorted(str(p) for p in sample_tree.values())
        assert all(len(r.hash) == 64 for r in records)
        by_path = {r.path: r for r in records}
        assert by_path[str(sample_tree["a"])].size_bytes == 600
        assert by_path[str(sample_tree["a"])].extension == "txt"

    def test_notifications_progress_then_complete(self, orchestrator, sample_tree, temp_dir):
        notes = scan_and_wait(orchestrator, temp_dir)
        progress = [n for n in notes if isinstance(n, ScanProgress)]
        assert len(progress) == len(sample_tree)
        assert isinstance(notes[-1], ScanComplete)
        assert sum(isinstance(n, ScanComplete) for n in notes) == 1

        counts = [p.metrics.files_scanned for p in progress]
        assert counts == list(range(1, len(sample_tree) + 1))
        complete = notes[-1]
        assert complete.total_files == len(sample_tree)
        assert complete.total_bytes == sum(p.stat().st_size for p in sample_tree.values())
        assert complete.root_dir == str(temp_dir)
        assert not orchestrator.is_scanning

    def test_history_gets_autoscan_events(self, orchestrator, sample_tree, temp_dir):
        scan_and_wait(orchestrator, temp_dir)
        events = orchestrator.query_history(limit=1000)
        assert len(events) == len(sample_tree)
        assert {e.result for e in events} == {ResultLabel.AUTO_SCAN}
        assert {e.algorithm for e in events} == {"sha256"}

    def test_empty_directory(self, orchestrator, temp_dir):
        notes = scan_and_wait(orchestrator, temp_dir)
        assert len(notes) == 1
        assert notes[0].total_files == 0
        assert orchestrator.last_results(temp_dir) == []

    def test_root_must_be_directory(self, orchestrator, sample_tree, temp_dir):
        with pytest.raises(DirectoryAccessDenied):
            orchestrator.start_scan(sample_tree["a"])
        with pytest.raises(DirectoryAccessDenied):
            orchestrator.start_scan(temp_dir / "missing")
        assert not orchestrator.is_scanning

    def test_second_scan_rejected_while_running(self, history, snapshots, sample_tree, temp_dir):
        engine = BlockingEngine()
        orch = ScanOrchestrator(history, snapshots, hash_engine=engine)
        other = temp_dir / "sub"
        orch.start_scan(temp_dir)
        try:
            assert engine.entered.wait(10)
            with pytest.raises(AlreadyRunningError) as exc_info:
                orch.start_scan(other)
            assert exc_info.value.active_root == str(temp_dir)
            assert orch.try_start_scan(other) is False
            assert orch.is_scanning
            assert orch.last_root == str(temp_dir)
        finally:
            engine.release.set()
            assert orch.wait(10)

        notes = drain(orch)
        completes = [n for n in notes if isinstance(n, ScanComplete)]
        assert [c.root_dir for c in completes] == [str(temp_dir)]
        assert orch.last_results(other) is None

    def test_wait_follows_scan_started_on_completion(self, history, snapshots, sample_tree, temp_dir):
        """A scan accepted from the ScanComplete listener keeps wait() blocking."""
        engine = BlockingEngine()
        engine.release.set()
        second_started = threading.Event()
        holder = {}

        def on_note(note):
            if isinstance(note, ScanComplete) and not second_started.is_set():
                engine.release.clear()
                engine.entered.clear()
                holder["orch"].start_scan(temp_dir / "sub")
                second_started.set()

        orch = ScanOrchestrator(history, snapshots, hash_engine=engine, listener=on_note)
        holder["orch"] = orch
        orch.start_scan(temp_dir)
        try:
            assert second_started.wait(10)
            assert engine.entered.wait(10)
            assert orch.is_scanning
            assert orch.wait(0) is False
            assert orch.wait(0.2) is False
        finally:
            engine.release.set()
        assert orch.wait(10)
        assert not orch.is_scanning
        assert len(orch.last_results(temp_dir / "sub")) == 2

    def test_unreadable_file_skipped(self, history, snapshots, sample_tree, temp_dir):
        bad = sample_tree["b"]
        orch = ScanOrchestrator(history, snapshots, hash_engine=FailingEngine(bad))
        notes = scan_and_wait(orch, temp_dir)

        skipped = [n for n in notes if isinstance(n, ScanSkipped)]
        assert [s.path for s in skipped] == [str(bad)]
        assert skipped[0].reason == "Permission denied"
        paths = {r.path for r in orch.last_results(temp_dir)}
        assert str(bad) not in paths
        assert len(paths) == len(sample_tree) - 1
        assert notes[-1].total_files == len(sample_tree) - 1

    def test_persistence_failure_does_not_stop_scan(self, database, snapshots, sample_tree, temp_dir):
        orch = ScanOrchestrator(BrokenHistory(database), snapshots)
        notes = scan_and_wait(orch, temp_dir)

        warnings = [n for n in notes if isinstance(n, PersistenceWarning)]
        assert len(warnings) == 1
        assert len([n for n in notes if isinstance(n, ScanProgress)]) == len(sample_tree)
        assert notes[-1].total_files == len(sample_tree)
        assert len(orch.last_results(temp_dir)) == len(sample_tree)

    def test_listener_receives_notifications(self, history, snapshots, sample_tree, temp_dir):
        received = []
        orch = ScanOrchestrator(history, snapshots, listener=received.append)
        orch.start_scan(temp_dir)
        assert orch.wait(10)
        assert isinstance(received[-1], ScanComplete)
        assert orch.notifications.empty()

    def test_failing_listener_does_not_break_scan(self, history, snapshots, sample_tree, temp_dir):
        def explode(_note):
            raise RuntimeError("listener bug")

        orch = ScanOrchestrator(history, snapshots, listener=explode)
        orch.start_scan(temp_dir)
        assert orch.wait(10)
        assert len(orch.last_results(temp_dir)) == len(sample_tree)

    def test_metrics_after_scan(self, orchestrator, sample_tree, temp_dir):
        scan_and_wait(orchestrator, temp_dir)
        metrics = orchestrator.metrics()
        assert metrics.files_scanned == len(sample_tree)
        assert metrics.elapsed_seconds >= 0


class TestSettings:
    def test_algorithm_applies_to_next_scan(self, orchestrator, sample_tree, temp_dir):
        orchestrator.set_algorithm("fast")
        assert orchestrator.algorithm is HashAlgorithm.FAST
        scan_and_wait(orchestrator, temp_dir)
        assert all(len(r.hash) == 32 for r in orchestrator.last_results(temp_dir))
        assert {e.algorithm for e in orchestrator.query_history()} == {"md5"}

    def test_noise_filter_toggle(self, orchestrator, sample_tree, temp_dir):
        """run.log is ignored only while the filter is on."""
        orchestrator.set_noise_filter(True)
        scan_and_wait(orchestrator, temp_dir)
        paths = {r.path for r in orchestrator.last_results(temp_dir)}
        assert str(sample_tree["run_log"]) not in paths
        assert str(sample_tree["run_txt"]) in paths

        orchestrator.set_noise_filter(False)
        scan_and_wait(orchestrator, temp_dir)
        paths = {r.path for r in orchestrator.last_results(temp_dir)}
        assert str(sample_tree["run_log"]) in paths


class TestBaselines:
    """Snapshot and compare flow."""

    def test_snapshot_requires_prior_scan(self, orchestrator, temp_dir):
        with pytest.raises(NoPriorScanError):
            orchestrator.create_snapshot("baseline", temp_dir)

    def test_compare_requires_baseline(self, orchestrator, sample_tree, temp_dir):
        scan_and_wait(orchestrator, temp_dir)
        with pytest.raises(NoBaselineError):
            orchestrator.compare_to_baseline(temp_dir)

    def test_unchanged_tree_has_no_drift(self, orchestrator, sample_tree, temp_dir):
        scan_and_wait(orchestrator, temp_dir)
        orchestrator.create_snapshot("baseline", temp_dir)
        scan_and_wait(orchestrator, temp_dir)
        assert orchestrator.compare_to_baseline(temp_dir) == []

    def test_drift_detected(self, orchestrator, sample_tree, temp_dir):
        scan_and_wait(orchestrator, temp_dir)
        snapshot_id = orchestrator.create_snapshot("baseline", temp_dir)
        assert len(orchestrator.snapshots.entries(snapshot_id)) == len(sample_tree)

        sample_tree["b"].write_bytes(b"changed")
        sample_tree["c"].unlink()
        new_file = temp_dir / "new.txt"
        new_file.write_text("new")
        scan_and_wait(orchestrator, temp_dir)

        entries = orchestrator.compare_to_baseline(temp_dir)
        assert {(e.status, e.path) for e in entries} == {
            (DiffStatus.MODIFIED, str(sample_tree["b"])),
            (DiffStatus.REMOVED, str(sample_tree["c"])),
            (DiffStatus.ADDED, str(new_file)),
        }

    def test_duplicates_from_history(self, orchestrator, sample_tree, temp_dir):
        scan_and_wait(orchestrator, temp_dir)
        groups = orchestrator.list_duplicates()
        assert len(groups) == 1
        assert sorted(groups[0].sample_paths) == sorted([str(sample_tree["a"]), str(sample_tree["copy_a"])])

        # A rescan adds events but not new distinct paths.
        scan_and_wait(orchestrator, temp_dir)
        assert orchestrator.list_duplicates()[0].count == 2


class TestSingleFile:
    """Compute, save and verify outside of a tree scan."""

    def test_compute_file_records_event(self, orchestrator, sample_tree):
        record = orchestrator.compute_file(sample_tree["c"])
        assert record.path == str(sample_tree["c"])
        assert len(record.hash) == 64
        (event,) = orchestrator.query_history()
        assert event.result is ResultLabel.COMPUTED
        assert event.hash == record.hash

    def test_compute_missing_file(self, orchestrator, temp_dir):
        with pytest.raises(UnreadableFileError):
            orchestrator.compute_file(temp_dir / "missing.txt")
        assert orchestrator.query_history() == []

    def test_save_and_verify(self, orchestrator, sample_tree, temp_dir):
        checksum = temp_dir / "sums" / "c.sha256"
        record = orchestrator.save_checksum(sample_tree["c"], checksum)
        assert checksum.read_text() == record.hash

        result = orchestrator.verify_file(sample_tree["c"], checksum)
        assert result.matched

        sample_tree["c"].write_bytes(b"tampered")
        result = orchestrator.verify_file(sample_tree["c"], checksum)
        assert not result.matched

        points = orchestrator.file_timeline(sample_tree["c"])
        assert [p.result for p in points] == [
            ResultLabel.SAVED_HASH,
            ResultLabel.VERIFIED_MATCH,
            ResultLabel.VERIFIED_FAIL,
        ]
        assert orchestrator.history.verification_stats() == (1, 1)

    def test_verify_uses_stored_digest_algorithm(self, orchestrator, sample_tree, temp_dir):
        """An MD5 checksum is verified with MD5 even when the engine is set to SHA-256."""
        checksum = temp_dir / "c.md5"
        orchestrator.set_algorithm(HashAlgorithm.FAST)
        orchestrator.save_checksum(sample_tree["c"], checksum)
        orchestrator.set_algorithm(HashAlgorithm.STRONG)
        result = orchestrator.verify_file(sample_tree["c"], checksum)
        assert result.matched
        assert result.algorithm is HashAlgorithm.FAST


class TestRunningMetrics:
    def test_throughput(self):
        from hashguard.core.models import RunningMetrics

        metrics = RunningMetrics(files_scanned=10, bytes_scanned=4 * 1024 * 1024, elapsed_seconds=2.0)
        assert metrics.files_per_second == 5.0
        assert metrics.mb_per_second == 2.0

    def test_zero_elapsed(self):
        from hashguard.core.models import RunningMetrics

        metrics = RunningMetrics(files_scanned=3, bytes_scanned=100, elapsed_seconds=0.0)
        assert metrics.files_per_second == 0.0
        assert metrics.mb_per_second == 0.0
