"""
Shared fixtures for HashGuard tests.
Creates isolated temporary trees and in-memory storage.
"""
import tempfile
from pathlib import Path
from typing import Dict

import pytest

from hashguard.core.database import MEMORY, Database
from hashguard.core.history import HistoryLog
from hashguard.core.orchestrator import ScanOrchestrator
from hashguard.core.snapshots import SnapshotStore


@pytest.fixture
def temp_dir():
    """Creates isolated temporary directory (symlink-free path), auto-cleanup after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def sample_tree(temp_dir) -> Dict[str, Path]:
    """
    Small tree:
    - a.txt, b.txt at the root
    - sub/c.txt and sub/deep/d.bin nested
    - copy_of_a.txt duplicating a.txt
    - run.log (noise) next to run.txt
    """
    files = {
        "a": temp_dir / "a.txt",
        "b": temp_dir / "b.txt",
        "copy_a": temp_dir / "copy_of_a.txt",
        "c": temp_dir / "sub" / "c.txt",
        "d": temp_dir / "sub" / "deep" / "d.bin",
        "run_log": temp_dir / "run.log",
        "run_txt": temp_dir / "run.txt",
    }
    (temp_dir / "sub" / "deep").mkdir(parents=True)
    files["a"].write_bytes(b"alpha " * 100)
    files["b"].write_bytes(b"bravo " * 200)
    files["copy_a"].write_bytes(b"alpha " * 100)
    files["c"].write_bytes(b"charlie")
    files["d"].write_bytes(bytes(range(256)) * 64)
    files["run_log"].write_text("log line\n")
    files["run_txt"].write_text("run output\n")
    return files


@pytest.fixture
def database():
    db = Database(MEMORY)
    yield db
    db.close()


@pytest.fixture
def history(database) -> HistoryLog:
    return HistoryLog(database)


@pytest.fixture
def snapshots(database) -> SnapshotStore:
    return SnapshotStore(database)


@pytest.fixture
def orchestrator(history, snapshots):
    orch = ScanOrchestrator(history, snapshots)
    yield orch
    orch.close(timeout=10.0)

