"""
Tests for the append-only HistoryLog.
"""
from datetime import datetime, timedelta, timezone

import pytest

from hashguard.core.errors import PersistenceFailure
from hashguard.core.models import ResultLabel, ScanEvent

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _event(path, digest, result=ResultLabel.AUTO_SCAN, minutes=0):
    return ScanEvent(
        timestamp=T0 + timedelta(minutes=minutes),
        path=path,
        hash=digest,
        result=result,
        algorithm="sha256",
    )


class TestHistoryLog:
    """Append and query behaviour."""

    def test_query_most_recent_first(self, history):
        for i in range(3):
            history.append(_event(f"/data/f{i}.txt", f"h{i}", minutes=i))
        events = history.query()
        assert [e.path for e in events] == ["/data/f2.txt", "/data/f1.txt", "/data/f0.txt"]
        assert len(history) == 3

    def test_event_round_trip(self, history):
        original = _event("/data/a.txt", "abc123", ResultLabel.SAVED_HASH)
        history.append(original)
        (stored,) = history.query()
        assert stored == original

    def test_limit(self, history):
        for i in range(10):
            history.append(_event(f"/data/f{i}.txt", f"h{i}", minutes=i))
        events = history.query(limit=4)
        assert len(events) == 4
        assert events[0].path == "/data/f9.txt"

    def test_filter_matches_path_or_hash(self, history):
        history.append(_event("/data/report.pdf", "aaa111"))
        history.append(_event("/data/photo.jpg", "bbb222"))
        history.append(_event("/other/notes.txt", "ccc333"))

        assert [e.path for e in history.query("report")] == ["/data/report.pdf"]
        assert [e.path for e in history.query("bbb2")] == ["/data/photo.jpg"]
        assert len(history.query("/data/")) == 2
        assert history.query("nothing-like-this") == []

    def test_filter_wildcards_are_literal(self, history):
        history.append(_event("/data/100%.txt", "h1"))
        history.append(_event("/data/plain.txt", "h2"))
        history.append(_event("/data/a_b.txt", "h3"))
        assert [e.path for e in history.query("%")] == ["/data/100%.txt"]
        assert [e.path for e in history.query("_")] == ["/data/a_b.txt"]

    def test_same_file_recorded_each_time(self, history):
        """History never deduplicates."""
        history.append(_event("/data/a.txt", "h1", minutes=0))
        history.append(_event("/data/a.txt", "h1", minutes=1))
        assert len(history.query("a.txt")) == 2

    def test_timeline_oldest_first(self, history):
        history.append(_event("/data/a.txt", "h1", ResultLabel.COMPUTED, minutes=0))
        history.append(_event("/data/b.txt", "h2", minutes=1))
        history.append(_event("/data/a.txt", "h1", ResultLabel.VERIFIED_FAIL, minutes=2))
        history.append(_event("/data/a.txt", "h1", ResultLabel.VERIFIED_MATCH, minutes=3))

        points = history.timeline("/data/a.txt")
        assert [p.result for p in points] == [
            ResultLabel.COMPUTED,
            ResultLabel.VERIFIED_FAIL,
            ResultLabel.VERIFIED_MATCH,
        ]
        assert [p.ok for p in points] == [True, False, True]
        assert points[0].timestamp == T0

    def test_label_counts_and_verification_stats(self, history):
        history.append(_event("/a", "1", ResultLabel.AUTO_SCAN))
        history.append(_event("/b", "2", ResultLabel.AUTO_SCAN))
        history.append(_event("/a", "1", ResultLabel.VERIFIED_MATCH))
        history.append(_event("/b", "3", ResultLabel.VERIFIED_FAIL))
        history.append(_event("/b", "3", ResultLabel.VERIFIED_FAIL))

        counts = history.label_counts()
        assert counts[ResultLabel.AUTO_SCAN] == 2
        assert ResultLabel.COMPUTED not in counts
        assert history.verification_stats() == (1, 2)

    def test_iter_events_insertion_order(self, history):
        history.append(_event("/first", "1"))
        history.append(_event("/second", "2"))
        assert [e.path for e in history.iter_events()] == ["/first", "/second"]

    def test_write_failure_raises_persistence_failure(self, history, database):
        database.close()
        with pytest.raises(PersistenceFailure):
            history.append(_event("/a", "1"))
