"""
HashGuard - Watchdog: periodic skip-if-busy re-scan scheduler.

Every interval the scheduler asks the orchestrator to rescan the last
root. A tick that arrives while a scan is running is dropped, never
queued. Optionally a watchdog Observer marks a debounced trigger when
files change so the next tick fires before the interval elapses.
"""

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from hashguard.core.scanner import file_extension

if TYPE_CHECKING:
    from hashguard.core.orchestrator import ScanOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 15.0


class DebouncedScanTrigger:
    """
    Tracks a pending scan request and its debounce time. The scheduler
    calls should_run_scan() each poll; when True it ticks and then
    clear_pending().
    """

    def __init__(self, debounce_seconds: float = 2.0) -> None:
        self._debounce_sec = max(0.5, debounce_seconds)
        self._lock = threading.Lock()
        self._pending_time: Optional[float] = None

    def set_pending(self) -> None:
        with self._lock:
            if self._pending_time is None:
                self._pending_time = time.monotonic()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending_time is not None

    def should_run_scan(self) -> bool:
        """True if a scan should run (pending and debounce elapsed)."""
        with self._lock:
            if self._pending_time is None:
                return False
            return time.monotonic() - self._pending_time >= self._debounce_sec

    def clear_pending(self) -> None:
        with self._lock:
            self._pending_time = None


class ChangeEventHandler(FileSystemEventHandler):
    """Marks the trigger pending on create/modify/delete/move of relevant files."""

    def __init__(
        self,
        trigger: DebouncedScanTrigger,
        filter_predicate: Optional[Callable[[str], bool]] = None,
    ) -> None:
        super().__init__()
        self._trigger = trigger
        self._filter = filter_predicate

    def _is_relevant(self, event: FileSystemEvent) -> bool:
        if event.is_directory or self._filter is None:
            return True
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(self._filter(file_extension(str(p))) for p in paths if p)

    def _schedule_scan(self, event: FileSystemEvent, kind: str) -> None:
        if not self._is_relevant(event):
            return
        self._trigger.set_pending()
        logger.debug("Change event: %s %s (rescan after debounce)", kind, event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        self._schedule_scan(event, "Created")

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._schedule_scan(event, "Modified")

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._schedule_scan(event, "Deleted")

    def on_moved(self, event: FileSystemEvent) -> None:
        self._schedule_scan(event, "Moved")


class WatchdogScheduler:
    """Background thread driving periodic rescans of the orchestrator's last root."""

    def __init__(
        self,
        orchestrator: "ScanOrchestrator",
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        watch_events: bool = False,
        debounce_seconds: float = 2.0,
    ) -> None:
        self._orchestrator = orchestrator
        self.interval = max(0.1, float(interval_seconds))
        self._poll = min(1.0, self.interval)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_tick = time.monotonic()
        self.trigger: Optional[DebouncedScanTrigger] = (
            DebouncedScanTrigger(debounce_seconds) if watch_events else None
        )
        self._observer: Optional[Observer] = None
        self._observed_root: Optional[str] = None
        self.ticks_started = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._last_tick = time.monotonic()
        self._thread = threading.Thread(target=self._run, name="hashguard-watchdog", daemon=True)
        self._thread.start()
        logger.info("Watchdog started (interval=%.0fs, events=%s)", self.interval, self.trigger is not None)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._stop_observer()
        logger.info("Watchdog stopped")

    def tick(self) -> bool:
        """
        Try to start a rescan of the last root.

        Returns True if a scan started; False if there is no root yet or a
        scan is already running (the tick is dropped).
        """
        if self.trigger is not None:
            self.trigger.clear_pending()
        root = self._orchestrator.last_root
        if root is None:
            return False
        self._ensure_observer(root)
        started = self._orchestrator.try_start_scan(root)
        if started:
            self.ticks_started += 1
        else:
            self.ticks_skipped += 1
        return started

    def _run(self) -> None:
        root = self._orchestrator.last_root
        if root is not None:
            self._ensure_observer(root)
        while not self._stop.wait(self._poll):
            now = time.monotonic()
            due = now - self._last_tick >= self.interval
            if self.trigger is not None and self.trigger.should_run_scan():
                due = True
            if due:
                self._last_tick = now
                try:
                    self.tick()
                except Exception as e:
                    logger.exception("Watchdog tick failed: %s", e)

    def _ensure_observer(self, root: str) -> None:
        if self.trigger is None or root == self._observed_root:
            return
        self._stop_observer()
        handler = ChangeEventHandler(self.trigger, self._orchestrator.filter_predicate)
        observer = Observer()
        try:
            observer.schedule(handler, root, recursive=True)
        except OSError as e:
            logger.warning("Cannot watch %s: %s", root, e)
            return
        observer.start()
        self._observer = observer
        self._observed_root = root
        logger.info("Watchdog observing %s (recursive=True)", root)

    def _stop_observer(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self._observed_root = None
