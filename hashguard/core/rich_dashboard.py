"""
HashGuard - Rich console rendering.

Live scan panel (throughput, latest files, skips) plus table builders for
history, timelines, snapshots, drift and duplicate groups. Rendering only;
all data comes from the orchestrator's notifications and queries.
"""

from collections import deque
from typing import Any, Iterable, Optional

from rich import box as rich_box
from rich.console import Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from hashguard.core.models import (
    DiffEntry,
    DiffStatus,
    DuplicateGroup,
    PersistenceWarning,
    ResultLabel,
    RunningMetrics,
    ScanComplete,
    ScanEvent,
    ScanProgress,
    ScanSkipped,
    Snapshot,
    TimelinePoint,
)

RECENT_FILES = 10

_STATUS_STYLE = {
    DiffStatus.ADDED: "green",
    DiffStatus.MODIFIED: "bold yellow",
    DiffStatus.REMOVED: "bold red",
}


def _style_result(result: ResultLabel) -> str:
    if result is ResultLabel.VERIFIED_FAIL:
        return "bold red"
    if result is ResultLabel.VERIFIED_MATCH:
        return "bold green"
    return "cyan"


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


class ScanDashboard:
    """Accumulates scan notifications and renders the live scan panel."""

    def __init__(self, root_dir: str, algorithm_label: str = "", recent: int = RECENT_FILES) -> None:
        self._root = root_dir
        self._algorithm = algorithm_label
        self._recent: deque[ScanProgress] = deque(maxlen=recent)
        self._warnings: deque[str] = deque(maxlen=recent)
        self._metrics = RunningMetrics(0, 0, 0.0)
        self.skipped = 0
        self.complete: Optional[ScanComplete] = None

    def handle(self, notification: Any) -> None:
        """Apply one orchestrator notification."""
        if isinstance(notification, ScanProgress):
            self._recent.append(notification)
            self._metrics = notification.metrics
        elif isinstance(notification, ScanSkipped):
            self.skipped += 1
            self._warnings.append(f"Skipped {notification.path}: {notification.reason}")
        elif isinstance(notification, PersistenceWarning):
            self._warnings.append(notification.message)
        elif isinstance(notification, ScanComplete):
            self.complete = notification

    def _make_summary_panel(self) -> Panel:
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column()
        m = self._metrics
        table.add_row("Root", self._root)
        if self._algorithm:
            table.add_row("Algorithm", self._algorithm)
        table.add_row("Files", str(m.files_scanned))
        table.add_row("Data", format_bytes(m.bytes_scanned))
        table.add_row("Speed", f"{m.files_per_second:.1f} files/s  {m.mb_per_second:.2f} MB/s")
        table.add_row("Skipped", str(self.skipped))
        if self.complete is not None:
            status = Text(f"Complete in {self.complete.elapsed:.2f}s", style="bold green")
        else:
            status = Text("Scanning...", style="bold yellow")
        table.add_row("Status", status)
        return Panel(table, title="[bold] Scan [/]", border_style="cyan", box=rich_box.ROUNDED, padding=(0, 1))

    def _make_recent_panel(self) -> Panel:
        table = Table(show_header=True, box=rich_box.SIMPLE, padding=(0, 1))
        table.add_column("Hash", style="green", no_wrap=True)
        table.add_column("Size", justify="right")
        table.add_column("File", overflow="fold")
        if self._recent:
            for p in reversed(self._recent):
                table.add_row(p.record.hash[:16], format_bytes(p.record.size_bytes), p.record.path)
        else:
            table.add_row(Text("—", style="dim"), "", Text("No files yet", style="dim"))
        return Panel(table, title="[bold] Recent Files [/]", border_style="magenta", box=rich_box.ROUNDED)

    def get_renderable(self) -> RenderableType:
        parts: list[RenderableType] = [self._make_summary_panel(), self._make_recent_panel()]
        if self._warnings:
            parts.append(
                Panel(
                    Text("\n".join(self._warnings), style="yellow"),
                    title="[bold] Warnings [/]",
                    border_style="yellow",
                    box=rich_box.ROUNDED,
                )
            )
        return Group(*parts)


def create_live_dashboard(
    dashboard: ScanDashboard,
    console: Optional[Any] = None,
    refresh_per_second: float = 4.0,
) -> Live:
    """Single Live instance; update with live.update(dashboard.get_renderable())."""
    return Live(
        dashboard.get_renderable(),
        console=console,
        refresh_per_second=refresh_per_second,
        auto_refresh=False,
        transient=False,
    )


def history_table(events: Iterable[ScanEvent]) -> Table:
    table = Table(title="History", box=rich_box.SIMPLE_HEAVY)
    table.add_column("Time", no_wrap=True)
    table.add_column("Result")
    table.add_column("Algo", style="dim")
    table.add_column("Hash", style="green", overflow="fold")
    table.add_column("File", overflow="fold")
    for e in events:
        table.add_row(
            e.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            Text(e.result.value, style=_style_result(e.result)),
            e.algorithm or "",
            e.hash,
            e.path,
        )
    return table


def timeline_table(path: str, points: Iterable[TimelinePoint]) -> Table:
    table = Table(title=f"Timeline: {path}", box=rich_box.SIMPLE)
    table.add_column("Time", no_wrap=True)
    table.add_column("Result")
    table.add_column("Status")
    for p in points:
        table.add_row(
            p.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            p.result.value,
            Text("OK", style="green") if p.ok else Text("FAIL", style="bold red"),
        )
    return table


def stats_table(counts: dict[ResultLabel, int]) -> Table:
    table = Table(title="History Statistics", box=rich_box.SIMPLE)
    table.add_column("Result")
    table.add_column("Events", justify="right")
    for label in ResultLabel:
        table.add_row(Text(label.value, style=_style_result(label)), str(counts.get(label, 0)))
    table.add_row(Text("Total", style="bold"), str(sum(counts.values())))
    return table


def snapshots_table(snapshots: Iterable[Snapshot]) -> Table:
    table = Table(title="Snapshots", box=rich_box.SIMPLE)
    table.add_column("ID", justify="right")
    table.add_column("Created", no_wrap=True)
    table.add_column("Root", overflow="fold")
    table.add_column("Description", overflow="fold")
    for s in snapshots:
        table.add_row(str(s.id), s.timestamp.strftime("%Y-%m-%d %H:%M:%S"), s.root_dir, s.description)
    return table


def diff_table(entries: Iterable[DiffEntry]) -> Table:
    table = Table(title="Baseline Drift", box=rich_box.SIMPLE)
    table.add_column("Status")
    table.add_column("File", overflow="fold")
    for e in entries:
        table.add_row(Text(e.status.value, style=_STATUS_STYLE[e.status]), e.path)
    return table


def duplicates_table(groups: Iterable[DuplicateGroup]) -> Table:
    table = Table(title="Duplicate Content", box=rich_box.SIMPLE)
    table.add_column("Count", justify="right")
    table.add_column("Hash", style="green", overflow="fold")
    table.add_column("Files", overflow="fold")
    for g in groups:
        paths = "\n".join(g.sample_paths)
        if g.has_more:
            paths += f"\n... and {g.count - len(g.sample_paths)} more"
        table.add_row(str(g.count), g.hash, paths)
    return table
