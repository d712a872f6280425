#!/usr/bin/env python3
"""
HashGuard - CLI entry point.

Exposed as the 'hashguard' console command via pyproject.toml.
"""

import argparse
import logging
import queue
import signal
import sys
import time
from pathlib import Path
from typing import Any, Optional

from rich.console import Console

from hashguard.core.alerts import AlertManager
from hashguard.core.errors import HashGuardError, NoBaselineError
from hashguard.core.models import ScanComplete
from hashguard.core.orchestrator import ScanOrchestrator, build_orchestrator, canonical_path
from hashguard.core.rich_dashboard import (
    ScanDashboard,
    create_live_dashboard,
    diff_table,
    duplicates_table,
    history_table,
    snapshots_table,
    stats_table,
    timeline_table,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).resolve().parent / "config" / "config.yaml"
EXIT_DRIFT = 2
_REFRESH_SECONDS = 0.25


def setup_logging(verbose: bool = False) -> None:
    """Configure logging to stderr (no print-based logging)."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def get_config(args: argparse.Namespace) -> dict[str, Any]:
    """Load config from file; command-line switches override it."""
    from hashguard.core.config_loader import load_config

    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_path
    config = load_config(config_path.resolve(), Path.cwd())
    if getattr(args, "algorithm", None):
        from hashguard.core.models import HashAlgorithm

        config["algorithm"] = HashAlgorithm.parse(args.algorithm)
    if getattr(args, "noise_filter", False):
        config["noise_filter"] = True
    return config


def run_scan(orchestrator: ScanOrchestrator, root: str, console: Console) -> ScanComplete:
    """Start a scan and render its notifications until it completes."""
    accepted = orchestrator.start_scan(root)
    dashboard = ScanDashboard(accepted.root_dir, accepted.algorithm.label)
    live = create_live_dashboard(dashboard, console=console)
    last_refresh = 0.0
    with live:
        while dashboard.complete is None:
            try:
                dashboard.handle(orchestrator.notifications.get(timeout=_REFRESH_SECONDS))
            except queue.Empty:
                pass
            now = time.monotonic()
            if dashboard.complete is not None or now - last_refresh >= _REFRESH_SECONDS:
                live.update(dashboard.get_renderable(), refresh=True)
                last_refresh = now
    return dashboard.complete


def _alert_manager(config: dict[str, Any]) -> AlertManager:
    return AlertManager(
        log_path=config["alert_log_path"],
        console_alerts=config["console_alerts"],
        min_severity=config["min_severity"],
    )


def cmd_scan(
    orchestrator: ScanOrchestrator, args: argparse.Namespace, console: Console, config: dict[str, Any]
) -> int:
    if config["watchdog_enabled"]:
        return cmd_watch(orchestrator, args, console, config)
    run_scan(orchestrator, args.root, console)
    return 0


def cmd_hash(orchestrator: ScanOrchestrator, args: argparse.Namespace, console: Console) -> int:
    if args.save:
        record = orchestrator.save_checksum(args.file, args.save)
    else:
        record = orchestrator.compute_file(args.file)
    console.print(f"{record.hash}  {record.path}")
    return 0


def cmd_verify(
    orchestrator: ScanOrchestrator, args: argparse.Namespace, console: Console, config: dict[str, Any]
) -> int:
    result = orchestrator.verify_file(args.file, args.checksum)
    _alert_manager(config).emit_verification(result)
    if result.matched:
        console.print("[bold green]INTEGRITY CONFIRMED: MATCH[/]")
        return 0
    console.print("[bold red]WARNING: HASH MISMATCH[/]")
    return EXIT_DRIFT


def cmd_history(
    orchestrator: ScanOrchestrator, args: argparse.Namespace, console: Console, config: dict[str, Any]
) -> int:
    limit = args.limit or config["history_limit"]
    console.print(history_table(orchestrator.query_history(args.filter, limit)))
    return 0


def cmd_timeline(orchestrator: ScanOrchestrator, args: argparse.Namespace, console: Console) -> int:
    console.print(timeline_table(args.file, orchestrator.file_timeline(args.file)))
    return 0


def cmd_stats(orchestrator: ScanOrchestrator, console: Console) -> int:
    console.print(stats_table(orchestrator.history.label_counts()))
    matches, failures = orchestrator.history.verification_stats()
    console.print(f"Verifications: {matches} match, {failures} fail")
    return 0


def cmd_snapshot(orchestrator: ScanOrchestrator, args: argparse.Namespace, console: Console) -> int:
    complete = run_scan(orchestrator, args.root, console)
    snapshot_id = orchestrator.create_snapshot(args.description, complete.root_dir)
    console.print(f"Baseline {snapshot_id} saved for {complete.root_dir} ({complete.total_files} files)")
    return 0


def cmd_snapshots(orchestrator: ScanOrchestrator, args: argparse.Namespace, console: Console) -> int:
    root = canonical_path(args.root) if args.root else None
    console.print(snapshots_table(orchestrator.snapshots.list_snapshots(root)))
    return 0


def cmd_compare(
    orchestrator: ScanOrchestrator, args: argparse.Namespace, console: Console, config: dict[str, Any]
) -> int:
    complete = run_scan(orchestrator, args.root, console)
    entries = orchestrator.compare_to_baseline(complete.root_dir)
    if not entries:
        console.print("[bold green]No drift: tree matches its baseline[/]")
        return 0
    _alert_manager(config).emit_batch(entries, complete.root_dir)
    console.print(diff_table(entries))
    return EXIT_DRIFT


def cmd_duplicates(orchestrator: ScanOrchestrator, console: Console) -> int:
    groups = orchestrator.list_duplicates()
    if not groups:
        console.print("No duplicate content found in history")
        return 0
    console.print(duplicates_table(groups))
    return 0


def cmd_watch(
    orchestrator: ScanOrchestrator, args: argparse.Namespace, console: Console, config: dict[str, Any]
) -> int:
    """Rescan root on the watchdog schedule until SIGINT/SIGTERM; report drift after each scan."""
    shutdown = {"stop": False}

    def on_signal(_signum, _frame) -> None:
        shutdown["stop"] = True

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)

    alerts = _alert_manager(config)
    run_scan(orchestrator, args.root, console)
    orchestrator.set_watchdog(True)
    logger.info("Watching %s every %.0fs (Ctrl+C to stop)", orchestrator.last_root, config["watchdog_interval_seconds"])
    try:
        while not shutdown["stop"]:
            try:
                note = orchestrator.notifications.get(timeout=1.0)
            except queue.Empty:
                continue
            if not isinstance(note, ScanComplete):
                continue
            console.print(f"Rescan of {note.root_dir}: {note.total_files} files in {note.elapsed:.2f}s")
            try:
                entries = orchestrator.compare_to_baseline(note.root_dir)
            except NoBaselineError:
                continue
            if entries:
                alerts.emit_batch(entries, note.root_dir)
    finally:
        orchestrator.close(timeout=30.0)
    return 0


def _add_common_args(parser: argparse.ArgumentParser, default: Optional[str]) -> None:
    """
    Add global options so they also work after the subcommand (e.g. hashguard scan . -v).
    Subcommand copies use SUPPRESS so they never overwrite values given before it.
    """
    top_level = default is not None
    parser.add_argument(
        "--config",
        type=str,
        default=default if top_level else argparse.SUPPRESS,
        help="Path to config.yaml (default: package config; use CWD-relative or absolute)",
    )
    parser.add_argument(
        "--algorithm",
        type=str,
        default=None if top_level else argparse.SUPPRESS,
        help="Digest for this run: fast (MD5), legacy (SHA-1) or strong (SHA-256)",
    )
    parser.add_argument(
        "--noise-filter",
        action="store_true",
        dest="noise_filter",
        default=False if top_level else argparse.SUPPRESS,
        help="Skip temporary/log/object files",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False if top_level else argparse.SUPPRESS,
        help="Verbose logging",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hashguard",
        description="File integrity tracking - hash trees, keep history, detect drift and duplicates.",
    )
    _add_common_args(parser, str(DEFAULT_CONFIG))
    sub = parser.add_subparsers(dest="command", required=True)

    def add(name: str, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        _add_common_args(p, None)
        return p

    p = add("scan", "Hash every file under a directory")
    p.add_argument("root")

    p = add("hash", "Hash a single file")
    p.add_argument("file")
    p.add_argument("--save", metavar="CHECKSUM", help="Also write the digest to this checksum file")

    p = add("verify", "Verify a file against a checksum file (exit 2 on mismatch)")
    p.add_argument("file")
    p.add_argument("checksum")

    p = add("history", "Show recorded hash events, newest first")
    p.add_argument("--filter", default=None, help="Substring of path or hash")
    p.add_argument("--limit", type=int, default=None)

    p = add("timeline", "Show the event timeline of one file")
    p.add_argument("file")

    add("stats", "Count history events by result")

    p = add("snapshot", "Scan a directory and save it as the new baseline")
    p.add_argument("root")
    p.add_argument("-d", "--description", default="Baseline")

    p = add("snapshots", "List saved baselines")
    p.add_argument("root", nargs="?", default=None)

    p = add("compare", "Scan a directory and diff it against its baseline (exit 2 on drift)")
    p.add_argument("root")

    add("duplicates", "List files with identical content seen in history")

    p = add("watch", "Scan, then rescan periodically and report drift")
    p.add_argument("root")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLI logic."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        config = get_config(args)
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 1
    except HashGuardError as e:
        logger.error("Failed to load config: %s", e)
        return 1

    console = Console()
    try:
        orchestrator = build_orchestrator(config)
    except HashGuardError as e:
        logger.error("%s", e)
        return 1

    try:
        command = args.command
        if command == "scan":
            return cmd_scan(orchestrator, args, console, config)
        if command == "hash":
            return cmd_hash(orchestrator, args, console)
        if command == "verify":
            return cmd_verify(orchestrator, args, console, config)
        if command == "history":
            return cmd_history(orchestrator, args, console, config)
        if command == "timeline":
            return cmd_timeline(orchestrator, args, console)
        if command == "stats":
            return cmd_stats(orchestrator, console)
        if command == "snapshot":
            return cmd_snapshot(orchestrator, args, console)
        if command == "snapshots":
            return cmd_snapshots(orchestrator, args, console)
        if command == "compare":
            return cmd_compare(orchestrator, args, console, config)
        if command == "duplicates":
            return cmd_duplicates(orchestrator, console)
        if command == "watch":
            return cmd_watch(orchestrator, args, console, config)
        parser.print_help()
        return 0
    except HashGuardError as e:
        logger.error("%s", e)
        return 1
    finally:
        orchestrator.close(timeout=30.0)
        orchestrator.history.db.close()


def cli() -> None:
    """Entry point for the hashguard console command."""
    sys.exit(main())
