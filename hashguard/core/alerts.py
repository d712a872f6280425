"""
HashGuard - Drift alerts and structured logging.

Uses colorama for cross-platform (Linux/Windows) colored console alerts.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

import colorama
from colorama import Fore

from hashguard.core.checksum import VerificationResult
from hashguard.core.models import DiffEntry, DiffStatus, utc_now

logger = logging.getLogger(__name__)

SEVERITY_ORDER = ("INFO", "WARNING", "CRITICAL")

_DIFF_SEVERITY = {
    DiffStatus.ADDED: "INFO",
    DiffStatus.MODIFIED: "WARNING",
    DiffStatus.REMOVED: "WARNING",
}

_colorama_init_done = False


def _ensure_colorama() -> None:
    global _colorama_init_done
    if not _colorama_init_done:
        colorama.init(autoreset=True)
        _colorama_init_done = True


def colored_alert(message: str, level: str, stream=None) -> None:
    """
    Print an alert message in color. Safe on Linux and Windows.

    level: "CRITICAL" (red), "WARNING" (yellow), "INFO" or "OK" (green).
    """
    _ensure_colorama()
    level_upper = level.upper()
    if level_upper == "CRITICAL":
        prefix = Fore.RED
    elif level_upper == "WARNING":
        prefix = Fore.YELLOW
    else:
        prefix = Fore.GREEN
    print(f"{prefix}{message}", file=stream or sys.stderr)


class AlertManager:
    """
    Writes drift and verification alerts as JSON lines to a log file and
    optionally prints colored alerts to the console.
    """

    def __init__(
        self,
        log_path: Path,
        console_alerts: bool = True,
        min_severity: str = "INFO",
    ) -> None:
        self.log_path = Path(log_path)
        self.console_alerts = console_alerts
        self._min_severity = min_severity.upper()
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _severity_level(severity: str) -> int:
        try:
            return SEVERITY_ORDER.index(severity)
        except ValueError:
            return 0

    def _should_log(self, severity: str) -> bool:
        return self._severity_level(severity) >= self._severity_level(self._min_severity)

    def _write(self, record: dict, message: str) -> None:
        severity = record["severity"]
        if not self._should_log(severity):
            return
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            logger.exception("Failed to write alert to %s: %s", self.log_path, e)
        if self.console_alerts:
            colored_alert(f"[{severity}] {message}", severity)

    def emit(self, entry: DiffEntry, root_dir: Optional[str] = None) -> None:
        """Write one drift entry."""
        record = {
            "timestamp": utc_now().isoformat(),
            "kind": "drift",
            "status": entry.status.value,
            "path": entry.path,
            "severity": _DIFF_SEVERITY[entry.status],
            **({"root_dir": root_dir} if root_dir else {}),
            **({"old_hash": entry.old_hash} if entry.old_hash else {}),
            **({"new_hash": entry.new_hash} if entry.new_hash else {}),
        }
        self._write(record, f"{entry.status.value}: {entry.path}")

    def emit_batch(self, entries: Iterable[DiffEntry], root_dir: Optional[str] = None) -> None:
        """Emit multiple entries in order."""
        for entry in entries:
            self.emit(entry, root_dir)

    def emit_verification(self, result: VerificationResult) -> None:
        severity = "INFO" if result.matched else "CRITICAL"
        status = "MATCH" if result.matched else "MISMATCH"
        record = {
            "timestamp": utc_now().isoformat(),
            "kind": "verification",
            "status": status,
            "path": result.path,
            "severity": severity,
            "algorithm": result.algorithm.value,
            "expected": result.expected,
            "actual": result.actual,
        }
        self._write(record, f"{status}: {result.path}")
