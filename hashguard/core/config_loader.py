"""
HashGuard - Configuration loader.

Loads and validates config.yaml; resolves paths relative to project root.
The database location may be overridden with HASHGUARD_DB.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from hashguard.core.errors import ConfigError
from hashguard.core.models import HashAlgorithm
from hashguard.core.scanner import DEFAULT_NOISE_EXTENSIONS

logger = logging.getLogger(__name__)

DB_ENV_VAR = "HASHGUARD_DB"
_SEVERITIES = ("INFO", "WARNING", "CRITICAL")


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> dict[str, Any]:
    """
    Load YAML config and resolve paths relative to project_root.

    Args:
        config_path: Path to config.yaml; None means defaults only.
        project_root: Base for relative paths; defaults to the current directory.

    Returns:
        Config dict with resolved paths and defaults applied.

    Raises:
        FileNotFoundError: config_path does not exist.
        ConfigError: a value is invalid.
    """
    raw: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path).resolve()
        if not path.is_file():
            raise FileNotFoundError(f"Config not found: {path}")
        with open(path, encoding="utf-8") as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config root must be a mapping: {path}")

    root = (project_root or Path.cwd()).resolve()

    scan = raw.get("scan") or {}
    algorithm = HashAlgorithm.parse(scan.get("algorithm", "strong"))
    chunk_size = int(scan.get("chunk_size", 64 * 1024))
    noise_filter = bool(scan.get("noise_filter", False))
    noise_extensions = [str(e).lower().lstrip(".") for e in scan.get("noise_extensions", DEFAULT_NOISE_EXTENSIONS)]
    exclude_patterns = [str(p) for p in scan.get("exclude_patterns", [])]

    watchdog_raw = raw.get("watchdog") or {}
    watchdog_enabled = bool(watchdog_raw.get("enabled", False))
    interval = float(watchdog_raw.get("interval_seconds", 15))
    watch_events = bool(watchdog_raw.get("watch_events", False))
    debounce = float(watchdog_raw.get("debounce_seconds", 2.0))

    storage = raw.get("storage") or {}
    database_path = os.environ.get(DB_ENV_VAR, "").strip() or storage.get(
        "database_path", "./data/integrity_history.db"
    )

    history_raw = raw.get("history") or {}
    history_limit = int(history_raw.get("default_limit", 100))

    duplicates_raw = raw.get("duplicates") or {}
    sample_size = int(duplicates_raw.get("sample_size", 5))

    alerts_raw = raw.get("alerts") or {}
    log_path = alerts_raw.get("log_path", "./logs/drift.log")
    console_alerts = bool(alerts_raw.get("console_alerts", True))
    min_severity = str(alerts_raw.get("min_severity", "INFO")).upper()
    if min_severity not in _SEVERITIES:
        raise ConfigError(f"alerts.min_severity must be one of {', '.join(_SEVERITIES)}")

    def resolve(p: str) -> Path:
        path_obj = Path(p).expanduser()
        return (root / path_obj).resolve() if not path_obj.is_absolute() else path_obj.resolve()

    return {
        "project_root": root,
        "algorithm": algorithm,
        "chunk_size": max(4096, min(16 * 1024 * 1024, chunk_size)),
        "noise_filter": noise_filter,
        "noise_extensions": noise_extensions,
        "exclude_patterns": exclude_patterns,
        "watchdog_enabled": watchdog_enabled,
        "watchdog_interval_seconds": max(1.0, interval),
        "watchdog_watch_events": watch_events,
        "watchdog_debounce_seconds": max(0.5, debounce),
        "database_path": resolve(database_path),
        "history_limit": max(1, min(10000, history_limit)),
        "duplicate_sample_size": max(1, sample_size),
        "alert_log_path": resolve(log_path),
        "console_alerts": console_alerts,
        "min_severity": min_severity,
    }
