"""
HashGuard - Error types.

Per-file and per-directory errors are absorbed by the scan; request-level
errors are raised to the caller of the corresponding operation.
"""


class HashGuardError(Exception):
    """Base class for all HashGuard errors."""


class UnreadableFileError(HashGuardError):
    """A file could not be opened or read for hashing."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        msg = f"Unreadable file: {path}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class DirectoryAccessDenied(HashGuardError):
    """A directory could not be opened; its subtree is skipped."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        msg = f"Cannot open directory: {path}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class AlreadyRunningError(HashGuardError):
    """A scan was requested while another scan is in progress."""

    def __init__(self, active_root: str) -> None:
        self.active_root = active_root
        super().__init__(f"A scan is already running for {active_root}")


class NoPriorScanError(HashGuardError):
    """No completed scan exists for the requested root directory."""

    def __init__(self, root_dir: str) -> None:
        self.root_dir = root_dir
        super().__init__(f"No completed scan for {root_dir}; run a scan first")


class NoBaselineError(HashGuardError):
    """No snapshot exists for the requested root directory."""

    def __init__(self, root_dir: str) -> None:
        self.root_dir = root_dir
        super().__init__(f"No baseline snapshot for {root_dir}; create one first")


class PersistenceFailure(HashGuardError):
    """Reading or writing durable storage failed. History may be incomplete."""


class ConfigError(HashGuardError):
    """Configuration file contains an invalid value."""
