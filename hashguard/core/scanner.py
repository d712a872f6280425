"""
HashGuard - Directory walker.

Enumerates a directory tree depth-first with an explicit stack, applying
the noise filter and exclude patterns to files (never to directories).
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Union

from hashguard.core.models import FileDescriptor

logger = logging.getLogger(__name__)

DEFAULT_NOISE_EXTENSIONS = ("tmp", "log", "o", "obj", "swp", "bak", "pyc")

FilterPredicate = Callable[[str], bool]


def file_extension(name: str) -> str:
    """Text after the last dot of a file name; empty for dot-files and names without one."""
    base = os.path.basename(name)
    dot = base.rfind(".")
    if dot <= 0:
        return ""
    return base[dot + 1:]


class NoiseFilter:
    """
    Extension predicate: returns False for noise extensions when enabled.
    Comparison is case-insensitive and ignores a leading dot.
    """

    def __init__(
        self,
        extensions: Iterable[str] = DEFAULT_NOISE_EXTENSIONS,
        enabled: bool = True,
    ) -> None:
        self.extensions = frozenset(e.lower().lstrip(".") for e in extensions)
        self.enabled = enabled

    def __call__(self, extension: str) -> bool:
        if not self.enabled:
            return True
        return extension.lower().lstrip(".") not in self.extensions


def accept_all(_extension: str) -> bool:
    return True


class DirectoryWalker:
    """
    Yields a FileDescriptor for every directory and every accepted file
    under a root. Unreadable directories and symlink cycles are logged
    and skipped; the traversal continues with the siblings.
    """

    def __init__(
        self,
        filter_predicate: Optional[FilterPredicate] = None,
        exclude_patterns: Optional[list[str]] = None,
        on_error: Optional[Callable[[str, OSError], None]] = None,
    ) -> None:
        self.filter_predicate = filter_predicate or accept_all
        self.exclude_patterns = exclude_patterns or []
        self._on_error = on_error

    def _should_exclude(self, path: str, root: str) -> bool:
        """Check if path matches any exclude pattern (glob-style relative to root)."""
        if not self.exclude_patterns:
            return False
        rel_str = os.path.relpath(path, root)
        name = os.path.basename(path)
        for pattern in self.exclude_patterns:
            if "/" in pattern:
                if fnmatch.fnmatch(rel_str, pattern) or fnmatch.fnmatch(rel_str, "**/" + pattern):
                    return True
            elif fnmatch.fnmatch(name, pattern):
                return True
        return False

    def _report(self, path: str, error: OSError) -> None:
        logger.warning("Skipping directory %s: %s", path, error.strerror or error)
        if self._on_error is not None:
            self._on_error(path, error)

    def walk(self, root_dir: Union[str, Path]) -> Iterator[FileDescriptor]:
        """
        Depth-first traversal of root_dir.

        Entries of each directory are visited in name order, so an
        unchanged tree always yields the same sequence.
        """
        root = str(root_dir)
        visited: set[tuple[int, int]] = set()
        stack: list[str] = [root]
        while stack:
            directory = stack.pop()
            try:
                st = os.stat(directory)
            except OSError as e:
                self._report(directory, e)
                continue
            key = (st.st_dev, st.st_ino)
            if key in visited:
                logger.warning("Skipping directory %s: already visited (symlink cycle)", directory)
                continue
            visited.add(key)
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda entry: entry.name)
            except OSError as e:
                self._report(directory, e)
                continue

            subdirs: list[str] = []
            for entry in entries:
                try:
                    is_dir = entry.is_dir()
                    is_file = not is_dir and entry.is_file()
                except OSError as e:
                    logger.warning("Skipping %s: %s", entry.path, e)
                    continue
                if is_dir:
                    subdirs.append(entry.path)
                    continue
                if not is_file:
                    logger.debug("Skipping non-regular entry %s", entry.path)
                    continue
                if not self.filter_predicate(file_extension(entry.name)):
                    continue
                if self._should_exclude(entry.path, root):
                    continue
                yield FileDescriptor(path=entry.path, is_directory=False)

            for sub in subdirs:
                yield FileDescriptor(path=sub, is_directory=True)
            # Reversed so the first subdirectory by name is popped next.
            stack.extend(reversed(subdirs))
