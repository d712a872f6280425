"""
HashGuard - Checksum files for single-file save/verify.

A checksum file holds one hex digest on its first line, optionally in the
"<digest>  <name>" form written by sha256sum and friends.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from hashguard.core.errors import UnreadableFileError
from hashguard.core.hashing import HashEngine
from hashguard.core.models import HashAlgorithm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    path: str
    expected: str
    actual: str
    algorithm: HashAlgorithm

    @property
    def matched(self) -> bool:
        return self.expected.lower() == self.actual.lower()


def algorithm_for_digest(digest: str) -> Optional[HashAlgorithm]:
    """Guess the algorithm from the hex length of a digest."""
    for algo in HashAlgorithm:
        if len(digest) == HashEngine.digest_length(algo):
            return algo
    return None


def save_checksum(checksum_path: Union[str, Path], digest: str) -> Path:
    path = Path(checksum_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(digest, encoding="utf-8")
    logger.info("Checksum saved to %s", path)
    return path


def read_checksum(checksum_path: Union[str, Path]) -> str:
    """
    First token of the first line of a checksum file.

    Raises:
        UnreadableFileError: the file is missing, unreadable or empty.
    """
    path = Path(checksum_path)
    try:
        with open(path, encoding="utf-8") as f:
            first_line = f.readline()
    except (OSError, UnicodeDecodeError) as e:
        raise UnreadableFileError(str(path), str(e)) from e
    tokens = first_line.strip().split()
    if not tokens:
        raise UnreadableFileError(str(path), "no checksum found")
    return tokens[0]


def verify_checksum(
    engine: HashEngine,
    file_path: Union[str, Path],
    checksum_path: Union[str, Path],
    algorithm: Optional[HashAlgorithm] = None,
) -> VerificationResult:
    """
    Hash file_path and compare with the stored digest, ignoring case.

    When the stored digest length identifies an algorithm, that algorithm
    is used; otherwise the given (or engine) algorithm.
    """
    expected = read_checksum(checksum_path)
    algo = algorithm_for_digest(expected) or algorithm or engine.algorithm
    actual = engine.digest(file_path, algo)
    result = VerificationResult(path=str(file_path), expected=expected, actual=actual, algorithm=algo)
    if result.matched:
        logger.info("Integrity confirmed: %s", file_path)
    else:
        logger.warning("Hash mismatch: %s", file_path)
    return result
