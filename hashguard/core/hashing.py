"""
HashGuard - Hashing module.

Streams file content through a selectable digest (MD5, SHA-1, SHA-256)
and returns the lowercase hex digest.
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional, Union

from hashguard.core.errors import UnreadableFileError
from hashguard.core.models import HashAlgorithm

logger = logging.getLogger(__name__)


class HashEngine:
    """Computes file digests with the configured algorithm."""

    DEFAULT_ALGORITHM = HashAlgorithm.STRONG
    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        algorithm: HashAlgorithm = DEFAULT_ALGORITHM,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self.algorithm = algorithm
        self.chunk_size = max(1, chunk_size)

    @staticmethod
    def digest_length(algorithm: HashAlgorithm) -> int:
        """Number of hex characters produced by algorithm."""
        return hashlib.new(algorithm.value).digest_size * 2

    def digest(
        self,
        file_path: Union[str, Path],
        algorithm: Optional[HashAlgorithm] = None,
    ) -> str:
        """
        Compute the hex digest of a file.

        Args:
            file_path: Path to the file.
            algorithm: Overrides the engine's algorithm for this call.

        Returns:
            Lowercase hex digest.

        Raises:
            UnreadableFileError: the path is not a regular file or reading failed.
        """
        path = Path(file_path)
        algo = algorithm or self.algorithm
        if not path.is_file():
            raise UnreadableFileError(str(path), "not a regular file")
        hasher = hashlib.new(algo.value)
        try:
            with open(path, "rb") as f:
                while chunk := f.read(self.chunk_size):
                    hasher.update(chunk)
        except OSError as e:
            raise UnreadableFileError(str(path), e.strerror or str(e)) from e
        return hasher.hexdigest()
