"""
Provides checksum verification for files in the launcher cache.
"""

import hashlib
import logging
from pathlib import Path

log = logging.getLogger(__name__)


class FileIntegrityChecker:
    """A collection of static methods for validating cached file content."""

    READ_SIZE = 1048576  # 1 MB

    @staticmethod
    def sha256_of(filepath: Path) -> str:
        """
        Computes the SHA-256 digest of a file.

        Args:
            filepath: Path to the file.

        Returns:
            The lowercase hex digest.

        Raises:
            OSError: If the file cannot be read.
        """
        hasher = hashlib.sha256()
        with open(filepath, "rb") as f:
            while chunk := f.read(FileIntegrityChecker.READ_SIZE):
                hasher.update(chunk)
        return hasher.hexdigest()

    @staticmethod
    def matches(filepath: Path, checksum: str) -> bool:
        """
        Checks whether a file exists and hashes to the expected checksum.

        Returns:
            True if the file is present and its content matches, False otherwise.
        """
        if not filepath.is_file():
            return False
        try:
            digest = FileIntegrityChecker.sha256_of(filepath)
        except OSError as e:
            log.warning(f"Integrity check could not read '{filepath}': {e}")
            return False
        if digest != checksum:
            log.debug(
                f"Checksum mismatch for '{filepath}': expected {checksum[:12]}, "
                f"found {digest[:12]}."
            )
            return False
        return True
