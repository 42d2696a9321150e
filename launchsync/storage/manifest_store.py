"""
A file-based store for the cached manifest that lives inside the cache directory.
Writes are atomic: a crash mid-write never leaves a corrupt cached manifest.
"""

import logging
import os
import tempfile
from pathlib import Path

from launchsync.models.manifest import MANIFEST_FILENAME, Manifest

log = logging.getLogger(__name__)


class ManifestStore:
    """
    Persists the manifest that describes the file set currently on disk.
    """

    def __init__(self, cache_dir_path: Path, filename: str = MANIFEST_FILENAME):
        """
        Initializes the store.

        Args:
            cache_dir_path: The cache directory holding the synchronized files.
            filename: Name of the cached manifest file inside that directory.
        """
        self.cache_dir = cache_dir_path
        self.manifest_path = cache_dir_path / filename

    def load(self, path: Path | None = None) -> Manifest | None:
        """
        Reads the cached manifest. Returns None if there is none (first run) or
        if the file cannot be parsed.
        """
        manifest_path = path or self.manifest_path
        if not manifest_path.is_file():
            log.debug(f"No cached manifest at '{manifest_path}'.")
            return None

        try:
            document = manifest_path.read_bytes()
        except OSError as e:
            log.warning(f"Could not read cached manifest '{manifest_path}': {e}")
            return None

        try:
            return Manifest.from_xml(document)
        except ValueError as e:
            log.warning(
                f"[yellow]Cached manifest '{manifest_path}' is unreadable and will "
                f"be ignored:[/yellow] {e}"
            )
            return None

    def save(self, manifest: Manifest, path: Path | None = None) -> None:
        """
        Atomically replaces the cached manifest.

        The document is written to a temporary file in the same directory,
        flushed to disk, then renamed over the target.

        Raises:
            OSError: If the manifest cannot be written.
        """
        manifest_path = path or self.manifest_path
        manifest_path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_name = tempfile.mkstemp(
            prefix=f".{manifest_path.name}.", suffix=".tmp", dir=manifest_path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(manifest.to_xml())
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_name, manifest_path)
        except BaseException:
            try:
                os.remove(temp_name)
            except OSError:
                pass
            raise
        log.debug(f"Cached manifest written to '{manifest_path}'.")

    def clear(self) -> bool:
        """Removes the cached manifest so the next run re-verifies every file."""
        try:
            self.manifest_path.unlink(missing_ok=True)
            return True
        except OSError as e:
            log.error(f"Failed to remove cached manifest: {e}")
            return False
