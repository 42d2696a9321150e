"""
Dataclass tracking the outcome of a synchronization run.
"""

import time
from dataclasses import dataclass, field


@dataclass
class SyncResult:
    """Counters for one execution of a sync plan."""

    files_downloaded: int = 0
    files_verified: int = 0
    files_deleted: int = 0
    bytes_downloaded: int = 0
    downloaded_paths: list[str] = field(default_factory=list)
    deleted_paths: list[str] = field(default_factory=list)
    _started_at: float = field(default_factory=time.monotonic, repr=False)
    duration_s: float = 0.0

    @property
    def changed(self) -> bool:
        """True if the run modified the on-disk file set."""
        return bool(self.files_downloaded or self.files_deleted)

    def record_download(self, path: str, size: int) -> None:
        self.files_downloaded += 1
        self.bytes_downloaded += size
        self.downloaded_paths.append(path)

    def record_delete(self, path: str) -> None:
        self.files_deleted += 1
        self.deleted_paths.append(path)

    def finish(self) -> "SyncResult":
        self.duration_s = time.monotonic() - self._started_at
        return self
