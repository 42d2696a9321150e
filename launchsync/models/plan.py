"""
The synchronization plan derived from comparing two manifests.
"""

from dataclasses import dataclass, field
from urllib.parse import quote

from launchsync.models.manifest import FileEntry


@dataclass(frozen=True)
class SyncPlan:
    """
    Files to download, delete, or leave untouched for one synchronization run.

    The three groups partition the union of the applicable paths of the cached
    and remote manifests: no path appears in more than one of them.
    """

    base_uri: str
    to_download: tuple[FileEntry, ...] = ()
    to_delete: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()
    repaired: tuple[str, ...] = field(default=(), repr=False)

    @property
    def total_bytes(self) -> int:
        """Sum of the advisory sizes of everything to download."""
        return sum(entry.size for entry in self.to_download)

    @property
    def is_empty(self) -> bool:
        return not self.to_download and not self.to_delete

    def file_url(self, entry: FileEntry) -> str:
        return f"{self.base_uri}/{quote(entry.path)}"
