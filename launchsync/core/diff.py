"""
Computes the synchronization plan between the cached and the remote manifest.
"""

import logging
import sys
from pathlib import Path

from launchsync.models.manifest import Manifest, OSTag
from launchsync.models.plan import SyncPlan
from launchsync.transfer.integrity import FileIntegrityChecker

log = logging.getLogger(__name__)


def current_os() -> OSTag:
    """The OS tag of the running platform."""
    if sys.platform.startswith(("win", "cygwin")):
        return OSTag.WINDOWS
    if sys.platform == "darwin":
        return OSTag.MAC
    return OSTag.LINUX


def build_plan(
    cached: Manifest | None,
    remote: Manifest,
    target_os: OSTag,
    cache_dir: Path | None = None,
    verify_files: bool = False,
) -> SyncPlan:
    """
    Compares two manifests and decides what has to change on disk.

    Entries restricted to another OS are not part of this platform's file set
    and are ignored on both sides. Paths are matched exactly; a changed
    checksum for a known path is a replacement and lands in `to_download`.

    Args:
        cached: The manifest describing the files currently on disk, if any.
        remote: The manifest of the release to synchronize to.
        target_os: The platform whose file set is being synchronized.
        cache_dir: The cache directory, required for `verify_files`.
        verify_files: Also check unchanged files on disk and schedule the
            missing or corrupt ones for download.

    Returns:
        A plan whose three path groups never overlap.
    """
    cached_entries = (
        {entry.path: entry for entry in cached.entries_for(target_os)}
        if cached is not None
        else {}
    )
    remote_entries = remote.entries_for(target_os)
    remote_paths = {entry.path for entry in remote_entries}

    to_download = []
    unchanged = []
    repaired = []
    for entry in remote_entries:
        previous = cached_entries.get(entry.path)
        if previous is None or previous.checksum != entry.checksum:
            to_download.append(entry)
        elif (
            verify_files
            and cache_dir is not None
            and not FileIntegrityChecker.matches(cache_dir / entry.path, entry.checksum)
        ):
            log.warning(
                f"[yellow]'{entry.path}' is missing or corrupt on disk and will "
                "be downloaded again.[/yellow]"
            )
            to_download.append(entry)
            repaired.append(entry.path)
        else:
            unchanged.append(entry.path)

    to_delete = [path for path in cached_entries if path not in remote_paths]

    plan = SyncPlan(
        base_uri=remote.uri,
        to_download=tuple(to_download),
        to_delete=tuple(to_delete),
        unchanged=tuple(unchanged),
        repaired=tuple(repaired),
    )
    log.debug(
        f"Sync plan for {target_os.value}: {len(plan.to_download)} to download, "
        f"{len(plan.to_delete)} to delete, {len(plan.unchanged)} unchanged."
    )
    return plan
