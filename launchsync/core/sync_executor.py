"""
Executes a sync plan: downloads, verifies and installs changed files, then
removes the files the new release no longer ships.
"""

import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path

import aiohttp

from launchsync.core.progress import ProgressSink, ProgressTracker
from launchsync.exceptions import CircuitBreakerError, SyncError, SyncErrorKind
from launchsync.models.manifest import FileEntry
from launchsync.models.plan import SyncPlan
from launchsync.models.stats import SyncResult
from launchsync.transfer.downloader import Downloader
from launchsync.transfer.integrity import FileIntegrityChecker
from launchsync.utils.circuit_breaker import CircuitBreaker
from launchsync.utils.formatting import format_size, short_checksum
from launchsync.utils.structured_logger import SyncEventLogger

log = logging.getLogger(__name__)

PART_SUFFIX = ".part"


def is_network_error(error: BaseException) -> bool:
    return isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError))


def conflicting_deletes(plan: SyncPlan) -> list[str]:
    """
    Paths to delete that stand where a download needs a directory, or that
    live inside a directory a download replaces with a file.
    """
    downloads = [entry.path for entry in plan.to_download]
    return [
        path
        for path in plan.to_delete
        if any(
            download.startswith(f"{path}/") or path.startswith(f"{download}/")
            for download in downloads
        )
    ]


def _default_file_mode() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return 0o666 & ~mask


# Mode of newly installed files, as if created with open()
_FILE_MODE = _default_file_mode()


def _reserve_temp(directory: Path, name: str) -> Path:
    # A fresh name never collides with a live file of the release
    fd, temp_name = tempfile.mkstemp(
        dir=directory, prefix=f".{name}.", suffix=PART_SUFFIX
    )
    os.close(fd)
    os.chmod(temp_name, _FILE_MODE)
    return Path(temp_name)


class SyncExecutor:
    """
    Brings the cache directory in line with a sync plan.

    Every file is streamed into a uniquely named `.part` file next to its
    target, checked against the manifest checksum and only then renamed over
    the live file, so a reader never sees a partially written file. Deletions
    are applied only once every download has succeeded.

    When the release turns a file into a directory (or the reverse), the old
    files in the way are moved aside before downloading and moved back if
    the run fails.
    """

    def __init__(
        self,
        cache_dir: Path,
        downloader: Downloader,
        max_workers: int = 4,
        breaker: CircuitBreaker | None = None,
        events: SyncEventLogger | None = None,
    ):
        self.cache_dir = cache_dir
        self.downloader = downloader
        self.max_workers = max_workers
        self.breaker = breaker or CircuitBreaker(is_failure=is_network_error)
        self.events = events

    async def execute(
        self, plan: SyncPlan, progress_sink: ProgressSink | None = None
    ) -> SyncResult:
        """
        Runs the plan.

        Args:
            plan: What to download and delete.
            progress_sink: Receives the overall fraction in [0, 1].

        Returns:
            Counters describing what changed on disk.

        Raises:
            SyncError: The first failure; `failures` lists all of them.
        """
        result = SyncResult()
        tracker = ProgressTracker(plan.to_download, progress_sink)

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SyncError(
                SyncErrorKind.IO, f"Cannot create cache directory '{self.cache_dir}': {e}"
            ) from e
        await asyncio.to_thread(self._remove_stale_parts, plan)

        if self.events:
            self.events.plan_started(
                len(plan.to_download), len(plan.to_delete), plan.total_bytes
            )
        if plan.to_download:
            log.info(
                f"Synchronizing {len(plan.to_download)} file(s) "
                f"({format_size(plan.total_bytes)})..."
            )

        displaced = await asyncio.to_thread(self._displace, conflicting_deletes(plan))

        semaphore = asyncio.Semaphore(self.max_workers)
        outcomes = await asyncio.gather(
            *(
                self._sync_entry(entry, plan, semaphore, tracker, result)
                for entry in plan.to_download
            ),
            return_exceptions=True,
        )
        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if failures:
            await asyncio.to_thread(self._restore, displaced)
            unexpected = [f for f in failures if not isinstance(f, SyncError)]
            if unexpected:
                raise unexpected[0]
            first = failures[0]
            first.failures = failures
            log.error(
                f"[red]✗ {len(failures)} of {len(plan.to_download)} file(s) failed "
                "to synchronize.[/red]"
            )
            raise first

        tracker.finish()

        for path in plan.to_delete:
            if path in displaced:
                await asyncio.to_thread(
                    self._discard_displaced, path, displaced[path], result
                )
            else:
                await asyncio.to_thread(self._delete, path, result)

        result.finish()
        if self.events:
            self.events.plan_completed(
                result.files_downloaded, result.files_deleted, result.bytes_downloaded
            )
        return result

    async def _sync_entry(
        self,
        entry: FileEntry,
        plan: SyncPlan,
        semaphore: asyncio.Semaphore,
        tracker: ProgressTracker,
        result: SyncResult,
    ) -> None:
        target = self.cache_dir / entry.path
        async with semaphore:
            if await asyncio.to_thread(
                FileIntegrityChecker.matches, target, entry.checksum
            ):
                result.files_verified += 1
                tracker.complete(entry.path)
                if self.events:
                    self.events.file_verified(entry.path)
                return

            temp_path: Path | None = None
            started = time.monotonic()
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                temp_path = _reserve_temp(target.parent, target.name)
                async with self.breaker:
                    downloaded = await self.downloader.download_file(
                        plan.file_url(entry),
                        str(temp_path),
                        on_chunk=lambda n: tracker.advance(entry.path, n),
                        on_restart=lambda: tracker.restart(entry.path),
                    )
                if downloaded.sha256 != entry.checksum:
                    raise SyncError(
                        SyncErrorKind.CHECKSUM_MISMATCH,
                        f"Checksum mismatch for '{entry.path}': expected "
                        f"{short_checksum(entry.checksum)}, got "
                        f"{short_checksum(downloaded.sha256)}.",
                        entry.path,
                    )
                os.replace(temp_path, target)
            except SyncError as e:
                self._fail(temp_path, e)
                raise
            except CircuitBreakerError as e:
                error = SyncError(SyncErrorKind.NETWORK, str(e), entry.path)
                self._fail(temp_path, error)
                raise error from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                error = SyncError(
                    SyncErrorKind.NETWORK,
                    f"Download of '{entry.path}' failed: {str(e) or type(e).__name__}",
                    entry.path,
                )
                self._fail(temp_path, error)
                raise error from e
            except OSError as e:
                error = SyncError(
                    SyncErrorKind.IO, f"Could not write '{entry.path}': {e}", entry.path
                )
                self._fail(temp_path, error)
                raise error from e

        if entry.size and downloaded.size != entry.size:
            log.debug(
                f"'{entry.path}' is {downloaded.size} bytes, manifest declared "
                f"{entry.size}."
            )
        result.record_download(entry.path, downloaded.size)
        tracker.complete(entry.path)
        if self.events:
            self.events.file_synced(
                entry.path, downloaded.size, time.monotonic() - started
            )
        log.debug(f"[green]✓[/green] {entry.path} ({format_size(downloaded.size)})")

    def _fail(self, temp_path: Path | None, error: SyncError) -> None:
        if temp_path is not None:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError as e:
                log.warning(f"Could not remove temporary file '{temp_path}': {e}")
        log.error(f"[red]✗ {error}[/red]")
        if self.events:
            self.events.file_failed(error.path or "", error.kind.value, str(error))

    def _displace(self, paths: list[str]) -> dict[str, Path]:
        """Moves the files at `paths` to backups in the cache root."""
        displaced: dict[str, Path] = {}
        for path in paths:
            target = self.cache_dir / path
            if not target.is_file():
                continue
            backup = None
            try:
                backup = _reserve_temp(self.cache_dir, "displaced")
                os.replace(target, backup)
            except OSError as e:
                if backup is not None:
                    backup.unlink(missing_ok=True)
                self._restore(displaced)
                raise SyncError(
                    SyncErrorKind.IO, f"Could not move '{path}' out of the way: {e}", path
                ) from e
            displaced[path] = backup
            log.debug(f"Moved '{path}' aside for the new layout.")
            self._prune_empty_parents(target)
        return displaced

    def _restore(self, displaced: dict[str, Path]) -> None:
        """Puts displaced files back after a failed run."""
        for path, backup in reversed(displaced.items()):
            target = self.cache_dir / path
            try:
                if target.is_dir():
                    self._remove_empty_tree(target)
                target.parent.mkdir(parents=True, exist_ok=True)
                os.replace(backup, target)
            except OSError as e:
                log.warning(f"Could not restore '{path}' from '{backup}': {e}")

    def _discard_displaced(self, path: str, backup: Path, result: SyncResult) -> None:
        try:
            backup.unlink(missing_ok=True)
        except OSError as e:
            raise SyncError(
                SyncErrorKind.IO, f"Could not delete '{path}': {e}", path
            ) from e
        self._record_delete(path, result)

    def _delete(self, path: str, result: SyncResult) -> None:
        target = self.cache_dir / path
        try:
            existed = target.is_file()
            target.unlink(missing_ok=True)
        except OSError as e:
            raise SyncError(
                SyncErrorKind.IO, f"Could not delete '{path}': {e}", path
            ) from e
        if not existed:
            return

        self._record_delete(path, result)
        self._prune_empty_parents(target)

    def _record_delete(self, path: str, result: SyncResult) -> None:
        result.record_delete(path)
        if self.events:
            self.events.file_deleted(path)
        log.debug(f"Deleted '{path}'.")

    def _prune_empty_parents(self, target: Path) -> None:
        """Removes directories the release no longer uses."""
        parent = target.parent
        while parent != self.cache_dir and self.cache_dir in parent.parents:
            if any(parent.iterdir()):
                break
            try:
                parent.rmdir()
            except OSError as e:
                log.debug(f"Keeping directory '{parent}': {e}")
                break
            parent = parent.parent

    @staticmethod
    def _remove_empty_tree(directory: Path) -> None:
        # Deepest first; raises OSError if anything is left inside
        for child in sorted(
            (d for d in directory.rglob("*") if d.is_dir()), reverse=True
        ):
            child.rmdir()
        directory.rmdir()

    def _remove_stale_parts(self, plan: SyncPlan) -> None:
        """Removes temporary files left behind by an interrupted run."""
        release_paths = set(plan.unchanged)
        release_paths.update(entry.path for entry in plan.to_download)
        for stale in self.cache_dir.rglob(f"*{PART_SUFFIX}"):
            if stale.relative_to(self.cache_dir).as_posix() in release_paths:
                continue
            try:
                stale.unlink()
                log.debug(f"Removed stale temporary file '{stale}'.")
            except OSError as e:
                log.warning(f"Could not remove stale file '{stale}': {e}")
