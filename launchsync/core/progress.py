"""
Converts per-file byte counts of a running sync into a single progress fraction.
"""

import threading
from collections.abc import Callable

from launchsync.models.manifest import FileEntry

ProgressSink = Callable[[float], None]

# Highest fraction reported before every file has resolved
_CEILING = 0.999
# Minimum increase before an intermediate update is emitted
_THROTTLE_STEP = 0.005


class ProgressTracker:
    """
    Tracks download progress for a sync plan and reports it to a sink.

    The reported fraction never decreases, stays below 1.0 while any file is
    still pending, and 1.0 is reported exactly once by `finish()`. When the
    plan declares no sizes at all, the fraction is based on completed files.
    """

    def __init__(self, entries: tuple[FileEntry, ...], sink: ProgressSink | None):
        self._sink = sink
        self._sizes = {entry.path: entry.size for entry in entries}
        self._total_bytes = sum(self._sizes.values())
        self._file_count = len(self._sizes)
        self._received: dict[str, int] = {}
        self._completed: set[str] = set()
        self._reported = 0.0
        self._finished = False
        self._lock = threading.Lock()

    @property
    def reported(self) -> float:
        return self._reported

    def _fraction(self) -> float:
        if self._file_count == 0:
            return 1.0
        if self._total_bytes > 0:
            transferred = sum(
                min(received, self._sizes[path])
                for path, received in self._received.items()
            )
            fraction = transferred / self._total_bytes
        else:
            fraction = len(self._completed) / self._file_count
        return min(fraction, _CEILING)

    def _emit(self, force: bool) -> None:
        fraction = self._fraction()
        if fraction <= self._reported:
            return
        if not force and fraction - self._reported < _THROTTLE_STEP:
            return
        self._reported = fraction
        if self._sink:
            self._sink(fraction)

    def advance(self, path: str, nbytes: int) -> None:
        """Records `nbytes` more bytes received for `path`."""
        with self._lock:
            if self._finished or path in self._completed:
                return
            self._received[path] = self._received.get(path, 0) + nbytes
            self._emit(force=False)

    def restart(self, path: str) -> None:
        """Discards the bytes received for `path` before a retry."""
        with self._lock:
            self._received.pop(path, None)

    def complete(self, path: str) -> None:
        """Marks `path` as fully resolved, downloaded or already current."""
        with self._lock:
            if self._finished:
                return
            self._completed.add(path)
            # A finished file counts for its declared size, whatever streamed
            self._received[path] = self._sizes.get(path, 0)
            self._emit(force=True)

    def finish(self) -> None:
        """Reports 1.0. Later calls do nothing."""
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._reported = 1.0
            if self._sink:
                self._sink(1.0)
