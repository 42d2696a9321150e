"""
Hands UI events from the background bootstrap flow to the foreground presenter.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any

from launchsync.core.interfaces import UIProvider
from launchsync.core.phases import Phase
from launchsync.core.policy import ErrorReport
from launchsync.models.manifest import Manifest

log = logging.getLogger(__name__)

PROGRESS = "update_progress"


@dataclass(frozen=True)
class UIMessage:
    """One call to make on the UIProvider, or the final message of a run."""

    method: str
    args: tuple = ()
    final: bool = False


class UIChannel:
    """
    An ordered, non-blocking message channel.

    Messages are delivered in the order they were posted. Consecutive progress
    updates are collapsed into the latest one on delivery. The final message
    is accepted once, and nothing posted after it is delivered.
    """

    def __init__(self):
        self._queue: queue.Queue[UIMessage] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def post(self, method: str, *args: Any) -> None:
        with self._lock:
            if self._closed:
                log.debug(f"Dropping UI message '{method}' posted after the final one.")
                return
            self._queue.put_nowait(UIMessage(method, args))

    def progress(self, fraction: float) -> None:
        self.post(PROGRESS, fraction)

    def finish(self, result: Any) -> bool:
        """Posts the final message. Returns False if one was already posted."""
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            self._queue.put_nowait(UIMessage("finished", (result,), final=True))
            return True

    def drain(self, timeout: float | None = None) -> list[UIMessage]:
        """
        Takes every pending message.

        Args:
            timeout: Seconds to wait for the first message. None returns
                immediately when the channel is empty.
        """
        try:
            if timeout is None:
                first = self._queue.get_nowait()
            else:
                first = self._queue.get(timeout=timeout)
        except queue.Empty:
            return []

        messages = [first]
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except queue.Empty:
                break

        coalesced: list[UIMessage] = []
        for message in messages:
            if (
                coalesced
                and message.method == PROGRESS
                and coalesced[-1].method == PROGRESS
            ):
                coalesced[-1] = message
            else:
                coalesced.append(message)
        return coalesced

    def pump(self, ui: UIProvider, poll_interval: float = 0.1) -> Any:
        """
        Delivers messages to `ui` on the calling thread until the final one.

        Returns:
            The payload of the final message.
        """
        while True:
            for message in self.drain(timeout=poll_interval):
                if message.final:
                    return message.args[0]
                getattr(ui, message.method)(*message.args)


class ChannelUIProvider:
    """A UIProvider that forwards every call through a UIChannel."""

    def __init__(self, channel: UIChannel):
        self.channel = channel

    def show_loader(self) -> None:
        self.channel.post("show_loader")

    def show_updater(self, manifest: Manifest) -> None:
        self.channel.post("show_updater", manifest)

    def update_progress(self, fraction: float) -> None:
        self.channel.progress(fraction)

    def update_available(self, available: bool) -> None:
        self.channel.post("update_available", available)

    def show_whats_new(self, page: str) -> None:
        self.channel.post("show_whats_new", page)

    def close_updater(self, linger: bool) -> None:
        self.channel.post("close_updater", linger)

    def report_error(self, report: ErrorReport) -> None:
        self.channel.post("report_error", report)

    def phase_changed(self, phase: Phase) -> None:
        self.channel.post("phase_changed", phase)
