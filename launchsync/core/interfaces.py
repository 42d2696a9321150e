"""
Interfaces of the collaborators the bootstrap engine hands work to: the
presentation layer and the hosted application.
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from launchsync.core.phases import Phase
from launchsync.core.policy import ErrorReport
from launchsync.models.manifest import Manifest

log = logging.getLogger(__name__)


@runtime_checkable
class UIProvider(Protocol):
    """Renders the bootstrap. The engine itself never renders anything."""

    def show_loader(self) -> None: ...

    def show_updater(self, manifest: Manifest) -> None: ...

    def update_progress(self, fraction: float) -> None: ...

    def update_available(self, available: bool) -> None: ...

    def show_whats_new(self, page: str) -> None: ...

    def close_updater(self, linger: bool) -> None: ...

    def report_error(self, report: ErrorReport) -> None: ...

    def phase_changed(self, phase: Phase) -> None: ...


class LoggingUIProvider:
    """The default UI: writes lifecycle events to the log."""

    def show_loader(self) -> None:
        log.debug("Loading application...")

    def show_updater(self, manifest: Manifest) -> None:
        log.info(
            manifest.update_text
            or f"Updating {manifest.display_name} to {manifest.version or 'latest'}..."
        )

    def update_progress(self, fraction: float) -> None:
        log.debug(f"Update progress: {fraction:.1%}")

    def update_available(self, available: bool) -> None:
        if available:
            log.info("A new version is available.")

    def show_whats_new(self, page: str) -> None:
        log.info(f"What's new: {page}")

    def close_updater(self, linger: bool) -> None:
        pass

    def report_error(self, report: ErrorReport) -> None:
        log.error(f"{report.title}: {report.header} {report.body} ({report.detail})")

    def phase_changed(self, phase: Phase) -> None:
        log.debug(f"Phase: {phase.label}")


@dataclass(frozen=True)
class ApplicationEnvironment:
    """Everything the hosted application receives from the launcher."""

    cache_dir: Path
    manifest: Manifest
    parameters: tuple[str, ...] = ()
    files_updated: bool = False
    exit_requested: threading.Event = field(
        default_factory=threading.Event, compare=False, repr=False
    )

    @property
    def launch_class(self) -> str:
        return self.manifest.launch_class

    def request_exit(self) -> None:
        """Tells the launcher the application is done and may be stopped."""
        self.exit_requested.set()


@runtime_checkable
class Application(Protocol):
    """
    Lifecycle hooks of the hosted application, called in this order.

    `init()` and `start()` run on a worker thread outside the launcher's
    event loop, so an application may run its own. `start()` returns once
    the application is up; the launcher keeps it running until
    `environment.request_exit()` is called or the user interrupts, then
    calls `stop()`.
    """

    def init(self) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...


class ApplicationFactory(Protocol):
    """Constructs the application declared by a manifest."""

    def create(
        self, launch_class: str, environment: ApplicationEnvironment
    ) -> Application: ...
