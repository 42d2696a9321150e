"""
Drives a bootstrap run through its phases, from loading the manifest to a
running application.
"""

import asyncio
import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from launchsync.core.channel import UIChannel
from launchsync.core.diff import build_plan, current_os
from launchsync.core.interfaces import (
    Application,
    ApplicationEnvironment,
    ApplicationFactory,
    LoggingUIProvider,
    UIProvider,
)
from launchsync.core.launch import ImportApplicationFactory, prepare_environment
from launchsync.core.manifest_source import ManifestSource
from launchsync.core.phases import Phase, PhaseTracker
from launchsync.core.policy import ErrorMessages, ErrorPolicyGate, ErrorReport
from launchsync.core.sync_executor import SyncExecutor
from launchsync.exceptions import (
    ApplicationLaunchError,
    FetchError,
    LaunchSyncError,
    SyncError,
    SyncErrorKind,
)
from launchsync.models.config import LauncherConfig
from launchsync.models.manifest import Manifest, OSTag
from launchsync.models.stats import SyncResult
from launchsync.storage.manifest_store import ManifestStore
from launchsync.storage.paths import resolve_cache_dir
from launchsync.transfer.downloader import Downloader
from launchsync.utils.structured_logger import BootstrapEventLogger, SyncEventLogger

log = logging.getLogger(__name__)


def _launch_error(message: str, cause: Exception) -> ApplicationLaunchError:
    if isinstance(cause, ApplicationLaunchError):
        return cause
    error = ApplicationLaunchError(f"{message}: {cause}")
    error.__cause__ = cause
    return error


class BootstrapStatus(Enum):
    RUNNING = "running"
    FAILED = "failed"


@dataclass
class BootstrapOutcome:
    """How a bootstrap run ended."""

    status: BootstrapStatus
    phase: Phase
    error: BaseException | None = None
    report: ErrorReport | None = None
    manifest: Manifest | None = None
    files_updated: bool = False
    sync_result: SyncResult | None = None
    # Failures that were reported but did not stop the run
    warnings: list[ErrorReport] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status is BootstrapStatus.RUNNING


class BootstrapOrchestrator:
    """
    Runs the bootstrap phases in order on one flow.

    Manifest Load and File Sync failures are handed to the ErrorPolicyGate,
    which may let the run continue with the files already on disk. Failures
    in later phases always end the run.
    """

    def __init__(
        self,
        config: LauncherConfig,
        ui: UIProvider | None = None,
        app_factory: ApplicationFactory | None = None,
        source: ManifestSource | None = None,
        target_os: OSTag | None = None,
        events: BootstrapEventLogger | None = None,
        sync_events: SyncEventLogger | None = None,
    ):
        self.config = config
        self.ui = ui or LoggingUIProvider()
        self.app_factory = app_factory or ImportApplicationFactory()
        self.cache_dir = resolve_cache_dir(config.cache_directory)
        self.source = source or ManifestSource(
            ManifestStore(self.cache_dir), config.ignore_ssl_validation
        )
        self.target_os = target_os or config.target_os or current_os()
        self.events = events
        self.sync_events = sync_events
        self.tracker = PhaseTracker(listener=self._on_phase)

        self.manifest: Manifest | None = None
        self.app: Application | None = None
        self.environment: ApplicationEnvironment | None = None
        self._app_started = False
        self._cached: Manifest | None = None
        self._warnings: list[ErrorReport] = []

    @property
    def phase(self) -> Phase:
        """The phase the run is currently in."""
        return self.tracker.current

    def _on_phase(self, phase: Phase) -> None:
        if self.events:
            self.events.phase_entered(phase.label)
        self.ui.phase_changed(phase)

    def _gate(self, manifest: Manifest | None) -> ErrorPolicyGate:
        return ErrorPolicyGate(
            self.config.effective_ignore_update_errors(manifest),
            ErrorMessages(
                self.config.error_title,
                self.config.error_header,
                self.config.error_body,
            ),
        )

    def _fail(self, error: BaseException, report: ErrorReport) -> BootstrapOutcome:
        log.error(f"[red]✗ Error during {self.phase.label} phase:[/red] {error}")
        if self.events:
            self.events.bootstrap_failed(self.phase.label, str(error))
        self.ui.report_error(report)
        return BootstrapOutcome(
            status=BootstrapStatus.FAILED,
            phase=self.phase,
            error=error,
            report=report,
            manifest=self.manifest,
            warnings=list(self._warnings),
        )

    def _handle(
        self, error: BaseException, manifest: Manifest | None
    ) -> BootstrapOutcome | None:
        """Runs `error` through the gate. Returns an outcome if the run must end."""
        decision = self._gate(manifest).evaluate(
            self.phase, error, self._cached is not None
        )
        if self.events:
            self.events.error_gated(self.phase.label, str(error), decision.action.value)
        if decision.is_fatal:
            return self._fail(error, decision.report)
        if decision.report is not None:
            self._warnings.append(decision.report)
            self.ui.report_error(decision.report)
        return None

    async def run(self, parameters: Sequence[str] = ()) -> BootstrapOutcome:
        """
        Synchronizes the release and starts the application.

        Args:
            parameters: Extra arguments for the application.

        Returns:
            A RUNNING outcome, or a FAILED one tagged with the failing phase.
        """
        self.ui.show_loader()

        # Manifest Load
        self.tracker.enter(Phase.MANIFEST_LOAD)
        self._cached = self.source.load_cached()
        target: Manifest | None = None
        try:
            target = await self.source.load_remote(self.config.manifest_url)
        except FetchError as e:
            outcome = self._handle(e, self._cached)
            if outcome:
                return outcome

        if target is not None and self._is_rejected_downgrade(target):
            target = self._cached

        update = target is not None and self.source.has_update(self._cached, target)
        self.ui.update_available(update)
        if self.events and target is not None:
            self.events.manifest_loaded(target.manifest_uri, target.version, update)

        files_updated = False
        sync_result: SyncResult | None = None
        launch_manifest = self._cached

        if target is not None:
            if update:
                self.tracker.enter(Phase.UPDATE_WRAPPER_CREATION)
                try:
                    self.ui.show_updater(target)
                except Exception as e:
                    outcome = self._handle(e, target)
                    if outcome:
                        return outcome

            self.tracker.enter(Phase.FILE_SYNC)
            try:
                sync_result = await self._sync(target, persist=update)
                # An interrupted earlier run may have left every file current
                files_updated = update or sync_result.changed
                launch_manifest = target
            except (LaunchSyncError, OSError) as e:
                outcome = self._handle(e, target)
                if outcome:
                    return outcome
                launch_manifest = self._cached or target

        self.manifest = launch_manifest

        # Environment Prepare
        self.tracker.enter(Phase.ENVIRONMENT_PREPARE)
        try:
            self.environment = prepare_environment(
                self.cache_dir,
                launch_manifest,
                self.target_os,
                parameters,
                files_updated,
            )
            self.app = self.app_factory.create(
                launch_manifest.launch_class, self.environment
            )
        except Exception as e:
            return self._handle(e, launch_manifest)

        # Application Init
        self.tracker.enter(Phase.APPLICATION_INIT)
        try:
            await asyncio.to_thread(self.app.init)
        except Exception as e:
            return self._handle(
                _launch_error("Application init failed", e), launch_manifest
            )

        # Application Start
        self.tracker.enter(Phase.APPLICATION_START)
        try:
            if files_updated and launch_manifest.whats_new_page:
                self.ui.show_whats_new(launch_manifest.whats_new_page)
            self.ui.close_updater(
                self.config.effective_lingering_update_screen(launch_manifest)
            )
            await asyncio.to_thread(self.app.start)
            self._app_started = True
        except Exception as e:
            return self._handle(
                _launch_error("Application start failed", e), launch_manifest
            )

        self.tracker.enter(Phase.RUNNING)
        log.info(
            f"[green]✓ {launch_manifest.display_name} "
            f"{launch_manifest.version or ''} is running.[/green]"
        )
        if self.events:
            self.events.bootstrap_completed(launch_manifest.launch_class, files_updated)
        return BootstrapOutcome(
            status=BootstrapStatus.RUNNING,
            phase=self.phase,
            manifest=launch_manifest,
            files_updated=files_updated,
            sync_result=sync_result,
            warnings=list(self._warnings),
        )

    def _is_rejected_downgrade(self, remote: Manifest) -> bool:
        if not self.source.is_downgrade(self._cached, remote):
            return False
        if self.config.effective_accept_downgrade(remote):
            log.info("Remote release is older than the installed one; downgrading.")
            return False
        log.warning(
            f"[yellow]Remote release (ts={remote.ts}) is older than the installed "
            f"one (ts={self._cached.ts}); keeping the installed version.[/yellow]"
        )
        return True

    async def _sync(self, target: Manifest, persist: bool) -> SyncResult:
        """Brings the cache in line with `target`, then records it as cached."""
        plan = await asyncio.to_thread(
            build_plan,
            self._cached,
            target,
            self.target_os,
            self.cache_dir,
            self.config.verify_files,
        )
        async with Downloader(
            max_attempts=self.config.max_attempts,
            base_delay=self.config.retry_base_delay,
            max_workers=self.config.max_workers,
            ignore_ssl_validation=self.config.ignore_ssl_validation,
        ) as downloader:
            executor = SyncExecutor(
                self.cache_dir,
                downloader,
                self.config.max_workers,
                events=self.sync_events,
            )
            result = await executor.execute(plan, self.ui.update_progress)

        if persist:
            try:
                self.source.persist(target)
            except OSError as e:
                raise SyncError(
                    SyncErrorKind.IO, f"Could not save the cached manifest: {e}"
                ) from e
        return result

    async def update(self) -> SyncResult:
        """
        Synchronizes the cache with the remote release without launching it.

        Unlike `run`, failures are not gated.

        Raises:
            FetchError: If the remote manifest cannot be loaded.
            SyncError: If the file synchronization fails.
        """
        self._cached = self.source.load_cached()
        target = await self.source.load_remote(self.config.manifest_url)
        if self._is_rejected_downgrade(target):
            target = self._cached

        update = self.source.has_update(self._cached, target)
        self.ui.update_available(update)
        if update:
            self.ui.show_updater(target)
        result = await self._sync(target, persist=update)
        self.manifest = target
        self.ui.close_updater(False)
        return result

    async def check_for_update(self) -> Manifest | None:
        """
        Asks the server for a newer release than the one that was launched.

        Returns None when no run has loaded a manifest yet.
        """
        if self.manifest is None:
            return None
        return await self.source.check_for_update(self.manifest)

    def wait_for_exit(self, timeout: float | None = None) -> bool:
        """
        Blocks until the running application requests its exit.

        Returns True once it did, or right away when nothing is running;
        False if `timeout` expired first.
        """
        if self.environment is None or not self._app_started:
            return True
        return self.environment.exit_requested.wait(timeout)

    def stop(self) -> None:
        """Stops the application if it was started."""
        if self.app is None or not self._app_started:
            return
        self._app_started = False
        try:
            self.app.stop()
        except Exception as e:
            raise ApplicationLaunchError(f"Application stop failed: {e}") from e


def launch_in_background(
    orchestrator: BootstrapOrchestrator,
    channel: UIChannel,
    parameters: Sequence[str] = (),
) -> threading.Thread:
    """
    Runs the orchestrator on its own thread and event loop.

    The outcome is posted as the channel's final message, so the foreground
    thread can render the run with `channel.pump(ui)`.
    """

    def worker() -> None:
        try:
            outcome = asyncio.run(orchestrator.run(parameters))
        except Exception as e:
            log.exception(f"Bootstrap aborted during {orchestrator.phase.label}.")
            outcome = BootstrapOutcome(
                status=BootstrapStatus.FAILED, phase=orchestrator.phase, error=e
            )
        channel.finish(outcome)

    thread = threading.Thread(target=worker, name="launchsync-bootstrap", daemon=True)
    thread.start()
    return thread
