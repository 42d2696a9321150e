"""
A terminal presentation of the bootstrap built on a Rich progress display.
"""

import logging

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from launchsync.core.phases import Phase
from launchsync.core.policy import ErrorReport
from launchsync.models.manifest import Manifest

from .formatters import format_error_report

log = logging.getLogger(__name__)


class RichConsoleUI:
    """
    Renders loader, updater and errors in the terminal.

    Must be driven from a single thread; in the `run` command that is the
    foreground thread pumping the UI channel.
    """

    def __init__(self, console: Console):
        self.console = console
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None
        self._running = False

    def __enter__(self) -> "RichConsoleUI":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _start(self) -> None:
        if not self._running:
            self.progress.start()
            self._running = True

    def close(self) -> None:
        if self._running:
            self.progress.stop()
            self._running = False

    def show_loader(self) -> None:
        self.console.print("[dim]Checking for updates...[/dim]")

    def show_updater(self, manifest: Manifest) -> None:
        description = manifest.update_text or f"Updating {manifest.display_name}"
        if manifest.version:
            description += f" [dim]{manifest.version}[/dim]"
        self._start()
        self._task_id = self.progress.add_task(description, total=100)

    def update_progress(self, fraction: float) -> None:
        if self._task_id is None:
            return
        self.progress.update(self._task_id, completed=fraction * 100)

    def update_available(self, available: bool) -> None:
        if available:
            self.console.print("[bold cyan]↻ A new version is available.[/bold cyan]")
        else:
            log.debug("No update available.")

    def show_whats_new(self, page: str) -> None:
        self.console.print(
            Panel(
                f"See what changed in this release:\n[cyan]{page}[/cyan]",
                title="[bold]What's New[/bold]",
                border_style="cyan",
                expand=False,
            )
        )

    def close_updater(self, linger: bool) -> None:
        if self._task_id is None:
            return
        if linger:
            # Left on screen until the display is closed on exit
            self.progress.update(self._task_id, description="[green]✓ Updated[/green]")
            return
        self.progress.remove_task(self._task_id)
        self._task_id = None
        self.close()

    def report_error(self, report: ErrorReport) -> None:
        self.close()
        self.console.print(format_error_report(report))

    def phase_changed(self, phase: Phase) -> None:
        log.debug(f"Phase: {phase.label}")
