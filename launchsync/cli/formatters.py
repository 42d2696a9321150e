"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from launchsync.core.policy import ErrorReport
from launchsync.models.config import LauncherConfig
from launchsync.models.manifest import Manifest
from launchsync.models.plan import SyncPlan
from launchsync.models.stats import SyncResult
from launchsync.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `launchsync init <MANIFEST_URI>` to create a configuration.",
            "• Check the values with `launchsync --show-config`.",
        ],
        "FetchError": [
            "• Check your network connection.",
            "• Verify the manifest URI with `launchsync --show-config`.",
            "• Open the manifest URL in a browser to check it is served.",
        ],
        "SyncError": [
            "• Run the command again; completed files are not downloaded twice.",
            "• A checksum mismatch means the release server is serving stale files.",
            "• Run with -vv for per-file details.",
        ],
        "CircuitBreakerError": [
            "• The release host failed repeatedly and is cooling down.",
            "• Check your internet connection.",
            "• Reduce `--workers` if the host is throttling downloads.",
        ],
        "EnvironmentPrepareError": [
            "• Files of the installed release are missing.",
            "• Run `launchsync --clear-cache` and then `launchsync sync`.",
        ],
        "ApplicationLaunchError": [
            "• The manifest's launch class could not be loaded or failed to start.",
            "• Run with -vv to see the application's traceback.",
        ],
        "ClientResponseError": [
            "• The release server answered with an error.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A download timed out, which may indicate network throttling.",
            "• Try reducing the number of `--workers`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def format_error_report(report: ErrorReport) -> Panel:
    """Renders the single user-visible message for a failed bootstrap."""
    content = Table.grid(padding=(1, 0))
    content.add_row(Text(report.header, style="bold red"))
    content.add_row(Text(report.body))
    content.add_row(Text(report.detail, style="dim"))
    return Panel(
        content,
        title=f"[bold red]{report.title}[/bold red]",
        subtitle=f"[dim]{report.phase.label}[/dim]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if value is None:
            value = "[dim](manifest default)[/dim]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def _flag(value: bool | None) -> str:
    if value is None:
        return "[dim]from manifest[/dim]"
    return "✓ Enabled" if value else "✗ Disabled"


def print_validation_table(config: LauncherConfig, cache_dir: Path):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Manifest URL:", f"[green]{config.manifest_url}[/green]")
    table.add_row("Cache Directory:", f"[dim]{cache_dir}[/dim]")
    table.add_row(
        "Target OS:", config.target_os.value if config.target_os else "auto-detect"
    )
    table.add_row("Max Workers:", str(config.max_workers))
    table.add_row(
        "Retries:",
        f"{config.max_attempts} attempts, {config.retry_base_delay:g}s base delay",
    )
    table.add_row("Verify Files:", _flag(config.verify_files))
    table.add_row("Ignore Update Errors:", _flag(config.ignore_update_errors))
    table.add_row("Accept Downgrade:", _flag(config.accept_downgrade))
    if config.ignore_ssl_validation:
        table.add_row("TLS Validation:", "[bold yellow]⚠ Disabled[/bold yellow]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_plan_table(
    plan: SyncPlan, remote: Manifest, cached: Manifest | None, update: bool
):
    """Displays what a sync would change, without changing anything."""
    console = Console()

    installed = (cached.version or str(cached.ts or "unknown")) if cached else "none"
    available = remote.version or str(remote.ts or "unknown")
    if update:
        console.print(
            f"[bold cyan]↻ Update available:[/bold cyan] {remote.display_name} "
            f"[dim]{installed}[/dim] → [green]{available}[/green]"
        )
    else:
        console.print(
            f"[green]✓ {remote.display_name} {available} is up to date.[/green]"
        )

    if plan.is_empty:
        console.print("[dim]No file changes needed.[/dim]")
        return

    table = Table(box=box.ROUNDED)
    table.add_column("Action", style="bold", no_wrap=True)
    table.add_column("Path", style="cyan")
    table.add_column("Size", justify="right")
    for entry in plan.to_download:
        action = (
            "[yellow]repair[/yellow]"
            if entry.path in plan.repaired
            else "[green]download[/green]"
        )
        table.add_row(action, entry.path, format_size(entry.size))
    for path in plan.to_delete:
        table.add_row("[red]delete[/red]", path, "")
    console.print(table)
    console.print(
        f"[dim]{len(plan.to_download)} to download "
        f"({format_size(plan.total_bytes)}), {len(plan.to_delete)} to delete, "
        f"{len(plan.unchanged)} unchanged.[/dim]"
    )


def print_sync_summary(result: SyncResult, manifest: Manifest | None = None):
    """Displays the final summary of a synchronization run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{result.files_downloaded}[/bold green]"
    )
    if result.files_verified > 0:
        stats_table.add_row(
            "○ Already Current:", f"[yellow]{result.files_verified}[/yellow]"
        )
    if result.files_deleted > 0:
        stats_table.add_row("✗ Deleted:", f"[red]{result.files_deleted}[/red]")

    stats_table.add_row("", "")  # Spacer
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(result.bytes_downloaded)}[/cyan]"
    )
    if result.bytes_downloaded and result.duration_s > 0:
        avg_speed = result.bytes_downloaded / result.duration_s
        stats_table.add_row(
            "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
        )
    stats_table.add_row(
        "Time Elapsed:", f"[blue]{format_duration(result.duration_s)}[/blue]"
    )

    if manifest is not None:
        title = f"[bold]{manifest.display_name} {manifest.version or ''}[/bold]"
    else:
        title = "[bold]Sync Complete[/bold]"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style="green" if result.changed else "cyan",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
