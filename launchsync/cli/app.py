"""
Defines the command-line interface for the launcher using Typer.
"""

import asyncio
import logging
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from launchsync import __version__
from launchsync.core.channel import ChannelUIProvider, UIChannel
from launchsync.core.diff import build_plan, current_os
from launchsync.core.manifest_source import ManifestSource
from launchsync.core.orchestrator import BootstrapOrchestrator, launch_in_background
from launchsync.exceptions import ConfigurationError, LaunchSyncError
from launchsync.models.config import LauncherConfig
from launchsync.storage.config_manager import ConfigManager
from launchsync.storage.manifest_store import ManifestStore
from launchsync.storage.paths import get_config_dir, resolve_cache_dir
from launchsync.utils.structured_logger import create_structured_logger

from .console_ui import RichConsoleUI
from .formatters import (
    print_config,
    print_plan_table,
    print_sync_summary,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("launchsync")

app = typer.Typer(
    name="launchsync",
    help=(
        "A self-updating application launcher. Use 'launchsync <command> --help'"
        " for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"
LOG_DIR = CONFIG_DIR / "logs"

# --- Options shared by the commands that talk to the release server ---
UriOption = typer.Option(
    None, "--uri", "-u", help="Manifest URI (overrides the configured one)."
)
CacheDirOption = typer.Option(
    None,
    "--cache-dir",
    "-c",
    help="Cache directory. USERLIB/<dir> and ALLUSERS/<dir> are expanded.",
)
TargetOsOption = typer.Option(
    None, "--os", help="Synchronize the file set of another OS (windows/mac/linux)."
)
WorkersOption = typer.Option(
    None, "-w", "--workers", help="Number of simultaneous downloads (1-16)."
)
IgnoreSslOption = typer.Option(
    None,
    "--ignore-ssl/--verify-ssl",
    help="Disable TLS certificate validation. Use only with trusted servers.",
)


def _load_config(**cli_values: Any) -> LauncherConfig:
    cli_options = {
        key: value for key, value in cli_values.items() if value is not None
    }
    return ConfigManager(CONFIG_FILE).load_config(cli_options)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    clear_cache: bool = typer.Option(
        False,
        "--clear-cache",
        help="Forget the cached manifest so the next run re-verifies every file.",
    ),
):
    """launchsync: keep an application in sync with its release server."""
    if version:
        console.print(f"[bold]launchsync[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("launchsync").setLevel(log_level)

    if clear_cache:
        settings = ConfigManager(CONFIG_FILE).get_raw_settings()
        store = ManifestStore(resolve_cache_dir(settings.get("cache_directory")))
        console.print("[cyan]Clearing cached manifest...[/cyan]")
        if store.clear():
            console.print(
                f"[green]✓ Cached manifest removed from '{store.cache_dir}'.[/green]"
            )
        else:
            console.print("[red]✗ Failed to clear the cached manifest.[/red]")
        raise typer.Exit()

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]launchsync init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        print_config(CONFIG_FILE, config_manager.get_raw_settings())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    manifest_uri: str = typer.Argument(
        ..., help="URL of the release, or of its app.xml manifest."
    ),
    cache_dir: str | None = CacheDirOption,
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Initialize the configuration with a manifest URI."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings: dict[str, Any] = {"manifest_uri": manifest_uri}
    if cache_dir:
        settings["cache_directory"] = cache_dir

    # Validate before writing anything
    try:
        LauncherConfig(**settings)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings:\n{e}") from e
    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to launch! Try: [cyan]launchsync run[/cyan]")


@app.command()
def run(
    args: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Arguments passed on to the application (after '--')."
    ),
    uri: str | None = UriOption,
    cache_dir: str | None = CacheDirOption,
    target_os: str | None = TargetOsOption,
    workers: int | None = WorkersOption,
    ignore_ssl: bool | None = IgnoreSslOption,
    ignore_update_errors: bool | None = typer.Option(
        None,
        "--ignore-update-errors/--strict-updates",
        help="Start the installed version when the update fails.",
    ),
):
    """Update the application if needed, then launch it."""
    config = _load_config(
        manifest_uri=uri,
        cache_directory=cache_dir,
        target_os=target_os,
        max_workers=workers,
        ignore_ssl_validation=ignore_ssl,
        ignore_update_errors=ignore_update_errors,
    )
    base_logger, sync_events, bootstrap_events = create_structured_logger(
        LOG_DIR, enable_json=config.event_log
    )

    channel = UIChannel()
    orchestrator = BootstrapOrchestrator(
        config,
        ui=ChannelUIProvider(channel),
        events=bootstrap_events,
        sync_events=sync_events,
    )
    try:
        worker = launch_in_background(orchestrator, channel, tuple(args or ()))
        with RichConsoleUI(console) as ui:
            outcome = channel.pump(ui)
        worker.join()
    finally:
        base_logger.close()

    if not outcome.succeeded:
        if outcome.report is None and outcome.error is not None:
            raise outcome.error
        raise typer.Exit(code=1)

    console.print("[dim]Application running. Press Ctrl+C to stop it.[/dim]")
    try:
        while not orchestrator.wait_for_exit(timeout=0.5):
            pass
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping the application...[/yellow]")
    finally:
        orchestrator.stop()
    log.debug("Application stopped.")


@app.command()
def sync(
    uri: str | None = UriOption,
    cache_dir: str | None = CacheDirOption,
    target_os: str | None = TargetOsOption,
    workers: int | None = WorkersOption,
    ignore_ssl: bool | None = IgnoreSslOption,
):
    """Synchronize the cached files with the release without launching it."""
    config = _load_config(
        manifest_uri=uri,
        cache_directory=cache_dir,
        target_os=target_os,
        max_workers=workers,
        ignore_ssl_validation=ignore_ssl,
    )
    base_logger, sync_events, bootstrap_events = create_structured_logger(
        LOG_DIR, enable_json=config.event_log
    )

    async def _sync_async():
        with RichConsoleUI(console) as ui:
            orchestrator = BootstrapOrchestrator(
                config, ui=ui, events=bootstrap_events, sync_events=sync_events
            )
            result = await orchestrator.update()
        print_sync_summary(result, orchestrator.manifest)

    try:
        asyncio.run(_sync_async())
    finally:
        base_logger.close()


@app.command()
def check(
    uri: str | None = UriOption,
    cache_dir: str | None = CacheDirOption,
    target_os: str | None = TargetOsOption,
    ignore_ssl: bool | None = IgnoreSslOption,
):
    """Show whether an update is available and what it would change."""
    config = _load_config(
        manifest_uri=uri,
        cache_directory=cache_dir,
        target_os=target_os,
        ignore_ssl_validation=ignore_ssl,
    )
    cache_path = resolve_cache_dir(config.cache_directory)
    source = ManifestSource(ManifestStore(cache_path), config.ignore_ssl_validation)

    cached = source.load_cached()
    remote = asyncio.run(source.load_remote(config.manifest_url))
    if source.is_downgrade(cached, remote) and not config.effective_accept_downgrade(
        remote
    ):
        console.print(
            "[yellow]⚠️  The published release is older than the installed one "
            "and downgrades are not accepted.[/yellow]"
        )
        remote = cached

    plan = build_plan(
        cached,
        remote,
        config.target_os or current_os(),
        cache_path,
        config.verify_files,
    )
    print_plan_table(plan, remote, cached, source.has_update(cached, remote))


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_validation_table(config, resolve_cache_dir(config.cache_directory))
    except LaunchSyncError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
