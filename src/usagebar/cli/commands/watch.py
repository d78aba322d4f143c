"""Continuous usage display driven by the timer and log watcher."""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console

from usagebar.cli.app import ExitCode
from usagebar.cli.app import app
from usagebar.cli.commands.usage import open_fetchers
from usagebar.config.settings import MIN_REFRESH_INTERVAL
from usagebar.config.settings import Config
from usagebar.config.settings import get_config
from usagebar.core.coordinator import RefreshCoordinator
from usagebar.core.http import create_http_client
from usagebar.core.notifier import ConsoleNotificationService
from usagebar.core.notifier import ThresholdNotifier
from usagebar.core.updates import UPDATE_TIMEOUT
from usagebar.core.updates import UpdateChecker
from usagebar.core.watcher import ChangeWatcher
from usagebar.display.rich import render_snapshot
from usagebar.errors.types import ConfigError
from usagebar.models import UsageSnapshot

logger = logging.getLogger(__name__)


async def run_watch(config: Config, console: Console, interval: float) -> ExitCode:
    async with (
        open_fetchers(config) as fetchers,
        create_http_client(UPDATE_TIMEOUT) as update_client,
    ):
        if not fetchers:
            console.print("[yellow]No providers enabled[/yellow]")
            return ExitCode.CONFIG_ERROR

        service = ConsoleNotificationService(console)
        notifier = ThresholdNotifier(service, enabled=config.notifications.enabled)
        update_checker = None
        if config.updates.enabled:
            update_checker = UpdateChecker(update_client, service)
        coordinator = RefreshCoordinator(
            fetchers,
            notifier=notifier,
            thresholds=config.enabled_thresholds,
            interval=interval,
            update_checker=update_checker,
        )

        def show(snapshot: UsageSnapshot) -> None:
            console.print(render_snapshot(snapshot))

        coordinator.subscribe(show)

        watcher = None
        if config.watch.enabled:
            watcher = ChangeWatcher(
                {provider: fetcher.logs_root for provider, fetcher in fetchers.items()},
                coordinator.handle_change,
                latency=config.watch.latency,
                debounce=config.watch.debounce,
            )

        await coordinator.refresh_all()
        coordinator.start()
        if watcher is not None:
            watcher.start()
        console.print(f"[dim]Refreshing every {interval:g}s. Press Ctrl-C to stop.[/dim]")

        try:
            await asyncio.Event().wait()
        finally:
            if watcher is not None:
                watcher.stop()
            coordinator.stop()

    return ExitCode.SUCCESS


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    interval: float = typer.Option(
        None,
        "--interval",
        "-i",
        help="Refresh interval in seconds (default: from config)",
    ),
) -> None:
    """Keep refreshing usage and alert when thresholds are crossed."""
    console = Console()

    try:
        config = get_config()
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    effective = (
        max(interval, MIN_REFRESH_INTERVAL)
        if interval is not None
        else config.refresh.effective_interval()
    )

    try:
        code = asyncio.run(run_watch(config, console, effective))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")
        return
    except ValueError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    if code != ExitCode.SUCCESS:
        raise typer.Exit(code)
