"""One-shot usage display."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import typer
from rich.console import Console

from usagebar.cli.app import ExitCode
from usagebar.cli.app import app
from usagebar.config.credentials import default_credential_source
from usagebar.config.settings import Config
from usagebar.config.settings import get_config
from usagebar.core.aggregate import AggregatedResult
from usagebar.core.coordinator import RefreshCoordinator
from usagebar.core.http import create_http_client
from usagebar.display.json import output_json_error
from usagebar.display.json import output_json_pretty
from usagebar.display.json import result_to_dict
from usagebar.display.rich import render_snapshot
from usagebar.errors.types import ConfigError
from usagebar.models import Provider
from usagebar.providers import ProviderFetcher
from usagebar.providers import create_fetcher
from usagebar.providers import create_fetchers
from usagebar.providers import get_fetcher_class


@asynccontextmanager
async def open_fetchers(
    config: Config, only: Provider | None = None
) -> AsyncIterator[dict[Provider, ProviderFetcher]]:
    """Build fetchers sharing one HTTP client, closing it on exit.

    A provider named explicitly is fetched even if it is disabled in config.
    """
    credentials = default_credential_source(config.credentials.use_keyring)
    client = create_http_client(config.refresh.effective_timeout())
    try:
        if only is not None:
            yield {only: create_fetcher(only, credentials, client, config)}
        else:
            yield create_fetchers(config, credentials, client)
    finally:
        await client.aclose()


async def load_plan_labels(
    fetchers: dict[Provider, ProviderFetcher], providers: list[Provider]
) -> dict[Provider, str | None]:
    labels = await asyncio.gather(
        *(fetchers[p].get_plan_label() for p in providers), return_exceptions=True
    )
    return {
        provider: label if isinstance(label, str) else None
        for provider, label in zip(providers, labels)
    }


def exit_code_for(result: AggregatedResult) -> ExitCode:
    if result.all_failed():
        return ExitCode.GENERAL_ERROR
    if result.failed_providers():
        return ExitCode.PARTIAL_FAILURE
    return ExitCode.SUCCESS


def selected_first(providers: list[Provider], selected: Provider | None) -> list[Provider]:
    """Order providers with the selected one leading, the rest unchanged."""
    return sorted(providers, key=lambda p: p != selected)


def display_result(
    console: Console,
    result: AggregatedResult,
    plan_labels: dict[Provider, str | None],
    verbose: bool = False,
    selected: Provider | None = None,
) -> None:
    for provider in selected_first(result.successful_providers(), selected):
        console.print(render_snapshot(result.snapshots[provider], plan_labels.get(provider)))

    for provider in selected_first(result.failed_providers(), selected):
        dashboard = get_fetcher_class(provider).metadata.dashboard_url
        console.print(
            f"[yellow]{provider.display_name}:[/yellow] no usage data available "
            f"[dim](see {dashboard})[/dim]"
        )
        if verbose:
            for attempt in result.outcomes[provider].attempts:
                console.print(
                    f"  [dim]{attempt.strategy}: {attempt.error} ({attempt.duration_ms}ms)[/dim]"
                )


async def run_usage(
    provider_id: str | None,
    json_mode: bool = False,
    verbose: bool = False,
    console: Console | None = None,
) -> ExitCode:
    """Refresh once and print the result; returns the process exit code."""
    console = console or Console()

    only = None
    if provider_id:
        try:
            only = Provider(provider_id.lower())
        except ValueError:
            available = ", ".join(p.value for p in Provider)
            message = f"Unknown provider: {provider_id}. Available: {available}"
            if json_mode:
                output_json_error(message, category="config")
            else:
                console.print(f"[red]Error:[/red] {message}")
            return ExitCode.GENERAL_ERROR

    try:
        config = get_config()
    except ConfigError as e:
        if json_mode:
            output_json_error(str(e), category="config")
        else:
            console.print(f"[red]Config error:[/red] {e}")
        return ExitCode.CONFIG_ERROR

    async with open_fetchers(config, only) as fetchers:
        if not fetchers:
            console.print("[yellow]No providers enabled[/yellow]")
            return ExitCode.CONFIG_ERROR

        coordinator = RefreshCoordinator(fetchers)
        result = await coordinator.refresh_all()
        plan_labels = await load_plan_labels(fetchers, result.successful_providers())

    if json_mode:
        output_json_pretty(result_to_dict(result, plan_labels))
    else:
        display_result(
            console, result, plan_labels, verbose=verbose, selected=config.selected_provider
        )

    return exit_code_for(result)


@app.command("usage")
async def usage_command(
    ctx: typer.Context,
    provider: str = typer.Argument(
        None,
        help="Provider to show (default: all enabled)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output in JSON format",
    ),
) -> None:
    """Show current usage for all enabled providers or a specific provider."""
    json_mode = json_output or ctx.meta.get("json", False)
    verbose = ctx.meta.get("verbose", False)

    code = await run_usage(provider, json_mode=json_mode, verbose=verbose)
    if code != ExitCode.SUCCESS:
        raise typer.Exit(code)
