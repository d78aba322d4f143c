"""Main CLI application for usagebar."""

from __future__ import annotations

import logging
from enum import IntEnum

import typer
from rich.console import Console
from rich.logging import RichHandler

from usagebar.cli.atyper import ATyper

app = ATyper(
    name="usagebar",
    help="Live rate-limit usage for Claude and Codex",
    add_completion=False,
    no_args_is_help=False,
    invoke_without_command=True,
)


class ExitCode(IntEnum):
    """Exit codes for usagebar."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFIG_ERROR = 4
    PARTIAL_FAILURE = 5


def configure_logging(verbose: bool) -> None:
    """Route library logs through rich; DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    json: bool = typer.Option(False, "--json", "-j", help="Enable JSON output mode"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
) -> None:
    """usagebar - live rate-limit usage for Claude and Codex."""
    if version:
        from usagebar import __version__

        typer.echo(f"usagebar {__version__}")
        raise typer.Exit()

    configure_logging(verbose)

    ctx.meta["json"] = json
    ctx.meta["verbose"] = verbose

    # If no command provided, run default usage command
    if ctx.invoked_subcommand is None:
        import asyncio

        from usagebar.cli.commands.usage import run_usage

        code = asyncio.run(run_usage(None, json_mode=json))
        raise typer.Exit(code)


def run_app() -> None:
    """Run the CLI app."""
    app()


# Command modules register themselves via @app.command(); import after app exists
from usagebar.cli.commands import usage  # noqa: E402,F401
from usagebar.cli.commands import watch  # noqa: E402,F401
from usagebar.cli.commands import config as config_cmd  # noqa: E402

app.add_typer(config_cmd.config_app, name="config")
