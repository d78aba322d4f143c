"""Config inspection commands for usagebar."""

from __future__ import annotations

import msgspec
import msgspec.toml
import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from usagebar.cli.app import ExitCode
from usagebar.cli.atyper import ATyper
from usagebar.config.paths import config_dir
from usagebar.config.paths import config_file
from usagebar.config.settings import get_config
from usagebar.config.settings import load_config
from usagebar.config.settings import save_config
from usagebar.display.json import output_json_pretty
from usagebar.errors.types import ConfigError
from usagebar.models import Provider

config_app = ATyper(help="Inspect configuration settings.")


@config_app.command("show")
def config_show_command(ctx: typer.Context) -> None:
    """Display the effective settings."""
    console = Console()
    config_path = config_file()

    try:
        config = get_config()
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    if ctx.meta.get("json", False):
        data = msgspec.to_builtins(config)
        data["path"] = str(config_path)
        output_json_pretty(data)
        return

    toml_data = msgspec.toml.encode(config)
    console.print(
        Panel(Syntax(toml_data.decode(), "toml"), title=f"Config: {config_path}")
    )
    if not config_path.exists():
        console.print("[dim]Using default configuration (file not created yet)[/dim]")


@config_app.command("path")
def config_path_command(ctx: typer.Context) -> None:
    """Show the configuration paths used by usagebar."""
    if ctx.meta.get("json", False):
        output_json_pretty(
            {"config_dir": str(config_dir()), "config_file": str(config_file())}
        )
        return

    console = Console()
    console.print(f"Config dir:    {config_dir()}")
    console.print(f"Config file:   {config_file()}")


@config_app.command("select")
def config_select_command(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider to list first"),
) -> None:
    """Choose the provider shown first in usage output."""
    console = Console()

    try:
        selected = Provider(provider.lower())
    except ValueError as e:
        available = ", ".join(p.value for p in Provider)
        console.print(f"[red]Error:[/red] Unknown provider: {provider}. Available: {available}")
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e

    try:
        config = load_config(apply_env=False)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    save_config(msgspec.structs.replace(config, selected_provider=selected))

    if ctx.meta.get("json", False):
        output_json_pretty({"selected_provider": selected.value, "path": str(config_file())})
        return
    console.print(f"[green]✓[/green] {selected.display_name} selected")
