"""vidsub config command — show the config file and effective settings."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from vidsub.core.config import load_config
from vidsub.core.errors import ConfigError
from vidsub.utils.paths import AppPaths

console = Console()


def config() -> None:
    """Show where the config file lives and the values in effect."""
    paths = AppPaths.default()
    try:
        settings = load_config(paths.config_file)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Effective Configuration")
    table.add_column("Key", style="bold cyan")
    table.add_column("Value")

    for section, values in settings.model_dump().items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))

    console.print(table)
    console.print(f"\n[bold]Config file:[/bold] {paths.config_file}")
    console.print(f"[bold]Model cache:[/bold] {paths.models_dir}")
