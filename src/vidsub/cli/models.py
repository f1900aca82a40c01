"""vidsub models command — list or pre-download cached models."""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from vidsub.core.config import load_config
from vidsub.core.errors import ConfigError, ModelError
from vidsub.core.models import DownloadProgress
from vidsub.downloader.model_store import ModelStore
from vidsub.utils.paths import AppPaths

console = Console()


def _format_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def models(
    download: Annotated[
        Optional[str],
        typer.Option("--download", "-d", help="Download a model into the cache if missing."),
    ] = None,
) -> None:
    """List models in the local cache, or fetch one ahead of time."""
    paths = AppPaths.default()
    try:
        settings = load_config(paths.config_file)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    store = ModelStore(
        paths.models_dir,
        base_url=settings.download.base_url,
        timeout=settings.download.timeout,
        chunk_size=settings.download.chunk_size,
    )

    if download is not None:
        progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TimeRemainingColumn(),
            console=console,
        )
        task_id = progress.add_task(download, total=None)

        def _on_progress(p: DownloadProgress) -> None:
            progress.update(task_id, total=p.total_bytes, completed=p.bytes_downloaded)

        try:
            with progress:
                store.ensure(download, on_progress=_on_progress)
        except ModelError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        return

    cached = store.list_models()
    table = Table(title=f"Cached Models ({len(cached)})")
    table.add_column("Model", style="bold cyan")
    table.add_column("Size", justify="right")
    table.add_column("Default", width=8)

    for descriptor in cached:
        is_default = "yes" if descriptor.model_id == settings.model else "-"
        table.add_row(descriptor.model_id, _format_size(descriptor.local_path.stat().st_size), is_default)

    console.print(table)
    console.print(f"\n[dim]Cache directory: {paths.models_dir}[/dim]")
