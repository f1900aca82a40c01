"""vidsub transcribe command — generate an SRT file from a video."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from vidsub.core.app_state import AppStatus, SubtitleApp
from vidsub.core.config import load_config
from vidsub.core.errors import ConfigError
from vidsub.core.pipeline import run_pipeline
from vidsub.core.progress import ProgressSnapshot
from vidsub.utils.paths import AppPaths

console = Console()


def _make_progress() -> Progress:
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
    )


def transcribe(
    video: Annotated[
        Path,
        typer.Argument(help="Input video file."),
    ],
    output: Annotated[
        Path,
        typer.Argument(help="Output subtitle file (.srt)."),
    ],
    language: Annotated[
        Optional[str],
        typer.Option("--language", "-l", help="Recognition language (e.g. zh, ja, en, auto)."),
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="Model file name (e.g. ggml-base.bin)."),
    ] = None,
) -> None:
    """Extract the audio of a video, transcribe it and write SRT subtitles."""
    paths = AppPaths.default()
    try:
        settings = load_config(
            paths.config_file,
            **{"base.language": language, "base.model": model},
        )
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    app = SubtitleApp(settings, paths, runner=run_pipeline)
    if not app.select_file(video):
        console.print(f"[red]File not found:[/red] {video}")
        raise typer.Exit(1)
    app.select_output(output)

    console.print(f"[bold]Model:[/bold] {app.model}  [bold]Language:[/bold] {app.language}")
    app.start()

    progress = _make_progress()
    task_id = progress.add_task("Preparing", total=1.0)

    def _on_tick(snapshot: ProgressSnapshot) -> None:
        progress.update(
            task_id,
            description=snapshot.stage or "Preparing",
            completed=snapshot.fraction,
        )

    with progress:
        status = app.wait(on_tick=_on_tick)

    if status is AppStatus.ERROR:
        console.print(f"[red]Error:[/red] {app.error.message}")
        raise typer.Exit(1)

    if not app.save():
        console.print(f"[red]Error:[/red] {app.error.message}")
        raise typer.Exit(1)
    console.print(f"\n[bold green]Done![/bold green] Subtitles: {app.saved_path}")
