"""vidsub CLI entry point."""

from typing import Annotated, Optional

import typer
from dotenv import load_dotenv

from vidsub import __version__
from vidsub.cli.config import config
from vidsub.cli.models import models
from vidsub.cli.transcribe import transcribe

app = typer.Typer(
    name="vidsub",
    help="vidsub — Generate subtitles from video with whisper.cpp, offline.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"vidsub {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """vidsub — Generate subtitles from video with whisper.cpp, offline."""
    # Load .env so VIDSUB_* settings can live next to the project.
    # Existing env vars win over .env entries
    load_dotenv(override=False)


app.command("transcribe")(transcribe)
app.command("models")(models)
app.command("config")(config)
