"""Directory layout for config, model cache, and per-run temporary files."""

from __future__ import annotations

import os
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

APP_NAME = "video-subtitle"


def new_run_id() -> str:
    """Short unique identifier for one pipeline run."""
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class AppPaths:
    """Explicit directory context handed to every component that needs a path.

    Structure:
        <config_dir>/config.toml
        <config_dir>/models/<model_id>
        <temp_dir>/vidsub-<run_id>.wav
    """

    config_dir: Path
    temp_dir: Path

    @classmethod
    def default(cls) -> AppPaths:
        """Resolve the OS-specific per-user config dir and system temp dir.

        VIDSUB_CONFIG_DIR overrides the config dir (and with it the model cache).
        """
        config_dir = os.environ.get("VIDSUB_CONFIG_DIR") or user_config_dir(APP_NAME, appauthor=False)
        return cls(
            config_dir=Path(config_dir),
            temp_dir=Path(tempfile.gettempdir()),
        )

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.toml"

    @property
    def models_dir(self) -> Path:
        return self.config_dir / "models"

    def temp_audio_path(self, run_id: str) -> Path:
        """Temporary WAV path, unique per run so concurrent runs never collide."""
        return self.temp_dir / f"vidsub-{run_id}.wav"


def default_output_path(input_path: Path) -> Path:
    """Subtitle path next to the input video: ``movie.mp4`` -> ``movie.srt``."""
    return input_path.with_name(f"{input_path.stem}.srt")
