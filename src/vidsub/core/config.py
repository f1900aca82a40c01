"""Configuration system for vidsub.

Layered config loading (lowest to highest priority):
1. Built-in defaults (below)
2. <config_dir>/config.toml (user-level, created on first run)
3. ./vidsub.toml (project-level, optional)
4. CLI flags
Environment variables (VIDSUB_BASE__LANGUAGE, etc.) fill any key the
layers above leave unset.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console

from vidsub.core.errors import ConfigError

console = Console()

DEFAULT_MODEL = "ggml-medium-q8_0.bin"
DEFAULT_LANGUAGE = "auto"
MODEL_BASE_URL = "https://huggingface.co/ggerganov/whisper.cpp/resolve/main"

_PROJECT_CONFIG = Path("vidsub.toml")

DEFAULT_CONFIG_TOML = f"""\
# vidsub configuration - generated automatically

[base]
# Whisper model file name (downloaded on first use)
model = "{DEFAULT_MODEL}"

# Recognition language (e.g. zh, ja, en, auto)
language = "{DEFAULT_LANGUAGE}"
"""


class BaseConfig(BaseModel):
    model: str = DEFAULT_MODEL
    language: str = DEFAULT_LANGUAGE


class DownloadConfig(BaseModel):
    base_url: str = MODEL_BASE_URL
    timeout: float = 30.0  # per-request connect/read timeout, seconds
    chunk_size: int = 1 << 20


class MediaConfig(BaseModel):
    ffmpeg: str = "ffmpeg"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VIDSUB_",
        env_nested_delimiter="__",
    )

    base: BaseConfig = BaseConfig()
    download: DownloadConfig = DownloadConfig()
    media: MediaConfig = MediaConfig()

    @property
    def model(self) -> str:
        return self.base.model

    @property
    def language(self) -> str:
        return self.base.language


def ensure_config_file(path: Path) -> bool:
    """Write the default config file if none exists.

    Returns:
        True if the file was created.
    """
    if path.is_file():
        return False
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DEFAULT_CONFIG_TOML, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot create config file {path}: {e}", path=path) from e
    console.print(f"[dim]Created default config:[/dim] {path}")
    return True


def _load_toml(path: Path) -> dict:
    """Load a TOML file if it exists, return empty dict otherwise."""
    if not path.is_file():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed config file {path}: {e}", path=path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}", path=path) from e


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_file: Path, **cli_overrides: object) -> Settings:
    """Load configuration from all layers and merge.

    Args:
        config_file: User config file; created with defaults when missing.
        **cli_overrides: Direct overrides from CLI flags. Keys can be
            dot-separated (e.g. base.language="ja").

    Raises:
        ConfigError: If a config file is malformed or a value is invalid.
    """
    ensure_config_file(config_file)

    config_data: dict = {}
    for path in (config_file, _PROJECT_CONFIG):
        config_data = _deep_merge(config_data, _load_toml(path))

    for key, value in cli_overrides.items():
        if value is None:
            continue
        parts = key.split(".")
        target = config_data
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value

    try:
        return Settings(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", path=config_file) from e
