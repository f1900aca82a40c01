"""Error taxonomy for vidsub.

Every pipeline component raises its own subclass of VidsubError. The
orchestrator wraps the first failure in a PipelineError that records the
stage it happened in, so callers can branch on both the stage and the
underlying error kind.
"""

from __future__ import annotations

from pathlib import Path

from vidsub.core.models import Stage


class VidsubError(Exception):
    """Base class for all vidsub errors."""


class ConfigError(VidsubError):
    """Config file is missing, unreadable, or fails validation."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


# Model store


class ModelError(VidsubError):
    """The requested model could not be made available locally."""


class ModelNetworkError(ModelError):
    """Download failed at the HTTP level or was truncated."""


class ModelIOError(ModelError):
    """Model file could not be written to the cache directory."""


class ModelSizeUnknownError(ModelError):
    """Server did not announce a Content-Length for the model."""


# Audio extraction


class MediaError(VidsubError):
    """Audio could not be extracted or decoded from the input."""


class ToolFailedError(MediaError):
    """The external decoding tool exited with a non-zero status."""

    def __init__(self, stderr: str, returncode: int | None = None, message: str | None = None) -> None:
        if message is None:
            detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
            message = f"ffmpeg failed (exit {returncode}): {detail}"
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode


class UnexpectedFormatError(MediaError):
    """Extracted audio does not match mono 16 kHz 16-bit integer PCM."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Unexpected audio format: {detail}")
        self.detail = detail


# Transcription


class TranscriptionError(VidsubError):
    """Speech recognition did not produce segments."""


class EngineFailureError(TranscriptionError):
    """The inference engine failed to load, initialise, or run."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Transcription engine failed: {detail}")
        self.detail = detail


# Subtitle output


class SubtitleWriteError(VidsubError):
    """Subtitle document could not be written to its destination."""


# Orchestration


class PipelineError(VidsubError):
    """A pipeline run halted. Carries the failing stage and original error."""

    def __init__(self, stage: Stage, cause: BaseException | None = None, message: str = "") -> None:
        self.stage = stage
        self.cause = cause
        if not message:
            message = str(cause) if cause is not None else "unknown error"
        super().__init__(f"[{stage.value}] {message}")
        self.message = message


class InputNotFoundError(PipelineError):
    """Input video does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(Stage.INIT, message=f"Input file not found: {path}")
        self.path = path


class CleanupWarning(UserWarning):
    """Temporary file could not be removed. Never changes a run's outcome."""

    def __init__(self, path: Path, cause: OSError) -> None:
        super().__init__(f"Could not remove temporary file {path}: {cause}")
        self.path = path
        self.cause = cause
