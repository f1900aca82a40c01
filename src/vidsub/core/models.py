"""Shared data models for vidsub."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vidsub.core.errors import CleanupWarning


class Stage(str, Enum):
    """Discrete steps of a pipeline run, in execution order."""

    INIT = "init"
    MODEL_CHECK = "model"
    AUDIO_EXTRACT = "audio"
    DECODE = "decode"
    TRANSCRIBE = "transcribe"
    WRITE_SUBTITLE = "write"
    CLEANUP = "cleanup"
    DONE = "done"


@dataclass(frozen=True)
class PipelineConfig:
    """Inputs of one pipeline run. Immutable once the run starts."""

    input_path: Path
    output_path: Path
    model_id: str
    language: str = "auto"


@dataclass(frozen=True)
class ModelDescriptor:
    """A model artifact and where it lives in the local cache."""

    model_id: str
    local_path: Path
    present: bool


@dataclass(frozen=True)
class DownloadProgress:
    """Byte counters for an active model download."""

    bytes_downloaded: int
    total_bytes: int

    @property
    def fraction(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return min(self.bytes_downloaded / self.total_bytes, 1.0)


@dataclass
class TranscriptSegment:
    """One timed span of recognized speech.

    ``index`` is assigned by the formatter (1-based, by position); segments
    straight from the engine carry 0.
    """

    start_seconds: float
    end_seconds: float
    text: str
    index: int = 0


@dataclass(frozen=True)
class SubtitleDocument:
    """Ordered, numbered cues ready for serialization."""

    cues: tuple[TranscriptSegment, ...]

    @classmethod
    def from_segments(cls, segments: list[TranscriptSegment]) -> SubtitleDocument:
        return cls(
            cues=tuple(
                TranscriptSegment(
                    start_seconds=seg.start_seconds,
                    end_seconds=seg.end_seconds,
                    text=seg.text.strip(),
                    index=i,
                )
                for i, seg in enumerate(segments, 1)
            )
        )

    def __len__(self) -> int:
        return len(self.cues)


@dataclass
class PipelineResult:
    """Outcome of a successful run."""

    output_path: Path
    segments: list[TranscriptSegment]
    run_id: str
    elapsed: float = 0.0
    warnings: list[CleanupWarning] = field(default_factory=list)
