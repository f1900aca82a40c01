"""Pipeline event system for streaming progress to a foreground observer.

The orchestrator emits events through a single callback. Consumers (the
shared progress record, tests collecting a list) register that callback
without touching pipeline logic. Events from one run arrive in emission
order; the last event is always RunCompleted or RunFailed.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from vidsub.core.errors import PipelineError


@dataclass(frozen=True)
class RunStarted:
    run_id: str


@dataclass(frozen=True)
class StageProgress:
    """Progress within one stage.

    Attributes:
        stage: Stage name (model, audio, decode, transcribe, write, cleanup).
        fraction: Progress within this stage, 0.0 to 1.0.
        message: Human-readable status message.
    """

    stage: str
    fraction: float
    message: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.fraction <= 1.0:
            raise ValueError(f"fraction must be within [0, 1], got {self.fraction}")


@dataclass(frozen=True)
class RunCompleted:
    output_path: Path


@dataclass(frozen=True)
class RunFailed:
    error: PipelineError


ProgressEvent = Union[RunStarted, StageProgress, RunCompleted, RunFailed]

EventCallback = Callable[[ProgressEvent], None]
