"""Transcription using whisper.cpp through pywhispercpp.

The adapter runs the engine once over the whole sample buffer, forwards
its 0-100 progress as fractions, and converts the engine's centisecond
timestamps to seconds.
"""

from __future__ import annotations

import gc
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

import numpy as np
from rich.console import Console

from vidsub.core.errors import EngineFailureError, TranscriptionError
from vidsub.core.models import TranscriptSegment
from vidsub.utils.audio import SAMPLE_RATE

console = Console()

AUTO_LANGUAGE = "auto"

PercentCallback = Callable[[int], None]
FractionCallback = Callable[[float], None]


@dataclass(frozen=True)
class EngineSegment:
    """A segment as the engine reports it: times in centiseconds."""

    t0: int
    t1: int
    text: str


class TranscriptionEngine(Protocol):
    def transcribe(
        self,
        samples: np.ndarray,
        language: str | None,
        on_progress: PercentCallback | None = None,
    ) -> list[EngineSegment]: ...


EngineFactory = Callable[[Path], TranscriptionEngine]


class WhisperCppEngine:
    """whisper.cpp model loaded from a local ggml file."""

    def __init__(self, model_path: Path, n_threads: int | None = None) -> None:
        self.model_path = Path(model_path)
        self.n_threads = n_threads

    def _load_model(self):
        try:
            from pywhispercpp.model import Model
        except ImportError:
            raise ImportError(
                "pywhispercpp is not installed. Install with: pip install 'vidsub[transcribe]'"
            )

        kwargs: dict = {"redirect_whispercpp_logs_to": None}
        if self.n_threads:
            kwargs["n_threads"] = self.n_threads
        console.print(f"[bold]Loading model:[/bold] {self.model_path.name}")
        return Model(str(self.model_path), **kwargs)

    def transcribe(
        self,
        samples: np.ndarray,
        language: str | None,
        on_progress: PercentCallback | None = None,
    ) -> list[EngineSegment]:
        try:
            model = self._load_model()
        except ImportError:
            raise
        except Exception as e:
            raise EngineFailureError(f"cannot load {self.model_path}: {e}") from e

        # pywhispercpp has no progress hook; estimate it from how far the
        # newest segment reaches into the audio.
        total_cs = max(len(samples) * 100 // SAMPLE_RATE, 1)

        def _on_segment(segment) -> None:
            if on_progress:
                on_progress(min(int(segment.t1 * 100 / total_cs), 100))

        params: dict = {"language": language if language else AUTO_LANGUAGE}
        try:
            raw = model.transcribe(samples, new_segment_callback=_on_segment, **params)
        except Exception as e:
            raise EngineFailureError(str(e)) from e
        finally:
            del model
            gc.collect()

        if on_progress:
            on_progress(100)
        return [EngineSegment(t0=int(s.t0), t1=int(s.t1), text=s.text) for s in raw]


def transcribe(
    samples: np.ndarray,
    language: str,
    engine: TranscriptionEngine,
    on_progress: FractionCallback | None = None,
) -> list[TranscriptSegment]:
    """Run speech recognition over a normalized float32 sample buffer.

    Args:
        samples: Mono 16 kHz float32 samples in [-1.0, 1.0].
        language: Language code, or "auto" to let the engine detect it.
        engine: Loaded inference engine.
        on_progress: Receives engine progress as a fraction in [0, 1].

    Returns:
        Segments in engine order, with times in seconds.

    Raises:
        EngineFailureError: On any engine failure. Not retried.
    """
    hint = None if language == AUTO_LANGUAGE else language

    def _forward(pct: int) -> None:
        if on_progress:
            on_progress(min(max(pct, 0), 100) / 100)

    console.print("[bold]Transcribing...[/bold]")
    started = time.monotonic()
    try:
        raw = engine.transcribe(samples, hint, on_progress=_forward)
    except TranscriptionError:
        raise
    except Exception as e:
        raise EngineFailureError(str(e)) from e

    segments = [
        TranscriptSegment(start_seconds=seg.t0 / 100, end_seconds=seg.t1 / 100, text=seg.text)
        for seg in raw
    ]
    elapsed = time.monotonic() - started
    console.print(
        f"[green]Transcription complete:[/green] {len(segments)} segments in {elapsed:.1f}s"
    )
    return segments
