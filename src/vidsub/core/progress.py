"""Shared progress record and background run handle.

A run writes events into a ProgressRecord from its worker thread; the
foreground polls ``snapshot()`` on a fixed cadence. Only the latest state
is kept (last write wins), so a slow poller can miss intermediate stages.
Terminal states persist until the record is reset, so completion or
failure is always observed eventually.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Callable

from vidsub.core.errors import PipelineError
from vidsub.core.events import (
    EventCallback,
    ProgressEvent,
    RunCompleted,
    RunFailed,
    RunStarted,
    StageProgress,
)
from vidsub.core.models import PipelineResult, Stage


class RunPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressSnapshot:
    """Immutable view of the record at one instant.

    ``sequence`` counts applied events; a gap between two polls means
    intermediate updates were overwritten.
    """

    phase: RunPhase = RunPhase.IDLE
    stage: str = ""
    message: str = ""
    fraction: float = 0.0
    output_path: Path | None = None
    error: PipelineError | None = None
    sequence: int = 0

    @property
    def finished(self) -> bool:
        return self.phase in (RunPhase.COMPLETED, RunPhase.FAILED)


class ProgressRecord:
    """Single-writer, many-reader cell guarded by a lock.

    Each event is folded into a fresh immutable snapshot and swapped in
    under the lock, so readers never see a partial update. Nothing inside
    the critical section does I/O.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = ProgressSnapshot()

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return self._snapshot

    def reset(self) -> None:
        with self._lock:
            self._snapshot = ProgressSnapshot()

    def apply(self, event: ProgressEvent) -> None:
        """Fold one event into the record. Usable directly as an EventCallback."""
        with self._lock:
            updated = _fold(self._snapshot, event)
            self._snapshot = replace(updated, sequence=self._snapshot.sequence + 1)


def _fold(snap: ProgressSnapshot, event: ProgressEvent) -> ProgressSnapshot:
    if isinstance(event, RunStarted):
        return ProgressSnapshot(
            phase=RunPhase.RUNNING,
            message="Preparing...",
            sequence=snap.sequence,
        )
    if isinstance(event, StageProgress):
        return replace(
            snap,
            phase=RunPhase.RUNNING,
            stage=event.stage,
            message=event.message,
            fraction=event.fraction,
        )
    if isinstance(event, RunCompleted):
        return replace(
            snap,
            phase=RunPhase.COMPLETED,
            message="Done",
            fraction=1.0,
            output_path=event.output_path,
        )
    if isinstance(event, RunFailed):
        return replace(
            snap,
            phase=RunPhase.FAILED,
            stage=event.error.stage.value,
            message=event.error.message,
            fraction=0.0,
            error=event.error,
        )
    raise TypeError(f"Unknown progress event: {event!r}")


RunTarget = Callable[[EventCallback], PipelineResult]


class BackgroundRun:
    """Supervised handle for one pipeline run on a dedicated worker thread.

    The target receives the record's ``apply`` as its event callback.
    Callers may poll ``done()`` or block in ``wait()``; the outcome is
    available afterwards as ``result`` or ``error``.
    """

    def __init__(self, target: RunTarget, record: ProgressRecord, name: str = "vidsub-run") -> None:
        self.record = record
        self._target = target
        self._result: PipelineResult | None = None
        self._error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> BackgroundRun:
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            self._result = self._target(self.record.apply)
        except PipelineError as e:
            self._error = e
            # The orchestrator reports its own failure; other runners may not
            if not self.record.snapshot().finished:
                self.record.apply(RunFailed(error=e))
        except Exception as e:
            self._error = e
            self.record.apply(RunFailed(error=_as_pipeline_error(e)))

    def done(self) -> bool:
        return self._thread.ident is not None and not self._thread.is_alive()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the run finishes or ``timeout`` elapses. Returns done()."""
        self._thread.join(timeout)
        return self.done()

    @property
    def result(self) -> PipelineResult | None:
        return self._result

    @property
    def error(self) -> BaseException | None:
        return self._error


def _as_pipeline_error(exc: Exception) -> PipelineError:
    error = PipelineError(Stage.INIT, exc)
    error.__cause__ = exc
    return error
