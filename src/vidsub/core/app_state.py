"""Foreground state machine driving the CLI and any desktop front end.

    Initial --select(found)--> FileSelected --start--> Processing
    Processing --completed--> Completed --save ok--> SaveSuccess --next--> Initial
    Processing --failed--> Error --restart--> Initial
    Completed --save failed--> Error

The front end calls ``poll()`` on a fixed cadence; that is the only way a
Processing run becomes Completed or Error. A running job cannot be
cancelled.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Callable

from vidsub.core.config import Settings
from vidsub.core.errors import SubtitleWriteError
from vidsub.core.events import EventCallback
from vidsub.core.models import PipelineConfig, PipelineResult
from vidsub.core.pipeline import run_pipeline
from vidsub.core.progress import BackgroundRun, ProgressRecord, ProgressSnapshot, RunPhase
from vidsub.subtitles.srt import save_subtitles
from vidsub.utils.paths import AppPaths, default_output_path

POLL_INTERVAL = 0.1  # seconds

Runner = Callable[..., PipelineResult]


class AppStatus(str, Enum):
    INITIAL = "initial"
    FILE_SELECTED = "file_selected"
    PROCESSING = "processing"
    COMPLETED = "completed"
    SAVE_SUCCESS = "save_success"
    ERROR = "error"


@dataclass(frozen=True)
class AppError:
    """Error state payload: the structured cause plus a display message."""

    cause: BaseException
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> AppError:
        return cls(cause=exc, message=str(exc))


class InvalidTransitionError(RuntimeError):
    """An action was requested in a state that does not accept it."""


class SubtitleApp:
    """Status owner for one user session.

    Args:
        settings: Effective configuration; supplies the default model and language.
        paths: Directory context passed on to each run.
        runner: Pipeline entry point, called as
            ``runner(config, paths, on_event, settings=...)``.
    """

    def __init__(self, settings: Settings, paths: AppPaths, runner: Runner = run_pipeline) -> None:
        self.settings = settings
        self.paths = paths
        self.model = settings.model
        self.language = settings.language
        self.input_path: Path | None = None
        self.output_path: Path | None = None
        self.status = AppStatus.INITIAL
        self.error: AppError | None = None
        self.result_path: Path | None = None
        self.saved_path: Path | None = None
        self.record = ProgressRecord()
        self._runner = runner
        self._run: BackgroundRun | None = None

    # -- queries -----------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self.status is AppStatus.PROCESSING

    @property
    def run(self) -> BackgroundRun | None:
        return self._run

    def progress(self) -> ProgressSnapshot:
        return self.record.snapshot()

    # -- user actions ------------------------------------------------------

    def select_file(self, path: Path | None) -> bool:
        """Choose the input video. ``None`` (dialog cancelled) keeps the state.

        The output path defaults to ``<stem>.srt`` beside the input unless one
        was already chosen.
        """
        self._require(AppStatus.INITIAL, AppStatus.FILE_SELECTED, action="select a file")
        if path is None:
            return False
        path = Path(path)
        if not path.is_file():
            return False
        self.input_path = path
        if self.output_path is None:
            self.output_path = default_output_path(path)
        self.status = AppStatus.FILE_SELECTED
        return True

    def select_output(self, path: Path | None) -> bool:
        if self.is_processing or path is None:
            return False
        self.output_path = Path(path)
        return True

    def set_language(self, language: str) -> bool:
        if self.is_processing:
            return False
        self.language = language
        return True

    def set_model(self, model: str) -> bool:
        if self.is_processing:
            return False
        self.model = model
        return True

    def start(self) -> bool:
        """Launch a background run. Rejected while one is already in flight."""
        if self.is_processing:
            return False
        self._require(AppStatus.FILE_SELECTED, action="start")

        config = PipelineConfig(
            input_path=self.input_path,
            output_path=self.output_path,
            model_id=self.model,
            language=self.language,
        )
        self.record.reset()
        self.error = None
        self.result_path = None
        target: Callable[[EventCallback], PipelineResult] = partial(
            self._invoke_runner, config
        )
        self.status = AppStatus.PROCESSING
        self._run = BackgroundRun(target, self.record).start()
        return True

    def poll(self) -> ProgressSnapshot:
        """Read the shared record and move out of Processing once it is terminal."""
        snapshot = self.record.snapshot()
        if self.status is not AppStatus.PROCESSING:
            return snapshot
        if snapshot.phase is RunPhase.COMPLETED:
            self.result_path = snapshot.output_path
            self.status = AppStatus.COMPLETED
        elif snapshot.phase is RunPhase.FAILED:
            cause = snapshot.error if snapshot.error is not None else RuntimeError(snapshot.message)
            self.error = AppError(cause=cause, message=snapshot.message)
            self.status = AppStatus.ERROR
        return snapshot

    def wait(
        self,
        interval: float = POLL_INTERVAL,
        on_tick: Callable[[ProgressSnapshot], None] | None = None,
    ) -> AppStatus:
        """Poll every ``interval`` seconds until the run leaves Processing."""
        while True:
            snapshot = self.poll()
            if on_tick:
                on_tick(snapshot)
            if not self.is_processing:
                return self.status
            time.sleep(interval)

    def save(self, destination: Path | None = None) -> bool:
        """Keep the finished subtitles, optionally under a new name or format."""
        self._require(AppStatus.COMPLETED, action="save")
        try:
            self.saved_path = save_subtitles(self.result_path, destination or self.result_path)
        except (OSError, SubtitleWriteError) as e:
            self.error = AppError.from_exception(e)
            self.status = AppStatus.ERROR
            return False
        self.status = AppStatus.SAVE_SUCCESS
        return True

    def next(self) -> None:
        """Start over after a successful save."""
        self._require(AppStatus.SAVE_SUCCESS, action="continue")
        self._reset()

    def restart(self) -> None:
        """Leave the error state; input and output selections are cleared."""
        self._require(AppStatus.ERROR, action="restart")
        self._reset()

    # -- internals ---------------------------------------------------------

    def _invoke_runner(self, config: PipelineConfig, on_event: EventCallback) -> PipelineResult:
        return self._runner(config, self.paths, on_event, settings=self.settings)

    def _reset(self) -> None:
        self.input_path = None
        self.output_path = None
        self.result_path = None
        self.saved_path = None
        self.error = None
        self._run = None
        self.record.reset()
        self.status = AppStatus.INITIAL

    def _require(self, *allowed: AppStatus, action: str) -> None:
        if self.status not in allowed:
            raise InvalidTransitionError(f"Cannot {action} while {self.status.value}")
