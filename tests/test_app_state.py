"""Tests for the foreground state machine."""

import threading
from functools import partial
from pathlib import Path

import pytest
from conftest import StubEngine

from vidsub.core.app_state import AppStatus, InvalidTransitionError, SubtitleApp
from vidsub.core.errors import PipelineError, SubtitleWriteError
from vidsub.core.events import RunCompleted, RunFailed, RunStarted, StageProgress
from vidsub.core.models import PipelineResult, Stage, TranscriptSegment
from vidsub.core.pipeline import run_pipeline
from vidsub.subtitles.srt import write_srt


def ok_runner(config, paths, on_event, settings=None):
    """Writes one cue and reports success."""
    on_event(RunStarted(run_id="r"))
    on_event(StageProgress(stage="transcribe", fraction=0.5, message="Transcribing (50%)..."))
    write_srt([TranscriptSegment(start_seconds=0.0, end_seconds=1.5, text="hello")], config.output_path)
    on_event(RunCompleted(output_path=config.output_path))
    return PipelineResult(output_path=config.output_path, segments=[], run_id="r")


def failing_runner(config, paths, on_event, settings=None):
    error = PipelineError(Stage.AUDIO_EXTRACT, message="ffmpeg failed (exit 1): moov atom not found")
    on_event(RunStarted(run_id="r"))
    on_event(RunFailed(error=error))
    raise error


@pytest.fixture
def make_app(settings, app_paths):
    def _make(runner=ok_runner) -> SubtitleApp:
        return SubtitleApp(settings, app_paths, runner=runner)

    return _make


def _finish(app: SubtitleApp) -> AppStatus:
    return app.wait(interval=0.01)


def test_happy_path(make_app, video_file: Path):
    app = make_app()
    assert app.status is AppStatus.INITIAL

    assert app.select_file(video_file)
    assert app.status is AppStatus.FILE_SELECTED
    assert app.output_path == video_file.with_suffix(".srt")

    assert app.start()
    assert app.status is AppStatus.PROCESSING

    assert _finish(app) is AppStatus.COMPLETED
    assert app.result_path == video_file.with_suffix(".srt")

    assert app.save()
    assert app.status is AppStatus.SAVE_SUCCESS
    assert app.saved_path.read_text(encoding="utf-8").startswith("1\n00:00:00,000 --> 00:00:01,500")

    app.next()
    assert app.status is AppStatus.INITIAL
    assert app.input_path is None
    assert app.output_path is None


def test_cancelled_selection(make_app):
    app = make_app()
    assert not app.select_file(None)
    assert app.status is AppStatus.INITIAL


def test_missing_file_selection(make_app, tmp_path: Path):
    app = make_app()
    assert not app.select_file(tmp_path / "gone.mp4")
    assert app.status is AppStatus.INITIAL
    assert app.input_path is None


def test_reselect(make_app, video_file: Path, tmp_path: Path):
    other = tmp_path / "other.mkv"
    other.write_bytes(b"\x00")
    app = make_app()
    app.select_file(video_file)
    app.select_file(other)
    assert app.status is AppStatus.FILE_SELECTED
    assert app.input_path == other


def test_explicit_output(make_app, video_file: Path, tmp_path: Path):
    app = make_app()
    app.select_file(video_file)
    assert app.select_output(tmp_path / "custom.srt")
    app.start()
    _finish(app)
    assert app.result_path == tmp_path / "custom.srt"
    assert (tmp_path / "custom.srt").exists()


def test_runner_receives_selection(settings, app_paths, video_file: Path):
    seen = {}

    def runner(config, paths, on_event, settings=None):
        seen["config"] = config
        seen["paths"] = paths
        return ok_runner(config, paths, on_event, settings=settings)

    app = SubtitleApp(settings, app_paths, runner=runner)
    app.set_language("ja")
    app.set_model("ggml-small.bin")
    app.select_file(video_file)
    app.start()
    _finish(app)

    assert seen["config"].language == "ja"
    assert seen["config"].model_id == "ggml-small.bin"
    assert seen["config"].input_path == video_file
    assert seen["paths"] is app_paths


def test_failure_then_restart(make_app, video_file: Path):
    app = make_app(failing_runner)
    app.select_file(video_file)
    app.start()

    assert _finish(app) is AppStatus.ERROR
    assert isinstance(app.error.cause, PipelineError)
    assert app.error.cause.stage is Stage.AUDIO_EXTRACT
    assert "moov atom" in app.error.message

    app.restart()
    assert app.status is AppStatus.INITIAL
    assert app.input_path is None
    assert app.output_path is None
    assert app.error is None


def test_runner_crash_becomes_error(make_app, video_file: Path):
    def crashing(config, paths, on_event, settings=None):
        raise RuntimeError("worker died")

    app = make_app(crashing)
    app.select_file(video_file)
    app.start()
    assert _finish(app) is AppStatus.ERROR
    assert app.error.message == "worker died"


def test_single_run_at_a_time(make_app, video_file: Path):
    release = threading.Event()
    calls = []

    def blocking(config, paths, on_event, settings=None):
        calls.append(config)
        release.wait(5)
        return ok_runner(config, paths, on_event, settings=settings)

    app = make_app(blocking)
    app.select_file(video_file)
    assert app.start()
    assert not app.start()
    assert not app.set_language("en")
    assert not app.set_model("other.bin")
    assert not app.select_output(video_file.with_suffix(".vtt"))

    # Nothing can move a Processing run forward except the run itself
    assert app.poll().phase.value in ("idle", "running")
    assert app.status is AppStatus.PROCESSING

    release.set()
    assert _finish(app) is AppStatus.COMPLETED
    assert len(calls) == 1


def test_save_converts(make_app, video_file: Path, tmp_path: Path):
    app = make_app()
    app.select_file(video_file)
    app.start()
    _finish(app)

    assert app.save(tmp_path / "exported.vtt")
    assert app.saved_path == tmp_path / "exported.vtt"
    assert app.saved_path.read_text(encoding="utf-8").startswith("WEBVTT")


def test_save_failure(make_app, video_file: Path, tmp_path: Path):
    blocker = tmp_path / "afile"
    blocker.write_text("x")
    app = make_app()
    app.select_file(video_file)
    app.start()
    _finish(app)

    assert not app.save(blocker / "out.srt")
    assert app.status is AppStatus.ERROR
    assert isinstance(app.error.cause, OSError)

    app.restart()
    assert app.status is AppStatus.INITIAL


@pytest.mark.parametrize("action", ["start", "save", "next", "restart"])
def test_invalid_transitions_from_initial(make_app, action):
    app = make_app()
    with pytest.raises(InvalidTransitionError):
        getattr(app, action)()
    assert app.status is AppStatus.INITIAL


def test_select_rejected_after_completion(make_app, video_file: Path):
    app = make_app()
    app.select_file(video_file)
    app.start()
    _finish(app)
    with pytest.raises(InvalidTransitionError):
        app.select_file(video_file)


def test_wait_ticks(make_app, video_file: Path):
    app = make_app()
    app.select_file(video_file)
    app.start()
    ticks = []
    app.wait(interval=0.01, on_tick=ticks.append)
    assert ticks
    assert ticks[-1].finished


def test_real_pipeline(settings, app_paths, model_file, fake_extract, video_file: Path):
    runner = partial(run_pipeline, engine_factory=lambda path: StubEngine())
    app = SubtitleApp(settings, app_paths, runner=runner)
    app.select_file(video_file)
    app.start()

    assert _finish(app) is AppStatus.COMPLETED
    assert app.result_path.read_text(encoding="utf-8") == "1\n00:00:00,000 --> 00:00:01,500\nhello\n\n"
    assert app.run.wait(timeout=5)
    assert app.run.result.segments[0].text == "hello"


def test_save_empty_result_converts(make_app, video_file: Path, tmp_path: Path):
    def silent_runner(config, paths, on_event, settings=None):
        on_event(RunStarted(run_id="r"))
        write_srt([], config.output_path)
        on_event(RunCompleted(output_path=config.output_path))
        return PipelineResult(output_path=config.output_path, segments=[], run_id="r")

    app = make_app(silent_runner)
    app.select_file(video_file)
    app.start()
    assert _finish(app) is AppStatus.COMPLETED

    assert app.save(tmp_path / "movie.vtt")
    assert app.status is AppStatus.SAVE_SUCCESS
    assert app.saved_path.read_text(encoding="utf-8").startswith("WEBVTT")


def test_save_conversion_failure(make_app, video_file: Path, tmp_path: Path):
    app = make_app()
    app.select_file(video_file)
    app.start()
    _finish(app)

    assert not app.save(tmp_path / "movie.xyz")
    assert app.status is AppStatus.ERROR
    assert isinstance(app.error.cause, SubtitleWriteError)

    app.restart()
    assert app.status is AppStatus.INITIAL


def test_runner_error_without_failure_event(make_app, video_file: Path):
    def silent_failure(config, paths, on_event, settings=None):
        raise PipelineError(Stage.MODEL_CHECK, message="model cache unavailable")

    app = make_app(silent_failure)
    app.select_file(video_file)
    app.start()
    assert _finish(app) is AppStatus.ERROR
    assert app.error.cause.stage is Stage.MODEL_CHECK
    assert "model cache unavailable" in app.error.message
