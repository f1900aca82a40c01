"""Pipeline orchestrator: model check, extract, decode, transcribe, write, clean up.

Stages run once each, in order. The first failure is wrapped in a
PipelineError naming its stage and the remaining stages are skipped,
except cleanup, which runs on every exit path. No stage is retried and
none has a timeout: a hung ffmpeg or engine call blocks the run.
"""

from __future__ import annotations

import time
from pathlib import Path

from rich.console import Console

from vidsub.core.config import Settings
from vidsub.core.errors import CleanupWarning, InputNotFoundError, PipelineError
from vidsub.core.events import (
    EventCallback,
    ProgressEvent,
    RunCompleted,
    RunFailed,
    RunStarted,
    StageProgress,
)
from vidsub.core.models import DownloadProgress, PipelineConfig, PipelineResult, Stage
from vidsub.downloader.model_store import ModelStore
from vidsub.subtitles.srt import write_srt
from vidsub.transcriber.whisper_cpp import EngineFactory, WhisperCppEngine, transcribe
from vidsub.utils.audio import SAMPLE_RATE, extract_audio, load_samples
from vidsub.utils.paths import AppPaths, new_run_id

console = Console()


def run_pipeline(
    config: PipelineConfig,
    paths: AppPaths,
    on_event: EventCallback | None = None,
    settings: Settings | None = None,
    store: ModelStore | None = None,
    engine_factory: EngineFactory = WhisperCppEngine,
    run_id: str | None = None,
) -> PipelineResult:
    """Turn one video into one SRT file.

    Not safe to call concurrently from two threads sharing ``on_event``;
    the foreground state machine allows a single run at a time.

    Args:
        config: Input/output paths, model id and language for this run.
        paths: Config, model cache and temp directories.
        on_event: Optional callback for progress events. The final event
            is RunCompleted or RunFailed.
        settings: Download and ffmpeg settings. Defaults are used if None.
        store: Model store. Built from ``paths`` and ``settings`` if None.
        engine_factory: Builds the inference engine from a model path.
        run_id: Identifier used to name temporary files. Generated if None.

    Returns:
        PipelineResult with the output path, segments and any cleanup warnings.

    Raises:
        PipelineError: Wrapping the first stage failure.
    """
    settings = settings or Settings()
    run_id = run_id or new_run_id()
    if store is None:
        store = ModelStore(
            paths.models_dir,
            base_url=settings.download.base_url,
            timeout=settings.download.timeout,
            chunk_size=settings.download.chunk_size,
        )

    def emit(event: ProgressEvent) -> None:
        if on_event:
            on_event(event)

    def stage_progress(stage: Stage, fraction: float, message: str) -> None:
        emit(StageProgress(stage=stage.value, fraction=fraction, message=message))

    started = time.monotonic()
    audio_path = paths.temp_audio_path(run_id)
    stage = Stage.INIT
    segments = []
    error: PipelineError | None = None
    cleanup_warning: CleanupWarning | None = None

    emit(RunStarted(run_id=run_id))
    try:
        # Step 1: Validate input before anything touches disk or network
        if not config.input_path.is_file():
            raise InputNotFoundError(config.input_path)

        # Step 2: Ensure the model is cached
        stage = Stage.MODEL_CHECK
        stage_progress(stage, 0.0, f"Checking model {config.model_id}...")

        def _on_download(progress: DownloadProgress) -> None:
            stage_progress(
                Stage.MODEL_CHECK,
                progress.fraction,
                f"Downloading model ({progress.bytes_downloaded}/{progress.total_bytes} bytes)",
            )

        model_path = store.ensure(config.model_id, on_progress=_on_download)
        stage_progress(stage, 1.0, "Model ready")

        # Step 3: Extract audio to a per-run temp file
        stage = Stage.AUDIO_EXTRACT
        stage_progress(stage, 0.0, "Extracting audio...")
        console.print(f"[bold]Extracting audio:[/bold] {config.input_path}")
        extract_audio(config.input_path, audio_path, ffmpeg=settings.media.ffmpeg)
        stage_progress(stage, 1.0, "Audio extracted")

        # Step 4: Validate and decode PCM
        stage = Stage.DECODE
        stage_progress(stage, 0.0, "Decoding audio...")
        samples = load_samples(audio_path)
        stage_progress(stage, 1.0, f"Decoded {len(samples) / SAMPLE_RATE:.1f}s of audio")

        # Step 5: Transcribe
        stage = Stage.TRANSCRIBE
        stage_progress(stage, 0.0, "Transcribing...")

        def _on_transcribe(fraction: float) -> None:
            stage_progress(Stage.TRANSCRIBE, fraction, f"Transcribing ({fraction:.0%})...")

        engine = engine_factory(model_path)
        segments = transcribe(samples, config.language, engine, on_progress=_on_transcribe)
        stage_progress(stage, 1.0, f"{len(segments)} segments")

        # Step 6: Write subtitles
        stage = Stage.WRITE_SUBTITLE
        stage_progress(stage, 0.0, "Writing subtitles...")
        write_srt(segments, config.output_path)
        console.print(f"[green]Saved:[/green] {config.output_path}")
        stage_progress(stage, 1.0, "Subtitles written")
    except PipelineError as e:
        error = e
    except Exception as e:
        error = PipelineError(stage, e)
        error.__cause__ = e
    finally:
        stage_progress(Stage.CLEANUP, 0.0, "Cleaning up...")
        cleanup_warning = _remove_temp_file(audio_path)
        stage_progress(Stage.CLEANUP, 1.0, "Cleanup done")

    if error is not None:
        console.print(f"[red]Failed at {error.stage.value}:[/red] {error.message}")
        emit(RunFailed(error=error))
        raise error

    result = PipelineResult(
        output_path=config.output_path,
        segments=segments,
        run_id=run_id,
        elapsed=time.monotonic() - started,
        warnings=[cleanup_warning] if cleanup_warning else [],
    )
    emit(RunCompleted(output_path=config.output_path))
    return result


def _remove_temp_file(path: Path) -> CleanupWarning | None:
    """Remove a temporary file. Failure is reported, never raised."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        warning = CleanupWarning(path, e)
        console.print(f"[yellow]Warning:[/yellow] {warning}")
        return warning
    return None
