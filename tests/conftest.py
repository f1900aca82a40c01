"""Shared test fixtures."""

from pathlib import Path

import numpy as np
import pytest
import requests
import soundfile as sf
from requests.structures import CaseInsensitiveDict

from vidsub.core.config import Settings
from vidsub.transcriber.whisper_cpp import EngineSegment
from vidsub.utils.paths import AppPaths

MODEL_ID = "ggml-test.bin"


class StubEngine:
    """Engine double: records its calls and returns canned segments."""

    def __init__(self, segments=None, progress=(0, 50, 100), error: Exception | None = None):
        self.segments = list(segments) if segments is not None else [EngineSegment(0, 150, "hello")]
        self.progress = progress
        self.error = error
        self.calls: list[dict] = []

    def transcribe(self, samples, language, on_progress=None):
        self.calls.append({"samples": samples, "language": language})
        for pct in self.progress:
            if on_progress:
                on_progress(pct)
        if self.error is not None:
            raise self.error
        return list(self.segments)


class FakeResponse:
    def __init__(self, chunks, content_length=None, status=200, fail_after=None):
        self.chunks = list(chunks)
        self.headers = CaseInsensitiveDict()
        if content_length is not None:
            self.headers["Content-Length"] = str(content_length)
        self.status = status
        self.fail_after = fail_after
        self.closed = False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} Client Error")

    def iter_content(self, chunk_size=1):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise requests.ConnectionError("connection reset")
            yield chunk

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, stream=False, timeout=None):
        self.calls.append({"url": url, "stream": stream, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def write_wav(path: Path, seconds: float = 1.0, rate: int = 16000, channels: int = 1, subtype="PCM_16"):
    """Write a silent WAV file with the given header."""
    frames = int(seconds * rate)
    shape = (frames, channels) if channels > 1 else frames
    sf.write(str(path), np.zeros(shape, dtype=np.float32), rate, subtype=subtype, format="WAV")
    return path


@pytest.fixture
def app_paths(tmp_path: Path) -> AppPaths:
    paths = AppPaths(config_dir=tmp_path / "config", temp_dir=tmp_path / "tmp")
    paths.temp_dir.mkdir(parents=True)
    return paths


@pytest.fixture
def settings() -> Settings:
    return Settings(base={"model": MODEL_ID, "language": "auto"})


@pytest.fixture
def model_file(app_paths: AppPaths) -> Path:
    """A model already present in the cache."""
    app_paths.models_dir.mkdir(parents=True, exist_ok=True)
    path = app_paths.models_dir / MODEL_ID
    path.write_bytes(b"ggml")
    return path


@pytest.fixture
def video_file(tmp_path: Path) -> Path:
    """Placeholder input; extraction is stubbed wherever this is used."""
    path = tmp_path / "movie.mp4"
    path.write_bytes(b"\x00" * 64)
    return path


@pytest.fixture
def stub_engine() -> StubEngine:
    return StubEngine()


@pytest.fixture
def fake_extract(monkeypatch):
    """Replace ffmpeg in the pipeline with a writer of a 2 s silent 16 kHz mono WAV.

    Returns the list of (video, output) pairs it was called with.
    """
    calls = []

    def _extract(video_path, output_path, ffmpeg="ffmpeg"):
        calls.append((Path(video_path), Path(output_path)))
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        write_wav(Path(output_path), seconds=2.0)
        return Path(output_path)

    monkeypatch.setattr("vidsub.core.pipeline.extract_audio", _extract)
    return calls
