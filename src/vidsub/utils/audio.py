"""Audio extraction from video files using ffmpeg, and PCM decoding."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import soundfile as sf

from vidsub.core.errors import ToolFailedError, UnexpectedFormatError

SAMPLE_RATE = 16000
CHANNELS = 1
BITS_PER_SAMPLE = 16

# libsndfile subtype -> (sample format, bits per sample)
_SUBTYPES: dict[str, tuple[str, int]] = {
    "PCM_S8": ("int", 8),
    "PCM_U8": ("int", 8),
    "PCM_16": ("int", 16),
    "PCM_24": ("int", 24),
    "PCM_32": ("int", 32),
    "FLOAT": ("float", 32),
    "DOUBLE": ("float", 64),
}


@dataclass(frozen=True)
class WavSpec:
    channels: int
    sample_rate: int
    sample_format: str  # "int" or "float"
    bits_per_sample: int


def check_ffmpeg(ffmpeg: str = "ffmpeg") -> bool:
    """Check if ffmpeg is available on the system."""
    return shutil.which(ffmpeg) is not None


def extract_audio(video_path: Path, output_path: Path, ffmpeg: str = "ffmpeg") -> Path:
    """Extract the audio track of a video to mono 16 kHz 16-bit PCM WAV.

    Args:
        video_path: Path to the input video file.
        output_path: Path for the output WAV file (overwritten).
        ffmpeg: ffmpeg executable name or path.

    Returns:
        Path to the extracted audio file.

    Raises:
        ToolFailedError: If ffmpeg is missing or exits non-zero.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        ffmpeg,
        "-nostdin",
        "-i",
        str(video_path),
        "-vn",  # no video
        "-acodec",
        "pcm_s16le",  # 16-bit PCM
        "-ar",
        str(SAMPLE_RATE),
        "-ac",
        str(CHANNELS),  # mono
        "-f",
        "wav",
        "-y",  # overwrite
        str(output_path),
    ]

    try:
        result = subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
    except FileNotFoundError as e:
        raise ToolFailedError("", message=f"{ffmpeg} not found. Install it with: brew install ffmpeg") from e
    if result.returncode != 0:
        stderr_msg = result.stderr.decode(errors="replace").strip()
        raise ToolFailedError(stderr_msg, returncode=result.returncode)
    return output_path


def read_wav_spec(path: Path) -> WavSpec:
    """Read the header of a WAV file.

    Raises:
        UnexpectedFormatError: If the file is not a readable WAV.
    """
    try:
        info = sf.info(str(path))
    except RuntimeError as e:  # soundfile.LibsndfileError
        raise UnexpectedFormatError(f"cannot read {path}: {e}") from e
    if info.format not in ("WAV", "WAVEX"):
        raise UnexpectedFormatError(f"container is {info.format}, expected WAV")
    sample_format, bits = _SUBTYPES.get(info.subtype, ("unknown", 0))
    return WavSpec(
        channels=info.channels,
        sample_rate=info.samplerate,
        sample_format=sample_format,
        bits_per_sample=bits,
    )


def validate_wav_spec(spec: WavSpec) -> None:
    """Reject anything but mono 16 kHz 16-bit integer PCM."""
    if spec.channels != CHANNELS:
        raise UnexpectedFormatError(f"expected mono audio, got {spec.channels} channels")
    if spec.sample_format != "int":
        raise UnexpectedFormatError(f"expected integer samples, got {spec.sample_format}")
    if spec.sample_rate != SAMPLE_RATE:
        raise UnexpectedFormatError(f"expected {SAMPLE_RATE} Hz, got {spec.sample_rate} Hz")
    if spec.bits_per_sample != BITS_PER_SAMPLE:
        raise UnexpectedFormatError(
            f"expected {BITS_PER_SAMPLE} bits per sample, got {spec.bits_per_sample}"
        )


def pcm16_to_float(samples: np.ndarray) -> np.ndarray:
    """Rescale signed 16-bit samples to float32 in [-1.0, 1.0)."""
    return samples.astype(np.float32) / 32768.0


def load_samples(path: Path) -> np.ndarray:
    """Validate an extracted WAV and decode it to normalized float32 samples.

    The header is checked even when ffmpeg reported success.

    Raises:
        UnexpectedFormatError: On any header mismatch or unreadable data.
    """
    validate_wav_spec(read_wav_spec(path))
    try:
        data, _ = sf.read(str(path), dtype="int16", always_2d=False)
    except RuntimeError as e:
        raise UnexpectedFormatError(f"cannot decode {path}: {e}") from e
    return pcm16_to_float(np.asarray(data, dtype=np.int16))
