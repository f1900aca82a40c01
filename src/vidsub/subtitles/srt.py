"""SubRip (SRT) formatting and subtitle file output.

Formatting is a pure function over segments. Writing is a single
overwrite of the destination. Saving a finished SRT to another format
(.vtt, .ass) goes through pysubs2.
"""

from __future__ import annotations

import math
import shutil
from decimal import Decimal
from pathlib import Path

import pysubs2
from pysubs2.exceptions import Pysubs2Error

from vidsub.core.errors import SubtitleWriteError
from vidsub.core.models import SubtitleDocument, TranscriptSegment


def format_timestamp(seconds: float) -> str:
    """Format seconds as an SRT timestamp (HH:MM:SS,mmm).

    Every field is truncated, never rounded: 59.9996 -> 00:00:59,999 and
    0.0009999999 -> 00:00:00,000.
    """
    # Truncate the shortest decimal form of the float, so 3661.234 (stored as
    # 3661.23399999...) stays ,234 while real remainders below 1 ms are dropped.
    total_ms = math.floor(Decimal(str(float(seconds))) * 1000)
    h, rem = divmod(total_ms, 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, ms = divmod(rem, 1000)
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def format_document(document: SubtitleDocument) -> str:
    """Serialize numbered cues as SRT blocks, each followed by a blank line."""
    lines = []
    for cue in document.cues:
        lines.append(str(cue.index))
        lines.append(f"{format_timestamp(cue.start_seconds)} --> {format_timestamp(cue.end_seconds)}")
        lines.append(cue.text)
        lines.append("")
    return "".join(line + "\n" for line in lines)


def format_srt(segments: list[TranscriptSegment]) -> str:
    """Format segments as SRT, numbering them 1..N by position."""
    return format_document(SubtitleDocument.from_segments(segments))


def write_srt(segments: list[TranscriptSegment], path: Path) -> Path:
    """Write segments to an SRT file, overwriting any existing file.

    Raises:
        SubtitleWriteError: If the file cannot be written.
    """
    path = Path(path)
    content = format_srt(segments)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise SubtitleWriteError(f"Cannot write subtitles to {path}: {e}") from e
    return path


def save_subtitles(source: Path, destination: Path) -> Path:
    """Save a produced SRT under a new name, converting by file extension.

    ``.srt`` destinations get a byte-for-byte copy; ``.vtt``, ``.ass`` and
    other formats pysubs2 knows are converted. An SRT with no cues converts
    to an empty file in the target format.

    Raises:
        OSError: If the source cannot be read or the destination written.
        SubtitleWriteError: If pysubs2 cannot convert to the destination format.
    """
    source = Path(source)
    destination = Path(destination)
    if destination.resolve() == source.resolve():
        return destination

    destination.parent.mkdir(parents=True, exist_ok=True)
    if destination.suffix.lower() == ".srt":
        shutil.copyfile(source, destination)
        return destination

    text = source.read_text(encoding="utf-8")
    try:
        # pysubs2 cannot detect the format of an empty file
        subs = pysubs2.SSAFile.from_string(text, format_="srt") if text.strip() else pysubs2.SSAFile()
        subs.save(str(destination), encoding="utf-8")
    except Pysubs2Error as e:
        raise SubtitleWriteError(f"Cannot convert {source.name} to {destination.suffix or 'no extension'}: {e}") from e
    return destination
