"""
Command-line construction for ffprobe and ffmpeg.

All invocations are built here as argument lists and executed without a
shell, so file names are never re-interpreted by a command interpreter.

Rules:
- Every file path is made absolute, so it can never be read as an option
- Frame indices must be non-negative integers before they reach a filter
  expression
- Concat playlist entries are single-quoted with embedded quotes escaped;
  line breaks are rejected
"""

import os
import shlex
from typing import List, Optional, Sequence

from ..config import (
    DEFAULT_ENCODER_CRF,
    DEFAULT_ENCODER_PRESET,
    ENCODER_VIDEO_CODEC,
    OUTPUT_PIXEL_FORMAT,
)


def tool_path(path: str) -> str:
    """Absolute path for a file handed to a tool."""
    return os.path.abspath(os.fspath(path))


def _frame_number(value: int, name: str) -> int:
    # bool is an int subclass; reject it along with floats and strings
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def select_frame_filter(frame_index: int) -> str:
    """select filter keeping exactly the frame with 0-based index frame_index."""
    index = _frame_number(frame_index, "frame_index")
    return f"select='eq(n,{index})'"


def select_range_filter(frame_start: int, frame_end: int) -> str:
    """select filter keeping every frame whose index lies in [start, end]."""
    start = _frame_number(frame_start, "frame_start")
    end = _frame_number(frame_end, "frame_end")
    if end < start:
        raise ValueError(f"frame_end ({end}) is before frame_start ({start})")
    return f"select='between(n,{start},{end})'"


def scale_filter(width: Optional[int], height: Optional[int]) -> Optional[str]:
    """
    scale filter for a preview size.

    A missing side is computed by FFmpeg to keep the aspect ratio.
    Returns None when neither side is requested.
    """
    if not width and not height:
        return None
    target_width = int(width) if width else -1
    target_height = int(height) if height else -1
    return f"scale={target_width}:{target_height}"


def prober_args(source_path: str) -> List[str]:
    """
    ffprobe arguments for full format/stream JSON with counted frames.

    -count_frames decodes the whole stream to fill nb_read_frames.
    """
    return [
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-count_frames",
        "-show_streams",
        tool_path(source_path),
    ]


def single_frame_args(
    source_path: str,
    frame_index: int,
    output_path: str,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> List[str]:
    """
    ffmpeg arguments writing exactly one frame as an image.

    -update 1 makes the image muxer take the output name literally, so a %
    in it is not read as a sequence pattern.
    """
    filters = [select_frame_filter(frame_index)]
    scale = scale_filter(width, height)
    if scale:
        filters.append(scale)

    return [
        "-y",
        "-i", tool_path(source_path),
        "-vf", ",".join(filters),
        "-frames:v", "1",
        "-update", "1",
        tool_path(output_path),
    ]


def frame_range_args(
    source_path: str,
    frame_start: int,
    frame_end: int,
    output_pattern: str,
) -> List[str]:
    """ffmpeg arguments writing every frame in [start, end] as numbered images."""
    return [
        "-y",
        "-i", tool_path(source_path),
        "-vf", select_range_filter(frame_start, frame_end),
        "-vsync", "0",
        tool_path(output_pattern),
    ]


def concat_encode_args(
    playlist_path: str,
    output_path: str,
    frame_rate: float,
    preset: str = DEFAULT_ENCODER_PRESET,
    crf: int = DEFAULT_ENCODER_CRF,
    codec: str = ENCODER_VIDEO_CODEC,
    pixel_format: str = OUTPUT_PIXEL_FORMAT,
) -> List[str]:
    """
    ffmpeg arguments encoding a concat playlist into a video.

    Progress is written to stdout (-progress pipe:1); -nostats keeps the
    stderr stream free of carriage-return status lines.
    """
    return [
        "-y",
        "-f", "concat",
        "-safe", "0",
        "-i", tool_path(playlist_path),
        "-c:v", codec,
        "-preset", preset,
        "-crf", str(int(crf)),
        "-r", format_rate(frame_rate),
        "-pix_fmt", pixel_format,
        "-progress", "pipe:1",
        "-nostats",
        tool_path(output_path),
    ]


def format_rate(frame_rate: float) -> str:
    """Render a frame rate without a trailing .0 for whole numbers."""
    if float(frame_rate).is_integer():
        return str(int(frame_rate))
    return repr(float(frame_rate))


def quote_concat_path(path: str) -> str:
    """
    Quote a path for the concat demuxer.

    Backslashes become forward slashes; a single quote is closed, escaped
    and reopened ('\\''). Line breaks cannot be quoted in a playlist line,
    so a path containing one is rejected.

    Raises:
        ValueError: If the path contains a carriage return or line feed
    """
    normalized = os.fspath(path).replace("\\", "/")
    if "\n" in normalized or "\r" in normalized:
        raise ValueError(f"Line break in file name cannot be used in a concat playlist: {normalized!r}")
    return "'" + normalized.replace("'", "'\\''") + "'"


def format_command(cmd: Sequence[str]) -> str:
    """Shell-style rendering of a command for audit logs."""
    return shlex.join(str(part) for part in cmd)
