"""
Concat demuxer playlist.

For images a, b, c at 2 fps:

    file '/abs/a.png'
    duration 0.500000
    file '/abs/b.png'
    duration 0.500000
    file '/abs/c.png'
    duration 0.500000
    file '/abs/c.png'

The concat demuxer ignores the duration of the last entry, so the last
image is listed once more without one to keep it on screen for its full
duration.
"""

import os
import tempfile
from typing import List, Sequence

from ..config import PLAYLIST_PREFIX
from ..execution.commands import quote_concat_path, tool_path


def frame_duration(frame_rate: float) -> float:
    """Display time of one image in seconds."""
    if frame_rate <= 0:
        raise ValueError(f"frame_rate must be positive, got {frame_rate}")
    return 1.0 / frame_rate


def format_duration(seconds: float) -> str:
    return f"{seconds:.6f}"


def build_playlist(image_paths: Sequence[str], frame_rate: float) -> List[str]:
    """
    Playlist lines for an ordered image list.

    Paths are made absolute; the playlist lives in the temp directory and
    relative entries would be resolved against it.
    """
    if not image_paths:
        raise ValueError("No image files specified.")

    duration = format_duration(frame_duration(frame_rate))
    lines: List[str] = []
    for image in image_paths:
        lines.append(f"file {quote_concat_path(tool_path(image))}")
        lines.append(f"duration {duration}")
    lines.append(f"file {quote_concat_path(tool_path(image_paths[-1]))}")
    return lines


def write_playlist(image_paths: Sequence[str], frame_rate: float, temp_dir: str) -> str:
    """
    Write the playlist to a new temp file (UTF-8, no BOM).

    Returns:
        Path of the playlist; the caller deletes it
    """
    lines = build_playlist(image_paths, frame_rate)
    fd, path = tempfile.mkstemp(prefix=PLAYLIST_PREFIX, suffix=".txt", dir=temp_dir)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write("\n".join(lines) + "\n")
    except OSError:
        os.remove(path)
        raise
    return path
