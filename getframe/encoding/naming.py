"""
Output naming for encoded videos.

Destination: <first image dir>/<first image stem>_<yyyyMMdd_HHmmss><ext>

If that name is taken, a counter suffix is appended:
    clip_20240101_120000.mp4
    clip_20240101_120000_001.mp4
    clip_20240101_120000_002.mp4

The chosen name is reserved by creating it exclusively, so two encoders
finishing in the same second cannot pick the same destination.
"""

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
FALLBACK_STEM = "output_video"
MAX_COLLISIONS = 999


def normalize_extension(extension: str) -> str:
    """Ensure a leading dot ("mp4" -> ".mp4")."""
    extension = (extension or "").strip()
    if extension and not extension.startswith("."):
        extension = "." + extension
    return extension


def output_stem(first_image: str, clock: Clock = datetime.now) -> str:
    """Timestamped base name derived from the first input image."""
    stem = Path(first_image).stem or FALLBACK_STEM
    return f"{stem}_{clock().strftime(TIMESTAMP_FORMAT)}"


def reserve_output_path(first_image: str, extension: str, clock: Clock = datetime.now) -> Path:
    """
    Pick and reserve a collision-free destination next to the first image.

    Args:
        first_image: First input image path
        extension: Output extension, with or without the leading dot
        clock: Source of the timestamp

    Returns:
        Path of an (empty) file now owned by the caller

    Raises:
        RuntimeError: If every counter suffix is taken
    """
    parent = Path(first_image).resolve().parent
    base = output_stem(first_image, clock)
    extension = normalize_extension(extension)

    counter = 0
    while True:
        name = f"{base}{extension}" if counter == 0 else f"{base}_{counter:03d}{extension}"
        candidate = parent / name
        try:
            with open(candidate, "x"):
                pass
            return candidate
        except FileExistsError:
            counter += 1

        if counter > MAX_COLLISIONS:
            raise RuntimeError(
                f"Cannot generate unique output path: too many collisions at {parent / base}{extension}"
            )


def publish(temp_output: str, first_image: str, extension: str, clock: Clock = datetime.now) -> Path:
    """
    Move a finished temp output to its reserved destination.

    The reservation is removed again if the move fails.
    """
    destination = reserve_output_path(first_image, extension, clock)
    try:
        shutil.move(temp_output, destination)
    except OSError:
        try:
            os.remove(destination)
        except OSError as e:
            logger.warning(f"Failed to remove reserved output {destination}: {e}")
        raise
    logger.info(f"[FFmpeg] Published {destination}")
    return destination
