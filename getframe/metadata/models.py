"""
Video metadata model.

One VideoMetadata is built per metadata request and handed to the caller,
who owns it. Failures are recorded in error_code/status_message instead of
being raised.
"""

import sys
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import ErrorCode, error_for_code


# Characters never valid in a path
if sys.platform == "win32":
    INVALID_PATH_CHARS = frozenset(['|', '\0'] + [chr(c) for c in range(1, 32)])
else:
    INVALID_PATH_CHARS = frozenset(['\0'])

SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count for display.

    Args:
        size_bytes: Size in bytes

    Returns:
        Size in the largest unit up to GB, with at most two decimals
        (e.g. "1.5 MB", "512 B")
    """
    value = float(size_bytes)
    order = 0
    while value >= 1024 and order < len(SIZE_UNITS) - 1:
        order += 1
        value /= 1024
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[order]}"


class VideoMetadata(BaseModel):
    """
    Metadata of one video file as reported by ffprobe.

    Unknown numeric values stay at 0. frame_count == 0 means unknown or
    truly empty.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    file_path: str

    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    duration_ms: float = Field(default=0.0, ge=0)

    frame_rate_label: str = ""
    """Raw r_frame_rate text from ffprobe, e.g. "30000/1001"."""

    fps: float = 0.0
    frame_count: int = Field(default=0, ge=0)
    file_size_bytes: int = Field(default=0, ge=0)
    codec_name: Optional[str] = None

    error_code: ErrorCode = ErrorCode.NONE
    status_message: str = ""

    @field_validator("file_path")
    @classmethod
    def validate_file_path(cls, v: str) -> str:
        """Path must be non-blank and free of invalid characters."""
        if not v or not v.strip():
            raise ValueError("file_path cannot be empty or whitespace")
        if any(ch in INVALID_PATH_CHARS for ch in v):
            raise ValueError("file_path contains invalid characters")
        return v

    @property
    def ok(self) -> bool:
        return self.error_code == ErrorCode.NONE

    @property
    def last_frame_index(self) -> int:
        """Index of the last frame (0 when the frame count is unknown)."""
        return max(0, self.frame_count - 1)

    def fail(self, code: ErrorCode, message: str) -> "VideoMetadata":
        """Record a failure on this record and return it."""
        self.error_code = code
        self.status_message = message
        return self

    def format_file_size(self) -> str:
        return format_file_size(self.file_size_bytes)

    def build_info_text(self) -> str:
        """
        One-line summary for display.

        Example:
            "1920x1080, 00:00:10.299, Frames [300], Framerate 30/1 (FPS30), File Size 2.5 MB"
        """
        duration = timedelta(milliseconds=self.duration_ms)
        total_seconds = int(duration.total_seconds())
        hours, remainder = divmod(total_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        hhmmss = f"{hours:02d}:{minutes:02d}:{seconds:02d}.{self.last_frame_index:03d}"
        fps_text = f"{self.fps:.2f}".rstrip("0").rstrip(".")
        return (
            f"{self.width}x{self.height}, {hhmmss}, Frames [{self.frame_count}], "
            f"Framerate {self.frame_rate_label} (FPS{fps_text}), "
            f"File Size {self.format_file_size()}"
        )

    def raise_for_error(self) -> None:
        """Raise the matching MediaPipelineError if extraction failed."""
        if not self.ok:
            raise error_for_code(self.error_code, self.status_message)
