"""
FFmpeg progress parsing.

With `-progress pipe:1 -nostats` FFmpeg writes newline-delimited
key=value pairs to stdout, one block per update:

    frame=24
    out_time_ms=1000000
    out_time=00:00:01.000000
    progress=continue

We parse:
- out_time_ms → elapsed output time (FFmpeg reports it in microseconds)
- Compare against the known total duration → percentage

Percentages mid-stream are clamped to 2..99. 0 and 100 are reserved for
the start and finish signals emitted by the owning component.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple


# Elapsed-time key in the -progress protocol
ELAPSED_KEY = "out_time_ms"

# Clamp bounds for mid-stream progress
MIN_STREAM_PERCENT = 2
MAX_STREAM_PERCENT = 99


class ProgressSeverity(str, Enum):
    """
    Display hint for a progress event.

    Used only for UI color, never for control flow.
    """

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    MUTED = "muted"

    @property
    def color(self) -> str:
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    ProgressSeverity.INFO: "Blue",
    ProgressSeverity.SUCCESS: "Green",
    ProgressSeverity.ERROR: "Red",
    ProgressSeverity.MUTED: "Gray",
}


@dataclass(frozen=True)
class ProgressEvent:
    """
    One progress report.

    percent is 0-100. Monotonicity is NOT guaranteed; only a final 100 on
    success is.
    """

    percent: int
    message: str
    severity: ProgressSeverity = ProgressSeverity.INFO


ProgressCallback = Callable[[ProgressEvent], None]


def emit(
    callback: Optional[ProgressCallback],
    percent: int,
    message: str,
    severity: ProgressSeverity = ProgressSeverity.INFO,
) -> None:
    """Invoke a progress callback if one was supplied."""
    if callback is not None:
        callback(ProgressEvent(percent=percent, message=message, severity=severity))


def parse_key_value(line: str) -> Optional[Tuple[str, str]]:
    """
    Split a `key=value` line.

    Args:
        line: Single line from the progress stream

    Returns:
        (key, value) with surrounding whitespace removed, or None when the
        line has no '=' or an empty key
    """
    line = line.strip()
    separator = line.find("=")
    if separator <= 0:
        return None
    return line[:separator].strip(), line[separator + 1:].strip()


class ProgressLineParser:
    """
    Convert FFmpeg -progress lines into percentages.

    Stateless across lines; the only state is the externally supplied
    total duration.

    Usage:
        parser = ProgressLineParser(total_duration_seconds=12.5)
        for line in ffmpeg_stdout:
            event = parser.parse_line(line)
            if event:
                on_progress(event)
    """

    def __init__(self, total_duration_seconds: float, message: str = "Processing"):
        """
        Args:
            total_duration_seconds: Expected output duration in seconds
            message: Message attached to every event
        """
        self.total_duration_seconds = total_duration_seconds
        self.message = message

    @property
    def total_microseconds(self) -> float:
        return self.total_duration_seconds * 1_000_000.0

    def percent_for(self, elapsed_microseconds: float) -> Optional[int]:
        """Clamp elapsed/total into the mid-stream percentage range."""
        if self.total_duration_seconds <= 0:
            return None
        percent = elapsed_microseconds / self.total_microseconds * 100.0
        return int(min(max(percent, MIN_STREAM_PERCENT), MAX_STREAM_PERCENT))

    def parse_line(self, line: str) -> Optional[ProgressEvent]:
        """
        Parse a single progress line.

        Args:
            line: Single line from FFmpeg's progress stream

        Returns:
            ProgressEvent if the line carried a usable elapsed time, None otherwise
        """
        pair = parse_key_value(line)
        if pair is None:
            return None

        key, value = pair
        if key != ELAPSED_KEY:
            return None

        try:
            elapsed = float(value)
        except ValueError:
            # FFmpeg writes N/A before the first packet
            return None

        if not math.isfinite(elapsed):
            return None

        percent = self.percent_for(elapsed)
        if percent is None:
            return None

        return ProgressEvent(
            percent=percent,
            message=self.message,
            severity=ProgressSeverity.SUCCESS,
        )
