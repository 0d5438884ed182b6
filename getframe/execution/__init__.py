"""
External process execution layer.

Launches ffprobe/ffmpeg, streams and parses their output, and enforces
cancellation by killing the whole process tree.
"""

from .cancellation import CancellationToken
from .process import ProcessOutcome, ProcessRunner, kill_process_tree
from .progress import (
    ProgressCallback,
    ProgressEvent,
    ProgressLineParser,
    ProgressSeverity,
    parse_key_value,
)

__all__ = [
    "CancellationToken",
    "ProcessOutcome",
    "ProcessRunner",
    "kill_process_tree",
    "ProgressCallback",
    "ProgressEvent",
    "ProgressLineParser",
    "ProgressSeverity",
    "parse_key_value",
]
