"""
Image sequence encoding: concat playlist, FFmpeg encode, timestamped output.
"""

from .encoder import SequenceEncoder
from .models import EncodeJob, EncodeResult
from .naming import output_stem, publish, reserve_output_path
from .playlist import build_playlist, write_playlist

__all__ = [
    "EncodeJob",
    "EncodeResult",
    "SequenceEncoder",
    "build_playlist",
    "output_stem",
    "publish",
    "reserve_output_path",
    "write_playlist",
]
