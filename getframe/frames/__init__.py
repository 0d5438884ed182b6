"""
Frame extraction: single frames (preview or saved PNG) and frame ranges.
"""

from .extractor import FrameExtractor, preview_temp_path, require_encoder, require_source
from .models import FrameRequest, FrameResult, RangeResult
from .range import RangeExtractor, range_output_pattern

__all__ = [
    "FrameExtractor",
    "FrameRequest",
    "FrameResult",
    "RangeExtractor",
    "RangeResult",
    "preview_temp_path",
    "range_output_pattern",
    "require_encoder",
    "require_source",
]
