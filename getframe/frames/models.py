"""
Frame extraction request and result models.
"""

import glob
import os
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..results import MediaResult


class FrameRequest(BaseModel):
    """
    One frame to extract.

    frame_index is validated by the extractor (a negative index is an
    INVALID_FRAME_RANGE failure, not a construction error). Without
    output_path the frame goes to a temp file that the extractor deletes
    after reading its bytes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    source_path: str
    frame_index: int
    target_width: Optional[int] = Field(default=None, gt=0)
    target_height: Optional[int] = Field(default=None, gt=0)
    output_path: Optional[str] = None


class FrameResult(MediaResult):
    """
    Outcome of a single-frame extraction.

    data holds the PNG bytes when the frame went through a temp file;
    output_path is set when the caller chose the destination.
    """

    source_path: str
    frame_index: int
    output_path: Optional[str] = None
    data: Optional[bytes] = None

    def summary(self) -> str:
        if self.ok:
            target = self.output_path or f"{len(self.data or b'')} bytes"
            return f"SUCCESS: frame {self.frame_index} of {self.source_path} → {target}"
        return f"FAILED: frame {self.frame_index} of {self.source_path} - {self.message}"


class RangeResult(MediaResult):
    """
    Outcome of a frame-range extraction.

    Range extraction is best-effort batch work: message is always a
    descriptive text, and describe() returns the output pattern on success
    or that text on failure.
    """

    source_path: str
    frame_start: int
    frame_end: int
    output_pattern: Optional[str] = None

    def describe(self) -> str:
        if self.ok and self.output_pattern:
            return self.output_pattern
        return self.message

    def list_frames(self) -> List[str]:
        """Frame files written for this range, sorted by name."""
        if not self.output_pattern or "%03d" not in self.output_pattern:
            return []
        prefix, suffix = self.output_pattern.rsplit("%03d", 1)
        # The pattern doubles literal % signs; file names carry single ones
        pattern = glob.escape(prefix.replace("%%", "%")) + "[0-9][0-9][0-9]*" + glob.escape(suffix)
        return sorted(p for p in glob.glob(pattern) if os.path.isfile(p))
