"""
Sequence encoding job and result models.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import DEFAULT_ENCODER_CRF, DEFAULT_ENCODER_PRESET, DEFAULT_OUTPUT_EXTENSION
from ..results import MediaResult


class EncodeJob(BaseModel):
    """
    An ordered image sequence to encode into one video.

    Each image is shown for 1 / frame_rate seconds.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    image_paths: List[str] = Field(..., min_length=1)
    frame_rate: float = Field(..., gt=0)
    output_extension: str = DEFAULT_OUTPUT_EXTENSION
    encoder_preset: str = DEFAULT_ENCODER_PRESET
    encoder_quality: int = Field(default=DEFAULT_ENCODER_CRF, ge=0, le=51)

    @field_validator("image_paths")
    @classmethod
    def validate_image_paths(cls, v: List[str]) -> List[str]:
        if any(not p or not p.strip() for p in v):
            raise ValueError("image paths cannot be empty")
        return v

    @field_validator("encoder_preset", mode="before")
    @classmethod
    def default_blank_preset(cls, v: Optional[str]) -> str:
        if v is None or not str(v).strip():
            return DEFAULT_ENCODER_PRESET
        return str(v).strip()

    @property
    def image_count(self) -> int:
        return len(self.image_paths)

    @property
    def total_duration_seconds(self) -> float:
        """Expected output length: image_count / frame_rate."""
        return self.image_count / self.frame_rate


class EncodeResult(MediaResult):
    """
    Outcome of a sequence encode.

    output_path is the published video on success. progress_log keeps the
    encoder's -progress stream for diagnosing failures.
    """

    image_count: int = 0
    frame_rate: float = 0.0
    output_path: Optional[str] = None
    progress_log: Optional[str] = None

    def summary(self) -> str:
        if self.ok:
            return f"SUCCESS: {self.image_count} images → {self.output_path}"
        return f"FAILED: {self.message}"
