"""
Operation result models.

Every public pipeline operation returns a result record carrying an
ErrorCode, so success and failure travel the same way. Records are
machine-readable and human-readable.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorCode, MediaPipelineError, error_for_code


class MediaResult(BaseModel):
    """
    Common outcome fields for frame, range and encode operations.

    error_code == NONE means success; otherwise message explains the
    failure and stderr holds the failing tool's output when available.
    """

    model_config = ConfigDict(extra="forbid")

    error_code: ErrorCode = ErrorCode.NONE
    """Failure classification (NONE on success)."""

    message: str = ""
    """Human-readable outcome description."""

    stderr: Optional[str] = None
    """Captured stderr of the failing tool invocation."""

    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.error_code == ErrorCode.NONE

    @property
    def cancelled(self) -> bool:
        return self.error_code == ErrorCode.OPERATION_CANCELLED

    def duration_seconds(self) -> Optional[float]:
        """Calculate operation duration in seconds."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def finish(self, code: ErrorCode = ErrorCode.NONE, message: str = "", stderr: Optional[str] = None):
        """Record the outcome and completion time, returning self."""
        self.error_code = code
        self.message = message
        if stderr is not None:
            self.stderr = stderr
        self.completed_at = datetime.now()
        return self

    def fail_with(self, error: MediaPipelineError):
        """Record a raised pipeline error as the outcome."""
        return self.finish(error.code, error.message, error.stderr)

    def raise_for_error(self) -> None:
        """Raise the matching MediaPipelineError if the operation failed."""
        if not self.ok:
            raise error_for_code(self.error_code, self.message, self.stderr)
