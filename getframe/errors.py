"""
Error taxonomy for the media pipeline.

Every failure is classified by an ErrorCode. Components raise the
exceptions below internally and translate them into result records at
their public boundary, so callers can render status without exception
handling. Result records can be turned back into these exceptions with
raise_for_error().
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """
    Failure classification shared by all pipeline operations.

    NONE:                      Operation succeeded
    PROBER_NOT_FOUND:          ffprobe path unset or file missing
    ENCODER_NOT_FOUND:         ffmpeg path unset or file missing
    FILE_NOT_FOUND:            Source media (or its directory) missing
    INVALID_FRAME_RANGE:       Negative index, or end < start
    PROBER_FAILED:             ffprobe exited non-zero or produced unparsable output
    ENCODER_FAILED:            ffmpeg exited non-zero or expected output missing
    OPERATION_CANCELLED:       Caller-requested cancellation honored
    METADATA_RETRIEVAL_FAILED: Prober output had an unusable shape
    """

    NONE = "none"
    PROBER_NOT_FOUND = "prober_not_found"
    ENCODER_NOT_FOUND = "encoder_not_found"
    FILE_NOT_FOUND = "file_not_found"
    INVALID_FRAME_RANGE = "invalid_frame_range"
    PROBER_FAILED = "prober_failed"
    ENCODER_FAILED = "encoder_failed"
    OPERATION_CANCELLED = "operation_cancelled"
    METADATA_RETRIEVAL_FAILED = "metadata_retrieval_failed"


class MediaPipelineError(Exception):
    """
    Base exception for all pipeline failures.

    Carries the classification code and, where available, the captured
    stderr of the failing tool invocation.
    """

    code: ErrorCode = ErrorCode.METADATA_RETRIEVAL_FAILED

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        stderr: Optional[str] = None,
    ):
        if code is not None:
            self.code = code
        self.message = message
        self.stderr = stderr
        super().__init__(message)


class ToolNotFoundError(MediaPipelineError):
    """Raised when ffmpeg or ffprobe is not configured or missing on disk."""

    code = ErrorCode.ENCODER_NOT_FOUND


class SourceNotFoundError(MediaPipelineError):
    """Raised when the source media file or its directory does not exist."""

    code = ErrorCode.FILE_NOT_FOUND


class InvalidFrameRangeError(MediaPipelineError):
    """Raised for a negative frame index or an inverted frame range."""

    code = ErrorCode.INVALID_FRAME_RANGE


class ToolFailedError(MediaPipelineError):
    """Raised when a tool exits non-zero or does not produce its output."""

    code = ErrorCode.ENCODER_FAILED


class OperationCancelledError(MediaPipelineError):
    """Raised when the caller cancelled the operation."""

    code = ErrorCode.OPERATION_CANCELLED

    def __init__(self, message: str = "Operation was cancelled.", stderr: Optional[str] = None):
        super().__init__(message, stderr=stderr)


_ERROR_CLASSES = {
    ErrorCode.PROBER_NOT_FOUND: ToolNotFoundError,
    ErrorCode.ENCODER_NOT_FOUND: ToolNotFoundError,
    ErrorCode.FILE_NOT_FOUND: SourceNotFoundError,
    ErrorCode.INVALID_FRAME_RANGE: InvalidFrameRangeError,
    ErrorCode.PROBER_FAILED: ToolFailedError,
    ErrorCode.ENCODER_FAILED: ToolFailedError,
    ErrorCode.METADATA_RETRIEVAL_FAILED: MediaPipelineError,
}


def error_for_code(code: ErrorCode, message: str, stderr: Optional[str] = None) -> MediaPipelineError:
    """
    Build the exception matching an error code.

    Args:
        code: Failure classification (must not be NONE)
        message: Human-readable failure message
        stderr: Captured tool stderr, if any

    Returns:
        MediaPipelineError subclass instance carrying the code
    """
    if code == ErrorCode.NONE:
        raise ValueError("ErrorCode.NONE does not describe a failure")

    if code == ErrorCode.OPERATION_CANCELLED:
        return OperationCancelledError(message, stderr=stderr)

    error_class = _ERROR_CLASSES[code]
    return error_class(message, code=code, stderr=stderr)
