"""
Frame-range extraction using FFmpeg.

Writes every frame in [start, end] as a zero-padded numbered PNG sequence
next to the source file:

    <dir>/<base>_frame_<start>-<end>_%03d.png

Best-effort batch work: every failure is reported as descriptive text in
RangeResult.message rather than raised.
"""

import logging
import os
from typing import Optional

from ..config import DEFAULT_CONFIG, PipelineConfig
from ..errors import ErrorCode, MediaPipelineError
from ..execution.cancellation import CancellationToken
from ..execution.commands import frame_range_args
from ..execution.process import ProcessRunner
from .extractor import require_encoder
from .models import RangeResult

logger = logging.getLogger(__name__)


def range_output_pattern(source_path: str, frame_start: int, frame_end: int) -> str:
    """
    Numbered output pattern for a range, in the source file's directory.

    Every % in the path is doubled so the frame number stays the only
    conversion in the pattern.
    """
    directory = os.path.dirname(os.path.abspath(source_path))
    base_name = os.path.splitext(os.path.basename(source_path))[0]
    prefix = os.path.join(directory, f"{base_name}_frame_{frame_start}-{frame_end}_")
    return prefix.replace("%", "%%") + "%03d.png"


class RangeExtractor:
    """Extracts an inclusive range of frames as numbered PNG files."""

    def __init__(self, runner: ProcessRunner, config: PipelineConfig = DEFAULT_CONFIG):
        if runner is None:
            raise ValueError("RangeExtractor requires a process runner")
        self.runner = runner
        self.config = config

    async def extract_range(
        self,
        source_path: str,
        encoder_path: Optional[str],
        frame_start: int,
        frame_end: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> RangeResult:
        """
        Extract frames frame_start..frame_end (inclusive).

        Args:
            source_path: Source video path
            encoder_path: Path to the ffmpeg executable
            frame_start: First 0-based frame index
            frame_end: Last 0-based frame index
            cancel_token: Optional cancellation token

        Returns:
            RangeResult; describe() gives the output pattern or the error text
        """
        result = RangeResult(source_path=source_path, frame_start=frame_start, frame_end=frame_end)

        try:
            require_encoder(encoder_path)
        except MediaPipelineError as e:
            return result.fail_with(e)

        if not os.path.isfile(source_path):
            return result.finish(ErrorCode.FILE_NOT_FOUND, f"Video file does not exist. [{source_path}]")

        directory = os.path.dirname(os.path.abspath(source_path))
        if not os.path.isdir(directory):
            return result.finish(ErrorCode.FILE_NOT_FOUND, f"Output directory does not exist: [{directory}]")

        if frame_start < 0 or frame_end < frame_start:
            return result.finish(
                ErrorCode.INVALID_FRAME_RANGE,
                f"Invalid frame range: start={frame_start}, end={frame_end}",
            )

        output_pattern = range_output_pattern(source_path, frame_start, frame_end)
        args = frame_range_args(source_path, frame_start, frame_end, output_pattern)

        try:
            outcome = await self.runner.run(encoder_path, args, cancel_token=cancel_token)
        except OSError as e:
            logger.exception(f"[FFmpeg] Range extraction error: {e}")
            return result.finish(ErrorCode.ENCODER_FAILED, f"Failed to start FFmpeg: {e}")

        if outcome.was_cancelled:
            if outcome.kill_error:
                message = f"Failed to cancel FFmpeg process. {outcome.kill_error}"
            else:
                message = "Operation was cancelled."
            logger.info(f"[FFmpeg] Range {frame_start}-{frame_end} of {source_path}: {message}")
            return result.finish(ErrorCode.OPERATION_CANCELLED, message, outcome.stderr)

        if outcome.exit_code != 0:
            logger.error(f"[FFmpeg] Range extraction failed with exit code {outcome.exit_code}")
            return result.finish(
                ErrorCode.ENCODER_FAILED,
                f"FFmpeg failed with exit code {outcome.exit_code}: {outcome.stderr.strip()}",
                outcome.stderr,
            )

        logger.info(f"[FFmpeg] Extracted frames {frame_start}-{frame_end} to {output_pattern}")
        result.output_pattern = output_pattern
        return result.finish(message=f"Frames written to {output_pattern}")
