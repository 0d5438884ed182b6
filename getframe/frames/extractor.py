"""
Single-frame extraction using FFmpeg.

Strategy:
- select filter keeps exactly the frame with the requested 0-based index
- -frames:v 1 stops after that frame
- Output is PNG, either to the caller's path or to a unique temp file
- Temp files are read into memory and deleted immediately, whether the
  read worked or not
- Cancellation kills FFmpeg and deletes any partial output
"""

import logging
import os
import uuid
from typing import Optional

from ..config import DEFAULT_CONFIG, PREVIEW_PREFIX, PipelineConfig
from ..errors import (
    ErrorCode,
    InvalidFrameRangeError,
    MediaPipelineError,
    OperationCancelledError,
    SourceNotFoundError,
    ToolFailedError,
    ToolNotFoundError,
)
from ..execution.cancellation import CancellationToken
from ..execution.commands import single_frame_args
from ..execution.process import ProcessRunner
from .models import FrameRequest, FrameResult

logger = logging.getLogger(__name__)


def require_encoder(encoder_path: Optional[str]) -> str:
    """
    Check the ffmpeg executable is configured and present.

    Raises:
        ToolNotFoundError: If the path is unset or the file is missing
    """
    if not encoder_path or not encoder_path.strip():
        raise ToolNotFoundError("FFmpeg path is not set.", code=ErrorCode.ENCODER_NOT_FOUND)
    if not os.path.isfile(encoder_path):
        raise ToolNotFoundError(
            f"FFmpeg executable not found at the specified path. [{encoder_path}]",
            code=ErrorCode.ENCODER_NOT_FOUND,
        )
    return encoder_path


def require_source(source_path: str) -> str:
    """
    Check the source video exists.

    Raises:
        SourceNotFoundError: If the file is missing
    """
    if not source_path or not os.path.isfile(source_path):
        raise SourceNotFoundError(f"Video file does not exist. [{source_path}]")
    return source_path


def remove_quietly(path: Optional[str]) -> None:
    """Delete a file if it exists, logging (not raising) on failure."""
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to delete temp file {path}: {e}")


def _stamp(path: str) -> Optional[int]:
    try:
        return os.stat(path).st_mtime_ns
    except OSError:
        return None


def preview_temp_path(frame_index: int, temp_dir: str) -> str:
    """Unique temp PNG path, salted with the process id and a UUID."""
    name = f"{PREVIEW_PREFIX}{frame_index}_{os.getpid()}_{uuid.uuid4().hex}.png"
    return os.path.join(temp_dir, name)


class FrameExtractor:
    """
    Extracts one frame of a video as PNG.

    Each call owns its own FFmpeg process and temp file, so concurrent calls
    on the same source do not interfere.
    """

    def __init__(self, runner: ProcessRunner, config: PipelineConfig = DEFAULT_CONFIG):
        if runner is None:
            raise ValueError("FrameExtractor requires a process runner")
        self.runner = runner
        self.config = config

    async def extract_frame(
        self,
        request: FrameRequest,
        encoder_path: Optional[str],
        cancel_token: Optional[CancellationToken] = None,
    ) -> FrameResult:
        """
        Extract a single frame.

        Args:
            request: Source, frame index, optional scale and destination
            encoder_path: Path to the ffmpeg executable
            cancel_token: Optional cancellation token

        Returns:
            FrameResult with PNG bytes (temp output) or output_path (explicit
            output); error_code describes any failure
        """
        result = FrameResult(source_path=request.source_path, frame_index=request.frame_index)

        try:
            require_encoder(encoder_path)
            require_source(request.source_path)
            if request.frame_index < 0:
                raise InvalidFrameRangeError(
                    f"Frame index cannot be negative: {request.frame_index}"
                )
            if request.output_path:
                return await self._extract_to_path(request, encoder_path, cancel_token, result)
            return await self._extract_to_memory(request, encoder_path, cancel_token, result)
        except MediaPipelineError as e:
            logger.warning(f"[FFmpeg] Frame {request.frame_index} of {request.source_path} failed: {e.message}")
            return result.fail_with(e)
        except OSError as e:
            logger.exception(f"[FFmpeg] Frame extraction error: {e}")
            return result.finish(ErrorCode.ENCODER_FAILED, f"Failed to run FFmpeg: {e}")

    async def _run(
        self,
        request: FrameRequest,
        encoder_path: str,
        output_path: str,
        cancel_token: Optional[CancellationToken],
    ) -> None:
        """Run FFmpeg for one frame; raises on cancellation or failure."""
        args = single_frame_args(
            request.source_path,
            request.frame_index,
            output_path,
            width=request.target_width,
            height=request.target_height,
        )
        before = _stamp(output_path)
        completed = False
        try:
            outcome = await self.runner.run(encoder_path, args, cancel_token=cancel_token)

            if outcome.was_cancelled:
                raise OperationCancelledError(outcome.cancellation_message(), stderr=outcome.stderr)

            if outcome.exit_code != 0:
                raise ToolFailedError(
                    f"FFmpeg failed with exit code {outcome.exit_code}: {outcome.stderr.strip()}",
                    code=ErrorCode.ENCODER_FAILED,
                    stderr=outcome.stderr,
                )

            if not os.path.isfile(output_path):
                raise ToolFailedError(
                    "Frame extraction succeeded but output file was not created.",
                    code=ErrorCode.ENCODER_FAILED,
                    stderr=outcome.stderr,
                )
            completed = True
        finally:
            # Only remove what this run wrote; leave an untouched existing file alone
            if not completed and (before is None or _stamp(output_path) != before):
                remove_quietly(output_path)

    async def _extract_to_path(
        self,
        request: FrameRequest,
        encoder_path: str,
        cancel_token: Optional[CancellationToken],
        result: FrameResult,
    ) -> FrameResult:
        output_path = os.path.abspath(request.output_path)
        await self._run(request, encoder_path, output_path, cancel_token)
        logger.info(f"[FFmpeg] Saved frame {request.frame_index} to {output_path}")
        result.output_path = output_path
        return result.finish(message=f"Saved: {output_path}")

    async def _extract_to_memory(
        self,
        request: FrameRequest,
        encoder_path: str,
        cancel_token: Optional[CancellationToken],
        result: FrameResult,
    ) -> FrameResult:
        temp_path = preview_temp_path(request.frame_index, self.config.temp_dir)
        try:
            await self._run(request, encoder_path, temp_path, cancel_token)
            with open(temp_path, "rb") as f:
                data = f.read()
        finally:
            remove_quietly(temp_path)

        logger.debug(f"[FFmpeg] Extracted frame {request.frame_index} ({len(data)} bytes)")
        result.data = data
        return result.finish(message=f"Extracted frame {request.frame_index}")
