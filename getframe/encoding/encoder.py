"""
Image sequence to video encoding using FFmpeg's concat demuxer.

Steps:
1. Validate FFmpeg and the input images
2. Write the concat playlist to a temp file (unquotable names are rejected)
3. Encode to a temp output, forwarding -progress updates
4. Publish the temp output under a collision-free name beside the first image
5. Always delete the playlist and any unpublished temp output

Cancellation kills the FFmpeg process tree and leaves no files behind.
"""

import logging
import os
import uuid
from datetime import datetime
from typing import Optional

from ..config import DEFAULT_CONFIG, ENCODE_PREFIX, PipelineConfig
from ..errors import (
    ErrorCode,
    MediaPipelineError,
    OperationCancelledError,
    SourceNotFoundError,
    ToolFailedError,
)
from ..execution.cancellation import CancellationToken
from ..execution.commands import concat_encode_args
from ..execution.process import ProcessRunner
from ..execution.progress import ProgressCallback, ProgressLineParser, ProgressSeverity, emit
from ..frames.extractor import remove_quietly, require_encoder
from .models import EncodeJob, EncodeResult
from .naming import Clock, normalize_extension, publish
from .playlist import write_playlist

logger = logging.getLogger(__name__)


class SequenceEncoder:
    """
    Encodes an ordered list of images into a video.

    Usage:
        encoder = SequenceEncoder(ProcessRunner())
        job = EncodeJob(image_paths=["a.png", "b.png"], frame_rate=2)
        result = await encoder.encode(job, "/usr/bin/ffmpeg")
        print(result.output_path)
    """

    def __init__(
        self,
        runner: ProcessRunner,
        config: PipelineConfig = DEFAULT_CONFIG,
        clock: Clock = datetime.now,
    ):
        if runner is None:
            raise ValueError("SequenceEncoder requires a process runner")
        self.runner = runner
        self.config = config
        self.clock = clock

    async def encode(
        self,
        job: EncodeJob,
        encoder_path: Optional[str],
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> EncodeResult:
        """
        Encode the job's images.

        Args:
            job: Images, frame rate, extension, preset and quality
            encoder_path: Path to the ffmpeg executable
            progress: Optional progress callback
            cancel_token: Optional cancellation token

        Returns:
            EncodeResult with output_path on success; error_code otherwise
        """
        result = EncodeResult(image_count=job.image_count, frame_rate=job.frame_rate)
        emit(progress, 1, "Initializing", ProgressSeverity.SUCCESS)

        try:
            require_encoder(encoder_path)
            for image in job.image_paths:
                if not os.path.isfile(image):
                    raise SourceNotFoundError(f"Image file does not exist. [{image}]")

            output_path = await self._encode(job, encoder_path, progress, cancel_token, result)

        except OperationCancelledError as e:
            logger.info(f"[FFmpeg] Encode of {job.image_count} images cancelled")
            emit(progress, 1, "Cancelled", ProgressSeverity.MUTED)
            return result.fail_with(e)
        except MediaPipelineError as e:
            logger.error(f"[FFmpeg] Encode failed: {e.message}")
            emit(progress, 1, "Error", ProgressSeverity.ERROR)
            return result.fail_with(e)
        except (OSError, RuntimeError, ValueError) as e:
            logger.exception(f"[FFmpeg] Encode error: {e}")
            emit(progress, 1, "Error", ProgressSeverity.ERROR)
            return result.finish(ErrorCode.ENCODER_FAILED, f"Encoding failed: {e}")

        result.output_path = str(output_path)
        emit(progress, 100, "Success", ProgressSeverity.SUCCESS)
        return result.finish(message=f"Saved: {output_path}")

    async def _encode(
        self,
        job: EncodeJob,
        encoder_path: str,
        progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
        result: EncodeResult,
    ):
        extension = normalize_extension(job.output_extension)
        temp_output = os.path.join(self.config.temp_dir, f"{ENCODE_PREFIX}{uuid.uuid4().hex}{extension}")
        playlist_path = None

        try:
            playlist_path = write_playlist(job.image_paths, job.frame_rate, self.config.temp_dir)
            emit(progress, 2, "Processing", ProgressSeverity.SUCCESS)

            parser = ProgressLineParser(job.total_duration_seconds)

            def on_line(line: str) -> None:
                event = parser.parse_line(line)
                if event is not None and progress is not None:
                    progress(event)

            args = concat_encode_args(
                playlist_path,
                temp_output,
                job.frame_rate,
                preset=job.encoder_preset,
                crf=job.encoder_quality,
                codec=self.config.video_codec,
                pixel_format=self.config.pixel_format,
            )
            outcome = await self.runner.run(
                encoder_path, args, cancel_token=cancel_token, on_stdout_line=on_line
            )
            result.progress_log = outcome.stdout

            if outcome.was_cancelled:
                raise OperationCancelledError(outcome.cancellation_message(), stderr=outcome.stderr)

            if outcome.exit_code != 0:
                raise ToolFailedError(
                    f"FFmpeg failed (exit code {outcome.exit_code}).\n"
                    f"Error: {outcome.stderr.strip()}\n"
                    f"Output: {outcome.stdout.strip()}",
                    code=ErrorCode.ENCODER_FAILED,
                    stderr=outcome.stderr,
                )

            if not os.path.isfile(temp_output):
                raise ToolFailedError(
                    "Encoding succeeded but output file was not created.",
                    code=ErrorCode.ENCODER_FAILED,
                    stderr=outcome.stderr,
                )

            return publish(temp_output, job.image_paths[0], extension, self.clock)

        finally:
            remove_quietly(playlist_path)
            remove_quietly(temp_output)
