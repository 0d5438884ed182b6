"""
Metadata extraction using ffprobe.

ffprobe is asked for full format/stream JSON with counted frames
(-count_frames), which decodes the whole video stream and can take a
while. Its output is not streamed, so no real percentage is knowable;
a synthetic heartbeat oscillating between 50% and 90% signals liveness.

Failures never escape: every outcome is a populated VideoMetadata whose
error_code/status_message describe what went wrong.
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Iterator, Optional, Tuple

from pydantic import ValidationError

from ..config import DEFAULT_CONFIG, PipelineConfig
from ..errors import ErrorCode
from ..execution.cancellation import CancellationToken
from ..execution.commands import prober_args
from ..execution.process import ProcessOutcome, ProcessRunner
from ..execution.progress import ProgressCallback, ProgressSeverity, emit
from .models import VideoMetadata

logger = logging.getLogger(__name__)


# Heartbeat bounds while ffprobe runs
HEARTBEAT_MIN_PERCENT = 50
HEARTBEAT_MAX_PERCENT = 90
HEARTBEAT_STEP = 2

# Placeholder when ffprobe reports no frame rate
UNKNOWN_FRAME_RATE = "N/A"


class MetadataParseError(Exception):
    """Prober JSON was valid but did not have the expected shape."""
    pass


def analyzing_heartbeat() -> Iterator[Tuple[int, str]]:
    """
    Endless (percent, message) sequence for the liveness heartbeat.

    Percent bounces between 50 and 90 in steps of 2; the message ends in
    3, 2, 1, 3, ... dots.
    """
    percent = HEARTBEAT_MIN_PERCENT
    increasing = True
    dots = 3
    while True:
        if increasing:
            percent += HEARTBEAT_STEP
            if percent >= HEARTBEAT_MAX_PERCENT:
                percent = HEARTBEAT_MAX_PERCENT
                increasing = False
        else:
            percent -= HEARTBEAT_STEP
            if percent <= HEARTBEAT_MIN_PERCENT:
                percent = HEARTBEAT_MIN_PERCENT
                increasing = True

        yield percent, "Analyzing video metadata" + "." * dots
        dots = dots - 1 if dots > 1 else 3


def parse_frame_rate(label: str) -> float:
    """
    Convert an r_frame_rate string to frames per second.

    Args:
        label: "num/den" (e.g. "30000/1001") or a plain number as text

    Returns:
        fps, or 0.0 when the value is unusable (zero denominator,
        non-positive parts, unparsable text)
    """
    label = label.strip()
    try:
        if "/" in label:
            parts = label.split("/")
            if len(parts) != 2:
                return 0.0
            numerator = float(parts[0])
            denominator = float(parts[1])
            if numerator > 0 and denominator > 0:
                return numerator / denominator
            return 0.0
        return float(label)
    except ValueError:
        return 0.0


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _parse_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def find_video_stream(probe_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Find the first video stream in ffprobe output."""
    streams = probe_data.get("streams", [])
    if not isinstance(streams, list):
        raise MetadataParseError("'streams' is not a list")
    for stream in streams:
        if isinstance(stream, dict) and stream.get("codec_type") == "video":
            return stream
    return None


def apply_probe_data(metadata: VideoMetadata, probe_data: Any) -> VideoMetadata:
    """
    Map parsed ffprobe JSON onto a metadata record.

    Args:
        metadata: Record to populate (file path and size already set)
        probe_data: Parsed ffprobe JSON document

    Returns:
        The same record

    Raises:
        MetadataParseError: If the document has no usable video stream
    """
    if not isinstance(probe_data, dict):
        raise MetadataParseError("ffprobe output is not a JSON object")

    stream = find_video_stream(probe_data)
    if stream is None:
        raise MetadataParseError("No video stream found")

    width = _parse_int(stream.get("width"))
    height = _parse_int(stream.get("height"))
    if width is not None and height is not None and width >= 0 and height >= 0:
        metadata.width = width
        metadata.height = height

    label = stream.get("r_frame_rate")
    if label is None:
        metadata.frame_rate_label = UNKNOWN_FRAME_RATE
    else:
        metadata.frame_rate_label = str(label)
        metadata.fps = parse_frame_rate(metadata.frame_rate_label)

    duration = _parse_float(stream.get("duration"))
    if duration is None:
        # Matroska and similar containers only report a format duration
        format_info = probe_data.get("format")
        if isinstance(format_info, dict):
            duration = _parse_float(format_info.get("duration"))
    if duration is not None and duration >= 0:
        metadata.duration_ms = duration * 1000.0

    frames = _parse_int(stream.get("nb_read_frames"))
    if frames is None:
        frames = _parse_int(stream.get("nb_frames"))
    if frames is not None and frames >= 0:
        metadata.frame_count = frames

    codec_name = stream.get("codec_name")
    if codec_name:
        metadata.codec_name = str(codec_name)

    return metadata


def failed_metadata(file_path: str, code: ErrorCode, message: str) -> VideoMetadata:
    """Failure record built without validating file_path, which may be what failed."""
    return VideoMetadata.model_construct(file_path=file_path, error_code=code, status_message=message)


class MetadataExtractor:
    """
    Runs ffprobe and maps its JSON into VideoMetadata.

    Usage:
        extractor = MetadataExtractor(ProcessRunner())
        metadata = await extractor.extract("/media/clip.mp4", "/usr/bin/ffprobe")
        if metadata.ok:
            print(metadata.build_info_text())
    """

    def __init__(self, runner: ProcessRunner, config: PipelineConfig = DEFAULT_CONFIG):
        if runner is None:
            raise ValueError("MetadataExtractor requires a process runner")
        self.runner = runner
        self.config = config

    async def extract(
        self,
        file_path: str,
        prober_path: Optional[str],
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> VideoMetadata:
        """
        Extract metadata from a video file.

        Args:
            file_path: Source video path
            prober_path: Path to the ffprobe executable
            progress: Optional progress callback
            cancel_token: Optional cancellation token

        Returns:
            VideoMetadata; check error_code for the outcome
        """
        try:
            return await self._extract(file_path, prober_path, progress, cancel_token)
        except Exception as e:
            logger.exception(f"[FFprobe] Unexpected failure analyzing {file_path}: {e}")
            return failed_metadata(
                file_path,
                ErrorCode.PROBER_FAILED,
                f"Error occurred while analyzing video: {e}",
            )

    async def _extract(
        self,
        file_path: str,
        prober_path: Optional[str],
        progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> VideoMetadata:
        emit(progress, 0, "Starting metadata retrieval...")

        emit(progress, 1, "Checking FFprobe executable...")
        if not prober_path or not prober_path.strip():
            return failed_metadata(file_path, ErrorCode.PROBER_NOT_FOUND, "FFprobe path is not set in settings.")
        if not os.path.isfile(prober_path):
            return failed_metadata(
                file_path,
                ErrorCode.PROBER_NOT_FOUND,
                f"FFprobe executable not found at: {prober_path}",
            )

        try:
            metadata = VideoMetadata(file_path=file_path)
        except ValidationError as e:
            logger.warning(f"[FFprobe] Rejected file path {file_path!r}: {e}")
            return failed_metadata(file_path, ErrorCode.FILE_NOT_FOUND, f"Invalid file path: {file_path!r}")

        if not os.path.isfile(file_path):
            return metadata.fail(ErrorCode.FILE_NOT_FOUND, f"File not found at: {file_path}")
        metadata.file_size_bytes = os.path.getsize(file_path)

        if cancel_token is not None and cancel_token.cancelled:
            return metadata.fail(ErrorCode.OPERATION_CANCELLED, "Operation was cancelled.")

        emit(progress, 1, "Retrieving video metadata...", ProgressSeverity.SUCCESS)
        outcome = await self._run_with_heartbeat(prober_path, file_path, progress, cancel_token)

        if outcome.was_cancelled:
            logger.info(f"[FFprobe] Cancelled while analyzing {file_path}")
            return metadata.fail(ErrorCode.OPERATION_CANCELLED, outcome.cancellation_message())

        if outcome.exit_code != 0:
            logger.error(f"[FFprobe] Failed with exit code {outcome.exit_code}: {outcome.stderr.strip()}")
            return metadata.fail(
                ErrorCode.PROBER_FAILED,
                f"ffprobe failed with exit code {outcome.exit_code}: {outcome.stderr.strip()}",
            )

        emit(progress, 95, "Parsing metadata...", ProgressSeverity.SUCCESS)
        try:
            probe_data = json.loads(outcome.stdout)
        except json.JSONDecodeError as e:
            return metadata.fail(ErrorCode.PROBER_FAILED, f"Failed to parse ffprobe output: {e}")

        try:
            apply_probe_data(metadata, probe_data)
        except MetadataParseError as e:
            return metadata.fail(ErrorCode.METADATA_RETRIEVAL_FAILED, f"Unusable ffprobe output: {e}")

        logger.info(
            f"[FFprobe] {file_path}: {metadata.width}x{metadata.height}, "
            f"{metadata.frame_count} frames at {metadata.frame_rate_label}"
        )
        emit(progress, 100, "Metadata retrieval complete", ProgressSeverity.SUCCESS)
        return metadata

    async def _run_with_heartbeat(
        self,
        prober_path: str,
        file_path: str,
        progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> ProcessOutcome:
        """Run ffprobe, emitting the liveness heartbeat until it finishes."""
        run_task = asyncio.ensure_future(
            self.runner.run(prober_path, prober_args(file_path), cancel_token=cancel_token)
        )
        heartbeat = analyzing_heartbeat()
        try:
            while True:
                done, _ = await asyncio.wait({run_task}, timeout=self.config.heartbeat_interval)
                if done:
                    return run_task.result()
                if cancel_token is not None and cancel_token.cancelled:
                    # The runner is killing the process; wait for its outcome
                    continue
                percent, message = next(heartbeat)
                emit(progress, percent, message)
        finally:
            if not run_task.done():
                run_task.cancel()
                await asyncio.gather(run_task, return_exceptions=True)
