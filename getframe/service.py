"""
Video service: the high-level entry point.

Wires the pipeline components together with explicitly supplied
collaborators. The FFmpeg/FFprobe paths are resolved through the settings
store at the start of every call.

Usage:
    service = VideoService(JsonSettingsStore())
    metadata = await service.get_video_info("/media/clip.mp4")
    frame = await service.get_frame("/media/clip.mp4", 120, width=320)
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from .config import DEFAULT_CONFIG, DEFAULT_OUTPUT_EXTENSION, PipelineConfig
from .encoding import EncodeJob, EncodeResult, SequenceEncoder
from .encoding.naming import Clock
from .execution.cancellation import CancellationToken
from .execution.process import ProcessRunner
from .execution.progress import ProgressCallback
from .frames import FrameExtractor, FrameRequest, FrameResult, RangeExtractor, RangeResult
from .metadata import MetadataExtractor, VideoMetadata
from .settings import SettingsStore, ToolLocator

logger = logging.getLogger(__name__)


def clamp_frame_index(metadata: VideoMetadata, frame_index: int) -> int:
    """
    Clamp a requested frame index to the video's valid range.

    With an unknown frame count only the lower bound applies.
    """
    if frame_index < 0:
        return 0
    if metadata.frame_count > 0 and frame_index > metadata.last_frame_index:
        return metadata.last_frame_index
    return frame_index


class VideoService:
    """
    Metadata, frame, range and encode operations over FFmpeg.

    Every operation returns a result record; check ok / error_code, or call
    raise_for_error() to get an exception instead.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        runner: Optional[ProcessRunner] = None,
        config: Optional[PipelineConfig] = None,
        locator: Optional[ToolLocator] = None,
        clock: Clock = datetime.now,
    ):
        if settings_store is None:
            raise ValueError("VideoService requires a settings store")

        self.config = config or DEFAULT_CONFIG
        self.settings_store = settings_store
        self.runner = runner or ProcessRunner(kill_wait_timeout=self.config.kill_wait_timeout)
        self.locator = locator or ToolLocator(settings_store, key=self.config.ffmpeg_path_key)

        self.metadata_extractor = MetadataExtractor(self.runner, self.config)
        self.frame_extractor = FrameExtractor(self.runner, self.config)
        self.range_extractor = RangeExtractor(self.runner, self.config)
        self.sequence_encoder = SequenceEncoder(self.runner, self.config, clock=clock)

    async def get_video_info(
        self,
        file_path: str,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> VideoMetadata:
        """Probe a video; never raises for tool or file problems."""
        encoder_path = self.locator.encoder_path()
        prober_path = self.locator.prober_path(encoder_path)
        logger.debug(f"Resolved tools: ffmpeg={encoder_path}, ffprobe={prober_path}")
        return await self.metadata_extractor.extract(file_path, prober_path, progress, cancel_token)

    async def get_frame(
        self,
        file_path: str,
        frame_index: int,
        width: Optional[int] = None,
        height: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> FrameResult:
        """
        Extract one frame as PNG bytes (result.data).

        Args:
            file_path: Source video
            frame_index: 0-based frame index
            width: Optional preview width (aspect kept if height is None)
            height: Optional preview height
            cancel_token: Optional cancellation token
        """
        request = FrameRequest(
            source_path=file_path,
            frame_index=frame_index,
            target_width=width,
            target_height=height,
        )
        return await self.frame_extractor.extract_frame(
            request, self.locator.encoder_path(), cancel_token
        )

    async def save_frame_as_png(
        self,
        file_path: str,
        frame_index: int,
        output_path: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> FrameResult:
        """Extract one frame to output_path at full resolution."""
        request = FrameRequest(
            source_path=file_path,
            frame_index=frame_index,
            output_path=output_path,
        )
        return await self.frame_extractor.extract_frame(
            request, self.locator.encoder_path(), cancel_token
        )

    async def extract_frame_range(
        self,
        file_path: str,
        frame_start: int,
        frame_end: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> RangeResult:
        """Extract frames [frame_start, frame_end] as numbered PNGs next to the source."""
        return await self.range_extractor.extract_range(
            file_path, self.locator.encoder_path(), frame_start, frame_end, cancel_token
        )

    async def encode_images(
        self,
        image_paths: Sequence[str],
        frame_rate: float,
        output_extension: str = DEFAULT_OUTPUT_EXTENSION,
        encoder_preset: Optional[str] = None,
        encoder_quality: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> EncodeResult:
        """
        Encode images into a video beside the first image.

        A missing preset or quality falls back to the configured defaults.

        Raises:
            ValueError: If the image list is empty or frame_rate is not positive
        """
        job = EncodeJob(
            image_paths=list(image_paths),
            frame_rate=frame_rate,
            output_extension=output_extension,
            encoder_preset=encoder_preset if encoder_preset and encoder_preset.strip() else self.config.default_preset,
            encoder_quality=self.config.default_crf if encoder_quality is None else encoder_quality,
        )
        return await self.sequence_encoder.encode(
            job, self.locator.encoder_path(), progress, cancel_token
        )
