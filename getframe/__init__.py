"""
getframe - Video metadata, frame extraction and image-sequence encoding
built on FFmpeg and FFprobe.

Usage:
    import asyncio
    from getframe import VideoService, JsonSettingsStore

    service = VideoService(JsonSettingsStore())
    metadata = asyncio.run(service.get_video_info("clip.mp4"))
    print(metadata.build_info_text())
"""

from .config import DEFAULT_CONFIG, PipelineConfig
from .errors import ErrorCode, MediaPipelineError
from .execution import CancellationToken, ProgressEvent, ProgressSeverity
from .service import VideoService, clamp_frame_index
from .settings import InMemorySettingsStore, JsonSettingsStore

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "DEFAULT_CONFIG",
    "ErrorCode",
    "InMemorySettingsStore",
    "JsonSettingsStore",
    "MediaPipelineError",
    "PipelineConfig",
    "ProgressEvent",
    "ProgressSeverity",
    "VideoService",
    "clamp_frame_index",
]
