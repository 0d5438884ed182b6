"""
Pipeline configuration.

Constants describe how the external tools are driven.
PipelineConfig bundles them so components can be constructed with
different values (tests use a private temp directory).
"""

import tempfile
from dataclasses import dataclass, field


# Encoder settings for image sequence -> video
ENCODER_VIDEO_CODEC = "libx264"
DEFAULT_ENCODER_PRESET = "fast"
DEFAULT_ENCODER_CRF = 23
OUTPUT_PIXEL_FORMAT = "yuv420p"
DEFAULT_OUTPUT_EXTENSION = ".mp4"

# Liveness heartbeat while ffprobe counts frames (seconds)
HEARTBEAT_INTERVAL_SECONDS = 0.4

# How long to wait for a killed process to be reaped (seconds)
KILL_WAIT_TIMEOUT_SECONDS = 5.0

# Settings key holding the ffmpeg executable path
FFMPEG_PATH_KEY = "ffmpegPath"

# Environment variable override (optional, advanced)
ENV_FFMPEG_PATH = "GETFRAME_FFMPEG_PATH"

# Temp file name prefixes
PREVIEW_PREFIX = "getframe_preview_frame_"
PLAYLIST_PREFIX = "getframe_concat_"
ENCODE_PREFIX = "getframe_encode_"


@dataclass(frozen=True)
class PipelineConfig:
    """
    Immutable settings shared by the pipeline components.

    temp_dir defaults to the system temp directory at construction time.
    """

    video_codec: str = ENCODER_VIDEO_CODEC
    default_preset: str = DEFAULT_ENCODER_PRESET
    default_crf: int = DEFAULT_ENCODER_CRF
    pixel_format: str = OUTPUT_PIXEL_FORMAT
    heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS
    kill_wait_timeout: float = KILL_WAIT_TIMEOUT_SECONDS
    temp_dir: str = field(default_factory=tempfile.gettempdir)
    ffmpeg_path_key: str = FFMPEG_PATH_KEY


DEFAULT_CONFIG = PipelineConfig()
