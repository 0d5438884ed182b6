"""
Metadata extraction for getframe.

Read-only and non-destructive: ffprobe is run against the source file and
its JSON report is mapped into a VideoMetadata record.

Usage:
    from getframe.metadata import MetadataExtractor

    metadata = await MetadataExtractor(runner).extract(path, ffprobe_path)
    print(metadata.build_info_text())
"""

from .extractor import (
    MetadataExtractor,
    MetadataParseError,
    analyzing_heartbeat,
    apply_probe_data,
    parse_frame_rate,
)
from .models import VideoMetadata, format_file_size

__all__ = [
    "MetadataExtractor",
    "MetadataParseError",
    "analyzing_heartbeat",
    "apply_probe_data",
    "parse_frame_rate",
    "VideoMetadata",
    "format_file_size",
]
