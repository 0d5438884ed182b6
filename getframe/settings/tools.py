"""
FFmpeg / FFprobe discovery.

Resolution order for ffmpeg:
1. Path stored in the settings store (key "ffmpegPath"), if the file exists
2. GETFRAME_FFMPEG_PATH environment variable
3. PATH
4. Common install locations

A path found in steps 3-4 is written back to the store. ffprobe is looked
up next to ffmpeg first, then on PATH.

Nothing is cached: every call reads the store again.
"""

import logging
import os
import shutil
import sys
from typing import List, Optional

from ..config import ENV_FFMPEG_PATH, FFMPEG_PATH_KEY
from .store import SettingsStore

logger = logging.getLogger(__name__)


def _executable_name(tool: str) -> str:
    return f"{tool}.exe" if sys.platform == "win32" else tool


def common_tool_paths(tool: str) -> List[str]:
    """Usual install locations for an FFmpeg suite binary."""
    if sys.platform == "win32":
        program_files = os.environ.get("PROGRAMFILES", "C:\\Program Files")
        return [
            os.path.join(program_files, "ffmpeg", "bin", f"{tool}.exe"),
            os.path.join("C:\\ffmpeg", "bin", f"{tool}.exe"),
        ]
    return [
        f"/usr/local/bin/{tool}",
        f"/usr/bin/{tool}",
        f"/opt/homebrew/bin/{tool}",
    ]


def find_tool(tool: str) -> Optional[str]:
    """Find a binary on PATH or in a common install location."""
    found = shutil.which(tool)
    if found:
        return found

    for path in common_tool_paths(tool):
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path

    return None


def find_ffmpeg() -> Optional[str]:
    """Find ffmpeg binary path."""
    return find_tool("ffmpeg")


class ToolLocator:
    """
    Resolves the ffmpeg and ffprobe executables for each high-level call.

    Usage:
        locator = ToolLocator(JsonSettingsStore())
        ffmpeg = locator.encoder_path()
        ffprobe = locator.prober_path(ffmpeg)
    """

    def __init__(self, store: SettingsStore, key: str = FFMPEG_PATH_KEY):
        if store is None:
            raise ValueError("ToolLocator requires a settings store")
        self.store = store
        self.key = key

    def encoder_path(self) -> Optional[str]:
        """
        Current ffmpeg path, or None if it cannot be found.

        A stored path that no longer exists is ignored and replaced by a
        discovered one.
        """
        stored = self.store.get(self.key)
        if stored and os.path.isfile(stored):
            return stored
        if stored:
            logger.warning(f"[FFmpeg] Stored path does not exist: {stored}")

        override = os.environ.get(ENV_FFMPEG_PATH)
        if override:
            if os.path.isfile(override):
                logger.debug(f"[FFmpeg] Using {ENV_FFMPEG_PATH}: {override}")
                return override
            logger.warning(f"[FFmpeg] {ENV_FFMPEG_PATH} does not exist: {override}")

        discovered = find_ffmpeg()
        if discovered:
            logger.info(f"[FFmpeg] Found executable: {discovered}")
            self.store.set(self.key, discovered)
            return discovered

        logger.warning("[FFmpeg] Executable not found")
        return stored or None

    def prober_path(self, encoder_path: Optional[str] = None) -> Optional[str]:
        """ffprobe beside the given (or resolved) ffmpeg, else on PATH."""
        if encoder_path is None:
            encoder_path = self.encoder_path()

        if encoder_path:
            sibling = os.path.join(os.path.dirname(encoder_path), _executable_name("ffprobe"))
            if os.path.isfile(sibling):
                return sibling

        return shutil.which("ffprobe")

    def remember(self, encoder_path: str) -> None:
        """Store an explicitly chosen ffmpeg path."""
        self.store.set(self.key, encoder_path)
