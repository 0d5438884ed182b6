"""
Settings store and FFmpeg tool discovery.
"""

from .store import DEFAULT_SETTINGS_PATH, InMemorySettingsStore, JsonSettingsStore, SettingsStore
from .tools import ToolLocator, find_ffmpeg, find_tool

__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "InMemorySettingsStore",
    "JsonSettingsStore",
    "SettingsStore",
    "ToolLocator",
    "find_ffmpeg",
    "find_tool",
]
