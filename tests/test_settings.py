"""
Settings Store and Tool Discovery - Unit Tests
"""

import json
import os
from unittest.mock import patch

import pytest

from getframe.config import ENV_FFMPEG_PATH
from getframe.settings import (
    InMemorySettingsStore,
    JsonSettingsStore,
    SettingsStore,
    ToolLocator,
)


class TestInMemorySettingsStore:

    def test_get_set(self):
        store = InMemorySettingsStore({"ffmpegPath": "/a/ffmpeg"})

        assert store.get("ffmpegPath") == "/a/ffmpeg"
        assert store.get("other") is None
        store.set("other", "x")
        assert store.get("other") == "x"

    def test_satisfies_protocol(self):
        assert isinstance(InMemorySettingsStore(), SettingsStore)
        assert isinstance(JsonSettingsStore("unused.json"), SettingsStore)


class TestJsonSettingsStore:

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonSettingsStore(tmp_path / "settings.json").get("ffmpegPath") is None

    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "settings.json"

        JsonSettingsStore(path).set("ffmpegPath", "/opt/ffmpeg")

        assert JsonSettingsStore(path).get("ffmpegPath") == "/opt/ffmpeg"
        assert json.loads(path.read_text()) == {"ffmpegPath": "/opt/ffmpeg"}
        assert not path.with_suffix(".tmp").exists()

    def test_set_keeps_other_keys(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"theme": "dark"}))

        JsonSettingsStore(path).set("ffmpegPath", "/opt/ffmpeg")

        assert json.loads(path.read_text()) == {"ffmpegPath": "/opt/ffmpeg", "theme": "dark"}

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
    def test_unreadable_file_is_empty(self, tmp_path, content):
        path = tmp_path / "settings.json"
        path.write_text(content)

        store = JsonSettingsStore(path)

        assert store.get("ffmpegPath") is None
        assert store.all() == {}


class TestToolLocator:

    def _tool(self, directory, name):
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text("")
        return str(path)

    def test_stored_path_wins(self, tmp_path):
        ffmpeg = self._tool(tmp_path / "stored", "ffmpeg")
        locator = ToolLocator(InMemorySettingsStore({"ffmpegPath": ffmpeg}))

        with patch("getframe.settings.tools.find_ffmpeg") as find:
            assert locator.encoder_path() == ffmpeg
            find.assert_not_called()

    def test_environment_override(self, tmp_path, monkeypatch):
        ffmpeg = self._tool(tmp_path / "env", "ffmpeg")
        monkeypatch.setenv(ENV_FFMPEG_PATH, ffmpeg)
        store = InMemorySettingsStore()

        assert ToolLocator(store).encoder_path() == ffmpeg
        assert store.get("ffmpegPath") is None

    def test_discovered_path_is_remembered(self, tmp_path, monkeypatch):
        monkeypatch.delenv(ENV_FFMPEG_PATH, raising=False)
        ffmpeg = self._tool(tmp_path / "found", "ffmpeg")
        store = InMemorySettingsStore()

        with patch("getframe.settings.tools.find_ffmpeg", return_value=ffmpeg):
            assert ToolLocator(store).encoder_path() == ffmpeg

        assert store.get("ffmpegPath") == ffmpeg

    def test_stale_stored_path_replaced(self, tmp_path, monkeypatch):
        monkeypatch.delenv(ENV_FFMPEG_PATH, raising=False)
        ffmpeg = self._tool(tmp_path / "found", "ffmpeg")
        store = InMemorySettingsStore({"ffmpegPath": str(tmp_path / "gone" / "ffmpeg")})

        with patch("getframe.settings.tools.find_ffmpeg", return_value=ffmpeg):
            assert ToolLocator(store).encoder_path() == ffmpeg

        assert store.get("ffmpegPath") == ffmpeg

    def test_nothing_found(self, monkeypatch):
        monkeypatch.delenv(ENV_FFMPEG_PATH, raising=False)

        with patch("getframe.settings.tools.find_ffmpeg", return_value=None):
            assert ToolLocator(InMemorySettingsStore()).encoder_path() is None

    def test_store_read_on_every_call(self, tmp_path):
        first = self._tool(tmp_path / "one", "ffmpeg")
        second = self._tool(tmp_path / "two", "ffmpeg")
        store = InMemorySettingsStore({"ffmpegPath": first})
        locator = ToolLocator(store)

        assert locator.encoder_path() == first
        store.set("ffmpegPath", second)
        assert locator.encoder_path() == second

    def test_prober_beside_encoder(self, tmp_path):
        folder = tmp_path / "suite"
        ffmpeg = self._tool(folder, "ffmpeg.exe" if os.name == "nt" else "ffmpeg")
        ffprobe = self._tool(folder, "ffprobe.exe" if os.name == "nt" else "ffprobe")

        assert ToolLocator(InMemorySettingsStore()).prober_path(ffmpeg) == ffprobe

    def test_prober_falls_back_to_path(self, tmp_path):
        ffmpeg = self._tool(tmp_path / "lonely", "ffmpeg")

        with patch("getframe.settings.tools.shutil.which", return_value="/usr/bin/ffprobe") as which:
            assert ToolLocator(InMemorySettingsStore()).prober_path(ffmpeg) == "/usr/bin/ffprobe"
            which.assert_called_once_with("ffprobe")

    def test_requires_store(self):
        with pytest.raises(ValueError):
            ToolLocator(None)
