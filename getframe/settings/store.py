"""
Settings stores.

The pipeline only needs get/set of string values (the FFmpeg path).
How values are persisted is the store's own business.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / ".getframe" / "settings.json"


@runtime_checkable
class SettingsStore(Protocol):
    """Key/value settings collaborator."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class InMemorySettingsStore:
    """Dictionary-backed store; nothing is persisted."""

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonSettingsStore:
    """
    Settings persisted as a flat JSON object.

    Reads the file on every get so changes made by another process are
    picked up. Writes go through a temp file replaced over the original.
    """

    def __init__(self, storage_path: Optional[Path] = None):
        self.storage_path = Path(storage_path) if storage_path else DEFAULT_SETTINGS_PATH
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not self.storage_path.exists():
            return {}
        try:
            with open(self.storage_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load settings from {self.storage_path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self.storage_path}: not a JSON object")
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _save(self, data: Dict[str, str]) -> None:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write via temp file
        temp_path = self.storage_path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        temp_path.replace(self.storage_path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def all(self) -> Dict[str, str]:
        with self._lock:
            return self._load()
