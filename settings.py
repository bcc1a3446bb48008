"""
settings.py - persistent key-value store for user preferences.

Settings file location: ~/.config/mediadeck/settings.json (see config.py)
Format: one JSON object.  Keys missing from the file fall back to the
defaults supplied by the application; reset() writes the defaults back.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from scanner import DEFAULT_IMAGE_EXTENSIONS, DEFAULT_VIDEO_EXTENSIONS

logger = logging.getLogger(__name__)

MAX_RECENT_FOLDERS = 10

DEFAULT_SETTINGS: dict[str, Any] = {
    "themeColor": "neon-blue",
    "autoPlayVideos": True,
    "showFileNames": True,
    "thumbnailSize": "medium",
    "viewerMode": "fit",
    "slideShowInterval": 3000,
    "defaultView": "grid",
    "sortBy": "name",
    "sortOrder": "asc",
    "filterBy": "all",
    "videoLoop": True,
    "favorites": [],
    "supportedFormats": {
        "images": list(DEFAULT_IMAGE_EXTENSIONS),
        "videos": list(DEFAULT_VIDEO_EXTENSIONS),
    },
    "recentFolders": [],
    "maxCacheSize": 100,
}


class SettingsStore:
    def __init__(self, path: Path | str, defaults: dict[str, Any] | None = None) -> None:
        self.path = Path(path)
        self.defaults = copy.deepcopy(DEFAULT_SETTINGS if defaults is None else defaults)
        self._lock = threading.RLock()
        self._data = self._load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring settings file %s: not a JSON object", self.path)
            return {}
        return data

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)

    # ------------------------------------------------------------------
    # Store interface
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key in self._data:
                return copy.deepcopy(self._data[key])
            if key in self.defaults:
                return copy.deepcopy(self.defaults[key])
            return default

    def get_all(self) -> dict[str, Any]:
        with self._lock:
            merged = copy.deepcopy(self.defaults)
            merged.update(copy.deepcopy(self._data))
            return merged

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)
            self._save()
        logger.debug("Setting %s updated", key)

    def clear(self) -> None:
        with self._lock:
            self._data = {}
            self._save()

    def reset(self) -> dict[str, Any]:
        """Clear the store and write every default back."""
        with self._lock:
            self._data = copy.deepcopy(self.defaults)
            self._save()
        logger.info("Settings reset to defaults")
        return self.get_all()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def add_recent_folder(self, folder: str) -> list[str]:
        """Move *folder* to the front of recentFolders, keeping at most 10."""
        with self._lock:
            recent = [f for f in self.get("recentFolders") or [] if f != folder]
            recent.insert(0, folder)
            del recent[MAX_RECENT_FOLDERS:]
            self.set("recentFolders", recent)
            return recent

    def media_extensions(self) -> tuple[list[str], list[str]]:
        """Return the (images, videos) suffix lists currently configured."""
        formats = self.get("supportedFormats") or {}
        return list(formats.get("images", [])), list(formats.get("videos", []))
