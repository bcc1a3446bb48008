from __future__ import annotations

import json
from pathlib import Path

from settings import DEFAULT_SETTINGS
from settings import MAX_RECENT_FOLDERS
from settings import SettingsStore


def test_defaults_are_served_without_a_file(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.get("sortBy") == "name"
    assert store.get("unknown", "fallback") == "fallback"
    assert store.get_all() == DEFAULT_SETTINGS
    assert not (tmp_path / "settings.json").exists()


def test_set_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    SettingsStore(path).set("sortBy", "date")

    assert json.loads(path.read_text())["sortBy"] == "date"
    assert SettingsStore(path).get("sortBy") == "date"


def test_returned_values_are_copies(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    formats = store.get("supportedFormats")
    formats["images"].append(".xyz")

    assert ".xyz" not in store.get("supportedFormats")["images"]


def test_clear_and_reset(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    store = SettingsStore(path)
    store.set("themeColor", "green")

    store.clear()
    assert json.loads(path.read_text()) == {}
    assert store.get("themeColor") == "neon-blue"

    store.set("themeColor", "green")
    assert store.reset() == DEFAULT_SETTINGS
    assert json.loads(path.read_text()) == DEFAULT_SETTINGS


def test_custom_defaults(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "s.json", defaults={"a": 1})

    assert store.get_all() == {"a": 1}


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json")

    assert SettingsStore(path).get("maxCacheSize") == 100


def test_non_object_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("[1, 2]")

    assert SettingsStore(path).get_all() == DEFAULT_SETTINGS


def test_add_recent_folder_dedupes_and_caps(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    for i in range(12):
        store.add_recent_folder(f"/f{i}")

    recent = store.add_recent_folder("/f5")

    assert recent[0] == "/f5"
    assert recent.count("/f5") == 1
    assert len(recent) == MAX_RECENT_FOLDERS
    assert store.get("recentFolders") == recent


def test_media_extensions(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    store.set("supportedFormats", {"images": [".png"], "videos": [".mkv"]})

    assert store.media_extensions() == ([".png"], [".mkv"])
