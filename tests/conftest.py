from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from config import MediadeckConfig
from settings import SettingsStore

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}
VIDEO_EXTENSIONS = {".mp4", ".mov"}


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_image(path: Path, size: tuple[int, int] = (40, 20), fmt: str = "PNG") -> Path:
    """Write a two-colour image: left half red, right half blue."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", size, (0, 0, 255))
    img.paste((255, 0, 0), (0, 0, size[0] // 2, size[1]))
    img.save(path, format=fmt)
    return path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    """
    media/
        a.jpg
        doc.txt
        sub/
            b.mp4
            empty/
    """
    root = tmp_path / "media"
    (root / "sub" / "empty").mkdir(parents=True)
    (root / "a.jpg").write_bytes(b"jpeg")
    (root / "doc.txt").write_text("notes")
    (root / "sub" / "b.mp4").write_bytes(b"mp4")
    return root


@pytest.fixture
def cfg(tmp_path: Path) -> MediadeckConfig:
    config = MediadeckConfig()
    config.paths.settings_file = str(tmp_path / "settings" / "settings.json")
    config.logging.log_file = str(tmp_path / "logs" / "mediadeck.log")
    config.scan.max_workers = 4
    return config


@pytest.fixture
def settings_store(cfg: MediadeckConfig) -> SettingsStore:
    return SettingsStore(cfg.paths.settings_file)
