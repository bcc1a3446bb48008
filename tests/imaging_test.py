from __future__ import annotations

import base64
import io
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from cache import TimedCache
from imaging import ImageProcessingError
from imaging import ImageProcessor
from imaging import ThumbnailService
from imaging import thumbnail_key

from conftest import make_image


@pytest.fixture
def processor() -> ImageProcessor:
    return ImageProcessor()


@pytest.fixture
def png_bytes(tmp_path: Path) -> bytes:
    return make_image(tmp_path / "src.png", size=(40, 20)).read_bytes()


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def test_rotate_quarter_turn_clockwise(processor: ImageProcessor, png_bytes: bytes) -> None:
    out = _open(processor.rotate(png_bytes, 90))

    assert out.size == (20, 40)
    assert out.format == "PNG"
    # red left half ends up on top after a clockwise turn
    assert out.getpixel((10, 2))[:3] == (255, 0, 0)
    assert out.getpixel((10, 37))[:3] == (0, 0, 255)


def test_rotate_zero_returns_input(processor: ImageProcessor, png_bytes: bytes) -> None:
    assert processor.rotate(png_bytes, 360) == png_bytes


def test_rotate_arbitrary_angle_expands(processor: ImageProcessor, png_bytes: bytes) -> None:
    out = _open(processor.rotate(png_bytes, 45))

    assert out.size[0] > 40 or out.size[1] > 20


@pytest.mark.parametrize(
    "axis, left, right",
    [
        ("horizontal", (0, 0, 255), (255, 0, 0)),
        ("vertical", (255, 0, 0), (0, 0, 255)),
    ],
)
def test_flip(processor: ImageProcessor, png_bytes: bytes, axis, left, right) -> None:
    out = _open(processor.flip(png_bytes, axis))

    assert out.size == (40, 20)
    assert out.getpixel((2, 10))[:3] == left
    assert out.getpixel((37, 10))[:3] == right


def test_flip_rejects_unknown_axis(processor: ImageProcessor, png_bytes: bytes) -> None:
    with pytest.raises(ValueError):
        processor.flip(png_bytes, "diagonal")


@pytest.mark.parametrize(
    "mode, expected",
    [("cover", (10, 10)), ("contain", (10, 5)), ("fill", (10, 10))],
)
def test_resize_modes(processor: ImageProcessor, png_bytes: bytes, mode, expected) -> None:
    assert _open(processor.resize(png_bytes, 10, mode)).size == expected


def test_resize_rejects_bad_arguments(processor: ImageProcessor, png_bytes: bytes) -> None:
    with pytest.raises(ValueError):
        processor.resize(png_bytes, 0)
    with pytest.raises(ValueError):
        processor.resize(png_bytes, 10, "stretch")


def test_encode_jpeg(processor: ImageProcessor, tmp_path: Path) -> None:
    rgba = tmp_path / "alpha.png"
    Image.new("RGBA", (8, 8), (10, 20, 30, 128)).save(rgba)

    out = _open(processor.encode_jpeg(rgba.read_bytes(), quality=50))

    assert out.format == "JPEG"
    assert out.mode == "RGB"


def test_garbage_raises_processing_error(processor: ImageProcessor) -> None:
    with pytest.raises(ImageProcessingError):
        processor.rotate(b"definitely not an image", 90)


def test_video_frame_unopenable(processor: ImageProcessor, tmp_path: Path) -> None:
    with pytest.raises(ImageProcessingError):
        processor.video_frame(str(tmp_path / "missing.mp4"))


def test_video_frame_converts_bgr(processor: ImageProcessor) -> None:
    frame = np.zeros((6, 8, 3), dtype=np.uint8)
    frame[:, :, 0] = 255  # blue in BGR

    with patch("imaging.cv2.VideoCapture") as capture:
        capture.return_value.isOpened.return_value = True
        capture.return_value.read.return_value = (True, frame)
        out = _open(processor.video_frame("clip.mp4"))

    capture.return_value.release.assert_called_once()
    assert out.size == (8, 6)
    assert out.getpixel((0, 0)) == (0, 0, 255)


def test_thumbnail_is_cached_data_uri(processor: ImageProcessor, tmp_path: Path) -> None:
    src = make_image(tmp_path / "photo.jpg", size=(64, 32), fmt="JPEG")
    cache = TimedCache("thumbnail", max_entries=200)
    service = ThumbnailService(processor, cache, size=16)

    uri = service.generate(str(src))

    assert uri.startswith("data:image/jpeg;base64,")
    thumb = _open(base64.b64decode(uri.split(",", 1)[1]))
    assert thumb.size == (16, 16)
    assert thumb.format == "JPEG"
    assert cache.get(thumbnail_key(str(src), 16)) == uri

    src.unlink()
    assert service.generate(str(src)) == uri


def test_thumbnail_of_video_uses_first_frame(processor: ImageProcessor, tmp_path: Path) -> None:
    frame_png = io.BytesIO()
    Image.new("RGB", (30, 20), (0, 255, 0)).save(frame_png, format="PNG")
    service = ThumbnailService(processor, TimedCache("thumbnail"), size=12)

    with patch.object(processor, "video_frame", return_value=frame_png.getvalue()) as grab:
        uri = service.generate(str(tmp_path / "clip.MP4"), video_extensions=[".mp4"])

    grab.assert_called_once_with(str(tmp_path / "clip.MP4"))
    assert _open(base64.b64decode(uri.split(",", 1)[1])).size == (12, 12)


def test_thumbnail_cache_is_bounded(processor: ImageProcessor, tmp_path: Path) -> None:
    cache = TimedCache("thumbnail", max_entries=2)
    service = ThumbnailService(processor, cache, size=8)
    paths = [str(make_image(tmp_path / f"{i}.png")) for i in range(3)]

    for path in paths:
        service.generate(path)

    assert cache.keys() == [thumbnail_key(p, 8) for p in paths[1:]]


def test_oversized_image_raises_processing_error(
    processor: ImageProcessor, png_bytes: bytes, monkeypatch
) -> None:
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    with pytest.raises(ImageProcessingError):
        processor.rotate(png_bytes, 90)
