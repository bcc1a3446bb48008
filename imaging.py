"""
imaging.py - Pillow/OpenCV image processing and thumbnail generation.

ImageProcessor works on encoded bytes in and encoded bytes out, so callers
never hold decoded images.  Every Pillow or OpenCV failure is re-raised as
ImageProcessingError.
"""

from __future__ import annotations

import base64
import io
import logging
import os
from pathlib import Path
from typing import Iterable

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from cache import TimedCache
from scanner import DEFAULT_VIDEO_EXTENSIONS, extension_of, normalize_extensions

logger = logging.getLogger(__name__)

FIT_MODES = ("cover", "contain", "fill")
FLIP_AXES = ("horizontal", "vertical")

# Clockwise quarter turns map onto lossless transposes.
_QUARTER_TURNS = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


class ImageProcessingError(Exception):
    """Raised when an image cannot be decoded, transformed or encoded."""


# ---------------------------------------------------------------------------
# ImageProcessor
# ---------------------------------------------------------------------------


class ImageProcessor:
    def _open(self, data: bytes) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
            raise ImageProcessingError(f"cannot decode image: {exc}") from exc
        return img

    def _encode(self, img: Image.Image, fmt: str | None, **params) -> bytes:
        fmt = fmt or "PNG"
        if fmt == "JPEG" and img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        buf = io.BytesIO()
        try:
            img.save(buf, format=fmt, **params)
        except (OSError, ValueError, KeyError) as exc:
            raise ImageProcessingError(f"cannot encode image as {fmt}: {exc}") from exc
        return buf.getvalue()

    def resize(self, data: bytes, target_size: int, fit_mode: str = "cover") -> bytes:
        """Resize to a target_size square; output keeps the input format."""
        if target_size <= 0:
            raise ValueError(f"target_size must be positive, got {target_size}")
        if fit_mode not in FIT_MODES:
            raise ValueError(f"fit_mode must be one of {FIT_MODES}, got {fit_mode!r}")

        img = self._open(data)
        fmt = img.format
        box = (target_size, target_size)
        if fit_mode == "cover":
            out = ImageOps.fit(img, box, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
        elif fit_mode == "contain":
            out = ImageOps.contain(img, box, method=Image.Resampling.LANCZOS)
        else:
            out = img.resize(box, Image.Resampling.LANCZOS)
        return self._encode(out, fmt)

    def rotate(self, data: bytes, angle: int) -> bytes:
        """Rotate clockwise by *angle* degrees, expanding the canvas."""
        img = self._open(data)
        fmt = img.format
        angle = angle % 360
        if angle == 0:
            return data
        if angle in _QUARTER_TURNS:
            out = img.transpose(_QUARTER_TURNS[angle])
        else:
            out = img.rotate(-angle, resample=Image.Resampling.BICUBIC, expand=True)
        return self._encode(out, fmt)

    def flip(self, data: bytes, axis: str) -> bytes:
        """Mirror left-right ("horizontal") or top-bottom ("vertical")."""
        if axis not in FLIP_AXES:
            raise ValueError(f"axis must be one of {FLIP_AXES}, got {axis!r}")
        img = self._open(data)
        fmt = img.format
        out = ImageOps.mirror(img) if axis == "horizontal" else ImageOps.flip(img)
        return self._encode(out, fmt)

    def encode_jpeg(self, data: bytes, quality: int = 75) -> bytes:
        img = self._open(data)
        return self._encode(img, "JPEG", quality=quality, progressive=True, optimize=True)

    def video_frame(self, path: str) -> bytes:
        """Return the first decodable frame of a video as PNG bytes."""
        cap = cv2.VideoCapture(path)
        if not cap.isOpened():
            raise ImageProcessingError(f"cannot open video: {path}")
        try:
            ok, frame = cap.read()
        finally:
            cap.release()
        if not ok or frame is None:
            raise ImageProcessingError(f"no decodable frame in video: {path}")
        return self._frame_to_png(frame)

    def _frame_to_png(self, frame: np.ndarray) -> bytes:
        # OpenCV frames are BGR
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        return self._encode(Image.fromarray(rgb), "PNG")


# ---------------------------------------------------------------------------
# Thumbnails
# ---------------------------------------------------------------------------


def thumbnail_key(path: str, size: int) -> str:
    return f"{path}_{size}"


class ThumbnailService:
    """Square cover-fit JPEG thumbnails as data URIs, cached per path and size."""

    def __init__(
        self,
        processor: ImageProcessor,
        cache: TimedCache[str],
        size: int = 300,
        quality: int = 75,
    ) -> None:
        self.processor = processor
        self.cache = cache
        self.size = size
        self.quality = quality

    def generate(
        self,
        path: str,
        size: int | None = None,
        video_extensions: Iterable[str] = DEFAULT_VIDEO_EXTENSIONS,
    ) -> str:
        size = size or self.size
        path = os.path.abspath(path)
        key = thumbnail_key(path, size)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        if extension_of(path) in normalize_extensions(video_extensions):
            source = self.processor.video_frame(path)
        else:
            source = Path(path).read_bytes()

        resized = self.processor.resize(source, size, "cover")
        jpeg = self.processor.encode_jpeg(resized, self.quality)
        uri = "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")

        self.cache.put(key, uri)
        logger.debug(
            "Thumbnail %s (%dpx, %d bytes)", os.path.basename(path), size, len(jpeg)
        )
        return uri
