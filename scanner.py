"""
scanner.py - DirectoryScanner: walk a root directory and list media files.

Subdirectories are listed level by level on a bounded thread pool.  The
returned order is the order in which listings complete; callers that need a
stable order must sort.
"""

from __future__ import annotations

import hashlib
import logging
import os
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from enum import Enum, auto
from typing import Iterable

from cache import ScanResult, TimedCache

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Supported file types
# ---------------------------------------------------------------------------


class MediaKind(Enum):
    IMAGE = auto()
    VIDEO = auto()
    OTHER = auto()


# Seed values for the settings store; never consulted during a scan.
DEFAULT_IMAGE_EXTENSIONS: tuple[str, ...] = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg", ".ico", ".tiff", ".tif",
)

DEFAULT_VIDEO_EXTENSIONS: tuple[str, ...] = (
    ".mp4", ".webm", ".ogg", ".mov", ".avi", ".mkv", ".flv", ".wmv",
)


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lowercase and dot-prefix every suffix ("JPG" -> ".jpg")."""
    result = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        result.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(result)


def extension_of(file_name: str) -> str:
    return os.path.splitext(file_name)[1].lower()


def classify(
    file_name: str,
    image_extensions: Iterable[str],
    video_extensions: Iterable[str],
) -> MediaKind:
    """Return the MediaKind for *file_name* by its final dotted suffix."""
    ext = extension_of(file_name)
    if not ext:
        return MediaKind.OTHER
    if ext in normalize_extensions(image_extensions):
        return MediaKind.IMAGE
    if ext in normalize_extensions(video_extensions):
        return MediaKind.VIDEO
    return MediaKind.OTHER


def cache_key_for(root: str) -> str:
    """Cache key for a scan root."""
    return hashlib.md5(os.path.abspath(root).encode("utf-8")).hexdigest()


def list_directory(directory: str) -> tuple[list[str], list[str]]:
    """
    Return (files, subdirectories) directly inside *directory*.

    Symlinks are not followed.  Raises OSError when the directory cannot be
    read.
    """
    files: list[str] = []
    subdirs: list[str] = []
    with os.scandir(directory) as it:
        for entry in it:
            if entry.is_dir(follow_symlinks=False):
                subdirs.append(entry.path)
            elif entry.is_file(follow_symlinks=False):
                files.append(entry.path)
    return files, subdirs


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


class DirectoryScanner:
    """Recursively lists files under a root whose suffix is in a given set."""

    def __init__(
        self,
        cache: TimedCache[ScanResult] | None = None,
        max_workers: int = 8,
    ) -> None:
        self.cache = cache
        self.max_workers = max_workers

    def scan(
        self,
        root: str,
        extensions: Iterable[str],
        cache_key: str | None = None,
    ) -> list[str]:
        wanted = normalize_extensions(extensions)
        if not wanted:
            raise ValueError("extensions must contain at least one suffix")

        if cache_key and self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Scan cache hit for %s (%d files)", root, len(cached.paths))
                return list(cached.paths)

        root = os.path.abspath(root)
        paths = self._walk(root, wanted)
        logger.info("Scan complete: %d media files under %s", len(paths), root)

        if cache_key and self.cache is not None:
            result = ScanResult(
                root_key=cache_key,
                paths=tuple(paths),
                captured_at=self.cache.now(),
            )
            self.cache.put(cache_key, result, timestamp=result.captured_at)
        return paths

    def _list_matching(
        self, directory: str, wanted: frozenset[str]
    ) -> tuple[list[str], list[str]]:
        try:
            files, subdirs = list_directory(directory)
        except OSError as exc:
            logger.warning("Cannot read directory %s: %s", directory, exc)
            return [], []
        return [f for f in files if extension_of(f) in wanted], subdirs

    def _walk(self, root: str, wanted: frozenset[str]) -> list[str]:
        results: list[str] = []

        # A listing is submitted as soon as its parent finishes, so a slow
        # directory only holds back its own subtree.
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            pending = {pool.submit(self._list_matching, root, wanted)}
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    files, subdirs = future.result()
                    results.extend(files)
                    pending.update(
                        pool.submit(self._list_matching, d, wanted) for d in subdirs
                    )

        return results
