"""
browser.py - MediaBrowser: the command surface a gallery front end calls.

Owns the process-wide caches, the sweeper and the collaborators, and turns
every command into an OpResult.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from cache import CacheSweeper, Clock, ScanResult, TimedCache
from config import MediadeckConfig
from fileops import FileOperations, OpResult
from foldertree import FolderNode, FolderTreeBuilder
from imaging import ImageProcessingError, ImageProcessor, ThumbnailService
from invalidation import CacheInvalidator
from scanner import DirectoryScanner, cache_key_for
from settings import SettingsStore

logger = logging.getLogger(__name__)


class MediaBrowser:
    def __init__(
        self,
        cfg: MediadeckConfig,
        settings: SettingsStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.cfg = cfg
        self.settings = settings or SettingsStore(cfg.paths.settings_file)

        clock_kw = {"clock": clock} if clock is not None else {}
        self.scan_cache: TimedCache[ScanResult] = TimedCache(
            "scan",
            max_entries=self._scan_capacity(),
            ttl=cfg.cache.ttl_seconds,
            max_age=cfg.cache.max_age_seconds,
            **clock_kw,
        )
        self.thumbnail_cache: TimedCache[str] = TimedCache(
            "thumbnail",
            max_entries=cfg.thumbnails.max_entries,
            sweep_batch=cfg.thumbnails.sweep_batch,
            **clock_kw,
        )
        self.metadata_cache: TimedCache[dict[str, Any]] = TimedCache(
            "metadata",
            max_entries=cfg.metadata.max_entries,
            sweep_batch=cfg.metadata.sweep_batch,
            **clock_kw,
        )

        self.processor = ImageProcessor()
        self.scanner = DirectoryScanner(self.scan_cache, max_workers=cfg.scan.max_workers)
        self.tree_builder = FolderTreeBuilder(max_workers=cfg.scan.max_workers)
        self.invalidator = CacheInvalidator(
            self.scan_cache, self.thumbnail_cache, self.metadata_cache
        )
        self.files = FileOperations(self.invalidator, self.processor, self.metadata_cache)
        self.thumbnails = ThumbnailService(
            self.processor,
            self.thumbnail_cache,
            size=cfg.thumbnails.size,
            quality=cfg.thumbnails.quality,
        )
        self.sweeper = CacheSweeper(
            [self.scan_cache, self.thumbnail_cache, self.metadata_cache],
            interval=cfg.cache.sweep_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.sweeper.start()

    def close(self) -> None:
        self.sweeper.stop()

    def __enter__(self) -> MediaBrowser:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _scan_capacity(self) -> int:
        """maxCacheSize from settings, or the configured default when unusable."""
        raw = self.settings.get("maxCacheSize")
        if raw is None:
            return self.cfg.cache.max_entries
        try:
            value = int(raw)
        except (TypeError, ValueError):
            value = 0
        if value < 1:
            logger.warning(
                "Ignoring maxCacheSize %r, using %d", raw, self.cfg.cache.max_entries
            )
            return self.cfg.cache.max_entries
        return value

    # ------------------------------------------------------------------
    # Folder commands
    # ------------------------------------------------------------------

    def scan_files(self, root: str) -> OpResult:
        images, videos = self.settings.media_extensions()
        self.scan_cache.max_entries = self._scan_capacity()
        try:
            paths = self.scanner.scan(root, images + videos, cache_key_for(root))
        except ValueError as exc:
            logger.error("Scan of %s failed: %s", root, exc)
            return OpResult.fail(str(exc), path=root)
        return OpResult.ok(path=root, data=paths)

    def get_folder_tree(self, root: str) -> OpResult:
        images, videos = self.settings.media_extensions()
        tree = self.tree_builder.build(root, images, videos)
        return OpResult.ok(path=root, data=tree)

    def open_folder(self, root: str) -> OpResult:
        """Build the tree and scan the files concurrently."""
        root = os.path.abspath(root)
        if not os.path.isdir(root):
            return OpResult.fail(f"Not a directory: {root}", path=root)

        with ThreadPoolExecutor(max_workers=2) as pool:
            tree_future = pool.submit(self.get_folder_tree, root)
            scan_future = pool.submit(self.scan_files, root)
            tree_result = tree_future.result()
            scan_result = scan_future.result()

        if not scan_result.success:
            return scan_result
        try:
            self.settings.add_recent_folder(root)
        except OSError as exc:
            logger.warning("Cannot record recent folder %s: %s", root, exc)
        tree: FolderNode = tree_result.data
        return OpResult.ok(
            message=f"{len(scan_result.data)} media files",
            path=root,
            data={"tree": tree, "files": scan_result.data},
        )

    # ------------------------------------------------------------------
    # File commands
    # ------------------------------------------------------------------

    def rename_file(self, old_path: str, new_path: str) -> OpResult:
        return self.files.rename(old_path, new_path)

    def delete_file(self, path: str) -> OpResult:
        return self.files.delete(path)

    def move_file(self, source: str, target: str) -> OpResult:
        return self.files.move(source, target)

    def copy_file(self, path: str) -> OpResult:
        return self.files.copy(path)

    def cut_file(self, path: str) -> OpResult:
        return self.files.cut(path)

    def paste_file(self, target_dir: str) -> OpResult:
        return self.files.paste(target_dir)

    def batch_move(self, files: list[str], target_dir: str) -> list[OpResult]:
        return self.files.batch_move(files, target_dir)

    def batch_delete(self, files: list[str]) -> list[OpResult]:
        return self.files.batch_delete(files)

    def rotate_image(self, path: str, angle: int) -> OpResult:
        return self.files.rotate(path, angle)

    def flip_image(self, path: str, direction: str) -> OpResult:
        return self.files.flip(path, direction)

    def get_properties(self, path: str) -> OpResult:
        return self.files.get_properties(path)

    def generate_thumbnail(self, path: str, size: int | None = None) -> OpResult:
        _, videos = self.settings.media_extensions()
        try:
            uri = self.thumbnails.generate(path, size, video_extensions=videos)
        except (OSError, ValueError, ImageProcessingError) as exc:
            logger.error("Thumbnail failed for %s: %s", path, exc)
            return OpResult.fail(f"Failed to generate thumbnail: {exc}", path=path)
        return OpResult.ok(path=path, data=uri)

    # ------------------------------------------------------------------
    # Settings commands
    # ------------------------------------------------------------------

    def get_settings(self, key: str | None = None) -> OpResult:
        return OpResult.ok(data=self.settings.get(key) if key else self.settings.get_all())

    def set_setting(self, key: str, value: Any) -> OpResult:
        try:
            self.settings.set(key, value)
        except OSError as exc:
            logger.error("Cannot save setting %s: %s", key, exc)
            return OpResult.fail(str(exc))
        return OpResult.ok(data=self.settings.get(key))

    def reset_settings(self) -> OpResult:
        try:
            data = self.settings.reset()
        except OSError as exc:
            logger.error("Cannot reset settings: %s", exc)
            return OpResult.fail(str(exc))
        return OpResult.ok(message="Settings reset", data=data)
