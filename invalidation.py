"""
invalidation.py - drop cache entries made stale by a file mutation.

Called after every successful rename, move, delete, rotate or flip.  Nothing
is recomputed here; the next read misses and rebuilds.  Folder trees are not
cached and so are never touched.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from cache import ScanResult, TimedCache

logger = logging.getLogger(__name__)


class CacheInvalidator:
    def __init__(
        self,
        scan_cache: TimedCache[ScanResult],
        thumbnail_cache: TimedCache[str] | None = None,
        metadata_cache: TimedCache[dict[str, Any]] | None = None,
    ) -> None:
        self.scan_cache = scan_cache
        self.thumbnail_cache = thumbnail_cache
        self.metadata_cache = metadata_cache

    def invalidate(self, path: str) -> int:
        """Remove every entry that mentions *path*.  Returns the count removed.

        Cached entries are keyed on absolute paths, so *path* is made absolute
        before matching.
        """
        path = os.path.abspath(path)
        # Linear scan over entries; caches are small.
        removed = len(self.scan_cache.remove_where(lambda _key, result: path in result))

        if self.thumbnail_cache is not None:
            removed += len(
                self.thumbnail_cache.remove_where(lambda key, _uri: key.startswith(path))
            )

        if self.metadata_cache is not None and self.metadata_cache.pop(path) is not None:
            removed += 1

        if removed:
            logger.debug("Invalidated %d cache entries for %s", removed, path)
        return removed
