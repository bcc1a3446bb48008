"""
foldertree.py - FolderTreeBuilder: sidebar tree with per-folder media counts.

Each node carries direct and cumulative image/video counts.  Folders whose
whole subtree holds no media are pruned; the root is always kept.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from scanner import MediaKind, classify, list_directory, normalize_extensions

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# FolderNode
# ---------------------------------------------------------------------------


@dataclass
class FolderNode:
    name: str
    path: str
    children: list[FolderNode] = field(default_factory=list)
    direct_image_count: int = 0
    direct_video_count: int = 0
    total_image_count: int = 0
    total_video_count: int = 0

    @property
    def total_count(self) -> int:
        return self.total_image_count + self.total_video_count

    def walk(self) -> Iterator[FolderNode]:
        """Yield this node and every retained descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, path: str) -> FolderNode | None:
        for node in self.walk():
            if node.path == path:
                return node
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "imageCount": self.direct_image_count,
            "videoCount": self.direct_video_count,
            "totalImageCount": self.total_image_count,
            "totalVideoCount": self.total_video_count,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass
class _Listing:
    images: int = 0
    videos: int = 0
    subdirs: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class FolderTreeBuilder:
    def __init__(self, max_workers: int = 8) -> None:
        self.max_workers = max_workers

    def build(
        self,
        root: str,
        image_extensions: Iterable[str],
        video_extensions: Iterable[str],
    ) -> FolderNode:
        root = os.path.abspath(root)
        images = normalize_extensions(image_extensions)
        videos = normalize_extensions(video_extensions)

        listings = self._collect(root, images, videos)
        tree = self._assemble(root, listings)
        logger.info(
            "Folder tree for %s: %d images, %d videos, %d folders",
            root,
            tree.total_image_count,
            tree.total_video_count,
            sum(1 for _ in tree.walk()),
        )
        return tree

    def _list(
        self, directory: str, images: frozenset[str], videos: frozenset[str]
    ) -> tuple[str, _Listing]:
        listing = _Listing()
        try:
            files, subdirs = list_directory(directory)
        except OSError as exc:
            logger.warning("Cannot read directory %s: %s", directory, exc)
            return directory, listing

        for path in files:
            kind = classify(os.path.basename(path), images, videos)
            if kind is MediaKind.IMAGE:
                listing.images += 1
            elif kind is MediaKind.VIDEO:
                listing.videos += 1
        listing.subdirs = subdirs
        return directory, listing

    def _collect(
        self, root: str, images: frozenset[str], videos: frozenset[str]
    ) -> dict[str, _Listing]:
        """List every directory under *root* concurrently."""
        listings: dict[str, _Listing] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            pending = {pool.submit(self._list, root, images, videos)}
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    directory, listing = future.result()
                    listings[directory] = listing
                    pending.update(
                        pool.submit(self._list, d, images, videos)
                        for d in listing.subdirs
                    )
        return listings

    def _assemble(self, path: str, listings: dict[str, _Listing]) -> FolderNode:
        # Post-order: a child's totals are needed before deciding to keep it.
        listing = listings.get(path, _Listing())
        node = FolderNode(
            name=os.path.basename(path) or path,
            path=path,
            direct_image_count=listing.images,
            direct_video_count=listing.videos,
        )
        for subdir in listing.subdirs:
            child = self._assemble(subdir, listings)
            if child.total_count > 0:
                node.children.append(child)

        node.total_image_count = node.direct_image_count + sum(
            c.total_image_count for c in node.children
        )
        node.total_video_count = node.direct_video_count + sum(
            c.total_video_count for c in node.children
        )
        return node
