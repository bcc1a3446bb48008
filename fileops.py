"""
fileops.py - FileOperations: user-triggered mutations on media files.

Every operation returns an OpResult instead of raising.  A successful
mutation invalidates the affected cache entries before returning.

Rewrite safety (rotate / flip):
    1. read the original bytes
    2. transform in memory
    3. write to a temporary sibling file
    4. os.replace over the original only after steps 1-3 succeed
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Any, Callable

from cache import TimedCache
from imaging import ImageProcessingError, ImageProcessor
from invalidation import CacheInvalidator
from scanner import extension_of

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class OpResult:
    success: bool
    message: str | None = None
    error: str | None = None
    path: str | None = None
    data: Any = None

    @classmethod
    def ok(cls, message: str | None = None, path: str | None = None, data: Any = None) -> OpResult:
        return cls(success=True, message=message, path=path, data=data)

    @classmethod
    def fail(cls, error: str, path: str | None = None) -> OpResult:
        return cls(success=False, error=error, path=path)


class ClipboardMode(Enum):
    COPY = auto()
    CUT = auto()


@dataclass
class Clipboard:
    """In-process clipboard; the OS clipboard is not used."""

    path: str | None = None
    mode: ClipboardMode | None = None

    def hold(self, path: str, mode: ClipboardMode) -> None:
        self.path = path
        self.mode = mode

    def clear(self) -> None:
        self.path = None
        self.mode = None

    @property
    def empty(self) -> bool:
        return self.path is None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_bytes(size: int, decimals: int = 2) -> str:
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, max(decimals, 0)):g} {units[i]}"


def _unique_path(path: Path) -> Path:
    """Return a path that does not yet exist by appending _1, _2, ..."""
    if not path.exists():
        return path
    stem = path.stem
    suffix = path.suffix
    parent = path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}_{counter}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1


# ---------------------------------------------------------------------------
# FileOperations
# ---------------------------------------------------------------------------


class FileOperations:
    def __init__(
        self,
        invalidator: CacheInvalidator,
        processor: ImageProcessor,
        metadata_cache: TimedCache[dict[str, Any]],
        clipboard: Clipboard | None = None,
    ) -> None:
        self.invalidator = invalidator
        self.processor = processor
        self.metadata_cache = metadata_cache
        self.clipboard = clipboard or Clipboard()

    # ------------------------------------------------------------------
    # Rename / move / delete
    # ------------------------------------------------------------------

    def rename(self, old_path: str, new_path: str) -> OpResult:
        try:
            if os.path.exists(new_path):
                raise FileExistsError(f"Target already exists: {new_path}")
            os.rename(old_path, new_path)
        except OSError as exc:
            logger.error("Rename failed for %s: %s", old_path, exc)
            return OpResult.fail(str(exc), path=old_path)
        self.invalidator.invalidate(old_path)
        logger.info("Renamed %s -> %s", old_path, new_path)
        return OpResult.ok(path=new_path)

    def delete(self, path: str) -> OpResult:
        try:
            Path(path).unlink()
        except OSError as exc:
            logger.error("Delete failed for %s: %s", path, exc)
            return OpResult.fail(str(exc), path=path)
        self.invalidator.invalidate(path)
        logger.info("Deleted %s", path)
        return OpResult.ok(path=path)

    def move(self, source: str, target: str) -> OpResult:
        """Move *source* to *target*; a directory target keeps the file name."""
        dest = Path(target)
        if dest.is_dir():
            dest = dest / Path(source).name
        try:
            if dest.exists():
                raise FileExistsError(f"Target already exists: {dest}")
            shutil.move(source, str(dest))
        except OSError as exc:
            logger.error("Move failed for %s: %s", source, exc)
            return OpResult.fail(str(exc), path=source)
        self.invalidator.invalidate(source)
        logger.info("Moved %s -> %s", source, dest)
        return OpResult.ok(message="File moved", path=str(dest))

    def batch_move(self, files: list[str], target_dir: str) -> list[OpResult]:
        return [self.move(f, str(Path(target_dir) / Path(f).name)) for f in files]

    def batch_delete(self, files: list[str]) -> list[OpResult]:
        return [self.delete(f) for f in files]

    # ------------------------------------------------------------------
    # Clipboard
    # ------------------------------------------------------------------

    def copy(self, path: str) -> OpResult:
        if not os.path.isfile(path):
            return OpResult.fail(f"No such file: {path}", path=path)
        self.clipboard.hold(path, ClipboardMode.COPY)
        return OpResult.ok(message="File copied to clipboard", path=path)

    def cut(self, path: str) -> OpResult:
        if not os.path.isfile(path):
            return OpResult.fail(f"No such file: {path}", path=path)
        self.clipboard.hold(path, ClipboardMode.CUT)
        return OpResult.ok(message="File cut to clipboard", path=path)

    def paste(self, target_dir: str) -> OpResult:
        if self.clipboard.empty:
            return OpResult.fail("No file to paste")
        source = self.clipboard.path

        if self.clipboard.mode is ClipboardMode.CUT:
            dest = Path(target_dir) / Path(source).name
            if os.path.abspath(dest) == os.path.abspath(source):
                # Cut and pasted into its own folder: nothing moves.
                self.clipboard.clear()
                return OpResult.ok(message="File moved", path=source)
            result = self.move(source, str(dest))
            if result.success:
                self.clipboard.clear()
            return result

        dest = _unique_path(Path(target_dir) / Path(source).name)
        try:
            shutil.copy2(source, str(dest))
        except OSError as exc:
            logger.error("Paste failed for %s: %s", source, exc)
            return OpResult.fail(str(exc), path=source)
        logger.info("Copied %s -> %s", source, dest)
        return OpResult.ok(message="File copied", path=str(dest))

    # ------------------------------------------------------------------
    # Image rewrites
    # ------------------------------------------------------------------

    def _rewrite(self, path: str, transform: Callable[[bytes], bytes], what: str) -> OpResult:
        target = Path(path)
        tmp_name: str | None = None
        try:
            data = target.read_bytes()
            new_data = transform(data)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
            )
            with os.fdopen(fd, "wb") as fh:
                fh.write(new_data)
            shutil.copymode(path, tmp_name)
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, ValueError, ImageProcessingError) as exc:
            logger.error("%s failed for %s: %s", what.capitalize(), path, exc)
            return OpResult.fail(str(exc), path=path)
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        self.invalidator.invalidate(path)
        logger.info("%s %s", what.capitalize(), path)
        return OpResult.ok(path=path)

    def rotate(self, path: str, angle: int) -> OpResult:
        return self._rewrite(path, lambda data: self.processor.rotate(data, angle), "rotate")

    def flip(self, path: str, direction: str) -> OpResult:
        return self._rewrite(path, lambda data: self.processor.flip(data, direction), "flip")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def get_properties(self, path: str) -> OpResult:
        key = os.path.abspath(path)
        cached = self.metadata_cache.get(key)
        if cached is not None:
            return OpResult.ok(path=path, data=dict(cached))
        try:
            st = os.stat(path)
        except OSError as exc:
            logger.error("Cannot stat %s: %s", path, exc)
            return OpResult.fail(str(exc), path=path)

        properties = {
            "name": os.path.basename(path),
            "path": key,
            "size": st.st_size,
            "sizeFormatted": format_bytes(st.st_size),
            "created": datetime.fromtimestamp(
                getattr(st, "st_birthtime", st.st_ctime)
            ).isoformat(timespec="seconds"),
            "modified": datetime.fromtimestamp(st.st_mtime).isoformat(timespec="seconds"),
            "isDirectory": os.path.isdir(path),
            "extension": extension_of(path),
        }
        self.metadata_cache.put(key, properties)
        return OpResult.ok(path=path, data=dict(properties))
