from __future__ import annotations

from pathlib import Path

from cache import ScanResult
from cache import TimedCache
from imaging import thumbnail_key
from invalidation import CacheInvalidator
from scanner import DirectoryScanner
from scanner import cache_key_for


def _caches():
    return (
        TimedCache("scan", ttl=60),
        TimedCache("thumbnail", max_entries=200),
        TimedCache("metadata", max_entries=500),
    )


def test_invalidate_removes_scan_entries_containing_path() -> None:
    scans, thumbs, meta = _caches()
    scans.put("one", ScanResult("one", ("/m/a.jpg", "/m/b.jpg"), 0.0))
    scans.put("two", ScanResult("two", ("/n/c.jpg",), 0.0))

    removed = CacheInvalidator(scans, thumbs, meta).invalidate("/m/a.jpg")

    assert removed == 1
    assert scans.keys() == ["two"]


def test_invalidate_removes_derived_entries() -> None:
    scans, thumbs, meta = _caches()
    thumbs.put(thumbnail_key("/m/a.jpg", 300), "uri-300")
    thumbs.put(thumbnail_key("/m/a.jpg", 120), "uri-120")
    thumbs.put(thumbnail_key("/m/other.jpg", 300), "uri")
    meta.put("/m/a.jpg", {"size": 1})
    meta.put("/m/other.jpg", {"size": 2})

    removed = CacheInvalidator(scans, thumbs, meta).invalidate("/m/a.jpg")

    assert removed == 3
    assert thumbs.keys() == [thumbnail_key("/m/other.jpg", 300)]
    assert meta.keys() == ["/m/other.jpg"]


def test_invalidate_unknown_path_is_a_no_op() -> None:
    scans, thumbs, meta = _caches()
    scans.put("one", ScanResult("one", ("/m/a.jpg",), 0.0))

    assert CacheInvalidator(scans, thumbs, meta).invalidate("/m/zzz.jpg") == 0
    assert len(scans) == 1


def test_invalidate_without_derived_caches() -> None:
    scans = TimedCache("scan")
    scans.put("one", ScanResult("one", ("/m/a.jpg",), 0.0))

    assert CacheInvalidator(scans).invalidate("/m/a.jpg") == 1


def test_delete_then_invalidate_then_rescan(media_root: Path) -> None:
    scans, thumbs, meta = _caches()
    scanner = DirectoryScanner(scans)
    key = cache_key_for(str(media_root))
    target = str(media_root / "a.jpg")

    assert target in scanner.scan(str(media_root), [".jpg", ".mp4"], key)

    Path(target).unlink()
    CacheInvalidator(scans, thumbs, meta).invalidate(target)

    assert key not in scans
    assert target not in scanner.scan(str(media_root), [".jpg", ".mp4"], key)
