"""
cache.py - insertion-ordered caches with TTL, capacity and periodic sweeping.

One abstraction serves every cache in the application:

    scan cache       root key  -> ScanResult     (TTL 60 s, cap from settings)
    thumbnail cache  "path_N"  -> data URI       (no TTL, cap 200)
    metadata cache   path      -> properties     (no TTL, cap 500)

Eviction is by insertion order, never by access recency.  Expiry is checked
lazily on get() and, independently, by the CacheSweeper thread.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

Clock = Callable[[], float]


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    timestamp: float


@dataclass(frozen=True)
class ScanResult:
    root_key: str
    paths: tuple[str, ...]   # enumeration order, not sorted
    captured_at: float

    def __contains__(self, path: object) -> bool:
        return path in self.paths


# ---------------------------------------------------------------------------
# TimedCache
# ---------------------------------------------------------------------------


class TimedCache(Generic[V]):
    """
    Thread-safe insertion-ordered mapping.

    Args:
        max_entries: capacity; a put() that overflows evicts the single
            oldest-inserted entry.
        ttl: seconds an entry stays readable through get().  None disables
            the read-time check.
        max_age: seconds after which sweep_expired() removes an entry.
            None disables the age sweep.
        sweep_batch: how many of the oldest entries trim() drops when the
            cache is above capacity at sweep time.
        clock: monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        name: str,
        *,
        max_entries: int = 100,
        ttl: float | None = None,
        max_age: float | None = None,
        sweep_batch: int = 0,
        clock: Clock = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.name = name
        self._max_entries = max_entries
        self.ttl = ttl
        self.max_age = max_age
        self.sweep_batch = sweep_batch
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @max_entries.setter
    def max_entries(self, value: int) -> None:
        if value <= 0:
            raise ValueError(f"max_entries must be positive, got {value}")
        with self._lock:
            self._max_entries = value

    def now(self) -> float:
        return self._clock()

    # ------------------------------------------------------------------
    # Mapping operations
    # ------------------------------------------------------------------

    def get(self, key: str) -> V | None:
        """Return the cached value, or None on a miss or an expired entry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self.ttl is not None and self._clock() - entry.timestamp >= self.ttl:
                del self._entries[key]
                logger.debug("%s cache: expired %s", self.name, key)
                return None
            return entry.value

    def put(self, key: str, value: V, timestamp: float | None = None) -> None:
        """Store *value*; a re-put counts as a fresh insertion."""
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                value=value,
                timestamp=self._clock() if timestamp is None else timestamp,
            )
            self.evict_oldest_if_over_limit()

    def pop(self, key: str) -> V | None:
        with self._lock:
            entry = self._entries.pop(key, None)
            return entry.value if entry is not None else None

    def remove_where(self, predicate: Callable[[str, V], bool]) -> list[str]:
        """Remove every entry for which predicate(key, value) holds."""
        with self._lock:
            doomed = [k for k, e in self._entries.items() if predicate(k, e.value)]
            for key in doomed:
                del self._entries[key]
            return doomed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        """Keys, oldest insertion first."""
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    # ------------------------------------------------------------------
    # Eviction and sweeping
    # ------------------------------------------------------------------

    def evict_oldest_if_over_limit(self) -> str | None:
        """Drop the single oldest-inserted entry when above capacity."""
        with self._lock:
            if len(self._entries) <= self._max_entries:
                return None
            key, _ = self._entries.popitem(last=False)
            logger.debug("%s cache: evicted oldest entry %s", self.name, key)
            return key

    def sweep_expired(self, now: float | None = None) -> int:
        """Remove entries older than max_age.  Returns the number removed."""
        if self.max_age is None:
            return 0
        with self._lock:
            now = self._clock() if now is None else now
            stale = [
                k for k, e in self._entries.items() if now - e.timestamp > self.max_age
            ]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def trim(self) -> int:
        """When above capacity, drop the sweep_batch oldest entries."""
        with self._lock:
            if self.sweep_batch <= 0 or len(self._entries) <= self._max_entries:
                return 0
            doomed = list(self._entries)[: self.sweep_batch]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def sweep(self, now: float | None = None) -> int:
        removed = self.sweep_expired(now) + self.trim()
        if removed:
            logger.debug("%s cache: swept %d entries", self.name, removed)
        return removed


# ---------------------------------------------------------------------------
# Periodic sweeper
# ---------------------------------------------------------------------------


class CacheSweeper:
    """
    Daemon thread that sweeps a set of caches every *interval* seconds.

    The sweep is a safety net for keys that are never read again; the
    per-get TTL check works without it.
    """

    def __init__(self, caches: list[TimedCache], interval: float = 60.0) -> None:
        self.caches = caches
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def sweep_once(self) -> int:
        return sum(cache.sweep() for cache in self.caches)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            removed = self.sweep_once()
            if removed:
                logger.info("Cache sweep removed %d entries", removed)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="mediadeck-cache-sweeper", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self) -> CacheSweeper:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
