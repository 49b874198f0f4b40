"""In-memory expiring caches for persisted-record lookups.

Two caches are kept per process: a light existence-only cache and a
heavier full-payload cache with a smaller bound. Entries older than the
time-to-live are treated as absent. Eviction is lazy: every SWEEP_EVERY
insertions the cache checks its bound and, when over it, drops all
expired entries. There is no background eviction thread.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Any

DEFAULT_TTL_SECONDS = 5 * 60
EXISTENCE_CACHE_MAX_ENTRIES = 1000
PAYLOAD_CACHE_MAX_ENTRIES = 200
SWEEP_EVERY = 100


@dataclass
class CacheEntry:
    """A cached value and the clock reading at which it was stored."""

    key: Hashable
    value: Any
    inserted_at: float


class ExpiringCache:
    """Bounded key/value cache with per-entry time-to-live.

    Args:
        max_entries: Size above which a lazy sweep evicts expired entries.
        ttl_seconds: Entry lifetime (default 5 minutes).
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        max_entries: int,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at >= self.ttl_seconds

    def get(self, key: Hashable) -> CacheEntry | None:
        """Return the live entry for key, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                return None
            return entry

    def put(self, key: Hashable, value: Any) -> CacheEntry:
        """Store value under key, stamped with the current clock reading."""
        with self._lock:
            entry = CacheEntry(key=key, value=value, inserted_at=self._clock())
            self._entries[key] = entry
            if len(self._entries) % SWEEP_EVERY == 0:
                self._sweep_if_oversized()
            return entry

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self) -> int:
        """Evict every expired entry regardless of size. Returns count evicted."""
        with self._lock:
            return self._evict_expired()

    def _sweep_if_oversized(self) -> None:
        if len(self._entries) > self.max_entries:
            self._evict_expired()

    def _evict_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)


@dataclass
class RecordCaches:
    """The process-wide caches, built once at startup and injected."""

    existence: ExpiringCache = field(
        default_factory=lambda: ExpiringCache(EXISTENCE_CACHE_MAX_ENTRIES)
    )
    payloads: ExpiringCache = field(
        default_factory=lambda: ExpiringCache(PAYLOAD_CACHE_MAX_ENTRIES)
    )
