"""
Response Cache - cache-aside storage of fully assembled search responses.

The cache holds the final envelope (JSON bytes), never per-source results.
Entries are not invalidated when the local store changes: a newly added
internal record shows up once the entry for its query expires.

TTLs:
    trials, publications  6 hours
    researchers           1 hour

Store failures never fail a request. They are wrapped as
CacheUnavailableError, logged, and degrade to a miss (get) or a skipped
write (set).
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Protocol

from cachetools import TLRUCache

from curalink_search.application.search.query import SearchKind
from curalink_search.shared.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)

CACHE_TTLS: dict[SearchKind, int] = {
    SearchKind.TRIALS: 21600,
    SearchKind.PUBLICATIONS: 21600,
    SearchKind.RESEARCHERS: 3600,
}


class CacheStore(Protocol):
    """Key-value store for assembled responses."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes, ttl_seconds: int) -> bool: ...


def _entry_expiry(key: str, entry: tuple[bytes, int], now: float) -> float:
    return now + entry[1]


class InMemoryCacheStore:
    """
    Process-local CacheStore with a TTL per entry.

    Backed by cachetools.TLRUCache; each value is stored with its own TTL.
    Expired entries are dropped first; the cache never holds more than
    ``max_entries``.
    """

    def __init__(self, max_entries: int = 2048, timer: Any = time.monotonic) -> None:
        self._cache: TLRUCache[str, tuple[bytes, int]] = TLRUCache(
            maxsize=max_entries, ttu=_entry_expiry, timer=timer
        )

    def get(self, key: str) -> bytes | None:
        entry = self._cache.get(key)
        return entry[0] if entry is not None else None

    def set(self, key: str, value: bytes, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return False
        self._cache[key] = (value, ttl_seconds)
        return True

    def __len__(self) -> int:
        return len(self._cache)


class ResponseCache:
    """Cache-aside helper over a CacheStore."""

    def __init__(self, store: CacheStore, ttls: dict[SearchKind, int] | None = None) -> None:
        self._store = store
        self._ttls = ttls or CACHE_TTLS

    def ttl_for(self, kind: SearchKind) -> int:
        return self._ttls[kind]

    def get(self, key: str) -> dict[str, Any] | None:
        """Stored envelope for ``key``, or None on miss or store failure."""
        try:
            raw = self._store.get(key)
            if raw is None:
                return None
            envelope = json.loads(raw)
        except Exception as e:
            error = CacheUnavailableError(f"cache read failed: {e!r}", operation="get")
            logger.warning(f"{error} (key={key}), treating as miss")
            return None
        logger.debug(f"Response cache hit: {key}")
        return envelope

    def set(self, key: str, kind: SearchKind, envelope: dict[str, Any]) -> bool:
        """Store ``envelope`` with the TTL for ``kind``; False when skipped."""
        try:
            payload = json.dumps(envelope, separators=(",", ":")).encode("utf-8")
            stored = self._store.set(key, payload, self.ttl_for(kind))
        except Exception as e:
            error = CacheUnavailableError(f"cache write failed: {e!r}", operation="set")
            logger.warning(f"{error} (key={key}), response not cached")
            return False
        return bool(stored)
