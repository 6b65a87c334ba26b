"""
Upstream Response Cache

In-process TTL cache for raw upstream responses (e.g. PubMed esearch/efetch
bodies), so repeated searches for the same term within the TTL do not hit
the provider again even when the assembled-response key differs (other
page, other location filter).

Uses cachetools.TTLCache for LRU eviction and TTL expiration.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from cachetools import TTLCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityCache:
    """
    Keyed TTL cache with a cache-aside helper.

    Example:
        cache = EntityCache(max_size=500, ttl=21600)
        body = await cache.get_or_fetch(
            "esearch:diabetes:20",
            lambda: client.esearch("diabetes", 20),
        )
    """

    def __init__(self, max_size: int = 1000, ttl: float = 3600.0):
        """
        Args:
            max_size: Maximum number of entries
            ttl: Time-to-live in seconds
        """
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)

    @staticmethod
    def _normalize_key(key: str) -> str:
        return key.lower().strip()

    def get(self, key: str) -> Any | None:
        """Cached value or None if missing/expired."""
        return self._cache.get(self._normalize_key(key))

    def set(self, key: str, value: Any) -> None:
        self._cache[self._normalize_key(key)] = value

    async def get_or_fetch(self, key: str, fetch_func: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value or fetch, cache and return it.

        Fetch errors propagate and nothing is cached. Concurrent misses for
        one key may both fetch.
        """
        value = self.get(key)
        if value is not None:
            logger.debug(f"Upstream cache hit: {key}")
            return value

        value = await fetch_func()
        if value is not None:
            self.set(key, value)
        return value

    def __len__(self) -> int:
        return len(self._cache)
