"""Caches: assembled response cache and upstream entity cache."""

from .entity_cache import EntityCache
from .response_cache import CACHE_TTLS, CacheStore, InMemoryCacheStore, ResponseCache

__all__ = [
    "CACHE_TTLS",
    "CacheStore",
    "EntityCache",
    "InMemoryCacheStore",
    "ResponseCache",
]
