"""Tests for the assembled-response cache."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from curalink_search.application.search.query import SearchKind
from curalink_search.infrastructure.cache.entity_cache import EntityCache
from curalink_search.infrastructure.cache.response_cache import (
    CACHE_TTLS,
    InMemoryCacheStore,
    ResponseCache,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ============================================================
# InMemoryCacheStore
# ============================================================


class TestInMemoryCacheStore:
    def test_set_get(self):
        store = InMemoryCacheStore()
        assert store.set("k", b"v", 60) is True
        assert store.get("k") == b"v"
        assert len(store) == 1

    def test_per_entry_ttl(self):
        clock = FakeClock()
        store = InMemoryCacheStore(timer=clock)
        store.set("short", b"1", 10)
        store.set("long", b"2", 100)
        clock.now += 50
        assert store.get("short") is None
        assert store.get("long") == b"2"

    def test_non_positive_ttl_not_stored(self):
        store = InMemoryCacheStore()
        assert store.set("k", b"v", 0) is False
        assert store.get("k") is None

    def test_capacity_bounded(self):
        clock = FakeClock()
        store = InMemoryCacheStore(max_entries=2, timer=clock)
        store.set("a", b"1", 10)
        store.set("b", b"2", 60)
        store.set("c", b"3", 60)
        assert len(store) == 2
        assert store.get("c") == b"3"


# ============================================================
# ResponseCache
# ============================================================


class TestResponseCache:
    def test_ttls(self):
        assert CACHE_TTLS[SearchKind.TRIALS] == 21600
        assert CACHE_TTLS[SearchKind.PUBLICATIONS] == 21600
        assert CACHE_TTLS[SearchKind.RESEARCHERS] == 3600

    def test_round_trip(self):
        cache = ResponseCache(InMemoryCacheStore())
        envelope = {"trials": [{"id": "NCT1"}], "cached": False}
        assert cache.set("key", SearchKind.TRIALS, envelope) is True
        assert cache.get("key") == envelope

    def test_miss(self):
        assert ResponseCache(InMemoryCacheStore()).get("missing") is None

    def test_uses_kind_ttl(self):
        store = MagicMock()
        store.set.return_value = True
        ResponseCache(store).set("key", SearchKind.RESEARCHERS, {})
        assert store.set.call_args.args[2] == 3600

    def test_get_failure_degrades_to_miss(self, caplog):
        store = MagicMock()
        store.get.side_effect = ConnectionError("down")
        assert ResponseCache(store).get("key") is None
        assert "cache read failed" in caplog.text

    def test_corrupt_entry_degrades_to_miss(self):
        store = InMemoryCacheStore()
        store.set("key", b"{not json", 60)
        assert ResponseCache(store).get("key") is None

    def test_set_failure_is_skipped(self):
        store = MagicMock()
        store.set.side_effect = ConnectionError("down")
        assert ResponseCache(store).set("key", SearchKind.TRIALS, {}) is False


# ============================================================
# EntityCache
# ============================================================


class TestEntityCache:
    async def test_get_or_fetch_caches(self):
        cache = EntityCache(max_size=10, ttl=60)
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            return ["1", "2"]

        assert await cache.get_or_fetch("Key", fetch) == ["1", "2"]
        assert await cache.get_or_fetch("key", fetch) == ["1", "2"]
        assert calls == 1
        assert len(cache) == 1
        assert cache.get(" KEY ") == ["1", "2"]

    async def test_fetch_errors_propagate_uncached(self):
        cache = EntityCache()

        async def fail():
            raise RuntimeError("upstream")

        with pytest.raises(RuntimeError):
            await cache.get_or_fetch("k", fail)
        assert len(cache) == 0

    async def test_none_not_cached(self):
        cache = EntityCache()

        async def fetch():
            return None

        assert await cache.get_or_fetch("k", fetch) is None
        assert len(cache) == 0
