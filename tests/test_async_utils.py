"""Tests for async_utils.py: RateLimiter, CircuitBreaker, gather_successes."""

import asyncio
import time

import pytest

from curalink_search.shared.async_utils import CircuitBreaker, LegOutcome, RateLimiter, gather_successes
from curalink_search.shared.exceptions import LocalStoreError, RateLimitError, SourceUnavailableError


# ============================================================
# RateLimiter
# ============================================================


class TestRateLimiter:
    async def test_acquire_fast(self):
        rl = RateLimiter(rate=10.0, per=1.0)
        start = time.monotonic()
        await rl.acquire()
        assert time.monotonic() - start < 0.1

    async def test_context_manager(self):
        rl = RateLimiter(rate=10.0)
        async with rl:
            pass

    async def test_waits_when_bucket_empty(self):
        rl = RateLimiter(rate=2.0, per=0.2)
        start = time.monotonic()
        for _ in range(3):
            await rl.acquire()
        # third token needs ~0.1s of refill
        assert time.monotonic() - start >= 0.05


# ============================================================
# CircuitBreaker
# ============================================================


class TestCircuitBreaker:
    async def test_starts_closed(self):
        cb = CircuitBreaker()
        assert cb.state == "closed"
        assert not cb.is_open

    async def test_opens_after_threshold(self):
        cb = CircuitBreaker(failure_threshold=2, recovery_timeout=60.0)
        for _ in range(2):
            with pytest.raises(ValueError):
                async with cb:
                    raise ValueError("boom")
        assert cb.state == "open"
        with pytest.raises(RateLimitError):
            async with cb:
                pass

    async def test_half_open_recovers(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0.01)
        with pytest.raises(ValueError):
            async with cb:
                raise ValueError("boom")
        await asyncio.sleep(0.02)
        async with cb:
            pass
        assert cb.state == "closed"

    async def test_cancellation_not_counted(self):
        cb = CircuitBreaker(failure_threshold=1)
        with pytest.raises(asyncio.CancelledError):
            async with cb:
                raise asyncio.CancelledError()
        assert cb.state == "closed"


# ============================================================
# gather_successes
# ============================================================


def _returns(value, delay=0.0):
    async def leg():
        if delay:
            await asyncio.sleep(delay)
        return value

    return leg


def _raises(error):
    async def leg():
        raise error

    return leg


class TestGatherSuccesses:
    async def test_all_succeed_in_input_order(self):
        outcomes = await gather_successes(
            [("slow", _returns(1, delay=0.05)), ("fast", _returns(2))],
        )
        assert [o.name for o in outcomes] == ["slow", "fast"]
        assert [o.value for o in outcomes] == [1, 2]
        assert all(o.ok for o in outcomes)

    async def test_failure_is_recorded_not_raised(self):
        outcomes = await gather_successes(
            [("a", _returns("ok")), ("b", _raises(SourceUnavailableError("B")))],
        )
        assert outcomes[0].ok
        assert not outcomes[1].ok
        assert isinstance(outcomes[1].error, SourceUnavailableError)

    async def test_timeout_per_leg(self):
        outcomes = await gather_successes(
            [("a", _returns("ok")), ("b", _returns("late", delay=1.0))],
            timeout=0.05,
        )
        assert outcomes[0].value == "ok"
        assert isinstance(outcomes[1].error, TimeoutError)

    async def test_fatal_error_propagates_and_cancels(self):
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(LocalStoreError):
            await gather_successes(
                [("slow", slow), ("store", _raises(LocalStoreError()))],
                is_fatal=lambda e: isinstance(e, LocalStoreError),
            )
        assert cancelled.is_set()

    async def test_empty(self):
        assert await gather_successes([]) == []

    def test_leg_outcome_ok(self):
        assert LegOutcome(name="x", value=1).ok
        assert not LegOutcome(name="x", error=ValueError()).ok
