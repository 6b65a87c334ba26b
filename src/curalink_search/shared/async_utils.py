"""
Async Utilities for Federated API Calls.

Provides:
- Rate limiting with token bucket
- Circuit breaker for fault tolerance
- Best-effort parallel execution that keeps only successful legs
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .exceptions import RateLimitError

T = TypeVar("T")

logger = logging.getLogger(__name__)


# =============================================================================
# Rate Limiter (Token Bucket Algorithm)
# =============================================================================


@dataclass
class RateLimiter:
    """
    Token bucket rate limiter for API calls.

    Provider limits:
    - SerpAPI: 1 request/second
    - ORCID: 24 requests/second
    - arXiv: 1 request every 3 seconds
    - NCBI without API key: 3 requests/second

    Example:
        limiter = RateLimiter(rate=1, per=3.0)
        async with limiter:
            await make_api_call()
    """

    rate: float = 3.0  # requests per period
    per: float = 1.0  # period in seconds
    _tokens: float = field(init=False)
    _last_update: float = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        self._tokens = self.rate
        self._last_update = time.monotonic()

    async def acquire(self) -> None:
        """Acquire a token, waiting if necessary."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_update
            self._tokens = min(self.rate, self._tokens + elapsed * (self.rate / self.per))
            self._last_update = now

            if self._tokens < 1:
                wait_time = (1 - self._tokens) * (self.per / self.rate)
                logger.debug(f"Rate limit: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
                self._tokens = 0
                self._last_update = time.monotonic()
            else:
                self._tokens -= 1

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


# =============================================================================
# Circuit Breaker Pattern
# =============================================================================


@dataclass
class CircuitBreaker:
    """
    Circuit breaker for fault tolerance.

    States:
    - CLOSED: Normal operation
    - OPEN: Failing, reject requests immediately
    - HALF_OPEN: Testing if service recovered

    Example:
        breaker = CircuitBreaker(failure_threshold=5)

        async with breaker:
            result = await risky_api_call()
    """

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3

    _failure_count: int = field(init=False, default=0)
    _last_failure_time: float | None = field(init=False, default=None)
    _state: str = field(init=False, default="closed")
    _half_open_calls: int = field(init=False, default=0)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (rejecting requests)."""
        if self._state == "open":
            if self._last_failure_time:
                if time.monotonic() - self._last_failure_time > self.recovery_timeout:
                    return False  # Move to half-open
            return True
        return False

    async def __aenter__(self) -> CircuitBreaker:
        async with self._lock:
            if self.is_open:
                raise RateLimitError("Circuit breaker is open", retry_after=self.recovery_timeout)

            if self._state == "open":
                self._state = "half_open"
                self._half_open_calls = 0

            if self._state == "half_open":
                if self._half_open_calls >= self.half_open_max_calls:
                    raise RateLimitError(
                        "Circuit breaker is half-open (max calls reached)",
                        retry_after=self.recovery_timeout / 2,
                    )
                self._half_open_calls += 1

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        async with self._lock:
            if exc_val is not None and not isinstance(exc_val, asyncio.CancelledError):
                self._failure_count += 1
                self._last_failure_time = time.monotonic()

                if self._failure_count >= self.failure_threshold:
                    self._state = "open"
                    logger.warning(f"Circuit breaker opened after {self._failure_count} failures")
            elif exc_val is None:
                if self._state == "half_open":
                    self._state = "closed"
                    self._failure_count = 0
                    logger.info("Circuit breaker closed (recovered)")
                elif self._state == "closed":
                    self._failure_count = max(0, self._failure_count - 1)


# =============================================================================
# Best-effort fan-out
# =============================================================================


@dataclass
class LegOutcome(Generic[T]):
    """Result of one leg of a fan-out: either a value or the error that voided it."""

    name: str
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_successes(
    legs: Sequence[tuple[str, Callable[[], Awaitable[T]]]],
    *,
    timeout: float | None = None,
    is_fatal: Callable[[BaseException], bool] | None = None,
) -> list[LegOutcome[T]]:
    """
    Run every leg concurrently and settle all of them.

    A leg that raises or exceeds ``timeout`` is recorded as failed and never
    fails the batch. Outcomes are returned in the order the legs were given,
    regardless of completion order.

    Errors for which ``is_fatal`` returns True abort the batch: the remaining
    legs are cancelled through the TaskGroup and the error is re-raised as is.

    Args:
        legs: (name, coroutine factory) pairs
        timeout: Per-leg timeout in seconds
        is_fatal: Predicate selecting errors that must abort the batch

    Returns:
        One LegOutcome per leg
    """
    outcomes: list[LegOutcome[T]] = [LegOutcome(name=name) for name, _ in legs]

    async def run_leg(index: int, factory: Callable[[], Awaitable[T]]) -> None:
        outcome = outcomes[index]
        try:
            async with asyncio.timeout(timeout):
                outcome.value = await factory()
        except TimeoutError as e:
            outcome.error = e
        except Exception as e:
            outcome.error = e
            if is_fatal is not None and is_fatal(e):
                raise

    try:
        async with asyncio.TaskGroup() as tg:
            for i, (_, factory) in enumerate(legs):
                tg.create_task(run_leg(i, factory))
    except ExceptionGroup as eg:
        raise eg.exceptions[0]

    return outcomes
