"""
Source adapter contract and the shared HTTP client base.

SourceAdapter is what the fan-out orchestrator drives: a source name, the
search kinds it answers, a per-call timeout and ``fetch(query)``. External
adapters signal failure with SourceUnavailableError; the orchestrator turns
that into an empty contribution.

BaseAPIClient gives HTTP adapters one request path with:
- token-bucket rate limiting per provider
- retry on 429 honouring Retry-After
- retry on transport errors with exponential backoff
- a circuit breaker
- every failure raised as SourceUnavailableError
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx
from typing_extensions import Self

from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.domain.entities.records import CanonicalRecord, SourceName
from curalink_search.shared.async_utils import CircuitBreaker, RateLimiter
from curalink_search.shared.exceptions import (
    ErrorContext,
    RateLimitError,
    SourceUnavailableError,
    get_retry_delay,
)

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_TIMEOUT = 8.0


class SourceAdapter(ABC):
    """
    Uniform fetch contract for one provider (or the local store).

    Subclasses set ``source_name`` and ``kinds``; ``critical`` adapters are
    the pipeline's own dependencies and their errors are not swallowed.
    """

    source_name: ClassVar[SourceName]
    kinds: ClassVar[frozenset[SearchKind]]
    critical: ClassVar[bool] = False
    timeout: float = DEFAULT_SOURCE_TIMEOUT

    @property
    def name(self) -> str:
        return self.source_name.value

    def serves(self, kind: SearchKind) -> bool:
        return kind in self.kinds

    def select(self, source: SourceName) -> SourceAdapter | None:
        """The adapter answering for ``source``, or None when this one does not."""
        return self if source is self.source_name else None

    @abstractmethod
    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        """Fetch canonical records for the query."""

    async def close(self) -> None:
        """Release connections. Default: nothing to release."""


class BaseAPIClient:
    """
    Base class for HTTP source adapters.

    Subclasses set ``_service_name`` and may override:
    - ``_handle_expected_status()``: short-circuit service specific codes (e.g. 404)
    - ``_parse_response()``: custom body extraction

    Example:
        class MyAdapter(BaseAPIClient, SourceAdapter):
            _service_name = "MyAPI"

            def __init__(self):
                super().__init__(base_url="https://api.example.com")

            async def fetch(self, query):
                data = await self._make_request("/items", params={"q": query.condition})
                ...
    """

    _service_name: str = "API"
    _MAX_RETRIES: int = 2

    def __init__(
        self,
        base_url: str = "",
        timeout: float = DEFAULT_SOURCE_TIMEOUT,
        rate_limiter: RateLimiter | None = None,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (optional, can pass full URLs)
            timeout: Per-call budget in seconds (also the httpx timeout)
            rate_limiter: Provider token bucket; None disables limiting
            headers: Default headers for all requests
            circuit_breaker: Optional breaker. If None, a default one is
                             created (threshold=10, recovery=60s).
            transport: Custom httpx transport (tests pass httpx.MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._rate_limiter = rate_limiter
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers=headers or {},
            transport=transport,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=10, recovery_timeout=60.0)

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    def _unavailable(self, message: str, url: str) -> SourceUnavailableError:
        return SourceUnavailableError(
            self._service_name,
            message,
            context=ErrorContext(operation="request", input_value=url),
        )

    async def _make_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        method: str = "GET",
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """
        Make an HTTP request with retries and circuit breaker protection.

        Args:
            url: Full URL or path (appended to base_url)
            params: Query string parameters
            method: HTTP method (GET or POST)
            data: JSON body for POST requests
            headers: Additional headers for this request
            expect_json: If True, parse response as JSON; otherwise return text

        Returns:
            Parsed JSON, response text, or whatever _handle_expected_status returned

        Raises:
            SourceUnavailableError: The request failed after retries
        """
        full_url = self._build_url(url)

        for attempt in range(self._MAX_RETRIES + 1):
            if self._rate_limiter is not None:
                await self._rate_limiter.acquire()
            try:
                async with self._circuit_breaker:
                    response = await self._execute_request(
                        full_url, params=params, method=method, data=data, headers=headers
                    )

                    expected = self._handle_expected_status(response, full_url)
                    if expected is not _CONTINUE:
                        return expected

                    if response.status_code == 429:
                        if attempt < self._MAX_RETRIES:
                            retry_after = self._get_retry_after(response, attempt)
                            logger.warning(
                                f"{self._service_name}: Rate limited (429), "
                                f"retry {attempt + 1}/{self._MAX_RETRIES} in {retry_after:.1f}s"
                            )
                            await asyncio.sleep(retry_after)
                            continue
                        raise self._unavailable("rate limit exceeded after retries", full_url)

                    response.raise_for_status()
                    return self._parse_response(response, expect_json)

            except httpx.HTTPStatusError as e:
                raise self._unavailable(
                    f"HTTP {e.response.status_code} {e.response.reason_phrase}", full_url
                ) from e
            except httpx.RequestError as e:
                if attempt < self._MAX_RETRIES:
                    delay = get_retry_delay(e, attempt)
                    logger.warning(
                        f"{self._service_name} request error (attempt {attempt + 1}): {e!r}, retry in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise self._unavailable(f"request failed: {e!r}", full_url) from e
            except RateLimitError as e:
                raise self._unavailable("circuit breaker open", full_url) from e
            except ValueError as e:
                raise self._unavailable(f"invalid response body: {e}", full_url) from e

        raise self._unavailable("retries exhausted", full_url)

    async def _execute_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        method: str = "GET",
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request. Override for custom behavior."""
        if method == "POST":
            return await self._client.post(url, params=params, json=data, headers=headers or {})
        return await self._client.get(url, params=params, headers=headers or {})

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """
        Handle expected non-200 status codes that shouldn't trigger retry.

        Return a value to short-circuit (e.g., None for 404), or the
        sentinel _CONTINUE to continue normal processing.
        """
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Parse response body. Override for custom extraction logic."""
        if expect_json:
            return response.json()
        return response.text

    @staticmethod
    def _get_retry_after(response: httpx.Response, attempt: int) -> float:
        """Extract Retry-After from response headers, with exponential backoff fallback."""
        try:
            return float(response.headers.get("Retry-After", 2 ** (attempt + 1)))
        except (ValueError, TypeError):
            return float(2 ** (attempt + 1))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


# Sentinel object to indicate "continue normal processing" from _handle_expected_status
_CONTINUE = object()
