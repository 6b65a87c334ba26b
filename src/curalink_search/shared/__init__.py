"""Shared utilities: exception hierarchy and async helpers."""

from .async_utils import CircuitBreaker, LegOutcome, RateLimiter, gather_successes
from .exceptions import (
    CacheUnavailableError,
    ConfigurationError,
    CuralinkSearchError,
    ErrorContext,
    InvalidParameterError,
    InvalidQueryError,
    LocalStoreError,
    ParseError,
    SourceUnavailableError,
)

__all__ = [
    "CacheUnavailableError",
    "CircuitBreaker",
    "ConfigurationError",
    "CuralinkSearchError",
    "ErrorContext",
    "InvalidParameterError",
    "InvalidQueryError",
    "LegOutcome",
    "LocalStoreError",
    "ParseError",
    "RateLimiter",
    "SourceUnavailableError",
    "gather_successes",
]
