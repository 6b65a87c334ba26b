"""
Unified Exception Hierarchy for Curalink Search.

Exception Hierarchy:
    CuralinkSearchError (base)
    ├── APIError
    │   ├── SourceUnavailableError
    │   └── RateLimitError
    ├── ValidationError
    │   └── InvalidQueryError
    │       └── InvalidParameterError
    ├── DataError
    │   ├── ParseError
    │   └── LocalStoreError
    ├── CacheUnavailableError
    └── ConfigurationError

Only ``InvalidQueryError`` is meant to reach the caller as a client error.
Source and cache failures degrade to fewer results; ``LocalStoreError`` is the
pipeline's own fault and surfaces as a server error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    WARNING = auto()  # Recoverable, can continue
    ERROR = auto()  # Failed but can retry
    CRITICAL = auto()  # Cannot continue


class ErrorCategory(Enum):
    """Categories for error classification."""

    API = "api"
    VALIDATION = "validation"
    DATA = "data"
    CACHE = "cache"
    CONFIGURATION = "config"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context for error messages."""

    source: str | None = None
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    example: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class CuralinkSearchError(Exception):
    """
    Base exception for all Curalink Search errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    """

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.API,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.context.source:
            result["source"] = self.context.source
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.example:
            result["example"] = self.context.example
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result


# =============================================================================
# API Errors
# =============================================================================


class APIError(CuralinkSearchError):
    """Base class for upstream provider errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.API,
            retryable=retryable,
        )


class SourceUnavailableError(APIError):
    """Raised when a single source adapter cannot produce results."""

    def __init__(
        self,
        source: str,
        message: str = "Source unavailable",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = ErrorContext(
            source=source,
            operation=ctx.operation,
            input_value=ctx.input_value,
            suggestion=ctx.suggestion,
            example=ctx.example,
            retry_after=ctx.retry_after,
            metadata=ctx.metadata,
        )
        super().__init__(f"{source}: {message}", context=ctx, retryable=True)
        self.source = source


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded."""

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        *,
        retry_after: float = 1.0,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = ErrorContext(
            source=ctx.source,
            operation=ctx.operation,
            input_value=ctx.input_value,
            suggestion=ctx.suggestion or "Wait and retry the request",
            example=ctx.example,
            retry_after=retry_after,
            metadata=ctx.metadata,
        )
        super().__init__(message, context=ctx, retryable=True)


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(CuralinkSearchError):
    """Base class for validation errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(ValidationError):
    """Raised when the search request cannot be turned into a query."""

    def __init__(
        self,
        query: str | None = None,
        reason: str = "Condition or keyword parameter is required",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = ErrorContext(
            source=ctx.source,
            operation=ctx.operation,
            input_value=query,
            suggestion=ctx.suggestion or "Provide a condition or keyword to search for",
            example=ctx.example or "/api/trials?condition=diabetes",
            retry_after=ctx.retry_after,
            metadata=ctx.metadata,
        )
        super().__init__(f"Invalid query: {reason}", context=ctx)


class InvalidParameterError(InvalidQueryError):
    """Raised when a single query parameter value is invalid."""

    def __init__(
        self,
        param_name: str,
        value: Any,
        expected: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext()
        ctx = ErrorContext(
            source=ctx.source,
            operation=ctx.operation,
            input_value=value,
            suggestion=f"Expected {expected}",
            example=ctx.example,
            retry_after=ctx.retry_after,
            metadata=ctx.metadata,
        )
        super().__init__(
            value if isinstance(value, str) else repr(value),
            f"parameter '{param_name}' = {value!r} (expected {expected})",
            context=ctx,
        )
        self.param_name = param_name


# =============================================================================
# Data Errors
# =============================================================================


class DataError(CuralinkSearchError):
    """Base class for data-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=severity,
            category=ErrorCategory.DATA,
            retryable=False,
        )


class ParseError(DataError):
    """Raised when a single upstream record is structurally malformed."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        full_msg = f"Parse error: {message}"
        if source:
            full_msg = f"Parse error ({source}): {message}"
        super().__init__(full_msg, context=context)


class LocalStoreError(DataError):
    """Raised when the local relational store cannot be queried."""

    def __init__(
        self,
        message: str = "Local store unavailable",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message, context=context, severity=ErrorSeverity.CRITICAL)


# =============================================================================
# Cache / Configuration Errors
# =============================================================================


class CacheUnavailableError(CuralinkSearchError):
    """Raised when the response cache store fails. Never fatal to a request."""

    def __init__(
        self,
        message: str = "Cache store unavailable",
        *,
        operation: str | None = None,
    ) -> None:
        super().__init__(
            message,
            context=ErrorContext(operation=operation),
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.CACHE,
            retryable=True,
        )


class ConfigurationError(CuralinkSearchError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


def get_retry_delay(error: Exception, attempt: int) -> float:
    """
    Calculate retry delay with exponential backoff.

    Args:
        error: The exception that occurred
        attempt: Current attempt number (0-based)

    Returns:
        Delay in seconds before next retry
    """
    base_delay = 1.0

    if isinstance(error, CuralinkSearchError) and error.context.retry_after:
        base_delay = error.context.retry_after

    import random

    delay = base_delay * (2**attempt)
    jitter = random.uniform(0, 0.1 * delay)

    # Cap at 30 seconds
    return min(delay + jitter, 30.0)
