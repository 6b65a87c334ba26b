"""Tests for exceptions.py: hierarchy, context and retry delay."""

from curalink_search.shared.exceptions import (
    APIError,
    CacheUnavailableError,
    ConfigurationError,
    CuralinkSearchError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidParameterError,
    InvalidQueryError,
    LocalStoreError,
    ParseError,
    RateLimitError,
    SourceUnavailableError,
    ValidationError,
    get_retry_delay,
)


class TestCuralinkSearchError:
    def test_basic_creation(self):
        e = CuralinkSearchError("test error")
        assert str(e) == "test error"
        assert e.severity == ErrorSeverity.ERROR
        assert e.category == ErrorCategory.API
        assert e.retryable is False

    def test_to_dict(self):
        ctx = ErrorContext(source="PubMed", suggestion="s", example="e", retry_after=5.0)
        d = CuralinkSearchError("fail", context=ctx, retryable=True).to_dict()
        assert d["error"] == "fail"
        assert d["source"] == "PubMed"
        assert d["suggestion"] == "s"
        assert d["example"] == "e"
        assert d["retry_after_seconds"] == 5.0
        assert d["retryable"] is True

    def test_to_dict_minimal(self):
        d = CuralinkSearchError("fail").to_dict()
        assert "source" not in d
        assert "suggestion" not in d


class TestSourceUnavailableError:
    def test_message_carries_source(self):
        e = SourceUnavailableError("ORCID", "HTTP 503 Service Unavailable")
        assert str(e) == "ORCID: HTTP 503 Service Unavailable"
        assert e.source == "ORCID"
        assert e.context.source == "ORCID"

    def test_keeps_context_fields(self):
        ctx = ErrorContext(operation="request", input_value="https://x")
        e = SourceUnavailableError("arXiv", context=ctx)
        assert e.context.operation == "request"
        assert e.context.input_value == "https://x"
        assert e.context.source == "arXiv"

    def test_is_api_error(self):
        assert isinstance(SourceUnavailableError("X"), APIError)
        assert SourceUnavailableError("X").retryable is True


class TestApiErrors:
    def test_rate_limit(self):
        e = RateLimitError(retry_after=30.0)
        assert e.context.retry_after == 30.0
        assert e.severity == ErrorSeverity.ERROR
        assert e.retryable is True
        assert e.context.suggestion


class TestValidationErrors:
    def test_invalid_query_default(self):
        e = InvalidQueryError()
        assert str(e) == "Invalid query: Condition or keyword parameter is required"
        assert e.category == ErrorCategory.VALIDATION
        assert e.context.suggestion
        assert e.context.example

    def test_invalid_parameter_is_invalid_query(self):
        e = InvalidParameterError("page", "0", "an integer >= 1")
        assert isinstance(e, InvalidQueryError)
        assert isinstance(e, ValidationError)
        assert e.param_name == "page"
        assert "page" in str(e)
        assert e.context.suggestion == "Expected an integer >= 1"


class TestDataErrors:
    def test_parse_error_with_source(self):
        e = ParseError("no nctId", source="ClinicalTrials.gov")
        assert str(e) == "Parse error (ClinicalTrials.gov): no nctId"
        assert isinstance(e, DataError)

    def test_parse_error_without_source(self):
        assert str(ParseError("bad")) == "Parse error: bad"

    def test_local_store_error_is_critical(self):
        e = LocalStoreError()
        assert e.severity == ErrorSeverity.CRITICAL
        assert e.retryable is False


class TestCacheAndConfigErrors:
    def test_cache_unavailable(self):
        e = CacheUnavailableError("boom", operation="get")
        assert e.category == ErrorCategory.CACHE
        assert e.severity == ErrorSeverity.WARNING
        assert e.context.operation == "get"

    def test_configuration(self):
        e = ConfigurationError("bad port")
        assert e.category == ErrorCategory.CONFIGURATION
        assert e.severity == ErrorSeverity.CRITICAL


class TestGetRetryDelay:
    def test_exponential(self):
        d0 = get_retry_delay(Exception(), 0)
        d2 = get_retry_delay(Exception(), 2)
        assert 1.0 <= d0 <= 1.1
        assert 4.0 <= d2 <= 4.4

    def test_uses_retry_after(self):
        e = RateLimitError(retry_after=3.0)
        assert 3.0 <= get_retry_delay(e, 0) <= 3.3

    def test_capped(self):
        assert get_retry_delay(Exception(), 20) <= 30.0
