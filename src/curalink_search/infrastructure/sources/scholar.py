"""
Google Scholar Adapter (via SerpAPI ``google_scholar`` engine).

Google Scholar has no author search API; researchers are extracted from the
authors of the organic (paper) results. An author's number of appearances
across the result page becomes their publication count.

SerpAPI plans allow roughly one request per second.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from curalink_search.application.search.mapper import ScholarAuthor, map_records
from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.domain.entities.records import CanonicalRecord, SourceName
from curalink_search.shared.async_utils import RateLimiter
from curalink_search.shared.exceptions import ErrorContext, SourceUnavailableError

from .base import DEFAULT_SOURCE_TIMEOUT, BaseAPIClient, SourceAdapter

logger = logging.getLogger(__name__)

SERPAPI_URL = "https://serpapi.com/search.json"
MAX_NUM = 20  # SerpAPI google_scholar page size cap


def collect_authors(organic_results: list[dict[str, Any]], query_text: str) -> list[ScholarAuthor]:
    """Unique authors in first-seen order, counting appearances."""
    found: dict[str, dict[str, Any]] = {}
    for result in organic_results:
        for author in (result.get("publication_info") or {}).get("authors") or []:
            name = (author.get("name") or "").strip()
            if not name:
                continue
            if name in found:
                found[name]["appearances"] += 1
                continue
            affiliation = author.get("affiliation")
            found[name] = {
                "name": name,
                "appearances": 1,
                "affiliation": affiliation if isinstance(affiliation, str) else None,
                "link": author.get("link"),
                "author_id": author.get("author_id"),
            }
    return [ScholarAuthor(query=query_text, **fields) for fields in found.values()]


class GoogleScholarAdapter(BaseAPIClient, SourceAdapter):
    """Researcher search derived from Google Scholar paper results."""

    _service_name = "Google Scholar"
    source_name = SourceName.GOOGLE_SCHOLAR
    kinds = frozenset({SearchKind.RESEARCHERS})

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_SOURCE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=SERPAPI_URL,
            timeout=timeout,
            rate_limiter=RateLimiter(rate=1, per=1.0),
            transport=transport,
        )
        self._api_key = api_key

    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        if not self._api_key:
            raise SourceUnavailableError(
                self.name,
                "SERPAPI_KEY is not configured",
                context=ErrorContext(suggestion="Set SERPAPI_KEY to enable Google Scholar"),
            )
        query_text = query.name_filter or query.condition
        if not query_text:
            return []

        params = {
            "engine": "google_scholar",
            "q": query_text,
            "api_key": self._api_key,
            "num": min(query.limit * 2, MAX_NUM),
        }
        data = await self._make_request("", params=params)
        if not isinstance(data, dict):
            raise SourceUnavailableError(self.name, "unexpected response body")
        if data.get("error"):
            # Invalid key or exhausted credits are reported in the body
            raise SourceUnavailableError(self.name, str(data["error"]))

        organic = data.get("organic_results") or []
        if not organic:
            logger.debug(f"Google Scholar: no results for {query_text!r}")
            return []

        authors = collect_authors(organic, query_text)[: query.limit]
        return map_records(authors, self.source_name)
