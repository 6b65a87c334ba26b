"""
ClinicalTrials.gov Adapter (API v2)

Primary trial source. FREE public API, no registration required.

API Documentation: https://clinicaltrials.gov/data-api/api

The registry is queried by condition and location only. Phase and status
filters are applied client-side by the search service (the v2 filter
parameters reject several legacy spellings), so ``limit * 2`` studies are
requested to leave room for filtering.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from curalink_search.application.search.mapper import RegistryStudy, map_records
from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.domain.entities.records import CanonicalRecord, SourceName
from curalink_search.shared.async_utils import RateLimiter

from .base import DEFAULT_SOURCE_TIMEOUT, BaseAPIClient, SourceAdapter

logger = logging.getLogger(__name__)

# Base URL for ClinicalTrials.gov API v2
BASE_URL = "https://clinicaltrials.gov/api/v2"
MAX_PAGE_SIZE = 1000


class ClinicalTrialsAdapter(BaseAPIClient, SourceAdapter):
    """Trial search against the ClinicalTrials.gov v2 ``/studies`` endpoint."""

    _service_name = "ClinicalTrials.gov"
    source_name = SourceName.CLINICAL_TRIALS_GOV
    kinds = frozenset({SearchKind.TRIALS})

    def __init__(
        self,
        timeout: float = DEFAULT_SOURCE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=BASE_URL,
            timeout=timeout,
            rate_limiter=RateLimiter(rate=5, per=1.0),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def build_params(self, query: SearchQuery) -> dict[str, Any]:
        params: dict[str, Any] = {
            "query.cond": " OR ".join(query.terms),
            "pageSize": min(query.limit * 2, MAX_PAGE_SIZE),
            "format": "json",
        }
        if query.location:
            params["query.locn"] = query.location
        return params

    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        # Keyword-only searches (e.g. investigator names) are not registry queries
        if not query.terms:
            return []

        data = await self._make_request("/studies", params=self.build_params(query))
        studies = data.get("studies", []) if isinstance(data, dict) else []
        logger.debug(f"ClinicalTrials.gov returned {len(studies)} studies for {query.condition!r}")
        return map_records((RegistryStudy(s) for s in studies), self.source_name)
