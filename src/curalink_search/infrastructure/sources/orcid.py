"""
ORCID Adapter - researcher identity registry (public API v3.0).

Documentation: https://info.orcid.org/documentation/api-tutorials/

Search is two-step:
    1. expanded-search -> ORCID iDs with names and institutions
    2. /{orcid}/record for the first 10 hits, concurrently, for works count,
       current employment and biography

A failed record fetch is not a failed search: that researcher is built from
the expanded-search row alone.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from curalink_search.application.search.mapper import OrcidProfile, map_records
from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.domain.entities.records import CanonicalRecord, SourceName
from curalink_search.shared.async_utils import RateLimiter, gather_successes
from curalink_search.shared.exceptions import SourceUnavailableError

from .base import _CONTINUE, DEFAULT_SOURCE_TIMEOUT, BaseAPIClient, SourceAdapter

logger = logging.getLogger(__name__)

ORCID_API_URL = "https://pub.orcid.org/v3.0"
MAX_PROFILE_FETCHES = 10
# Share of the leg budget kept back for mapping once record fetches settle
MAPPING_RESERVE = 0.1


class OrcidAdapter(BaseAPIClient, SourceAdapter):
    """Researcher search against the ORCID public API."""

    _service_name = "ORCID"
    source_name = SourceName.ORCID
    kinds = frozenset({SearchKind.RESEARCHERS})

    def __init__(
        self,
        timeout: float = DEFAULT_SOURCE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=ORCID_API_URL,
            timeout=timeout,
            rate_limiter=RateLimiter(rate=24, per=1.0),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        # Deactivated or unknown iDs
        if response.status_code in (404, 409):
            return None
        return _CONTINUE

    @staticmethod
    def build_q(query: SearchQuery) -> str:
        if query.name_filter:
            return query.name_filter
        return " OR ".join(query.terms)

    async def _record(self, orcid_id: str) -> dict[str, Any] | None:
        return await self._make_request(f"/{orcid_id}/record")

    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        q = self.build_q(query)
        if not q:
            return []

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout * (1 - MAPPING_RESERVE)

        data = await self._make_request("/expanded-search/", params={"q": q, "rows": query.limit})
        if not isinstance(data, dict):
            raise SourceUnavailableError(self.name, "unexpected expanded-search response")
        rows = [r for r in (data.get("expanded-result") or []) if isinstance(r, dict) and r.get("orcid-id")]
        rows = rows[:MAX_PROFILE_FETCHES]
        if not rows:
            return []

        # Record fetches share whatever the search call left of the leg budget
        outcomes = await gather_successes(
            [(row["orcid-id"], lambda oid=row["orcid-id"]: self._record(oid)) for row in rows],
            timeout=max(deadline - loop.time(), 0.0),
        )
        for outcome in outcomes:
            if not outcome.ok:
                logger.debug(f"ORCID record {outcome.name} unavailable, using search row: {outcome.error!r}")

        specialty = query.condition
        payloads = [
            OrcidProfile(search_row=row, record=outcome.value, specialty=specialty)
            for row, outcome in zip(rows, outcomes, strict=True)
        ]
        return map_records(payloads, self.source_name)
