"""
arXiv Adapter - preprint search over the arXiv Atom API.

Documentation: https://info.arxiv.org/help/api/index.html

arXiv asks clients to keep to one request every three seconds.
"""

from __future__ import annotations

import logging
from typing import Any
from xml.etree.ElementTree import ParseError as XMLParseError

import defusedxml.ElementTree as ET  # Security: prevent XML attacks
import httpx

from curalink_search.application.search.mapper import ATOM_NS, ArxivEntry, map_records
from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.domain.entities.records import CanonicalRecord, SourceName
from curalink_search.shared.async_utils import RateLimiter
from curalink_search.shared.exceptions import SourceUnavailableError

from .base import DEFAULT_SOURCE_TIMEOUT, BaseAPIClient, SourceAdapter

logger = logging.getLogger(__name__)

ARXIV_API_URL = "https://export.arxiv.org/api/query"
MAX_RESULTS = 100


class ArxivAdapter(BaseAPIClient, SourceAdapter):
    """Preprint search against arXiv."""

    _service_name = "arXiv"
    source_name = SourceName.ARXIV
    kinds = frozenset({SearchKind.PUBLICATIONS})

    def __init__(
        self,
        timeout: float = DEFAULT_SOURCE_TIMEOUT,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=ARXIV_API_URL,
            timeout=timeout,
            rate_limiter=rate_limiter or RateLimiter(rate=1, per=3.0),
            transport=transport,
        )

    @staticmethod
    def build_search_query(query: SearchQuery) -> str:
        parts = []
        for term in query.terms:
            # Escape query syntax characters
            escaped = term.replace(":", " ").replace("(", " ").replace(")", " ").strip()
            parts.append(f'all:"{escaped}"' if " " in escaped else f"all:{escaped}")
        return " OR ".join(parts)

    def build_params(self, query: SearchQuery) -> dict[str, Any]:
        return {
            "search_query": self.build_search_query(query),
            "start": 0,
            "max_results": min(query.limit, MAX_RESULTS),
            "sortBy": "relevance",
            "sortOrder": "descending",
        }

    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        if not query.terms:
            return []

        params = self.build_params(query)
        logger.info(f"arXiv search: {params['search_query']}")
        xml_text = await self._make_request("", params=params, expect_json=False)
        try:
            root = ET.fromstring(xml_text)
        except XMLParseError as e:
            raise SourceUnavailableError(self.name, f"malformed Atom feed: {e}") from e

        entries = root.findall("atom:entry", ATOM_NS)
        return map_records((ArxivEntry(e) for e in entries), self.source_name)
