"""
PubMed Adapter - NCBI E-utilities.

Documentation: https://www.ncbi.nlm.nih.gov/books/NBK25501/

Two calls per search:
    1. esearch (JSON)  -> ordered PMID list
    2. efetch  (XML)   -> full records incl. abstracts, parsed with defusedxml

Both response bodies are kept in an in-process TTL cache (6 hours) keyed by
term and size, so page changes or other filters on the same term reuse them.

NCBI usage policy: at most 3 requests/second without an API key, 10 with one.
"""

from __future__ import annotations

import logging
from typing import Any
from xml.etree.ElementTree import ParseError as XMLParseError

import defusedxml.ElementTree as ET  # Security: prevent XML attacks
import httpx

from curalink_search.application.search.mapper import PubMedArticle, map_records
from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.domain.entities.records import CanonicalRecord, SourceName
from curalink_search.infrastructure.cache.entity_cache import EntityCache
from curalink_search.shared.async_utils import RateLimiter
from curalink_search.shared.exceptions import SourceUnavailableError

from .base import DEFAULT_SOURCE_TIMEOUT, BaseAPIClient, SourceAdapter

logger = logging.getLogger(__name__)

EUTILS_BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
UPSTREAM_TTL = 21600  # 6 hours
TOOL_NAME = "curalink-search"


class PubMedAdapter(BaseAPIClient, SourceAdapter):
    """Publication search over PubMed (esearch + efetch)."""

    _service_name = "PubMed"
    source_name = SourceName.PUBMED
    kinds = frozenset({SearchKind.PUBLICATIONS})

    def __init__(
        self,
        email: str | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_SOURCE_TIMEOUT,
        cache: EntityCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=EUTILS_BASE_URL,
            timeout=timeout,
            rate_limiter=RateLimiter(rate=10 if api_key else 3, per=1.0),
            transport=transport,
        )
        self._email = email
        self._api_key = api_key
        self._cache = cache if cache is not None else EntityCache(max_size=500, ttl=UPSTREAM_TTL)

    def _common_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"db": "pubmed", "tool": TOOL_NAME}
        if self._email:
            params["email"] = self._email
        if self._api_key:
            params["api_key"] = self._api_key
        return params

    @staticmethod
    def build_term(query: SearchQuery) -> str:
        if len(query.terms) == 1:
            return query.terms[0]
        return " OR ".join(f"({t})" for t in query.terms)

    async def _esearch(self, term: str, retmax: int) -> list[str]:
        params = {**self._common_params(), "term": term, "retmax": retmax, "retmode": "json", "sort": "relevance"}
        data = await self._make_request("/esearch.fcgi", params=params)
        try:
            return list(data["esearchresult"]["idlist"])
        except (KeyError, TypeError) as e:
            raise SourceUnavailableError(self.name, "esearch response has no idlist") from e

    async def _efetch(self, pmids: list[str]) -> str:
        params = {**self._common_params(), "id": ",".join(pmids), "retmode": "xml", "rettype": "abstract"}
        return await self._make_request("/efetch.fcgi", params=params, expect_json=False)

    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        if not query.terms:
            return []

        term = self.build_term(query)
        retmax = query.limit
        pmids = await self._cache.get_or_fetch(f"esearch:{term}:{retmax}", lambda: self._esearch(term, retmax))
        if not pmids:
            logger.debug(f"PubMed: no articles for {term!r}")
            return []

        xml_text = await self._cache.get_or_fetch(f"efetch:{','.join(pmids)}", lambda: self._efetch(pmids))
        try:
            root = ET.fromstring(xml_text)
        except XMLParseError as e:
            raise SourceUnavailableError(self.name, f"efetch returned malformed XML: {e}") from e

        articles = root.findall("PubmedArticle")
        return map_records((PubMedArticle(a) for a in articles), self.source_name)
