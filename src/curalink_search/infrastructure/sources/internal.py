"""
Internal Store Adapter - the application's own trials, publications and researchers.

This adapter is critical: its failures are faults of the pipeline itself,
so LocalStoreError propagates instead of degrading to an empty list.

With the ``internal`` selector the text match is dropped and the cap raised,
since "internal only" means "everything we have", not "everything matching".
"""

from __future__ import annotations

import logging

from curalink_search.application.search.mapper import (
    LocalPublicationRow,
    LocalResearcherRow,
    LocalTrialRow,
    map_records,
)
from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.domain.entities.records import CanonicalRecord, SourceName
from curalink_search.infrastructure.store.sql_store import LocalStore, StoreCriteria

from .base import DEFAULT_SOURCE_TIMEOUT, SourceAdapter

logger = logging.getLogger(__name__)

DEFAULT_CAP = 10
INTERNAL_ONLY_CAP = 50


class InternalStoreAdapter(SourceAdapter):
    """Searches the local store through the LocalStore protocol."""

    source_name = SourceName.APP
    kinds = frozenset(SearchKind)
    critical = True

    def __init__(self, store: LocalStore, timeout: float = DEFAULT_SOURCE_TIMEOUT) -> None:
        self._store = store
        self.timeout = timeout

    @staticmethod
    def criteria_for(query: SearchQuery) -> StoreCriteria:
        return StoreCriteria(
            terms=query.terms,
            keyword=query.keyword,
            name_filter=query.name_filter,
            location=query.location,
            phase=query.phase,
            status=query.status,
            match_text=not query.internal_only,
            limit=INTERNAL_ONLY_CAP if query.internal_only else DEFAULT_CAP,
        )

    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        criteria = self.criteria_for(query)
        if query.kind is SearchKind.TRIALS:
            rows = await self._store.search_trials(criteria)
            return map_records((LocalTrialRow(r) for r in rows), self.source_name)
        if query.kind is SearchKind.PUBLICATIONS:
            rows = await self._store.search_publications(criteria)
            return map_records((LocalPublicationRow(r) for r in rows), self.source_name)
        rows = await self._store.search_researchers(criteria)
        return map_records((LocalResearcherRow(r) for r in rows), self.source_name)
