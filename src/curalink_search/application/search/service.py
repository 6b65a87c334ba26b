"""
Federated Search Service - one call per search request.

Pipeline:
    cache get ─(hit)─> envelope (cached=True)
        │
       miss
        ▼
    fan-out ─> phase/status filter ─> dedup ─> rank ─> paginate ─> assemble
        │                                                              │
        └──────────────────────── cache set <──────────────────────────┘

Connection state of internal researchers depends on who is asking, so it
is applied after caching and never stored in the shared envelope.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from curalink_search.domain.entities.records import (
    CanonicalRecord,
    CanonicalResearcher,
    CanonicalTrial,
    ConnectionStatus,
)
from curalink_search.domain.vocabulary import status_matches
from curalink_search.infrastructure.cache.response_cache import ResponseCache
from curalink_search.shared.exceptions import LocalStoreError

from .assembler import assemble_envelope
from .dedup import deduplicate
from .orchestrator import FanOutOrchestrator
from .pagination import paginate
from .query import SearchKind, SearchQuery
from .ranking import rank_listing, rank_researchers

logger = logging.getLogger(__name__)

ConnectionResolver = Callable[[str, Sequence[str]], Awaitable[dict[str, ConnectionStatus]]]


def filter_external_trials(records: Sequence[CanonicalRecord], query: SearchQuery) -> list[CanonicalRecord]:
    """
    Apply the phase/status filters to external trials.

    Internal trials were already filtered by the local store.
    """
    if query.kind is not SearchKind.TRIALS or not query.has_filters:
        return list(records)

    kept: list[CanonicalRecord] = []
    for record in records:
        if record.is_internal or not isinstance(record, CanonicalTrial):
            kept.append(record)
            continue
        if query.phase is not None and record.phase is not query.phase:
            continue
        if query.status is not None and not status_matches(record.status, query.status):
            continue
        kept.append(record)
    return kept


class FederatedSearchService:
    """Runs searches end to end over an orchestrator and a response cache."""

    def __init__(
        self,
        orchestrator: FanOutOrchestrator,
        cache: ResponseCache,
        connection_resolver: ConnectionResolver | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._cache = cache
        self._connection_resolver = connection_resolver

    async def search(self, query: SearchQuery, viewer: str | None = None) -> dict[str, Any]:
        """
        Search every applicable source and return the response envelope.

        Args:
            query: Normalized query
            viewer: Id of the requesting researcher, for connection state

        Raises:
            LocalStoreError: The local store failed
        """
        key = query.cache_key
        envelope = self._cache.get(key)
        if envelope is not None:
            logger.debug(f"Serving {query.kind.value} from cache: {key}")
            envelope["cached"] = True
        else:
            envelope = await self._compute(query)
            self._cache.set(key, query.kind, envelope)

        if viewer and query.kind is SearchKind.RESEARCHERS and self._connection_resolver is not None:
            await self._apply_connections(envelope, viewer)
        return envelope

    async def _compute(self, query: SearchQuery) -> dict[str, Any]:
        fan_out = await self._orchestrator.fan_out(query)
        records = filter_external_trials(fan_out.all_records(), query)

        survivors, stats = deduplicate(records)
        if stats.removed:
            logger.info(f"Dedup {query.kind.value}: {stats.input_count} -> {stats.output_count} {stats.linked_by}")

        if query.kind is SearchKind.RESEARCHERS:
            researchers = [r for r in survivors if isinstance(r, CanonicalResearcher)]
            ranked: list[CanonicalRecord] = list(rank_researchers(researchers, query.location))
        else:
            ranked = rank_listing(survivors)

        page = paginate(ranked, query.page, query.limit)
        return assemble_envelope(query, ranked, page, failed_sources=fan_out.failed_sources)

    async def _apply_connections(self, envelope: dict[str, Any], viewer: str) -> None:
        items = envelope.get(SearchKind.RESEARCHERS.value) or []
        internal_ids = [item["id"] for item in items if item.get("isInternal") and item["id"] != viewer]
        if not internal_ids:
            return
        try:
            statuses = await self._connection_resolver(viewer, internal_ids)
        except LocalStoreError as e:
            # results stand without connection state
            logger.warning(f"Connection lookup for {viewer} failed: {e}")
            return
        for item in items:
            status = statuses.get(item["id"])
            if status is not None:
                item.update(status.to_dict())
