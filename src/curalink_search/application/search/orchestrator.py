"""
Fan-out Orchestrator.

Runs every applicable adapter for a query concurrently and keeps whatever
succeeds. One slow or failing source never delays past its own timeout or
voids the others:

    internal ──┐
    registry ──┼──> settle all (per-leg timeout) ──> FanOutResult
    ...      ──┘

Failed and timed-out legs are logged with the source name and contribute
no records. A critical adapter's failure (the local store) aborts the whole
fan-out: the other legs are cancelled and the error propagates.

Results are keyed and ordered by adapter registration order, never by
completion order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from curalink_search.domain.entities.records import CanonicalRecord
from curalink_search.infrastructure.sources.base import SourceAdapter
from curalink_search.shared.async_utils import gather_successes
from curalink_search.shared.exceptions import LocalStoreError

from .query import SearchQuery

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    """Per-source records (adapter order) and the sources that failed."""

    records: dict[str, list[CanonicalRecord]] = field(default_factory=dict)
    failed_sources: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    def all_records(self) -> list[CanonicalRecord]:
        merged: list[CanonicalRecord] = []
        for records in self.records.values():
            merged.extend(records)
        return merged


def _is_fatal(error: BaseException) -> bool:
    return isinstance(error, LocalStoreError)


class FanOutOrchestrator:
    """Drives a fixed set of adapters, injected at construction."""

    def __init__(self, adapters: Sequence[SourceAdapter]) -> None:
        self._adapters = list(adapters)

    @property
    def adapters(self) -> list[SourceAdapter]:
        return list(self._adapters)

    def applicable_adapters(self, query: SearchQuery) -> list[SourceAdapter]:
        """
        Adapters to run for ``query``.

        - kind must be served by the adapter
        - ``all``: every adapter
        - ``internal``: critical (local store) adapters only
        - a source name: only the adapter answering for that source
        """
        selected: list[SourceAdapter] = []
        named = query.selected_source
        for adapter in self._adapters:
            if not adapter.serves(query.kind):
                continue
            if query.internal_only:
                if adapter.critical:
                    selected.append(adapter)
            elif named is not None:
                chosen = adapter.select(named)
                if chosen is not None:
                    selected.append(chosen)
            else:
                selected.append(adapter)
        return selected

    async def fan_out(self, query: SearchQuery) -> FanOutResult:
        """
        Run the applicable adapters concurrently and collect the successes.

        Raises:
            LocalStoreError: The local store failed (other legs are cancelled)
        """
        adapters = self.applicable_adapters(query)
        start = time.perf_counter()

        legs = []
        for adapter in adapters:
            legs.append((adapter.name, _leg(adapter, query)))

        outcomes = await gather_successes(legs, is_fatal=_is_fatal)

        result = FanOutResult()
        for adapter, outcome in zip(adapters, outcomes, strict=True):
            if outcome.ok:
                result.records[outcome.name] = list(outcome.value or [])
            else:
                result.records[outcome.name] = []
                result.failed_sources.append(outcome.name)
                if isinstance(outcome.error, TimeoutError):
                    logger.warning(f"{outcome.name}: timed out after {adapter.timeout:.1f}s")
                else:
                    logger.warning(f"{outcome.name}: {outcome.error}")

        result.elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Fan-out {query.kind.value} {query.search_term!r}: "
            + ", ".join(f"{name}={len(recs)}" for name, recs in result.records.items())
            + (f" failed={result.failed_sources}" if result.failed_sources else "")
            + f" in {result.elapsed_ms:.0f}ms"
        )
        return result


def _leg(adapter: SourceAdapter, query: SearchQuery):
    """Coroutine factory bounding one adapter call by its own timeout."""

    async def run() -> list[CanonicalRecord]:
        async with asyncio.timeout(adapter.timeout):
            return await adapter.fetch(query)

    return run
