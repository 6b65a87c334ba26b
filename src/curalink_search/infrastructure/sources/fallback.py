"""
Sequential fallback between two adapters answering the same query.

The secondary runs only when the primary fails; both sources return the
same data, so running them in parallel would waste a connection.
"""

from __future__ import annotations

import asyncio
import logging

from curalink_search.application.search.query import SearchQuery
from curalink_search.domain.entities.records import CanonicalRecord, SourceName
from curalink_search.shared.exceptions import SourceUnavailableError

from .base import SourceAdapter

logger = logging.getLogger(__name__)


class FallbackAdapter(SourceAdapter):
    """
    Try ``primary``; on SourceUnavailableError or timeout, try ``secondary``.

    Records keep the source name of whichever adapter answered. The primary
    is bounded by its own timeout so the secondary still fits in the leg
    budget (primary + secondary timeouts).
    """

    def __init__(self, primary: SourceAdapter, secondary: SourceAdapter) -> None:
        if primary.kinds != secondary.kinds:
            raise ValueError(f"{primary.name} and {secondary.name} serve different search kinds")
        self.primary = primary
        self.secondary = secondary
        self.timeout = primary.timeout + secondary.timeout

    @property
    def source_name(self) -> SourceName:  # type: ignore[override]
        return self.primary.source_name

    @property
    def kinds(self):  # type: ignore[override]
        return self.primary.kinds

    def select(self, source: SourceName) -> SourceAdapter | None:
        """A selector naming either side runs that side alone."""
        return self.primary.select(source) or self.secondary.select(source)

    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        try:
            async with asyncio.timeout(self.primary.timeout):
                return await self.primary.fetch(query)
        except (SourceUnavailableError, TimeoutError) as e:
            logger.warning(f"{self.primary.name} failed ({e!r}), falling back to {self.secondary.name}")

        return await self.secondary.fetch(query)

    async def close(self) -> None:
        await self.primary.close()
        await self.secondary.close()
