"""Response Assembler - builds the JSON envelope returned to callers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from curalink_search.domain.entities.records import CanonicalRecord

from .pagination import Page
from .query import SearchKind, SearchQuery

FILTER_MISS_MESSAGE = (
    "No trials found matching the selected filters. Try adjusting your phase or status selection."
)


def no_results_message(search_term: str) -> str:
    return f"No results found for {search_term}. Try different keywords."


def source_counts(records: Sequence[CanonicalRecord]) -> dict[str, int]:
    """Record count per source name, in first-seen order."""
    counts: dict[str, int] = {}
    for record in records:
        name = record.source_name.value
        counts[name] = counts.get(name, 0) + 1
    return counts


def result_message(query: SearchQuery, total_count: int) -> str | None:
    """
    Explanatory message for an empty result set.

    A page past the end of a non-empty result set gets no message.
    """
    if total_count > 0:
        return None
    if query.kind is SearchKind.TRIALS and query.has_filters:
        return FILTER_MISS_MESSAGE
    return no_results_message(query.search_term)


def assemble_envelope(
    query: SearchQuery,
    merged: Sequence[CanonicalRecord],
    page: Page[CanonicalRecord],
    *,
    failed_sources: Sequence[str] = (),
    cached: bool = False,
) -> dict[str, Any]:
    """
    Build the response envelope.

    Args:
        query: The normalized query
        merged: Every record after filtering, dedup and ranking (all pages)
        page: The requested slice of ``merged``
        failed_sources: Sources that failed or timed out during fan-out
        cached: Whether the envelope is served from the response cache

    Returns:
        ``{<kind>: [...], pagination, internal, external, sourceCounts, source,
        cached, failedSources?, message?, sortedByLocation?}``
    """
    internal = sum(1 for r in merged if r.is_internal)
    envelope: dict[str, Any] = {
        query.kind.value: [record.to_dict() for record in page.items],
        "pagination": page.pagination.to_dict(),
        "internal": internal,
        "external": len(merged) - internal,
        "sourceCounts": source_counts(merged),
        "source": query.source,
        "cached": cached,
    }
    if failed_sources:
        envelope["failedSources"] = list(failed_sources)

    message = result_message(query, page.pagination.total_count)
    if message is not None:
        envelope["message"] = message

    if query.kind is SearchKind.RESEARCHERS:
        envelope["sortedByLocation"] = bool(query.location)
    return envelope
