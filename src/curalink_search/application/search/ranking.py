"""
Relevance Ranker.

Listings (trials, publications): internal records first, upstream order kept
inside each bucket (the local store already returns newest first).

Researchers: internal first, then location score against the caller's
location (when given), then publication count. Sorting is stable, so ties
keep adapter order.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import replace
from typing import TypeVar

from curalink_search.domain.entities.records import NOT_SPECIFIED, CanonicalRecord, CanonicalResearcher

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=CanonicalRecord)

EXACT_SCORE = 100
SUBSTRING_SCORE = 80
TOKEN_SCALE = 70
TOKEN_EXACT = 1.0
TOKEN_CONTAINS = 0.7
TOKEN_PREFIX = 0.3
PREFIX_LENGTH = 3
_UNSPECIFIED = NOT_SPECIFIED.lower()


def _tokens(location: str) -> list[str]:
    return [p for p in re.split(r"[,\s]+", location) if p]


def calculate_location_score(researcher_location: str | None, user_location: str | None) -> int:
    """
    Heuristic 0-100 proximity between a researcher's location and the caller's.

    - either side empty or "Not specified" (any case): 0
    - exact case-insensitive match: 100
    - one contains the other: 80
    - otherwise token pairs score 1.0 (equal), 0.7 (one contains the other)
      or 0.3 (same first 3 characters, both tokens >= 3 chars); the sum is
      divided by the larger token count and scaled to 70, rounded half up

    The prefix rule credits unrelated places sharing a prefix
    ("Mali" / "Malibu"). Known inaccuracy, kept for ranking compatibility.

    Example:
        >>> calculate_location_score("Boston, MA", "Boston, MA")
        100
        >>> calculate_location_score("New York, USA", "USA")
        80
    """
    if not researcher_location or not user_location:
        return 0

    researcher = researcher_location.lower().strip()
    user = user_location.lower().strip()
    if not researcher or not user:
        return 0
    if _UNSPECIFIED in (researcher, user):
        return 0

    if researcher == user:
        return EXACT_SCORE
    if user in researcher or researcher in user:
        return SUBSTRING_SCORE

    researcher_parts = _tokens(researcher)
    user_parts = _tokens(user)
    max_parts = max(len(user_parts), len(researcher_parts))
    if max_parts == 0:
        return 0

    matching = 0.0
    for user_part in user_parts:
        for researcher_part in researcher_parts:
            if user_part == researcher_part:
                matching += TOKEN_EXACT
            elif user_part in researcher_part or researcher_part in user_part:
                matching += TOKEN_CONTAINS
            elif (
                len(user_part) >= PREFIX_LENGTH
                and len(researcher_part) >= PREFIX_LENGTH
                and user_part[:PREFIX_LENGTH] == researcher_part[:PREFIX_LENGTH]
            ):
                matching += TOKEN_PREFIX

    score = math.floor(matching / max_parts * TOKEN_SCALE + 0.5)
    # repeated tokens can push the pair sum past the token count
    return max(0, min(EXACT_SCORE, score))


def rank_listing(records: Sequence[R]) -> list[R]:
    """Internal records first; order inside each bucket unchanged."""
    return sorted(records, key=lambda r: not r.is_internal)


def rank_researchers(
    records: Sequence[CanonicalResearcher],
    location: str | None = None,
) -> list[CanonicalResearcher]:
    """
    Order researchers for display.

    With a location every record is copied with its ``location_score`` set,
    then sorted by (internal, score desc, publications desc). Without one:
    (internal, publications desc).
    """
    if location:
        scored = [replace(r, location_score=calculate_location_score(r.location, location)) for r in records]
        matched = sum(1 for r in scored if r.location_score)
        logger.debug(f"Location ranking against {location!r}: {matched}/{len(scored)} with a non-zero score")
        return sorted(
            scored,
            key=lambda r: (not r.is_internal, -(r.location_score or 0), -r.publication_count),
        )
    return sorted(records, key=lambda r: (not r.is_internal, -r.publication_count))
