"""
Query Normalizer - Raw search parameters to a canonical SearchQuery.

Validation happens here, before any cache lookup or network call:
    - at least one search term (condition/keyword, or condition/name for researchers)
    - page >= 1, limit > 0
    - phase/status resolved through the shared vocabulary tables
    - source selector restricted to the sources that serve the search kind

Example:
    >>> q = normalize_query(SearchKind.TRIALS, condition="diabetes, Diabetes, obesity", location="Boston, USA")
    >>> q.terms
    ('diabetes', 'obesity')
    >>> q.location
    'USA'
    >>> q.offset
    0
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from curalink_search.domain.entities.records import SourceName
from curalink_search.domain.vocabulary import TrialPhase, TrialStatus, parse_phase, parse_status
from curalink_search.shared.exceptions import InvalidParameterError, InvalidQueryError

SELECTOR_ALL = "all"
SELECTOR_INTERNAL = "internal"

# Filter values meaning "no filter"
_WILDCARDS = frozenset({"", "all", "any"})


class SearchKind(Enum):
    """The three searchable entity types."""

    TRIALS = "trials"
    PUBLICATIONS = "publications"
    RESEARCHERS = "researchers"

    @property
    def default_limit(self) -> int:
        return 30 if self is SearchKind.RESEARCHERS else 20


# Sources that can answer each kind (selector validation)
KIND_SOURCES: dict[SearchKind, tuple[SourceName, ...]] = {
    SearchKind.TRIALS: (SourceName.APP, SourceName.CLINICAL_TRIALS_GOV, SourceName.AACT),
    SearchKind.PUBLICATIONS: (SourceName.APP, SourceName.PUBMED, SourceName.ARXIV),
    SearchKind.RESEARCHERS: (SourceName.APP, SourceName.ORCID, SourceName.GOOGLE_SCHOLAR),
}


@dataclass(frozen=True)
class SearchQuery:
    """Canonical, validated search request."""

    kind: SearchKind
    terms: tuple[str, ...] = ()
    keyword: str | None = None
    name_filter: str | None = None
    location: str | None = None
    phase: TrialPhase | None = None
    status: TrialStatus | None = None
    source: str = SELECTOR_ALL
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def condition(self) -> str | None:
        """Condition terms joined back into one display string."""
        return ", ".join(self.terms) if self.terms else None

    @property
    def search_term(self) -> str:
        """The term shown to the caller in messages (keyword wins over condition)."""
        return self.keyword or self.name_filter or self.condition or ""

    @property
    def internal_only(self) -> bool:
        return self.source == SELECTOR_INTERNAL

    @property
    def selected_source(self) -> SourceName | None:
        """The single source named by the selector, if any."""
        if self.source in (SELECTOR_ALL, SELECTOR_INTERNAL):
            return None
        return SourceName.from_label(self.source)

    @property
    def has_filters(self) -> bool:
        return self.phase is not None or self.status is not None

    @property
    def cache_key(self) -> str:
        """Key covering every parameter that changes the result set."""
        parts = [
            f"terms={','.join(t.casefold() for t in self.terms)}",
            f"keyword={(self.keyword or '').casefold()}",
            f"name={(self.name_filter or '').casefold()}",
            f"location={(self.location or '').casefold()}",
            f"phase={self.phase.value if self.phase else 'all'}",
            f"status={self.status.value if self.status else 'all'}",
            f"source={self.source.casefold()}",
            f"page={self.page}",
            f"limit={self.limit}",
        ]
        return f"search:{self.kind.value}:" + ":".join(parts)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def split_terms(condition: str | None) -> tuple[str, ...]:
    """Comma-split into an ordered set; duplicates collapse case-insensitively."""
    if not condition:
        return ()
    seen: set[str] = set()
    terms: list[str] = []
    for raw in condition.split(","):
        term = raw.strip()
        if term and term.casefold() not in seen:
            seen.add(term.casefold())
            terms.append(term)
    return tuple(terms)


def normalize_location(location: str | None) -> str | None:
    """Reduce "City, Country" to its last comma-delimited segment ("Boston, USA" -> "USA")."""
    location = _clean(location)
    if location is None:
        return None
    if "," in location:
        location = location.rsplit(",", 1)[1].strip()
    return location or None


def _parse_positive(name: str, value: int | str | None, default: int, minimum: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(name, value, f"an integer >= {minimum}") from None
    if number < minimum:
        raise InvalidParameterError(name, value, f"an integer >= {minimum}")
    return number


def _parse_selector(kind: SearchKind, source: str | None) -> str:
    source = _clean(source)
    if source is None or source.lower() == SELECTOR_ALL:
        return SELECTOR_ALL
    if source.lower() == SELECTOR_INTERNAL:
        return SELECTOR_INTERNAL
    named = SourceName.from_label(source)
    allowed = KIND_SOURCES[kind]
    if named is None or named not in allowed:
        choices = ", ".join([SELECTOR_ALL, SELECTOR_INTERNAL, *(s.value for s in allowed)])
        raise InvalidParameterError("source", source, f"one of: {choices}")
    return named.value


def normalize_query(
    kind: SearchKind,
    *,
    condition: str | None = None,
    keyword: str | None = None,
    search: str | None = None,
    location: str | None = None,
    phase: str | None = None,
    status: str | None = None,
    source: str | None = None,
    page: int | str | None = None,
    limit: int | str | None = None,
) -> SearchQuery:
    """
    Validate raw parameters and build a SearchQuery.

    Raises:
        InvalidQueryError: No search term was given
        InvalidParameterError: A parameter has an unusable value
    """
    terms = split_terms(condition)
    keyword = _clean(keyword)
    name_filter = _clean(search) if kind is SearchKind.RESEARCHERS else None

    if kind is SearchKind.RESEARCHERS:
        if not terms and name_filter is None:
            raise InvalidQueryError(condition, "Condition or search parameter is required")
    elif not terms and keyword is None:
        raise InvalidQueryError(condition)

    phase_value: TrialPhase | None = None
    if _clean(phase) and phase.strip().lower() not in _WILDCARDS:
        phase_value = parse_phase(phase)
        if phase_value is None:
            raise InvalidParameterError("phase", phase, "a trial phase such as PHASE_2")

    status_value: TrialStatus | None = None
    if _clean(status) and status.strip().lower() not in _WILDCARDS:
        status_value = parse_status(status)
        if status_value is None:
            raise InvalidParameterError("status", status, "a trial status such as RECRUITING")

    return SearchQuery(
        kind=kind,
        terms=terms,
        keyword=keyword,
        name_filter=name_filter,
        location=normalize_location(location),
        phase=phase_value,
        status=status_value,
        source=_parse_selector(kind, source),
        page=_parse_positive("page", page, 1, 1),
        limit=_parse_positive("limit", limit, kind.default_limit, 1),
    )
