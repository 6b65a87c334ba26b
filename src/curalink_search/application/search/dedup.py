"""
Deduplicator - Cross-source merging of canonical records.

Records from different sources are linked through natural keys, never ``id``:
    Trial        -> NCT registry ID (upper-cased)
    Publication  -> PMID, DOI (normalized), arXiv ID (version suffix stripped)
    Researcher   -> normalized name (case and whitespace insensitive)

Linked records are grouped with Union-Find, so transitive links (A~B by DOI,
B~C by PMID) collapse into one group. From each group exactly one record
survives:
    1. an internal (APP) record
    2. otherwise the one with the higher publication count (researchers)
    3. otherwise the first seen (adapter order)

Survivors are returned in the position of the first member of their group,
so the relative order of adapter output is preserved.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from curalink_search.domain.entities.records import (
    CanonicalPublication,
    CanonicalRecord,
    CanonicalResearcher,
    CanonicalTrial,
)

R = TypeVar("R", bound=CanonicalRecord)


# =============================================================================
# Union-Find
# =============================================================================


class UnionFind:
    """
    Union-Find (Disjoint Set Union) with path compression and union by rank.

    find/union are O(α(n)) amortized, so linking over k key indexes stays O(k·n).
    """

    def __init__(self, n: int):
        """Initialize with n elements (0 to n-1)."""
        self.parent = list(range(n))
        self.rank = [0] * n

    def find(self, x: int) -> int:
        """Find root with path compression."""
        if self.parent[x] != x:
            self.parent[x] = self.find(self.parent[x])
        return self.parent[x]

    def union(self, x: int, y: int) -> bool:
        """Union by rank. Returns True if x and y were in different sets."""
        px, py = self.find(x), self.find(y)
        if px == py:
            return False
        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True

    def get_groups(self) -> dict[int, list[int]]:
        """Get all groups as {root: [members]}, members in index order."""
        groups: dict[int, list[int]] = {}
        for i in range(len(self.parent)):
            groups.setdefault(self.find(i), []).append(i)
        return groups


# =============================================================================
# Natural keys
# =============================================================================


def normalize_doi(doi: str) -> str:
    """Normalize DOI for comparison."""
    doi = doi.lower().strip()
    for prefix in ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "doi:"):
        doi = doi.removeprefix(prefix)
    return doi.strip()


def normalize_arxiv_id(arxiv_id: str) -> str:
    """Strip the version suffix: 2401.01234v2 -> 2401.01234."""
    return re.sub(r"v\d+$", "", arxiv_id.strip().lower())


def normalize_name(name: str) -> str:
    """Case and whitespace insensitive researcher name."""
    return re.sub(r"\s+", " ", name).strip().casefold()


def _trial_keys(record: CanonicalTrial) -> list[tuple[str, str]]:
    return [("nct", record.nct_id.strip().upper())] if record.nct_id else []


def _publication_keys(record: CanonicalPublication) -> list[tuple[str, str]]:
    keys: list[tuple[str, str]] = []
    if record.pmid:
        keys.append(("pmid", record.pmid.strip()))
    if record.doi:
        keys.append(("doi", normalize_doi(record.doi)))
    if record.arxiv_id:
        keys.append(("arxiv", normalize_arxiv_id(record.arxiv_id)))
    return keys


def _researcher_keys(record: CanonicalResearcher) -> list[tuple[str, str]]:
    name = normalize_name(record.name)
    return [("name", name)] if name else []


def natural_keys(record: CanonicalRecord) -> list[tuple[str, str]]:
    """All (key type, value) pairs identifying a record across sources."""
    if isinstance(record, CanonicalTrial):
        return _trial_keys(record)
    if isinstance(record, CanonicalPublication):
        return _publication_keys(record)
    return _researcher_keys(record)


# =============================================================================
# Deduplication
# =============================================================================


@dataclass
class DedupStats:
    """Counts of what deduplication did."""

    input_count: int = 0
    output_count: int = 0
    linked_by: dict[str, int] = field(default_factory=dict)

    @property
    def removed(self) -> int:
        return self.input_count - self.output_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "input": self.input_count,
            "output": self.output_count,
            "removed": self.removed,
            "linked_by": dict(self.linked_by),
        }


def _winner_key(record: CanonicalRecord, position: int) -> tuple[int, int, int]:
    publication_count = record.publication_count if isinstance(record, CanonicalResearcher) else 0
    # max() picks internal, then most publications, then earliest position
    return (1 if record.is_internal else 0, publication_count, -position)


def deduplicate(
    records: Sequence[R],
    *,
    key_func: Callable[[CanonicalRecord], list[tuple[str, str]]] = natural_keys,
) -> tuple[list[R], DedupStats]:
    """
    Collapse records that share a natural key.

    Args:
        records: Records in adapter order (internal adapter first)
        key_func: Natural key extractor

    Returns:
        (survivors in first-seen group order, stats)
    """
    stats = DedupStats(input_count=len(records))
    n = len(records)
    if n == 0:
        return [], stats

    uf = UnionFind(n)
    seen: dict[tuple[str, str], int] = {}

    for i, record in enumerate(records):
        for key in key_func(record):
            if key in seen:
                if uf.union(i, seen[key]):
                    stats.linked_by[key[0]] = stats.linked_by.get(key[0], 0) + 1
            else:
                seen[key] = i

    survivors: list[R] = []
    # groups come out keyed by root, but member lists are in index order
    for members in sorted(uf.get_groups().values(), key=lambda m: m[0]):
        winner = max(members, key=lambda i: _winner_key(records[i], i))
        survivors.append(records[winner])

    stats.output_count = len(survivors)
    return survivors, stats
