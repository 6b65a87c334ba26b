"""
Federated search pipeline.

Query normalization, fan-out, dedup, ranking, pagination and response
assembly. Adapters and the cache live in ``curalink_search.infrastructure``.
"""

from .query import SearchKind, SearchQuery, normalize_query

__all__ = ["SearchKind", "SearchQuery", "normalize_query"]
