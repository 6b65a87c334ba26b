"""Canonical record types."""

from .records import (
    NOT_SPECIFIED,
    AuthorName,
    CanonicalPublication,
    CanonicalRecord,
    CanonicalResearcher,
    CanonicalTrial,
    ConnectionStatus,
    SourceName,
)

__all__ = [
    "NOT_SPECIFIED",
    "AuthorName",
    "CanonicalPublication",
    "CanonicalRecord",
    "CanonicalResearcher",
    "CanonicalTrial",
    "ConnectionStatus",
    "SourceName",
]
