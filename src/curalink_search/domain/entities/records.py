"""
Canonical Records - Unified shapes for every search source.

Every provider (local store, trial registry, literature index, preprint
archive, researcher registries) is mapped into exactly one of three record
types: CanonicalTrial, CanonicalPublication, CanonicalResearcher.

Architecture Decision:
    Records are frozen dataclasses. They are built fresh for each request,
    never mutated after construction, and discarded once the response is
    assembled. Derived values (e.g. a researcher's location score) are
    attached with ``dataclasses.replace`` on a copy.

Example:
    >>> trial = CanonicalTrial(
    ...     id="NCT05123456",
    ...     title="Semaglutide in Type 2 Diabetes",
    ...     source_name=SourceName.CLINICAL_TRIALS_GOV,
    ...     nct_id="NCT05123456",
    ... )
    >>> trial.is_internal
    False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from curalink_search.domain.vocabulary import TrialPhase, TrialStatus

NOT_SPECIFIED = "Not specified"


class SourceName(Enum):
    """Closed set of sources a canonical record can come from."""

    APP = "APP"
    CLINICAL_TRIALS_GOV = "ClinicalTrials.gov"
    AACT = "AACT"
    PUBMED = "PubMed"
    ARXIV = "arXiv"
    ORCID = "ORCID"
    GOOGLE_SCHOLAR = "Google Scholar"

    @classmethod
    def from_label(cls, label: str) -> SourceName | None:
        """Case-insensitive lookup by display label."""
        wanted = label.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class AuthorName:
    """Structured author name (ORCID / PubMed style)."""

    family_name: str | None = None
    given_name: str | None = None
    full_name: str | None = None

    @property
    def display_name(self) -> str:
        """Return best available name representation."""
        if self.full_name:
            return self.full_name
        parts = [p for p in (self.given_name, self.family_name) if p]
        return " ".join(parts) if parts else "Unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.display_name,
            "givenName": self.given_name,
            "familyName": self.family_name,
        }


@dataclass(frozen=True)
class CanonicalTrial:
    """A clinical trial from the local store or a trial registry."""

    id: str
    title: str
    source_name: SourceName
    description: str = "No description available"
    status: TrialStatus = TrialStatus.UNKNOWN
    phase: TrialPhase = TrialPhase.NOT_APPLICABLE
    location: str = NOT_SPECIFIED
    conditions: tuple[str, ...] = ()
    start_date: date | None = None
    completion_date: date | None = None
    sponsor: str = NOT_SPECIFIED
    principal_investigator: str = "Unknown Investigator"
    nct_id: str | None = None
    url: str | None = None

    @property
    def is_internal(self) -> bool:
        return self.source_name is SourceName.APP

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "nctId": self.nct_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "phase": self.phase.value,
            "location": self.location,
            "conditions": list(self.conditions),
            "startDate": _iso(self.start_date),
            "completionDate": _iso(self.completion_date),
            "sponsor": self.sponsor,
            "principalInvestigator": self.principal_investigator,
            "url": self.url,
            "sourceName": self.source_name.value,
            "isInternal": self.is_internal,
        }


@dataclass(frozen=True)
class CanonicalPublication:
    """A journal article, local publication or preprint."""

    id: str
    title: str
    source_name: SourceName
    abstract: str = "No abstract available"
    authors: tuple[str | AuthorName, ...] = ()
    journal: str | None = None
    published_date: date | None = None
    doi: str | None = None
    pmid: str | None = None
    arxiv_id: str | None = None
    url: str | None = None
    categories: tuple[str, ...] = ()
    # Literature has no trial phase; published work is by definition complete
    phase: TrialPhase = TrialPhase.NOT_APPLICABLE
    status: TrialStatus = TrialStatus.COMPLETED

    @property
    def is_internal(self) -> bool:
        return self.source_name is SourceName.APP

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "abstract": self.abstract,
            "authors": [a.to_dict() if isinstance(a, AuthorName) else a for a in self.authors],
            "journal": self.journal,
            "publishedDate": _iso(self.published_date),
            "doi": self.doi,
            "pmid": self.pmid,
            "arxivId": self.arxiv_id,
            "url": self.url,
            "categories": list(self.categories),
            "phase": self.phase.value,
            "status": self.status.value,
            "sourceName": self.source_name.value,
            "isInternal": self.is_internal,
        }


@dataclass(frozen=True)
class ConnectionStatus:
    """Viewer-relative connection/follow state of an internal researcher."""

    status: str | None = None
    connection_id: str | None = None
    is_sent_by_me: bool = False
    is_received_by_me: bool = False
    is_following: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "connectionStatus": self.status,
            "connectionId": self.connection_id,
            "isSentByMe": self.is_sent_by_me,
            "isReceivedByMe": self.is_received_by_me,
            "isFollowing": self.is_following,
        }


@dataclass(frozen=True)
class CanonicalResearcher:
    """A researcher profile from the local store or a researcher registry."""

    id: str
    name: str
    source_name: SourceName
    affiliation: str = NOT_SPECIFIED
    specialty: str = "Research"
    specialization: str = "Research"
    location: str = NOT_SPECIFIED
    publication_count: int = 0
    trial_count: int = 0
    bio: str = ""
    url: str | None = None
    location_score: int | None = None
    connection: ConnectionStatus | None = field(default=None, compare=False)

    @property
    def is_internal(self) -> bool:
        return self.source_name is SourceName.APP

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "affiliation": self.affiliation,
            "specialty": self.specialty,
            "specialization": self.specialization,
            "location": self.location,
            "publicationCount": self.publication_count,
            "trialCount": self.trial_count,
            "bio": self.bio,
            "url": self.url,
            "sourceName": self.source_name.value,
            "isInternal": self.is_internal,
        }
        if self.location_score is not None:
            data["locationScore"] = self.location_score
        if self.connection is not None:
            data.update(self.connection.to_dict())
        return data


CanonicalRecord = CanonicalTrial | CanonicalPublication | CanonicalResearcher
