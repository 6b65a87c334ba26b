"""
Normalizer/Mapper - Source payloads to canonical records.

Each upstream shape is wrapped in one tagged payload class. Every payload
implements ``to_canonical()`` and produces exactly one canonical record:

    RegistryStudy        -> CanonicalTrial        (ClinicalTrials.gov v2 JSON)
    AactStudy            -> CanonicalTrial        (AACT SQL row)
    LocalTrialRow        -> CanonicalTrial        (local store row)
    PubMedArticle        -> CanonicalPublication  (efetch XML element)
    ArxivEntry           -> CanonicalPublication  (Atom entry element)
    LocalPublicationRow  -> CanonicalPublication
    OrcidProfile         -> CanonicalResearcher   (expanded-search row + record)
    ScholarAuthor        -> CanonicalResearcher   (author aggregated from organic results)
    LocalResearcherRow   -> CanonicalResearcher

Mapping is total on optional fields: absent values take the documented
defaults. Only structurally malformed payloads (no identifier, no title/name)
raise ParseError, and ``map_records`` drops just that record.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from xml.etree.ElementTree import Element

from curalink_search.domain.entities.records import (
    NOT_SPECIFIED,
    AuthorName,
    CanonicalPublication,
    CanonicalRecord,
    CanonicalResearcher,
    CanonicalTrial,
    SourceName,
)
from curalink_search.domain.vocabulary import TrialPhase, TrialStatus, parse_phase, parse_status
from curalink_search.shared.exceptions import ParseError

logger = logging.getLogger(__name__)

MAX_ABSTRACT_LENGTH = 1500
MAX_PREPRINT_CATEGORIES = 3
NO_ABSTRACT = "No abstract available"
NO_DESCRIPTION = "No description available"
UNKNOWN_INVESTIGATOR = "Unknown Investigator"
PLATFORM_AFFILIATION = "Curalink Platform"

ATOM_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}

_MONTHS = {m: i for i, m in enumerate(
    ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"], start=1
)}


# =============================================================================
# Field helpers
# =============================================================================


def parse_date(value: Any) -> date | None:
    """
    Lenient date parsing.

    Accepts date/datetime objects and "2024-01-15", "2024-01", "2024",
    "2024 Jan 15", "2024 Jan", "January 2024", ISO timestamps. Returns None
    for anything unrecognised.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    m = re.match(r"^(\d{4})-(\d{1,2})(?:-(\d{1,2}))?", text)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3) or 1))
        except ValueError:
            return None

    year_match = re.search(r"\b(19|20)\d{2}\b", text)
    if not year_match:
        return None
    year = int(year_match.group(0))

    month = 1
    month_match = re.search(r"\b([A-Za-z]{3})[a-z]*\b", text)
    if month_match and month_match.group(1).lower() in _MONTHS:
        month = _MONTHS[month_match.group(1).lower()]

    day = 1
    day_match = re.search(rf"{year}\s+[A-Za-z]+\s+(\d{{1,2}})\b", text)
    if day_match:
        day = int(day_match.group(1))

    try:
        return date(year, month, day)
    except ValueError:
        return date(year, month, 1)


def truncate_abstract(text: str | None) -> str:
    """Collapse whitespace, default when empty, cut long abstracts with an ellipsis."""
    if not text:
        return NO_ABSTRACT
    text = re.sub(r"\s+", " ", text).strip()
    if not text:
        return NO_ABSTRACT
    if len(text) > MAX_ABSTRACT_LENGTH:
        return text[:MAX_ABSTRACT_LENGTH].rstrip() + "..."
    return text


def split_categories(raw: str | Iterable[str] | None) -> tuple[str, ...]:
    """Split a comma/space-delimited category string; keep at most three."""
    if not raw:
        return ()
    if not isinstance(raw, str):
        raw = " ".join(raw)
    parts = [p for p in re.split(r"[,\s]+", raw) if p]
    return tuple(parts[:MAX_PREPRINT_CATEGORIES])


def split_list(raw: str | Iterable[str] | None, sep: str = ",") -> tuple[str, ...]:
    if not raw:
        return ()
    items = raw.split(sep) if isinstance(raw, str) else raw
    return tuple(s.strip() for s in items if s and s.strip())


def _text(elem: Element | None) -> str:
    """All text under an element, whitespace-collapsed."""
    if elem is None:
        return ""
    return re.sub(r"\s+", " ", "".join(elem.itertext())).strip()


def _value(data: Mapping[str, Any] | None, *path: str) -> Any:
    """Walk nested mappings (ORCID style ``{"value": ...}`` wrappers included)."""
    current: Any = data
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    if isinstance(current, Mapping) and "value" in current:
        return current["value"]
    return current


def join_location(*parts: str | None) -> str:
    cleaned = [p.strip() for p in parts if p and p.strip()]
    return ", ".join(cleaned)


# =============================================================================
# Tagged payloads
# =============================================================================


class SourcePayload(ABC):
    """A raw record from one source, convertible to one canonical record."""

    source_name: SourceName

    @abstractmethod
    def to_canonical(self) -> CanonicalRecord:
        """Map to the canonical shape; raise ParseError when malformed."""


@dataclass(frozen=True)
class RegistryStudy(SourcePayload):
    """One study from the ClinicalTrials.gov v2 ``/studies`` endpoint."""

    study: Mapping[str, Any]
    source_name: SourceName = SourceName.CLINICAL_TRIALS_GOV

    def to_canonical(self) -> CanonicalTrial:
        protocol = self.study.get("protocolSection")
        if not isinstance(protocol, Mapping):
            raise ParseError("study has no protocolSection", source=self.source_name.value)

        ident = protocol.get("identificationModule") or {}
        nct_id = ident.get("nctId")
        if not nct_id:
            raise ParseError("study has no nctId", source=self.source_name.value)

        status_mod = protocol.get("statusModule") or {}
        design = protocol.get("designModule") or {}
        description = protocol.get("descriptionModule") or {}
        contacts = protocol.get("contactsLocationsModule") or {}
        sponsor_mod = protocol.get("sponsorCollaboratorsModule") or {}

        locations = contacts.get("locations") or []
        if locations:
            first = locations[0]
            location = join_location(first.get("city"), first.get("state"), first.get("country"))
        else:
            location = ""

        officials = contacts.get("overallOfficials") or []
        investigator = officials[0].get("name") if officials else None

        phases = design.get("phases") or []
        phase = parse_phase(" ".join(phases)) if phases else None

        return CanonicalTrial(
            id=nct_id,
            nct_id=nct_id,
            title=ident.get("officialTitle") or ident.get("briefTitle") or "Untitled Study",
            description=description.get("briefSummary") or NO_DESCRIPTION,
            status=parse_status(status_mod.get("overallStatus")) or TrialStatus.UNKNOWN,
            phase=phase or TrialPhase.NOT_APPLICABLE,
            location=location or "Location not specified",
            conditions=tuple((protocol.get("conditionsModule") or {}).get("conditions") or ()),
            start_date=parse_date((status_mod.get("startDateStruct") or {}).get("date")),
            completion_date=parse_date((status_mod.get("completionDateStruct") or {}).get("date")),
            sponsor=(sponsor_mod.get("leadSponsor") or {}).get("name") or NOT_SPECIFIED,
            principal_investigator=investigator or UNKNOWN_INVESTIGATOR,
            source_name=self.source_name,
            url=f"https://clinicaltrials.gov/study/{nct_id}",
        )


@dataclass(frozen=True)
class AactStudy(SourcePayload):
    """One row of the AACT study query (see infrastructure.sources.aact)."""

    row: Mapping[str, Any]
    source_name: SourceName = SourceName.AACT

    def to_canonical(self) -> CanonicalTrial:
        nct_id = self.row.get("nct_id")
        if not nct_id:
            raise ParseError("row has no nct_id", source=self.source_name.value)
        return CanonicalTrial(
            id=nct_id,
            nct_id=nct_id,
            title=self.row.get("brief_title") or self.row.get("official_title") or "Untitled Study",
            description=self.row.get("brief_summary") or NO_DESCRIPTION,
            status=parse_status(self.row.get("overall_status")) or TrialStatus.UNKNOWN,
            phase=parse_phase(self.row.get("phase")) or TrialPhase.NOT_APPLICABLE,
            location=join_location(self.row.get("city"), self.row.get("country")) or "Location not specified",
            conditions=split_list(self.row.get("conditions")),
            start_date=parse_date(self.row.get("start_date")),
            completion_date=parse_date(self.row.get("completion_date")),
            sponsor=self.row.get("sponsor") or NOT_SPECIFIED,
            principal_investigator=self.row.get("investigator") or UNKNOWN_INVESTIGATOR,
            source_name=self.source_name,
            url=f"https://clinicaltrials.gov/study/{nct_id}",
        )


@dataclass(frozen=True)
class LocalTrialRow(SourcePayload):
    row: Mapping[str, Any]
    source_name: SourceName = SourceName.APP

    def to_canonical(self) -> CanonicalTrial:
        trial_id = self.row.get("id")
        title = self.row.get("title")
        if trial_id is None or not title:
            raise ParseError("trial row missing id or title", source=self.source_name.value)
        return CanonicalTrial(
            id=str(trial_id),
            nct_id=self.row.get("nct_id") or None,
            title=title,
            description=self.row.get("description") or NO_DESCRIPTION,
            status=parse_status(self.row.get("status")) or TrialStatus.UNKNOWN,
            phase=parse_phase(self.row.get("phase")) or TrialPhase.NOT_APPLICABLE,
            location=self.row.get("location") or NOT_SPECIFIED,
            conditions=split_list(self.row.get("conditions")),
            start_date=parse_date(self.row.get("start_date")),
            completion_date=parse_date(self.row.get("completion_date")),
            sponsor=self.row.get("institution") or PLATFORM_AFFILIATION,
            principal_investigator=self.row.get("researcher_name") or UNKNOWN_INVESTIGATOR,
            source_name=self.source_name,
        )


@dataclass(frozen=True)
class PubMedArticle(SourcePayload):
    """One ``<PubmedArticle>`` element from efetch."""

    element: Element
    source_name: SourceName = SourceName.PUBMED

    def to_canonical(self) -> CanonicalPublication:
        citation = self.element.find("MedlineCitation")
        if citation is None:
            raise ParseError("article has no MedlineCitation", source=self.source_name.value)
        pmid = _text(citation.find("PMID"))
        article = citation.find("Article")
        if not pmid or article is None:
            raise ParseError("article has no PMID", source=self.source_name.value)

        abstract = " ".join(_text(a) for a in article.findall("Abstract/AbstractText"))

        authors: list[AuthorName] = []
        for author in article.findall("AuthorList/Author"):
            collective = _text(author.find("CollectiveName"))
            if collective:
                authors.append(AuthorName(full_name=collective))
                continue
            family = _text(author.find("LastName")) or None
            given = _text(author.find("ForeName")) or None
            if family or given:
                authors.append(AuthorName(family_name=family, given_name=given))

        pub_date = article.find("Journal/JournalIssue/PubDate")
        published = None
        if pub_date is not None:
            medline = _text(pub_date.find("MedlineDate"))
            published = parse_date(
                medline
                or " ".join(
                    p for p in (_text(pub_date.find(t)) for t in ("Year", "Month", "Day")) if p
                )
            )

        doi = None
        for eloc in article.findall("ELocationID"):
            if eloc.get("EIdType") == "doi":
                doi = _text(eloc)
                break
        if doi is None:
            for aid in self.element.findall("PubmedData/ArticleIdList/ArticleId"):
                if aid.get("IdType") == "doi":
                    doi = _text(aid)
                    break

        return CanonicalPublication(
            id=f"PMID:{pmid}",
            pmid=pmid,
            title=_text(article.find("ArticleTitle")) or "Untitled",
            abstract=truncate_abstract(abstract),
            authors=tuple(authors),
            journal=_text(article.find("Journal/Title")) or None,
            published_date=published,
            doi=doi,
            url=f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/",
            source_name=self.source_name,
        )


@dataclass(frozen=True)
class ArxivEntry(SourcePayload):
    """One Atom ``<entry>`` from the arXiv query API."""

    element: Element
    source_name: SourceName = SourceName.ARXIV

    def to_canonical(self) -> CanonicalPublication:
        raw_id = _text(self.element.find("atom:id", ATOM_NS))
        match = re.search(r"arxiv\.org/abs/(.+)$", raw_id)
        if not match:
            raise ParseError(f"entry id {raw_id!r} is not an arXiv URL", source=self.source_name.value)
        arxiv_id = match.group(1)

        authors = tuple(
            name
            for name in (_text(a.find("atom:name", ATOM_NS)) for a in self.element.findall("atom:author", ATOM_NS))
            if name
        )
        categories = " ".join(
            c.get("term", "") for c in self.element.findall("atom:category", ATOM_NS)
        )
        doi_elem = self.element.find("arxiv:doi", ATOM_NS)
        journal_elem = self.element.find("arxiv:journal_ref", ATOM_NS)

        return CanonicalPublication(
            id=f"arXiv:{arxiv_id}",
            arxiv_id=arxiv_id,
            title=_text(self.element.find("atom:title", ATOM_NS)) or "Untitled",
            abstract=truncate_abstract(_text(self.element.find("atom:summary", ATOM_NS))),
            authors=authors,
            journal=_text(journal_elem) or None,
            published_date=parse_date(_text(self.element.find("atom:published", ATOM_NS))),
            doi=_text(doi_elem) or None,
            url=raw_id,
            categories=split_categories(categories),
            source_name=self.source_name,
        )


@dataclass(frozen=True)
class LocalPublicationRow(SourcePayload):
    row: Mapping[str, Any]
    source_name: SourceName = SourceName.APP

    def to_canonical(self) -> CanonicalPublication:
        pub_id = self.row.get("id")
        title = self.row.get("title")
        if pub_id is None or not title:
            raise ParseError("publication row missing id or title", source=self.source_name.value)
        return CanonicalPublication(
            id=str(pub_id),
            title=title,
            abstract=self.row.get("abstract") or NO_ABSTRACT,
            authors=(self.row.get("researcher_name") or "Unknown",),
            journal=self.row.get("journal") or None,
            published_date=parse_date(self.row.get("published_date")),
            doi=self.row.get("doi") or None,
            pmid=self.row.get("pmid") or None,
            url=self.row.get("url") or None,
            source_name=self.source_name,
        )


@dataclass(frozen=True)
class OrcidProfile(SourcePayload):
    """
    One ORCID researcher.

    ``search_row`` is the expanded-search result; ``record`` is the full
    ``/{orcid}/record`` document, or None when that fetch failed (the
    researcher is then built from the search row alone).
    """

    search_row: Mapping[str, Any]
    record: Mapping[str, Any] | None = None
    specialty: str | None = None
    source_name: SourceName = SourceName.ORCID

    def to_canonical(self) -> CanonicalResearcher:
        orcid_id = self.search_row.get("orcid-id")
        if not orcid_id:
            raise ParseError("search row has no orcid-id", source=self.source_name.value)

        given = self.search_row.get("given-names")
        family = self.search_row.get("family-names")
        credit = self.search_row.get("credit-name")
        institutions = self.search_row.get("institution-name") or []
        institution = institutions[0] if institutions else ""
        works_count = 0
        bio = ""
        role = ""
        location = ""

        if self.record:
            person = self.record.get("person") or {}
            name = person.get("name") or {}
            given = _value(name, "given-names") or given
            family = _value(name, "family-name") or family
            credit = _value(name, "credit-name") or credit
            bio = _value(person, "biography", "content") or ""

            summary = self.record.get("activities-summary") or {}
            groups = _value(summary, "employments", "affiliation-group") or []
            if groups:
                summaries = groups[0].get("summaries") or []
                employment = summaries[0].get("employment-summary") if summaries else None
                if employment:
                    org = employment.get("organization") or {}
                    institution = org.get("name") or institution
                    role = employment.get("role-title") or ""
                    address = org.get("address") or {}
                    location = join_location(address.get("city"), address.get("country"))
            works_count = len(_value(summary, "works", "group") or [])

        full_name = credit or " ".join(p for p in (given, family) if p)
        if not full_name:
            raise ParseError(f"profile {orcid_id} has no name", source=self.source_name.value)

        if not bio and institution:
            bio = f"{role + ' at ' if role else 'Researcher at '}{institution}. "
        if works_count > 0:
            bio += f"Published {works_count} research works."

        specialty = self.specialty or "Research"
        return CanonicalResearcher(
            id=f"ORCID:{orcid_id}",
            name=full_name,
            affiliation=institution or NOT_SPECIFIED,
            specialty=specialty,
            specialization=specialty,
            location=location or NOT_SPECIFIED,
            publication_count=works_count,
            bio=bio.strip(),
            url=f"https://orcid.org/{orcid_id}",
            source_name=self.source_name,
        )


def location_from_affiliation(affiliation: str | None) -> str:
    """The last two comma parts of an affiliation ("MIT, Cambridge, MA" -> "Cambridge, MA")."""
    if not affiliation:
        return NOT_SPECIFIED
    parts = [p.strip() for p in affiliation.split(",") if p.strip()]
    if len(parts) >= 2:
        return ", ".join(parts[-2:])
    return affiliation.strip() or NOT_SPECIFIED


@dataclass(frozen=True)
class ScholarAuthor(SourcePayload):
    """An author aggregated from Google Scholar organic results."""

    name: str
    query: str
    appearances: int = 1
    affiliation: str | None = None
    link: str | None = None
    author_id: str | None = None
    source_name: SourceName = field(default=SourceName.GOOGLE_SCHOLAR)

    def to_canonical(self) -> CanonicalResearcher:
        if not self.name or not self.name.strip():
            raise ParseError("author has no name", source=self.source_name.value)
        slug = re.sub(r"\s+", "-", self.name.strip()).lower()
        return CanonicalResearcher(
            id=f"scholar-author-{self.author_id or slug}",
            name=self.name.strip(),
            affiliation=self.affiliation or f"Research Institution ({self.query})",
            specialty=self.query,
            specialization=self.query,
            location=location_from_affiliation(self.affiliation),
            publication_count=self.appearances,
            bio=f"Active researcher in {self.query} field",
            url=self.link or f"https://scholar.google.com/scholar?q={self.name.strip().replace(' ', '+')}",
            source_name=self.source_name,
        )


@dataclass(frozen=True)
class LocalResearcherRow(SourcePayload):
    row: Mapping[str, Any]
    source_name: SourceName = SourceName.APP

    def to_canonical(self) -> CanonicalResearcher:
        researcher_id = self.row.get("id")
        name = self.row.get("name")
        if researcher_id is None or not name:
            raise ParseError("researcher row missing id or name", source=self.source_name.value)
        specialties = split_list(self.row.get("specialties"))
        return CanonicalResearcher(
            id=str(researcher_id),
            name=name,
            affiliation=self.row.get("institution") or PLATFORM_AFFILIATION,
            specialty=specialties[0] if specialties else "Research",
            specialization=", ".join(specialties) if specialties else "Research",
            location=self.row.get("location") or NOT_SPECIFIED,
            publication_count=int(self.row.get("publication_count") or 0),
            trial_count=int(self.row.get("trial_count") or 0),
            bio=self.row.get("bio") or "",
            source_name=self.source_name,
        )


# =============================================================================
# Batch mapping
# =============================================================================


_SHAPE_ERRORS = (AttributeError, TypeError, KeyError, IndexError, ValueError)


def map_records(payloads: Iterable[SourcePayload], source: SourceName | str | None = None) -> list[CanonicalRecord]:
    """
    Map payloads in order, dropping (and logging) the malformed ones.

    A record is malformed when ``to_canonical`` raises ParseError or trips
    over an unexpected shape (``None`` entry, list where a mapping belongs).

    Args:
        payloads: Tagged payloads from one adapter
        source: Source label used in log lines

    Returns:
        Canonical records, one per well-formed payload
    """
    label = source.value if isinstance(source, SourceName) else source
    records: list[CanonicalRecord] = []
    dropped = 0
    for payload in payloads:
        try:
            records.append(payload.to_canonical())
        except ParseError as e:
            dropped += 1
            logger.warning(f"{label or payload.source_name.value}: dropped malformed record: {e}")
        except _SHAPE_ERRORS as e:
            # wrong JSON/XML shape somewhere inside the payload
            dropped += 1
            logger.warning(f"{label or payload.source_name.value}: dropped malformed record: {e!r}")
    if dropped:
        logger.info(f"{label}: mapped {len(records)} records, dropped {dropped}")
    return records
