"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.domain.entities.records import (
    CanonicalPublication,
    CanonicalRecord,
    CanonicalResearcher,
    CanonicalTrial,
    SourceName,
)
from curalink_search.domain.vocabulary import TrialPhase, TrialStatus
from curalink_search.infrastructure.sources.base import SourceAdapter

# ============================================================
# Stub adapters
# ============================================================


class StubAdapter(SourceAdapter):
    """SourceAdapter returning canned records, raising, or stalling."""

    def __init__(
        self,
        source_name: SourceName,
        kinds: frozenset[SearchKind],
        records: list[CanonicalRecord] | None = None,
        *,
        error: BaseException | None = None,
        delay: float = 0.0,
        timeout: float = 1.0,
        critical: bool = False,
    ) -> None:
        self.source_name = source_name
        self.kinds = kinds
        self.critical = critical
        self.records = records or []
        self.error = error
        self.delay = delay
        self.timeout = timeout
        self.calls: list[SearchQuery] = []
        self.closed = False

    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.records)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def stub_adapter() -> Callable[..., StubAdapter]:
    """Factory for StubAdapter instances."""
    return StubAdapter


# ============================================================
# Record factories
# ============================================================


@pytest.fixture
def make_trial() -> Callable[..., CanonicalTrial]:
    def _create(
        id: str = "NCT00000001",
        title: str = "Test Trial",
        source_name: SourceName = SourceName.CLINICAL_TRIALS_GOV,
        nct_id: str | None = "__id__",
        status: TrialStatus = TrialStatus.RECRUITING,
        phase: TrialPhase = TrialPhase.PHASE_2,
        **kwargs,
    ) -> CanonicalTrial:
        return CanonicalTrial(
            id=id,
            title=title,
            source_name=source_name,
            nct_id=id if nct_id == "__id__" else nct_id,
            status=status,
            phase=phase,
            **kwargs,
        )

    return _create


@pytest.fixture
def make_publication() -> Callable[..., CanonicalPublication]:
    def _create(
        id: str = "PMID:1",
        title: str = "Test Publication",
        source_name: SourceName = SourceName.PUBMED,
        **kwargs,
    ) -> CanonicalPublication:
        return CanonicalPublication(id=id, title=title, source_name=source_name, **kwargs)

    return _create


@pytest.fixture
def make_researcher() -> Callable[..., CanonicalResearcher]:
    def _create(
        id: str = "r1",
        name: str = "Jane Doe",
        source_name: SourceName = SourceName.ORCID,
        **kwargs,
    ) -> CanonicalResearcher:
        return CanonicalResearcher(id=id, name=name, source_name=source_name, **kwargs)

    return _create


# ============================================================
# Queries
# ============================================================


@pytest.fixture
def trials_query() -> SearchQuery:
    return SearchQuery(kind=SearchKind.TRIALS, terms=("diabetes",), limit=20)


@pytest.fixture
def researchers_query() -> SearchQuery:
    return SearchQuery(kind=SearchKind.RESEARCHERS, terms=("oncology",), limit=30)


# ============================================================
# Mock upstream payloads
# ============================================================


@pytest.fixture
def registry_study() -> dict:
    """One study from the ClinicalTrials.gov v2 API."""
    return {
        "protocolSection": {
            "identificationModule": {
                "nctId": "NCT05123456",
                "briefTitle": "Semaglutide in Type 2 Diabetes",
                "officialTitle": "A Randomized Study of Semaglutide in Adults With Type 2 Diabetes",
            },
            "statusModule": {
                "overallStatus": "RECRUITING",
                "startDateStruct": {"date": "2024-01-15"},
                "completionDateStruct": {"date": "2026-06"},
            },
            "descriptionModule": {"briefSummary": "Testing semaglutide."},
            "designModule": {"phases": ["PHASE2", "PHASE3"]},
            "conditionsModule": {"conditions": ["Type 2 Diabetes", "Obesity"]},
            "sponsorCollaboratorsModule": {"leadSponsor": {"name": "Novo Nordisk"}},
            "contactsLocationsModule": {
                "overallOfficials": [{"name": "Dr. Alice Smith"}],
                "locations": [
                    {"city": "Boston", "state": "Massachusetts", "country": "United States"},
                    {"city": "Toronto", "country": "Canada"},
                ],
            },
        }
    }


PUBMED_EFETCH_XML = """<?xml version="1.0"?>
<PubmedArticleSet>
  <PubmedArticle>
    <MedlineCitation>
      <PMID>38000001</PMID>
      <Article>
        <Journal>
          <JournalIssue><PubDate><Year>2024</Year><Month>Jan</Month><Day>15</Day></PubDate></JournalIssue>
          <Title>Diabetes Care</Title>
        </Journal>
        <ArticleTitle>Semaglutide and glycemic control</ArticleTitle>
        <Abstract>
          <AbstractText Label="BACKGROUND">Background text.</AbstractText>
          <AbstractText Label="RESULTS">Results text.</AbstractText>
        </Abstract>
        <AuthorList>
          <Author><LastName>Smith</LastName><ForeName>John</ForeName></Author>
          <Author><CollectiveName>DIABETES Study Group</CollectiveName></Author>
        </AuthorList>
        <ELocationID EIdType="doi">10.1000/dc.2024.001</ELocationID>
      </Article>
    </MedlineCitation>
  </PubmedArticle>
  <PubmedArticle>
    <MedlineCitation>
      <PMID>38000002</PMID>
      <Article>
        <Journal><Title>Lancet</Title></Journal>
        <ArticleTitle>Second article</ArticleTitle>
      </Article>
    </MedlineCitation>
    <PubmedData>
      <ArticleIdList><ArticleId IdType="doi">10.1016/lancet.2</ArticleId></ArticleIdList>
    </PubmedData>
  </PubmedArticle>
</PubmedArticleSet>
"""

ARXIV_FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <entry>
    <id>http://arxiv.org/abs/2401.01234v2</id>
    <published>2024-01-03T18:00:00Z</published>
    <title>Deep learning for
      diabetic retinopathy</title>
    <summary>We present a model.</summary>
    <author><name>Alice Chen</name></author>
    <author><name>Bob Li</name></author>
    <arxiv:doi>10.48550/arXiv.2401.01234</arxiv:doi>
    <category term="cs.CV"/>
    <category term="cs.LG"/>
    <category term="eess.IV"/>
    <category term="q-bio.QM"/>
  </entry>
  <entry>
    <id>not-an-arxiv-id</id>
    <title>Broken</title>
  </entry>
</feed>
"""


@pytest.fixture
def pubmed_efetch_xml() -> str:
    return PUBMED_EFETCH_XML


@pytest.fixture
def arxiv_feed_xml() -> str:
    return ARXIV_FEED_XML
