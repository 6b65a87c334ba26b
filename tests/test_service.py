"""
Tests for FederatedSearchService (fan-out -> filter -> dedup -> rank -> paginate -> assemble).
"""

from __future__ import annotations

import pytest

from curalink_search.application.search.assembler import FILTER_MISS_MESSAGE
from curalink_search.application.search.orchestrator import FanOutOrchestrator
from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.application.search.service import FederatedSearchService, filter_external_trials
from curalink_search.domain.entities.records import ConnectionStatus, SourceName
from curalink_search.domain.vocabulary import TrialPhase, TrialStatus
from curalink_search.infrastructure.cache.response_cache import InMemoryCacheStore, ResponseCache
from curalink_search.infrastructure.sources.fallback import FallbackAdapter
from curalink_search.shared.exceptions import LocalStoreError, SourceUnavailableError

TRIALS = frozenset({SearchKind.TRIALS})
RESEARCHERS = frozenset({SearchKind.RESEARCHERS})


def build_service(*adapters, resolver=None) -> tuple[FederatedSearchService, InMemoryCacheStore]:
    store = InMemoryCacheStore()
    service = FederatedSearchService(
        FanOutOrchestrator(list(adapters)),
        ResponseCache(store),
        connection_resolver=resolver,
    )
    return service, store


# =============================================================================
# Trials
# =============================================================================


class TestTrialSearch:
    @pytest.fixture
    def adapters(self, stub_adapter, make_trial):
        internal = stub_adapter(
            SourceName.APP,
            frozenset(SearchKind),
            [make_trial("local-1", nct_id="NCT00000002", source_name=SourceName.APP, phase=TrialPhase.PHASE_3)],
            critical=True,
        )
        registry = stub_adapter(
            SourceName.CLINICAL_TRIALS_GOV,
            TRIALS,
            [
                make_trial("NCT00000001"),
                make_trial("NCT00000002"),
                make_trial("NCT00000003", phase=TrialPhase.PHASE_3, status=TrialStatus.ACTIVE_NOT_RECRUITING),
            ],
        )
        return internal, registry

    async def test_merged_envelope(self, adapters, trials_query):
        service, _ = build_service(*adapters)
        envelope = await service.search(trials_query)

        ids = [t["id"] for t in envelope["trials"]]
        # internal first; the registry copy of NCT00000002 is merged away
        assert ids == ["local-1", "NCT00000001", "NCT00000003"]
        assert envelope["internal"] == 1
        assert envelope["external"] == 2
        assert envelope["sourceCounts"] == {"APP": 1, "ClinicalTrials.gov": 2}
        assert envelope["pagination"] == {
            "page": 1, "limit": 20, "totalCount": 3, "totalPages": 1, "hasMore": False,
        }
        assert envelope["cached"] is False
        assert "message" not in envelope
        assert "failedSources" not in envelope

    async def test_cache_hit(self, adapters, trials_query):
        internal, registry = adapters
        service, store = build_service(*adapters)

        first = await service.search(trials_query)
        second = await service.search(trials_query)

        assert second["cached"] is True
        assert second["trials"] == first["trials"]
        assert len(registry.calls) == 1
        assert len(store) == 1

    async def test_filters_apply_to_external_only(self, adapters):
        service, _ = build_service(*adapters)
        query = SearchQuery(kind=SearchKind.TRIALS, terms=("diabetes",), phase=TrialPhase.PHASE_3, status=TrialStatus.ACTIVE)
        envelope = await service.search(query)
        assert [t["id"] for t in envelope["trials"]] == ["local-1", "NCT00000003"]

    async def test_filter_miss_message(self, adapters, stub_adapter):
        _, registry = adapters
        service, _ = build_service(registry)
        query = SearchQuery(kind=SearchKind.TRIALS, terms=("diabetes",), phase=TrialPhase.PHASE_4)
        envelope = await service.search(query)
        assert envelope["trials"] == []
        assert envelope["message"] == FILTER_MISS_MESSAGE

    async def test_no_results_message(self, stub_adapter):
        service, _ = build_service(stub_adapter(SourceName.CLINICAL_TRIALS_GOV, TRIALS))
        envelope = await service.search(SearchQuery(kind=SearchKind.TRIALS, terms=("rare disease",)))
        assert envelope["message"] == "No results found for rare disease. Try different keywords."

    async def test_page_past_end(self, adapters):
        service, _ = build_service(*adapters)
        envelope = await service.search(SearchQuery(kind=SearchKind.TRIALS, terms=("diabetes",), page=9, limit=2))
        assert envelope["trials"] == []
        assert envelope["pagination"]["hasMore"] is False
        assert envelope["pagination"]["totalCount"] == 3
        assert "message" not in envelope

    async def test_registry_and_fallback_down(self, adapters, stub_adapter, trials_query):
        internal, _ = adapters
        registry = stub_adapter(SourceName.CLINICAL_TRIALS_GOV, TRIALS, error=SourceUnavailableError("ClinicalTrials.gov", "down"))
        aact = stub_adapter(SourceName.AACT, TRIALS, error=SourceUnavailableError("AACT", "down"))
        service, _ = build_service(internal, FallbackAdapter(registry, aact))

        envelope = await service.search(trials_query)

        assert [t["id"] for t in envelope["trials"]] == ["local-1"]
        assert envelope["failedSources"] == ["ClinicalTrials.gov"]

    async def test_local_store_error_propagates(self, stub_adapter, trials_query):
        internal = stub_adapter(SourceName.APP, frozenset(SearchKind), error=LocalStoreError("down"), critical=True)
        service, store = build_service(internal)
        with pytest.raises(LocalStoreError):
            await service.search(trials_query)
        assert len(store) == 0


def test_filter_external_trials_keeps_other_kinds(make_trial, make_publication):
    query = SearchQuery(kind=SearchKind.TRIALS, status=TrialStatus.COMPLETED)
    records = [make_trial("a"), make_trial("b", status=TrialStatus.COMPLETED), make_publication()]
    assert [r.id for r in filter_external_trials(records, query)] == ["b", "PMID:1"]


# =============================================================================
# Researchers
# =============================================================================


class TestResearcherSearch:
    @pytest.fixture
    def adapters(self, stub_adapter, make_researcher):
        internal = stub_adapter(
            SourceName.APP,
            frozenset(SearchKind),
            [
                make_researcher("u1", "Viewer Self", source_name=SourceName.APP),
                make_researcher("u2", "Ana Silva", source_name=SourceName.APP, location="Lisbon, Portugal"),
            ],
            critical=True,
        )
        orcid = stub_adapter(
            SourceName.ORCID,
            RESEARCHERS,
            [
                make_researcher("0000-1", "ana  silva", publication_count=50),
                make_researcher("0000-2", "Wei Zhang", location="Tokyo, Japan", publication_count=10),
                make_researcher("0000-3", "Tom Baker", location="Boston, United States", publication_count=2),
            ],
        )
        return internal, orcid

    async def test_location_ranking(self, adapters):
        service, _ = build_service(*adapters)
        query = SearchQuery(kind=SearchKind.RESEARCHERS, terms=("oncology",), location="United States", limit=30)
        envelope = await service.search(query)

        names = [r["name"] for r in envelope["researchers"]]
        assert names == ["Viewer Self", "Ana Silva", "Tom Baker", "Wei Zhang"]
        assert envelope["researchers"][2]["locationScore"] == 80
        assert envelope["sortedByLocation"] is True
        assert envelope["internal"] == 2

    async def test_without_location(self, adapters, researchers_query):
        service, _ = build_service(*adapters)
        envelope = await service.search(researchers_query)
        assert [r["id"] for r in envelope["researchers"]][2:] == ["0000-2", "0000-3"]
        assert envelope["sortedByLocation"] is False
        assert "locationScore" not in envelope["researchers"][0]

    async def test_connection_state_for_viewer(self, adapters, researchers_query):
        asked: list[tuple[str, list[str]]] = []

        async def resolver(viewer, ids):
            asked.append((viewer, list(ids)))
            return {"u2": ConnectionStatus(status="accepted", connection_id="c1", is_sent_by_me=True)}

        service, _ = build_service(*adapters, resolver=resolver)
        envelope = await service.search(researchers_query, viewer="u1")

        assert asked == [("u1", ["u2"])]
        by_id = {r["id"]: r for r in envelope["researchers"]}
        assert by_id["u2"]["connectionStatus"] == "accepted"
        assert by_id["u2"]["isSentByMe"] is True
        assert "connectionStatus" not in by_id["u1"]
        assert "connectionStatus" not in by_id["0000-2"]

        # connection state is never written into the shared cache entry
        anonymous = await service.search(researchers_query)
        assert anonymous["cached"] is True
        assert all("connectionStatus" not in r for r in anonymous["researchers"])

    async def test_connection_lookup_failure_keeps_results(self, adapters, researchers_query, caplog):
        async def resolver(viewer, ids):
            raise LocalStoreError("database is locked")

        service, _ = build_service(*adapters, resolver=resolver)
        envelope = await service.search(researchers_query, viewer="u1")

        assert {r["id"] for r in envelope["researchers"]} == {"u1", "u2", "0000-2", "0000-3"}
        assert all("connectionStatus" not in r for r in envelope["researchers"])
        assert "Connection lookup for u1 failed" in caplog.text
