"""Tests for the FastAPI HTTP surface."""

from __future__ import annotations

from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from curalink_search import __version__
from curalink_search.api.server import build_container, create_api_server
from curalink_search.application.search.query import SearchKind
from curalink_search.config import Settings
from curalink_search.domain.entities.records import SourceName
from curalink_search.infrastructure.sources.internal import InternalStoreAdapter
from curalink_search.infrastructure.store.sql_store import SqlLocalStore, clinical_trials, metadata
from curalink_search.shared.exceptions import LocalStoreError


@pytest.fixture
def container():
    return build_container(Settings(database_url="sqlite://"))


@pytest.fixture
def local_store():
    store = SqlLocalStore.from_url("sqlite://")
    metadata.create_all(store.engine)
    with store.engine.begin() as conn:
        conn.execute(
            clinical_trials.insert(),
            [
                {"id": "t1", "title": "Insulin pump study", "conditions": "Diabetes", "status": "RECRUITING",
                 "phase": "PHASE_2", "created_at": datetime(2024, 1, 1)},
            ],
        )
    yield store
    store.close()


@pytest.fixture
def internal_only_client(container, local_store):
    """API wired to the in-memory store as its only source."""
    container.local_store.override(providers.Object(local_store))
    container.adapters.override(providers.Object([InternalStoreAdapter(local_store)]))
    return TestClient(create_api_server(container))


@pytest.fixture
def service_mock(container):
    service = AsyncMock()
    service.search.return_value = {"researchers": [], "cached": False}
    container.search_service.override(providers.Object(service))
    return service


# =============================================================================
# Health
# =============================================================================


def test_health(container):
    response = TestClient(create_api_server(container)).get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["version"] == __version__
    assert body["sources"] == ["APP", "ClinicalTrials.gov", "PubMed", "arXiv", "ORCID", "Google Scholar"]
    assert body["cached_responses"] == 0


# =============================================================================
# Search endpoints
# =============================================================================


class TestTrialsEndpoint:
    def test_search(self, internal_only_client):
        response = internal_only_client.get("/api/trials", params={"condition": "diabetes"})
        assert response.status_code == 200
        body = response.json()
        assert [t["id"] for t in body["trials"]] == ["t1"]
        assert body["trials"][0]["isInternal"] is True
        assert body["internal"] == 1
        assert body["source"] == "all"

    def test_second_call_cached(self, internal_only_client):
        internal_only_client.get("/api/trials", params={"condition": "Diabetes"})
        response = internal_only_client.get("/api/trials", params={"condition": "diabetes"})
        assert response.json()["cached"] is True

    def test_missing_condition(self, container, stub_adapter):
        stub = stub_adapter(SourceName.CLINICAL_TRIALS_GOV, frozenset({SearchKind.TRIALS}))
        container.adapters.override(providers.Object([stub]))
        client = TestClient(create_api_server(container))

        response = client.get("/api/trials")

        assert response.status_code == 400
        body = response.json()
        assert "Condition or keyword parameter is required" in body["error"]
        assert body["suggestion"]
        assert stub.calls == []

    @pytest.mark.parametrize(
        "params",
        [
            {"condition": "x", "phase": "Phase 9"},
            {"condition": "x", "status": "sleeping"},
            {"condition": "x", "limit": "abc"},
            {"condition": "x", "page": "0"},
            {"condition": "x", "source": "PubMed"},
        ],
    )
    def test_invalid_parameter(self, internal_only_client, params):
        response = internal_only_client.get("/api/trials", params=params)
        assert response.status_code == 400
        assert response.json()["suggestion"].startswith("Expected")

    def test_local_store_failure(self, container, service_mock):
        service_mock.search.side_effect = LocalStoreError("down")
        client = TestClient(create_api_server(container))
        response = client.get("/api/trials", params={"condition": "diabetes"})
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch trials", "suggestion": None, "trials": []}


class TestResearchersEndpoint:
    def test_viewer_header(self, container, service_mock):
        client = TestClient(create_api_server(container))
        response = client.get(
            "/api/researchers",
            params={"condition": "oncology", "location": "Boston, USA"},
            headers={"X-Viewer-Id": "u1"},
        )
        assert response.status_code == 200
        query = service_mock.search.await_args.args[0]
        assert query.location == "USA"
        assert query.limit == 30
        assert service_mock.search.await_args.kwargs["viewer"] == "u1"

    def test_search_param_only(self, container, service_mock):
        client = TestClient(create_api_server(container))
        assert client.get("/api/researchers", params={"search": "Jane"}).status_code == 200
        assert service_mock.search.await_args.args[0].name_filter == "Jane"


class TestPublicationsEndpoint:
    def test_source_selector(self, container, service_mock):
        client = TestClient(create_api_server(container))
        client.get("/api/publications", params={"keyword": "crispr", "source": "arxiv"})
        assert service_mock.search.await_args.args[0].source == "arXiv"
