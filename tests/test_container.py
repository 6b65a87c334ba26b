"""Tests for the DI container wiring."""

from __future__ import annotations

from dependency_injector import providers

from curalink_search.api.server import build_container
from curalink_search.application.search.service import FederatedSearchService
from curalink_search.config import Settings
from curalink_search.infrastructure.sources.clinical_trials import ClinicalTrialsAdapter
from curalink_search.infrastructure.sources.fallback import FallbackAdapter
from curalink_search.infrastructure.sources.internal import InternalStoreAdapter
from curalink_search.infrastructure.store.sql_store import SqlLocalStore


class TestApplicationContainer:
    def test_config(self):
        container = build_container(Settings(database_url="sqlite://", source_timeout=3.0))
        assert container.config.database_url() == "sqlite://"
        assert container.config.source_timeout() == 3.0

    def test_adapters_internal_first(self):
        container = build_container(Settings(database_url="sqlite://", source_timeout=3.0))
        adapters = container.adapters()
        assert isinstance(adapters[0], InternalStoreAdapter)
        assert isinstance(adapters[1], ClinicalTrialsAdapter)
        assert all(adapter.timeout == 3.0 for adapter in adapters)
        assert container.orchestrator().adapters == adapters

    def test_singletons(self):
        container = build_container(Settings(database_url="sqlite://"))
        assert container.search_service() is container.search_service()
        assert isinstance(container.search_service(), FederatedSearchService)
        assert isinstance(container.local_store(), SqlLocalStore)
        assert container.pubmed_adapter()._cache is container.upstream_cache()

    def test_aact_fallback_when_configured(self):
        settings = Settings(database_url="sqlite://", aact_database_url="sqlite:///aact-unused.db")
        container = build_container(settings)
        trials = container.trials_adapter()
        assert isinstance(trials, FallbackAdapter)
        assert trials.secondary.name == "AACT"

    def test_override_provider(self):
        container = build_container(Settings(database_url="sqlite://"))
        fake_store = object()
        with container.local_store.override(providers.Object(fake_store)):
            assert container.local_store() is fake_store
