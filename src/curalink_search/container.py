"""
Application DI Container (dependency-injector).

Builds the search pipeline once per process: the local store, every source
adapter, the response cache, the orchestrator and the search service. No
pipeline component reaches for a module-level client.

Usage::

    from curalink_search.config import Settings
    from curalink_search.container import ApplicationContainer

    container = ApplicationContainer()
    container.config.from_dict(Settings.from_env().to_config())

    service = container.search_service()

    # In tests, override any provider:
    container.local_store.override(providers.Object(fake_store))
"""

from __future__ import annotations

import logging

from dependency_injector import containers, providers

from curalink_search.application.search.orchestrator import FanOutOrchestrator
from curalink_search.application.search.service import FederatedSearchService
from curalink_search.infrastructure.cache.entity_cache import EntityCache
from curalink_search.infrastructure.cache.response_cache import InMemoryCacheStore, ResponseCache
from curalink_search.infrastructure.sources.aact import AactAdapter
from curalink_search.infrastructure.sources.arxiv import ArxivAdapter
from curalink_search.infrastructure.sources.base import SourceAdapter
from curalink_search.infrastructure.sources.clinical_trials import ClinicalTrialsAdapter
from curalink_search.infrastructure.sources.fallback import FallbackAdapter
from curalink_search.infrastructure.sources.internal import InternalStoreAdapter
from curalink_search.infrastructure.sources.orcid import OrcidAdapter
from curalink_search.infrastructure.sources.pubmed import UPSTREAM_TTL, PubMedAdapter
from curalink_search.infrastructure.sources.scholar import GoogleScholarAdapter
from curalink_search.infrastructure.store.sql_store import SqlLocalStore

logger = logging.getLogger(__name__)


def _create_trial_registry(timeout: float, aact_database_url: str | None) -> SourceAdapter:
    """Registry adapter, wrapped with the AACT fallback when it is configured."""
    registry = ClinicalTrialsAdapter(timeout=timeout)
    if not aact_database_url:
        logger.info("AACT_DATABASE_URL not set, ClinicalTrials.gov runs without fallback")
        return registry
    return FallbackAdapter(registry, AactAdapter.from_url(aact_database_url, timeout=timeout))


def _collect_adapters(*adapters: SourceAdapter) -> list[SourceAdapter]:
    return list(adapters)


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the federated search pipeline.

    - ``local_store``: SQLAlchemy read access to the application's records
    - ``adapters``: internal store first, then one adapter per provider
    - ``response_cache``: cache-aside store for assembled responses
    - ``search_service``: the end-to-end entry point
    """

    config = providers.Configuration()

    local_store = providers.Singleton(SqlLocalStore.from_url, config.database_url)

    upstream_cache = providers.Singleton(EntityCache, max_size=500, ttl=UPSTREAM_TTL)

    internal_adapter = providers.Singleton(
        InternalStoreAdapter,
        store=local_store,
        timeout=config.source_timeout,
    )

    trials_adapter = providers.Singleton(
        _create_trial_registry,
        timeout=config.source_timeout,
        aact_database_url=config.aact_database_url,
    )

    pubmed_adapter = providers.Singleton(
        PubMedAdapter,
        email=config.ncbi_email,
        api_key=config.ncbi_api_key,
        timeout=config.source_timeout,
        cache=upstream_cache,
    )

    arxiv_adapter = providers.Singleton(ArxivAdapter, timeout=config.source_timeout)

    orcid_adapter = providers.Singleton(OrcidAdapter, timeout=config.source_timeout)

    scholar_adapter = providers.Singleton(
        GoogleScholarAdapter,
        api_key=config.serpapi_key,
        timeout=config.source_timeout,
    )

    adapters = providers.Singleton(
        _collect_adapters,
        internal_adapter,
        trials_adapter,
        pubmed_adapter,
        arxiv_adapter,
        orcid_adapter,
        scholar_adapter,
    )

    orchestrator = providers.Singleton(FanOutOrchestrator, adapters=adapters)

    cache_store = providers.Singleton(InMemoryCacheStore, max_entries=config.cache_max_entries)

    response_cache = providers.Singleton(ResponseCache, store=cache_store)

    search_service = providers.Singleton(
        FederatedSearchService,
        orchestrator=orchestrator,
        cache=response_cache,
        connection_resolver=local_store.provided.connection_statuses,
    )


__all__ = ["ApplicationContainer"]
