"""
HTTP API Server for federated search.

Endpoints:
    GET /api/trials         condition, keyword, location, phase, status, source, page, limit
    GET /api/publications   condition, keyword, source, page, limit
    GET /api/researchers    condition, search, location, source, page, limit
    GET /health

Errors are returned as ``{"error": ..., "suggestion": ...}``:
invalid queries are 400, local store failures are 500.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from curalink_search import __version__
from curalink_search.application.search.query import SearchKind, SearchQuery, normalize_query
from curalink_search.config import Settings
from curalink_search.container import ApplicationContainer
from curalink_search.shared.exceptions import InvalidQueryError, LocalStoreError

logger = logging.getLogger(__name__)


# Pydantic models for API responses
class ErrorResponse(BaseModel):
    """Error response model."""

    error: str
    suggestion: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    sources: list[str]
    cached_responses: int


def build_container(settings: Settings | None = None) -> ApplicationContainer:
    settings = settings or Settings.from_env()
    container = ApplicationContainer()
    container.config.from_dict(settings.to_config())
    return container


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    container: ApplicationContainer = app.state.container
    logger.info("HTTP API server initialized")

    yield

    logger.info("HTTP API server shutting down")
    for adapter in container.adapters():
        await adapter.close()
    container.local_store().close()


def create_api_server(container: ApplicationContainer | None = None) -> FastAPI:
    """
    Create the FastAPI server.

    Args:
        container: Wired container; built from the environment when omitted.

    Returns:
        Configured FastAPI instance.
    """
    app = FastAPI(
        title="Curalink Search API",
        description="Federated search over clinical trials, publications and researchers.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container or build_container()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidQueryError)
    async def invalid_query_handler(request: Request, exc: InvalidQueryError) -> JSONResponse:
        logger.info(f"Rejected {request.url.path}: {exc}")
        body = ErrorResponse(error=str(exc), suggestion=exc.context.suggestion)
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        c: ApplicationContainer = app.state.container
        return HealthResponse(
            status="healthy",
            version=__version__,
            sources=[adapter.name for adapter in c.adapters()],
            cached_responses=len(c.cache_store()),
        )

    @app.get("/api/trials", responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def search_trials(
        condition: str | None = Query(default=None, description="Comma-separated conditions"),
        keyword: str | None = Query(default=None),
        location: str | None = Query(default=None, description="e.g. 'Boston, USA' (country is used)"),
        phase: str | None = Query(default=None, description="e.g. PHASE_2, 'Phase 2', all"),
        status: str | None = Query(default=None, description="e.g. RECRUITING, all"),
        source: str | None = Query(default=None, description="all, internal, or a source name"),
        page: str | None = Query(default=None),
        limit: str | None = Query(default=None),
    ) -> JSONResponse:
        query = normalize_query(
            SearchKind.TRIALS,
            condition=condition,
            keyword=keyword,
            location=location,
            phase=phase,
            status=status,
            source=source,
            page=page,
            limit=limit,
        )
        return await _run_search(app, query)

    @app.get("/api/publications", responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def search_publications(
        condition: str | None = Query(default=None),
        keyword: str | None = Query(default=None),
        source: str | None = Query(default=None),
        page: str | None = Query(default=None),
        limit: str | None = Query(default=None),
    ) -> JSONResponse:
        query = normalize_query(
            SearchKind.PUBLICATIONS,
            condition=condition,
            keyword=keyword,
            source=source,
            page=page,
            limit=limit,
        )
        return await _run_search(app, query)

    @app.get("/api/researchers", responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def search_researchers(
        condition: str | None = Query(default=None),
        search: str | None = Query(default=None, description="Name, email or institution"),
        location: str | None = Query(default=None),
        source: str | None = Query(default=None),
        page: str | None = Query(default=None),
        limit: str | None = Query(default=None),
        x_viewer_id: str | None = Header(default=None),
    ) -> JSONResponse:
        query = normalize_query(
            SearchKind.RESEARCHERS,
            condition=condition,
            search=search,
            location=location,
            source=source,
            page=page,
            limit=limit,
        )
        return await _run_search(app, query, viewer=x_viewer_id)

    return app


async def _run_search(app: FastAPI, query: SearchQuery, viewer: str | None = None) -> JSONResponse:
    service = app.state.container.search_service()
    try:
        envelope = await service.search(query, viewer=viewer)
    except LocalStoreError as e:
        logger.error(f"{query.kind.value} search failed: {e}")
        body = ErrorResponse(error=f"Failed to fetch {query.kind.value}").model_dump()
        body[query.kind.value] = []
        return JSONResponse(status_code=500, content=body)
    return JSONResponse(content=envelope)


def run_api_server(settings: Settings | None = None) -> None:
    """Run the API server with uvicorn (blocking)."""
    import uvicorn

    settings = settings or Settings.from_env()
    app = create_api_server(build_container(settings))
    logger.info(f"Starting Curalink Search API on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
