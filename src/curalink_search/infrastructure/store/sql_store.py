"""
Local relational store (read side).

The surrounding application owns these tables and writes to them; the
search pipeline only reads. Queries are SQLAlchemy Core, executed on a
worker thread via ``asyncio.to_thread``.

Tables:
    researchers      id, name, email, institution, specialties, bio, location, created_at
    clinical_trials  id, nct_id, title, description, status, phase, location,
                     conditions, start_date, completion_date, researcher_id, created_at
    publications     id, title, abstract, journal, published_date, doi, pmid, url,
                     keywords, researcher_id, created_at
    connections      id, user_id, connected_id, status
    follows          follower_id, following_id

``specialties``, ``conditions`` and ``keywords`` are comma-separated text.
``status``/``phase`` hold canonical vocabulary values (RECRUITING, PHASE_2, ...).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import Select

from curalink_search.domain.entities.records import ConnectionStatus
from curalink_search.domain.vocabulary import STATUS_FILTER_EXPANSION, TrialPhase, TrialStatus
from curalink_search.shared.exceptions import ErrorContext, LocalStoreError

logger = logging.getLogger(__name__)

metadata = MetaData()

researchers = Table(
    "researchers",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255)),
    Column("institution", String(255)),
    Column("specialties", Text),
    Column("bio", Text),
    Column("location", String(255)),
    Column("created_at", DateTime, server_default=func.now()),
)

clinical_trials = Table(
    "clinical_trials",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("nct_id", String(32)),
    Column("title", String(512), nullable=False),
    Column("description", Text),
    Column("status", String(64)),
    Column("phase", String(64)),
    Column("location", String(255)),
    Column("conditions", Text),
    Column("start_date", Date),
    Column("completion_date", Date),
    Column("researcher_id", String(64), ForeignKey("researchers.id")),
    Column("created_at", DateTime, server_default=func.now()),
)

publications = Table(
    "publications",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("title", String(512), nullable=False),
    Column("abstract", Text),
    Column("journal", String(255)),
    Column("published_date", Date),
    Column("doi", String(255)),
    Column("pmid", String(32)),
    Column("url", String(512)),
    Column("keywords", Text),
    Column("researcher_id", String(64), ForeignKey("researchers.id")),
    Column("created_at", DateTime, server_default=func.now()),
)

connections = Table(
    "connections",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("user_id", String(64), ForeignKey("researchers.id"), nullable=False),
    Column("connected_id", String(64), ForeignKey("researchers.id"), nullable=False),
    Column("status", String(32), nullable=False),
)

follows = Table(
    "follows",
    metadata,
    Column("follower_id", String(64), primary_key=True),
    Column("following_id", String(64), primary_key=True),
)


@dataclass(frozen=True)
class StoreCriteria:
    """
    Read criteria for one local search.

    Text fields are OR-ed together; location/phase/status are AND-ed on top.
    ``match_text=False`` drops the text match entirely (record type only).
    """

    terms: tuple[str, ...] = ()
    keyword: str | None = None
    name_filter: str | None = None
    location: str | None = None
    phase: TrialPhase | None = None
    status: TrialStatus | None = None
    match_text: bool = True
    limit: int = 10


class LocalStore(Protocol):
    """Read-only access to the application's own records."""

    async def search_trials(self, criteria: StoreCriteria) -> list[Mapping[str, Any]]: ...

    async def search_publications(self, criteria: StoreCriteria) -> list[Mapping[str, Any]]: ...

    async def search_researchers(self, criteria: StoreCriteria) -> list[Mapping[str, Any]]: ...


def _text_match(columns: Sequence[Any], needles: Sequence[str]) -> list[Any]:
    return [col.icontains(needle, autoescape=True) for needle in needles for col in columns]


class SqlLocalStore:
    """SQLAlchemy Core implementation of LocalStore."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, url: str) -> SqlLocalStore:
        kwargs: dict[str, Any] = {"pool_pre_ping": True}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # one shared connection, or every worker thread sees an empty database
                kwargs["poolclass"] = StaticPool
        return cls(create_engine(url, **kwargs))

    @property
    def engine(self) -> Engine:
        return self._engine

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def trials_statement(self, criteria: StoreCriteria) -> Select:
        t, r = clinical_trials, researchers
        stmt = select(
            t,
            r.c.name.label("researcher_name"),
            r.c.institution.label("institution"),
        ).select_from(t.outerjoin(r, t.c.researcher_id == r.c.id))

        if criteria.match_text:
            ors = _text_match([t.c.title, t.c.description, t.c.conditions], criteria.terms)
            if criteria.keyword:
                ors += _text_match([t.c.title, t.c.description, r.c.name], [criteria.keyword])
            if ors:
                stmt = stmt.where(or_(*ors))

        if criteria.location:
            stmt = stmt.where(t.c.location.icontains(criteria.location, autoescape=True))
        if criteria.phase is not None:
            stmt = stmt.where(t.c.phase == criteria.phase.value)
        if criteria.status is not None:
            wanted = STATUS_FILTER_EXPANSION.get(criteria.status, frozenset({criteria.status}))
            stmt = stmt.where(t.c.status.in_(sorted(s.value for s in wanted)))

        return stmt.order_by(t.c.created_at.desc(), t.c.id).limit(criteria.limit)

    def publications_statement(self, criteria: StoreCriteria) -> Select:
        p, r = publications, researchers
        stmt = select(p, r.c.name.label("researcher_name")).select_from(
            p.outerjoin(r, p.c.researcher_id == r.c.id)
        )
        if criteria.match_text:
            ors = _text_match([p.c.title, p.c.abstract, p.c.keywords], criteria.terms)
            if criteria.keyword:
                ors += _text_match([p.c.title, r.c.name], [criteria.keyword])
            if ors:
                stmt = stmt.where(or_(*ors))
        return stmt.order_by(p.c.published_date.desc(), p.c.id).limit(criteria.limit)

    def researchers_statement(self, criteria: StoreCriteria) -> Select:
        r = researchers
        publication_count = (
            select(func.count()).select_from(publications)
            .where(publications.c.researcher_id == r.c.id)
            .scalar_subquery()
        )
        trial_count = (
            select(func.count()).select_from(clinical_trials)
            .where(clinical_trials.c.researcher_id == r.c.id)
            .scalar_subquery()
        )
        stmt = select(
            r,
            publication_count.label("publication_count"),
            trial_count.label("trial_count"),
        )
        if criteria.match_text:
            if criteria.name_filter:
                ors = _text_match([r.c.name, r.c.email, r.c.institution], [criteria.name_filter])
            else:
                ors = _text_match([r.c.specialties, r.c.bio], criteria.terms)
            if ors:
                stmt = stmt.where(or_(*ors))
        return stmt.order_by(r.c.created_at.desc(), r.c.id).limit(criteria.limit)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _execute(self, stmt: Select) -> list[Mapping[str, Any]]:
        with self._engine.connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    async def _run(self, operation: str, stmt: Select) -> list[Mapping[str, Any]]:
        try:
            rows = await asyncio.to_thread(self._execute, stmt)
        except SQLAlchemyError as e:
            logger.exception(f"Local store {operation} failed")
            raise LocalStoreError(
                f"Local store {operation} failed: {e.__class__.__name__}",
                context=ErrorContext(source="APP", operation=operation),
            ) from e
        logger.debug(f"Local store {operation}: {len(rows)} rows")
        return rows

    async def search_trials(self, criteria: StoreCriteria) -> list[Mapping[str, Any]]:
        return await self._run("search_trials", self.trials_statement(criteria))

    async def search_publications(self, criteria: StoreCriteria) -> list[Mapping[str, Any]]:
        return await self._run("search_publications", self.publications_statement(criteria))

    async def search_researchers(self, criteria: StoreCriteria) -> list[Mapping[str, Any]]:
        return await self._run("search_researchers", self.researchers_statement(criteria))

    # -------------------------------------------------------------------------
    # Viewer-relative connection state
    # -------------------------------------------------------------------------

    def _connection_rows(self, viewer_id: str, researcher_ids: Sequence[str]) -> dict[str, ConnectionStatus]:
        c, f = connections, follows
        with self._engine.connect() as conn:
            conn_rows = conn.execute(
                select(c).where(
                    or_(
                        (c.c.user_id == viewer_id) & c.c.connected_id.in_(researcher_ids),
                        (c.c.connected_id == viewer_id) & c.c.user_id.in_(researcher_ids),
                    )
                )
            ).mappings().all()
            followed = set(
                conn.execute(
                    select(f.c.following_id).where(
                        (f.c.follower_id == viewer_id) & f.c.following_id.in_(researcher_ids)
                    )
                ).scalars()
            )

        by_other = {
            (row["connected_id"] if row["user_id"] == viewer_id else row["user_id"]): row for row in conn_rows
        }
        statuses: dict[str, ConnectionStatus] = {}
        for rid in researcher_ids:
            row = by_other.get(rid)
            statuses[rid] = ConnectionStatus(
                status=row["status"] if row else None,
                connection_id=row["id"] if row else None,
                is_sent_by_me=bool(row) and row["user_id"] == viewer_id,
                is_received_by_me=bool(row) and row["connected_id"] == viewer_id,
                is_following=rid in followed,
            )
        return statuses

    async def connection_statuses(self, viewer_id: str, researcher_ids: Sequence[str]) -> dict[str, ConnectionStatus]:
        """Connection/follow state of ``researcher_ids`` relative to ``viewer_id``."""
        if not researcher_ids:
            return {}
        try:
            return await asyncio.to_thread(self._connection_rows, viewer_id, list(researcher_ids))
        except SQLAlchemyError as e:
            raise LocalStoreError(
                f"Local store connection lookup failed: {e.__class__.__name__}",
                context=ErrorContext(source="APP", operation="connection_statuses"),
            ) from e

    def close(self) -> None:
        self._engine.dispose()
