"""
AACT Adapter - Aggregate Analysis of ClinicalTrials.gov (PostgreSQL).

Documentation: https://aact.ctti-clinicaltrials.org/

Secondary trial source, used only as the sequential fallback of the
registry adapter (see FallbackAdapter). Unlike the registry API, AACT
filters phase, status and location server-side.

Queries are synchronous SQLAlchemy Core and run in a worker thread so the
event loop is never blocked.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from curalink_search.application.search.mapper import AactStudy, map_records
from curalink_search.application.search.query import SearchKind, SearchQuery
from curalink_search.domain.entities.records import CanonicalRecord, SourceName
from curalink_search.domain.vocabulary import (
    STATUS_FILTER_EXPANSION,
    TrialPhase,
    TrialStatus,
    phase_label,
    status_label,
)
from curalink_search.shared.exceptions import ErrorContext, SourceUnavailableError

from .base import DEFAULT_SOURCE_TIMEOUT, SourceAdapter

logger = logging.getLogger(__name__)

_SELECT = """
SELECT
    s.nct_id,
    s.brief_title,
    s.official_title,
    s.overall_status,
    s.phase,
    s.start_date,
    s.completion_date,
    bs.description AS brief_summary,
    (SELECT STRING_AGG(DISTINCT c.name, ', ') FROM conditions c WHERE c.nct_id = s.nct_id) AS conditions,
    (SELECT f.city FROM facilities f WHERE f.nct_id = s.nct_id ORDER BY f.id LIMIT 1) AS city,
    (SELECT f.country FROM facilities f WHERE f.nct_id = s.nct_id ORDER BY f.id LIMIT 1) AS country,
    (SELECT sp.name FROM sponsors sp
      WHERE sp.nct_id = s.nct_id AND sp.lead_or_collaborator = 'lead' LIMIT 1) AS sponsor,
    (SELECT o.name FROM overall_officials o WHERE o.nct_id = s.nct_id ORDER BY o.id LIMIT 1) AS investigator
FROM studies s
LEFT JOIN brief_summaries bs ON s.nct_id = bs.nct_id
"""


def _status_values(status: TrialStatus) -> list[str]:
    """Both AACT vocabularies: legacy labels and upper-case enum names, lower-cased."""
    wanted = STATUS_FILTER_EXPANSION.get(status, frozenset({status}))
    values: set[str] = set()
    for s in wanted:
        values.add(status_label(s).lower())
        values.add(s.value.lower())
    return sorted(values)


def _phase_patterns(phase: TrialPhase) -> list[str]:
    """LIKE patterns for "Phase 2" and "PHASE2" spellings (also inside "Phase 1/Phase 2")."""
    label = phase_label(phase).lower()
    return [f"%{label}%", f"%{label.replace(' ', '')}%"]


def build_statement(query: SearchQuery, limit: int) -> tuple[TextClause, dict[str, Any]]:
    """
    Build the AACT study query for a trial search.

    Returns:
        (statement, bind parameters)
    """
    clauses: list[str] = []
    params: dict[str, Any] = {"limit": limit, "offset": 0}
    expanding: list[str] = []

    if query.terms:
        term_clauses = []
        for i, term in enumerate(query.terms):
            term_clauses.append(f"LOWER(c.name) LIKE :cond_{i}")
            params[f"cond_{i}"] = f"%{term.lower()}%"
        clauses.append(
            "EXISTS (SELECT 1 FROM conditions c WHERE c.nct_id = s.nct_id AND ("
            + " OR ".join(term_clauses)
            + "))"
        )

    if query.status is not None:
        clauses.append("LOWER(s.overall_status) IN :statuses")
        params["statuses"] = _status_values(query.status)
        expanding.append("statuses")

    if query.phase is not None:
        if query.phase is TrialPhase.NOT_APPLICABLE:
            clauses.append("(s.phase IS NULL OR LOWER(s.phase) IN ('n/a', 'na', 'not applicable'))")
        else:
            patterns = _phase_patterns(query.phase)
            clauses.append("(LOWER(s.phase) LIKE :phase_0 OR LOWER(s.phase) LIKE :phase_1)")
            params["phase_0"], params["phase_1"] = patterns

    if query.location:
        clauses.append(
            "EXISTS (SELECT 1 FROM facilities f WHERE f.nct_id = s.nct_id "
            "AND (LOWER(f.country) LIKE :location OR LOWER(f.city) LIKE :location))"
        )
        params["location"] = f"%{query.location.lower()}%"

    sql = _SELECT
    if clauses:
        sql += "WHERE " + " AND ".join(clauses) + "\n"
    sql += "ORDER BY s.last_update_posted_date DESC NULLS LAST\nLIMIT :limit OFFSET :offset"

    statement = text(sql)
    if expanding:
        statement = statement.bindparams(*(bindparam(name, expanding=True) for name in expanding))
    return statement, params


class AactAdapter(SourceAdapter):
    """Trial search over an AACT PostgreSQL database."""

    source_name = SourceName.AACT
    kinds = frozenset({SearchKind.TRIALS})

    def __init__(self, engine: Engine, timeout: float = DEFAULT_SOURCE_TIMEOUT) -> None:
        self._engine = engine
        self.timeout = timeout

    @classmethod
    def from_url(cls, url: str, timeout: float = DEFAULT_SOURCE_TIMEOUT) -> AactAdapter:
        engine = create_engine(
            url,
            pool_size=5,
            max_overflow=5,
            pool_timeout=timeout,
            pool_pre_ping=True,
            connect_args={"connect_timeout": int(timeout)},
        )
        return cls(engine, timeout=timeout)

    def _run_query(self, statement: TextClause, params: dict[str, Any]) -> list[Mapping[str, Any]]:
        with self._engine.connect() as conn:
            return [dict(row) for row in conn.execute(statement, params).mappings()]

    async def fetch(self, query: SearchQuery) -> list[CanonicalRecord]:
        if not query.terms:
            return []

        statement, params = build_statement(query, limit=query.limit * 2)
        try:
            rows = await asyncio.to_thread(self._run_query, statement, params)
        except SQLAlchemyError as e:
            raise SourceUnavailableError(
                self.name,
                f"query failed: {e.__class__.__name__}",
                context=ErrorContext(operation="fetch", input_value=query.condition),
            ) from e

        logger.debug(f"AACT returned {len(rows)} studies for {query.condition!r}")
        return map_records((AactStudy(r) for r in rows), self.source_name)

    async def close(self) -> None:
        await asyncio.to_thread(self._engine.dispose)
