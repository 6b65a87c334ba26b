"""
Controlled vocabularies for trial phase and status.

Upstream providers spell the same phase or status many ways ("Phase 2",
"PHASE2", "Phase 1/Phase 2", "Active, not recruiting", ...). Every spelling is
resolved here, in one table per field, and the same tables are used when
ingesting records and when matching user-supplied filters.
"""

from __future__ import annotations

import re
from enum import Enum


class TrialStatus(Enum):
    """Canonical recruitment status of a clinical trial."""

    RECRUITING = "RECRUITING"
    ACTIVE = "ACTIVE"
    ACTIVE_NOT_RECRUITING = "ACTIVE_NOT_RECRUITING"
    COMPLETED = "COMPLETED"
    TERMINATED = "TERMINATED"
    SUSPENDED = "SUSPENDED"
    WITHDRAWN = "WITHDRAWN"
    ENROLLING_BY_INVITATION = "ENROLLING_BY_INVITATION"
    NOT_YET_RECRUITING = "NOT_YET_RECRUITING"
    UNKNOWN = "UNKNOWN"


class TrialPhase(Enum):
    """Canonical clinical trial phase."""

    EARLY_PHASE_1 = "EARLY_PHASE_1"
    PHASE_1 = "PHASE_1"
    PHASE_2 = "PHASE_2"
    PHASE_3 = "PHASE_3"
    PHASE_4 = "PHASE_4"
    NOT_APPLICABLE = "NOT_APPLICABLE"


# Upstream spelling (normalized by _vocab_key) -> canonical value
STATUS_ALIASES: dict[str, TrialStatus] = {
    "RECRUITING": TrialStatus.RECRUITING,
    "ACTIVE": TrialStatus.ACTIVE,
    "ACTIVE_NOT_RECRUITING": TrialStatus.ACTIVE_NOT_RECRUITING,
    "COMPLETED": TrialStatus.COMPLETED,
    "TERMINATED": TrialStatus.TERMINATED,
    "SUSPENDED": TrialStatus.SUSPENDED,
    "WITHDRAWN": TrialStatus.WITHDRAWN,
    "ENROLLING_BY_INVITATION": TrialStatus.ENROLLING_BY_INVITATION,
    "NOT_YET_RECRUITING": TrialStatus.NOT_YET_RECRUITING,
    "UNKNOWN": TrialStatus.UNKNOWN,
    "UNKNOWN_STATUS": TrialStatus.UNKNOWN,
    # AACT legacy vocabulary
    "AVAILABLE": TrialStatus.RECRUITING,
    "TEMPORARILY_NOT_AVAILABLE": TrialStatus.SUSPENDED,
    "NO_LONGER_AVAILABLE": TrialStatus.COMPLETED,
    "APPROVED_FOR_MARKETING": TrialStatus.COMPLETED,
    "WITHHELD": TrialStatus.WITHDRAWN,
}

PHASE_ALIASES: dict[str, TrialPhase] = {
    "EARLY_PHASE_1": TrialPhase.EARLY_PHASE_1,
    "EARLY_PHASE1": TrialPhase.EARLY_PHASE_1,
    "PHASE_0": TrialPhase.EARLY_PHASE_1,
    "PHASE0": TrialPhase.EARLY_PHASE_1,
    "PHASE_1": TrialPhase.PHASE_1,
    "PHASE1": TrialPhase.PHASE_1,
    "PHASE_2": TrialPhase.PHASE_2,
    "PHASE2": TrialPhase.PHASE_2,
    "PHASE_3": TrialPhase.PHASE_3,
    "PHASE3": TrialPhase.PHASE_3,
    "PHASE_4": TrialPhase.PHASE_4,
    "PHASE4": TrialPhase.PHASE_4,
    "NOT_APPLICABLE": TrialPhase.NOT_APPLICABLE,
    "NA": TrialPhase.NOT_APPLICABLE,
    "N_A": TrialPhase.NOT_APPLICABLE,
    "NOT_SPECIFIED": TrialPhase.NOT_APPLICABLE,
}

# Upstream display strings (ClinicalTrials.gov v1 / AACT) for each canonical value
STATUS_LABELS: dict[TrialStatus, str] = {
    TrialStatus.RECRUITING: "Recruiting",
    TrialStatus.ACTIVE: "Active",
    TrialStatus.ACTIVE_NOT_RECRUITING: "Active, not recruiting",
    TrialStatus.COMPLETED: "Completed",
    TrialStatus.TERMINATED: "Terminated",
    TrialStatus.SUSPENDED: "Suspended",
    TrialStatus.WITHDRAWN: "Withdrawn",
    TrialStatus.ENROLLING_BY_INVITATION: "Enrolling by invitation",
    TrialStatus.NOT_YET_RECRUITING: "Not yet recruiting",
    TrialStatus.UNKNOWN: "Unknown status",
}

PHASE_LABELS: dict[TrialPhase, str] = {
    TrialPhase.EARLY_PHASE_1: "Early Phase 1",
    TrialPhase.PHASE_1: "Phase 1",
    TrialPhase.PHASE_2: "Phase 2",
    TrialPhase.PHASE_3: "Phase 3",
    TrialPhase.PHASE_4: "Phase 4",
    TrialPhase.NOT_APPLICABLE: "Not Applicable",
}

# A status filter also accepts these neighbouring statuses
STATUS_FILTER_EXPANSION: dict[TrialStatus, frozenset[TrialStatus]] = {
    TrialStatus.ACTIVE: frozenset({TrialStatus.ACTIVE, TrialStatus.ACTIVE_NOT_RECRUITING}),
}


def _vocab_key(value: str) -> str:
    """Collapse case, punctuation and whitespace: 'Active, not recruiting' -> 'ACTIVE_NOT_RECRUITING'."""
    key = value.strip().upper().replace("/", "_")
    key = re.sub(r"[^A-Z0-9]+", "_", key)
    return key.strip("_")


def parse_status(value: str | None) -> TrialStatus | None:
    """Resolve an upstream or user status string; None when unrecognised or empty."""
    if not value:
        return None
    return STATUS_ALIASES.get(_vocab_key(value))


def parse_phase(value: str | None) -> TrialPhase | None:
    """
    Resolve an upstream or user phase string.

    Combined phases ("Phase 1/Phase 2", ["PHASE1", "PHASE2"] joined) resolve to
    the most advanced phase listed.
    """
    if not value:
        return None
    key = _vocab_key(value)
    if key in PHASE_ALIASES:
        return PHASE_ALIASES[key]

    found = [phase for token, phase in PHASE_ALIASES.items() if re.search(rf"(^|_){token}($|_)", key)]
    if not found:
        return None
    staged = [phase for phase in found if phase is not TrialPhase.NOT_APPLICABLE]
    if not staged:
        return TrialPhase.NOT_APPLICABLE
    return max(staged, key=list(TrialPhase).index)


def status_matches(status: TrialStatus, wanted: TrialStatus) -> bool:
    """Check a record status against a filter, honouring filter expansion."""
    return status in STATUS_FILTER_EXPANSION.get(wanted, frozenset({wanted}))


def status_label(status: TrialStatus) -> str:
    return STATUS_LABELS[status]


def phase_label(phase: TrialPhase) -> str:
    return PHASE_LABELS[phase]
