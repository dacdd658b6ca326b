"""Enumerations for the GL reconciliation engine."""

from enum import Enum


class MatchStatus(str, Enum):
    """
    Cached match status of a GL entry or forecast line.

    Derived from the active MatchRecord; never the source of truth.
    """
    UNMATCHED = "unmatched"
    MATCHED_EXACT = "matched_exact"
    MATCHED_FUZZY = "matched_fuzzy"
    MATCHED_MANUAL = "matched_manual"

    @property
    def is_matched(self) -> bool:
        return self is not MatchStatus.UNMATCHED


class MatchMethod(str, Enum):
    """How a match record was produced."""
    EXACT = "exact"
    FUZZY = "fuzzy"
    MANUAL = "manual"

    @property
    def status(self) -> MatchStatus:
        """Entity status implied by a record of this method."""
        return {
            MatchMethod.EXACT: MatchStatus.MATCHED_EXACT,
            MatchMethod.FUZZY: MatchStatus.MATCHED_FUZZY,
            MatchMethod.MANUAL: MatchStatus.MATCHED_MANUAL,
        }[self]


class ReconciliationMode(str, Enum):
    """Requested matching phases for a run."""
    EXACT = "exact"
    FUZZY = "fuzzy"
    BOTH = "both"

    @property
    def includes_exact(self) -> bool:
        return self in (ReconciliationMode.EXACT, ReconciliationMode.BOTH)

    @property
    def includes_fuzzy(self) -> bool:
        return self in (ReconciliationMode.FUZZY, ReconciliationMode.BOTH)


class EntityKind(str, Enum):
    """The two reconciled record kinds."""
    GL_ENTRY = "gl_entry"
    FORECAST_LINE = "forecast_line"


class AuditAction(str, Enum):
    """Type of audit action."""
    RUN_STARTED = "run_started"
    EXACT_MATCH = "exact_match"
    FUZZY_MATCH = "fuzzy_match"
    MATCH_COMMITTED = "match_committed"
    MATCH_SKIPPED = "match_skipped"
    MATCH_COMPENSATED = "match_compensated"
    RUN_COMPLETED = "run_completed"
    RUN_ABORTED = "run_aborted"
    MANUAL_MATCH = "manual_match"
    UNMATCH = "unmatch"
    EXCLUSION_CHANGED = "exclusion_changed"
