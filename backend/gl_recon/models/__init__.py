"""Data models for the GL reconciliation engine."""

from .enums import (
    AuditAction,
    EntityKind,
    MatchMethod,
    MatchStatus,
    ReconciliationMode,
)
from .ledger import (
    Period,
    GLEntry,
    OrderForecastLine,
)
from .reconciliation import (
    MatchedPair,
    MatchRecord,
    AuditEntry,
    ReconciliationCounts,
    ReconciliationLog,
    ReconciliationResult,
    AccountSummary,
    ReconciliationStatistics,
)

__all__ = [
    # Enums
    "AuditAction",
    "EntityKind",
    "MatchMethod",
    "MatchStatus",
    "ReconciliationMode",
    # Ledger
    "Period",
    "GLEntry",
    "OrderForecastLine",
    # Reconciliation
    "MatchedPair",
    "MatchRecord",
    "AuditEntry",
    "ReconciliationCounts",
    "ReconciliationLog",
    "ReconciliationResult",
    "AccountSummary",
    "ReconciliationStatistics",
]
