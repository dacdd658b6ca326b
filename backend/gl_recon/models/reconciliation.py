"""Reconciliation result models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import uuid4

from .enums import AuditAction, MatchMethod, ReconciliationMode
from .ledger import Period, utcnow


@dataclass(frozen=True)
class MatchedPair:
    """A pairing proposed by a matcher, before persistence."""
    gl_entry_id: str
    forecast_line_id: str
    method: MatchMethod
    score: float
    amount_difference: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gl_entry_id": self.gl_entry_id,
            "forecast_line_id": self.forecast_line_id,
            "method": self.method.value,
            "score": self.score,
        }


@dataclass
class MatchRecord:
    """
    The persisted pairing between one GL entry and one forecast line.
    Single source of truth for "is matched".
    """
    gl_entry_id: str
    forecast_line_id: str
    method: MatchMethod
    score: float = 1.0
    period: Optional[Period] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    created_by: str = "system"

    @classmethod
    def from_pair(
        cls,
        pair: MatchedPair,
        period: Optional[Period] = None,
        created_by: str = "system",
    ) -> "MatchRecord":
        return cls(
            gl_entry_id=pair.gl_entry_id,
            forecast_line_id=pair.forecast_line_id,
            method=pair.method,
            score=pair.score,
            period=period,
            created_by=created_by,
        )

    def as_pair(self) -> MatchedPair:
        return MatchedPair(
            gl_entry_id=self.gl_entry_id,
            forecast_line_id=self.forecast_line_id,
            method=self.method,
            score=self.score,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "gl_entry_id": self.gl_entry_id,
            "forecast_line_id": self.forecast_line_id,
            "method": self.method.value,
            "score": self.score,
            "period": str(self.period) if self.period else None,
            "created_at": self.created_at.isoformat(),
            "created_by": self.created_by,
        }


@dataclass
class AuditEntry:
    """An entry in the audit trail of a run or override."""
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utcnow)

    # Action
    action: AuditAction = AuditAction.RUN_STARTED

    # Context
    entity_ids: List[str] = field(default_factory=list)
    period: Optional[str] = None

    # Details
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    # Outcome
    success: bool = True
    error_message: Optional[str] = None


@dataclass(frozen=True)
class ReconciliationCounts:
    """Aggregate counts of one run."""
    matched_exact: int = 0
    matched_fuzzy: int = 0
    already_matched: int = 0
    unmatched_gl: int = 0
    unmatched_forecast: int = 0
    total_gl: int = 0
    total_forecast: int = 0

    @property
    def newly_matched(self) -> int:
        return self.matched_exact + self.matched_fuzzy

    @property
    def match_rate(self) -> float:
        """Percentage of this run's candidates that the run matched."""
        processed = self.newly_matched + self.unmatched_gl + self.unmatched_forecast
        if processed == 0:
            return 0.0
        return (self.newly_matched / processed) * 100


@dataclass(frozen=True)
class ReconciliationLog:
    """Immutable audit row written once per orchestrator run."""
    period: Period
    mode: ReconciliationMode
    counts: ReconciliationCounts
    initiator: str = "system"
    settings: Dict[str, float] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    executed_at: datetime = field(default_factory=utcnow)

    @property
    def match_rate(self) -> float:
        return self.counts.match_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "period": str(self.period),
            "mode": self.mode.value,
            "matched_exact": self.counts.matched_exact,
            "matched_fuzzy": self.counts.matched_fuzzy,
            "already_matched": self.counts.already_matched,
            "unmatched_gl": self.counts.unmatched_gl,
            "unmatched_forecast": self.counts.unmatched_forecast,
            "total_gl": self.counts.total_gl,
            "total_forecast": self.counts.total_forecast,
            "initiator": self.initiator,
            "settings": dict(self.settings),
            "executed_at": self.executed_at.isoformat(),
        }


@dataclass
class ReconciliationResult:
    """Complete result of a reconciliation run."""
    period: Period
    mode: ReconciliationMode
    counts: ReconciliationCounts = field(default_factory=ReconciliationCounts)

    # Pairs created by this run, then pairs found already matched
    pairs: List[MatchedPair] = field(default_factory=list)
    already_matched_pairs: List[MatchedPair] = field(default_factory=list)

    # Leftovers
    unmatched_gl_ids: List[str] = field(default_factory=list)
    unmatched_forecast_ids: List[str] = field(default_factory=list)

    # Audit
    log_id: Optional[str] = None
    audit_log: List[AuditEntry] = field(default_factory=list)

    # Timing
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


@dataclass
class AccountSummary:
    """Matched/unmatched totals of one account code in a period."""
    account_code: str
    account_name: Optional[str] = None
    matched_amount: int = 0
    unmatched_amount: int = 0
    matched_count: int = 0
    unmatched_count: int = 0
    forecast_amount: int = 0
    forecast_count: int = 0

    @property
    def gl_amount(self) -> int:
        return self.matched_amount + self.unmatched_amount

    @property
    def difference(self) -> int:
        """GL total minus forecast total for the account."""
        return self.gl_amount - self.forecast_amount


@dataclass(frozen=True)
class ReconciliationStatistics:
    """Totals across every logged run."""
    total_executions: int = 0
    total_matched_exact: int = 0
    total_matched_fuzzy: int = 0
    total_unmatched: int = 0
    average_match_rate: float = 0.0
    last_execution_at: Optional[datetime] = None
