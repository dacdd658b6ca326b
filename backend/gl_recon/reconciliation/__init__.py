"""Reconciliation engine components."""

from .scoring import MatchScorer, ScoreBreakdown
from .exact import ExactMatcher
from .fuzzy import FuzzyMatcher
from .orchestrator import ReconciliationOrchestrator
from .manual import ManualOverrideHandler
from .summary import AccountSummaryAggregator
from .log_store import ReconciliationLogStore
from .locks import EntityLockRegistry, PeriodLockRegistry

__all__ = [
    "MatchScorer",
    "ScoreBreakdown",
    "ExactMatcher",
    "FuzzyMatcher",
    "ReconciliationOrchestrator",
    "ManualOverrideHandler",
    "AccountSummaryAggregator",
    "ReconciliationLogStore",
    "EntityLockRegistry",
    "PeriodLockRegistry",
]
