"""Wiring of the engine components around one record store."""

from typing import Optional

from .config import Settings, get_settings
from .reconciliation import (
    AccountSummaryAggregator,
    ManualOverrideHandler,
    ReconciliationLogStore,
    ReconciliationOrchestrator,
)
from .storage import ReconciliationStore


class ReconciliationEngine:
    """
    One orchestrator, override handler, aggregator and log store sharing a
    store. Lock registries live on the components, so two engines over the
    same store do not serialize against each other.
    """

    def __init__(self, store: ReconciliationStore, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.store = store
        self.orchestrator = ReconciliationOrchestrator(store, self.settings)
        self.overrides = ManualOverrideHandler(store, self.settings)
        self.summaries = AccountSummaryAggregator(store)
        self.logs = ReconciliationLogStore(store)
