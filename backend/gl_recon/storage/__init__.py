"""Record store contract and backings."""

from .base import ReconciliationStore
from .memory import InMemoryReconciliationStore

__all__ = ["ReconciliationStore", "InMemoryReconciliationStore"]
