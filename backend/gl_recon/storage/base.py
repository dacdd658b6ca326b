"""
Record store contract consumed by the reconciliation engine.

The engine depends only on this interface. Backings are swappable: the
in-memory store serves tests and local use, a durable store serves
production.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, List, Optional

from ..models import (
    EntityKind,
    GLEntry,
    MatchRecord,
    MatchStatus,
    OrderForecastLine,
    Period,
    ReconciliationLog,
)


class ReconciliationStore(ABC):
    """
    Abstract async record store.

    Writes issued inside ``transaction()`` are applied atomically: either all
    of them persist or none do. Implementations raise ``StoreFailure`` for
    persistence errors.
    """

    # Record accessors

    @abstractmethod
    async def list_gl_entries(self, period: Period) -> List[GLEntry]:
        """All GL entries of the period, any status."""

    @abstractmethod
    async def list_forecast_lines(self, period: Period) -> List[OrderForecastLine]:
        """All forecast lines of the period, any status."""

    @abstractmethod
    async def get_gl_entry(self, entry_id: str) -> Optional[GLEntry]:
        ...

    @abstractmethod
    async def get_forecast_line(self, line_id: str) -> Optional[OrderForecastLine]:
        ...

    # Match records

    @abstractmethod
    async def list_match_records(self, period: Optional[Period] = None) -> List[MatchRecord]:
        """Active match records, optionally restricted to a period."""

    @abstractmethod
    async def find_match_for_gl(self, entry_id: str) -> Optional[MatchRecord]:
        ...

    @abstractmethod
    async def find_match_for_forecast(self, line_id: str) -> Optional[MatchRecord]:
        ...

    @abstractmethod
    async def create_match_record(self, record: MatchRecord) -> MatchRecord:
        ...

    @abstractmethod
    async def delete_match_record(self, gl_entry_id: str, forecast_line_id: str) -> None:
        ...

    # Entity state

    @abstractmethod
    async def update_entity_status(
        self,
        kind: EntityKind,
        entity_id: str,
        status: MatchStatus,
        linked_id: Optional[str],
    ) -> None:
        """Set the cached status and link of a GL entry or forecast line."""

    @abstractmethod
    async def set_entity_exclusion(
        self,
        kind: EntityKind,
        entity_id: str,
        excluded: bool,
        reason: Optional[str] = None,
    ) -> None:
        ...

    # Reconciliation log (append-only)

    @abstractmethod
    async def append_reconciliation_log(self, entry: ReconciliationLog) -> ReconciliationLog:
        ...

    @abstractmethod
    async def get_reconciliation_log(self, log_id: str) -> Optional[ReconciliationLog]:
        ...

    @abstractmethod
    async def list_reconciliation_logs(self) -> List[ReconciliationLog]:
        """Every log row, in insertion order."""

    # Atomicity

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """Group writes so they commit or roll back together."""

    async def get_entity(self, kind: EntityKind, entity_id: str):
        """Fetch a GL entry or forecast line by kind."""
        if kind is EntityKind.GL_ENTRY:
            return await self.get_gl_entry(entity_id)
        return await self.get_forecast_line(entity_id)
