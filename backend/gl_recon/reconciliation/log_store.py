"""
Reconciliation Log Store - append-only history of reconciliation runs.

Rows are immutable once written; there is no update or delete.
"""

from typing import List, Optional

import structlog

from ..models import (
    Period,
    ReconciliationCounts,
    ReconciliationLog,
    ReconciliationStatistics,
)
from ..storage import ReconciliationStore

logger = structlog.get_logger()

SORT_FIELDS = ("executed_at", "period")


class ReconciliationLogStore:
    """Query and append access to reconciliation logs."""

    def __init__(self, store: ReconciliationStore):
        self.store = store

    async def append(self, entry: ReconciliationLog) -> ReconciliationLog:
        saved = await self.store.append_reconciliation_log(entry)
        logger.info(
            "Reconciliation log appended",
            log_id=saved.id,
            period=str(saved.period),
            mode=saved.mode.value,
            initiator=saved.initiator,
        )
        return saved

    async def get(self, log_id: str) -> Optional[ReconciliationLog]:
        return await self.store.get_reconciliation_log(log_id)

    async def list(
        self,
        period: Optional[str] = None,
        period_from: Optional[str] = None,
        period_to: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        sort_by: str = "executed_at",
        descending: bool = True,
    ) -> List[ReconciliationLog]:
        """
        Filter, sort and page through the logs.

        Period bounds are inclusive and given as ``YYYY-MM``.
        """
        if sort_by not in SORT_FIELDS:
            raise ValueError(f"sort_by must be one of {SORT_FIELDS}")

        logs = await self._filtered(period, period_from, period_to)
        # Stable tie-break keeps equal timestamps in insertion order
        if sort_by == "period":
            logs.sort(key=lambda log: (log.period, log.executed_at), reverse=descending)
        else:
            logs.sort(key=lambda log: log.executed_at, reverse=descending)

        return logs[offset:offset + limit]

    async def count(
        self,
        period: Optional[str] = None,
        period_from: Optional[str] = None,
        period_to: Optional[str] = None,
    ) -> int:
        return len(await self._filtered(period, period_from, period_to))

    async def latest(self, period: Optional[str] = None) -> Optional[ReconciliationLog]:
        """Most recent run, optionally within one period."""
        logs = await self._filtered(period, None, None)
        if not logs:
            return None
        # Later insertion wins on equal timestamps
        return max(enumerate(logs), key=lambda item: (item[1].executed_at, item[0]))[1]

    async def statistics(self) -> ReconciliationStatistics:
        """Aggregate counts across every run."""
        logs = await self.store.list_reconciliation_logs()
        if not logs:
            return ReconciliationStatistics()

        # Pooled over every run, same definition as a single log's match rate
        totals = ReconciliationCounts(
            matched_exact=sum(log.counts.matched_exact for log in logs),
            matched_fuzzy=sum(log.counts.matched_fuzzy for log in logs),
            unmatched_gl=sum(log.counts.unmatched_gl for log in logs),
            unmatched_forecast=sum(log.counts.unmatched_forecast for log in logs),
        )

        return ReconciliationStatistics(
            total_executions=len(logs),
            total_matched_exact=totals.matched_exact,
            total_matched_fuzzy=totals.matched_fuzzy,
            total_unmatched=totals.unmatched_gl + totals.unmatched_forecast,
            average_match_rate=totals.match_rate,
            last_execution_at=max(log.executed_at for log in logs),
        )

    async def _filtered(
        self,
        period: Optional[str],
        period_from: Optional[str],
        period_to: Optional[str],
    ) -> List[ReconciliationLog]:
        exact = Period.parse(period) if period else None
        lower = Period.parse(period_from) if period_from else None
        upper = Period.parse(period_to) if period_to else None

        logs = await self.store.list_reconciliation_logs()
        return [
            log for log in logs
            if (exact is None or log.period == exact)
            and (lower is None or log.period >= lower)
            and (upper is None or log.period <= upper)
        ]
