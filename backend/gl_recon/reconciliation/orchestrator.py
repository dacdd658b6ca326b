"""
Reconciliation Orchestrator - Main pipeline coordinator.

Runs one reconciliation for a period:
1. Read GL entries and forecast lines for the period
2. Set aside excluded and already matched records
3. Exact matching (modes exact / both)
4. Fuzzy matching over the exact residuals (modes fuzzy / both)
5. Persist new pairs in small committed batches
6. Append one reconciliation log row
"""

import time
from typing import List, Optional, Sequence, Set, Tuple, Union
from uuid import uuid4

import structlog

from ..config import Settings, get_settings
from ..errors import InvalidPeriod, StoreFailure
from ..models import (
    AuditAction,
    AuditEntry,
    EntityKind,
    GLEntry,
    MatchedPair,
    MatchMethod,
    MatchRecord,
    MatchStatus,
    OrderForecastLine,
    Period,
    ReconciliationCounts,
    ReconciliationLog,
    ReconciliationMode,
    ReconciliationResult,
)
from ..models.ledger import utcnow
from ..storage import ReconciliationStore
from ..utils.audit_logger import AuditLogger
from .exact import ExactMatcher
from .fuzzy import FuzzyMatcher
from .locks import PeriodLockRegistry
from .log_store import ReconciliationLogStore

logger = structlog.get_logger()


class ReconciliationOrchestrator:
    """
    Main orchestrator for period reconciliation.

    Holds an exclusive lock per period for the whole run; runs for different
    periods proceed in parallel.
    """

    def __init__(
        self,
        store: ReconciliationStore,
        settings: Optional[Settings] = None,
        period_locks: Optional[PeriodLockRegistry] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.exact_matcher = ExactMatcher()
        self.fuzzy_matcher = FuzzyMatcher(self.settings)
        self.log_store = ReconciliationLogStore(store)
        self.period_locks = period_locks or PeriodLockRegistry()
        self.batch_size = self.settings.persist_batch_size

    async def run(
        self,
        period: Union[str, Period],
        mode: Union[str, ReconciliationMode] = ReconciliationMode.BOTH,
        initiator: str = "system",
    ) -> ReconciliationResult:
        """
        Execute one reconciliation run.

        Args:
            period: Fiscal period as ``YYYY-MM``
            mode: exact, fuzzy or both
            initiator: Who requested the run, recorded in the log

        Returns:
            ReconciliationResult with counts, pairs and the log id

        Raises:
            InvalidPeriod: malformed period or no records in it
            ConcurrentRunConflict: a run is already active for the period
            StoreFailure: persistence failed; the run left no match records
        """
        period = Period.parse(period)
        mode = ReconciliationMode(mode)

        async with self.period_locks.hold(period):
            return await self._run_locked(period, mode, initiator)

    async def _run_locked(
        self,
        period: Period,
        mode: ReconciliationMode,
        initiator: str,
    ) -> ReconciliationResult:
        start_time = time.monotonic()
        result = ReconciliationResult(period=period, mode=mode)
        audit = AuditLogger(f"run-{uuid4()}", self.settings)

        audit.log(AuditEntry(
            action=AuditAction.RUN_STARTED,
            period=str(period),
            message=f"Reconciliation started for {period} ({mode.value})",
            details={"initiator": initiator, **self.settings.scoring_snapshot()},
        ))

        gl_entries = await self.store.list_gl_entries(period)
        forecast_lines = await self.store.list_forecast_lines(period)
        if not gl_entries and not forecast_lines:
            raise InvalidPeriod(str(period), "no GL entries or forecast lines")

        existing = await self._existing_matches(gl_entries, forecast_lines)
        candidate_gl, candidate_forecast = self._candidates(
            gl_entries, forecast_lines, existing
        )

        # Phase: matching
        proposed: List[MatchedPair] = []
        residual_gl: Sequence[GLEntry] = candidate_gl
        residual_forecast: Sequence[OrderForecastLine] = candidate_forecast

        if mode.includes_exact:
            exact_result = self.exact_matcher.match(residual_gl, residual_forecast)
            proposed.extend(exact_result.pairs)
            audit.log_many(exact_result.audit_entries)
            residual_gl = exact_result.residual_gl
            residual_forecast = exact_result.residual_forecast

        if mode.includes_fuzzy:
            fuzzy_result = self.fuzzy_matcher.match(residual_gl, residual_forecast)
            proposed.extend(fuzzy_result.pairs)
            audit.log_many(fuzzy_result.audit_entries)

        # Phase: persistence (all-or-nothing per run)
        committed: List[MatchedPair] = []
        committed_records: List[MatchRecord] = []
        try:
            await self._persist(period, proposed, initiator, audit, committed, committed_records)

            committed_gl_ids = {p.gl_entry_id for p in committed}
            committed_forecast_ids = {p.forecast_line_id for p in committed}
            result.pairs = committed
            result.already_matched_pairs = [r.as_pair() for r in existing]
            result.unmatched_gl_ids = [
                e.id for e in candidate_gl if e.id not in committed_gl_ids
            ]
            result.unmatched_forecast_ids = [
                f.id for f in candidate_forecast if f.id not in committed_forecast_ids
            ]
            result.counts = ReconciliationCounts(
                matched_exact=sum(1 for p in committed if p.method is MatchMethod.EXACT),
                matched_fuzzy=sum(1 for p in committed if p.method is MatchMethod.FUZZY),
                already_matched=len(existing),
                unmatched_gl=len(result.unmatched_gl_ids),
                unmatched_forecast=len(result.unmatched_forecast_ids),
                total_gl=len(gl_entries),
                total_forecast=len(forecast_lines),
            )

            log = await self.log_store.append(ReconciliationLog(
                period=period,
                mode=mode,
                counts=result.counts,
                initiator=initiator,
                settings=self.settings.scoring_snapshot(),
            ))
        except Exception as e:
            logger.exception(
                "Reconciliation failed",
                period=str(period),
                mode=mode.value,
                committed=len(committed_records),
            )
            audit.log(AuditEntry(
                action=AuditAction.RUN_ABORTED,
                period=str(period),
                message=f"Reconciliation aborted for {period}",
                success=False,
                error_message=str(e),
            ))
            await self._compensate(committed_records, audit)
            raise

        result.log_id = log.id
        result.completed_at = utcnow()

        audit.log(AuditEntry(
            action=AuditAction.RUN_COMPLETED,
            period=str(period),
            message=f"Reconciliation completed for {period}",
            details={
                "matched_exact": result.counts.matched_exact,
                "matched_fuzzy": result.counts.matched_fuzzy,
                "already_matched": result.counts.already_matched,
                "log_id": log.id,
            },
        ))
        result.audit_log = list(audit.entries)

        logger.info(
            "Reconciliation complete",
            period=str(period),
            mode=mode.value,
            matched_exact=result.counts.matched_exact,
            matched_fuzzy=result.counts.matched_fuzzy,
            already_matched=result.counts.already_matched,
            unmatched_gl=result.counts.unmatched_gl,
            unmatched_forecast=result.counts.unmatched_forecast,
            time=round(time.monotonic() - start_time, 3),
        )

        return result

    async def _existing_matches(
        self,
        gl_entries: Sequence[GLEntry],
        forecast_lines: Sequence[OrderForecastLine],
    ) -> List[MatchRecord]:
        """Active records touching any record of the period, either side."""
        gl_ids = {e.id for e in gl_entries}
        forecast_ids = {f.id for f in forecast_lines}
        records = await self.store.list_match_records()
        return [
            r for r in records
            if r.gl_entry_id in gl_ids or r.forecast_line_id in forecast_ids
        ]

    @staticmethod
    def _candidates(
        gl_entries: Sequence[GLEntry],
        forecast_lines: Sequence[OrderForecastLine],
        existing: Sequence[MatchRecord],
    ) -> Tuple[List[GLEntry], List[OrderForecastLine]]:
        """Records open to automatic matching: not excluded, not matched."""
        matched_gl: Set[str] = {r.gl_entry_id for r in existing}
        matched_forecast: Set[str] = {r.forecast_line_id for r in existing}
        return (
            [e for e in gl_entries if not e.is_excluded and e.id not in matched_gl],
            [f for f in forecast_lines if not f.is_excluded and f.id not in matched_forecast],
        )

    async def _persist(
        self,
        period: Period,
        pairs: Sequence[MatchedPair],
        initiator: str,
        audit: AuditLogger,
        committed: List[MatchedPair],
        committed_records: List[MatchRecord],
    ) -> None:
        """
        Write pairs in committed batches.

        Each batch is one store transaction. A pair whose side was claimed
        since the read (a concurrent manual override) is skipped.
        """
        for start in range(0, len(pairs), self.batch_size):
            batch = pairs[start:start + self.batch_size]
            batch_pairs: List[MatchedPair] = []
            batch_records: List[MatchRecord] = []

            async with self.store.transaction():
                for pair in batch:
                    record = await self._commit_pair(period, pair, initiator, audit)
                    if record is not None:
                        batch_pairs.append(pair)
                        batch_records.append(record)

            committed.extend(batch_pairs)
            committed_records.extend(batch_records)

            audit.log(AuditEntry(
                action=AuditAction.MATCH_COMMITTED,
                entity_ids=[r.gl_entry_id for r in batch_records],
                period=str(period),
                message=f"Committed batch of {len(batch_records)} matches",
                details={"batch_start": start, "batch_size": len(batch)},
            ))

    async def _commit_pair(
        self,
        period: Period,
        pair: MatchedPair,
        initiator: str,
        audit: AuditLogger,
    ) -> Optional[MatchRecord]:
        claimed_gl = await self.store.find_match_for_gl(pair.gl_entry_id)
        claimed_forecast = await self.store.find_match_for_forecast(pair.forecast_line_id)
        if claimed_gl is not None or claimed_forecast is not None:
            audit.log(AuditEntry(
                action=AuditAction.MATCH_SKIPPED,
                entity_ids=[pair.gl_entry_id, pair.forecast_line_id],
                period=str(period),
                message="Pair skipped: a side was matched concurrently",
                success=False,
            ))
            return None

        record = await self.store.create_match_record(
            MatchRecord.from_pair(pair, period=period, created_by=initiator)
        )
        status = pair.method.status
        await self.store.update_entity_status(
            EntityKind.GL_ENTRY, pair.gl_entry_id, status, pair.forecast_line_id
        )
        await self.store.update_entity_status(
            EntityKind.FORECAST_LINE, pair.forecast_line_id, status, pair.gl_entry_id
        )
        return record

    async def _compensate(
        self,
        records: Sequence[MatchRecord],
        audit: AuditLogger,
    ) -> None:
        """
        Remove the records an aborted run already committed.

        A record replaced since commit (unmatched, then re-paired by a manual
        override) belongs to its new owner and is left alone.
        """
        if not records:
            return

        removed: List[MatchRecord] = []
        try:
            async with self.store.transaction():
                for record in records:
                    current = await self.store.find_match_for_gl(record.gl_entry_id)
                    if current is None or current.id != record.id:
                        audit.log(AuditEntry(
                            action=AuditAction.MATCH_SKIPPED,
                            entity_ids=[record.gl_entry_id, record.forecast_line_id],
                            message="Rollback skipped: pairing changed after commit",
                            success=False,
                        ))
                        continue

                    await self.store.delete_match_record(
                        record.gl_entry_id, record.forecast_line_id
                    )
                    await self.store.update_entity_status(
                        EntityKind.GL_ENTRY, record.gl_entry_id, MatchStatus.UNMATCHED, None
                    )
                    await self.store.update_entity_status(
                        EntityKind.FORECAST_LINE, record.forecast_line_id, MatchStatus.UNMATCHED, None
                    )
                    removed.append(record)
        except Exception as e:
            logger.exception("Compensation failed", records=len(records))
            raise StoreFailure(
                f"Run aborted and {len(records)} committed matches could not be rolled back"
            ) from e

        audit.log(AuditEntry(
            action=AuditAction.MATCH_COMPENSATED,
            entity_ids=[r.gl_entry_id for r in removed],
            message=f"Rolled back {len(removed)} matches of aborted run",
        ))
