"""
In-memory record store.

Entities are kept as immutable snapshots: every write swaps in a new
object, so a transaction can roll back by restoring the dictionaries it
copied on entry. Callers always receive copies.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Dict, Iterable, List, Optional

import structlog

from ..errors import AlreadyMatched, EntityNotFound
from ..models import (
    EntityKind,
    GLEntry,
    MatchRecord,
    MatchStatus,
    OrderForecastLine,
    Period,
    ReconciliationLog,
)
from .base import ReconciliationStore

logger = structlog.get_logger()


class InMemoryReconciliationStore(ReconciliationStore):
    """ID-keyed store backing tests and local runs."""

    def __init__(
        self,
        gl_entries: Iterable[GLEntry] = (),
        forecast_lines: Iterable[OrderForecastLine] = (),
    ):
        self._gl: Dict[str, GLEntry] = {}
        self._forecast: Dict[str, OrderForecastLine] = {}
        self._matches: Dict[str, MatchRecord] = {}
        self._match_by_gl: Dict[str, str] = {}
        self._match_by_forecast: Dict[str, str] = {}
        self._logs: List[ReconciliationLog] = []

        self._tx_lock = asyncio.Lock()
        self._tx_owner: Optional[asyncio.Task] = None

        self.add_gl_entries(gl_entries)
        self.add_forecast_lines(forecast_lines)

    # Seeding (the import pipeline's job in production)

    def add_gl_entries(self, entries: Iterable[GLEntry]) -> None:
        for entry in entries:
            self._gl[entry.id] = replace(entry)

    def add_forecast_lines(self, lines: Iterable[OrderForecastLine]) -> None:
        for line in lines:
            self._forecast[line.id] = replace(line)

    # Record accessors

    async def list_gl_entries(self, period: Period) -> List[GLEntry]:
        entries = [replace(e) for e in self._gl.values() if e.period == period]
        entries.sort(key=lambda e: (e.created_at, e.id))
        return entries

    async def list_forecast_lines(self, period: Period) -> List[OrderForecastLine]:
        lines = [replace(f) for f in self._forecast.values() if f.period == period]
        lines.sort(key=lambda f: (f.created_at, f.id))
        return lines

    async def get_gl_entry(self, entry_id: str) -> Optional[GLEntry]:
        entry = self._gl.get(entry_id)
        return replace(entry) if entry else None

    async def get_forecast_line(self, line_id: str) -> Optional[OrderForecastLine]:
        line = self._forecast.get(line_id)
        return replace(line) if line else None

    # Match records

    async def list_match_records(self, period: Optional[Period] = None) -> List[MatchRecord]:
        records = [
            replace(r) for r in self._matches.values()
            if period is None or r.period == period
        ]
        records.sort(key=lambda r: (r.created_at, r.gl_entry_id))
        return records

    async def find_match_for_gl(self, entry_id: str) -> Optional[MatchRecord]:
        record_id = self._match_by_gl.get(entry_id)
        return replace(self._matches[record_id]) if record_id else None

    async def find_match_for_forecast(self, line_id: str) -> Optional[MatchRecord]:
        record_id = self._match_by_forecast.get(line_id)
        return replace(self._matches[record_id]) if record_id else None

    async def create_match_record(self, record: MatchRecord) -> MatchRecord:
        # Unique constraints on both sides of the pairing
        if record.gl_entry_id in self._match_by_gl:
            raise AlreadyMatched(record.gl_entry_id)
        if record.forecast_line_id in self._match_by_forecast:
            raise AlreadyMatched(record.forecast_line_id)

        stored = replace(record)
        self._matches[stored.id] = stored
        self._match_by_gl[stored.gl_entry_id] = stored.id
        self._match_by_forecast[stored.forecast_line_id] = stored.id
        return replace(stored)

    async def delete_match_record(self, gl_entry_id: str, forecast_line_id: str) -> None:
        record_id = self._match_by_gl.get(gl_entry_id)
        if record_id is None or self._matches[record_id].forecast_line_id != forecast_line_id:
            return

        del self._matches[record_id]
        del self._match_by_gl[gl_entry_id]
        del self._match_by_forecast[forecast_line_id]

    # Entity state

    async def update_entity_status(
        self,
        kind: EntityKind,
        entity_id: str,
        status: MatchStatus,
        linked_id: Optional[str],
    ) -> None:
        if kind is EntityKind.GL_ENTRY:
            entry = self._require(self._gl, kind, entity_id)
            self._gl[entity_id] = replace(entry, status=status, matched_forecast_id=linked_id)
        else:
            line = self._require(self._forecast, kind, entity_id)
            self._forecast[entity_id] = replace(line, status=status, matched_gl_id=linked_id)

    async def set_entity_exclusion(
        self,
        kind: EntityKind,
        entity_id: str,
        excluded: bool,
        reason: Optional[str] = None,
    ) -> None:
        table = self._gl if kind is EntityKind.GL_ENTRY else self._forecast
        entity = self._require(table, kind, entity_id)
        table[entity_id] = replace(
            entity,
            is_excluded=excluded,
            exclusion_reason=reason if excluded else None,
        )

    # Reconciliation log

    async def append_reconciliation_log(self, entry: ReconciliationLog) -> ReconciliationLog:
        self._logs.append(entry)
        return entry

    async def get_reconciliation_log(self, log_id: str) -> Optional[ReconciliationLog]:
        for entry in self._logs:
            if entry.id == log_id:
                return entry
        return None

    async def list_reconciliation_logs(self) -> List[ReconciliationLog]:
        return list(self._logs)

    # Atomicity

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        current = asyncio.current_task()
        if self._tx_owner is not None and self._tx_owner is current:
            # Nested transaction joins the outer one
            yield
            return

        async with self._tx_lock:
            self._tx_owner = current
            snapshot = self._snapshot()
            try:
                yield
            except BaseException:
                self._restore(snapshot)
                logger.debug("Store transaction rolled back")
                raise
            finally:
                self._tx_owner = None

    def _snapshot(self) -> tuple:
        return (
            dict(self._gl),
            dict(self._forecast),
            dict(self._matches),
            dict(self._match_by_gl),
            dict(self._match_by_forecast),
            list(self._logs),
        )

    def _restore(self, snapshot: tuple) -> None:
        (
            self._gl,
            self._forecast,
            self._matches,
            self._match_by_gl,
            self._match_by_forecast,
            self._logs,
        ) = snapshot

    @staticmethod
    def _require(table: Dict, kind: EntityKind, entity_id: str):
        entity = table.get(entity_id)
        if entity is None:
            raise EntityNotFound(kind.value, entity_id)
        return entity
