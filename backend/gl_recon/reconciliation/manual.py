"""
Manual Override Handler - human-directed matches outside the automatic run.

Every operation takes the per-entity locks of the ids it touches and then
re-checks state inside one store transaction, so a race with another
override or an automatic run fails with a domain error instead of
overwriting a pairing.
"""

from typing import Iterable, List, Optional, Union

import structlog

from ..config import Settings, get_settings
from ..errors import AlreadyMatched, EntityNotFound, ExcludedEntity, NotMatched
from ..models import (
    AuditAction,
    AuditEntry,
    EntityKind,
    GLEntry,
    MatchMethod,
    MatchRecord,
    MatchStatus,
    OrderForecastLine,
)
from ..storage import ReconciliationStore
from ..utils.audit_logger import AuditLogger
from .locks import EntityLockRegistry

logger = structlog.get_logger()

Entity = Union[GLEntry, OrderForecastLine]


def _lock_key(kind: EntityKind, entity_id: str) -> str:
    return f"{kind.value}:{entity_id}"


class ManualOverrideHandler:
    """Apply and reverse manual matches, and manage exclusions."""

    def __init__(
        self,
        store: ReconciliationStore,
        settings: Optional[Settings] = None,
        entity_locks: Optional[EntityLockRegistry] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.entity_locks = entity_locks or EntityLockRegistry()
        self.audit = AuditLogger(
            "manual-overrides", self.settings, self.settings.override_audit_max_entries
        )

    async def manual_match(
        self,
        gl_entry_id: str,
        forecast_line_id: str,
        initiator: str = "user",
    ) -> MatchRecord:
        """
        Pair a GL entry with a forecast line by hand.

        Raises:
            EntityNotFound: either id is unknown
            ExcludedEntity: either side is excluded from reconciliation
            AlreadyMatched: either side already has an active match record
        """
        keys = [
            _lock_key(EntityKind.GL_ENTRY, gl_entry_id),
            _lock_key(EntityKind.FORECAST_LINE, forecast_line_id),
        ]
        async with self.entity_locks.hold(keys):
            async with self.store.transaction():
                gl = await self._require(EntityKind.GL_ENTRY, gl_entry_id)
                forecast = await self._require(EntityKind.FORECAST_LINE, forecast_line_id)

                for entity in (gl, forecast):
                    if entity.is_excluded:
                        raise ExcludedEntity(entity.id)

                existing = await self.store.find_match_for_gl(gl_entry_id)
                if existing is not None:
                    raise AlreadyMatched(gl_entry_id, existing.forecast_line_id)
                existing = await self.store.find_match_for_forecast(forecast_line_id)
                if existing is not None:
                    raise AlreadyMatched(forecast_line_id, existing.gl_entry_id)

                record = await self.store.create_match_record(MatchRecord(
                    gl_entry_id=gl_entry_id,
                    forecast_line_id=forecast_line_id,
                    method=MatchMethod.MANUAL,
                    score=1.0,
                    period=gl.period,
                    created_by=initiator,
                ))
                await self.store.update_entity_status(
                    EntityKind.GL_ENTRY, gl_entry_id, MatchStatus.MATCHED_MANUAL, forecast_line_id
                )
                await self.store.update_entity_status(
                    EntityKind.FORECAST_LINE, forecast_line_id, MatchStatus.MATCHED_MANUAL, gl_entry_id
                )

        self.audit.log(AuditEntry(
            action=AuditAction.MANUAL_MATCH,
            entity_ids=[gl_entry_id, forecast_line_id],
            period=str(gl.period),
            message=f"Manual match by {initiator}",
            details={"account_code": gl.account_code, "amount_difference": gl.amount - forecast.amount},
        ))
        return record

    async def unmatch(
        self,
        gl_entry_id: str,
        forecast_line_id: str,
        initiator: str = "user",
    ) -> MatchRecord:
        """
        Remove exactly the active pairing between the two ids.

        Works for records of any method; both entities return to unmatched.

        Returns:
            The deleted match record

        Raises:
            NotMatched: the two ids are not currently paired with each other
        """
        keys = [
            _lock_key(EntityKind.GL_ENTRY, gl_entry_id),
            _lock_key(EntityKind.FORECAST_LINE, forecast_line_id),
        ]
        async with self.entity_locks.hold(keys):
            async with self.store.transaction():
                record = await self.store.find_match_for_gl(gl_entry_id)
                if record is None or record.forecast_line_id != forecast_line_id:
                    raise NotMatched(gl_entry_id, forecast_line_id)

                await self.store.delete_match_record(gl_entry_id, forecast_line_id)
                await self.store.update_entity_status(
                    EntityKind.GL_ENTRY, gl_entry_id, MatchStatus.UNMATCHED, None
                )
                await self.store.update_entity_status(
                    EntityKind.FORECAST_LINE, forecast_line_id, MatchStatus.UNMATCHED, None
                )

        self.audit.log(AuditEntry(
            action=AuditAction.UNMATCH,
            entity_ids=[gl_entry_id, forecast_line_id],
            period=str(record.period) if record.period else None,
            message=f"Unmatched by {initiator}",
            details={"method": record.method.value, "score": record.score},
        ))
        return record

    async def set_exclusion(
        self,
        kind: Union[str, EntityKind],
        entity_ids: Iterable[str],
        excluded: bool,
        reason: Optional[str] = None,
    ) -> List[Entity]:
        """
        Flag entities as excluded from reconciliation, or clear the flag.

        All ids are updated together or not at all. Matched entities must
        be unmatched before they can be excluded.
        """
        kind = EntityKind(kind)
        ids = list(dict.fromkeys(entity_ids))

        async with self.entity_locks.hold(_lock_key(kind, i) for i in ids):
            async with self.store.transaction():
                for entity_id in ids:
                    await self._require(kind, entity_id)
                    if excluded:
                        record = await self._find_match(kind, entity_id)
                        if record is not None:
                            raise AlreadyMatched(entity_id)
                    await self.store.set_entity_exclusion(kind, entity_id, excluded, reason)

                updated = [await self.store.get_entity(kind, i) for i in ids]

        self.audit.log(AuditEntry(
            action=AuditAction.EXCLUSION_CHANGED,
            entity_ids=ids,
            message=f"{'Excluded' if excluded else 'Included'} {len(ids)} {kind.value} records",
            details={"excluded": excluded, "reason": reason},
        ))
        return updated

    async def _require(self, kind: EntityKind, entity_id: str) -> Entity:
        entity = await self.store.get_entity(kind, entity_id)
        if entity is None:
            raise EntityNotFound(kind.value, entity_id)
        return entity

    async def _find_match(self, kind: EntityKind, entity_id: str) -> Optional[MatchRecord]:
        if kind is EntityKind.GL_ENTRY:
            return await self.store.find_match_for_gl(entity_id)
        return await self.store.find_match_for_forecast(entity_id)
