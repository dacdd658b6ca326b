"""Domain errors raised by the reconciliation engine."""

from typing import Optional


class ReconciliationError(Exception):
    """Base class for all engine errors."""


class InvalidPeriod(ReconciliationError):
    """Period is malformed or holds no records."""

    def __init__(self, period: str, reason: str = "malformed period"):
        self.period = period
        self.reason = reason
        super().__init__(f"Invalid period {period!r}: {reason}")


class EntityNotFound(ReconciliationError):
    """A GL entry or forecast line id does not exist."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id!r} not found")


class AlreadyMatched(ReconciliationError):
    """An id already carries an active match record."""

    def __init__(self, entity_id: str, matched_with: Optional[str] = None):
        self.entity_id = entity_id
        self.matched_with = matched_with
        detail = f" (paired with {matched_with!r})" if matched_with else ""
        super().__init__(f"{entity_id!r} is already matched{detail}")


class NotMatched(ReconciliationError):
    """No active pairing exists between the two ids."""

    def __init__(self, gl_entry_id: str, forecast_line_id: str):
        self.gl_entry_id = gl_entry_id
        self.forecast_line_id = forecast_line_id
        super().__init__(
            f"No active match between GL entry {gl_entry_id!r} "
            f"and forecast line {forecast_line_id!r}"
        )


class ExcludedEntity(ReconciliationError):
    """The entity is flagged as excluded from reconciliation."""

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{entity_id!r} is excluded from reconciliation")


class ConcurrentRunConflict(ReconciliationError):
    """A reconciliation run is already active for the period."""

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"A reconciliation run is already active for {period}")


class StoreFailure(ReconciliationError):
    """The record store failed to read or persist state."""
