"""Ledger-side models: fiscal periods, GL entries and order forecast lines."""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Union
from uuid import uuid4

from ..errors import InvalidPeriod
from .enums import MatchStatus

_PERIOD_PATTERN = re.compile(r"^\s*(\d{4})-(\d{1,2})\s*$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, order=True)
class Period:
    """A fiscal period (fiscal year + month), written as ``YYYY-MM``."""
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise InvalidPeriod(f"{self.year}-{self.month}", "month must be 1..12")

    @classmethod
    def parse(cls, value: Union[str, "Period"]) -> "Period":
        """Parse ``YYYY-MM`` text; raises InvalidPeriod when malformed."""
        if isinstance(value, Period):
            return value
        if not isinstance(value, str):
            raise InvalidPeriod(repr(value), "period must be a YYYY-MM string")
        match = _PERIOD_PATTERN.match(value)
        if not match:
            raise InvalidPeriod(value)
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def from_date(cls, value: date) -> "Period":
        return cls(value.year, value.month)

    @property
    def index(self) -> int:
        """Months since year 0, for arithmetic."""
        return self.year * 12 + (self.month - 1)

    def months_between(self, other: "Period") -> int:
        return abs(self.index - other.index)

    def shift(self, months: int) -> "Period":
        year, month0 = divmod(self.index + months, 12)
        return Period(year, month0 + 1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass
class GLEntry:
    """
    One general-ledger posting.
    Amounts are signed minor-unit integers to avoid floating point errors.
    """
    # Identity
    id: str = field(default_factory=lambda: str(uuid4()))
    voucher_no: Optional[str] = None

    # Classification
    period: Period = field(default_factory=lambda: Period.from_date(date.today()))
    account_code: str = ""
    account_name: Optional[str] = None

    # Financial data (minor units)
    amount: int = 0

    # Matching fields
    reference: Optional[str] = None  # counterparty / project reference
    posting_date: Optional[date] = None
    description: str = ""

    # Reconciliation state (cached view of the active MatchRecord)
    status: MatchStatus = MatchStatus.UNMATCHED
    matched_forecast_id: Optional[str] = None

    # Exclusion from automatic matching
    is_excluded: bool = False
    exclusion_reason: Optional[str] = None

    # Audit
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_matched(self) -> bool:
        return self.status.is_matched

    @property
    def linked_id(self) -> Optional[str]:
        return self.matched_forecast_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "voucher_no": self.voucher_no,
            "period": str(self.period),
            "account_code": self.account_code,
            "account_name": self.account_name,
            "amount": self.amount,
            "reference": self.reference,
            "posting_date": self.posting_date.isoformat() if self.posting_date else None,
            "description": self.description,
            "status": self.status.value,
            "matched_forecast_id": self.matched_forecast_id,
            "is_excluded": self.is_excluded,
            "exclusion_reason": self.exclusion_reason,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class OrderForecastLine:
    """One expected-revenue line awaiting confirmation by a GL posting."""
    # Identity
    id: str = field(default_factory=lambda: str(uuid4()))

    # Classification
    period: Period = field(default_factory=lambda: Period.from_date(date.today()))
    account_code: str = ""  # expected account

    # Financial data (minor units)
    amount: int = 0

    # Matching fields
    reference: Optional[str] = None  # project / customer reference
    description: str = ""
    project_code: Optional[str] = None
    customer_code: Optional[str] = None

    # Reconciliation state (cached view of the active MatchRecord)
    status: MatchStatus = MatchStatus.UNMATCHED
    matched_gl_id: Optional[str] = None

    # Exclusion from automatic matching
    is_excluded: bool = False
    exclusion_reason: Optional[str] = None

    # Audit
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_matched(self) -> bool:
        return self.status.is_matched

    @property
    def linked_id(self) -> Optional[str]:
        return self.matched_gl_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "period": str(self.period),
            "account_code": self.account_code,
            "amount": self.amount,
            "reference": self.reference,
            "description": self.description,
            "project_code": self.project_code,
            "customer_code": self.customer_code,
            "status": self.status.value,
            "matched_gl_id": self.matched_gl_id,
            "is_excluded": self.is_excluded,
            "exclusion_reason": self.exclusion_reason,
            "created_at": self.created_at.isoformat(),
        }
