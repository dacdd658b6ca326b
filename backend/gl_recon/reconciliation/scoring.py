"""
Match Scorer - similarity between one GL entry and one forecast line.

Weighted combination of normalized sub-scores:
- amount closeness
- account code gate (a mismatch zeroes the whole score)
- reference / description similarity
- date proximity between posting date and forecast period
"""

from dataclasses import dataclass
from typing import Dict, Optional

import structlog
from rapidfuzz import fuzz

from ..config import Settings, get_settings
from ..models import GLEntry, OrderForecastLine, Period
from ..utils.text import normalize_code, normalize_text

logger = structlog.get_logger()

SCORE_PRECISION = 6


@dataclass(frozen=True)
class ScoreBreakdown:
    """Sub-scores of one GL entry / forecast line pair."""
    amount: float
    account: float
    reference: float
    date: float
    total: float

    @property
    def account_compatible(self) -> bool:
        return self.account == 1.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "amount": self.amount,
            "account": self.account,
            "reference": self.reference,
            "date": self.date,
            "total": self.total,
        }


class MatchScorer:
    """
    Pure scoring function configured from Settings.

    Never raises on malformed input: a missing or unusable field degrades
    its sub-score to 0.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.weight_amount = self.settings.weight_amount
        self.weight_account = self.settings.weight_account
        self.weight_reference = self.settings.weight_reference
        self.weight_date = self.settings.weight_date
        self.date_window = self.settings.date_window_months

    def score(self, gl: GLEntry, forecast: OrderForecastLine) -> float:
        """Return the overall score in [0, 1]."""
        return self.breakdown(gl, forecast).total

    def breakdown(self, gl: GLEntry, forecast: OrderForecastLine) -> ScoreBreakdown:
        """Compute every sub-score and the weighted total."""
        amount = self.amount_score(gl.amount, forecast.amount)
        account = 1.0 if self.accounts_compatible(gl, forecast) else 0.0
        reference = self.reference_score(gl, forecast)
        date_score = self.date_score(gl, forecast)

        if account == 0.0:
            total = 0.0
        else:
            total = (
                amount * self.weight_amount
                + account * self.weight_account
                + reference * self.weight_reference
                + date_score * self.weight_date
            )
            total = round(min(1.0, max(0.0, total)), SCORE_PRECISION)

        return ScoreBreakdown(
            amount=amount,
            account=account,
            reference=reference,
            date=date_score,
            total=total,
        )

    @staticmethod
    def amount_score(gl_amount: int, forecast_amount: int) -> float:
        """1 - min(1, |difference| / max(1, |forecast amount|))."""
        try:
            diff = abs(int(gl_amount) - int(forecast_amount))
            base = max(1, abs(int(forecast_amount)))
        except (TypeError, ValueError):
            return 0.0
        return round(1.0 - min(1.0, diff / base), SCORE_PRECISION)

    @staticmethod
    def accounts_compatible(gl: GLEntry, forecast: OrderForecastLine) -> bool:
        """Hard gate: cross-account matches are never valid."""
        gl_code = normalize_code(gl.account_code)
        return bool(gl_code) and gl_code == normalize_code(forecast.account_code)

    @staticmethod
    def reference_score(gl: GLEntry, forecast: OrderForecastLine) -> float:
        """
        Token-set similarity of the references.
        Falls back to descriptions when either reference is missing.
        """
        left = normalize_text(gl.reference)
        right = normalize_text(forecast.reference)
        if not left or not right:
            left = normalize_text(gl.description)
            right = normalize_text(forecast.description)
        if not left or not right:
            return 0.0
        return round(fuzz.token_set_ratio(left, right) / 100.0, SCORE_PRECISION)

    def date_score(self, gl: GLEntry, forecast: OrderForecastLine) -> float:
        """1.0 in the forecast month, linear decay to 0 beyond the window."""
        if gl.posting_date is None or not isinstance(forecast.period, Period):
            return 0.0
        months_apart = Period.from_date(gl.posting_date).months_between(forecast.period)
        if months_apart == 0:
            return 1.0
        decay = 1.0 - months_apart / (self.date_window + 1)
        return round(max(0.0, decay), SCORE_PRECISION)
