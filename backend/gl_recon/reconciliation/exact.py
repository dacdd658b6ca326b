"""
Exact Matcher - strict 1:1 pairing on key equality.

A GL entry and a forecast line match exactly when account code, amount
and period are equal and, if both carry one, their references are equal.
Within a key group the earliest-created GL entry claims the earliest-created
compatible forecast line (ties on creation time broken by id), so the result
does not depend on input ordering.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

import structlog

from ..models import (
    AuditAction,
    AuditEntry,
    GLEntry,
    MatchedPair,
    MatchMethod,
    OrderForecastLine,
    Period,
)
from ..utils.text import normalize_code, normalize_text

logger = structlog.get_logger()

ExactKey = Tuple[str, int, Period]


@dataclass
class ExactMatchResult:
    """Result of the exact matching phase."""
    pairs: List[MatchedPair]
    residual_gl: List[GLEntry]
    residual_forecast: List[OrderForecastLine]
    audit_entries: List[AuditEntry]
    stats: Dict[str, int]


class ExactMatcher:
    """Deterministic pairing by (account code, amount, period, reference)."""

    def match(
        self,
        gl_entries: Sequence[GLEntry],
        forecast_lines: Sequence[OrderForecastLine],
    ) -> ExactMatchResult:
        """
        Pair exact matches and return both residual sets.

        Args:
            gl_entries: Unmatched GL entries
            forecast_lines: Unmatched forecast lines

        Returns:
            ExactMatchResult with pairs and leftovers in creation order
        """
        logger.info(
            "Starting exact matching",
            gl_entries=len(gl_entries),
            forecast_lines=len(forecast_lines),
        )

        ordered_gl = sorted(gl_entries, key=self._creation_order)
        forecast_index = self._build_key_index(forecast_lines)

        pairs: List[MatchedPair] = []
        audit_entries: List[AuditEntry] = []
        matched_gl_ids: Set[str] = set()
        matched_forecast_ids: Set[str] = set()

        for gl in ordered_gl:
            key = self._key(gl)
            if key is None:
                continue

            for forecast in forecast_index.get(key, []):
                if forecast.id in matched_forecast_ids:
                    continue
                if not self._references_compatible(gl, forecast):
                    continue

                pairs.append(MatchedPair(
                    gl_entry_id=gl.id,
                    forecast_line_id=forecast.id,
                    method=MatchMethod.EXACT,
                    score=1.0,
                    amount_difference=0,
                ))
                matched_gl_ids.add(gl.id)
                matched_forecast_ids.add(forecast.id)

                audit_entries.append(AuditEntry(
                    action=AuditAction.EXACT_MATCH,
                    entity_ids=[gl.id, forecast.id],
                    period=str(gl.period),
                    message=f"Exact match on account {gl.account_code}, amount {gl.amount}",
                    details={"reference_compared": bool(gl.reference and forecast.reference)},
                ))
                break

        residual_gl = [e for e in ordered_gl if e.id not in matched_gl_ids]
        residual_forecast = [
            f for f in sorted(forecast_lines, key=self._creation_order)
            if f.id not in matched_forecast_ids
        ]

        stats = {
            "gl_entries": len(gl_entries),
            "forecast_lines": len(forecast_lines),
            "matched": len(pairs),
            "residual_gl": len(residual_gl),
            "residual_forecast": len(residual_forecast),
        }

        logger.info("Exact matching complete", **stats)

        return ExactMatchResult(
            pairs=pairs,
            residual_gl=residual_gl,
            residual_forecast=residual_forecast,
            audit_entries=audit_entries,
            stats=stats,
        )

    def _build_key_index(
        self,
        forecast_lines: Sequence[OrderForecastLine],
    ) -> Dict[ExactKey, List[OrderForecastLine]]:
        """Group forecast lines by exact key, each group in creation order."""
        index: Dict[ExactKey, List[OrderForecastLine]] = defaultdict(list)
        for line in sorted(forecast_lines, key=self._creation_order):
            key = self._key(line)
            if key is not None:
                index[key].append(line)
        return index

    @staticmethod
    def _key(record) -> Optional[ExactKey]:
        account = normalize_code(record.account_code)
        if not account or not isinstance(record.amount, int):
            return None
        return (account, record.amount, record.period)

    @staticmethod
    def _references_compatible(gl: GLEntry, forecast: OrderForecastLine) -> bool:
        gl_ref = normalize_text(gl.reference)
        forecast_ref = normalize_text(forecast.reference)
        if gl_ref and forecast_ref:
            return gl_ref == forecast_ref
        return True

    @staticmethod
    def _creation_order(record) -> tuple:
        return (record.created_at, record.id)
