"""
Fuzzy Matcher - approximate pairing over the exact-matcher residuals.

Builds the full score matrix between residual GL entries and residual
forecast lines, drops cells below the minimum acceptable score or across
accounts, then claims cells greedily by descending score. Ties resolve by
smaller amount difference, then lower GL entry id, then lower forecast
line id, so every run produces the same pairs.

Greedy selection favours reviewable, explainable pairs over a globally
optimal assignment.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set

import numpy as np
import structlog

from ..config import Settings, get_settings
from ..models import (
    AuditAction,
    AuditEntry,
    GLEntry,
    MatchedPair,
    MatchMethod,
    OrderForecastLine,
)
from .scoring import MatchScorer, ScoreBreakdown

logger = structlog.get_logger()

# Fuzzy scores live in [0, 1); 1.0 is reserved for exact and manual matches
FUZZY_SCORE_CEILING = 0.9999


@dataclass
class FuzzyMatchResult:
    """Result of the fuzzy matching phase."""
    pairs: List[MatchedPair]
    residual_gl: List[GLEntry]
    residual_forecast: List[OrderForecastLine]
    audit_entries: List[AuditEntry]
    stats: Dict[str, int]


class FuzzyMatcher:
    """Greedy highest-score-first pairing above a configurable threshold."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        scorer: Optional[MatchScorer] = None,
    ):
        self.settings = settings or get_settings()
        self.scorer = scorer or MatchScorer(self.settings)
        self.min_score = self.settings.min_fuzzy_score

    def match(
        self,
        residual_gl: Sequence[GLEntry],
        residual_forecast: Sequence[OrderForecastLine],
    ) -> FuzzyMatchResult:
        """
        Pair residual entries by score.

        Args:
            residual_gl: GL entries left over by exact matching
            residual_forecast: Forecast lines left over by exact matching

        Returns:
            FuzzyMatchResult with pairs and the remaining residuals
        """
        logger.info(
            "Starting fuzzy matching",
            gl_entries=len(residual_gl),
            forecast_lines=len(residual_forecast),
            min_score=self.min_score,
        )

        # Row/column order follows ids so index order doubles as the tie-break
        gl_rows = sorted(residual_gl, key=lambda e: e.id)
        forecast_cols = sorted(residual_forecast, key=lambda f: f.id)

        pairs: List[MatchedPair] = []
        audit_entries: List[AuditEntry] = []
        claimed_rows: Set[int] = set()
        claimed_cols: Set[int] = set()
        eligible_cells = 0

        if gl_rows and forecast_cols:
            scores, amount_diffs, eligible, breakdowns = self._score_matrix(
                gl_rows, forecast_cols
            )
            rows, cols = np.nonzero(eligible)
            eligible_cells = len(rows)

            # np.lexsort sorts by the last key first
            order = np.lexsort((
                cols,
                rows,
                amount_diffs[rows, cols],
                -scores[rows, cols],
            ))

            for idx in order:
                i, j = int(rows[idx]), int(cols[idx])
                if i in claimed_rows or j in claimed_cols:
                    continue

                gl, forecast = gl_rows[i], forecast_cols[j]
                score = min(float(scores[i, j]), FUZZY_SCORE_CEILING)
                breakdown = breakdowns[(i, j)]

                pairs.append(MatchedPair(
                    gl_entry_id=gl.id,
                    forecast_line_id=forecast.id,
                    method=MatchMethod.FUZZY,
                    score=score,
                    amount_difference=int(amount_diffs[i, j]),
                ))
                claimed_rows.add(i)
                claimed_cols.add(j)

                audit_entries.append(AuditEntry(
                    action=AuditAction.FUZZY_MATCH,
                    entity_ids=[gl.id, forecast.id],
                    period=str(gl.period),
                    message=f"Fuzzy match with score {score:.4f}",
                    details=breakdown.to_dict(),
                ))

        matched_gl_ids = {gl_rows[i].id for i in claimed_rows}
        matched_forecast_ids = {forecast_cols[j].id for j in claimed_cols}
        residual_gl_out = [
            e for e in sorted(residual_gl, key=self._creation_order)
            if e.id not in matched_gl_ids
        ]
        residual_forecast_out = [
            f for f in sorted(residual_forecast, key=self._creation_order)
            if f.id not in matched_forecast_ids
        ]

        stats = {
            "gl_entries": len(residual_gl),
            "forecast_lines": len(residual_forecast),
            "eligible_cells": eligible_cells,
            "matched": len(pairs),
            "residual_gl": len(residual_gl_out),
            "residual_forecast": len(residual_forecast_out),
        }

        logger.info("Fuzzy matching complete", **stats)

        return FuzzyMatchResult(
            pairs=pairs,
            residual_gl=residual_gl_out,
            residual_forecast=residual_forecast_out,
            audit_entries=audit_entries,
            stats=stats,
        )

    def _score_matrix(
        self,
        gl_rows: List[GLEntry],
        forecast_cols: List[OrderForecastLine],
    ):
        """Score every account-compatible cell; others stay ineligible."""
        shape = (len(gl_rows), len(forecast_cols))
        scores = np.zeros(shape, dtype=np.float64)
        amount_diffs = np.zeros(shape, dtype=np.int64)
        eligible = np.zeros(shape, dtype=bool)
        breakdowns: Dict[tuple, ScoreBreakdown] = {}

        for i, gl in enumerate(gl_rows):
            for j, forecast in enumerate(forecast_cols):
                if not self.scorer.accounts_compatible(gl, forecast):
                    continue

                breakdown = self.scorer.breakdown(gl, forecast)
                scores[i, j] = breakdown.total
                amount_diffs[i, j] = abs(gl.amount - forecast.amount)

                if breakdown.total >= self.min_score:
                    eligible[i, j] = True
                    breakdowns[(i, j)] = breakdown
                else:
                    logger.debug(
                        "Fuzzy candidate below threshold",
                        gl_entry_id=gl.id,
                        forecast_line_id=forecast.id,
                        score=breakdown.total,
                    )

        return scores, amount_diffs, eligible, breakdowns

    @staticmethod
    def _creation_order(record) -> tuple:
        return (record.created_at, record.id)
