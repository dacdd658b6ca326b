"""
Account Summary Aggregator - per-account totals for display and audit.
"""

from typing import Dict, Union

import structlog

from ..models import AccountSummary, Period
from ..storage import ReconciliationStore
from ..utils.text import normalize_code

logger = structlog.get_logger()


class AccountSummaryAggregator:
    """
    Derives matched/unmatched totals per account code for a period.

    Pure read: nothing is cached between calls, so the figures always
    reflect the latest manual overrides.
    """

    def __init__(self, store: ReconciliationStore):
        self.store = store

    async def account_summary(self, period: Union[str, Period]) -> Dict[str, AccountSummary]:
        period = Period.parse(period)

        gl_entries = await self.store.list_gl_entries(period)
        forecast_lines = await self.store.list_forecast_lines(period)
        records = await self.store.list_match_records()
        matched_gl_ids = {r.gl_entry_id for r in records}

        summaries: Dict[str, AccountSummary] = {}

        for entry in gl_entries:
            if entry.is_excluded:
                continue
            summary = self._summary_for(summaries, entry.account_code)
            if summary.account_name is None:
                summary.account_name = entry.account_name

            if entry.id in matched_gl_ids:
                summary.matched_amount += entry.amount
                summary.matched_count += 1
            else:
                summary.unmatched_amount += entry.amount
                summary.unmatched_count += 1

        for line in forecast_lines:
            if line.is_excluded:
                continue
            summary = self._summary_for(summaries, line.account_code)
            summary.forecast_amount += line.amount
            summary.forecast_count += 1

        logger.debug(
            "Account summary computed",
            period=str(period),
            accounts=len(summaries),
        )

        return dict(sorted(summaries.items()))

    @staticmethod
    def _summary_for(summaries: Dict[str, AccountSummary], account_code: str) -> AccountSummary:
        # Keyed like the matchers compare codes; the first spelling seen is displayed
        key = normalize_code(account_code)
        if key not in summaries:
            summaries[key] = AccountSummary(account_code=(account_code or "").strip())
        return summaries[key]
