"""
Tests for the Account Summary Aggregator.
"""

import pytest

from gl_recon.errors import InvalidPeriod
from gl_recon.reconciliation.manual import ManualOverrideHandler
from gl_recon.reconciliation.orchestrator import ReconciliationOrchestrator
from gl_recon.reconciliation.summary import AccountSummaryAggregator


@pytest.fixture
def aggregator(store):
    return AccountSummaryAggregator(store)


class TestAccountSummaryAggregator:
    """Test suite for per-account totals."""

    @pytest.mark.asyncio
    async def test_totals_follow_match_state(
        self, aggregator, store, settings, make_gl, make_forecast
    ):
        store.add_gl_entries([
            make_gl("gl1", account_code="511", account_name="Sales", amount=100000),
            make_gl("gl2", account_code="511", amount=2500),
            make_gl("gl3", account_code="520", account_name="Services", amount=40000),
        ])
        store.add_forecast_lines([
            make_forecast("fc1", account_code="511", amount=100000),
            make_forecast("fc2", account_code="530", amount=9000),
        ])
        await ReconciliationOrchestrator(store, settings).run("2024-04", "exact")

        summary = await aggregator.account_summary("2024-04")

        assert list(summary) == ["511", "520", "530"]

        sales = summary["511"]
        assert sales.account_name == "Sales"
        assert sales.matched_amount == 100000
        assert sales.matched_count == 1
        assert sales.unmatched_amount == 2500
        assert sales.unmatched_count == 1
        assert sales.forecast_amount == 100000
        assert sales.difference == 2500

        assert summary["520"].unmatched_amount == 40000
        assert summary["520"].matched_count == 0
        assert summary["530"].gl_amount == 0
        assert summary["530"].difference == -9000

    @pytest.mark.asyncio
    async def test_reflects_latest_overrides(
        self, aggregator, store, settings, make_gl, make_forecast
    ):
        store.add_gl_entries([make_gl("gl1", amount=300)])
        store.add_forecast_lines([make_forecast("fc1", amount=999)])

        before = await aggregator.account_summary("2024-04")
        await ManualOverrideHandler(store, settings).manual_match("gl1", "fc1")
        after = await aggregator.account_summary("2024-04")

        assert before["511"].unmatched_amount == 300
        assert after["511"].matched_amount == 300
        assert after["511"].unmatched_amount == 0

    @pytest.mark.asyncio
    async def test_excluded_entries_are_skipped(self, aggregator, store, make_gl, make_forecast):
        store.add_gl_entries([
            make_gl("gl1", amount=500),
            make_gl("gl2", amount=700, is_excluded=True),
        ])
        store.add_forecast_lines([make_forecast("fc1", amount=100, is_excluded=True)])

        summary = await aggregator.account_summary("2024-04")

        assert summary["511"].unmatched_amount == 500
        assert summary["511"].unmatched_count == 1
        assert summary["511"].forecast_count == 0

    @pytest.mark.asyncio
    async def test_codes_grouped_as_the_matchers_compare_them(
        self, aggregator, store, settings, make_gl, make_forecast
    ):
        store.add_gl_entries([make_gl("gl1", account_code="511", amount=100000)])
        store.add_forecast_lines([
            make_forecast("fc1", account_code="５１１", amount=100000),
        ])
        result = await ReconciliationOrchestrator(store, settings).run("2024-04", "exact")
        assert result.counts.matched_exact == 1

        summary = await aggregator.account_summary("2024-04")

        assert list(summary) == ["511"]
        assert summary["511"].account_code == "511"
        assert summary["511"].matched_amount == 100000
        assert summary["511"].forecast_amount == 100000
        assert summary["511"].difference == 0

    @pytest.mark.asyncio
    async def test_signed_amounts(self, aggregator, store, make_gl):
        store.add_gl_entries([make_gl("gl1", amount=1000), make_gl("gl2", amount=-400)])

        summary = await aggregator.account_summary("2024-04")

        assert summary["511"].unmatched_amount == 600

    @pytest.mark.asyncio
    async def test_empty_period(self, aggregator):
        assert await aggregator.account_summary("2030-01") == {}

    @pytest.mark.asyncio
    async def test_malformed_period(self, aggregator):
        with pytest.raises(InvalidPeriod):
            await aggregator.account_summary("2024-99")
