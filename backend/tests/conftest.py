"""
Shared fixtures for the reconciliation engine tests.
"""

import itertools
from datetime import date, datetime, timedelta, timezone

import pytest

from gl_recon.config import Settings
from gl_recon.models import GLEntry, OrderForecastLine, Period
from gl_recon.storage import InMemoryReconciliationStore

BASE_TIME = datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        reports_dir=tmp_path / "reports",
        persist_batch_size=2,
    )


@pytest.fixture
def clock():
    """Strictly increasing creation timestamps, in call order."""
    ticks = itertools.count()
    return lambda: BASE_TIME + timedelta(seconds=next(ticks))


@pytest.fixture
def make_gl(clock):
    def _make(
        id: str,
        account_code: str = "511",
        amount: int = 100000,
        period: str = "2024-04",
        reference: str = None,
        posting_date: date = None,
        **kwargs,
    ) -> GLEntry:
        kwargs.setdefault("created_at", clock())
        return GLEntry(
            id=id,
            account_code=account_code,
            amount=amount,
            period=Period.parse(period),
            reference=reference,
            posting_date=posting_date,
            **kwargs,
        )
    return _make


@pytest.fixture
def make_forecast(clock):
    def _make(
        id: str,
        account_code: str = "511",
        amount: int = 100000,
        period: str = "2024-04",
        reference: str = None,
        **kwargs,
    ) -> OrderForecastLine:
        kwargs.setdefault("created_at", clock())
        return OrderForecastLine(
            id=id,
            account_code=account_code,
            amount=amount,
            period=Period.parse(period),
            reference=reference,
            **kwargs,
        )
    return _make


@pytest.fixture
def store():
    return InMemoryReconciliationStore()
