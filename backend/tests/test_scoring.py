"""
Tests for the Match Scorer.
"""

from datetime import date

import pytest

from gl_recon.reconciliation.scoring import MatchScorer


@pytest.fixture
def scorer(settings):
    return MatchScorer(settings)


class TestMatchScorer:
    """Test suite for pair scoring."""

    def test_near_amount_same_reference_and_month(self, scorer, make_gl, make_forecast):
        """2% amount gap with matching reference and month scores about 0.99."""
        gl = make_gl("gl1", amount=98000, reference="PRJ-001", posting_date=date(2024, 4, 15))
        forecast = make_forecast("fc1", amount=100000, reference="PRJ-001")

        breakdown = scorer.breakdown(gl, forecast)

        assert breakdown.amount == pytest.approx(0.98)
        assert breakdown.reference == pytest.approx(1.0)
        assert breakdown.date == pytest.approx(1.0)
        assert breakdown.total == pytest.approx(0.99)
        assert scorer.score(gl, forecast) == pytest.approx(0.99)

    def test_account_mismatch_zeroes_score(self, scorer, make_gl, make_forecast):
        gl = make_gl("gl1", account_code="511", reference="PRJ-001", posting_date=date(2024, 4, 1))
        forecast = make_forecast("fc1", account_code="512", reference="PRJ-001")

        breakdown = scorer.breakdown(gl, forecast)

        assert not breakdown.account_compatible
        assert breakdown.total == 0.0

    def test_empty_account_is_incompatible(self, scorer, make_gl, make_forecast):
        gl = make_gl("gl1", account_code="")
        forecast = make_forecast("fc1", account_code="")

        assert scorer.score(gl, forecast) == 0.0

    def test_account_codes_are_normalized(self, scorer, make_gl, make_forecast):
        """Full-width digits and stray spaces still compare equal."""
        gl = make_gl("gl1", account_code=" ５１１ ")
        forecast = make_forecast("fc1", account_code="511")

        assert scorer.accounts_compatible(gl, forecast)

    def test_amount_score_bounds(self):
        assert MatchScorer.amount_score(100000, 100000) == 1.0
        assert MatchScorer.amount_score(50000, 100000) == pytest.approx(0.5)
        assert MatchScorer.amount_score(300000, 100000) == 0.0
        # Zero forecast amount divides by one
        assert MatchScorer.amount_score(0, 0) == 1.0
        assert MatchScorer.amount_score(None, 100000) == 0.0

    def test_reference_falls_back_to_description(self, scorer, make_gl, make_forecast):
        gl = make_gl("gl1", reference=None, description="Consulting fee Acme Corp")
        forecast = make_forecast("fc1", reference="PRJ-9", description="Acme Corp consulting fee")

        assert scorer.reference_score(gl, forecast) == pytest.approx(1.0)

    def test_missing_text_scores_zero(self, scorer, make_gl, make_forecast):
        gl = make_gl("gl1")
        forecast = make_forecast("fc1")

        assert scorer.reference_score(gl, forecast) == 0.0

    def test_date_decay_across_months(self, scorer, make_gl, make_forecast):
        """Linear decay reaching zero beyond the two-month window."""
        forecast = make_forecast("fc1", period="2024-04")

        same_month = make_gl("gl1", posting_date=date(2024, 4, 30))
        one_month = make_gl("gl2", posting_date=date(2024, 5, 2))
        two_months = make_gl("gl3", posting_date=date(2024, 2, 10))
        three_months = make_gl("gl4", posting_date=date(2024, 7, 1))

        assert scorer.date_score(same_month, forecast) == 1.0
        assert scorer.date_score(one_month, forecast) == pytest.approx(2 / 3, abs=1e-6)
        assert scorer.date_score(two_months, forecast) == pytest.approx(1 / 3, abs=1e-6)
        assert scorer.date_score(three_months, forecast) == 0.0

    def test_missing_posting_date_scores_zero(self, scorer, make_gl, make_forecast):
        gl = make_gl("gl1", posting_date=None)
        forecast = make_forecast("fc1")

        assert scorer.date_score(gl, forecast) == 0.0

    def test_score_stays_in_unit_interval(self, make_gl, make_forecast, tmp_path):
        from gl_recon.config import Settings

        heavy = Settings(
            _env_file=None,
            reports_dir=tmp_path,
            weight_amount=1.0,
            weight_account=1.0,
            weight_reference=1.0,
            weight_date=1.0,
        )
        scorer = MatchScorer(heavy)
        gl = make_gl("gl1", reference="A", posting_date=date(2024, 4, 1))
        forecast = make_forecast("fc1", reference="A")

        assert scorer.score(gl, forecast) == 1.0
