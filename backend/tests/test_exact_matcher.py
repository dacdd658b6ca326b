"""
Tests for the Exact Matcher.
"""

import random

import pytest

from gl_recon.models import AuditAction, MatchMethod
from gl_recon.reconciliation.exact import ExactMatcher


@pytest.fixture
def exact_matcher():
    return ExactMatcher()


def pair_ids(result):
    return {(p.gl_entry_id, p.forecast_line_id) for p in result.pairs}


class TestExactMatcher:
    """Test suite for exact matching."""

    def test_identical_keys_match(self, exact_matcher, make_gl, make_forecast):
        gl = make_gl("gl1", account_code="511", amount=100000, reference="PRJ-001")
        forecast = make_forecast("fc1", account_code="511", amount=100000, reference="PRJ-001")

        result = exact_matcher.match([gl], [forecast])

        assert pair_ids(result) == {("gl1", "fc1")}
        assert result.pairs[0].method is MatchMethod.EXACT
        assert result.pairs[0].score == 1.0
        assert result.residual_gl == []
        assert result.residual_forecast == []
        assert result.audit_entries[0].action is AuditAction.EXACT_MATCH

    def test_earlier_gl_entry_wins(self, exact_matcher, make_gl, make_forecast):
        """Two equal GL entries compete for one forecast line."""
        first = make_gl("gl-b")
        second = make_gl("gl-a")
        forecast = make_forecast("fc1")

        result = exact_matcher.match([second, first], [forecast])

        assert pair_ids(result) == {("gl-b", "fc1")}
        assert [e.id for e in result.residual_gl] == ["gl-a"]

    def test_same_timestamp_breaks_tie_by_id(self, exact_matcher, make_gl, make_forecast):
        stamp = make_gl("tmp").created_at
        gl_b = make_gl("gl-b", created_at=stamp)
        gl_a = make_gl("gl-a", created_at=stamp)
        forecast = make_forecast("fc1")

        result = exact_matcher.match([gl_b, gl_a], [forecast])

        assert pair_ids(result) == {("gl-a", "fc1")}

    def test_ordering_independent(self, exact_matcher, make_gl, make_forecast):
        gl_entries = [make_gl(f"gl{i}", amount=1000 * (i % 3)) for i in range(9)]
        forecast_lines = [make_forecast(f"fc{i}", amount=1000 * (i % 3)) for i in range(7)]

        baseline = pair_ids(exact_matcher.match(gl_entries, forecast_lines))

        rng = random.Random(7)
        for _ in range(5):
            shuffled_gl = gl_entries[:]
            shuffled_fc = forecast_lines[:]
            rng.shuffle(shuffled_gl)
            rng.shuffle(shuffled_fc)
            assert pair_ids(exact_matcher.match(shuffled_gl, shuffled_fc)) == baseline

        assert len(baseline) == 7

    def test_reference_mismatch_blocks_match(self, exact_matcher, make_gl, make_forecast):
        gl = make_gl("gl1", reference="PRJ-001")
        forecast = make_forecast("fc1", reference="PRJ-002")

        result = exact_matcher.match([gl], [forecast])

        assert result.pairs == []
        assert len(result.residual_gl) == 1
        assert len(result.residual_forecast) == 1

    def test_reference_compared_after_normalization(self, exact_matcher, make_gl, make_forecast):
        gl = make_gl("gl1", reference="ＰＲＪ－００１")
        forecast = make_forecast("fc1", reference="prj001")

        assert pair_ids(exact_matcher.match([gl], [forecast])) == {("gl1", "fc1")}

    def test_missing_reference_on_one_side_is_ignored(self, exact_matcher, make_gl, make_forecast):
        gl = make_gl("gl1", reference=None)
        forecast = make_forecast("fc1", reference="PRJ-001")

        assert pair_ids(exact_matcher.match([gl], [forecast])) == {("gl1", "fc1")}

    def test_reference_mismatch_falls_through_to_next_candidate(
        self, exact_matcher, make_gl, make_forecast
    ):
        gl = make_gl("gl1", reference="PRJ-002")
        first = make_forecast("fc1", reference="PRJ-001")
        second = make_forecast("fc2", reference="PRJ-002")

        assert pair_ids(exact_matcher.match([gl], [first, second])) == {("gl1", "fc2")}

    @pytest.mark.parametrize("field, gl_value, fc_value", [
        ("account_code", "511", "512"),
        ("amount", 100000, 100001),
        ("period", "2024-04", "2024-05"),
    ])
    def test_key_field_difference_prevents_match(
        self, exact_matcher, make_gl, make_forecast, field, gl_value, fc_value
    ):
        gl = make_gl("gl1", **{field: gl_value})
        forecast = make_forecast("fc1", **{field: fc_value})

        assert exact_matcher.match([gl], [forecast]).pairs == []

    def test_empty_inputs(self, exact_matcher):
        result = exact_matcher.match([], [])

        assert result.pairs == []
        assert result.stats["matched"] == 0
