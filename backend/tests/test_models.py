"""
Tests for periods, text normalization and model helpers.
"""

import pytest

from gl_recon.errors import InvalidPeriod
from gl_recon.models import MatchMethod, MatchStatus, Period, ReconciliationMode
from gl_recon.utils.text import normalize_code, normalize_text


class TestPeriod:
    """Test suite for fiscal periods."""

    def test_parse_and_format(self):
        period = Period.parse("2024-4")

        assert period == Period(2024, 4)
        assert str(period) == "2024-04"

    @pytest.mark.parametrize("value", ["2024-13", "2024-00", "202404", "April 2024", "", None])
    def test_malformed_periods_raise(self, value):
        with pytest.raises(InvalidPeriod):
            Period.parse(value)

    def test_arithmetic(self):
        period = Period(2024, 1)

        assert period.shift(-1) == Period(2023, 12)
        assert period.shift(13) == Period(2025, 2)
        assert period.months_between(Period(2023, 11)) == 2

    def test_ordering(self):
        assert Period(2023, 12) < Period(2024, 1) < Period(2024, 2)


class TestTextNormalization:
    """Test suite for code and text normalization."""

    def test_normalize_code(self):
        assert normalize_code(" ５１１ ") == "511"
        assert normalize_code("AbC 1") == "abc1"
        assert normalize_code(None) == ""

    def test_normalize_text_folds_width_and_dashes(self):
        assert normalize_text("ＰＲＪ－００１") == normalize_text("prj-001") == "prj001"

    def test_normalize_text_collapses_punctuation(self):
        assert normalize_text("  Acme,  Corp.  ") == "acme corp"


class TestEnums:
    """Test suite for enum helpers."""

    def test_method_maps_to_status(self):
        assert MatchMethod.EXACT.status is MatchStatus.MATCHED_EXACT
        assert MatchMethod.FUZZY.status is MatchStatus.MATCHED_FUZZY
        assert MatchMethod.MANUAL.status is MatchStatus.MATCHED_MANUAL
        assert not MatchStatus.UNMATCHED.is_matched

    def test_mode_phases(self):
        assert ReconciliationMode.EXACT.includes_exact
        assert not ReconciliationMode.EXACT.includes_fuzzy
        assert ReconciliationMode.BOTH.includes_exact and ReconciliationMode.BOTH.includes_fuzzy
        assert ReconciliationMode("fuzzy") is ReconciliationMode.FUZZY
