"""Unit tests for the clinical notation codec."""

from datetime import date

import pytest

from src.domain.services.notation_codec import (
    acuity_scale_labels,
    acuity_to_ordinal,
    decompress_acuity,
    format_date,
    normalize_date,
    ordinal_to_acuity,
    years_ago,
)

QUALITATIVE_TOKENS = ["CF", "HM", "PL", "LP", "NLP", "NPL", "NO PL", "NAS"]


class TestDecompressAcuity:
    """Test expansion of compact acuity tokens."""

    @pytest.mark.parametrize("raw,expected", [
        ("618P", "6/18P"),
        ("66", "6/6"),
        ("6120", "6/120"),
        ("2020", "2/020"),
        ("CF", "CF"),
        ("cf", "CF"),
        (" hm ", "HM"),
        ("fcmf", "FCMF"),
        ("6/18", "6/18"),
        ("6/18P", "6/18P"),
    ])
    def test_known_forms(self, raw, expected):
        """Test compact, special and already-expanded tokens."""
        assert decompress_acuity(raw) == expected

    def test_unparseable_token_passes_through(self):
        """Test that tokens matching no rule are returned unchanged."""
        assert decompress_acuity("N6") == "N6"
        assert decompress_acuity("6") == "6"
        assert decompress_acuity("abc") == "abc"

    def test_empty_input(self):
        assert decompress_acuity("") == ""
        assert decompress_acuity(None) == ""

    def test_idempotent_on_expanded_values(self):
        """Test that decompressing twice equals decompressing once."""
        for raw in ["618P", "66", "CF", "636"]:
            once = decompress_acuity(raw)
            assert decompress_acuity(once) == once


class TestAcuityToOrdinal:
    """Test mapping of acuity notation onto the ordinal axis."""

    def test_table_values(self):
        assert acuity_to_ordinal("6/6") == 1.5
        assert acuity_to_ordinal("6/60") == pytest.approx(0.5)
        assert acuity_to_ordinal("6/120") == pytest.approx(0.2)

    def test_imperial_family_matches_metric(self):
        """Test that 20/x and 6/x values share one scale."""
        assert acuity_to_ordinal("20/20") == acuity_to_ordinal("6/6")
        assert acuity_to_ordinal("20/200") == acuity_to_ordinal("6/60")

    def test_generic_fraction(self):
        """Test fractions not in the table, including a trailing suffix."""
        assert acuity_to_ordinal("6/18P") == pytest.approx(1.5 - 0.4771, abs=1e-3)
        assert acuity_to_ordinal("3/60") == pytest.approx(1.5 - 1.3010, abs=1e-3)

    def test_near_notation(self):
        assert acuity_to_ordinal("N6") == pytest.approx(1.5)
        assert acuity_to_ordinal("N60") == pytest.approx(0.5)

    def test_qualitative_tokens(self):
        assert acuity_to_ordinal("CF") == -0.5
        assert acuity_to_ordinal("FCF") == -0.5
        assert acuity_to_ordinal("HM") == -1.0
        assert acuity_to_ordinal("PL") == -1.5
        assert acuity_to_ordinal("LP") == -1.5
        assert acuity_to_ordinal("NLP") == -2.0
        assert acuity_to_ordinal("no pl") == -2.0

    def test_unmatched_returns_none(self):
        assert acuity_to_ordinal("") is None
        assert acuity_to_ordinal(None) is None
        assert acuity_to_ordinal("   ") is None
        assert acuity_to_ordinal("unknown") is None
        assert acuity_to_ordinal("0/6") is None

    @pytest.mark.parametrize("token", QUALITATIVE_TOKENS)
    def test_qualitative_tokens_rank_below_every_fraction(self, token):
        """Test that each qualitative token is worse than the worst table fraction."""
        assert acuity_to_ordinal(token) < acuity_to_ordinal("6/120")

    def test_monotonic_severity(self):
        ordered = ["6/6", "6/12", "6/60", "CF", "HM", "PL", "NLP"]
        values = [acuity_to_ordinal(v) for v in ordered]
        assert values == sorted(values, reverse=True)


class TestOrdinalToAcuity:
    """Test the approximate inverse mapping."""

    def test_table_values(self):
        assert ordinal_to_acuity(1.5) == "6/6"
        assert ordinal_to_acuity(0.5) == "6/60"

    def test_within_tolerance_snaps_to_table(self):
        assert ordinal_to_acuity(1.5 - 0.33) == "6/12"

    def test_poor_vision_thresholds(self):
        assert ordinal_to_acuity(1.5 - 1.15) == "HM"
        assert ordinal_to_acuity(0.9) == "6/24"
        assert ordinal_to_acuity(-0.5) == "NLP"

    def test_computed_fraction_fallback(self):
        """Test values outside the table and thresholds."""
        assert ordinal_to_acuity(1.8) == "6/3"
        assert ordinal_to_acuity(1.5 - 0.24) == "6/10"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_values_are_blank(self, value):
        assert ordinal_to_acuity(value) == ""

    @pytest.mark.parametrize("value", ["6/6", "6/9", "6/18", "6/36", "6/60", "20/40"])
    def test_round_trip_is_close(self, value):
        """Test that a round trip lands within tolerance on the ordinal axis."""
        ordinal = acuity_to_ordinal(value)
        assert abs(acuity_to_ordinal(ordinal_to_acuity(ordinal)) - ordinal) <= 0.05

    def test_scale_labels(self):
        labels = acuity_scale_labels()
        assert labels[0] == "6/6"
        values = [acuity_to_ordinal(label) for label in labels]
        assert values == sorted(values, reverse=True)


class TestDateFormatting:
    """Test ISO and display date conversions."""

    def test_format_date(self):
        assert format_date("2023-01-05") == "05/01/2023"

    def test_normalize_date(self):
        assert normalize_date("05/01/2023") == "2023-01-05"

    def test_no_calendar_validation(self):
        assert format_date("2023-13-45") == "45/13/2023"

    @pytest.mark.parametrize("value", ["", None, "2023", "2023-01", "--", "05/01/2023"])
    def test_malformed_format_input(self, value):
        assert format_date(value) == ""

    @pytest.mark.parametrize("value", ["", None, "2023-01-05", "05/01"])
    def test_malformed_normalize_input(self, value):
        assert normalize_date(value) == ""

    def test_reversible(self):
        assert normalize_date(format_date("2021-11-30")) == "2021-11-30"


class TestYearsAgo:
    """Test elapsed-time descriptions."""

    def test_years_and_months(self):
        assert years_ago("01/01/2020", today=date(2023, 6, 15)) == "3 years 5 months"

    def test_whole_years(self):
        assert years_ago("01/06/2020", today=date(2023, 6, 1)) == "3 years"

    def test_months_only_with_day_borrow(self):
        assert years_ago("20/01/2023", today=date(2023, 3, 10)) == "1 months"

    def test_same_day(self):
        assert years_ago("15/06/2023", today=date(2023, 6, 15)) == "0 months"

    @pytest.mark.parametrize("value", ["", None, "garbage", "31/02/2023"])
    def test_unparseable(self, value):
        assert years_ago(value, today=date(2023, 6, 15)) == ""
