"""Unit tests for free-text thickness extraction."""

import pytest

from src.domain.services.measurement_extractor import (
    MeasurementExtractor,
    extract_paired_measurement,
)


class TestEyeLabelledValues:
    """Test explicit RE/LE labelled values."""

    def test_both_eyes_labelled(self):
        result = extract_paired_measurement("RE 250um LE 300um")
        assert result.right == 250
        assert result.left == 300

    def test_delimiters_and_case(self):
        result = extract_paired_measurement("OCT: re: 245 µm, le- 262um")
        assert result.right == 245
        assert result.left == 262

    def test_last_label_wins(self):
        """Test that a later label for the same eye overwrites the earlier one."""
        result = extract_paired_measurement("RE 200 RE 250 LE 300")
        assert result.right == 250
        assert result.left == 300

    def test_labels_take_priority_over_keywords(self):
        result = extract_paired_measurement("CMT 999 RE 250 LE 300")
        assert result.right == 250
        assert result.left == 300


class TestKeywordDisambiguation:
    """Test the fallback policy for unlabelled keyword values."""

    def test_single_keyword_broadcast_to_both_eyes(self):
        result = extract_paired_measurement("CMT 280")
        assert result.right == 280
        assert result.left == 280

    def test_two_keywords_assigned_in_textual_order(self):
        result = extract_paired_measurement("CMT 250um and CMT 310um")
        assert result.right == 250
        assert result.left == 310

    def test_textual_order_across_patterns(self):
        """Test that keyword matches from both patterns are ordered by position."""
        result = extract_paired_measurement("Foveal Thickness - 310um, CMT 250")
        assert result.right == 310
        assert result.left == 250

    def test_one_label_fills_missing_eye_from_single_keyword(self):
        result = extract_paired_measurement("RE 250 with CMT 300")
        assert result.right == 250
        assert result.left == 300

    def test_left_label_fills_right_from_single_keyword(self):
        result = extract_paired_measurement("LE: 275. Foveal thickness 330")
        assert result.left == 275
        assert result.right == 330

    def test_one_label_with_two_keywords_stays_unresolved(self):
        result = extract_paired_measurement("RE 250 CMT 300 CMT 310")
        assert result.right == 250
        assert result.left is None

    def test_more_than_two_keywords_are_ambiguous(self):
        result = extract_paired_measurement("CMT 200 CMT 250 CMT 300")
        assert result.right is None
        assert result.left is None

    def test_no_values(self):
        result = extract_paired_measurement("Macula looks normal")
        assert result.right is None
        assert result.left is None


class TestValueParsing:
    """Test sentinel, range and digit handling."""

    @pytest.mark.parametrize("text", ["", None, "none", "NaN", " No Data "])
    def test_sentinels_short_circuit(self, text):
        result = extract_paired_measurement(text)
        assert result.right is None
        assert result.left is None

    def test_out_of_range_discarded(self):
        result = extract_paired_measurement("RE 2000 LE 300")
        assert result.right is None
        assert result.left == 300

    def test_boundaries_inclusive(self):
        result = extract_paired_measurement("RE 0 LE 1500")
        assert result.right == 0
        assert result.left == 1500

    @pytest.mark.parametrize("raw,expected", [
        ("250UM", 250),
        ("2 50", 250),
        ("abc", None),
        ("", None),
        (None, None),
        ("1501", None),
    ])
    def test_parse_value(self, raw, expected):
        assert MeasurementExtractor.parse_value(raw) == expected
