"""Unit tests for procedure classification, shape detection and deduplication."""

import pytest

from src.domain.enums import EyeSelector, ProcedureCategory, ProcedureShape
from src.domain.services.color_assignment import DEFAULT_PALETTE, ColorAssignment
from src.domain.services.procedure_classifier import (
    ProcedureClassifier,
    classify_procedure,
    classify_shape,
    extract_procedures,
    flatten_procedure_names,
    procedure_events,
    procedure_icon,
    procedure_shape,
)
from src.domain.visit_record import CurrentProcedures, LegacyProcedures


def current_block(lasers=None, injections=None, surgeries=None):
    """Build a current-shape block from per-eye [RE, LE, BE] slot lists."""
    return {
        "Las": lasers or [[], [], []],
        "inj": injections or [[], [], []],
        "surg": surgeries or [[], [], []],
    }


class TestClassify:
    """Test keyword classification."""

    @pytest.mark.parametrize("name,expected", [
        ("Avastin", ProcedureCategory.INJECTION),
        ("Inj. Lucentis", ProcedureCategory.INJECTION),
        ("OZURDEX implant", ProcedureCategory.INJECTION),
        ("PRP", ProcedureCategory.LASER),
        ("Focal laser", ProcedureCategory.LASER),
        ("Vitrectomy", ProcedureCategory.SURGERY),
        ("Scleral Buckle", ProcedureCategory.SURGERY),
        ("Cataract extraction", ProcedureCategory.PROCEDURE),
    ])
    def test_categories(self, name, expected):
        assert classify_procedure(name) is expected

    def test_injection_checked_before_laser(self):
        """Test that a name matching both lists is an injection."""
        assert classify_procedure("Laser after Avastin") is ProcedureCategory.INJECTION

    def test_laser_checked_before_surgery(self):
        assert classify_procedure("Endolaser") is ProcedureCategory.LASER

    @pytest.mark.parametrize("name", ["None", " nil ", "N/A", "-", "No procedure", "No RE procedure", "no be procedure today"])
    def test_placeholders(self, name):
        assert ProcedureClassifier.is_placeholder(name)

    def test_real_name_is_not_placeholder(self):
        assert not ProcedureClassifier.is_placeholder("Avastin")


class TestShapeDetection:
    """Test per-visit procedure shape detection."""

    def test_current_shape_detected_by_any_key(self):
        assert procedure_shape({"inj": []}) is ProcedureShape.CURRENT
        assert isinstance(classify_shape(current_block()), CurrentProcedures)

    def test_legacy_shape(self):
        assert procedure_shape({"act": [["PRP"], []]}) is ProcedureShape.LEGACY
        assert isinstance(classify_shape({"act": [["PRP"], []]}), LegacyProcedures)

    def test_empty_shape(self):
        assert procedure_shape(None) is ProcedureShape.EMPTY
        assert classify_shape(None) is None

    def test_flatten_nested_names(self):
        assert flatten_procedure_names([["Avastin", ["PRP", 3]], "Ozurdex", None]) == ["Avastin", "PRP", "Ozurdex"]


class TestExtractProcedures:
    """Test deduplicated, counted procedure summaries."""

    def test_legacy_duplicates_are_counted(self, make_record):
        record = make_record([
            {"d": "2023-01-01", "pr": {"act": [["Avastin"], []]}},
            {"d": "2023-02-01", "pr": {"act": [["Avastin"], []]}},
        ])
        items = extract_procedures(record, EyeSelector.RIGHT)
        assert len(items) == 1
        assert items[0].category is ProcedureCategory.INJECTION
        assert items[0].label == "Avastin (2x)"
        assert items[0].count == 2

    def test_single_occurrence_has_no_suffix(self, make_record):
        record = make_record([{"d": "2023-01-01", "pr": {"act": [["PRP"], []]}}])
        assert extract_procedures(record, EyeSelector.RIGHT)[0].label == "PRP"

    def test_placeholders_filtered(self, make_record):
        record = make_record([{"d": "2023-01-01", "pr": {"act": [["none", "No RE procedure", " "], ["nil"]]}}])
        assert extract_procedures(record, EyeSelector.RIGHT) == []
        assert extract_procedures(record, EyeSelector.LEFT) == []

    def test_legacy_eye_selection_and_union(self, make_record):
        record = make_record([
            {"d": "2023-01-01", "pr": {"act": [[["Avastin", ["PRP"]], "none"], ["Ozurdex"]]}},
        ])
        assert [i.name for i in extract_procedures(record, EyeSelector.RIGHT)] == ["Avastin", "PRP"]
        assert [i.name for i in extract_procedures(record, EyeSelector.LEFT)] == ["Ozurdex"]
        assert [i.name for i in extract_procedures(record, EyeSelector.BOTH)] == ["Avastin", "PRP", "Ozurdex"]

    def test_current_shape_category_comes_from_array(self, make_record):
        """Test that the array a name is filed under decides its category."""
        record = make_record([{
            "d": "2023-01-01",
            "pr": current_block(
                lasers=[[{"procedure_type": "PRP", "laser_type": "Green"}], [], []],
                surgeries=[[{"procedure_type": "Avastin"}], [], []],
            ),
        }])
        items = extract_procedures(record, EyeSelector.RIGHT)
        assert [(i.name, i.category) for i in items] == [
            ("PRP - Green", ProcedureCategory.LASER),
            ("Avastin", ProcedureCategory.SURGERY),
        ]

    def test_current_shape_uses_dedicated_both_slot(self, make_record):
        record = make_record([{
            "d": "2023-01-01",
            "pr": current_block(injections=[[{"procedure_type": "Eylea"}], [], [{"procedure_type": "Razumab"}]]),
        }])
        assert [i.name for i in extract_procedures(record, EyeSelector.BOTH)] == ["Razumab"]
        assert [i.name for i in extract_procedures(record, EyeSelector.LEFT)] == []

    def test_mixed_shapes_classified_per_visit(self, make_record):
        """Test that each visit is read with its own shape's rules."""
        record = make_record([
            {"d": "2023-01-01", "pr": current_block(surgeries=[[{"procedure_type": "PRP"}], [], []])},
            {"d": "2023-02-01", "pr": {"act": [["PRP"], []]}},
            {"d": "2023-03-01", "pr": current_block(injections=[[{"procedure_type": "Eylea", "eye": 0}], [], []])},
        ])
        items = extract_procedures(record, EyeSelector.RIGHT)
        assert [(i.name, i.category, i.count) for i in items] == [
            ("PRP", ProcedureCategory.SURGERY, 2),
            ("Eylea", ProcedureCategory.INJECTION, 1),
        ]

    def test_legacy_visit_first_does_not_force_shape(self, make_record):
        record = make_record([
            {"d": "2023-01-01", "pr": {"act": [["Avastin"], []]}},
            {"d": "2023-02-01", "pr": current_block(lasers=[[{"procedure_type": "Micropulse"}], [], []])},
        ])
        names = [i.name for i in extract_procedures(record, EyeSelector.RIGHT)]
        assert names == ["Avastin", "Micropulse"]

    def test_malformed_blocks_are_skipped(self, make_record):
        record = make_record([
            {"d": "2023-01-01", "pr": "Avastin"},
            {"d": "2023-02-01", "pr": {"act": "Avastin"}},
            {"d": "2023-03-01", "pr": current_block(injections=[["not an object"], [], []])},
        ])
        assert extract_procedures(record, EyeSelector.RIGHT) == []

    def test_bad_advised_field_keeps_performed_procedures(self, make_record):
        """Test that an unreadable ``adv`` value does not cost the ``act`` list."""
        record = make_record([{"d": "2023-01-01", "pr": {"adv": "Avastin advised", "act": [["Avastin"], []]}}])
        assert [i.label for i in extract_procedures(record, EyeSelector.RIGHT)] == ["Avastin"]

    def test_blank_laser_array_keeps_injections(self, make_record):
        record = make_record([
            {"d": "2023-01-01", "pr": {"Las": "", "inj": [[{"procedure_type": "Eylea"}], [], []]}},
        ])
        (item,) = extract_procedures(record, EyeSelector.RIGHT)
        assert item.label == "Eylea"
        assert item.category is ProcedureCategory.INJECTION

    def test_bad_fields_read_as_none(self):
        block = classify_shape({"Las": "", "surg": 5, "inj": [[], [], []]})
        assert isinstance(block, CurrentProcedures)
        assert block.lasers is None
        assert block.surgeries is None
        assert block.injections == [[], [], []]


class TestProcedureEventsAndIcons:
    """Test chart markers and summary icons."""

    def test_events_carry_date_and_stable_color(self, make_record):
        record = make_record([
            {"d": "2023-01-01", "pr": {"act": [["Avastin", "PRP"], []]}},
            {"d": "2023-02-01", "pr": {"act": [["Avastin"], []]}},
        ])
        colors = ColorAssignment()
        events = [e for visit in record.visits for e in procedure_events(visit, EyeSelector.RIGHT, colors)]
        assert [(e.date, e.name) for e in events] == [
            ("2023-01-01", "Avastin"),
            ("2023-01-01", "PRP"),
            ("2023-02-01", "Avastin"),
        ]
        assert events[0].color == events[2].color == DEFAULT_PALETTE[0]
        assert events[1].color == DEFAULT_PALETTE[1]

    def test_undated_visit_has_no_events(self, make_record):
        record = make_record([{"pr": {"act": [["Avastin"], []]}}])
        assert procedure_events(record.visits[0], EyeSelector.RIGHT, ColorAssignment()) == []

    def test_icon_strips_count_and_uses_name_patterns(self):
        colors = ColorAssignment()
        icon = procedure_icon("Anti-VEGF (3x)", colors)
        assert icon.icon == "injection"
        assert icon.color == colors.color_for("Anti-VEGF")

    def test_icon_falls_back_to_keywords(self):
        assert procedure_icon("Avastin", ColorAssignment()).icon == "injection"
        assert procedure_icon("Membrane peel", ColorAssignment()).icon == "surgery"
        assert procedure_icon("YAG capsulotomy", ColorAssignment()).icon == "procedure"
