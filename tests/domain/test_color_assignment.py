"""Unit tests for stable procedure color assignment."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.domain.services.color_assignment import DEFAULT_PALETTE, ColorAssignment


class TestColorAssignment:
    """Test the name-to-color mapping."""

    def test_same_name_keeps_its_color(self):
        colors = ColorAssignment()
        first = colors.color_for("Avastin")
        colors.color_for("PRP")
        assert colors.color_for("Avastin") == first == DEFAULT_PALETTE[0]
        assert colors.color_for("PRP") == DEFAULT_PALETTE[1]

    def test_palette_wraps_around(self):
        colors = ColorAssignment(palette=["#111111", "#222222"])
        assert [colors.color_for(name) for name in ("a", "b", "c")] == ["#111111", "#222222", "#111111"]

    def test_reset_rewinds_cursor(self):
        colors = ColorAssignment()
        colors.color_for("Avastin")
        colors.reset()
        assert len(colors) == 0
        assert "Avastin" not in colors
        assert colors.color_for("PRP") == DEFAULT_PALETTE[0]

    def test_instances_are_independent(self):
        """Test that two patients' assignments do not bleed into each other."""
        first, second = ColorAssignment(), ColorAssignment()
        first.color_for("Avastin")
        assert second.color_for("Ozurdex") == DEFAULT_PALETTE[0]

    def test_empty_palette_rejected(self):
        with pytest.raises(ValueError):
            ColorAssignment(palette=[])

    def test_statistics(self):
        colors = ColorAssignment()
        colors.color_for("Avastin")
        stats = colors.get_statistics()
        assert stats["assigned"] == {"Avastin": DEFAULT_PALETTE[0]}
        assert stats["next_index"] == 1
        assert stats["palette_size"] == len(DEFAULT_PALETTE)

    def test_concurrent_lookups_assign_each_name_once(self):
        colors = ColorAssignment()
        names = [f"drug-{i % 5}" for i in range(100)]
        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(colors.color_for, names))
        assert len(colors) == 5
        assert colors.get_statistics()["next_index"] == 5
