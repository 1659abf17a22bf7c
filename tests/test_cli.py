"""Tests for the ophtha-timeline command line interface."""

import json
import logging

import pytest
from typer.testing import CliRunner

from src.cli import app
from src.infrastructure.settings import settings


runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_cli_logging(monkeypatch):
    """Keep CLI log lines out of captured output and restore root handlers."""
    monkeypatch.setattr(settings, "log_level", "ERROR")
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


class TestTimelineCommand:
    """Test the timeline command."""

    def test_json_output(self, patient_dir):
        result = runner.invoke(app, ["timeline", str(patient_dir / "P-1001.json"), "--eye", "LE", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["uid"] == "P-1001"
        assert data["eye"] == "LE"

    def test_table_output(self, patient_dir):
        result = runner.invoke(app, ["timeline", str(patient_dir / "P-1001.json"), "-e", "RE"])

        assert result.exit_code == 0
        assert "Patient P-1001" in result.stdout
        assert "Diagnoses" in result.stdout
        assert "Eylea" in result.stdout

    def test_invalid_record(self, tmp_path):
        bad_file = tmp_path / "bad.json"
        bad_file.write_text("{not json", encoding="utf-8")

        result = runner.invoke(app, ["timeline", str(bad_file)])

        assert result.exit_code == 1
        assert "Failed to load" in result.stdout

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["timeline", str(tmp_path / "absent.json")])

        assert result.exit_code != 0


class TestIntervalsCommand:
    """Test the intervals command."""

    def test_observation_category(self, patient_dir):
        result = runner.invoke(app, ["intervals", str(patient_dir / "P-1001.json"), "lens", "--eye", "RE"])

        assert result.exit_code == 0
        assert "Early cataract" in result.stdout

    def test_category_is_case_insensitive(self, patient_dir):
        result = runner.invoke(app, ["intervals", str(patient_dir / "P-1001.json"), " LENS", "--eye", "RE"])

        assert result.exit_code == 0
        assert "Early cataract" in result.stdout

    def test_medication_category(self, patient_dir):
        result = runner.invoke(app, ["intervals", str(patient_dir / "P-1001.json"), "medication"])

        assert result.exit_code == 0
        assert "Timolol (RE)" in result.stdout

    def test_no_intervals(self, patient_dir):
        result = runner.invoke(app, ["intervals", str(patient_dir / "P-2002.json"), "lens"])

        assert result.exit_code == 0
        assert "No lens intervals" in result.stdout

    def test_unknown_category(self, patient_dir):
        result = runner.invoke(app, ["intervals", str(patient_dir / "P-1001.json"), "eyelid"])

        assert result.exit_code == 1
        assert "Unknown category" in result.stdout


class TestExportCommand:
    """Test the export command."""

    def test_export_directory(self, patient_dir, tmp_path):
        output = tmp_path / "export" / "timelines.csv"

        result = runner.invoke(app, ["export", str(patient_dir), str(output), "--eye", "RE"])

        assert result.exit_code == 0
        assert output.exists()
        assert (output.parent / "timelines_series.csv").exists()
        assert (output.parent / "timelines_procedures.csv").exists()

    def test_skips_unloadable_records(self, patient_dir, tmp_path):
        (patient_dir / "broken.json").write_text("[", encoding="utf-8")

        result = runner.invoke(app, ["export", str(patient_dir), str(tmp_path / "out.csv")])

        assert result.exit_code == 0
        assert "Patients skipped:" in result.stdout

    def test_empty_directory(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        result = runner.invoke(app, ["export", str(empty), str(tmp_path / "out.csv")])

        assert result.exit_code == 1
        assert "No loadable patient records" in result.stdout


class TestInfoAndVersion:
    """Test the info command and global options."""

    def test_info(self):
        result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "Ophtha-Timeline" in result.stdout
        assert "primary_only" in result.stdout

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "v1.0.0" in result.stdout

    def test_no_command_shows_help(self):
        result = runner.invoke(app, [])

        assert result.exit_code == 0
        assert "timeline" in result.stdout
