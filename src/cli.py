"""Command Line Interface for the Ophtha-Timeline engine.

This module provides a CLI using Typer for building patient timelines from
visit record files, inspecting single Gantt categories and exporting
precomputed timelines for a whole directory of patients.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from src.adapters.sources import JSONPatientSource
from src.adapters.timeline_frames import batch_precompute, write_frames
from src.domain.enums import BOTH_EYES_POLICY, EyeSelector, ObservationCategory
from src.domain.ports import SourceNotFoundError
from src.domain.services.color_assignment import ColorAssignment
from src.domain.services.interval_engine import (
    assign_tracks,
    build_intervals,
    build_medication_intervals,
)
from src.domain.services.notation_codec import format_date
from src.domain.services.patient_summary import build_patient_timeline
from src.domain.visit_record import PatientRecord
from src.infrastructure.logging_config import setup_logging
from src.infrastructure.settings import settings

logger = logging.getLogger(__name__)

# Initialize Typer app and Rich console
app = typer.Typer(
    name="ophtha-timeline",
    help="Ophtha-Timeline: visit record to timeline transformation engine",
    add_completion=False
)
console = Console()

MEDICATION_CATEGORY = "medication"


def _resolve_eye(eye: Optional[str]) -> EyeSelector:
    return settings.default_eye if eye is None else EyeSelector.parse(eye)


def load_record_cli(input_file: Path) -> PatientRecord:
    """Load a record file or exit with a formatted error (CLI wrapper)."""
    source = JSONPatientSource(input_file.parent, max_record_size=settings.max_record_size)
    result = source.load_path(input_file)
    if result.is_failure():
        console.print(f"[red]✗[/red] Failed to load {input_file.name}: {result.error}")
        raise typer.Exit(code=1)
    return result.value


@app.command()
def timeline(
    input_file: Path = typer.Argument(..., help="Patient record JSON file", exists=True, dir_okay=False),
    eye: Optional[str] = typer.Option(None, "--eye", "-e", help="Eye selector: RE, LE or BE"),
    json_output: bool = typer.Option(False, "--json", help="Print the full timeline as JSON"),
) -> None:
    """Build and display a patient's timeline.

    Examples:
        ophtha-timeline timeline patient_data/P-1001.json
        ophtha-timeline timeline patient_data/P-1001.json --eye LE --json
    """
    selector = _resolve_eye(eye)
    record = load_record_cli(input_file)
    result = build_patient_timeline(record, selector, ColorAssignment())

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
        return

    console.print(f"\n[bold blue]Patient {result.uid or input_file.stem}[/bold blue] ({selector.display_name})")
    console.print(f"[dim]{result.summary}[/dim]\n")

    series_table = Table(show_header=False, box=None, padding=(0, 2))
    series_table.add_row("Acuity points:", f"{len(result.series.acuity):,}")
    series_table.add_row("Pressure points:", f"{len(result.series.pressure):,}")
    series_table.add_row("Thickness points:", f"{len(result.series.thickness):,}")
    series_table.add_row("Procedure events:", f"{len(result.series.procedures):,}")
    console.print(series_table)

    if result.diagnoses:
        diagnosis_table = Table(title="Diagnoses", show_header=True, header_style="bold")
        diagnosis_table.add_column("Diagnosis", style="cyan")
        diagnosis_table.add_column("From")
        diagnosis_table.add_column("To")
        for interval in result.diagnoses:
            diagnosis_table.add_row(interval.task, format_date(interval.start), format_date(interval.end))
        console.print(diagnosis_table)

    if result.procedures:
        procedure_table = Table(title="Procedures", show_header=True, header_style="bold")
        procedure_table.add_column("Procedure", style="cyan")
        procedure_table.add_column("Category")
        procedure_table.add_column("Count", justify="right")
        for item in result.procedures:
            procedure_table.add_row(item.name, item.category.value, str(item.count))
        console.print(procedure_table)


@app.command()
def intervals(
    input_file: Path = typer.Argument(..., help="Patient record JSON file", exists=True, dir_okay=False),
    category: str = typer.Argument(..., help="Observation category, 'diagnosis' or 'medication'"),
    eye: Optional[str] = typer.Option(None, "--eye", "-e", help="Eye selector: RE, LE or BE"),
) -> None:
    """Show the Gantt intervals and track placement for one category."""
    category = category.strip().lower()
    known = {c.value for c in ObservationCategory} | {MEDICATION_CATEGORY}
    if category not in known:
        console.print(f"[red]✗[/red] Unknown category '{category}'. Choose from: {', '.join(sorted(known))}")
        raise typer.Exit(code=1)

    selector = _resolve_eye(eye)
    record = load_record_cli(input_file)

    if category == MEDICATION_CATEGORY:
        found = build_medication_intervals(record)
    else:
        found = build_intervals(record, category, selector)

    if not found:
        console.print(f"[yellow]⚠[/yellow] No {category} intervals for {selector.display_name}")
        return

    table = Table(title=f"{category} ({selector.value})", show_header=True, header_style="bold")
    table.add_column("Track", justify="right")
    table.add_column("Value", style="cyan")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Days", justify="right")
    for tracked in assign_tracks(found):
        table.add_row(
            str(tracked.track),
            tracked.task,
            tracked.start,
            tracked.end,
            str(tracked.duration_days),
        )
    console.print(table)


@app.command()
def export(
    data_dir: Path = typer.Argument(..., help="Directory of <uid>.json patient records", exists=True, file_okay=False),
    output: Path = typer.Argument(..., help="Output CSV path for intervals"),
    eye: Optional[str] = typer.Option(None, "--eye", "-e", help="Eye selector: RE, LE or BE"),
) -> None:
    """Precompute timelines for every patient in a directory and export CSV.

    Writes intervals to OUTPUT plus <stem>_series.csv and
    <stem>_procedures.csv next to it.
    """
    selector = _resolve_eye(eye)
    source = JSONPatientSource(data_dir, max_record_size=settings.max_record_size)

    try:
        uids = source.list_uids()
    except SourceNotFoundError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    records = []
    failures = 0
    for uid in uids:
        result = source.load(uid)
        if result.is_success():
            records.append(result.value)
        else:
            failures += 1
            logger.warning(f"Skipping patient {uid}: {result.error_type}: {result.error}")

    if not records:
        console.print(f"[red]✗[/red] No loadable patient records in {data_dir}")
        raise typer.Exit(code=1)

    frames = batch_precompute(records, selector)
    written = write_frames(frames, output)

    summary_table = Table(show_header=False, box=None, padding=(0, 2))
    summary_table.add_row("Patients exported:", f"[green]{len(records):,}[/green]")
    summary_table.add_row("Patients skipped:", f"[red]{failures:,}[/red]" if failures else "0")
    summary_table.add_row("Interval rows:", f"{len(frames['intervals']):,}")
    summary_table.add_row("Series rows:", f"{len(frames['series']):,}")
    console.print(summary_table)
    for path in written:
        console.print(f"[green]✓[/green] Wrote {path}")


@app.command()
def info() -> None:
    """Display configuration and the both-eyes selector policy."""
    console.print("[bold blue]System Information[/bold blue]\n")

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", settings.app_name)
    info_table.add_row("Version:", settings.app_version)
    info_table.add_row("Data Directory:", str(settings.data_dir))
    info_table.add_row("Max Record Size:", f"{settings.max_record_size / (1024*1024):.0f} MB")
    info_table.add_row("Default Eye:", settings.default_eye.value)
    info_table.add_row("Log Level:", settings.log_level)
    console.print(info_table)

    policy_table = Table(title="Both-eyes (BE) handling", show_header=True, header_style="bold")
    policy_table.add_column("Component", style="cyan")
    policy_table.add_column("Policy")
    for component, policy in BOTH_EYES_POLICY.items():
        policy_table.add_row(component, policy.value)
    console.print(policy_table)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version information"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Ophtha-Timeline: visit record to timeline transformation engine."""
    if version:
        console.print(f"{settings.app_name} v{settings.app_version}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    # Logs go to stderr so --json output stays parseable
    setup_logging(
        use_json=settings.json_logs,
        log_level="DEBUG" if verbose else settings.log_level,
        stream=sys.stderr,
    )


if __name__ == "__main__":
    app()
