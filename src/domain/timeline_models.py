"""Derived Timeline Models.

This module defines the view-model structures produced by the timeline
engine: time-series points, procedure events, Gantt intervals and
categorical summaries. They carry no behaviour and serialize to plain JSON
via ``model_dump(mode="json")`` so they can cross a process boundary or go
straight to a rendering layer.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Created fresh on every extraction call, never mutated afterwards
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.domain.enums import EyeSelector, ProcedureCategory


class _DerivedModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class AcuityPoint(_DerivedModel):
    """One visual acuity reading.

    Parameters:
        date: ISO visit date
        value: Normalized distance acuity as displayed ("6/18P", "CF")
        numeric: Position on the ordinal acuity axis (larger is better)
        near: Normalized near acuity shown alongside, if recorded
    """

    date: str
    value: str
    numeric: float
    near: Optional[str] = None


class MeasurementPoint(_DerivedModel):
    """One numeric reading (intraocular pressure or macular thickness)."""

    date: str
    value: float


class ProcedureEvent(_DerivedModel):
    """A dated procedure marker for the line chart."""

    date: str
    category: ProcedureCategory
    name: str
    color: str


class ChartSeries(_DerivedModel):
    """The line-chart payload for one eye selector.

    Points are in visit arrival order; consumers needing strict chronology
    must sort by date.
    """

    procedures: list[ProcedureEvent] = Field(default_factory=list)
    acuity: list[AcuityPoint] = Field(default_factory=list)
    pressure: list[MeasurementPoint] = Field(default_factory=list)
    thickness: list[MeasurementPoint] = Field(default_factory=list)


class PairedMeasurement(_DerivedModel):
    """Per-eye values mined from one free-text report."""

    right: Optional[int] = None
    left: Optional[int] = None


class Interval(_DerivedModel):
    """A Gantt bar: one condition value spanning a date range.

    Parameters:
        task: Normalized condition / value label
        start: ISO start date
        end: ISO end date
        dosage: Dosage text (medication intervals only)
    """

    task: str
    start: str
    end: str
    dosage: Optional[str] = None


class TrackedInterval(_DerivedModel):
    """An interval placed on a non-overlapping Gantt track."""

    task: str
    start: str
    end: str
    dosage: Optional[str] = None
    track: int
    start_offset_days: int
    duration_days: int


class ProcedureIcon(_DerivedModel):
    icon: str
    color: str


class ProcedureSummaryItem(_DerivedModel):
    """A deduplicated procedure with its occurrence count.

    ``label`` carries the " (Nx)" suffix when the procedure occurred more
    than once. ``icon`` is attached when the full timeline is assembled.
    """

    category: ProcedureCategory
    name: str
    count: int
    label: str
    icon: Optional[ProcedureIcon] = None


class SystemicCondition(_DerivedModel):
    """A systemic condition and the display date it was first recorded.

    ``elapsed`` is the time since that date ("2 years 3 months").
    """

    name: str
    date: str
    elapsed: str = ""


class PatientTimeline(_DerivedModel):
    """Everything the patient dashboard renders for one eye selector."""

    uid: str
    eye: EyeSelector
    series: ChartSeries
    diagnoses: list[Interval] = Field(default_factory=list)
    medications: list[Interval] = Field(default_factory=list)
    observations: dict[str, list[Interval]] = Field(default_factory=dict)
    procedures: list[ProcedureSummaryItem] = Field(default_factory=list)
    systemic_conditions: list[SystemicCondition] = Field(default_factory=list)
    summary: str = ""
