"""Tabular Timeline Export.

Flattens PatientTimeline view models into pandas DataFrames for analysis
and CSV export, and precomputes timelines for many patients at once.

Architecture:
    - Adapter on the output side: depends on domain models, never the reverse
    - Batch precomputation gives every patient a private ColorAssignment so
      that colors assigned for one patient never leak into the next
"""

import logging
from pathlib import Path
from typing import Iterable, Union

import pandas as pd

from src.domain.enums import EyeSelector
from src.domain.services.color_assignment import ColorAssignment
from src.domain.services.interval_engine import assign_tracks
from src.domain.services.patient_summary import build_patient_timeline
from src.domain.timeline_models import PatientTimeline
from src.domain.visit_record import PatientRecord

logger = logging.getLogger(__name__)

SERIES_COLUMNS = ["uid", "eye", "series", "date", "value", "numeric", "detail", "color"]
INTERVAL_COLUMNS = [
    "uid", "eye", "section", "task", "start", "end", "dosage",
    "track", "start_offset_days", "duration_days",
]
PROCEDURE_COLUMNS = ["uid", "eye", "category", "name", "count", "label"]

FRAME_COLUMNS = {
    "series": SERIES_COLUMNS,
    "intervals": INTERVAL_COLUMNS,
    "procedures": PROCEDURE_COLUMNS,
}


def series_frame(timeline: PatientTimeline) -> pd.DataFrame:
    """Long-format frame of every chart point, sorted by date.

    ``series`` is one of acuity, pressure, thickness or procedure. Acuity
    rows carry the near acuity in ``detail``; procedure rows carry the
    category in ``detail`` and have no numeric value.
    """
    rows = []
    for point in timeline.series.acuity:
        rows.append({"series": "acuity", "date": point.date, "value": point.value,
                     "numeric": point.numeric, "detail": point.near, "color": None})
    for point in timeline.series.pressure:
        rows.append({"series": "pressure", "date": point.date, "value": str(point.value),
                     "numeric": point.value, "detail": None, "color": None})
    for point in timeline.series.thickness:
        rows.append({"series": "thickness", "date": point.date, "value": str(int(point.value)),
                     "numeric": point.value, "detail": None, "color": None})
    for event in timeline.series.procedures:
        rows.append({"series": "procedure", "date": event.date, "value": event.name,
                     "numeric": None, "detail": event.category.value, "color": event.color})

    df = pd.DataFrame(rows, columns=SERIES_COLUMNS)
    df["uid"] = timeline.uid
    df["eye"] = timeline.eye.value
    return df.sort_values(["date", "series"], kind="stable").reset_index(drop=True)


def interval_frame(timeline: PatientTimeline) -> pd.DataFrame:
    """Frame of every Gantt interval with its track placement, per section."""
    sections = {"diagnosis": timeline.diagnoses, "medication": timeline.medications}
    sections.update(timeline.observations)

    rows = []
    for section, intervals in sections.items():
        for tracked in assign_tracks(intervals):
            row = tracked.model_dump()
            row["section"] = section
            rows.append(row)

    df = pd.DataFrame(rows, columns=INTERVAL_COLUMNS)
    df["uid"] = timeline.uid
    df["eye"] = timeline.eye.value
    return df


def procedure_frame(timeline: PatientTimeline) -> pd.DataFrame:
    """Frame of the deduplicated procedure summary."""
    rows = [
        {"category": item.category.value, "name": item.name, "count": item.count, "label": item.label}
        for item in timeline.procedures
    ]
    df = pd.DataFrame(rows, columns=PROCEDURE_COLUMNS)
    df["uid"] = timeline.uid
    df["eye"] = timeline.eye.value
    return df


def timeline_frames(timeline: PatientTimeline) -> dict[str, pd.DataFrame]:
    """All frames for one timeline, keyed ``series``, ``intervals`` and ``procedures``."""
    return {
        "series": series_frame(timeline),
        "intervals": interval_frame(timeline),
        "procedures": procedure_frame(timeline),
    }


def _concat(frames: list[pd.DataFrame], columns: list[str]) -> pd.DataFrame:
    non_empty = [frame for frame in frames if not frame.empty]
    if not non_empty:
        return pd.DataFrame(columns=columns)
    return pd.concat(non_empty, ignore_index=True)


def batch_precompute(records: Iterable[PatientRecord], eye: EyeSelector) -> dict[str, pd.DataFrame]:
    """Build timelines for many patients and concatenate their frames.

    Every patient gets a fresh ColorAssignment.

    Parameters:
        records: Patient records
        eye: Eye selector applied to every patient

    Returns:
        dict: ``series``, ``intervals`` and ``procedures`` frames across all patients
    """
    collected: dict[str, list[pd.DataFrame]] = {name: [] for name in FRAME_COLUMNS}
    patient_count = 0

    for record in records:
        timeline = build_patient_timeline(record, eye, ColorAssignment())
        for name, frame in timeline_frames(timeline).items():
            collected[name].append(frame)
        patient_count += 1

    logger.info(f"Precomputed {eye.value} timelines for {patient_count} patients")

    return {name: _concat(frames, FRAME_COLUMNS[name]) for name, frames in collected.items()}


def write_frames(frames: dict[str, pd.DataFrame], output: Union[str, Path]) -> list[Path]:
    """Write batch frames as CSV.

    The interval frame goes to ``output``; the series and procedure frames go
    next to it as ``<stem>_series.csv`` and ``<stem>_procedures.csv``.

    Returns:
        Paths written, interval file first
    """
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)

    targets = {
        "intervals": output,
        "series": output.with_name(f"{output.stem}_series{output.suffix or '.csv'}"),
        "procedures": output.with_name(f"{output.stem}_procedures{output.suffix or '.csv'}"),
    }
    for name, path in targets.items():
        frames[name].to_csv(path, index=False)
        logger.debug(f"Wrote {len(frames[name])} {name} rows to {path}")

    return list(targets.values())
