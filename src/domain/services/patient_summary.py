"""Patient Timeline Assembly.

Composes the individual extraction services into the complete per-patient
view model the dashboard renders, and derives the two small categorical
views that need no algorithm of their own: systemic conditions and the
one-sentence patient narrative.

Architecture:
    - Pure orchestration over the domain services
    - The color assignment is created here only when the caller does not
      supply one; callers holding a session-wide assignment pass it in
"""

import logging
from datetime import date
from typing import Optional

from src.domain.enums import EyeSelector
from src.domain.services.color_assignment import ColorAssignment
from src.domain.services.interval_engine import (
    build_all_observation_intervals,
    build_diagnosis_intervals,
    build_medication_intervals,
)
from src.domain.services.notation_codec import format_date, years_ago
from src.domain.services.procedure_classifier import extract_procedures, procedure_icon
from src.domain.services.series_extractor import extract_series
from src.domain.timeline_models import (
    Interval,
    PatientTimeline,
    ProcedureSummaryItem,
    SystemicCondition,
)
from src.domain.visit_record import PatientRecord

logger = logging.getLogger(__name__)

# Systemic history entries that are form headings, not conditions
SYSTEMIC_IGNORE_LIST = frozenset({
    "remarks",
    "remark",
    "identification marks",
    "identification mark",
    "id marks",
    "id mark",
    "others",
})

SUMMARY_EYE_ABBREVIATIONS = {
    EyeSelector.RIGHT: "RE",
    EyeSelector.LEFT: "LE",
    EyeSelector.BOTH: "eyes",
}


def extract_systemic_conditions(
    record: PatientRecord,
    today: Optional[date] = None,
) -> list[SystemicCondition]:
    """List systemic conditions from the semicolon-separated history notes.

    Each condition is reported once, dated by the first visit (in arrival
    order) that mentions it.

    Parameters:
        record: Patient record
        today: Reference date for the elapsed time (defaults to the current date)

    Returns:
        List of SystemicCondition with DD/MM/YYYY dates and elapsed time
    """
    first_seen: dict[str, str] = {}

    for visit in record.visits:
        if visit.systemic_history is None or not visit.systemic_history.history:
            continue

        display_date = format_date(visit.date)
        for entry in visit.systemic_history.history.split(";"):
            name = entry.strip()
            if not name or name.lower() in SYSTEMIC_IGNORE_LIST:
                continue
            if name not in first_seen:
                first_seen[name] = display_date

    return [
        SystemicCondition(name=name, date=seen, elapsed=years_ago(seen, today))
        for name, seen in first_seen.items()
    ]


def generate_patient_summary(
    record: PatientRecord,
    eye: EyeSelector,
    diagnoses: list[Interval],
    procedures: list[ProcedureSummaryItem],
    conditions: list[SystemicCondition],
) -> str:
    """Compose the one-sentence patient narrative.

    Visit count and first/last dates come from the patient header; they are
    informational and only used for display here.
    """
    patient = record.patient

    diagnosis_text = ", ".join(interval.task for interval in diagnoses) or "no recorded diagnoses"
    procedure_text = ", ".join(item.label for item in procedures) or "no recorded procedures"
    condition_text = ", ".join(condition.name for condition in conditions) or "no systemic conditions"

    visit_count = patient.visit_count if patient.visit_count is not None else len(record.visits)
    first_visit = patient.first_visit or "unknown"
    last_visit = patient.last_visit or "unknown"

    return (
        f"The patient (UID: {patient.uid}) with conditions including {diagnosis_text} "
        f"in the {SUMMARY_EYE_ABBREVIATIONS[eye]} has undergone procedures such as {procedure_text}. "
        f"The patient's history includes {condition_text}. "
        f"Visual acuity, IOP, and CMT have been monitored over {visit_count} visits "
        f"from {first_visit} to {last_visit}."
    )


def build_patient_timeline(
    record: PatientRecord,
    eye: EyeSelector,
    colors: Optional[ColorAssignment] = None,
) -> PatientTimeline:
    """Run every extraction once and assemble the patient's timeline view.

    Parameters:
        record: Patient record
        eye: Eye selector
        colors: Color assignment to use (a private one is created if None)

    Returns:
        PatientTimeline
    """
    if colors is None:
        colors = ColorAssignment()

    series = extract_series(record, eye, colors)
    diagnoses = build_diagnosis_intervals(record, eye)
    medications = build_medication_intervals(record)
    observations = build_all_observation_intervals(record, eye)
    # Icons reuse the colors already assigned to the chart markers
    procedures = [
        item.model_copy(update={"icon": procedure_icon(item.label, colors)})
        for item in extract_procedures(record, eye)
    ]
    conditions = extract_systemic_conditions(record)
    summary = generate_patient_summary(record, eye, diagnoses, procedures, conditions)

    logger.info(
        f"Built timeline for patient {record.patient.uid or 'unknown'} ({eye.value}): "
        f"{len(record.visits)} visits, {len(diagnoses)} diagnoses, {len(procedures)} procedures"
    )

    return PatientTimeline(
        uid=record.patient.uid,
        eye=eye,
        series=series,
        diagnoses=diagnoses,
        medications=medications,
        observations=observations,
        procedures=procedures,
        systemic_conditions=conditions,
        summary=summary,
    )
