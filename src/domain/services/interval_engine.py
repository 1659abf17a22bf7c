"""Interval Merge Engine.

Derives Gantt intervals ("how long was this finding present") from a
patient's visit log. Three algorithms share one merge rule:

    - Observation fields (lens, iris, disc ...): one value per visit; runs of
      identical normalized values become intervals
    - Diagnoses: a set of concurrent conditions per visit, each tracked
      independently from first to last sighting
    - Medications: every prescription widens its drug/eye key to cover the
      visit date

Merge rule: intervals are keyed by their normalized label. When the same
label recurs after a gap, the later run is merged into the existing entry
(earliest start, latest end) instead of producing a second bar. Recurrences
of identical text are therefore shown as one continuous condition.

Architecture:
    - Pure domain service with no infrastructure dependencies
    - Visits are sorted by ISO date before any run detection
    - Malformed or missing fields are skipped, never raised
"""

import logging
import re
from datetime import datetime
from typing import Any, Optional, Union

from src.domain.enums import EyeSelector, ObservationCategory
from src.domain.timeline_models import Interval, TrackedInterval
from src.domain.visit_record import PatientRecord, Visit

logger = logging.getLogger(__name__)

# Observation category -> (visit sub-record attribute, field attribute)
OBSERVATION_FIELDS: dict[ObservationCategory, tuple[str, str]] = {
    ObservationCategory.BACKGROUND_RETINA: ("fundus", "background_retina"),
    ObservationCategory.FOVEAL_REFLEX: ("fundus", "foveal_reflex"),
    ObservationCategory.CONJUNCTIVA: ("anterior_segment", "conjunctiva"),
    ObservationCategory.MEDIA: ("fundus", "media"),
    ObservationCategory.ANTERIOR_CHAMBER: ("anterior_segment", "anterior_chamber"),
    ObservationCategory.IRIS: ("anterior_segment", "iris"),
    ObservationCategory.DISC: ("fundus", "disc"),
    ObservationCategory.PUPIL: ("anterior_segment", "pupil"),
    ObservationCategory.VESSELS: ("fundus", "vessels"),
    ObservationCategory.UNDILATED_FUNDUS: ("fundus", "remarks"),
    ObservationCategory.LENS: ("anterior_segment", "lens"),
}

# Diagnosis list slots read for each selector; index 2 holds both-eye diagnoses
DIAGNOSIS_SLOTS: dict[EyeSelector, tuple[int, ...]] = {
    EyeSelector.RIGHT: (0, 2),
    EyeSelector.LEFT: (1, 2),
    EyeSelector.BOTH: (0, 1, 2),
}

MEDICATION_EYE_LABELS = {"1": " (RE)", "2": " (LE)", "3": " (BE)"}

_REPEAT_SUFFIX = re.compile(r"\s*×\s*\d+\s*$")
_WHITESPACE = re.compile(r"\s+")
_TRAILING_PUNCTUATION = re.compile(r"[;,]+$")

ISO_DATE_FORMAT = "%Y-%m-%d"


def normalize_condition_name(name: str) -> str:
    """Collapse whitespace and strip trailing ``;``/``,`` for grouping."""
    return _TRAILING_PUNCTUATION.sub("", _WHITESPACE.sub(" ", name.strip()))


class _IntervalMap:
    """Insertion-ordered label -> (start, end) map applying the merge rule."""

    def __init__(self) -> None:
        self._ranges: dict[str, list[str]] = {}

    def merge(self, label: Optional[str], start: Optional[str], end: Optional[str]) -> None:
        if not label or not start or not end:
            return
        existing = self._ranges.get(label)
        if existing is None:
            self._ranges[label] = [start, end]
            return
        if start < existing[0]:
            existing[0] = start
        if end > existing[1]:
            existing[1] = end

    def to_intervals(self) -> list[Interval]:
        return [
            Interval(task=label, start=start, end=end)
            for label, (start, end) in self._ranges.items()
            if start and end
        ]


def _resolve_eye_value(value: Any, eye: EyeSelector) -> str:
    """Pick the selected eye's entry from a field that may be per-eye indexed.

    Falls back to index 0 when the selected index is absent. Non-text values
    count as blank.
    """
    if isinstance(value, list):
        if eye.index < len(value) and value[eye.index] is not None:
            value = value[eye.index]
        elif value:
            value = value[0]
        else:
            value = None
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        return ""
    return value


def _coerce_category(category: Union[str, ObservationCategory]) -> Optional[ObservationCategory]:
    if isinstance(category, ObservationCategory):
        return category
    try:
        return ObservationCategory(str(category).strip().lower())
    except ValueError:
        return None


def build_intervals(
    record: PatientRecord,
    category: Union[str, ObservationCategory],
    eye: EyeSelector,
) -> list[Interval]:
    """Build Gantt intervals for one observation category and eye.

    Walks the visits in date order keeping a current value and run start:
        - a visit without the category's sub-record is skipped
        - a blank value closes the open run at the previous visit's date
        - a different value closes the open run the same way and opens a new
          run at this visit's date
        - an equal value continues the run
    The run still open after the last visit closes at the last visit's date.

    Parameters:
        record: Patient record
        category: Observation category key (``ObservationCategory`` or its value)
        eye: Eye selector

    Returns:
        List of Interval; empty for an unknown category
    """
    resolved = _coerce_category(category)
    if resolved is None:
        logger.warning(f"No field mapping found for observation category: {category}")
        return []

    if resolved is ObservationCategory.DIAGNOSIS:
        return build_diagnosis_intervals(record, eye)

    parent_attr, field_attr = OBSERVATION_FIELDS[resolved]
    visits = record.sorted_visits()
    intervals = _IntervalMap()

    current_value: Optional[str] = None
    run_start: Optional[str] = None

    for index, visit in enumerate(visits):
        parent = getattr(visit, parent_attr)
        if parent is None:
            continue

        previous_date = visits[index - 1].date if index > 0 else visit.date
        value = _resolve_eye_value(getattr(parent, field_attr, None), eye)

        if not value.strip():
            if current_value is not None:
                intervals.merge(current_value, run_start, previous_date)
                current_value = None
                run_start = None
            continue

        normalized = normalize_condition_name(value)
        if normalized != current_value:
            if current_value is not None:
                intervals.merge(current_value, run_start, previous_date)
            current_value = normalized
            run_start = visit.date

    if current_value is not None and visits:
        intervals.merge(current_value, run_start, visits[-1].date)

    return intervals.to_intervals()


def _diagnoses_in_slot(entry: Any) -> list[str]:
    """Normalized diagnoses filed in one ``diag`` slot (string or list)."""
    if isinstance(entry, str):
        entry = [entry] if entry.strip() else []
    if not isinstance(entry, list):
        return []

    result = []
    for diagnosis in entry:
        if not isinstance(diagnosis, str) or not diagnosis.strip():
            continue
        cleaned = _REPEAT_SUFFIX.sub("", diagnosis.strip()).strip()
        normalized = normalize_condition_name(cleaned)
        if normalized:
            result.append(normalized)
    return result


def build_diagnosis_intervals(record: PatientRecord, eye: EyeSelector) -> list[Interval]:
    """Build diagnosis intervals, tracking each concurrent condition independently.

    For single-eye selectors the both-eyes slot is merged into the eye's own
    diagnoses. A tracked condition closes (at its last sighting) on the first
    later-dated visit that records diagnoses without it; conditions still
    open after the last visit close at their last sighting. Visits without a
    diagnosis block neither extend nor close anything.
    """
    intervals = _IntervalMap()
    # condition -> [first seen, last seen]
    tracker: dict[str, list[str]] = {}

    for visit in record.sorted_visits():
        if not isinstance(visit.diagnosis, list):
            continue
        visit_date = visit.date

        present: dict[str, None] = {}
        for slot in DIAGNOSIS_SLOTS[eye]:
            if slot < len(visit.diagnosis):
                for diagnosis in _diagnoses_in_slot(visit.diagnosis[slot]):
                    present[diagnosis] = None

        for diagnosis in present:
            if diagnosis in tracker:
                tracker[diagnosis][1] = visit_date
            else:
                tracker[diagnosis] = [visit_date, visit_date]

        for diagnosis in list(tracker):
            first_seen, last_seen = tracker[diagnosis]
            if diagnosis not in present and last_seen != visit_date:
                intervals.merge(diagnosis, first_seen, last_seen)
                del tracker[diagnosis]

    for diagnosis, (first_seen, last_seen) in tracker.items():
        intervals.merge(diagnosis, first_seen, last_seen)

    return intervals.to_intervals()


def medication_eye_label(code: Any) -> str:
    """Suffix for a medication route code: 1=RE, 2=LE, 3=BE, otherwise none."""
    if code is None or isinstance(code, bool):
        return ""
    if isinstance(code, float) and code.is_integer():
        code = int(code)
    return MEDICATION_EYE_LABELS.get(str(code).strip(), "")


def medication_dosage_text(dosage: Optional[str], frequency: Any) -> str:
    """Display dosage: "dos x fre", "dos", or empty."""
    if dosage and frequency:
        return f"{dosage} x {frequency}"
    return dosage or ""


def build_medication_intervals(record: PatientRecord) -> list[Interval]:
    """Build one interval per drug and eye covering every visit that prescribes it.

    Medications are keyed by drug name plus eye label ("Timolol (RE)"; oral
    and unknown routes carry no label). The dosage text shown is the one from
    the earliest-dated prescription that has any dosage text.
    """
    # task -> {"start", "end", "dosage", "dosage_date"}
    entries: dict[str, dict[str, Optional[str]]] = {}

    for visit in record.visits:
        if not visit.medications or not visit.date:
            continue
        visit_date = visit.date

        for medication in visit.medications:
            drug_name = (medication.name or "").strip()
            if not drug_name:
                continue

            task = f"{drug_name}{medication_eye_label(medication.eye)}"
            dosage = medication_dosage_text(medication.dosage, medication.frequency)

            entry = entries.get(task)
            if entry is None:
                entry = {"start": visit_date, "end": visit_date, "dosage": None, "dosage_date": None}
                entries[task] = entry
            else:
                if visit_date < entry["start"]:
                    entry["start"] = visit_date
                if visit_date > entry["end"]:
                    entry["end"] = visit_date

            if dosage and (entry["dosage_date"] is None or visit_date < entry["dosage_date"]):
                entry["dosage"] = dosage
                entry["dosage_date"] = visit_date

    return [
        Interval(task=task, start=entry["start"], end=entry["end"], dosage=entry["dosage"])
        for task, entry in entries.items()
    ]


def build_all_observation_intervals(
    record: PatientRecord, eye: EyeSelector
) -> dict[str, list[Interval]]:
    """Intervals for every anatomical observation category, keyed by category value."""
    return {
        category.value: build_intervals(record, category, eye)
        for category in OBSERVATION_FIELDS
    }


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value, ISO_DATE_FORMAT)
    except (TypeError, ValueError):
        return None


def assign_tracks(intervals: list[Interval]) -> list[TrackedInterval]:
    """Place intervals on the fewest non-overlapping Gantt tracks.

    Intervals are sorted by start then end and greedily placed on the lowest
    track whose last interval ends on or before their start. Offsets and
    durations are whole days from the earliest start. Intervals with
    unparseable dates are left out.
    """
    parsed = []
    for interval in intervals:
        start = _parse_iso(interval.start)
        end = _parse_iso(interval.end)
        if start is None or end is None:
            logger.debug(f"Skipping interval with unparseable dates: {interval.task}")
            continue
        parsed.append((start, end, interval))

    if not parsed:
        return []

    parsed.sort(key=lambda item: (item[0], item[1]))
    origin = parsed[0][0]
    track_ends: list[datetime] = []
    result = []

    for start, end, interval in parsed:
        track = next((i for i, track_end in enumerate(track_ends) if track_end <= start), None)
        if track is None:
            track = len(track_ends)
            track_ends.append(end)
        else:
            track_ends[track] = end

        result.append(TrackedInterval(
            task=interval.task,
            start=interval.start,
            end=interval.end,
            dosage=interval.dosage,
            track=track,
            start_offset_days=(start - origin).days,
            duration_days=(end - start).days,
        ))

    return result
