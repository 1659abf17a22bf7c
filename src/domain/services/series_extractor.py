"""Series Extractor.

Walks a patient's visits once and emits the line-chart payload: procedure
event markers plus the acuity, intraocular pressure and macular thickness
series for one eye selector.

Points are collected in visit arrival order; the rendering layer sorts by
date when it needs strict chronology. Visits without a date contribute
nothing.
"""

import logging
import math
from typing import Any, Optional

from src.domain.enums import EyeSelector
from src.domain.services.color_assignment import ColorAssignment
from src.domain.services.measurement_extractor import MeasurementExtractor
from src.domain.services.notation_codec import (
    acuity_to_ordinal,
    decompress_acuity,
    parse_leading_float,
)
from src.domain.services.procedure_classifier import procedure_events
from src.domain.timeline_models import (
    AcuityPoint,
    ChartSeries,
    MeasurementPoint,
    ProcedureEvent,
)
from src.domain.visit_record import PatientRecord, VisionData, Visit

logger = logging.getLogger(__name__)

# Recorded when the tonometer reading could not be taken
PRESSURE_NOT_MEASURABLE = "Not Measurable"


def _eye_entry(entries: Optional[list], eye: EyeSelector) -> Any:
    if not isinstance(entries, list) or eye.index >= len(entries):
        return None
    return entries[eye.index]


def extract_acuity(visit: Visit, eye: EyeSelector) -> Optional[AcuityPoint]:
    """Distance acuity point for one visit, with near acuity attached.

    Uses the best corrected reading, falling back to uncorrected. Returns
    ``None`` when there is no distance reading or it has no ordinal position.
    """
    if visit.vision is None or not visit.date:
        return None

    distance_value = ""
    distance = _eye_entry(visit.vision.distance, eye)
    if isinstance(distance, VisionData):
        distance_value = decompress_acuity(distance.va or distance.ucva)

    near_value: Optional[str] = None
    near = _eye_entry(visit.vision.near, eye)
    if isinstance(near, VisionData) and near.va:
        near_value = decompress_acuity(near.va)

    if not distance_value:
        return None

    numeric = acuity_to_ordinal(distance_value)
    if numeric is None:
        logger.debug(f"Unplottable acuity on {visit.date}: {distance_value!r}")
        return None

    return AcuityPoint(date=visit.date, value=distance_value, numeric=numeric, near=near_value)


def parse_pressure(raw: Any) -> Optional[float]:
    """Parse one pressure reading; ``None`` for the sentinel, unparseable or non-positive values."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value: Optional[float] = float(raw)
    elif isinstance(raw, str):
        if not raw.strip() or raw.strip() == PRESSURE_NOT_MEASURABLE:
            return None
        value = parse_leading_float(raw)
    else:
        return None

    if value is None or math.isnan(value) or value <= 0:
        return None
    return value


def extract_pressure(visit: Visit, eye: EyeSelector) -> Optional[MeasurementPoint]:
    """Pressure point for one visit; a per-eye list is indexed, a scalar is read as is."""
    if visit.investigation is None or not visit.date:
        return None

    iop = visit.investigation.iop
    raw = _eye_entry(iop, eye) if isinstance(iop, list) else iop

    value = parse_pressure(raw)
    if value is None:
        return None
    return MeasurementPoint(date=visit.date, value=value)


def extract_thickness(visit: Visit, eye: EyeSelector) -> Optional[MeasurementPoint]:
    """Thickness point mined from the visit's special-investigation report.

    The both-eyes selector reads the right eye value.
    """
    if visit.investigation is None or visit.investigation.special is None or not visit.date:
        return None

    report = visit.investigation.special.report
    if not report:
        return None

    measurement = MeasurementExtractor.extract(report)
    value = measurement.left if eye is EyeSelector.LEFT else measurement.right

    if value is None:
        return None
    return MeasurementPoint(date=visit.date, value=float(value))


def extract_series(
    record: PatientRecord,
    eye: EyeSelector,
    colors: ColorAssignment,
) -> ChartSeries:
    """Extract every line-chart series for one eye selector.

    Parameters:
        record: Patient record
        eye: Eye selector
        colors: Caller-owned color assignment used for procedure markers

    Returns:
        ChartSeries with points in visit arrival order
    """
    procedures: list[ProcedureEvent] = []
    acuity: list[AcuityPoint] = []
    pressure: list[MeasurementPoint] = []
    thickness: list[MeasurementPoint] = []

    for visit in record.visits:
        if not visit.date:
            logger.debug(f"Skipping undated visit {visit.number}")
            continue

        procedures.extend(procedure_events(visit, eye, colors))

        acuity_point = extract_acuity(visit, eye)
        if acuity_point is not None:
            acuity.append(acuity_point)

        pressure_point = extract_pressure(visit, eye)
        if pressure_point is not None:
            pressure.append(pressure_point)

        thickness_point = extract_thickness(visit, eye)
        if thickness_point is not None:
            thickness.append(thickness_point)

    logger.debug(
        f"Extracted series for {record.patient.uid or 'unknown patient'} ({eye.value}): "
        f"{len(procedures)} procedures, {len(acuity)} acuity, "
        f"{len(pressure)} pressure, {len(thickness)} thickness"
    )

    return ChartSeries(
        procedures=procedures,
        acuity=acuity,
        pressure=pressure,
        thickness=thickness,
    )
