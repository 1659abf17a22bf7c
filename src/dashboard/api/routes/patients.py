"""Patient timeline endpoints for dashboard API.

Every request builds its own ColorAssignment, so procedure colors are
stable within one response and never shared between patients or requests.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException

from src.adapters.sources import decode_patient_document
from src.dashboard.api.dependencies import (
    ColorAssignmentDep,
    EyeSelectorDep,
    PatientSourceDep,
)
from src.dashboard.models.timeline import IntervalListResponse, PatientListResponse
from src.domain.ports import (
    PatientSourcePort,
    SourceNotFoundError,
    ValidationError,
)
from src.domain.services.interval_engine import (
    assign_tracks,
    build_intervals,
    build_medication_intervals,
)
from src.domain.services.patient_summary import build_patient_timeline
from src.domain.timeline_models import PatientTimeline
from src.domain.visit_record import PatientRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["patients"])

# Result error types mapped to HTTP status codes
ERROR_STATUS_CODES = {
    "SourceNotFoundError": 404,
    "ValidationError": 422,
    "UnsupportedSourceError": 413,
}

MEDICATION_CATEGORY = "medication"


def load_patient_or_raise(source: PatientSourcePort, uid: str) -> PatientRecord:
    """Load a patient record, translating failures into HTTP errors.

    Raises:
        HTTPException: 404 unknown patient, 422 undecodable record,
            413 oversized record
    """
    result = source.load(uid)
    if result.is_success():
        return result.value

    status_code = ERROR_STATUS_CODES.get(result.error_type, 500)
    logger.warning(
        f"Failed to load patient {uid}: {result.error_type}",
        extra={"patient_uid": uid},
    )
    raise HTTPException(status_code=status_code, detail=result.error)


@router.get("/patients", response_model=PatientListResponse)
async def list_patients(source: PatientSourceDep) -> PatientListResponse:
    """List available patient UIDs.

    Raises:
        HTTPException: 503 if the record source is unavailable
    """
    try:
        uids = source.list_uids()
    except SourceNotFoundError as e:
        logger.error(f"Patient source unavailable: {e}")
        raise HTTPException(status_code=503, detail="Patient record source unavailable")

    return PatientListResponse(uids=uids, count=len(uids))


@router.get("/patients/{uid}/timeline", response_model=PatientTimeline)
async def get_patient_timeline(
    uid: str,
    source: PatientSourceDep,
    eye: EyeSelectorDep,
    colors: ColorAssignmentDep,
) -> PatientTimeline:
    """Build the full timeline view for a stored patient.

    Parameters:
        uid: Patient UID
        source: Patient source (injected)
        eye: Eye selector from ``?eye=`` (injected)
        colors: Request-scoped color assignment (injected)

    Returns:
        PatientTimeline
    """
    record = load_patient_or_raise(source, uid)
    try:
        return build_patient_timeline(record, eye, colors)
    except Exception as e:
        logger.error(f"Timeline build failed for patient {uid}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to build patient timeline")


@router.post("/timeline", response_model=PatientTimeline)
async def post_timeline(
    eye: EyeSelectorDep,
    colors: ColorAssignmentDep,
    payload: dict[str, Any] = Body(..., description="Patient record document or record API envelope"),
) -> PatientTimeline:
    """Build the timeline view for a record supplied in the request body.

    Raises:
        HTTPException: 422 if the body is not a decodable patient record
    """
    try:
        record = decode_patient_document(payload, source="request body")
    except ValidationError as e:
        logger.warning(f"Rejected posted patient record: {e}")
        raise HTTPException(status_code=422, detail=str(e))

    try:
        return build_patient_timeline(record, eye, colors)
    except Exception as e:
        logger.error(f"Timeline build failed for posted record: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to build patient timeline")


@router.get("/patients/{uid}/intervals/{category}", response_model=IntervalListResponse)
async def get_patient_intervals(
    uid: str,
    category: str,
    source: PatientSourceDep,
    eye: EyeSelectorDep,
) -> IntervalListResponse:
    """Gantt intervals for one category (an observation key, ``diagnosis`` or ``medication``).

    An unknown category yields an empty list, not an error.
    """
    record = load_patient_or_raise(source, uid)
    category = category.strip().lower()

    if category == MEDICATION_CATEGORY:
        intervals = build_medication_intervals(record)
    else:
        intervals = build_intervals(record, category, eye)

    return IntervalListResponse(
        uid=record.patient.uid or uid,
        eye=eye,
        category=category,
        intervals=intervals,
        tracks=assign_tracks(intervals),
    )
