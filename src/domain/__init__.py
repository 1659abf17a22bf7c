"""Domain layer for Ophtha-Timeline.

This module contains the visit record schema, the derived timeline models
and the transformation services. All domain models are pure Python with no
external dependencies beyond Pydantic.
"""

from .enums import EyeSelector, ObservationCategory, ProcedureCategory
from .timeline_models import PatientTimeline
from .visit_record import PatientInfo, PatientRecord, Visit

__all__ = [
    "EyeSelector",
    "ObservationCategory",
    "PatientInfo",
    "PatientRecord",
    "PatientTimeline",
    "ProcedureCategory",
    "Visit",
]
