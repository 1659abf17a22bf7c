"""Domain Services.

This package contains the timeline transformation services. Every service is
pure computation over an already loaded PatientRecord; the only state is the
caller-owned ColorAssignment.
"""

from src.domain.services.color_assignment import ColorAssignment
from src.domain.services.interval_engine import (
    assign_tracks,
    build_diagnosis_intervals,
    build_intervals,
    build_medication_intervals,
)
from src.domain.services.measurement_extractor import (
    MeasurementExtractor,
    extract_paired_measurement,
)
from src.domain.services.notation_codec import (
    acuity_to_ordinal,
    decompress_acuity,
    format_date,
    normalize_date,
    ordinal_to_acuity,
)
from src.domain.services.patient_summary import (
    build_patient_timeline,
    extract_systemic_conditions,
    generate_patient_summary,
)
from src.domain.services.procedure_classifier import (
    ProcedureClassifier,
    classify_procedure,
    classify_shape,
    extract_procedures,
)
from src.domain.services.series_extractor import extract_series

__all__ = [
    'ColorAssignment',
    'MeasurementExtractor',
    'ProcedureClassifier',
    'acuity_to_ordinal',
    'assign_tracks',
    'build_diagnosis_intervals',
    'build_intervals',
    'build_medication_intervals',
    'build_patient_timeline',
    'classify_procedure',
    'classify_shape',
    'decompress_acuity',
    'extract_paired_measurement',
    'extract_procedures',
    'extract_series',
    'extract_systemic_conditions',
    'format_date',
    'generate_patient_summary',
    'normalize_date',
    'ordinal_to_acuity',
]
