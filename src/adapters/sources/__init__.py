"""Patient record sources for Ophtha-Timeline.

This module contains source adapters that implement the PatientSourcePort
interface for reading patient records.
"""

from src.adapters.sources.json_patient_source import (
    JSONPatientSource,
    decode_patient_document,
    unwrap_envelope,
)

__all__ = ["JSONPatientSource", "decode_patient_document", "unwrap_envelope"]
