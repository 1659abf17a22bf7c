"""Visit Record Schema Definitions.

This module defines the canonical data models for a patient's ophthalmology
visit log as it is stored: a patient header plus an arrival-ordered list of
visit snapshots. Storage uses compact keys (``d``, ``vi``, ``fu`` ...) which
are accepted as aliases; Python code uses the descriptive field names.

Clinical records drift in shape over the years (a field may be a string in
one visit and a per-eye list in the next), so polymorphic fields are typed
loosely and every visit sub-record is parsed leniently: a field of the
wrong type reads as ``None``, and a sub-record that is not an object at
all is dropped to ``None``, each with a warning instead of rejecting the
whole patient.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Models are immutable (visits are read-only snapshots)
    - Procedure blocks stay raw on the visit; their shape is resolved per
      visit by ``classify_shape`` into ``LegacyProcedures`` or
      ``CurrentProcedures``
"""

import logging
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
    ValidationError as PydanticValidationError,
)

logger = logging.getLogger(__name__)

# A per-eye finding: absent, a single string, or (legacy) a [RE, LE, BE] list
PerEyeText = Optional[Union[str, list[Any]]]


def _coerce_text(v: Any) -> Any:
    """Coerce scalar numbers to strings (e.g. a compact acuity stored as 66).

    Integral floats lose their fraction, so a route code stored as ``1.0``
    reads as ``"1"``.
    """
    if isinstance(v, bool):
        return v
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    if isinstance(v, (int, float)):
        return str(v)
    return v


class _SubRecord(BaseModel):
    """Base for visit sub-records: tolerant of unknown keys, immutable.

    Each field is parsed on its own: a value of the wrong type reads as
    ``None`` and its sibling fields are kept.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def coerce_numeric_scalars(cls, data: Any) -> Any:
        """Store top-level numeric values as text."""
        if not isinstance(data, dict):
            return data
        return {key: _coerce_text(value) for key, value in data.items()}

    @field_validator("*", mode="wrap")
    @classmethod
    def drop_malformed_field(cls, v: Any, handler: Any, info: ValidationInfo) -> Any:
        try:
            return handler(v)
        except PydanticValidationError:
            logger.warning(f"Ignoring malformed {cls.__name__}.{info.field_name} value ({type(v).__name__})")
            return None


class VisionData(_SubRecord):
    """Refraction / acuity readings for one eye.

    Parameters:
        va: Best corrected acuity, possibly compact ("618P")
        ucva: Uncorrected acuity, used when ``va`` is absent
        sph: Sphere
        cyl: Cylinder
        ax: Axis
    """

    va: Optional[str] = None
    ucva: Optional[str] = None
    sph: Optional[str] = None
    cyl: Optional[str] = None
    ax: Optional[str] = None


class VisualAcuity(_SubRecord):
    """Visual acuity block: distance and near readings indexed ``[RE, LE, BE]``.

    Slots that are not objects (blank strings in older records) read as
    ``None`` so that one empty slot does not cost the other eyes' readings.
    """

    vis: Optional[Any] = None
    distance: Optional[list[Optional[VisionData]]] = Field(None, alias="dist")
    near: Optional[list[Optional[VisionData]]] = Field(None, alias="nr")

    @field_validator("distance", "near", mode="before")
    @classmethod
    def blank_non_object_slots(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return None
        return [slot if isinstance(slot, (dict, VisionData)) else None for slot in v]


class AnteriorSegment(_SubRecord):
    """Anterior segment findings."""

    anterior_chamber: PerEyeText = Field(None, alias="ac")
    iris: PerEyeText = Field(None, alias="ir")
    conjunctiva: PerEyeText = Field(None, alias="cj")
    pupil: PerEyeText = Field(None, alias="pu")
    lens: PerEyeText = None
    remarks: PerEyeText = Field(None, alias="rem")


class OcularMotility(_SubRecord):
    """Ocular motility findings."""

    motility: PerEyeText = Field(None, alias="om")
    corneal_reflex: PerEyeText = Field(None, alias="cr")
    glance: PerEyeText = Field(None, alias="gl")


class Fundus(_SubRecord):
    """Fundus findings.

    Parameters:
        media: Media clarity
        disc: Optic disc
        vessels: Retinal vessels
        background_retina: Background retina
        foveal_reflex: Macula / foveal reflex
        undilated: Undilated fundus
        remarks: Free remarks (the undilated-fundus timeline reads this field)
    """

    media: PerEyeText = Field(None, alias="me")
    disc: PerEyeText = Field(None, alias="di")
    vessels: PerEyeText = Field(None, alias="ve")
    background_retina: PerEyeText = Field(None, alias="br")
    foveal_reflex: PerEyeText = Field(None, alias="mf")
    undilated: PerEyeText = Field(None, alias="uf")
    remarks: PerEyeText = Field(None, alias="rem")


class Medication(_SubRecord):
    """One prescribed medication.

    Parameters:
        name: Drug name
        dosage: Dosage text
        eye: Route code (1=RE, 2=LE, 3=BE, 5=oral), stored as text
        frequency: Frequency
    """

    name: Optional[str] = None
    dosage: Optional[str] = Field(None, alias="dos")
    eye: Optional[str] = None
    frequency: Optional[str] = Field(None, alias="fre")


class ProcedureDetail(_SubRecord):
    """Structured procedure entry of the current procedure shape."""

    eye: Optional[str] = None
    laser_type: Optional[str] = None
    procedure_type: Optional[str] = None


class LegacyProcedures(_SubRecord):
    """Legacy procedure shape: nested per-eye string arrays.

    Parameters:
        advised: Advised procedures ``[RE, LE]`` (arbitrarily nested strings)
        actual: Performed procedures ``[RE, LE]`` (arbitrarily nested strings)
    """

    advised: Optional[list[Any]] = Field(None, alias="adv")
    actual: Optional[list[Any]] = Field(None, alias="act")


class CurrentProcedures(_SubRecord):
    """Current procedure shape: pre-categorised ``[RE, LE, BE]`` arrays."""

    lasers: Optional[list[Any]] = Field(None, alias="Las")
    injections: Optional[list[Any]] = Field(None, alias="inj")
    surgeries: Optional[list[Any]] = Field(None, alias="surg")


class SpecialInvestigation(_SubRecord):
    """Special investigation: free-text report and extracted values."""

    report: Optional[str] = Field(None, alias="r")
    extracted: Optional[list[Any]] = Field(None, alias="e")


class Investigation(_SubRecord):
    """Investigation block: intraocular pressure and special investigations."""

    iop: Optional[Union[str, list[Any]]] = None
    special: Optional[SpecialInvestigation] = Field(None, alias="sp")


class FollowUp(_SubRecord):
    advice: Optional[str] = Field(None, alias="adv")
    undilated: PerEyeText = Field(None, alias="uf")


class SystemicHistory(_SubRecord):
    """Systemic history note (semicolon-separated conditions)."""

    history: Optional[str] = Field(None, alias="h")


class Opinion(_SubRecord):
    referral: Optional[str] = Field(None, alias="ref")


class AdditionalNotes(_SubRecord):
    remarks: Optional[str] = Field(None, alias="rem")


class Visit(BaseModel):
    """One clinical encounter (immutable snapshot).

    Parameters:
        number: Visit sequence number
        date: ISO date ``YYYY-MM-DD``
        consultation: Consultation type label (Initial, F1, F2 ...)
        diagnosis: Diagnosis lists indexed ``[RE, LE, BE]``; each entry is a
            string or a list of strings
        vision: Visual acuity block
        anterior_segment: Anterior segment findings
        ocular_motility: Ocular motility findings
        fundus: Fundus findings
        medications: Medication list
        procedures: Raw procedure block (legacy or current shape)
        investigation: Pressure and special investigation block
        follow_up: Follow-up note
        systemic_history: Systemic history note
        opinion: Opinion / referral note
        additional: Additional remarks
    """

    number: Optional[int] = Field(None, alias="v")
    date: str = Field("", alias="d")
    consultation: Optional[str] = Field(None, alias="c")
    diagnosis: Optional[list[Any]] = Field(None, alias="diag")
    vision: Optional[VisualAcuity] = Field(None, alias="vi")
    anterior_segment: Optional[AnteriorSegment] = Field(None, alias="at")
    ocular_motility: Optional[OcularMotility] = Field(None, alias="om")
    fundus: Optional[Fundus] = Field(None, alias="fu")
    medications: Optional[list[Medication]] = Field(None, alias="m")
    procedures: Optional[dict[str, Any]] = Field(None, alias="pr")
    investigation: Optional[Investigation] = Field(None, alias="inv")
    follow_up: Optional[FollowUp] = Field(None, alias="fup")
    systemic_history: Optional[SystemicHistory] = Field(None, alias="s")
    opinion: Optional[Opinion] = Field(None, alias="op")
    additional: Optional[AdditionalNotes] = Field(None, alias="as")

    @field_validator("date", mode="before")
    @classmethod
    def normalize_visit_date(cls, v: Any) -> str:
        """Keep the ISO date part of a date or timestamp string.

        Dates are compared as strings everywhere in the engine, so a trailing
        time component (``2023-01-01T00:00:00``) is cut off here.
        """
        if v is None:
            return ""
        v_str = str(v).strip()
        if len(v_str) > 10 and v_str[10] in ("T", " "):
            return v_str[:10]
        return v_str

    @field_validator("number", mode="before")
    @classmethod
    def coerce_visit_number(cls, v: Any) -> Optional[int]:
        try:
            return int(v) if v is not None and v != "" else None
        except (TypeError, ValueError):
            return None

    @field_validator("consultation", mode="before")
    @classmethod
    def coerce_consultation(cls, v: Any) -> Any:
        return _coerce_text(v)

    @field_validator("medications", mode="before")
    @classmethod
    def drop_non_object_medications(cls, v: Any) -> Any:
        """Discard medication entries that are not objects."""
        if not isinstance(v, list):
            return None
        return [med for med in v if isinstance(med, dict)]

    @field_validator("diagnosis", mode="before")
    @classmethod
    def require_diagnosis_list(cls, v: Any) -> Any:
        return v if isinstance(v, list) else None

    @field_validator("procedures", mode="before")
    @classmethod
    def require_procedure_object(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else None

    @field_validator(
        "vision",
        "anterior_segment",
        "ocular_motility",
        "fundus",
        "medications",
        "investigation",
        "follow_up",
        "systemic_history",
        "opinion",
        "additional",
        mode="wrap",
    )
    @classmethod
    def drop_malformed_subrecord(cls, v: Any, handler: Any) -> Any:
        """Parse a sub-record, dropping it to ``None`` if it is malformed.

        A single bad block must not cost the rest of the visit, so validation
        errors are logged and the block is treated as absent.
        """
        try:
            return handler(v)
        except PydanticValidationError as e:
            logger.warning(
                f"Dropping malformed visit sub-record ({e.error_count()} errors): "
                f"{e.errors()[0].get('loc') if e.errors() else ''}"
            )
            return None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )


class PatientInfo(BaseModel):
    """Patient header.

    ``visit_count``, ``first_visit`` and ``last_visit`` are informational only;
    derived views are always computed from the visit list itself.

    Parameters:
        uid: Patient UID
        mr_no: Medical record number
        visit_count: Stored visit count
        first_visit: Stored first visit date
        last_visit: Stored last visit date
    """

    uid: str = Field("", description="Patient UID")
    mr_no: Optional[str] = Field(None, alias="mr", description="Medical record number")
    visit_count: Optional[int] = Field(None, alias="v", description="Stored visit count (informational)")
    first_visit: Optional[str] = Field(None, alias="f", description="Stored first visit date (informational)")
    last_visit: Optional[str] = Field(None, alias="l", description="Stored last visit date (informational)")

    @field_validator("uid", "mr_no", "first_visit", "last_visit", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        if v is None:
            return v
        return str(v).strip()

    @field_validator("visit_count", mode="before")
    @classmethod
    def coerce_visit_count(cls, v: Any) -> Optional[int]:
        try:
            return int(v) if v is not None and v != "" else None
        except (TypeError, ValueError):
            return None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )


class PatientRecord(BaseModel):
    """A patient's full visit log.

    Parameters:
        patient: Patient header
        visits: Visits in arrival order (not necessarily date order)
    """

    patient: PatientInfo = Field(default_factory=PatientInfo, alias="p")
    visits: list[Visit] = Field(default_factory=list)

    @field_validator("visits", mode="before")
    @classmethod
    def drop_non_object_visits(cls, v: Any) -> list:
        if not isinstance(v, list):
            return []
        kept = [visit for visit in v if isinstance(visit, (dict, Visit))]
        if len(kept) != len(v):
            logger.warning(f"Discarded {len(v) - len(kept)} non-object visit entries")
        return kept

    def sorted_visits(self) -> list[Visit]:
        """Return the visits sorted ascending by ISO date (stable)."""
        return sorted(self.visits, key=lambda visit: visit.date)

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
