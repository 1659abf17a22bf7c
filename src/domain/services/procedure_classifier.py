"""Procedure Classification and Deduplication.

Procedure blocks exist in two storage shapes that coexist permanently,
even within one patient's history:

    Legacy:  {"adv": [[...RE], [...LE]], "act": [[...RE], [...LE]]}
             arbitrarily nested strings, uncategorised
    Current: {"Las": [RE, LE, BE], "inj": [...], "surg": [...]}
             each slot a list of {"procedure_type", "laser_type", "eye"}

The shape is resolved per visit (never per record) by ``classify_shape``;
legacy names are categorised by keyword matching while current entries take
their category from the array they are filed under.

Architecture:
    - Pure domain service with no infrastructure dependencies
    - Colors come from a caller-owned ColorAssignment
"""

import logging
import re
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from src.domain.enums import EyeSelector, ProcedureCategory, ProcedureShape
from src.domain.services.color_assignment import ColorAssignment
from src.domain.timeline_models import ProcedureEvent, ProcedureIcon, ProcedureSummaryItem
from src.domain.visit_record import (
    CurrentProcedures,
    LegacyProcedures,
    PatientRecord,
    ProcedureDetail,
    Visit,
)

logger = logging.getLogger(__name__)

ProcedureBlock = Union[LegacyProcedures, CurrentProcedures]

# Keys whose presence marks the current (pre-categorised) shape
CURRENT_SHAPE_KEYS = ("Las", "inj", "surg")


class ProcedureClassifier:
    """Keyword-based categorisation of procedure names.

    Lists are checked in priority order (injection, laser, surgery), so a
    name matching both an injection and a laser keyword is an injection.
    Anything unmatched is a generic procedure.
    """

    INJECTION_KEYWORDS = (
        # Generic injection terms
        "injection",
        "inj",
        "intravitreal",
        "ivt",
        "ivi",
        # Anti-VEGF agents
        "avastin",
        "bevacizumab",
        "lucentis",
        "ranibizumab",
        "eylea",
        "aflibercept",
        "pagenax",
        "accentrix",
        "beovu",
        "brolucizumab",
        "vabysmo",
        "faricimab",
        # Steroids
        "ozurdex",
        "dexamethasone",
        "tricort",
        "triamcinolone",
        "kenalog",
        "iluvien",
        "fluocinolone",
        # Other injectables
        "jetrea",
        "ocriplasmin",
        "macugen",
        "pegaptanib",
        "retisert",
        # Abbreviations and brands
        "anti-vegf",
        "antivegf",
        "oceva",
        "ranieyes",
        "razumab",
    )

    LASER_KEYWORDS = (
        "laser",
        "photocoagulation",
        "pfc",
        "argon",
        "diode",
        "micropulse",
        "pascal",
        "pattern scan",
        "panretinal photocoagulation",
        "prp",
        "focal laser",
        "grid laser",
        "macular laser",
        "scatter laser",
        "peripheral laser",
        "retinal photocoagulation",
        "laser photocoagulation",
        # Photodynamic therapy
        "photodynamic therapy",
        "pdt",
        "verteporfin",
        "visudyne",
    )

    SURGERY_KEYWORDS = (
        "vitrectomy",
        "ppv",
        "pars plana vitrectomy",
        "membrane peel",
        "epiretinal membrane",
        "macular hole",
        "retinal detachment",
        "scleral buckle",
        "pneumatic retinopexy",
        "endolaser",
        "endophotocoagulation",
        "silicone oil",
        "gas tamponade",
        "c3f8",
        "sf6",
        "air tamponade",
    )

    # Exact (case-insensitive) placeholders meaning "nothing was done"
    PLACEHOLDERS = frozenset({"no procedure", "none", "nil", "n/a", "-"})
    # Placeholder phrases matched anywhere in the string
    PLACEHOLDER_PHRASES = ("no re procedure", "no le procedure", "no be procedure")

    # Display-name patterns used for icons, checked before keyword matching
    ICON_NAME_PATTERNS: tuple[tuple[ProcedureCategory, tuple[str, ...]], ...] = (
        (ProcedureCategory.LASER, ("Laser", "PRP", "Photocoagulation")),
        (
            ProcedureCategory.INJECTION,
            ("Injection", "Anti-VEGF", "Steroid", "Intravitreal", "Bevacizumab", "Ranibizumab"),
        ),
        (
            ProcedureCategory.SURGERY,
            ("Surgery", "Vitrectomy", "Membrane", "Retinal Detachment", "Scleral Buckle"),
        ),
    )

    COUNT_SUFFIX = re.compile(r"\s*\(\d+x\)$")

    @classmethod
    def classify(cls, name: str) -> ProcedureCategory:
        """Categorise a procedure name by case-insensitive substring match."""
        lowered = name.lower().strip()
        if any(keyword in lowered for keyword in cls.INJECTION_KEYWORDS):
            return ProcedureCategory.INJECTION
        if any(keyword in lowered for keyword in cls.LASER_KEYWORDS):
            return ProcedureCategory.LASER
        if any(keyword in lowered for keyword in cls.SURGERY_KEYWORDS):
            return ProcedureCategory.SURGERY
        return ProcedureCategory.PROCEDURE

    @classmethod
    def is_placeholder(cls, name: str) -> bool:
        """Check whether a procedure string means "no procedure"."""
        normalized = name.strip().lower()
        if normalized in cls.PLACEHOLDERS:
            return True
        return any(phrase in normalized for phrase in cls.PLACEHOLDER_PHRASES)


def classify_procedure(name: str) -> ProcedureCategory:
    return ProcedureClassifier.classify(name)


def flatten_procedure_names(items: Iterable[Any]) -> list[str]:
    """Flatten arbitrarily nested lists, keeping only the strings."""
    result: list[str] = []
    for item in items:
        if isinstance(item, str):
            result.append(item)
        elif isinstance(item, list):
            result.extend(flatten_procedure_names(item))
    return result


def _flatten_details(items: Iterable[Any]) -> list[dict]:
    """Flatten a current-shape slot into its procedure objects."""
    result: list[dict] = []
    for item in items:
        if isinstance(item, dict):
            result.append(item)
        elif isinstance(item, list):
            result.extend(_flatten_details(item))
    return result


def procedure_shape(block: Optional[dict[str, Any]]) -> ProcedureShape:
    """Determine the storage shape of one visit's procedure block."""
    if not isinstance(block, dict):
        return ProcedureShape.EMPTY
    if any(key in block for key in CURRENT_SHAPE_KEYS):
        return ProcedureShape.CURRENT
    return ProcedureShape.LEGACY


def classify_shape(block: Optional[dict[str, Any]]) -> Optional[ProcedureBlock]:
    """Parse one visit's procedure block into its shape's model.

    Returns:
        CurrentProcedures if any of the Las/inj/surg keys is present,
        LegacyProcedures otherwise, ``None`` for an absent or malformed block
    """
    shape = procedure_shape(block)
    if shape is ProcedureShape.EMPTY:
        return None
    try:
        if shape is ProcedureShape.CURRENT:
            return CurrentProcedures.model_validate(block)
        return LegacyProcedures.model_validate(block)
    except PydanticValidationError as e:
        logger.warning(f"Ignoring malformed {shape.value} procedure block: {e.error_count()} errors")
        return None


def _legacy_names(block: LegacyProcedures, eye: EyeSelector) -> list[tuple[ProcedureCategory, str]]:
    actual = block.actual
    if not isinstance(actual, list):
        return []

    if eye is EyeSelector.BOTH:
        slots = [0, 1]
    else:
        slots = [eye.index]

    names: list[str] = []
    for slot in slots:
        if slot < len(actual) and isinstance(actual[slot], list):
            names.extend(flatten_procedure_names(actual[slot]))

    result = []
    for raw in names:
        name = raw.strip()
        if name and not ProcedureClassifier.is_placeholder(name):
            result.append((ProcedureClassifier.classify(name), name))
    return result


def _current_names(block: CurrentProcedures, eye: EyeSelector) -> list[tuple[ProcedureCategory, str]]:
    categories = (
        (block.lasers, ProcedureCategory.LASER),
        (block.injections, ProcedureCategory.INJECTION),
        (block.surgeries, ProcedureCategory.SURGERY),
    )
    result = []
    for slots, category in categories:
        if not isinstance(slots, list) or eye.index >= len(slots):
            continue
        entries = slots[eye.index]
        if not isinstance(entries, list):
            continue
        for entry in _flatten_details(entries):
            try:
                detail = ProcedureDetail.model_validate(entry)
            except PydanticValidationError:
                continue
            procedure_type = (detail.procedure_type or "").strip()
            if not procedure_type or ProcedureClassifier.is_placeholder(procedure_type):
                continue
            if category is ProcedureCategory.LASER and detail.laser_type:
                name = f"{procedure_type} - {detail.laser_type.strip()}"
            else:
                name = procedure_type
            result.append((category, name))
    return result


def visit_procedures(visit: Visit, eye: EyeSelector) -> list[tuple[ProcedureCategory, str]]:
    """List the (category, name) pairs performed at one visit for an eye selector.

    The visit's own procedure shape decides how it is read.
    """
    block = classify_shape(visit.procedures)
    if isinstance(block, CurrentProcedures):
        return _current_names(block, eye)
    if isinstance(block, LegacyProcedures):
        return _legacy_names(block, eye)
    return []


def extract_procedures(record: PatientRecord, eye: EyeSelector) -> list[ProcedureSummaryItem]:
    """Deduplicate and count procedures across a patient's whole history.

    Names are deduplicated by exact string match; each keeps the category of
    its first occurrence and items are listed in first-occurrence order.

    Parameters:
        record: Patient record
        eye: Eye selector

    Returns:
        List of ProcedureSummaryItem, label suffixed " (Nx)" when count > 1
    """
    counts: dict[str, list] = {}
    for visit in record.visits:
        for category, name in visit_procedures(visit, eye):
            if name in counts:
                counts[name][1] += 1
            else:
                counts[name] = [category, 1]

    return [
        ProcedureSummaryItem(
            category=category,
            name=name,
            count=count,
            label=f"{name} ({count}x)" if count > 1 else name,
        )
        for name, (category, count) in counts.items()
    ]


def procedure_events(visit: Visit, eye: EyeSelector, colors: ColorAssignment) -> list[ProcedureEvent]:
    """Dated chart markers for the procedures performed at one visit."""
    if not visit.date:
        return []
    return [
        ProcedureEvent(date=visit.date, category=category, name=name, color=colors.color_for(name))
        for category, name in visit_procedures(visit, eye)
    ]


def procedure_icon(label: str, colors: ColorAssignment) -> ProcedureIcon:
    """Icon kind and color for a procedure summary label.

    The " (Nx)" count suffix is ignored. Display-name patterns are checked
    first, then keyword classification.
    """
    name = ProcedureClassifier.COUNT_SUFFIX.sub("", label)

    category: Optional[ProcedureCategory] = None
    for candidate, patterns in ProcedureClassifier.ICON_NAME_PATTERNS:
        if any(pattern in name for pattern in patterns):
            category = candidate
            break
    if category is None:
        category = ProcedureClassifier.classify(name)

    return ProcedureIcon(icon=category.value.lower(), color=colors.color_for(name))
