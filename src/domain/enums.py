"""Domain Enumerations.

This module defines the closed vocabularies used across the timeline engine:
eye selectors, procedure categories, procedure record shapes and the fixed
set of anatomical observation categories.

Architecture:
    - Pure domain definitions with zero infrastructure dependencies
    - ``str`` mixin keeps every value JSON-serializable as-is
"""

from enum import Enum


class EyeSelector(str, Enum):
    """Which eye (or both) a query applies to.

    The storage format indexes per-eye arrays as ``[RE, LE, BE]``, so each
    selector also carries the array index used to read those arrays.
    """
    RIGHT = "RE"
    LEFT = "LE"
    BOTH = "BE"

    @property
    def index(self) -> int:
        """Array index of this selector in ``[RE, LE, BE]`` storage arrays."""
        return {"RE": 0, "LE": 1, "BE": 2}[self.value]

    @property
    def display_name(self) -> str:
        return {"RE": "Right Eye", "LE": "Left Eye", "BE": "Both Eyes"}[self.value]

    @classmethod
    def parse(cls, value: "str | EyeSelector | None") -> "EyeSelector":
        """Parse a selector from its code, its display name or its index.

        Unknown values fall back to the right eye, matching the dashboard's
        default selection.
        """
        if isinstance(value, EyeSelector):
            return value
        if value is None:
            return cls.RIGHT
        v_str = str(value).strip().lower()
        mapping = {
            "re": cls.RIGHT,
            "0": cls.RIGHT,
            "right eye": cls.RIGHT,
            "le": cls.LEFT,
            "1": cls.LEFT,
            "left eye": cls.LEFT,
            "be": cls.BOTH,
            "2": cls.BOTH,
            "both eyes": cls.BOTH,
        }
        return mapping.get(v_str, cls.RIGHT)


class ProcedureCategory(str, Enum):
    """Display category of a procedure."""
    INJECTION = "Injection"
    LASER = "Laser"
    SURGERY = "Surgery"
    PROCEDURE = "Procedure"


class ProcedureShape(str, Enum):
    """Storage shape of a visit's procedure block.

    LEGACY: ``{"adv": [[...], [...]], "act": [[...], [...]]}`` nested strings
    CURRENT: ``{"Las": [...], "inj": [...], "surg": [...]}`` structured objects
    EMPTY: no procedure block on the visit
    """
    LEGACY = "legacy"
    CURRENT = "current"
    EMPTY = "empty"


class ObservationCategory(str, Enum):
    """Gantt sections derivable from a visit log."""
    DIAGNOSIS = "diagnosis"
    BACKGROUND_RETINA = "background_retina"
    FOVEAL_REFLEX = "foveal_reflex"
    CONJUNCTIVA = "conjunctiva"
    MEDIA = "media"
    ANTERIOR_CHAMBER = "anterior_chamber"
    IRIS = "iris"
    DISC = "disc"
    PUPIL = "pupil"
    VESSELS = "vessels"
    UNDILATED_FUNDUS = "undilated_fundus"
    LENS = "lens"


class SidePolicy(str, Enum):
    """How a component treats the ``BE`` (both eyes) selector."""
    UNION = "union"
    PRIMARY_ONLY = "primary_only"
    BOTH_SLOT = "both_slot"


# Per-component handling of EyeSelector.BOTH. These differ upstream and are
# deliberately not routed through a shared helper.
BOTH_EYES_POLICY: dict[str, SidePolicy] = {
    # RE/LE lists are merged with the BE list for single-eye selectors;
    # BE merges all three lists.
    "diagnosis": SidePolicy.UNION,
    # Flat observation fields: BE reads index 2, falling back to index 0.
    "observations": SidePolicy.BOTH_SLOT,
    # Legacy "act" arrays only carry RE and LE; BE unions them.
    "legacy_procedures": SidePolicy.UNION,
    # Current Las/inj/surg arrays carry a dedicated BE slot.
    "current_procedures": SidePolicy.BOTH_SLOT,
    "acuity": SidePolicy.BOTH_SLOT,
    "pressure": SidePolicy.BOTH_SLOT,
    # Free-text thickness only resolves RE/LE; BE shows the RE value.
    "thickness": SidePolicy.PRIMARY_ONLY,
}
