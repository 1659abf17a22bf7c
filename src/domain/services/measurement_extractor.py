"""Free-Text Measurement Extraction.

Special-investigation reports (OCT and similar) are free text; the central
macular thickness for each eye is buried somewhere inside with no consistent
structure. This service mines a per-eye numeric value from such a report
using a fixed priority of regex patterns and an explicit disambiguation
policy for unlabeled values.

This is a best-effort parser: it follows its documented fallback order and
does not guess beyond it.
"""

import logging
import re
from typing import Optional

from src.domain.timeline_models import PairedMeasurement

logger = logging.getLogger(__name__)


class MeasurementExtractor:
    """Extracts paired (right/left eye) measurements from report text.

    Extraction order:
        1. Eye-labelled values ("RE 250um", "LE: 300"); the last label seen
           for an eye wins
        2. Unless both eyes were labelled, keyword values ("CMT 280",
           "Foveal Thickness - 310um") collected in textual order
        3. Disambiguation of the keyword values:
            - one eye labelled, one keyword value: it fills the other eye
            - no labels, two keyword values: first is RE, second is LE
            - no labels, one keyword value: it applies to both eyes
            - anything else: unresolved eyes stay ``None``
        4. Each value is reduced to its digits; values outside
           ``[MIN_VALUE, MAX_VALUE]`` are discarded
    """

    EMPTY_SENTINELS = frozenset({"none", "nan", "no data"})

    MIN_VALUE = 0
    MAX_VALUE = 1500

    EYE_LABELLED_PATTERN = re.compile(
        r"\b(RE|LE)\s*[-:;,]?\s*['\"]?(\d+\s*(?:µm|um|mm|Mm|M)?)",
        re.IGNORECASE,
    )
    CMT_PATTERN = re.compile(r"\bcmt\s+(\d+)\s*(?:µm|um|mm)?", re.IGNORECASE)
    FOVEAL_THICKNESS_PATTERN = re.compile(
        r"Foveal\s+Thickness\s*[-:;,]?\s*(\d+\s*(?:µm|um|mm|Mm|M)?)",
        re.IGNORECASE,
    )

    @classmethod
    def extract(cls, text: Optional[str]) -> PairedMeasurement:
        """Extract the right and left eye values from a report.

        Parameters:
            text: Free-text report

        Returns:
            PairedMeasurement with ``right`` / ``left`` set or ``None``
        """
        if not text or text.strip().lower() in cls.EMPTY_SENTINELS:
            return PairedMeasurement()

        note = re.sub(r"\s+", " ", text.strip())

        right_raw: Optional[str] = None
        left_raw: Optional[str] = None

        for match in cls.EYE_LABELLED_PATTERN.finditer(note):
            eye = match.group(1).upper()
            value = re.sub(r"\s+", "", match.group(2)).upper()
            if eye == "RE":
                right_raw = value
            else:
                left_raw = value

        if right_raw is None or left_raw is None:
            keyword_values = cls._keyword_values(note)

            if right_raw is not None and len(keyword_values) == 1:
                left_raw = keyword_values[0]
            elif left_raw is not None and len(keyword_values) == 1:
                right_raw = keyword_values[0]
            elif right_raw is None and left_raw is None:
                if len(keyword_values) == 2:
                    right_raw, left_raw = keyword_values
                elif len(keyword_values) == 1:
                    right_raw = left_raw = keyword_values[0]
                elif len(keyword_values) > 2:
                    logger.debug(
                        f"Ambiguous thickness report: {len(keyword_values)} unlabelled values"
                    )

        return PairedMeasurement(
            right=cls.parse_value(right_raw),
            left=cls.parse_value(left_raw),
        )

    @classmethod
    def _keyword_values(cls, note: str) -> list[str]:
        """Collect keyword-prefixed values from both patterns in textual order."""
        found: list[tuple[int, str]] = []
        for match in cls.CMT_PATTERN.finditer(note):
            found.append((match.start(), match.group(1)))
        for match in cls.FOVEAL_THICKNESS_PATTERN.finditer(note):
            found.append((match.start(), re.sub(r"\s+", "", match.group(1)).upper()))
        found.sort(key=lambda item: item[0])
        return [value for _, value in found]

    @classmethod
    def parse_value(cls, raw: Optional[str]) -> Optional[int]:
        """Reduce a token to its digits and range-check it.

        Returns:
            Integer value, or ``None`` if empty, non-numeric or out of range
        """
        if not raw:
            return None
        digits = re.sub(r"[^0-9]", "", raw)
        if not digits:
            return None
        value = int(digits)
        if value < cls.MIN_VALUE or value > cls.MAX_VALUE:
            return None
        return value


def extract_paired_measurement(text: Optional[str]) -> PairedMeasurement:
    """Module-level shortcut for ``MeasurementExtractor.extract``."""
    return MeasurementExtractor.extract(text)
