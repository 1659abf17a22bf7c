"""Clinical Notation Codec.

Conversions between the compact clinical shorthand found in visit records
and the normalized forms the dashboard plots and displays:

    - Compact acuity ("618P") to fraction notation ("6/18P")
    - Acuity notation to a single ordinal axis (LogMAR inverted, so that a
      larger value means better vision) and an approximate inverse
    - ISO storage dates to DD/MM/YYYY display dates and back

All functions are pure and never raise on malformed input: unparseable
values degrade to a pass-through, an empty string or ``None``.
"""

import math
import re
from datetime import date
from typing import Optional

# Tokens that are already normalized and must never be split into a fraction
SPECIAL_ACUITY_TOKENS = frozenset({"CF", "HM", "PL", "LP", "NLP", "NPL", "FCMF", "FCF"})

# Offset that turns LogMAR (lower is better) into the plotted axis (higher is better)
ORDINAL_OFFSET = 1.5

# Snellen fractions in metres (6/x) and feet (20/x) share one LogMAR scale
SNELLEN_TO_LOGMAR: dict[str, float] = {
    "6/6": 0.0,
    "6/7.5": 0.1,
    "6/9": 0.18,
    "6/12": 0.3,
    "6/15": 0.4,
    "6/18": 0.48,
    "6/24": 0.6,
    "6/30": 0.7,
    "6/36": 0.78,
    "6/48": 0.9,
    "6/60": 1.0,
    "6/120": 1.3,
    "20/20": 0.0,
    "20/25": 0.1,
    "20/30": 0.18,
    "20/40": 0.3,
    "20/50": 0.4,
    "20/60": 0.48,
    "20/80": 0.6,
    "20/100": 0.7,
    "20/120": 0.78,
    "20/160": 0.9,
    "20/200": 1.0,
}

# Reverse lookup, metric family only, in ascending LogMAR order
LOGMAR_TO_SNELLEN: list[tuple[float, str]] = [
    (0.0, "6/6"),
    (0.1, "6/7.5"),
    (0.18, "6/9"),
    (0.3, "6/12"),
    (0.4, "6/15"),
    (0.48, "6/18"),
    (0.6, "6/24"),
    (0.7, "6/30"),
    (0.78, "6/36"),
    (0.9, "6/48"),
    (1.0, "6/60"),
    (1.3, "6/120"),
]

REVERSE_TOLERANCE = 0.05

# Ordinal positions of the qualitative tokens
COUNT_FINGERS_ORDINAL = -0.5
HAND_MOVEMENTS_ORDINAL = -1.0
PERCEPTION_OF_LIGHT_ORDINAL = -1.5
NO_PERCEPTION_OF_LIGHT_ORDINAL = -2.0

_NO_LIGHT_TOKENS = frozenset({"NLP", "NO PL", "NAS", "NPL"})

COMPACT_ACUITY_PATTERN = re.compile(r"^(\d)(\d+)(.*)$")
_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)")


def parse_leading_float(text: str) -> Optional[float]:
    """Parse the numeric prefix of a token ("18P" -> 18.0), ``None`` if absent."""
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    return float(match.group(0))


def decompress_acuity(raw: Optional[str]) -> str:
    """Expand a compact acuity token into fraction notation.

    Examples:
        "618P" -> "6/18P", "66" -> "6/6", "cf" -> "CF", "6/18" -> "6/18"

    Parameters:
        raw: Acuity token as stored

    Returns:
        Normalized token; tokens matching no rule are returned unchanged
    """
    if not raw:
        return ""

    upper = raw.upper().strip()
    if upper in SPECIAL_ACUITY_TOKENS:
        return upper

    if "/" in raw:
        return raw

    match = COMPACT_ACUITY_PATTERN.match(raw)
    if match:
        first, rest, suffix = match.groups()
        return f"{first}/{rest}{suffix}"

    return raw


def acuity_to_ordinal(value: Optional[str]) -> Optional[float]:
    """Map a normalized acuity string onto the plotted ordinal axis.

    Lookup order:
        1. Exact Snellen table match (metric and imperial families)
        2. Any ``numerator/denominator`` fraction via log10(den / num)
        3. Near-vision ``N<size>`` notation via log10(size / 6)
        4. Qualitative tokens: CF, HM, PL/LP, NLP/NPL/NO PL/NAS

    Every qualitative token maps below any fraction in the supported range.

    Parameters:
        value: Normalized acuity (see ``decompress_acuity``)

    Returns:
        Ordinal value (approximately -2.0 .. 1.5), or ``None`` when no rule
        matches. Callers skip ``None`` points rather than plotting them.
    """
    if not value:
        return None

    upper = value.upper().strip()
    if not upper:
        return None

    if upper in SNELLEN_TO_LOGMAR:
        return ORDINAL_OFFSET - SNELLEN_TO_LOGMAR[upper]

    if "/" in upper:
        parts = upper.split("/")
        if len(parts) == 2:
            numerator = parse_leading_float(parts[0])
            denominator = parse_leading_float(parts[1])
            if numerator and denominator and denominator / numerator > 0:
                return ORDINAL_OFFSET - math.log10(denominator / numerator)

    if upper.startswith("N"):
        size = parse_leading_float(upper[1:])
        if size is not None and size > 0:
            return ORDINAL_OFFSET - math.log10(size / 6)

    if "CF" in upper:
        return COUNT_FINGERS_ORDINAL
    if upper == "HM":
        return HAND_MOVEMENTS_ORDINAL
    if upper in ("PL", "LP"):
        return PERCEPTION_OF_LIGHT_ORDINAL
    if upper in _NO_LIGHT_TOKENS:
        return NO_PERCEPTION_OF_LIGHT_ORDINAL

    return None


def ordinal_to_acuity(value: float) -> str:
    """Approximate the Snellen notation for an ordinal axis value.

    Display-only and lossy: table values are matched within
    ``REVERSE_TOLERANCE`` LogMAR, poor vision falls back to the qualitative
    tokens, and anything else is rendered as an approximate ``6/x``.
    Non-finite values give ``""``.
    """
    if not math.isfinite(value):
        return ""

    logmar = ORDINAL_OFFSET - value

    for table_logmar, snellen in LOGMAR_TO_SNELLEN:
        if abs(logmar - table_logmar) <= REVERSE_TOLERANCE:
            return snellen

    if logmar >= 2.0:
        return "NLP"
    if logmar >= 1.5:
        return "PL"
    if logmar >= 1.0:
        return "HM"
    if logmar >= 0.5:
        return "CF"

    denominator = int(math.floor(6 * math.pow(10, logmar) + 0.5))
    return f"6/{denominator}"


def acuity_scale_labels() -> list[str]:
    """Axis labels shown on the acuity chart, best vision first."""
    return ["6/6", "6/18", "6/60", "CF", "HM", "PL"]


def format_date(iso_date: Optional[str]) -> str:
    """Format ``YYYY-MM-DD`` as ``DD/MM/YYYY``; malformed input gives ``""``.

    No calendar validation is performed.
    """
    if not iso_date:
        return ""
    parts = iso_date.strip().split("-")
    if len(parts) != 3 or not all(parts):
        return ""
    year, month, day = parts
    return f"{day}/{month}/{year}"


def normalize_date(display_date: Optional[str]) -> str:
    """Convert ``DD/MM/YYYY`` back to ``YYYY-MM-DD``; malformed input gives ``""``."""
    if not display_date:
        return ""
    parts = display_date.strip().split("/")
    if len(parts) != 3 or not all(parts):
        return ""
    day, month, year = parts
    return f"{year}-{month}-{day}"


def years_ago(display_date: Optional[str], today: Optional[date] = None) -> str:
    """Describe the time elapsed since a ``DD/MM/YYYY`` date.

    Parameters:
        display_date: Date in display format
        today: Reference date (defaults to the current date)

    Returns:
        "N years M months", "N years" or "M months"; ``""`` if unparseable
    """
    if not display_date:
        return ""
    try:
        day, month, year = (int(part) for part in display_date.split("/"))
        then = date(year, month, day)
    except (TypeError, ValueError):
        return ""

    now = today or date.today()
    years = now.year - then.year
    months = now.month - then.month

    if months < 0:
        years -= 1
        months += 12

    if now.day < then.day:
        months -= 1
        if months < 0:
            years -= 1
            months += 12

    if years > 0 and months > 0:
        return f"{years} years {months} months"
    if years > 0:
        return f"{years} years"
    return f"{months} months"
