"""
Dimension Parser - freeform architectural dimension strings to numeric feet.

Formats supported:
- "12'-6\" x 14'-0\""  -> 12.5 x 14.0
- "12'6\" x 14'3\""    -> 12.5 x 14.25
- "12' x 14'"          -> 12.0 x 14.0
- "12x14", "12 x 14"   -> 12.0 x 14.0
- "12.5 x 14.5"        -> 12.5 x 14.5

Never raises: anything unparseable returns None.
"""

import re
from typing import Dict, Optional


# Smart quotes and prime marks as they come out of PDF text layers
_QUOTE_TRANSLATION = str.maketrans({
    "‘": "'",   # left single quote
    "’": "'",   # right single quote
    "′": "'",   # prime
    "“": '"',   # left double quote
    "”": '"',   # right double quote
    "″": '"',   # double prime
})

# 12'-6" x 14'-0"  |  12'6" x 14'3"  |  12' x 14'
FEET_INCHES_PATTERN = re.compile(
    r"(\d+)'[-\s]?(\d+)?\"?\s*[xX×]\s*(\d+)'[-\s]?(\d+)?\"?"
)

# 12 x 14  |  12.5 x 14.5  |  12x14
FEET_ONLY_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)['\s]*[xX×]\s*(\d+(?:\.\d+)?)"
)


def normalize_dimension_text(raw: str) -> str:
    """Normalize quotes/primes to ASCII and collapse whitespace."""
    return re.sub(r"\s+", " ", raw.translate(_QUOTE_TRANSLATION)).strip()


def parse_dimensions(raw: Optional[str]) -> Optional[Dict[str, float]]:
    """
    Parse a dimension string into length/width in feet.

    Args:
        raw: Dimension string as printed on the plan (may be None)

    Returns:
        {"length_ft": float, "width_ft": float} rounded to 2 decimals,
        or None if no pattern matches
    """
    if not raw or not isinstance(raw, str):
        return None

    cleaned = normalize_dimension_text(raw)

    match = FEET_INCHES_PATTERN.search(cleaned)
    if match:
        feet_1, inches_1, feet_2, inches_2 = match.groups()
        return {
            "length_ft": round(int(feet_1) + int(inches_1 or 0) / 12, 2),
            "width_ft": round(int(feet_2) + int(inches_2 or 0) / 12, 2),
        }

    match = FEET_ONLY_PATTERN.search(cleaned)
    if match:
        return {
            "length_ft": round(float(match.group(1)), 2),
            "width_ft": round(float(match.group(2)), 2),
        }

    return None
