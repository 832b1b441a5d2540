"""
Building Level Detection

Maps sheet titles and page text to one of a fixed set of canonical levels.
Rules are evaluated in order; the first match wins. Basement, Garage, Attic
and Roof keywords are checked before numbered levels so "Garage Level" is
never read as a numbered floor.
"""

import re
from typing import List, Optional, Pattern, Tuple


BASEMENT = "Basement"
LEVEL_1 = "Level 1"
LEVEL_2 = "Level 2"
LEVEL_3 = "Level 3"
LEVEL_4 = "Level 4"
GARAGE = "Garage"
ATTIC = "Attic"
ROOF = "Roof"

CANONICAL_LEVELS = (BASEMENT, LEVEL_1, LEVEL_2, LEVEL_3, LEVEL_4, GARAGE, ATTIC, ROOF)

DEFAULT_LEVEL = LEVEL_1

# Level is usually printed near the top of the sheet
PAGE_TEXT_HEADER_CHARS = 500


def _rule(pattern: str, level: str) -> Tuple[Pattern, str]:
    return re.compile(pattern, re.IGNORECASE), level


# Order matters: more specific patterns first
LEVEL_PATTERNS: List[Tuple[Pattern, str]] = [
    # Basement variants
    _rule(r"\bbasement\b", BASEMENT),
    _rule(r"\blower\s*level\b", BASEMENT),
    _rule(r"\bcellar\b", BASEMENT),

    # Garage before numbered levels
    _rule(r"\bgarage\b", GARAGE),

    # Attic / Roof
    _rule(r"\battic\b", ATTIC),
    _rule(r"\broof\s*(?:plan|level)?\b", ROOF),

    # Explicit "Level N"
    _rule(r"\blevel\s*4\b", LEVEL_4),
    _rule(r"\blevel\s*3\b", LEVEL_3),
    _rule(r"\blevel\s*2\b", LEVEL_2),
    _rule(r"\blevel\s*1\b", LEVEL_1),

    # Ordinal floors
    _rule(r"\b(?:4th|fourth)\s*floor\b", LEVEL_4),
    _rule(r"\b(?:3rd|third)\s*floor\b", LEVEL_3),
    _rule(r"\b(?:2nd|second)\s*floor\b", LEVEL_2),
    _rule(r"\b(?:1st|first|ground)\s*floor\b", LEVEL_1),
    _rule(r"\bmain\s*(?:level|floor)\b", LEVEL_1),

    # "Upper" / "Lower" without a number
    _rule(r"\bupper\s*(?:level|floor|story)\b", LEVEL_2),
    _rule(r"\blower\s*(?:floor|story)\b", LEVEL_1),

    # Sheet numbering: A1-01 = Level 1, A2-01 = Level 2
    _rule(r"\bA-?1[-\s]", LEVEL_1),
    _rule(r"\bA-?2[-\s]", LEVEL_2),
    _rule(r"\bA-?3[-\s]", LEVEL_3),
]

# Lines that look like a sheet title: "FIRST FLOOR PLAN", "LEVEL 2", "A1-01 FLOOR PLAN"
SHEET_TITLE_PATTERN = re.compile(r"(?:floor\s*plan|level\s*\d|basement|garage|attic)", re.IGNORECASE)


def _match_level(text: str) -> Optional[str]:
    for pattern, level in LEVEL_PATTERNS:
        if pattern.search(text):
            return level
    return None


def detect_level_from_text(sheet_title: str, page_text: Optional[str] = None) -> str:
    """
    Detect the building level from a sheet title and/or page text.

    The sheet title is checked first; the page header is only consulted when
    the title has no level signal.

    Returns:
        Canonical level name, "Level 1" if nothing matches
    """
    level = _match_level(sheet_title or "")
    if level:
        return level

    if page_text:
        level = _match_level(page_text[:PAGE_TEXT_HEADER_CHARS])
        if level:
            return level

    return DEFAULT_LEVEL


def canonicalize_level(raw_level: Optional[str]) -> str:
    """Map a level string echoed by the AI onto a canonical level."""
    if raw_level in CANONICAL_LEVELS:
        return raw_level
    return detect_level_from_text(str(raw_level or ""))


def extract_sheet_title(page_text: str) -> str:
    """
    Extract a sheet title from page text heuristics.

    Plan pages usually carry the title block in the first few lines.
    """
    lines = [line.strip() for line in (page_text or "").split("\n")]
    lines = [line for line in lines if line]

    for line in lines[:15]:
        if SHEET_TITLE_PATTERN.search(line):
            return line[:100]

    for line in lines[:5]:
        if 5 < len(line) < 120:
            return line

    return "Untitled Sheet"
