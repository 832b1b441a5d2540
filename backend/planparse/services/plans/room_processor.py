"""
Deterministic Room Post-Processor

Everything after the AI call is deterministic and testable:
1. Parse dimension strings into numeric length_ft / width_ft.
2. Exact room counts - never merge within a sheet, never reduce count.
3. Stable naming: a unique room keeps its name, duplicates are numbered
   in encounter order ("Bathroom 1", "Bathroom 2").
4. Merge rooms across overlapping sheets only on exact level + name collisions.

Names are stored WITHOUT a level suffix; the level lives in its own field.
"""

import logging
import re
from collections import Counter
from typing import Dict, Iterable, List, Tuple

from .dimensions import parse_dimensions
from .schemas import ExtractedRoom, SheetRoomResult

logger = logging.getLogger(__name__)


# =============================================================================
# NAME CLEANUP
# =============================================================================

ABBREVIATIONS: Dict[str, str] = {
    "mbr": "Master Bedroom",
    "mba": "Master Bathroom",
    "mbath": "Master Bathroom",
    "br": "Bedroom",
    "ba": "Bathroom",
    "kit": "Kitchen",
    "lr": "Living Room",
    "dr": "Dining Room",
    "fr": "Family Room",
    "gr": "Great Room",
    "gar": "Garage",
    "lndry": "Laundry",
    "util": "Utility",
    "mech": "Mechanical",
    "wic": "Walk-in Closet",
    "pwdr": "Powder Room",
    "foy": "Foyer",
    "pnt": "Pantry",
    "mud": "Mudroom",
}

LEVEL_SUFFIX_PATTERN = re.compile(r"\s*[-–—]\s*Level\s*\d+", re.IGNORECASE)
NAMED_LEVEL_SUFFIX_PATTERN = re.compile(r"\s*[-–—]\s*(?:Basement|Garage|Attic|Roof)", re.IGNORECASE)
TRAILING_NUMBER_PATTERN = re.compile(r"\s+\d+\s*$")
TRAILING_HASH_PATTERN = re.compile(r"\s*#\d+\s*$")
ABBREVIATION_PATTERN = re.compile(r"^([a-z]+)\s*(\d+)?$")


def strip_level_suffix(name: str) -> str:
    """'Office – Level 2' -> 'Office', 'Kitchen - Basement' -> 'Kitchen'."""
    name = LEVEL_SUFFIX_PATTERN.sub("", name, count=1)
    name = NAMED_LEVEL_SUFFIX_PATTERN.sub("", name, count=1)
    return name.strip()


def clean_room_name(name: str) -> str:
    """Strip level suffixes, expand abbreviations, title-case the rest."""
    cleaned = strip_level_suffix(name)
    lower = cleaned.lower()

    if lower in ABBREVIATIONS:
        return ABBREVIATIONS[lower]

    # "BR1" / "BA 2" -> base abbreviation
    match = ABBREVIATION_PATTERN.match(lower)
    if match and match.group(1) in ABBREVIATIONS:
        return ABBREVIATIONS[match.group(1)]

    words = cleaned.split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def extract_base_name(name: str) -> str:
    """
    Base name used to detect duplicates.

    "Bathroom 1" -> "Bathroom", "Bedroom #3" -> "Bedroom",
    "BR2" -> "Bedroom", "Walk-in Closet" -> "Walk-in Closet"
    """
    base = clean_room_name(name)
    base = TRAILING_NUMBER_PATTERN.sub("", base)
    base = TRAILING_HASH_PATTERN.sub("", base)
    return base.strip() or clean_room_name(name)


# =============================================================================
# DETERMINISTIC NAMING
# =============================================================================

def apply_deterministic_names(rooms: List[ExtractedRoom], level: str) -> List[ExtractedRoom]:
    """
    Apply deterministic naming to one batch of rooms on one level.

    Rules:
    1. A base name that occurs once keeps its cleaned name ("Kitchen").
    2. A base name that occurs more than once is numbered in encounter
       order: "Bathroom 1", "Bathroom 2", ...
    3. NEVER reduce room count. Numbering keeps every instance distinct.
    """
    if not rooms:
        return []

    bases = [extract_base_name(room.name) for room in rooms]
    occurrences = Counter(base.lower() for base in bases)
    counters: Counter = Counter()

    named: List[ExtractedRoom] = []
    for room, base in zip(rooms, bases):
        key = base.lower()
        if occurrences[key] == 1:
            display_name = clean_room_name(room.name)
        else:
            counters[key] += 1
            display_name = f"{base} {counters[key]}"

        named.append(room.model_copy(update={"name": display_name, "level": level}))

    return named


# =============================================================================
# FULL POST-PROCESSING PIPELINE
# =============================================================================

def fill_dimensions(room: ExtractedRoom) -> ExtractedRoom:
    """Fill length_ft / width_ft from the raw dimension string, never overriding AI values."""
    if room.length_ft is not None and room.width_ft is not None:
        return room

    parsed = parse_dimensions(room.dimensions)
    if not parsed:
        return room

    return room.model_copy(update={
        "length_ft": room.length_ft if room.length_ft is not None else parsed["length_ft"],
        "width_ft": room.width_ft if room.width_ft is not None else parsed["width_ft"],
    })


def post_process_rooms(raw_rooms: List[ExtractedRoom], level: str) -> List[ExtractedRoom]:
    """
    Process raw AI-extracted rooms through the deterministic pipeline.

    Input:  raw rooms from one sheet (inconsistent names, no levels)
    Output: rooms on `level` with numbered names and parsed dimensions
    """
    with_dimensions = [fill_dimensions(room) for room in raw_rooms]
    return apply_deterministic_names(with_dimensions, level)


# =============================================================================
# CROSS-SHEET DEDUPLICATION
# =============================================================================

def _room_key(room: ExtractedRoom) -> str:
    return f"{room.level}::{room.name.lower().strip()}"


def merge_room_batches(batches: Iterable[List[ExtractedRoom]]) -> List[ExtractedRoom]:
    """
    Merge room lists from overlapping sources.

    Rooms from DIFFERENT batches with identical level + name are the same
    room seen twice; the higher-confidence instance wins (first seen on ties)
    and keeps the first position. Within one batch nothing is merged: the
    k-th occurrence of a key only competes with the k-th occurrence in
    another batch, so the result never holds fewer rooms than any batch.
    """
    merged: Dict[Tuple[str, int], ExtractedRoom] = {}
    replaced = 0

    for batch in batches:
        seen_in_batch: Counter = Counter()
        for room in batch:
            key = _room_key(room)
            slot = (key, seen_in_batch[key])
            seen_in_batch[key] += 1

            existing = merged.get(slot)
            if existing is None:
                merged[slot] = room
                continue

            replaced += 1
            if (room.confidence or 0) > (existing.confidence or 0):
                merged[slot] = room

    if replaced:
        logger.info(f"Merged {replaced} duplicate room(s) seen on overlapping sheets")

    return list(merged.values())


def deduplicate_across_sheets(sheet_results: List[SheetRoomResult]) -> List[ExtractedRoom]:
    """Deduplicate rooms across sheets (same room on overlapping pages)."""
    return merge_room_batches(result.rooms for result in sheet_results)
