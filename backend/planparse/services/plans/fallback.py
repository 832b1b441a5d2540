"""
Fallback Response Assembler

When parsing fails, the caller still gets a usable response: one editable
"General / Scope Notes" room, one placeholder line item, and a plain-language
warning instead of a stack trace.
"""

import uuid
from typing import List, Optional, Tuple

from .levels import DEFAULT_LEVEL
from .schemas import ExtractedRoom, LineItemScaffold, ParsedLineItem, ParsedRoom, ParseResponse, RoomType


FALLBACK_ROOM = ExtractedRoom(
    name="General / Scope Notes",
    level=DEFAULT_LEVEL,
    type=RoomType.OTHER,
    notes=(
        "We couldn't detect specific rooms from your plans. You can rename this room "
        "and add line items manually, or try uploading clearer floor plan pages."
    ),
    confidence=0,
)

FALLBACK_LINE_ITEMS: List[LineItemScaffold] = [
    LineItemScaffold(
        description="General scope item - add details",
        category="General",
        cost_code="999",
        room_name="General / Scope Notes",
        quantity=1,
        unit="LS",
        notes="Placeholder item - update with actual scope",
    ),
]

FALLBACK_ASSUMPTIONS = [
    "Created a general room for you to use",
    "Add specific rooms manually or re-upload clearer floor plan pages",
]

# (substrings, message) - first match wins
ERROR_MESSAGES: List[Tuple[Tuple[str, ...], str]] = [
    (
        ("openai", "api key"),
        "AI analysis service is temporarily unavailable. You can add rooms manually while we fix this.",
    ),
    (
        ("scanned", "image-only"),
        "This appears to be a scanned document. For best results, try uploading individual floor plan images.",
    ),
    (
        ("no rooms", "could not extract"),
        "We couldn't identify specific rooms in this document. Try uploading individual floor plan pages.",
    ),
    (
        ("corrupted", "invalid", "failed to parse"),
        "This file couldn't be read properly. Try re-saving the PDF or uploading a different version.",
    ),
    (
        ("timeout", "too long"),
        "Processing took too long. Try uploading fewer pages at once.",
    ),
    (
        ("authentication", "unauthorized"),
        "Please sign in again to use this feature.",
    ),
]


def get_user_friendly_parse_error(error: str) -> str:
    """Convert a technical error message into a user-facing one."""
    lower_error = (error or "").lower()

    for needles, message in ERROR_MESSAGES:
        if any(needle in lower_error for needle in needles):
            return message

    # Unknown error: first line only, no stack traces
    return (error or "").split("\n")[0][:200]


def create_fallback_response(
    error: str,
    total_pages: int = 0,
    plan_parse_id: Optional[str] = None,
) -> ParseResponse:
    """
    Build the safe response returned when parsing fails completely.

    Always has success=False and exactly one room.
    """
    room = ParsedRoom(
        id=str(uuid.uuid4()),
        name=FALLBACK_ROOM.name,
        level=FALLBACK_ROOM.level,
        type=FALLBACK_ROOM.type.value,
        notes=FALLBACK_ROOM.notes,
        confidence=FALLBACK_ROOM.confidence,
    )

    line_items = [
        ParsedLineItem(id=str(uuid.uuid4()), **item.model_dump())
        for item in FALLBACK_LINE_ITEMS
    ]

    return ParseResponse(
        success=False,
        plan_parse_id=plan_parse_id,
        rooms=[room],
        line_item_scaffold=line_items,
        assumptions=list(FALLBACK_ASSUMPTIONS),
        warnings=[get_user_friendly_parse_error(error)],
        total_pages=total_pages,
    )
