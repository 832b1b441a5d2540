"""
Pass 2: AI Room Extraction

Three entry points share one validation path:
- Per-sheet extraction (main path): one sheet -> one level -> rooms
- Multi-page extraction (fallback when no sheet could be selected)
- Vision analysis of rendered PDF pages and uploaded images

The model is told which level a sheet is on and that same-named rooms must
never be merged. Whatever it returns is validated room by room and then run
through the deterministic post-processor.
"""

import asyncio
import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ...core.config import settings
from .levels import canonicalize_level
from .llm_client import PlanLLMClient, PlanLLMError
from .pdf_text import ExtractedPage, RenderedPage
from .room_processor import deduplicate_across_sheets, post_process_rooms
from .schemas import (
    ExtractedRoom,
    PerSheetExtraction,
    RoomExtractionOutput,
    RoomType,
    SheetInfo,
    SheetRoomResult,
    is_number,
)

logger = logging.getLogger(__name__)


MIN_SHEET_TEXT_CHARS = 20
MAX_SHEET_TEXT_CHARS = 20000
MAX_COMBINED_TEXT_CHARS = 40000

ROOM_TYPE_LIST = ", ".join(t.value for t in RoomType)


# =============================================================================
# PROMPTS
# =============================================================================

SHEET_EXTRACTION_RULES = f"""Extract ALL rooms and spaces shown on THIS sheet. For EACH distinct room or space:
1. name: Room name EXACTLY as labeled on the plan. Expand abbreviations (MBR→Master Bedroom, BA→Bathroom, BR→Bedroom, KIT→Kitchen, LR→Living Room, DR→Dining Room, FR→Family Room, GR→Great Room, WIC→Walk-in Closet, PWDR→Powder Room).
2. type: One of: {ROOM_TYPE_LIST}
3. area_sqft: Square footage if shown (number or null)
4. dimensions: Dimension string if shown (e.g. "12'-0\\" x 14'-6\\"") or null
5. notes: Special notes visible on plan
6. confidence: 0-100

Return JSON:
{{
  "rooms": [
    {{ "name": "Master Bedroom", "type": "bedroom", "area_sqft": 250, "dimensions": "12'-0\\" x 20'-0\\"", "notes": null, "confidence": 95 }}
  ],
  "room_count_by_type": {{ "bedroom": 3, "bathroom": 2, "kitchen": 1 }},
  "assumptions": [],
  "missingInfo": [],
  "warnings": []
}}

CRITICAL RULES:
- Report EVERY distinct room/space shown. If the plan shows 3 bedrooms, return 3 separate bedroom entries.
- Do NOT merge rooms. "Bathroom" appearing twice means TWO bathrooms - return both.
- If two rooms have the same label (e.g. two rooms labeled "BEDROOM"), return BOTH as separate entries.
- Include closets, pantries, walk-in closets, powder rooms, laundry, utility, storage.
- Include hallways only if they are labeled as a room on the plan.
- Use the room name from the plan. Do NOT invent creative names - use exactly what is labeled.
- If a room label is unclear, use the type with a number (e.g. "Bedroom 1", "Bathroom 2").
- DO NOT include any pricing information.
- The "room_count_by_type" field is for verification - it MUST match the actual rooms array length per type."""

MULTI_PAGE_SYSTEM_PROMPT = f"""You are an expert construction estimator analyzing floor plans and blueprints.

Extract ALL rooms and spaces from the document. For each room:
1. name: Room name as shown (expand abbreviations: MBR→Master Bedroom, BA→Bathroom)
2. type: One of: {ROOM_TYPE_LIST}
3. level: Building level this room is on. Detect from sheet title or context. Use canonical names: "Level 1", "Level 2", "Basement", "Garage", "Attic".
4. area_sqft: Square footage if shown (number only, or null)
5. dimensions: Dimensions if shown (e.g., "12'-0\\" x 14'-6\\"" or null)
6. notes: Special notes about the room
7. confidence: 0-100 confidence this is a real, distinct room

Return JSON:
{{
  "rooms": [
    {{ "name": "Master Bedroom", "level": "Level 1", "type": "bedroom", "area_sqft": 250, "dimensions": "12'-0\\" x 20'-0\\"", "notes": null, "confidence": 95 }}
  ],
  "assumptions": ["Assumed 'BR' means Bedroom"],
  "missingInfo": ["Kitchen dimensions not visible"],
  "warnings": ["Some room labels unclear"]
}}

CRITICAL RULES:
- Extract ALL distinct rooms/spaces (bedrooms, bathrooms, closets, pantries, etc.)
- If plan shows 3 bathrooms, return 3 separate entries - NEVER merge.
- Use clear, professional names (expand abbreviations)
- Include master closets, walk-in closets, pantries as separate rooms
- DETECT the building level from page context (e.g. "SECOND FLOOR PLAN" → "Level 2")
- Set lower confidence for unclear or inferred rooms
- DO NOT include any pricing information"""

VISION_SYSTEM_PROMPT = f"""You are an expert construction estimator analyzing floor plan images from architectural blueprints.

Look at each floor plan image and extract ALL rooms and spaces you can identify.

FIRST: Determine the building level for EACH page from the sheet title, header, or context.
Use canonical level names: "Level 1", "Level 2", "Basement", "Garage", "Attic". Default to "Level 1".

For each room:
1. name: Room name EXACTLY as labeled on the plan (expand abbreviations: BR→Bedroom, BA→Bathroom, MBR→Master Bedroom, KIT→Kitchen)
2. level: Building level this room is on
3. type: {ROOM_TYPE_LIST}
4. area_sqft: Square footage if determinable (calculate from dimensions, or null)
5. dimensions: Dimension string if shown (e.g. "12'-0\\" x 14'-6\\"") or null
6. notes: Any relevant notes about finishes, features
7. confidence: 0-100

Return JSON:
{{
  "rooms": [
    {{ "name": "Primary Bedroom", "level": "Level 1", "type": "bedroom", "area_sqft": 180, "dimensions": "12' x 15'", "notes": "Walk-in closet", "confidence": 90 }}
  ],
  "assumptions": [],
  "missingInfo": [],
  "warnings": []
}}

CRITICAL RULES:
- Report EVERY distinct room/space visible across all images. If you see 5 bathrooms, return 5.
- Do NOT merge rooms - each is a separate space even if the same type.
- Use names from the plan. If unclear, use type with number: "Bedroom 1", "Bathroom 2".
- Include closets, pantries, laundry rooms, garages
- Note if image quality affects analysis
- DO NOT include any pricing information"""


def _sheet_system_prompt(sheet: SheetInfo) -> str:
    return (
        "You are an expert construction estimator analyzing a SINGLE floor plan sheet.\n\n"
        f'THIS SHEET IS: "{sheet.sheet_title}"\n'
        f"BUILDING LEVEL: {sheet.detected_level}\n\n"
        f"{SHEET_EXTRACTION_RULES}"
    )


# =============================================================================
# VALIDATION
# =============================================================================

ROOM_TYPE_SYNONYMS: Dict[str, RoomType] = {
    "bath": RoomType.BATHROOM,
    "livingroom": RoomType.LIVING,
    "diningroom": RoomType.DINING,
    "hall": RoomType.HALLWAY,
    "entry": RoomType.FOYER,
    "study": RoomType.OFFICE,
}


def normalize_room_type(raw_type: Any) -> Optional[RoomType]:
    """Map an AI room type onto RoomType; unknown strings become OTHER, empty is None."""
    if not isinstance(raw_type, str) or not raw_type:
        return None

    normalized = "".join(ch for ch in raw_type.lower() if "a" <= ch <= "z")
    if normalized in ROOM_TYPE_SYNONYMS:
        return ROOM_TYPE_SYNONYMS[normalized]

    try:
        return RoomType(normalized)
    except ValueError:
        return RoomType.OTHER


def _positive_number(value: Any) -> Optional[float]:
    if not is_number(value):
        return None
    return float(value) if value > 0 else None


def _short_text(value: Any, max_length: int) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()[:max_length]


def validate_room(
    raw: Any,
    level: Optional[str] = None,
    sheet_label: Optional[str] = None,
) -> Optional[ExtractedRoom]:
    """
    Validate one room record returned by the model.

    Optional fields that don't fit are defaulted (null or truncated) so a
    sloppy dimension string never costs us a room. A record without a usable
    shape or with an out-of-range confidence is dropped (returns None).
    """
    if not isinstance(raw, dict):
        return None

    confidence = raw.get("confidence")
    try:
        return ExtractedRoom(
            name=_short_text(raw.get("name"), 100) or "Unnamed Room",
            level=level,
            type=normalize_room_type(raw.get("type")),
            area_sqft=_positive_number(raw.get("area_sqft")),
            length_ft=_positive_number(raw.get("length_ft")),
            width_ft=_positive_number(raw.get("width_ft")),
            ceiling_height_ft=_positive_number(raw.get("ceiling_height_ft")),
            dimensions=_short_text(raw.get("dimensions"), 50),
            notes=_short_text(raw.get("notes"), 500),
            confidence=confidence if is_number(confidence) else 50,
            sheet_label=_short_text(sheet_label, 200),
        )
    except ValidationError as e:
        logger.debug(f"Dropping invalid room {raw.get('name')!r}: {e.error_count()} error(s)")
        return None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]


def _raw_rooms(payload: Any) -> List[Any]:
    if isinstance(payload, dict) and isinstance(payload.get("rooms"), list):
        return payload["rooms"]
    return []


def _post_process_by_level(rooms: List[ExtractedRoom]) -> List[ExtractedRoom]:
    """Group rooms by their canonical level and name each level independently."""
    by_level: Dict[str, List[ExtractedRoom]] = {}
    for room in rooms:
        by_level.setdefault(canonicalize_level(room.level), []).append(room)

    processed: List[ExtractedRoom] = []
    for level, level_rooms in by_level.items():
        processed.extend(post_process_rooms(level_rooms, level))
    return processed


def _count_mismatch_warning(sheet: SheetInfo, counts: Any, returned: int) -> Optional[str]:
    if not isinstance(counts, dict):
        return None

    expected = sum(n for n in counts.values() if is_number(n))
    if expected == returned:
        return None

    return (
        f"Page {sheet.page_number} ({sheet.sheet_title}): room count mismatch, "
        f"AI reported {int(expected)} in counts but returned {returned} rooms"
    )


# =============================================================================
# PER-SHEET EXTRACTION
# =============================================================================

async def extract_rooms_from_sheet(
    sheet: SheetInfo,
    page_text: str,
    client: PlanLLMClient,
) -> SheetRoomResult:
    """
    Extract rooms from a SINGLE sheet with level context.

    Never raises: a failed call yields a SheetRoomResult with no rooms.
    """
    if not page_text or len(page_text.strip()) < MIN_SHEET_TEXT_CHARS:
        return SheetRoomResult(sheet=sheet, rooms=[])

    if len(page_text) > MAX_SHEET_TEXT_CHARS:
        page_text = page_text[:MAX_SHEET_TEXT_CHARS] + "\n[... truncated ...]"

    try:
        payload = await client.complete_json(
            model=settings.extraction_model,
            system_prompt=_sheet_system_prompt(sheet),
            user_content=f"Extract all rooms from this {sheet.detected_level} floor plan sheet:\n\n{page_text}",
            temperature=0.1,
        )
    except PlanLLMError as e:
        logger.error(f"Room extraction failed for page {sheet.page_number}: {e}")
        return SheetRoomResult(sheet=sheet, rooms=[])

    rooms = [
        room for room in (
            validate_room(raw, level=sheet.detected_level, sheet_label=sheet.sheet_title or None)
            for raw in _raw_rooms(payload)
        )
        if room is not None
    ]

    if not isinstance(payload, dict):
        payload = {}

    warnings: List[str] = []
    mismatch = _count_mismatch_warning(sheet, payload.get("room_count_by_type"), len(rooms))
    if mismatch:
        logger.warning(mismatch)
        warnings.append(mismatch)

    return SheetRoomResult(
        sheet=sheet,
        rooms=post_process_rooms(rooms, sheet.detected_level),
        assumptions=_string_list(payload.get("assumptions")),
        missing_info=_string_list(payload.get("missingInfo")),
        warnings=warnings + _string_list(payload.get("warnings")),
    )


async def extract_rooms_per_sheet(
    sheets: Sequence[SheetInfo],
    pages: Sequence[ExtractedPage],
    client: PlanLLMClient,
    max_concurrency: int = 1,
) -> PerSheetExtraction:
    """
    Extract rooms from every selected sheet and merge them.

    Sheets run sequentially unless max_concurrency > 1; results keep sheet
    order either way. One failing sheet never affects the others.
    """
    text_by_page = {page.page_number: page.text for page in pages}
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    assumptions: List[str] = []
    missing_info: List[str] = []
    warnings: List[str] = []

    runnable: List[SheetInfo] = []
    for sheet in sheets:
        if len(text_by_page.get(sheet.page_number, "").strip()) < MIN_SHEET_TEXT_CHARS:
            warnings.append(f"Page {sheet.page_number} ({sheet.sheet_title}): insufficient text for extraction")
            continue
        runnable.append(sheet)

    async def run(sheet: SheetInfo) -> SheetRoomResult:
        async with semaphore:
            logger.info(f"Extracting rooms from page {sheet.page_number}: \"{sheet.sheet_title}\" -> {sheet.detected_level}")
            return await extract_rooms_from_sheet(sheet, text_by_page[sheet.page_number], client)

    sheet_results = list(await asyncio.gather(*(run(sheet) for sheet in runnable)))

    for result in sheet_results:
        sheet = result.sheet
        if result.rooms:
            assumptions.append(
                f"Page {sheet.page_number} ({sheet.sheet_title}): found {len(result.rooms)} rooms on {sheet.detected_level}"
            )
        else:
            warnings.append(f"Page {sheet.page_number} ({sheet.sheet_title}): no rooms detected")
        assumptions.extend(result.assumptions)
        missing_info.extend(result.missing_info)
        warnings.extend(result.warnings)

    return PerSheetExtraction(
        rooms=deduplicate_across_sheets(sheet_results),
        sheet_results=sheet_results,
        assumptions=assumptions,
        missing_info=missing_info,
        warnings=warnings,
    )


# =============================================================================
# MULTI-PAGE FALLBACK
# =============================================================================

async def extract_rooms_from_pages(
    pages: Sequence[ExtractedPage],
    client: PlanLLMClient,
) -> RoomExtractionOutput:
    """
    Extract rooms from several pages in one call.

    Used when no sheet could be selected for per-sheet extraction. The model
    reports each room's level; levels are canonicalized before naming.
    """
    if not pages:
        return RoomExtractionOutput(
            assumptions=["No pages provided for room extraction"],
            missing_info=["Document content unavailable"],
            warnings=["Please add rooms manually"],
        )

    combined = "\n\n".join(f"=== PAGE {page.page_number} ===\n{page.text}" for page in pages)
    if len(combined) > MAX_COMBINED_TEXT_CHARS:
        combined = combined[:MAX_COMBINED_TEXT_CHARS] + "\n\n[... content truncated ...]"

    try:
        payload = await client.complete_json(
            model=settings.extraction_model,
            system_prompt=MULTI_PAGE_SYSTEM_PROMPT,
            user_content=f"Extract all rooms from these {len(pages)} pages:\n\n{combined}",
            temperature=0.1,
        )
    except PlanLLMError as e:
        logger.error(f"Multi-page room extraction failed: {e}")
        return RoomExtractionOutput(warnings=["AI room extraction failed. Please add rooms manually."])

    return _rooms_output(payload)


# =============================================================================
# VISION
# =============================================================================

async def analyze_images_for_rooms(
    images: Sequence[RenderedPage],
    client: PlanLLMClient,
) -> RoomExtractionOutput:
    """Extract rooms from rendered PDF pages or uploaded plan images."""
    if not images:
        return RoomExtractionOutput(warnings=["No images provided for analysis"])

    content: List[Dict[str, Any]] = [
        {"type": "text", "text": f"Analyze these {len(images)} floor plan page(s) and extract all rooms:"},
    ]
    for image in images:
        content.append({
            "type": "image_url",
            "image_url": {"url": image.data_url, "detail": "high"},
        })

    total_kb = sum(len(image.base64) for image in images) // 1024
    logger.info(f"Sending {len(images)} image(s) to {settings.extraction_model}, total base64: {total_kb}KB")

    try:
        payload = await client.complete_json(
            model=settings.extraction_model,
            system_prompt=VISION_SYSTEM_PROMPT,
            user_content=content,
            temperature=0.3,
        )
    except PlanLLMError as e:
        logger.error(f"Vision analysis failed: {e}")
        return RoomExtractionOutput(
            warnings=["Vision analysis failed. The images may be too large or unclear."],
        )

    output = _rooms_output(payload)
    if not isinstance(payload, dict) or not isinstance(payload.get("assumptions"), list):
        output.assumptions = ["Analyzed from rendered PDF pages"]
    return output


def _rooms_output(payload: Any) -> RoomExtractionOutput:
    rooms = [
        room for room in (
            validate_room(raw, level=canonicalize_level(raw.get("level")) if isinstance(raw, dict) else None)
            for raw in _raw_rooms(payload)
        )
        if room is not None
    ]

    if not isinstance(payload, dict):
        payload = {}

    processed = _post_process_by_level(rooms)
    by_level = Counter(room.level for room in processed)
    if by_level:
        logger.info(f"Extracted {len(processed)} rooms: {dict(by_level)}")

    return RoomExtractionOutput(
        rooms=processed,
        assumptions=_string_list(payload.get("assumptions")),
        missing_info=_string_list(payload.get("missingInfo")),
        warnings=_string_list(payload.get("warnings")),
    )
