"""
Page Selection for Deep Parse

Chooses which classified pages get the expensive per-sheet extraction and
turns them into SheetInfo records carrying a sheet title and building level.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .levels import detect_level_from_text, extract_sheet_title
from .pdf_text import ExtractedPage
from .schemas import (
    ROOM_RELEVANT_PAGE_TYPES,
    EnrichedPageClassification,
    PageClassification,
    PageType,
    SheetInfo,
)

logger = logging.getLogger(__name__)


HIGH_CONFIDENCE_FLOOR_PLAN = 70

FALLBACK_PAGE_COUNT = 5


def select_pages_for_deep_parse(
    classifications: Sequence[PageClassification],
    max_pages: int = 10,
) -> List[int]:
    """
    Select page numbers to deep-parse for room extraction.

    Priority order:
    1. High-confidence floor plans
    2. Pages with room labels
    3. Room schedules
    4. Remaining room-relevant pages, until max_pages
    5. Nothing selected: the first few classified pages

    Returns:
        At most max_pages page numbers, ascending
    """
    selected: List[int] = []

    def add(page_number: int) -> None:
        if page_number not in selected:
            selected.append(page_number)

    for c in classifications:
        if c.type == PageType.FLOOR_PLAN and c.confidence >= HIGH_CONFIDENCE_FLOOR_PLAN:
            add(c.page_number)

    for c in classifications:
        if c.has_room_labels:
            add(c.page_number)

    for c in classifications:
        if c.type == PageType.ROOM_SCHEDULE:
            add(c.page_number)

    for c in classifications:
        if len(selected) >= max_pages:
            break
        if c.type in ROOM_RELEVANT_PAGE_TYPES:
            add(c.page_number)

    if not selected:
        for c in classifications[:FALLBACK_PAGE_COUNT]:
            add(c.page_number)

    return sorted(selected[:max_pages])


def enrich_classifications_with_level(
    classifications: Iterable[PageClassification],
    pages: Sequence[ExtractedPage],
) -> List[EnrichedPageClassification]:
    """Attach a sheet title and detected building level to each classification."""
    text_by_page: Dict[int, str] = {page.page_number: page.text for page in pages}

    enriched = []
    for c in classifications:
        page_text = text_by_page.get(c.page_number, "")
        sheet_title = extract_sheet_title(page_text)
        enriched.append(EnrichedPageClassification(
            **c.model_dump(),
            detected_level=detect_level_from_text(sheet_title, page_text),
            sheet_title=sheet_title,
        ))

    return enriched


def _is_sheet_candidate(c: PageClassification) -> bool:
    return c.type in (PageType.FLOOR_PLAN, PageType.ROOM_SCHEDULE) or c.has_room_labels


def group_pages_by_level(
    enriched: Sequence[EnrichedPageClassification],
    selected: Optional[Iterable[int]] = None,
) -> List[SheetInfo]:
    """
    Build the SheetInfo list for per-sheet extraction.

    Every floor plan, room schedule and labelled page becomes a sheet. A
    selection narrows that set to the selected pages (in page order), so the
    selector's first-pages fallback alone yields no sheets. A page classified
    more than once is used once.
    """
    candidates = [c for c in enriched if _is_sheet_candidate(c)]
    if selected is not None:
        wanted = set(selected)
        candidates = sorted(
            (c for c in candidates if c.page_number in wanted),
            key=lambda c: c.page_number,
        )

    sheets: List[SheetInfo] = []
    seen = set()
    for c in candidates:
        if c.page_number in seen:
            continue
        seen.add(c.page_number)
        sheets.append(SheetInfo(
            page_number=c.page_number,
            sheet_title=c.sheet_title,
            detected_level=c.detected_level,
            classification=c.type.value,
            confidence=c.confidence,
        ))

    return sheets
