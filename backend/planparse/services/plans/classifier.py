"""
Pass 1: AI Page Classification (Document Map)

Classifies blueprint pages into a closed taxonomy so the deep parse only
runs on pages that can contain rooms. The AI output is never trusted as-is:
each entry is normalized and validated individually, and a complete failure
falls back to keyword heuristics so the pipeline keeps going.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ...core.config import settings
from .llm_client import PlanLLMClient, PlanLLMError
from .pdf_text import ExtractedPage
from .schemas import ClassificationResult, PageClassification, PageType, as_page_number, is_number

logger = logging.getLogger(__name__)


CLASSIFICATION_CHARS_PER_PAGE = 1200

FALLBACK_CONFIDENCE = 30

FALLBACK_ROOM_KEYWORDS = ("room", "bedroom", "kitchen")

CLASSIFICATION_SYSTEM_PROMPT = """You are an expert at analyzing construction blueprint and plan documents.

Your task is to classify each page of a document based on its content.

For each page, determine:
1. pageNumber: The page number provided
2. type: One of: cover, index, floor_plan, room_schedule, finish_schedule, notes, specs, elevation, section, detail, electrical, plumbing, mechanical, site_plan, irrelevant, other
3. confidence: 0-100 how confident you are in the classification
4. hasRoomLabels: true if page contains room names/labels (BEDROOM, KITCHEN, BATH, LIVING, etc.)
5. reason: Brief reason for classification (max 50 characters)

Return JSON:
{
  "pages": [
    { "pageNumber": 1, "type": "cover", "confidence": 95, "hasRoomLabels": false, "reason": "Title sheet" },
    { "pageNumber": 2, "type": "floor_plan", "confidence": 90, "hasRoomLabels": true, "reason": "First floor layout" }
  ]
}

CLASSIFICATION GUIDE:
- cover/index: Title sheets, drawing indexes, table of contents
- floor_plan: Room layouts showing walls, doors, room labels - MOST IMPORTANT
- room_schedule: Tables listing room finishes, door schedules
- finish_schedule: Material/finish specification tables
- notes/specs: General notes, written specifications
- elevation: Building views from sides (exterior/interior)
- section: Cut-through views of building
- detail: Enlarged construction details
- electrical/plumbing/mechanical: System-specific plans
- site_plan: Property layout, landscaping
- irrelevant: Cover letters, signatures, certifications
- other: Unclassified pages

PRIORITY: Accurately identify floor_plan and room_schedule pages - they contain room information."""


# AI type strings (lowercased, stripped to [a-z_]) -> taxonomy
PAGE_TYPE_SYNONYMS: Dict[str, PageType] = {
    "floorplan": PageType.FLOOR_PLAN,
    "roomschedule": PageType.ROOM_SCHEDULE,
    "finishschedule": PageType.FINISH_SCHEDULE,
    "specifications": PageType.SPECS,
    "details": PageType.DETAIL,
    "siteplan": PageType.SITE_PLAN,
}


def normalize_page_type(raw_type: Any) -> PageType:
    """Normalize an AI-returned page type; anything unknown becomes OTHER."""
    if not isinstance(raw_type, str) or not raw_type:
        return PageType.OTHER

    normalized = re.sub(r"[^a-z_]", "", raw_type.lower())
    if normalized in PAGE_TYPE_SYNONYMS:
        return PAGE_TYPE_SYNONYMS[normalized]

    try:
        return PageType(normalized)
    except ValueError:
        return PageType.OTHER


def validate_classification(entry: Any) -> PageClassification:
    """
    Convert one raw AI entry into a PageClassification.

    A malformed entry never aborts the batch: it is replaced by a
    low-confidence OTHER classification that still claims room labels,
    so the page stays eligible for deep parsing.
    """
    if isinstance(entry, dict):
        reason = entry.get("reason")
        try:
            return PageClassification(
                page_number=entry.get("pageNumber") or 1,
                type=normalize_page_type(entry.get("type")),
                confidence=entry["confidence"] if is_number(entry.get("confidence")) else 50,
                has_room_labels=entry.get("hasRoomLabels") or False,
                reason=reason[:100] if isinstance(reason, str) else None,
            )
        except ValidationError as e:
            logger.debug(f"Invalid classification entry {entry!r}: {e}")
        page_number = entry.get("pageNumber")
    else:
        page_number = None

    return PageClassification(
        page_number=as_page_number(page_number) or 1,
        type=PageType.OTHER,
        confidence=FALLBACK_CONFIDENCE,
        has_room_labels=True,
        reason="Classification failed",
    )


def create_fallback_classifications(pages: Sequence[ExtractedPage]) -> ClassificationResult:
    """Keyword-based classifications used when the classification call fails."""
    classifications = []
    for page in pages:
        lower_text = page.text.lower()
        classifications.append(PageClassification(
            page_number=page.page_number,
            type=PageType.OTHER,
            confidence=FALLBACK_CONFIDENCE,
            has_room_labels=any(keyword in lower_text for keyword in FALLBACK_ROOM_KEYWORDS),
            reason="Fallback - API unavailable",
        ))

    return ClassificationResult(
        pages=classifications,
        total_pages=len(pages),
        summary="Fallback classifications applied",
    )


def _extract_entries(payload: Any) -> Optional[List[Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        entries = payload.get("pages") or payload.get("classifications")
        if isinstance(entries, list):
            return entries
    return None


async def classify_pages(
    pages: Sequence[ExtractedPage],
    client: PlanLLMClient,
) -> ClassificationResult:
    """
    Classify pages with the fast classification model.

    Args:
        pages: Page texts (already sampled/truncated for large documents)
        client: AI service client

    Returns:
        ClassificationResult with one entry per classified page
    """
    if not pages:
        return ClassificationResult(pages=[], total_pages=0)

    user_content = "\n\n".join(
        f"--- PAGE {page.page_number} ---\n{page.text[:CLASSIFICATION_CHARS_PER_PAGE]}"
        for page in pages
    )

    try:
        payload = await client.complete_json(
            model=settings.classification_model,
            system_prompt=CLASSIFICATION_SYSTEM_PROMPT,
            user_content=f"Classify these {len(pages)} pages:\n\n{user_content}",
            temperature=0.2,
        )
    except PlanLLMError as e:
        logger.error(f"Page classification failed, using fallback: {e}")
        return create_fallback_classifications(pages)

    entries = _extract_entries(payload)
    if not entries:
        logger.warning("Page classification returned no usable entries, using fallback")
        return create_fallback_classifications(pages)

    classifications = [validate_classification(entry) for entry in entries]

    return ClassificationResult(
        pages=classifications,
        total_pages=len(pages),
        summary=f"Classified {len(classifications)} pages",
    )
