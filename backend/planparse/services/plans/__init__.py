"""
Blueprint Plan Parsing Package

Two-pass pipeline turning construction plan documents into a room list:
- Pass 1: classifier (page taxonomy), page_selection (which sheets, which level)
- Pass 2: extractor (per-sheet AI extraction), room_processor (deterministic
  naming and cross-sheet dedup)

Supporting modules:
- dimensions: freeform dimension strings -> feet
- levels: sheet titles -> canonical building levels
- pdf_text: PyMuPDF text layer, sampling and rendering
- line_items: line item scaffolds (no pricing)
- fallback: safe response when parsing fails
- pipeline: end-to-end orchestration
"""

from planparse.services.plans.dimensions import parse_dimensions
from planparse.services.plans.levels import canonicalize_level, detect_level_from_text, extract_sheet_title
from planparse.services.plans.classifier import classify_pages, create_fallback_classifications
from planparse.services.plans.page_selection import (
    enrich_classifications_with_level,
    group_pages_by_level,
    select_pages_for_deep_parse,
)
from planparse.services.plans.extractor import (
    analyze_images_for_rooms,
    extract_rooms_from_pages,
    extract_rooms_from_sheet,
    extract_rooms_per_sheet,
)
from planparse.services.plans.room_processor import (
    apply_deterministic_names,
    deduplicate_across_sheets,
    merge_room_batches,
    post_process_rooms,
)
from planparse.services.plans.fallback import create_fallback_response, get_user_friendly_parse_error
from planparse.services.plans.line_items import generate_line_item_scaffold
from planparse.services.plans.llm_client import PlanLLMClient, PlanLLMError, get_plan_llm_client
from planparse.services.plans.pipeline import PlanParsePipeline, PlanSource

__all__ = [
    "parse_dimensions",
    "canonicalize_level",
    "detect_level_from_text",
    "extract_sheet_title",
    "classify_pages",
    "create_fallback_classifications",
    "enrich_classifications_with_level",
    "group_pages_by_level",
    "select_pages_for_deep_parse",
    "analyze_images_for_rooms",
    "extract_rooms_from_pages",
    "extract_rooms_from_sheet",
    "extract_rooms_per_sheet",
    "apply_deterministic_names",
    "deduplicate_across_sheets",
    "merge_room_batches",
    "post_process_rooms",
    "create_fallback_response",
    "get_user_friendly_parse_error",
    "generate_line_item_scaffold",
    "PlanLLMClient",
    "PlanLLMError",
    "get_plan_llm_client",
    "PlanParsePipeline",
    "PlanSource",
]
