"""
Plan Parsing Schemas

Typed entities for the two-pass blueprint parsing pipeline:
- Pass 1: Page Classification (document map)
- Pass 2: Per-sheet Room Extraction

Every record that comes back from the AI service is validated against one of
these models before the pipeline touches it. Untyped JSON never crosses the
service boundary.

IMPORTANT: NO PRICING FIELDS - any pricing returned by the AI is ignored.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class PageType(str, Enum):
    """Closed taxonomy of blueprint page kinds."""
    COVER = "cover"                      # Title sheet, project info
    INDEX = "index"                      # Drawing index, table of contents
    FLOOR_PLAN = "floor_plan"            # Room layouts - most important
    ROOM_SCHEDULE = "room_schedule"      # Room finish / door schedules
    FINISH_SCHEDULE = "finish_schedule"  # Material / finish tables
    NOTES = "notes"
    SPECS = "specs"
    ELEVATION = "elevation"
    SECTION = "section"
    DETAIL = "detail"
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    MECHANICAL = "mechanical"
    SITE_PLAN = "site_plan"
    IRRELEVANT = "irrelevant"            # Cover letters, signatures
    OTHER = "other"


class RoomType(str, Enum):
    """Closed set of room kinds."""
    BEDROOM = "bedroom"
    BATHROOM = "bathroom"
    KITCHEN = "kitchen"
    LIVING = "living"
    DINING = "dining"
    GARAGE = "garage"
    CLOSET = "closet"
    UTILITY = "utility"
    LAUNDRY = "laundry"
    HALLWAY = "hallway"
    FOYER = "foyer"
    OFFICE = "office"
    BASEMENT = "basement"
    ATTIC = "attic"
    DECK = "deck"
    PATIO = "patio"
    PORCH = "porch"
    MUDROOM = "mudroom"
    PANTRY = "pantry"
    STORAGE = "storage"
    MECHANICAL = "mechanical"
    OTHER = "other"


# Page types that are relevant for room extraction
ROOM_RELEVANT_PAGE_TYPES = [
    PageType.FLOOR_PLAN,
    PageType.ROOM_SCHEDULE,
    PageType.FINISH_SCHEDULE,
]

# Page types that may contain useful scope information
SCOPE_RELEVANT_PAGE_TYPES = ROOM_RELEVANT_PAGE_TYPES + [
    PageType.NOTES,
    PageType.SPECS,
]


def is_room_relevant_page(page_type: PageType) -> bool:
    return page_type in ROOM_RELEVANT_PAGE_TYPES


def is_scope_relevant_page(page_type: PageType) -> bool:
    return page_type in SCOPE_RELEVANT_PAGE_TYPES


# =============================================================================
# PASS 1: PAGE CLASSIFICATION
# =============================================================================

class PageClassification(BaseModel):
    """Classification of a single page. Produced once per page per run."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    page_number: int = Field(..., gt=0, alias="pageNumber")
    type: PageType
    confidence: float = Field(..., ge=0, le=100)
    has_room_labels: bool = Field(..., alias="hasRoomLabels")
    reason: Optional[str] = Field(None, max_length=100)


class EnrichedPageClassification(PageClassification):
    """Page classification with the sheet title and detected building level."""
    detected_level: str = Field(..., alias="detectedLevel")
    sheet_title: str = Field(..., alias="sheetTitle")


@dataclass
class ClassificationResult:
    """Complete Pass 1 output."""
    pages: List[PageClassification]
    total_pages: int
    summary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pages": [p.model_dump(by_alias=True, mode="json") for p in self.pages],
            "totalPages": self.total_pages,
            "summary": self.summary,
        }


# =============================================================================
# PASS 2: ROOM EXTRACTION
# =============================================================================

class ExtractedRoom(BaseModel):
    """A room extracted from a sheet. Level is NULL until the post-processor sets it."""
    name: str = Field(..., min_length=1, max_length=100)
    level: Optional[str] = Field(None, max_length=50)
    type: Optional[RoomType] = None
    area_sqft: Optional[float] = Field(None, gt=0)
    length_ft: Optional[float] = Field(None, gt=0)
    width_ft: Optional[float] = Field(None, gt=0)
    ceiling_height_ft: Optional[float] = Field(None, gt=0)
    dimensions: Optional[str] = Field(None, max_length=50)  # Raw string from plans
    notes: Optional[str] = Field(None, max_length=500)
    confidence: float = Field(50, ge=0, le=100)
    sheet_label: Optional[str] = Field(None, max_length=200)  # Provenance


class LineItemScaffold(BaseModel):
    """Suggested line item for a room. Pricing is never part of a scaffold."""
    description: str = Field(..., min_length=1, max_length=200)
    category: str = Field("Other", max_length=50)
    cost_code: Optional[str] = Field(None, max_length=10)
    room_name: str = Field(..., min_length=1, max_length=100)
    quantity: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=500)


@dataclass(frozen=True)
class SheetInfo:
    """A classified page enriched with level detection; unit of room extraction."""
    page_number: int
    sheet_title: str
    detected_level: str
    classification: str
    confidence: float


@dataclass
class SheetRoomResult:
    """Rooms extracted from one sheet, paired with the sheet they came from."""
    sheet: SheetInfo
    rooms: List[ExtractedRoom]
    assumptions: List[str] = field(default_factory=list)
    missing_info: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sheet_id": self.sheet.page_number,
            "sheet_title": self.sheet.sheet_title,
            "detected_level": self.sheet.detected_level,
            "classification": self.sheet.classification,
            "confidence": self.sheet.confidence,
            "rooms": [r.model_dump(mode="json") for r in self.rooms],
        }


@dataclass
class RoomExtractionOutput:
    """Rooms plus the notes the model attached to them (Pass 2 output)."""
    rooms: List[ExtractedRoom] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)
    missing_info: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class PerSheetExtraction:
    """Merged result of extracting every selected sheet."""
    rooms: List[ExtractedRoom]
    sheet_results: List[SheetRoomResult]
    assumptions: List[str] = field(default_factory=list)
    missing_info: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class ParsedRoom(BaseModel):
    """A room as returned to the estimate / room-review UI."""
    id: str
    name: str
    level: str = "Level 1"
    type: Optional[str] = None
    area_sqft: Optional[float] = None
    length_ft: Optional[float] = None
    width_ft: Optional[float] = None
    ceiling_height_ft: Optional[float] = None
    dimensions: Optional[str] = None
    notes: Optional[str] = None
    confidence: Optional[float] = None
    sheet_label: Optional[str] = None
    is_included: bool = True


class ParsedLineItem(BaseModel):
    """A line item scaffold as returned to the UI. Pricing is always null."""
    id: str
    description: str
    category: str
    cost_code: Optional[str] = None
    room_name: str
    quantity: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    direct_cost: None = None
    client_price: None = None


class SheetParseResult(BaseModel):
    """Per-sheet structured output."""
    sheet_id: int
    sheet_title: str
    detected_level: str
    classification: str
    confidence: float
    rooms: List[ExtractedRoom]


class ParseResponse(BaseModel):
    """Terminal artifact of a parse run. Always present, never an error."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    plan_parse_id: Optional[str] = Field(None, alias="planParseId")
    rooms: List[ParsedRoom]
    line_item_scaffold: List[ParsedLineItem] = Field(default_factory=list, alias="lineItemScaffold")
    sheets: Optional[List[SheetParseResult]] = None
    assumptions: List[str] = Field(default_factory=list)
    missing_info: List[str] = Field(default_factory=list, alias="missingInfo")
    warnings: List[str] = Field(default_factory=list)
    page_classifications: List[PageClassification] = Field(default_factory=list, alias="pageClassifications")
    total_pages: int = Field(0, ge=0, alias="totalPages")
    relevant_pages: List[int] = Field(default_factory=list, alias="relevantPages")
    processing_time_ms: float = Field(0, ge=0, alias="processingTimeMs")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def is_number(value: Any) -> bool:
    """True for finite ints and floats; bools, NaN and Infinity don't count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def as_page_number(value: Any) -> Optional[int]:
    """A whole number >= 1 (2 or 2.0) as int, else None."""
    if not is_number(value) or value < 1 or not float(value).is_integer():
        return None
    return int(value)
