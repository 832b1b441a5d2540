"""
Plan Parsing API routes.

Turns uploaded blueprint PDFs and plan images into a structured room list
with line item scaffolds. Parsing never fails the request: when the AI
service is unavailable or nothing can be extracted, the response carries a
placeholder "General / Scope Notes" room and a user-facing warning.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core.config import settings
from ..services.plans.fallback import create_fallback_response
from ..services.plans.levels import CANONICAL_LEVELS
from ..services.plans.llm_client import get_plan_llm_client
from ..services.plans.pdf_text import ExtractedPage
from ..services.plans.pipeline import SUPPORTED_EXTENSIONS, PlanParsePipeline, PlanSource, file_extension
from ..services.plans.schemas import PageType, ParseResponse, RoomType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["plans"])


AI_UNAVAILABLE_ERROR = "AI service unavailable. OpenAI API key not configured."


# =============================================================================
# Request / Response Models
# =============================================================================


class PageTextInput(BaseModel):
    """Text of one page, extracted by the caller."""
    model_config = ConfigDict(populate_by_name=True)

    page_number: int = Field(..., gt=0, alias="pageNumber")
    text: str


class ParseTextRequest(BaseModel):
    """Request body for parsing pre-extracted page text."""
    model_config = ConfigDict(populate_by_name=True)

    pages: List[PageTextInput] = Field(..., min_length=1)
    plan_parse_id: Optional[str] = Field(None, alias="planParseId")


class PlansHealthResponse(BaseModel):
    """Health check response for the plan parsing service."""
    status: str
    service: str
    ai_configured: bool
    supported_file_types: List[str]


class TaxonomyResponse(BaseModel):
    """Closed vocabularies used in parse responses."""
    page_types: List[str]
    room_types: List[str]
    levels: List[str]


# =============================================================================
# Dependencies
# =============================================================================


def get_plan_parser() -> Optional[PlanParsePipeline]:
    """Pipeline bound to the shared AI client, or None when AI isn't configured."""
    try:
        client = get_plan_llm_client()
    except ValueError as e:
        logger.warning(f"Plan parsing unavailable: {e}")
        return None
    return PlanParsePipeline(client=client, settings=settings)


def _ai_unavailable(total_pages: int, plan_parse_id: Optional[str]) -> JSONResponse:
    fallback = create_fallback_response(AI_UNAVAILABLE_ERROR, total_pages, plan_parse_id)
    return JSONResponse(status_code=503, content=fallback.to_dict())


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/health", response_model=PlansHealthResponse)
async def health_check():
    """Check if the plan parsing service is healthy."""
    return PlansHealthResponse(
        status="ok",
        service="plan_parsing",
        ai_configured=settings.ai_enabled,
        supported_file_types=list(SUPPORTED_EXTENSIONS),
    )


@router.get("/taxonomy", response_model=TaxonomyResponse)
async def taxonomy():
    """List page types, room types and canonical building levels."""
    return TaxonomyResponse(
        page_types=[t.value for t in PageType],
        room_types=[t.value for t in RoomType],
        levels=list(CANONICAL_LEVELS),
    )


@router.post("/parse", response_model=ParseResponse)
async def parse_plans(
    files: List[UploadFile] = File(..., description="Blueprint PDFs or plan images"),
    plan_parse_id: Optional[str] = Query(None, description="Caller-side id echoed in the response"),
    parser: Optional[PlanParsePipeline] = Depends(get_plan_parser),
):
    """
    Parse uploaded construction plans into rooms and line item scaffolds.

    **Flow:**
    1. Vector PDFs: page classification, then per-sheet room extraction
    2. Scanned PDFs and images: vision analysis of rendered pages
    3. Deterministic naming ("Bathroom 1", "Bathroom 2") and cross-sheet dedup

    **Returns:**
    - Rooms with level, type, dimensions and provenance
    - Line item scaffolds (never priced)
    - Page classifications and the pages that were deep-parsed
    - Assumptions, missing info and warnings
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")

    if len(files) > settings.max_files_per_parse:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files: {len(files)} (max {settings.max_files_per_parse})",
        )

    max_bytes = settings.max_upload_mb * 1024 * 1024
    sources: List[PlanSource] = []
    for upload in files:
        if not upload.filename:
            raise HTTPException(status_code=400, detail="No filename provided")

        if file_extension(upload.filename) not in SUPPORTED_EXTENSIONS:
            raise HTTPException(
                status_code=400,
                detail=f"Unsupported file type: {upload.filename}. "
                       f"Allowed: {', '.join(SUPPORTED_EXTENSIONS)}",
            )

        data = await upload.read()
        if len(data) > max_bytes:
            raise HTTPException(
                status_code=400,
                detail=f"File too large: {upload.filename} (max {settings.max_upload_mb} MB)",
            )
        sources.append(PlanSource(filename=upload.filename, data=data))

    if parser is None:
        return _ai_unavailable(0, plan_parse_id)

    logger.info(f"Parsing {len(sources)} file(s): {', '.join(s.filename for s in sources)}")
    return await parser.parse_files(sources, plan_parse_id=plan_parse_id)


@router.post("/parse-text", response_model=ParseResponse)
async def parse_text(
    request: ParseTextRequest,
    parser: Optional[PlanParsePipeline] = Depends(get_plan_parser),
):
    """
    Parse page text that the caller already extracted.

    Skips PDF handling entirely and runs classification and per-sheet
    extraction on the provided pages.
    """
    if parser is None:
        return _ai_unavailable(len(request.pages), request.plan_parse_id)

    pages = [ExtractedPage(page_number=p.page_number, text=p.text) for p in request.pages]
    return await parser.parse_pages(pages, plan_parse_id=request.plan_parse_id)
