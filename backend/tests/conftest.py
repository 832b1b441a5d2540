"""
Pytest configuration and fixtures
"""

from typing import Callable, List

import fitz  # PyMuPDF
import pytest
from unittest.mock import AsyncMock

from planparse.services.plans.llm_client import PlanLLMClient
from planparse.services.plans.pdf_text import ExtractedPage
from planparse.services.plans.schemas import ExtractedRoom, SheetInfo


@pytest.fixture
def llm_client() -> AsyncMock:
    """AI client double; set `complete_json.return_value` or `side_effect` per test."""
    return AsyncMock(spec=PlanLLMClient)


@pytest.fixture
def make_room() -> Callable[..., ExtractedRoom]:
    def _make(name: str, **kwargs) -> ExtractedRoom:
        return ExtractedRoom(name=name, **kwargs)
    return _make


@pytest.fixture
def make_sheet() -> Callable[..., SheetInfo]:
    def _make(
        page_number: int = 2,
        sheet_title: str = "SECOND FLOOR PLAN",
        detected_level: str = "Level 2",
        classification: str = "floor_plan",
        confidence: float = 90,
    ) -> SheetInfo:
        return SheetInfo(
            page_number=page_number,
            sheet_title=sheet_title,
            detected_level=detected_level,
            classification=classification,
            confidence=confidence,
        )
    return _make


@pytest.fixture
def floor_plan_text() -> str:
    return (
        "A2-01 SECOND FLOOR PLAN\n"
        "BEDROOM 12'-0\" x 11'-6\"\n"
        "BEDROOM 11'-0\" x 10'-0\"\n"
        "BATH  BATH  WIC  HALL\n"
        "SCALE 1/4\" = 1'-0\""
    )


@pytest.fixture
def plan_pages(floor_plan_text) -> List[ExtractedPage]:
    """Three-page plan set: cover, floor plan, general notes."""
    return [
        ExtractedPage(page_number=1, text="SMITH RESIDENCE\nCOVER SHEET\nDrawing index and project data"),
        ExtractedPage(page_number=2, text=floor_plan_text),
        ExtractedPage(page_number=3, text="GENERAL NOTES\nAll work shall comply with local building codes."),
    ]


def build_pdf(page_texts: List[str]) -> bytes:
    """In-memory PDF with one page per entry; an empty entry yields a blank page."""
    doc = fitz.open()
    for text in page_texts:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def pdf_builder() -> Callable[[List[str]], bytes]:
    return build_pdf
