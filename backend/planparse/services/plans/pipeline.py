"""
Plan Parse Pipeline

Orchestrates a full parse run:

  PDF -> text layer -> vector / scanned / mixed
      scanned -> render pages -> vision
      vector  -> sample -> classify -> level -> select -> per-sheet extract
      mixed   -> as vector, then vision on image-only pages if nothing found
  image -> vision

Rooms from all sources are merged, line item scaffolds generated, and the
result assembled into a ParseResponse. Entry points never raise: anything
unexpected becomes the fallback response.
"""

import logging
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ...core.config import Settings, get_settings
from .classifier import classify_pages
from .extractor import (
    analyze_images_for_rooms,
    extract_rooms_from_pages,
    extract_rooms_per_sheet,
)
from .fallback import create_fallback_response
from .line_items import generate_line_item_scaffold
from .llm_client import PlanLLMClient
from .page_selection import (
    enrich_classifications_with_level,
    group_pages_by_level,
    select_pages_for_deep_parse,
)
from .pdf_text import (
    IMAGE_MIME_TYPES,
    ExtractedPage,
    PdfDocType,
    detect_pdf_type,
    encode_uploaded_image,
    extract_pdf_pages,
    prepare_pages_for_classification,
    render_pdf_pages_to_images,
    sample_pages_for_classification,
    select_pages_for_vision_analysis,
)
from .room_processor import merge_room_batches
from .schemas import (
    ExtractedRoom,
    PageClassification,
    ParsedLineItem,
    ParsedRoom,
    ParseResponse,
    RoomExtractionOutput,
    SheetParseResult,
)

logger = logging.getLogger(__name__)


SUPPORTED_EXTENSIONS = ("pdf",) + tuple(IMAGE_MIME_TYPES)

LEGACY_FALLBACK_PAGES = 5

# Assumed page count when a PDF's text layer can't be read at all
UNREADABLE_PDF_PAGES = 3

NO_ROOMS_MESSAGE = (
    "No rooms were detected in the uploaded documents. The plans may be unclear "
    "or contain no room information."
)


def file_extension(filename: str) -> str:
    """Lower-case extension without the dot; "" when there is none."""
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


@dataclass
class PlanSource:
    """One uploaded plan file."""
    filename: str
    data: bytes

    @property
    def extension(self) -> str:
        return file_extension(self.filename)


@dataclass
class _ParseRun:
    """Accumulated state of one parse run."""
    room_batches: List[List[ExtractedRoom]] = field(default_factory=list)
    sheets: List[SheetParseResult] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)
    missing_info: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    classifications: List[PageClassification] = field(default_factory=list)
    relevant_pages: List[int] = field(default_factory=list)
    total_pages: int = 0

    def absorb(self, output: RoomExtractionOutput) -> None:
        if output.rooms:
            self.room_batches.append(output.rooms)
        self.assumptions.extend(output.assumptions)
        self.missing_info.extend(output.missing_info)
        self.warnings.extend(output.warnings)


class PlanParsePipeline:
    """Two-pass blueprint parser: page classification, then per-sheet extraction."""

    def __init__(self, client: PlanLLMClient, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    async def parse_pages(
        self,
        pages: Sequence[ExtractedPage],
        plan_parse_id: Optional[str] = None,
    ) -> ParseResponse:
        """Parse already-extracted page texts."""
        started = time.monotonic()
        run = _ParseRun(total_pages=len(pages))

        try:
            await self._parse_text_pages(run, list(pages))
            return await self._finish(run, started, plan_parse_id)
        except Exception as e:
            logger.exception(f"Plan parse failed: {e}")
            return create_fallback_response(str(e), run.total_pages, plan_parse_id)

    async def parse_files(
        self,
        files: Sequence[PlanSource],
        plan_parse_id: Optional[str] = None,
    ) -> ParseResponse:
        """Parse uploaded PDF and image files."""
        started = time.monotonic()
        run = _ParseRun()

        try:
            for source in files:
                if source.extension in IMAGE_MIME_TYPES:
                    await self._parse_image(run, source)
                elif source.extension == "pdf":
                    await self._parse_pdf(run, source)
                else:
                    run.warnings.append(f"Unsupported file type: {source.extension or source.filename}")

            return await self._finish(run, started, plan_parse_id)
        except Exception as e:
            logger.exception(f"Plan parse failed: {e}")
            return create_fallback_response(str(e), run.total_pages, plan_parse_id)

    # =========================================================================
    # PER-SOURCE PROCESSING
    # =========================================================================

    async def _parse_image(self, run: _ParseRun, source: PlanSource) -> None:
        run.total_pages += 1
        try:
            image = encode_uploaded_image(source.data, source.filename)
            run.absorb(await analyze_images_for_rooms([image], self.client))
        except Exception as e:
            logger.error(f"Image analysis error for {source.filename}: {e}")
            run.warnings.append(f"Failed to analyze image: {source.filename}")

    async def _parse_pdf(self, run: _ParseRun, source: PlanSource) -> None:
        try:
            extraction = extract_pdf_pages(source.data)
            if extraction.error:
                run.warnings.append(extraction.error)
            run.total_pages += extraction.total_pages

            pdf_type = detect_pdf_type(extraction, len(source.data))
            logger.info(
                f"{source.filename}: {pdf_type.type.value} PDF "
                f"(text ratio {pdf_type.text_ratio:.0%}, {pdf_type.total_pages} pages, "
                f"{len(source.data) // 1024}KB)"
            )

            if pdf_type.type == PdfDocType.SCANNED:
                run.warnings.append(
                    f"PDF detected as {pdf_type.type.value} ({pdf_type.pages_with_text}/"
                    f"{pdf_type.total_pages} pages with text). Using vision analysis."
                )
                if await self._vision_for_scanned(run, source, extraction.total_pages):
                    return

            rooms_before = sum(len(batch) for batch in run.room_batches)
            await self._parse_text_pages(run, extraction.pages)
            found_rooms = sum(len(batch) for batch in run.room_batches) > rooms_before

            if pdf_type.type == PdfDocType.MIXED and not found_rooms and pdf_type.pages_without_text > 0:
                await self._vision_for_mixed(run, source, extraction.pages)
        except Exception as e:
            logger.error(f"PDF processing error for {source.filename}: {e}")
            run.warnings.append(f"PDF processing error: {e}")

    async def _vision_for_scanned(self, run: _ParseRun, source: PlanSource, total_pages: int) -> bool:
        """Vision pass for a scanned PDF. Returns True when it found rooms."""
        page_count = total_pages or UNREADABLE_PDF_PAGES
        page_numbers = select_pages_for_vision_analysis(page_count, self.settings.vision_max_pages)
        logger.info(f"Rendering pages {page_numbers} of {source.filename} for vision analysis")

        rendered = render_pdf_pages_to_images(source.data, page_numbers)
        if not rendered:
            run.warnings.append("Could not render PDF pages to images for vision analysis.")
            return False

        output = await analyze_images_for_rooms(rendered, self.client)
        if not output.rooms:
            run.warnings.append("Vision analysis did not detect rooms from rendered pages.")
            run.missing_info.append("Floor plan pages may be cover sheets, notes, or unclear images")
            return False

        run.absorb(output)
        run.assumptions.append(f"Analyzed {len(rendered)} rendered page(s) using vision AI")
        return True

    async def _vision_for_mixed(
        self,
        run: _ParseRun,
        source: PlanSource,
        pages: Sequence[ExtractedPage],
    ) -> None:
        image_only = [p.page_number for p in pages if not p.has_text][: self.settings.mixed_vision_max_pages]
        if not image_only:
            return

        run.warnings.append(
            f"Mixed PDF: text extraction found no rooms. Trying vision on {len(image_only)} image-only page(s)."
        )
        rendered = render_pdf_pages_to_images(source.data, image_only)
        if rendered:
            run.absorb(await analyze_images_for_rooms(rendered, self.client))

    async def _parse_text_pages(self, run: _ParseRun, pages: List[ExtractedPage]) -> None:
        """Pass 1 (classification) and Pass 2 (per-sheet extraction) over page texts."""
        if not pages:
            return

        sampled = sample_pages_for_classification(pages, self.settings.classification_sample_pages)
        classification = await classify_pages(prepare_pages_for_classification(sampled), self.client)
        run.classifications.extend(classification.pages)

        enriched = enrich_classifications_with_level(classification.pages, pages)
        selected = select_pages_for_deep_parse(classification.pages, self.settings.max_deep_parse_pages)
        sheets = group_pages_by_level(enriched, selected)
        run.relevant_pages.extend(sheet.page_number for sheet in sheets)

        logger.info(f"Detected {len(sheets)} relevant sheet(s):")
        for s in sheets:
            logger.info(
                f"  Sheet p{s.page_number}: \"{s.sheet_title}\" -> {s.detected_level} "
                f"({s.classification}, confidence: {s.confidence:g})"
            )

        if sheets:
            extraction = await extract_rooms_per_sheet(
                sheets, pages, self.client, max_concurrency=self.settings.max_sheet_concurrency,
            )
            if extraction.rooms:
                run.room_batches.append(extraction.rooms)
            run.assumptions.extend(extraction.assumptions)
            run.missing_info.extend(extraction.missing_info)
            run.warnings.extend(extraction.warnings)

            for result in extraction.sheet_results:
                types = Counter(r.type.value if r.type else "other" for r in result.rooms)
                logger.info(
                    f"  Sheet p{result.sheet.page_number} ({result.sheet.detected_level}): "
                    f"{len(result.rooms)} rooms -> {', '.join(f'{n} {t}' for t, n in types.items()) or 'none'}"
                )
                run.sheets.append(SheetParseResult(**result.to_dict()))
            return

        fallback_pages = [p for p in pages[:LEGACY_FALLBACK_PAGES] if p.text]
        if fallback_pages:
            run.warnings.append("No floor plan pages detected. Parsing first pages as fallback.")
            run.absorb(await extract_rooms_from_pages(fallback_pages, self.client))

    # =========================================================================
    # RESPONSE ASSEMBLY
    # =========================================================================

    async def _finish(
        self,
        run: _ParseRun,
        started: float,
        plan_parse_id: Optional[str],
    ) -> ParseResponse:
        rooms = merge_room_batches(run.room_batches)
        self._log_room_summary(rooms)

        if not rooms:
            response = create_fallback_response(NO_ROOMS_MESSAGE, run.total_pages, plan_parse_id)
            response.assumptions = run.assumptions + [
                'Created fallback "General / Scope Notes" room for manual entry',
            ]
            response.warnings = run.warnings + response.warnings
            response.missing_info = run.missing_info
            response.page_classifications = run.classifications
            response.relevant_pages = run.relevant_pages
            response.processing_time_ms = _elapsed_ms(started)
            return response

        line_items = await generate_line_item_scaffold(rooms, self.client)
        if not line_items:
            run.warnings.append("Line item scaffold generation failed. Add line items manually.")

        return ParseResponse(
            success=True,
            plan_parse_id=plan_parse_id,
            rooms=[_to_parsed_room(room) for room in rooms],
            line_item_scaffold=[ParsedLineItem(id=_new_id(), **item.model_dump()) for item in line_items],
            sheets=run.sheets or None,
            assumptions=run.assumptions,
            missing_info=run.missing_info,
            warnings=run.warnings,
            page_classifications=run.classifications,
            total_pages=run.total_pages,
            relevant_pages=run.relevant_pages,
            processing_time_ms=_elapsed_ms(started),
        )

    @staticmethod
    def _log_room_summary(rooms: List[ExtractedRoom]) -> None:
        by_level: Dict[str, List[str]] = {}
        for room in rooms:
            by_level.setdefault(room.level or "Level 1", []).append(room.name)

        logger.info(f"Total unique rooms: {len(rooms)}")
        for level, names in by_level.items():
            logger.info(f"  {level}: {len(names)} rooms -> {', '.join(names)}")


def _new_id() -> str:
    return str(uuid.uuid4())


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 1)


def _to_parsed_room(room: ExtractedRoom) -> ParsedRoom:
    data = room.model_dump(exclude={"level", "type"})
    return ParsedRoom(
        id=_new_id(),
        level=room.level or "Level 1",
        type=room.type.value if room.type else None,
        **data,
    )
