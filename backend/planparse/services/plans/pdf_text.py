"""
PDF Text Extraction, Page Sampling and Rendering

Uses PyMuPDF (fitz) to:
- Pull the text layer of every page
- Decide whether a PDF is vector (text-rich), scanned (image-only) or mixed
- Sample and trim page text for the classification call
- Render selected pages to PNG for vision analysis

Nothing here raises on a bad document: failures are reported through the
result objects so the pipeline can degrade to vision or the fallback response.
"""

import base64
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import fitz  # PyMuPDF

logger = logging.getLogger(__name__)


MIN_PAGE_TEXT_CHARS = 20

# OpenAI vision payloads stay well under the request limit at this size
MAX_IMAGE_BASE64_BYTES = 4 * 1024 * 1024
REDUCED_RENDER_SCALE = 0.75

IMAGE_MIME_TYPES: Dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class ExtractedPage:
    """Text of one PDF page (1-based page number)."""
    page_number: int
    text: str

    @property
    def has_text(self) -> bool:
        return len(self.text.strip()) > MIN_PAGE_TEXT_CHARS


@dataclass
class PdfExtractionResult:
    """Text layer of a whole document."""
    pages: List[ExtractedPage] = field(default_factory=list)
    total_pages: int = 0
    has_embedded_text: bool = False
    error: Optional[str] = None


class PdfDocType(str, Enum):
    VECTOR = "vector"    # >= 80% of pages have text
    SCANNED = "scanned"  # <= 20% of pages have text
    MIXED = "mixed"


@dataclass
class PdfTypeDetection:
    type: PdfDocType
    text_ratio: float
    total_pages: int
    pages_with_text: int
    pages_without_text: int
    file_size_bytes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "text_ratio": round(self.text_ratio, 3),
            "total_pages": self.total_pages,
            "pages_with_text": self.pages_with_text,
            "pages_without_text": self.pages_without_text,
            "file_size_bytes": self.file_size_bytes,
        }


@dataclass
class RenderedPage:
    """A page image ready for the vision model."""
    page_number: int
    base64: str
    width: Optional[int] = None
    height: Optional[int] = None
    mime_type: str = "image/png"

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


# =============================================================================
# TEXT EXTRACTION
# =============================================================================

def extract_pdf_pages(data: bytes) -> PdfExtractionResult:
    """
    Extract the text layer of every page.

    Args:
        data: Raw PDF bytes

    Returns:
        PdfExtractionResult; `error` is set when the document can't be opened
    """
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        logger.error(f"Failed to open PDF: {e}")
        return PdfExtractionResult(
            error=f"Could not read PDF text ({e}). The file may be image-only or corrupted.",
        )

    pages: List[ExtractedPage] = []
    try:
        for page_idx in range(len(doc)):
            try:
                text = doc[page_idx].get_text("text").strip()
            except Exception as e:
                logger.warning(f"Text extraction failed on page {page_idx + 1}: {e}")
                text = ""
            pages.append(ExtractedPage(page_number=page_idx + 1, text=text))
    finally:
        doc.close()

    result = PdfExtractionResult(
        pages=pages,
        total_pages=len(pages),
        has_embedded_text=any(page.has_text for page in pages),
    )
    logger.info(
        f"Extracted text from {result.total_pages} pages "
        f"({sum(1 for p in pages if p.has_text)} with text)"
    )
    return result


def detect_pdf_type(
    result: PdfExtractionResult,
    file_size_bytes: Optional[int] = None,
) -> PdfTypeDetection:
    """Classify a document as vector, scanned or mixed by its share of text pages."""
    if result.total_pages == 0:
        return PdfTypeDetection(
            type=PdfDocType.SCANNED,
            text_ratio=0.0,
            total_pages=0,
            pages_with_text=0,
            pages_without_text=0,
            file_size_bytes=file_size_bytes,
        )

    pages_with_text = sum(1 for page in result.pages if page.has_text)
    text_ratio = pages_with_text / result.total_pages

    if not result.has_embedded_text or text_ratio <= 0.2:
        doc_type = PdfDocType.SCANNED
    elif text_ratio >= 0.8:
        doc_type = PdfDocType.VECTOR
    else:
        doc_type = PdfDocType.MIXED

    return PdfTypeDetection(
        type=doc_type,
        text_ratio=text_ratio,
        total_pages=result.total_pages,
        pages_with_text=pages_with_text,
        pages_without_text=result.total_pages - pages_with_text,
        file_size_bytes=file_size_bytes,
    )


# =============================================================================
# PAGE SAMPLING FOR CLASSIFICATION
# =============================================================================

def sample_pages_for_classification(
    pages: Sequence[ExtractedPage],
    max_pages: int = 20,
) -> List[ExtractedPage]:
    """
    Sample a large document down to max_pages for classification.

    Strategy: first 5 + last 2 + evenly stepped middle pages that have text.
    """
    total = len(pages)
    if total <= max_pages:
        return list(pages)

    samples: List[ExtractedPage] = []
    used = set()

    def take(page: ExtractedPage) -> None:
        if page.page_number not in used:
            samples.append(page)
            used.add(page.page_number)

    first_n = min(5, total)
    for page in pages[:first_n]:
        take(page)

    last_n = min(2, total - first_n)
    for page in pages[total - last_n:]:
        take(page)

    remaining = max_pages - len(samples)
    if remaining > 0:
        middle = [p for p in pages if p.page_number not in used and p.has_text]
        if middle:
            step = max(1, len(middle) // remaining)
            for page in middle[::step][:remaining]:
                take(page)

    return sorted(samples, key=lambda p: p.page_number)


def truncate_page_text(text: str, max_chars: int = 1500) -> str:
    """Cut text at a sentence or line boundary near max_chars and add '...'."""
    if len(text) <= max_chars:
        return text

    truncated = text[:max_chars]
    cut_point = max(truncated.rfind("."), truncated.rfind("\n"), max_chars - 100)
    return truncated[:cut_point] + "..."


def prepare_pages_for_classification(
    pages: Sequence[ExtractedPage],
    max_total_chars: int = 50000,
) -> List[ExtractedPage]:
    """Trim page texts so the whole classification prompt stays within budget."""
    if not pages:
        return []

    chars_per_page = min(max_total_chars // len(pages), 1500)
    prepared: List[ExtractedPage] = []
    total_chars = 0

    for page in pages:
        text = truncate_page_text(page.text, chars_per_page)
        prepared.append(ExtractedPage(page_number=page.page_number, text=text))
        total_chars += len(text)
        if total_chars > max_total_chars:
            break

    return prepared


# =============================================================================
# RENDERING FOR VISION
# =============================================================================

def select_pages_for_vision_analysis(total_pages: int, max_pages: int = 3) -> List[int]:
    """
    Pick pages to render for room detection.

    Floor plans in construction sets usually follow the cover sheet, so page 1
    is skipped when there are more pages than the cap.
    """
    if total_pages <= 0:
        return []
    if total_pages <= max_pages:
        return list(range(1, total_pages + 1))
    return list(range(2, min(total_pages, max_pages + 1) + 1))


def _render_page(page: "fitz.Page", scale: float) -> fitz.Pixmap:
    return page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)


def render_pdf_pages_to_images(
    data: bytes,
    page_numbers: Sequence[int],
    scale: float = 1.5,
) -> List[RenderedPage]:
    """
    Render PDF pages (1-based) to base64 PNG images.

    Pages outside the document are skipped. An image whose base64 payload
    exceeds MAX_IMAGE_BASE64_BYTES is re-rendered at a reduced scale.
    """
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        logger.error(f"Failed to open PDF for rendering: {e}")
        return []

    rendered: List[RenderedPage] = []
    try:
        for page_number in page_numbers:
            if page_number < 1 or page_number > len(doc):
                logger.warning(f"Page {page_number} does not exist (PDF has {len(doc)} pages)")
                continue

            page = doc[page_number - 1]
            try:
                pix = _render_page(page, scale)
                encoded = base64.b64encode(pix.tobytes("png")).decode("ascii")

                if len(encoded) > MAX_IMAGE_BASE64_BYTES:
                    logger.info(
                        f"Page {page_number} image is {len(encoded) // 1024}KB, "
                        f"re-rendering at scale {REDUCED_RENDER_SCALE}"
                    )
                    pix = _render_page(page, REDUCED_RENDER_SCALE)
                    encoded = base64.b64encode(pix.tobytes("png")).decode("ascii")
            except Exception as e:
                logger.error(f"Rendering page {page_number} failed: {e}")
                continue

            rendered.append(RenderedPage(
                page_number=page_number,
                base64=encoded,
                width=pix.width,
                height=pix.height,
            ))
    finally:
        doc.close()

    logger.info(f"Rendered {len(rendered)}/{len(page_numbers)} pages for vision analysis")
    return rendered


def image_mime_type(filename: str) -> Optional[str]:
    """MIME type for a supported image upload, None otherwise."""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return IMAGE_MIME_TYPES.get(extension)


def encode_uploaded_image(data: bytes, filename: str, page_number: int = 1) -> RenderedPage:
    """Wrap an uploaded image file for the vision model."""
    return RenderedPage(
        page_number=page_number,
        base64=base64.b64encode(data).decode("ascii"),
        mime_type=image_mime_type(filename) or "image/png",
    )
