from __future__ import annotations

import logging
import os
import re
from typing import List, Optional

from richnote.errors import ExportError, ParseError

from .buffer import BufferManager
from .model import RichDocument, text_paragraph

logger = logging.getLogger(__name__)

_BLANK_LINES_RE = re.compile(r"\n\s*\n")


def find_poppler_path(configured: Optional[str] = None) -> Optional[str]:
    """Locate the Poppler binaries used by pdf2image.

    Priority:
    1) The configured path, if it is a directory.
    2) POPPLER_PATH from the environment, if it is a directory.
    3) <project>/poppler/Library/bin or <project>/poppler/bin (and the same
       one level up).
    Returns None to let pdf2image search PATH.
    """
    if configured and os.path.isdir(configured):
        return configured
    cur = os.environ.get("POPPLER_PATH")
    if cur and os.path.isdir(cur):
        return cur

    app_dir = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    candidates = [
        os.path.join(app_dir, "poppler", "Library", "bin"),
        os.path.join(os.path.dirname(app_dir), "poppler", "Library", "bin"),
        os.path.join(app_dir, "poppler", "bin"),
        os.path.join(os.path.dirname(app_dir), "poppler", "bin"),
    ]
    for c in candidates:
        if os.path.isdir(c):
            return c
    return None


def ocr_text_to_document(pages: List[str]) -> RichDocument:
    """Blank-line separated blocks become paragraphs; wrapped lines are rejoined."""
    blocks = []
    for page in pages:
        for chunk in _BLANK_LINES_RE.split(page.replace("\r\n", "\n")):
            text = " ".join(line.strip() for line in chunk.split("\n") if line.strip())
            if text:
                blocks.append(text_paragraph(text))
    return RichDocument(blocks)


def read_pdf_ocr(
    data: bytes,
    lang: str = "eng",
    dpi: int = 200,
    timeout: Optional[float] = None,
    poppler_path: Optional[str] = None,
) -> RichDocument:
    """Render each PDF page with pdf2image and OCR it with Tesseract.

    Args:
        data: Raw PDF bytes.
        lang: Tesseract languages, e.g. 'eng' or 'rus+eng'.
        dpi: Rendering resolution.
        timeout: Seconds allowed for rendering and for each page's OCR; None disables it.
        poppler_path: Path to the Poppler binary directory.

    Returns:
        A document with one paragraph per recognised text block.

    Raises:
        ParseError: If rendering or OCR fails, or no text is recognised.
    """
    try:
        from pdf2image import convert_from_bytes
        import pytesseract
    except ImportError as e:
        raise ParseError(
            "pdf2image and pytesseract are required to OCR PDFs. Please install them "
            "and ensure Poppler and Tesseract are installed and configured."
        ) from e

    try:
        images = convert_from_bytes(
            data, dpi=dpi, poppler_path=find_poppler_path(poppler_path), timeout=timeout
        )
    except Exception as e:
        raise ParseError(f"Could not render PDF pages: {e}") from e

    pages: List[str] = []
    for pi, pil_img in enumerate(images):
        try:
            pages.append(pytesseract.image_to_string(pil_img, lang=lang, timeout=timeout or 0))
        except RuntimeError as e:
            raise ParseError(f"OCR timed out on page {pi + 1}: {e}") from e
        except Exception as e:
            raise ParseError(f"OCR failed on page {pi + 1}: {e}") from e
        logger.debug(f"OCR page {pi + 1}/{len(images)} done")

    doc = ocr_text_to_document(pages)
    if doc.is_empty():
        raise ParseError("OCR recognised no text")
    return doc


def docx_to_pdf(docx_bytes: bytes, debug_buffer: bool = False, project_root: Optional[str] = None) -> bytes:
    """Convert DOCX bytes to PDF bytes via docx2pdf inside a scratch buffer."""
    try:
        from docx2pdf import convert
    except ImportError as e:
        raise ExportError("docx2pdf is required for PDF export") from e

    with BufferManager(project_root=project_root, debug=debug_buffer) as buffer:
        src = buffer.write_bytes("export.docx", docx_bytes)
        dst = buffer.path("export.pdf")
        try:
            convert(src, dst)
            return buffer.read_bytes("export.pdf")
        except Exception as e:
            raise ExportError(f"DOCX->PDF conversion failed: {e}") from e
