from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .docx_io import write_docx
from .html_io import render_html_page
from .model import RichDocument
from .pdf_io import docx_to_pdf
from .rtf import document_to_rtf

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "txt": "text/plain",
    "html": "text/html",
    "md": "text/markdown",
    "rtf": "application/rtf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pdf": "application/pdf",
}

EXPORT_FORMATS = tuple(MIME_TYPES)


@dataclass(frozen=True)
class ExportResult:
    data: Union[str, bytes]
    mime_type: str
    extension: str
    degraded_reason: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None

    def as_bytes(self) -> bytes:
        return self.data.encode("utf-8") if isinstance(self.data, str) else self.data


def _text(fmt: str, data: str, reason: Optional[str] = None) -> ExportResult:
    return ExportResult(data, MIME_TYPES[fmt], fmt, reason)


def export_document(
    doc: RichDocument,
    fmt: str,
    docx_writer: Callable[[RichDocument], bytes] = write_docx,
    pdf_converter: Callable[[bytes], bytes] = docx_to_pdf,
) -> ExportResult:
    """Serialize ``doc`` into ``fmt``.

    Text formats are produced directly. ``docx`` and ``pdf`` go through the
    document-generation collaborators; when one fails the result degrades
    (docx -> plain text, pdf -> the intermediate docx) and carries the reason.

    Doxygen:
    - @param doc: Document to export.
    - @param fmt: One of txt, html, md, rtf, docx, pdf.
    - @param docx_writer: Callable turning the document into .docx bytes.
    - @param pdf_converter: Callable turning .docx bytes into .pdf bytes.
    - @return: ExportResult with payload, MIME type and extension.
    - @throws ValueError: If ``fmt`` is not an export format.
    """
    fmt = (fmt or "").lower().lstrip(".")
    if fmt not in MIME_TYPES:
        raise ValueError(f"Unsupported export format: {fmt}")

    if fmt in ("txt", "md"):
        return _text(fmt, doc.plain_text())
    if fmt == "html":
        return _text(fmt, render_html_page(doc))
    if fmt == "rtf":
        return _text(fmt, document_to_rtf(doc))

    try:
        docx_bytes = docx_writer(doc)
    except Exception as e:
        reason = f"DOCX generation failed, exported plain text instead: {e}"
        logger.warning(reason)
        return _text("txt", doc.plain_text(), reason)
    if fmt == "docx":
        return ExportResult(docx_bytes, MIME_TYPES["docx"], "docx")

    try:
        pdf_bytes = pdf_converter(docx_bytes)
    except Exception as e:
        reason = f"DOCX->PDF conversion failed, exported DOCX instead: {e}"
        logger.warning(reason)
        return ExportResult(docx_bytes, MIME_TYPES["docx"], "docx", reason)
    return ExportResult(pdf_bytes, MIME_TYPES["pdf"], "pdf")
