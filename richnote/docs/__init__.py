"""Unified document layer (TXT, HTML, Markdown, RTF, DOCX, ODT, DOC, PAGES, PDF).

Exposes:
- Data model: RichDocument, Block, InlineRun, LineBreak, Marks
- Import: import_document / import_path with per-format fallback chains,
  returning Structured, Degraded or Failed
- Export: export_document (txt, html, md, rtf directly; docx via python-docx,
  pdf via DOCX->PDF conversion)
- Buffer manager: BufferManager (scratch files under config/buffer)
"""

from .model import PLAIN, Block, InlineRun, LineBreak, Marks, RichDocument
from .buffer import BufferManager
from .detect import detect_format
from .pipeline import Collaborators, Degraded, Failed, ImportResult, Structured, import_document, import_path
from .export import EXPORT_FORMATS, ExportResult, export_document

__all__ = [
    "PLAIN",
    "Block",
    "InlineRun",
    "LineBreak",
    "Marks",
    "RichDocument",
    "BufferManager",
    "detect_format",
    "Collaborators",
    "Structured",
    "Degraded",
    "Failed",
    "ImportResult",
    "import_document",
    "import_path",
    "EXPORT_FORMATS",
    "ExportResult",
    "export_document",
]
