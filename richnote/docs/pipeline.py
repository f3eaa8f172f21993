"""Format dispatch and converter fallback chains for document import.

Every format maps to an ordered chain of converters, highest fidelity first.
A converter that raises or returns an empty document hands over to the next
one; the chain always ends with the printable-character stripper. The outcome
is one of ``Structured``, ``Degraded`` or ``Failed``, never an empty document.
"""

from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from richnote.errors import ReadError

from .detect import detect_format
from .docx_io import read_docx_bytes
from .html_io import parse_html
from .markdown import markdown_to_document
from .model import RichDocument
from .office import extract_heuristic, extract_structured
from .pdf_io import read_pdf_ocr
from .rtf import rtf_to_document
from .txt import decode_text, printable_to_document, text_to_document

logger = logging.getLogger(__name__)

Data = Union[str, bytes]
ConvertFn = Callable[[Data], RichDocument]

SNIFF_BYTES = 4096


@dataclass(frozen=True)
class Structured:
    fragment: RichDocument
    converter: str

    ok = True


@dataclass(frozen=True)
class Degraded:
    fragment: RichDocument
    reason: str
    converter: str

    ok = True


@dataclass(frozen=True)
class Failed:
    reason: str

    ok = False
    fragment = None


ImportResult = Union[Structured, Degraded, Failed]


@dataclass(frozen=True)
class Converter:
    name: str
    convert: ConvertFn
    lossy: bool = False


def _as_bytes(data: Data) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


def _html(data: Data) -> RichDocument:
    return parse_html(decode_text(data))


def _tier1(fmt: str) -> ConvertFn:
    return lambda data: extract_structured(_as_bytes(data), fmt)


def _tier2(data: Data) -> RichDocument:
    return extract_heuristic(_as_bytes(data))


@dataclass
class Collaborators:
    """External document-conversion services, injectable for tests."""

    docx_reader: ConvertFn = field(default=lambda data: read_docx_bytes(_as_bytes(data)))
    pdf_reader: ConvertFn = field(default=lambda data: read_pdf_ocr(_as_bytes(data)))

    @classmethod
    def from_config(cls, config) -> "Collaborators":
        pdf = functools.partial(
            read_pdf_ocr,
            lang=config.ocr_lang,
            dpi=config.ocr_dpi,
            timeout=config.collaborator_timeout,
            poppler_path=config.poppler_path,
        )
        return cls(pdf_reader=lambda data: pdf(_as_bytes(data)))


PRINTABLE = Converter("printable", printable_to_document, lossy=True)
HEURISTIC = Converter("heuristic", _tier2, lossy=True)


def build_chain(fmt: str, collaborators: Optional[Collaborators] = None) -> List[Converter]:
    """Return the ordered converter chain for a format key."""
    c = collaborators or Collaborators()
    chains: Dict[str, List[Converter]] = {
        "txt": [Converter("plain", text_to_document)],
        "html": [Converter("html", _html)],
        "md": [Converter("markdown", markdown_to_document), Converter("plain", text_to_document)],
        "rtf": [Converter("rtf", rtf_to_document)],
        "docx": [Converter("docx", c.docx_reader), Converter("structured", _tier1("docx")), HEURISTIC],
        "odt": [Converter("structured", _tier1("odt")), HEURISTIC],
        "doc": [Converter("structured", _tier1("doc")), HEURISTIC],
        "pages": [Converter("structured", _tier1("pages")), HEURISTIC],
        "pdf": [Converter("pdf-ocr", c.pdf_reader), HEURISTIC],
    }
    return chains.get(fmt, chains["txt"]) + [PRINTABLE]


def run_chain(chain: List[Converter], data: Data) -> ImportResult:
    reasons: List[str] = []
    for i, conv in enumerate(chain):
        logger.debug(f"Trying converter '{conv.name}'")
        try:
            doc = conv.convert(data)
        except Exception as e:
            logger.warning(f"Converter '{conv.name}' failed: {type(e).__name__}: {e}")
            reasons.append(f"{conv.name}: {e}")
            continue
        if doc is None or doc.is_empty():
            logger.warning(f"Converter '{conv.name}' produced no content")
            reasons.append(f"{conv.name}: no content")
            continue
        doc.normalize()
        if i == 0 and not conv.lossy:
            return Structured(doc, conv.name)
        if conv.lossy:
            reasons.append(f"{conv.name}: text recovered without structure")
        return Degraded(doc, "; ".join(reasons), conv.name)
    return Failed("No readable content: " + "; ".join(reasons))


def import_document(
    name: str, data: Optional[Data], collaborators: Optional[Collaborators] = None
) -> ImportResult:
    """Detect the format of ``name`` and run its converter chain over ``data``.

    Doxygen:
    - @param name: File name; its lower-cased extension selects the chain.
    - @param data: File contents, bytes or already-decoded text.
    - @param collaborators: DOCX/PDF readers; defaults use python-docx and Tesseract.
    - @return: Structured, Degraded or Failed. Failed only for empty input or
      when even the printable stripper finds nothing.
    """
    if not data:
        logger.error(f"Import of '{name}' failed: input is empty")
        return Failed("Input is empty")
    head = data[:SNIFF_BYTES] if isinstance(data, bytes) else None
    fmt = detect_format(name, head)
    logger.debug(f"Importing '{name}' as {fmt}")
    result = run_chain(build_chain(fmt, collaborators), data)
    if isinstance(result, Failed):
        logger.error(f"Import of '{name}' failed: {result.reason}")
    else:
        logger.info(f"Imported '{name}' with converter '{result.converter}'")
    return result


def read_source(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise ReadError(f"Cannot read {path}: {e}") from e


def import_path(path: str, collaborators: Optional[Collaborators] = None) -> ImportResult:
    """Read a file from disk and import it; unreadable files yield Failed."""
    try:
        data = read_source(path)
    except ReadError as e:
        logger.error(str(e))
        return Failed(str(e))
    return import_document(os.path.basename(path), data, collaborators)
