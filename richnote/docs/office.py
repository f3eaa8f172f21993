"""Text recovery from Office-family binaries without a real parser.

Two independent strategies, composed by the import pipeline:

- ``extract_structured`` (tier 1): find the document-body part name inside a
  zip container and pull the text-run elements out of the bytes that follow.
  Works only when the part happens to be stored uncompressed.
- ``extract_heuristic`` (tier 2): keep every run of readable bytes that is at
  least ``MIN_RUN_LENGTH`` long. Never structural, always lossy.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import List

from richnote.errors import ParseError, StructureNotFound

from .model import Block, InlineRun, LineBreak, RichDocument, text_paragraph

SCAN_WINDOW = 100_000
MIN_READABLE_START = 3
MIN_RUN_LENGTH = 10


@dataclass(frozen=True)
class Signature:
    part: bytes
    run_pattern: re.Pattern


SIGNATURES = {
    "docx": Signature(b"word/document.xml", re.compile(r"<w:t(?:\s[^>]*)?>(?P<body>.*?)</w:t>", re.S)),
    "odt": Signature(
        b"content.xml", re.compile(r"<text:(?P<tag>p|h)(?:\s[^>]*)?>(?P<body>.*?)</text:(?P=tag)>", re.S)
    ),
}

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E\n]")
_EXCESS_BLANK_RE = re.compile(r"\n{3,}")


def _printable_window(data: bytes, start: int) -> str:
    window = data[start:start + SCAN_WINDOW]
    return "".join(chr(b) for b in window if 32 <= b <= 126)


def _sentences(text: str) -> List[str]:
    out: List[str] = []
    for sentence in text.split(". "):
        sentence = sentence.strip()
        if not sentence:
            continue
        if not sentence.endswith("."):
            sentence += "."
        out.append(sentence)
    return out


def extract_structured(data: bytes, fmt: str) -> RichDocument:
    """Tier 1: signature scan followed by text-run extraction.

    Doxygen:
    - @param data: Raw file bytes.
    - @param fmt: Container format key (``docx`` or ``odt``).
    - @return: Document with one paragraph per recovered sentence.
    - @throws StructureNotFound: No signature for ``fmt``, signature absent, or no text runs.
    """
    sig = SIGNATURES.get(fmt)
    if sig is None:
        raise StructureNotFound(f"No structure signature known for '{fmt}'")
    pos = data.find(sig.part)
    if pos < 0:
        raise StructureNotFound(f"Signature {sig.part.decode()} not found")

    window = _printable_window(data, pos + len(sig.part))
    runs = [_TAG_RE.sub("", m.group("body")) for m in sig.run_pattern.finditer(window)]
    text = _WS_RE.sub(" ", " ".join(html.unescape(r) for r in runs)).strip()
    if not text:
        raise StructureNotFound("Signature found but no text runs recovered")
    return RichDocument([text_paragraph(s) for s in _sentences(text)])


def _is_printable(b: int) -> bool:
    return 32 <= b <= 126


def _is_readable(b: int) -> bool:
    return _is_printable(b) or b in (10, 13)


def scan_readable_runs(data: bytes) -> List[str]:
    """Return runs of readable bytes of at least ``MIN_RUN_LENGTH`` characters.

    A run opens once ``MIN_READABLE_START`` consecutive readable bytes have
    been seen (those bytes belong to the run), carries on through line
    endings, and closes on the first unreadable byte.
    """
    runs: List[str] = []
    current: List[str] = []
    pending: List[str] = []
    in_run = False

    def close() -> None:
        chunk = "".join(current)
        if len(chunk) >= MIN_RUN_LENGTH:
            runs.append(chunk)

    for b in data:
        if not _is_readable(b):
            if in_run:
                close()
            current, pending, in_run = [], [], False
            continue
        ch = chr(b)
        if in_run:
            current.append(ch)
        else:
            pending.append(ch)
            if len(pending) >= MIN_READABLE_START:
                current, pending, in_run = pending, [], True
    if in_run:
        close()
    return runs


def _paragraph_from_chunk(chunk: str) -> Block:
    children: List = []
    for i, line in enumerate(chunk.split("\n")):
        if i:
            children.append(LineBreak())
        if line:
            children.append(InlineRun(line))
    return Block("paragraph", children)


def extract_heuristic(data: bytes) -> RichDocument:
    """Tier 2: printable-run scan. Raises ParseError when no run survives."""
    runs = scan_readable_runs(data)
    if not runs:
        raise ParseError("No readable text runs found")
    text = "\n\n".join(runs).replace("\r\n", "\n").replace("\r", "\n")
    text = _NON_PRINTABLE_RE.sub("", text)
    text = _EXCESS_BLANK_RE.sub("\n\n", text)
    chunks = [c.strip() for c in text.split("\n\n")]
    blocks = [_paragraph_from_chunk(c) for c in chunks if c]
    if not blocks:
        raise ParseError("No readable text runs found")
    return RichDocument(blocks).normalize()
