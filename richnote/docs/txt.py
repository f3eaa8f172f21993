from __future__ import annotations

import re
from typing import List, Union

from richnote.errors import ParseError

from .model import RichDocument, text_paragraph

_NON_PRINTABLE_RE = re.compile(r"[^\r\n\t\x20-\x7E]")


def _split_lines(text: str) -> List[str]:
    return (text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n")


def decode_text(data: Union[str, bytes]) -> str:
    """Decode UTF-8 input (BOM dropped); strings pass through unchanged."""
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"Input is not valid UTF-8 text: {e}") from e


def text_to_document(data: Union[str, bytes]) -> RichDocument:
    """One paragraph per line; blank lines stay as empty paragraphs."""
    text = decode_text(data)
    return RichDocument([text_paragraph(line) for line in _split_lines(text)])


def printable_to_document(data: Union[str, bytes]) -> RichDocument:
    """Last-resort converter: keep printable ASCII plus whitespace, wrap lines.

    Raises ParseError when nothing readable survives.
    """
    text = data.decode("latin-1") if isinstance(data, bytes) else data
    cleaned = _NON_PRINTABLE_RE.sub("", text)
    if not cleaned.strip():
        raise ParseError("No printable text in input")
    return RichDocument([text_paragraph(line) for line in _split_lines(cleaned)])

