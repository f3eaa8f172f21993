"""RTF import (best-effort control-word stripper) and minimal RTF export.

This is not an RTF parser. Import keeps the visible text and paragraph
breaks; font/colour tables, pictures, embedded objects and every other
destination group are discarded.
"""

from __future__ import annotations

import re
from typing import List, Union

from richnote.errors import ParseError

from .model import Block, InlineRun, LineBreak, RichDocument

# Destination groups that never hold visible text.
DESTINATIONS = (
    "fonttbl", "colortbl", "stylesheet", "info", "pict", "object",
    "listtable", "listoverridetable", "rsidtbl", "generator", "themedata",
    "colorschememapping", "latentstyles", "datastore", "xmlnstbl",
)

_BREAK = "\x01"
_LBRACE = "\x02"
_RBRACE = "\x03"
_BACKSLASH = "\x04"

_HEADER_RE = re.compile(r"\\rtf1.*?\\viewkind\d+ ?", re.S)
_DEST_START_RE = re.compile(r"\{\\\*|\{\\(?:%s)(?![a-zA-Z])" % "|".join(DESTINATIONS))
_BREAK_RE = re.compile(r"\\(?:par|line)(?![a-zA-Z])-?\d* ?")
_DELIMITING_NEWLINE_RE = re.compile(r"(\\[a-zA-Z]+-?\d*)[\r\n]+")
_CONTROL_WORD_RE = re.compile(r"\\[a-zA-Z]+-?\d* ?")
_HEX_RE = re.compile(r"\\'([0-9a-fA-F]{2})")
_UNICODE_RE = re.compile(r"\\u(-?\d+) ?(?:\\'[0-9a-fA-F]{2}|\?)?")
_CONTROL_SYMBOL_RE = re.compile(r"\\[^a-zA-Z0-9'\x01-\x04]")
_EXCESS_BREAKS_RE = re.compile(r"\n{3,}")


def _drop_groups(text: str) -> str:
    """Remove destination groups, matching braces (escaped braces excluded)."""
    out: List[str] = []
    pos = 0
    while True:
        m = _DEST_START_RE.search(text, pos)
        if not m:
            out.append(text[pos:])
            return "".join(out)
        out.append(text[pos:m.start()])
        depth = 0
        i = m.start()
        while i < len(text):
            ch = text[i]
            if ch == "\\":
                i += 2
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    break
            i += 1
        pos = i + 1


def _decode_hex(m: re.Match) -> str:
    return bytes([int(m.group(1), 16)]).decode("cp1252", errors="replace")


def _decode_unicode(m: re.Match) -> str:
    code = int(m.group(1))
    if code < 0:
        code += 65536
    return chr(code)


def rtf_to_text(data: Union[str, bytes]) -> str:
    """Strip RTF markup, returning text with ``\\n`` line breaks."""
    text = data.decode("latin-1") if isinstance(data, bytes) else data
    if not text.strip():
        raise ParseError("Empty RTF input")
    text = text.replace("\\\\", _BACKSLASH).replace("\\{", _LBRACE).replace("\\}", _RBRACE)
    text = _HEADER_RE.sub("", text, count=1)
    text = _drop_groups(text)
    text = _BREAK_RE.sub(_BREAK, text)
    text = _DELIMITING_NEWLINE_RE.sub(r"\1 ", text)
    text = text.replace("\r", "").replace("\n", "")
    text = _UNICODE_RE.sub(_decode_unicode, text)
    text = _CONTROL_WORD_RE.sub("", text)
    text = _HEX_RE.sub(_decode_hex, text)
    text = _CONTROL_SYMBOL_RE.sub("", text)
    text = re.sub(r"[{}\\]", "", text)
    text = text.replace(_BREAK, "\n")
    text = text.replace(_BACKSLASH, "\\").replace(_LBRACE, "{").replace(_RBRACE, "}")
    return _EXCESS_BREAKS_RE.sub("\n\n", text).strip("\n")


def _text_blocks(text: str) -> List[Block]:
    blocks: List[Block] = []
    for chunk in text.split("\n\n"):
        children: List = []
        for i, line in enumerate(chunk.split("\n")):
            if i:
                children.append(LineBreak())
            if line:
                children.append(InlineRun(line))
        blocks.append(Block("paragraph", children))
    return blocks


def rtf_to_document(data: Union[str, bytes]) -> RichDocument:
    text = rtf_to_text(data)
    if not text.strip():
        raise ParseError("No text left after stripping RTF markup")
    return RichDocument(_text_blocks(text)).normalize()


RTF_HEADER = (
    "{\\rtf1\\ansi\\ansicpg1252\\deff0"
    "{\\fonttbl{\\f0\\fswiss Arial;}}"
    "{\\colortbl;\\red0\\green0\\blue0;}"
    "\\viewkind4\\uc1\\pard\\f0\\fs24 "
)


def _escape_rtf(text: str) -> str:
    out: List[str] = []
    for ch in text:
        if ch in "\\{}":
            out.append("\\" + ch)
        elif ch == "\t":
            out.append("\\tab ")
        elif ord(ch) < 128:
            out.append(ch)
        else:
            try:
                encoded = ch.encode("cp1252")
                out.append("\\'%02x" % encoded[0])
            except UnicodeEncodeError:
                code = ord(ch)
                if code > 0xFFFF:
                    out.append("?")
                    continue
                if code > 32767:
                    code -= 65536
                out.append(f"\\u{code}?")
    return "".join(out)


def document_to_rtf(doc: RichDocument) -> str:
    """Single-run RTF: fixed header, flattened text, one ``\\par`` per line."""
    lines = doc.plain_text().split("\n")
    body = "".join(f"{_escape_rtf(line)}\\par\n" for line in lines)
    return f"{RTF_HEADER}\n{body}}}"
