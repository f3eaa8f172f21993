from __future__ import annotations

import os
from typing import Optional

# Extensions the importer recognises, mapped to the format key.
EXTENSIONS = {
    "txt": "txt",
    "html": "html",
    "htm": "html",
    "md": "md",
    "rtf": "rtf",
    "docx": "docx",
    "doc": "doc",
    "odt": "odt",
    "pages": "pages",
    "pdf": "pdf",
}

OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


def extension_of(name: str) -> str:
    return os.path.splitext(name or "")[1].lstrip(".").lower()


def sniff(head: bytes) -> Optional[str]:
    """Guess a binary format from leading bytes; None when nothing matches."""
    stripped = head.lstrip()
    if stripped.startswith(b"{\\rtf"):
        return "rtf"
    if head.startswith(b"%PDF"):
        return "pdf"
    if head.startswith(b"PK\x03\x04"):
        if b"word/" in head:
            return "docx"
        if b"content.xml" in head or b"opendocument.text" in head:
            return "odt"
        return None
    if head.startswith(OLE2_MAGIC[:4]):
        return "doc"
    return None


def detect_format(name: str, head: Optional[bytes] = None) -> str:
    """Map a file name (and optionally its leading bytes) to a format key.

    Unknown or missing extensions fall through to ``"txt"`` unless a byte
    head is given and matches a known signature.
    """
    fmt = EXTENSIONS.get(extension_of(name))
    if fmt is not None:
        return fmt
    if head:
        sniffed = sniff(head)
        if sniffed is not None:
            return sniffed
    return "txt"