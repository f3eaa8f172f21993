"""
Entry point and compatibility facade for the richnote engine.

This module exposes a stable API and a CLI for converting documents and
managing the note store.

Packages:
- richnote.docs: rich document model, import pipeline (fallback chains), exporter
- richnote.editor: editing session, undo/redo history, selection tracking, auto-save
- richnote.store: JSON-backed note store
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from richnote.config import configure_dependencies, load_config

# Document model and conversion
from richnote.docs import (
    RichDocument,
    Structured,
    Degraded,
    Failed,
    import_document,
    import_path,
    export_document,
    EXPORT_FORMATS,
)
from richnote.docs.html_io import parse_html, sanitize_html
from richnote.docs.markdown import markdown_to_html
from richnote.docs.rtf import rtf_to_text

# Editing session and notes
from richnote.editor import EditorSession, HistoryManager, SelectionTracker
from richnote.store import NoteStore

__all__ = [
    # model / conversion
    "RichDocument",
    "Structured",
    "Degraded",
    "Failed",
    "import_document",
    "import_path",
    "export_document",
    "EXPORT_FORMATS",
    "parse_html",
    "sanitize_html",
    "markdown_to_html",
    "rtf_to_text",
    # session
    "EditorSession",
    "HistoryManager",
    "SelectionTracker",
    "NoteStore",
    # cli helpers
    "configure_logging",
]


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _default_out_path(src: str, fmt: str) -> str:
    base = os.path.splitext(src)[0]
    return f"{base}.converted.{fmt}"


def _cli(argv: Optional[list] = None) -> int:
    """CLI for document conversion and the note store.

    Conversion:
    --file / -f: Path to input document (txt|html|htm|md|rtf|docx|doc|odt|pages|pdf, anything else as text)
    --out-format: Output format (txt|html|md|rtf|docx|pdf), default: html
    --out / -o: Output path (default: <input>.converted.<format>)

    Notes:
    --notes: Path of the JSON note store (default: notes_path from config/editor.json)
    --list: Print stored notes, newest first
    --save-as: With --file, store the imported document as a note with this title

    --config: Path to editor config (default: config/editor.json)
    --verbose / -v: Debug logging
    """
    import argparse

    parser = argparse.ArgumentParser(description="Convert documents between formats and manage saved notes.")
    parser.add_argument("--file", "-f", type=str, help="Path to input document")
    parser.add_argument("--out-format", type=str, default="html", choices=list(EXPORT_FORMATS), help="Output format (default: html)")
    parser.add_argument("--out", "-o", type=str, help="Output path (default: <input>.converted.<format>)")
    parser.add_argument("--notes", type=str, help="Path of the JSON note store")
    parser.add_argument("--list", action="store_true", help="List stored notes")
    parser.add_argument("--save-as", type=str, help="Store the imported document as a note with this title")
    parser.add_argument("--config", type=str, help="Path to editor config JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(args.config)
    # Configure external dependencies like Tesseract and get Poppler path
    config.poppler_path = configure_dependencies() or config.poppler_path
    if args.notes:
        config.notes_path = os.path.abspath(args.notes)

    if not args.file and not args.list:
        print("Please provide --file to convert a document or --list to show saved notes.")
        print("Examples:\n  python main.py --file notes.md --out-format docx\n  python main.py --notes notes.json --list")
        return 2

    store = NoteStore(config.notes_path)
    with EditorSession(store=store, config=config) as session:
        if args.file:
            result = session.import_path(args.file)
            if result is None or isinstance(result, Failed):
                print(f"Import failed: {result.reason if result else 'cancelled'}")
                return 1
            if isinstance(result, Degraded):
                print(f"Warning: imported with reduced fidelity ({result.reason})")
            print(f"Imported {args.file} via '{result.converter}'")

            exported = session.export(args.out_format)
            if exported is None:
                print("Export failed")
                return 1
            out_path = args.out or _default_out_path(args.file, exported.extension)
            with open(out_path, "wb") as f:
                f.write(exported.as_bytes())
            if exported.degraded:
                print(f"Warning: {exported.degraded_reason}")
            print(f"{exported.extension}: {out_path}")

            if args.save_as:
                record = session.save_as_new(args.save_as)
                print(f"Saved note {record.id}: {record.title}")

        if args.list:
            notes = store.list()
            if not notes:
                print("No saved notes")
            for record in notes:
                print(f"{record.id}\t{record.title}\t{store.preview(record.id, limit=60)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(_cli())
