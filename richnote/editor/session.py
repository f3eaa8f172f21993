"""Editing session: sole owner of the document, its history and selection.

Every mutating operation runs under the session lock, normalizes the
document, and records one history snapshot when the content changed.
Whole-document replacements (undo, redo, import, note load) swap in a new
``RichDocument`` instance, which invalidates any captured selection.
"""

from __future__ import annotations

import functools
import logging
import os
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple

from richnote.config import EditorConfig
from richnote.docs.export import ExportResult, export_document
from richnote.docs.html_io import parse_html
from richnote.docs.model import (
    FLAG_MARKS,
    Block,
    Inline,
    InlineRun,
    LineBreak,
    Marks,
    PLAIN,
    RichDocument,
    text_paragraph,
)
from richnote.docs.pdf_io import docx_to_pdf
from richnote.docs.pipeline import Collaborators, Degraded, Failed, ImportResult, import_document, read_source
from richnote.errors import NoteNotFound, ReadError, UserCancel
from richnote.store.notes import DEFAULT_TITLE, NoteId, NoteRecord, NoteStore

from .autosave import AutoSaver
from .history import HistoryManager
from .selection import Position, SelectionDescriptor, SelectionTracker

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]
Confirm = Callable[[str], bool]

VALUE_MARK_NAMES = ("color", "font", "link")
TEXT_BLOCKS = ("paragraph", "heading", "list_item", "blockquote", "code_block", "table_cell")


_LEVELS = {"error": logging.ERROR, "warning": logging.WARNING}


def log_notifier(message: str, level: str = "info") -> None:
    logger.log(_LEVELS.get(level, logging.INFO), message)


def _index(children: List, node) -> int:
    for i, child in enumerate(children):
        if child is node:
            return i
    raise ValueError("Node is not among the given children")


def _unit(node: Inline) -> int:
    return 1 if isinstance(node, LineBreak) else len(node.text)


def _block_offset(block: Block, node: Inline, offset: int) -> int:
    """Caret position counted in characters from the start of ``block``."""
    total = 0
    for child in block.children:
        if child is node:
            return total + offset
        if not isinstance(child, Block):
            total += _unit(child)
    raise ValueError("Node is not an inline child of the block")


def _locate(block: Block, pos: int) -> Optional[Tuple[Inline, int]]:
    last: Optional[Tuple[Inline, int]] = None
    for child in block.children:
        if isinstance(child, Block):
            continue
        if isinstance(child, LineBreak):
            if pos == 0:
                return child, 0
            pos -= 1
            last = (child, 0)
            continue
        if pos <= len(child.text):
            return child, pos
        pos -= len(child.text)
        last = (child, len(child.text))
    return last


def _text_nodes(text: str, marks: Marks) -> List[Inline]:
    nodes: List[Inline] = []
    for i, line in enumerate(text.split("\n")):
        if i:
            nodes.append(LineBreak())
        if line:
            nodes.append(InlineRun(line, marks))
    return nodes


class EditorSession:
    def __init__(
        self,
        store: Optional[NoteStore] = None,
        config: Optional[EditorConfig] = None,
        collaborators: Optional[Collaborators] = None,
        notifier: Optional[Notifier] = None,
        autosave: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or EditorConfig()
        self.store = store if store is not None else NoteStore(self.config.notes_path)
        self.collaborators = collaborators or Collaborators.from_config(self.config)
        self.notify: Notifier = notifier or log_notifier
        self._lock = threading.RLock()

        self.document = RichDocument()
        self.history = HistoryManager()
        self.tracker = SelectionTracker(lambda: self.document)
        self.current_note_id: Optional[NoteId] = None
        self.last_saved_content = self.document.to_html()
        self.history.record(self.document.snapshot())

        self.autosaver = AutoSaver(self, clock=clock)
        if autosave:
            self.autosaver.start()

    # -- internals ----------------------------------------------------------

    @contextmanager
    def _edit(self) -> Iterator[None]:
        with self._lock:
            yield
            self._normalize()
            state = self.document.snapshot()
            if state != self.history.current:
                self.history.record(state)

    def _set_document(self, doc: RichDocument) -> None:
        """Replace the document wholesale; recorded unless a replay is running."""
        self.document = doc.normalize()
        self.tracker.clear()
        state = self.document.snapshot()
        if state != self.history.current:
            self.history.record(state)

    def _normalize(self) -> None:
        live = self.tracker.live
        marks = []
        if live is not None:
            for node, offset in ((live.anchor_node, live.anchor_offset), (live.focus_node, live.focus_offset)):
                block = self._block_of(node)
                marks.append(None if block is None else (block, _block_offset(block, node, offset)))
        self.document.normalize()
        if live is None:
            return
        located = [None if m is None else _locate(*m) for m in marks]
        if any(loc is None for loc in located):
            self.tracker.clear()
            return
        (a_node, a_off), (f_node, f_off) = located  # type: ignore[misc]
        self.tracker.set(a_node, a_off, f_node, f_off)

    def _block_of(self, node: Inline) -> Optional[Block]:
        path = self.document.path_of(node)
        if path is None or len(path) < 2:
            return None
        block = self.document.node_at(path[:-1])
        return block if isinstance(block, Block) else None

    def _siblings(self, node) -> List:
        path = self.document.path_of(node)
        if path is None:
            raise ValueError("Node is not in the document")
        return self.document.parent_of(path)

    def _leaves(self) -> List[Inline]:
        return [n for _, n in self.document.walk() if not isinstance(n, Block)]

    def _range(self) -> Optional[Tuple[Position, Position]]:
        rng = self.tracker.ordered()
        if rng is None or rng[0] == rng[1]:
            return None
        return rng

    def _split_run(self, node: InlineRun, offset: int) -> InlineRun:
        """Cut ``node`` at ``offset``; it keeps the left part, the new right part is returned."""
        siblings = self._siblings(node)
        right = InlineRun(node.text[offset:], node.marks)
        node.text = node.text[:offset]
        siblings.insert(_index(siblings, node) + 1, right)
        return right

    def _selected_inlines(self, start: Position, end: Position) -> List[Inline]:
        """Split runs at the range edges and return the inline nodes fully inside it."""
        doc = self.document
        s_node = doc.node_at(start.path)
        e_node = doc.node_at(end.path)
        last, last_in = e_node, end.offset > 0
        if isinstance(e_node, InlineRun) and not e_node.is_image and 0 < end.offset < len(e_node.text):
            self._split_run(e_node, end.offset)

        first, first_in = s_node, True
        if isinstance(s_node, InlineRun) and not s_node.is_image and start.offset > 0:
            if start.offset < len(s_node.text):
                first = self._split_run(s_node, start.offset)
                if last is s_node:
                    last = first
            else:
                first_in = False

        leaves = self._leaves()
        i0 = _index(leaves, first) + (0 if first_in else 1)
        i1 = _index(leaves, last) - (0 if last_in else 1)
        return leaves[i0:i1 + 1]

    def _select_nodes(self, nodes: List[Inline]) -> None:
        runs = [n for n in nodes if isinstance(n, InlineRun)]
        if runs:
            self.tracker.set(runs[0], 0, runs[-1], len(runs[-1].text))

    def _remove(self, node) -> None:
        siblings = self._siblings(node)
        del siblings[_index(siblings, node)]

    def _prune(self, touched: List[Block], keep: Block) -> None:
        """Remove blocks emptied by a deletion, walking up through their parents."""
        pending = list(touched)
        while pending:
            block = pending.pop()
            if block is keep or block.children:
                continue
            path = self.document.path_of(block)
            if path is None:
                continue
            if len(path) > 1:
                parent = self.document.node_at(path[:-1])
                if isinstance(parent, Block):
                    pending.append(parent)
            self._remove(block)

    def _delete_range(self, start: Position, end: Position) -> None:
        doc = self.document
        s_node = doc.node_at(start.path)
        e_node = doc.node_at(end.path)
        s_block = self._block_of(s_node)
        e_block = self._block_of(e_node)
        base = _block_offset(s_block, s_node, start.offset)

        if s_node is e_node:
            if isinstance(s_node, InlineRun):
                s_node.text = s_node.text[:start.offset] + s_node.text[end.offset:]
        else:
            leaves = self._leaves()
            between = leaves[_index(leaves, s_node) + 1:_index(leaves, e_node)]
            touched = [self._block_of(n) for n in between]
            if isinstance(s_node, InlineRun):
                s_node.text = s_node.text[:start.offset]
            else:
                between.append(s_node)
            if isinstance(e_node, InlineRun):
                e_node.text = e_node.text[end.offset:]
            for node in between:
                self._remove(node)
            if e_block is not s_block:
                tail = e_block.children[_index(e_block.children, e_node):]
                del e_block.children[_index(e_block.children, e_node):]
                s_block.children.extend(tail)
                touched.append(e_block)
            self._prune([b for b in touched if b is not None], keep=s_block)

        located = _locate(s_block, base)
        if located is None:
            self.tracker.clear()
        else:
            self.tracker.set(*located)

    def _caret(self) -> Optional[Tuple[Inline, int]]:
        live = self.tracker.live
        if live is None or self.document.path_of(live.focus_node) is None:
            return None
        return live.focus_node, live.focus_offset

    def _confirm_discard(self, confirm: Optional[Confirm], message: str) -> None:
        if confirm is not None and self.has_unsaved_changes and not confirm(message):
            raise UserCancel(message)

    # -- editing ------------------------------------------------------------

    def select(self, anchor: Position, focus: Optional[Position] = None) -> bool:
        """Place the caret (or a range) by path; False when a position does not resolve."""
        with self._lock:
            desc = SelectionDescriptor(anchor, focus or anchor, self.document.doc_id)
            return self.tracker.restore(desc)

    def select_all(self) -> bool:
        with self._lock:
            leaves = self._leaves()
            if not leaves:
                self.tracker.clear()
                return False
            end = leaves[-1]
            self.tracker.set(leaves[0], 0, end, len(end.text) if isinstance(end, InlineRun) else 0)
            return True

    def clear_selection(self) -> None:
        with self._lock:
            self.tracker.clear()

    def insert_text(self, text: str) -> None:
        """Insert at the caret, replacing a selected range; appends when nothing is selected."""
        if not text:
            return
        with self._edit():
            rng = self._range()
            if rng is not None:
                self._delete_range(*rng)
            caret = self._caret()
            if caret is None:
                self._append_text(text)
                return
            node, offset = caret
            block = self._block_of(node)
            base = _block_offset(block, node, offset)
            if isinstance(node, InlineRun) and not node.is_image and "\n" not in text:
                node.text = node.text[:offset] + text + node.text[offset:]
            else:
                marks = node.marks if isinstance(node, InlineRun) and not node.is_image else PLAIN
                siblings = block.children
                idx = _index(siblings, node)
                if isinstance(node, InlineRun) and not node.is_image:
                    self._split_run(node, offset)
                    idx += 1
                elif isinstance(node, InlineRun) and offset > 0:
                    idx += 1
                siblings[idx:idx] = _text_nodes(text, marks)
            located = _locate(block, base + len(text))
            if located is not None:
                self.tracker.set(*located)

    def _append_text(self, text: str) -> None:
        blocks = self.document.blocks
        target = blocks[-1] if blocks else None
        if target is None or target.kind not in TEXT_BLOCKS or target.has_blocks:
            target = Block("paragraph")
            blocks.append(target)
        target.children.extend(_text_nodes(text, PLAIN))
        leaves = [c for c in target.children if not isinstance(c, Block)]
        if leaves:
            end = leaves[-1]
            self.tracker.set(end, len(end.text) if isinstance(end, InlineRun) else 0)

    def delete_selection(self) -> bool:
        with self._edit():
            rng = self._range()
            if rng is None:
                return False
            self._delete_range(*rng)
            return True

    def toggle_mark(self, name: str) -> bool:
        """Flip a boolean mark over the selected text.

        The mark is removed when every selected run already has it, and
        added otherwise. Returns False when there is no selected text.
        """
        if name not in FLAG_MARKS:
            raise ValueError(f"Not a toggleable mark: {name}")
        with self._edit():
            rng = self._range()
            if rng is None:
                return False
            nodes = self._selected_inlines(*rng)
            runs = [n for n in nodes if isinstance(n, InlineRun) and not n.is_image]
            if not runs:
                return False
            on = not all(getattr(r.marks, name) for r in runs)
            for run in runs:
                run.marks = run.marks.with_mark(name, on)
            self._select_nodes(runs)
            return True

    def set_mark_value(self, name: str, value: Optional[str] = None,
                       chooser: Optional[Callable[[], Optional[str]]] = None) -> bool:
        """Set color/font/link on the selected text.

        With a ``chooser`` (colour picker, link prompt, ...) the value is asked
        for first; the selection is captured before the chooser runs and
        restored after it, since choosers may move focus. A chooser returning
        None cancels. An empty value removes the mark.
        """
        if name not in VALUE_MARK_NAMES:
            raise ValueError(f"Not a value mark: {name}")
        if chooser is not None:
            with self.tracker.preserving():
                value = chooser()
            if value is None:
                return False
        with self._edit():
            rng = self._range()
            if rng is None:
                return False
            runs = [n for n in self._selected_inlines(*rng) if isinstance(n, InlineRun) and not n.is_image]
            for run in runs:
                run.marks = run.marks.with_mark(name, value or None)
            self._select_nodes(runs)
            return bool(runs)

    def insert_block(self, block: Block) -> None:
        """Insert a block after the top-level block holding the caret, or at the end."""
        if not isinstance(block, Block):
            raise TypeError("insert_block expects a Block")
        with self._edit():
            caret = self._caret()
            path = self.document.path_of(caret[0]) if caret else None
            idx = path[0] + 1 if path else len(self.document.blocks)
            self.document.blocks.insert(idx, block)

    def insert_table(self, rows: int = 3, cols: int = 3) -> Block:
        """Header row of "Header N" cells followed by ``rows - 1`` rows of "Cell R,C"."""
        if rows < 1 or cols < 1:
            raise ValueError("A table needs at least one row and one column")
        header = Block("table_row", [Block("table_cell", [InlineRun(f"Header {c + 1}")], header=True) for c in range(cols)])
        body = [
            Block("table_row", [Block("table_cell", [InlineRun(f"Cell {r + 1},{c + 1}")]) for c in range(cols)])
            for r in range(rows - 1)
        ]
        table = Block("table", [header] + body)
        self.insert_block(table)
        return table

    def insert_image(self, src: str, alt: str = "") -> None:
        self.insert_block(Block("paragraph", [InlineRun(alt, PLAIN.with_mark("image", src))]))

    def find_replace(self, find: str, replace: str) -> int:
        """Replace every literal occurrence inside text runs; returns the count."""
        if not find:
            return 0
        with self._edit():
            count = 0
            for _, run in self.document.iter_runs():
                if run.is_image or find not in run.text:
                    continue
                count += run.text.count(find)
                run.text = run.text.replace(find, replace)
            if count:
                self.tracker.clear()
            return count

    # -- history ------------------------------------------------------------

    def undo(self) -> bool:
        with self._lock:
            state = self.history.undo()
            if state is None:
                return False
            with self.history.replaying():
                self._set_document(RichDocument.from_snapshot(state))
            return True

    def redo(self) -> bool:
        with self._lock:
            state = self.history.redo()
            if state is None:
                return False
            with self.history.replaying():
                self._set_document(RichDocument.from_snapshot(state))
            return True

    # -- import / export ----------------------------------------------------

    def import_file(self, name: str, data, confirm: Optional[Confirm] = None) -> Optional[ImportResult]:
        """Import ``data`` as the document. None when the user cancels."""
        with self._lock:
            try:
                self._confirm_discard(confirm, "You have unsaved changes. Import this file anyway?")
            except UserCancel:
                logger.info(f"Import of '{name}' cancelled")
                return None
            result = import_document(name, data, self.collaborators)
            if isinstance(result, Failed):
                self.notify(f"Could not import {name}: {result.reason}", "error")
                return result
            self._set_document(result.fragment)
            if isinstance(result, Degraded):
                self.notify(f"Imported {name} with reduced fidelity: {result.reason}", "warning")
            else:
                self.notify(f"Imported {name}", "success")
            return result

    def import_path(self, path: str, confirm: Optional[Confirm] = None) -> Optional[ImportResult]:
        try:
            data = read_source(path)
        except ReadError as e:
            self.notify(str(e), "error")
            return Failed(str(e))
        return self.import_file(os.path.basename(path), data, confirm)

    def export(self, fmt: str) -> Optional[ExportResult]:
        with self._lock:
            try:
                result = export_document(
                    self.document,
                    fmt,
                    pdf_converter=functools.partial(docx_to_pdf, debug_buffer=self.config.debug_buffer),
                )
            except Exception as e:
                self.notify(f"Export failed: {e}", "error")
                return None
            if result.degraded:
                self.notify(result.degraded_reason, "warning")
            return result

    # -- notes --------------------------------------------------------------

    @property
    def has_unsaved_changes(self) -> bool:
        with self._lock:
            return self.document.to_html() != self.last_saved_content

    @property
    def current_title(self) -> str:
        with self._lock:
            if self.current_note_id is None:
                return DEFAULT_TITLE
            try:
                return self.store.get(self.current_note_id).title
            except NoteNotFound:
                self.current_note_id = None
                return DEFAULT_TITLE

    def _start_over(self, doc: RichDocument, note_id: Optional[NoteId]) -> None:
        self.document = doc.normalize()
        self.tracker.clear()
        self.history.clear(doc.snapshot())
        self.current_note_id = note_id
        self.last_saved_content = doc.to_html()

    def new_note(self, confirm: Optional[Confirm] = None) -> bool:
        with self._lock:
            if not self.document.is_empty():
                try:
                    self._confirm_discard(confirm, "You have unsaved changes. Discard them and start a new note?")
                except UserCancel:
                    return False
            self._start_over(RichDocument(), None)
            return True

    def save(self, title: Optional[str] = None) -> NoteRecord:
        """Update the current note, or create one when there is none."""
        with self._lock:
            content = self.document.to_html()
            if self.current_note_id is not None and self.current_note_id in self.store:
                record = self.store.update(self.current_note_id, content)
                if title:
                    record = self.store.rename(record.id, title)
                self.notify("Note updated successfully!", "success")
            else:
                record = self.store.create(title or DEFAULT_TITLE, content)
                self.current_note_id = record.id
                self.notify("Note saved successfully!", "success")
            self.last_saved_content = content
            return record

    def save_as_new(self, title: Optional[str] = None) -> NoteRecord:
        with self._lock:
            content = self.document.to_html()
            record = self.store.create(title or DEFAULT_TITLE, content)
            self.current_note_id = record.id
            self.last_saved_content = content
            self.notify("Note saved successfully!", "success")
            return record

    def load_note(self, note_id: NoteId, confirm: Optional[Confirm] = None) -> bool:
        with self._lock:
            try:
                self._confirm_discard(confirm, "You have unsaved changes. Load this note anyway?")
            except UserCancel:
                return False
            try:
                record = self.store.get(note_id)
            except NoteNotFound as e:
                self.notify(str(e), "error")
                return False
            self._start_over(parse_html(record.content), record.id)
            return True

    def rename_note(self, note_id: NoteId, title: str) -> Optional[NoteRecord]:
        with self._lock:
            try:
                return self.store.rename(note_id, title)
            except (NoteNotFound, ValueError) as e:
                self.notify(str(e), "error")
                return None

    def delete_note(self, note_id: NoteId) -> bool:
        with self._lock:
            deleted = self.store.delete(note_id)
            if deleted and note_id == self.current_note_id:
                self.current_note_id = None
            return deleted

    # -- misc ---------------------------------------------------------------

    def word_count(self) -> Tuple[int, int]:
        """(words, characters) of the flattened text."""
        with self._lock:
            text = self.document.plain_text()
            return len(text.split()), len(text)

    def set_text(self, text: str) -> None:
        """Replace the whole content with plain text paragraphs, as one edit."""
        with self._edit():
            self.document.blocks[:] = [text_paragraph(line) for line in text.split("\n")]
            self.tracker.clear()

    def close(self) -> None:
        self.autosaver.stop()

    def __enter__(self) -> "EditorSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
