"""Caret/range capture and revalidating restore.

The editing surface's selection (``LiveSelection``) holds node references,
which dangle once the document is rebuilt. ``SelectionTracker.capture``
encodes it as child-index paths (``SelectionDescriptor``); ``restore``
re-resolves those paths against the current document and only re-applies
the selection when they still name inline nodes with in-range offsets.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple

from richnote.docs.model import Inline, InlineRun, LineBreak, Path, RichDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    path: Path
    offset: int = 0


@dataclass(frozen=True)
class SelectionDescriptor:
    anchor: Position
    focus: Position
    doc_id: int

    @property
    def is_collapsed(self) -> bool:
        return self.anchor == self.focus


@dataclass
class LiveSelection:
    """Selection as the editing surface holds it: node references plus offsets."""

    anchor_node: Inline
    anchor_offset: int
    focus_node: Inline
    focus_offset: int

    @property
    def is_collapsed(self) -> bool:
        return self.anchor_node is self.focus_node and self.anchor_offset == self.focus_offset


def inline_length(node: Inline) -> int:
    """Number of caret positions inside an inline node, minus one."""
    if isinstance(node, LineBreak):
        return 0
    return len(node.text)


def _resolve(doc: RichDocument, pos: Position) -> Optional[Inline]:
    node = doc.node_at(tuple(pos.path))
    if not isinstance(node, (InlineRun, LineBreak)):
        return None
    if not 0 <= pos.offset <= inline_length(node):
        return None
    return node


class SelectionTracker:
    def __init__(self, document: Callable[[], RichDocument]) -> None:
        self._document = document
        self.live: Optional[LiveSelection] = None
        self.last_restored: Optional[bool] = None

    def set(self, anchor_node: Inline, anchor_offset: int, focus_node: Optional[Inline] = None,
            focus_offset: Optional[int] = None) -> None:
        if focus_node is None:
            focus_node, focus_offset = anchor_node, anchor_offset
        self.live = LiveSelection(anchor_node, anchor_offset, focus_node,
                                  anchor_offset if focus_offset is None else focus_offset)

    def clear(self) -> None:
        self.live = None

    def capture(self) -> Optional[SelectionDescriptor]:
        """Encode the live selection as paths; None without a resolvable selection."""
        live = self.live
        if live is None:
            return None
        doc = self._document()
        anchor = doc.path_of(live.anchor_node)
        focus = doc.path_of(live.focus_node)
        if anchor is None or focus is None:
            return None
        return SelectionDescriptor(Position(anchor, live.anchor_offset), Position(focus, live.focus_offset), doc.doc_id)

    def restore(self, descriptor: Optional[SelectionDescriptor]) -> bool:
        """Re-apply ``descriptor`` if it still resolves; never raises."""
        try:
            ok = self._restore(descriptor)
        except Exception as e:
            logger.debug(f"Selection restore failed: {e}")
            ok = False
        self.last_restored = ok
        return ok

    def _restore(self, descriptor: Optional[SelectionDescriptor]) -> bool:
        if descriptor is None:
            return False
        doc = self._document()
        if descriptor.doc_id != doc.doc_id:
            return False
        anchor = _resolve(doc, descriptor.anchor)
        focus = _resolve(doc, descriptor.focus)
        if anchor is None or focus is None:
            return False
        self.live = LiveSelection(anchor, descriptor.anchor.offset, focus, descriptor.focus.offset)
        return True

    @contextmanager
    def preserving(self) -> Iterator[Optional[SelectionDescriptor]]:
        """Capture before the body runs and restore right after it."""
        descriptor = self.capture()
        try:
            yield descriptor
        finally:
            self.restore(descriptor)

    def ordered(self) -> Optional[Tuple[Position, Position]]:
        """Start and end of the live selection in document order."""
        desc = self.capture()
        if desc is None:
            return None
        a, f = desc.anchor, desc.focus
        if (f.path, f.offset) < (a.path, a.offset):
            a, f = f, a
        return a, f
