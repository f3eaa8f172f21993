from __future__ import annotations

import itertools
import json
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

BLOCK_KINDS = (
    "paragraph",
    "heading",
    "list",
    "list_item",
    "blockquote",
    "table",
    "table_row",
    "table_cell",
    "code_block",
    "horizontal_rule",
)

# Blocks that only hold other blocks; loose inline content never lands here.
CONTAINER_KINDS = ("list", "table", "table_row")

FLAG_MARKS = ("bold", "italic", "underline", "strike", "code")
VALUE_MARKS = ("color", "font", "link", "image")

_doc_ids = itertools.count(1)


@dataclass(frozen=True)
class Marks:
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    code: bool = False
    color: Optional[str] = None
    font: Optional[str] = None
    link: Optional[str] = None
    image: Optional[str] = None

    def __post_init__(self) -> None:
        for name in FLAG_MARKS:
            if not isinstance(getattr(self, name), bool):
                raise TypeError(f"Mark '{name}' must be a bool")
        for name in VALUE_MARKS:
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise TypeError(f"Mark '{name}' must be a string or None")

    @property
    def is_plain(self) -> bool:
        return self == PLAIN

    def with_mark(self, name: str, value: Any = True) -> "Marks":
        if name not in FLAG_MARKS and name not in VALUE_MARKS:
            raise ValueError(f"Unknown mark: {name}")
        if name in VALUE_MARKS and value is True:
            raise ValueError(f"Mark '{name}' needs a value")
        if name in VALUE_MARKS and value in ("", False):
            value = None
        return replace(self, **{name: value})

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value not in (False, None):
                out[f.name] = value
        return out

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Marks":
        if not data:
            return PLAIN
        return cls(**data)


PLAIN = Marks()


@dataclass
class InlineRun:
    text: str
    marks: Marks = PLAIN

    @property
    def is_image(self) -> bool:
        return self.marks.image is not None

    def plain_text(self) -> str:
        if self.is_image:
            name = self.text or os.path.basename(self.marks.image or "")
            return f"[image: {name}]"
        return self.text


@dataclass
class LineBreak:
    def plain_text(self) -> str:
        return "\n"


Inline = Union[InlineRun, LineBreak]


@dataclass
class Block:
    kind: str
    children: List["Node"] = field(default_factory=list)
    level: int = 0
    ordered: bool = False
    header: bool = False

    def __post_init__(self) -> None:
        if self.kind not in BLOCK_KINDS:
            raise ValueError(f"Unknown block kind: {self.kind}")
        if self.kind == "heading" and not 1 <= self.level <= 6:
            raise ValueError(f"Heading level must be 1-6, got {self.level}")

    @property
    def has_blocks(self) -> bool:
        return any(isinstance(c, Block) for c in self.children)

    def inline_text(self) -> str:
        return "".join(c.plain_text() for c in self.children if not isinstance(c, Block))


Node = Union[Block, InlineRun, LineBreak]
Path = Tuple[int, ...]


def text_paragraph(text: str) -> Block:
    return Block("paragraph", [InlineRun(text)] if text else [])


class RichDocument:
    """Ordered tree of blocks; the single mutable object of an editing session.

    Every instance gets a process-unique ``doc_id``. Replacing the document
    wholesale (undo, import, note load) produces a new instance, so anything
    that remembers a ``doc_id`` can tell a replaced document from an edited one.
    """

    def __init__(self, blocks: Optional[List[Block]] = None) -> None:
        self.blocks: List[Block] = list(blocks or [])
        self.doc_id = next(_doc_ids)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RichDocument):
            return NotImplemented
        return self.blocks == other.blocks

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"RichDocument(doc_id={self.doc_id}, blocks={self.blocks!r})"

    # -- addressing -------------------------------------------------------

    def node_at(self, path: Path) -> Optional[Node]:
        """Resolve a child-index path; None when any step is out of range."""
        if not path:
            return None
        siblings: List[Any] = self.blocks
        node: Optional[Node] = None
        for depth, idx in enumerate(path):
            if idx < 0 or idx >= len(siblings):
                return None
            node = siblings[idx]
            if depth < len(path) - 1:
                if not isinstance(node, Block):
                    return None
                siblings = node.children
        return node

    def path_of(self, target: Node) -> Optional[Path]:
        """Find a node by identity."""
        for path, node in self.walk():
            if node is target:
                return path
        return None

    def walk(self) -> Iterator[Tuple[Path, Node]]:
        def _walk(children: List[Any], prefix: Path) -> Iterator[Tuple[Path, Node]]:
            for i, node in enumerate(children):
                path = prefix + (i,)
                yield path, node
                if isinstance(node, Block):
                    yield from _walk(node.children, path)

        return _walk(self.blocks, ())

    def iter_runs(self) -> Iterator[Tuple[Path, InlineRun]]:
        for path, node in self.walk():
            if isinstance(node, InlineRun):
                yield path, node

    def parent_of(self, path: Path) -> List[Any]:
        if len(path) == 1:
            return self.blocks
        parent = self.node_at(path[:-1])
        if not isinstance(parent, Block):
            raise IndexError(f"No block at {path[:-1]}")
        return parent.children

    # -- content ----------------------------------------------------------

    def is_empty(self) -> bool:
        for _, run in self.iter_runs():
            if run.is_image or run.text.strip():
                return False
        return True

    def plain_text(self) -> str:
        lines: List[str] = []
        _flatten(self.blocks, lines)
        return "\n".join(lines)

    def normalize(self) -> "RichDocument":
        """Drop empty text runs and merge adjacent runs with equal marks."""
        for block in self.blocks:
            _normalize_block(block)
        return self

    def copy(self) -> "RichDocument":
        return RichDocument.from_dict(self.to_dict())

    # -- serialization ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {"blocks": [_node_to_dict(b) for b in self.blocks]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RichDocument":
        return cls([_node_from_dict(b) for b in data.get("blocks", [])])  # type: ignore[misc]

    def snapshot(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_snapshot(cls, state: str) -> "RichDocument":
        return cls.from_dict(json.loads(state))

    def to_html(self) -> str:
        from .html_io import render_html

        return render_html(self)


def _flatten(children: List[Any], lines: List[str]) -> None:
    buf: List[str] = []
    has_inline = False
    for node in children:
        if isinstance(node, Block):
            if has_inline:
                lines.append("".join(buf))
                buf, has_inline = [], False
            _flatten_block(node, lines)
        else:
            has_inline = True
            buf.append(node.plain_text())
    if has_inline:
        lines.append("".join(buf))


def _flatten_block(block: Block, lines: List[str]) -> None:
    if block.kind == "horizontal_rule":
        lines.append("")
    elif block.kind == "table_row":
        cells = [c.inline_text() if isinstance(c, Block) else c.plain_text() for c in block.children]
        lines.append("\t".join(cells))
    elif not block.has_blocks:
        lines.append(block.inline_text())
    else:
        _flatten(block.children, lines)


def _normalize_block(block: Block) -> None:
    merged: List[Node] = []
    for node in block.children:
        if isinstance(node, Block):
            _normalize_block(node)
            merged.append(node)
            continue
        if isinstance(node, InlineRun):
            if not node.text and not node.is_image:
                continue
            prev = merged[-1] if merged else None
            if (
                isinstance(prev, InlineRun)
                and not prev.is_image
                and not node.is_image
                and prev.marks == node.marks
            ):
                prev.text += node.text
                continue
        merged.append(node)
    block.children[:] = merged


def _node_to_dict(node: Node) -> Dict[str, Any]:
    if isinstance(node, LineBreak):
        return {"type": "br"}
    if isinstance(node, InlineRun):
        out: Dict[str, Any] = {"type": "run", "text": node.text}
        marks = node.marks.to_dict()
        if marks:
            out["marks"] = marks
        return out
    data: Dict[str, Any] = {"type": node.kind, "children": [_node_to_dict(c) for c in node.children]}
    if node.level:
        data["level"] = node.level
    if node.ordered:
        data["ordered"] = True
    if node.header:
        data["header"] = True
    return data


def _node_from_dict(data: Dict[str, Any]) -> Node:
    kind = data.get("type")
    if kind == "br":
        return LineBreak()
    if kind == "run":
        return InlineRun(str(data.get("text", "")), Marks.from_dict(data.get("marks")))
    return Block(
        kind=str(kind),
        children=[_node_from_dict(c) for c in data.get("children", [])],
        level=int(data.get("level", 0)),
        ordered=bool(data.get("ordered", False)),
        header=bool(data.get("header", False)),
    )
