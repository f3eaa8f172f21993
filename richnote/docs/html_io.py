"""HTML import/export for the rich-text model.

Two passes, both on top of the standard library's ``HTMLParser``:

- ``sanitize_html`` re-emits markup without executable content: ``script``,
  ``iframe``, ``object`` and ``embed`` elements (with everything inside them),
  every ``on*`` attribute, and URL attributes using a script scheme.
- ``parse_html`` builds a ``RichDocument`` from sanitized markup.

``render_html`` is the inverse of ``parse_html`` for documents it produced.
"""

from __future__ import annotations

import html
import re
from dataclasses import replace
from html.parser import HTMLParser
from typing import Any, Dict, List, Optional, Tuple

from .model import (
    CONTAINER_KINDS,
    PLAIN,
    Block,
    InlineRun,
    LineBreak,
    Marks,
    RichDocument,
)

FORBIDDEN_TAGS = {"script", "iframe", "object", "embed"}
VOID_TAGS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
}
URL_ATTRS = {"href", "src", "action", "formaction", "xlink:href"}
SCRIPT_SCHEMES = ("javascript:", "vbscript:", "data:text/html")

# Tags whose text is never content.
SKIP_TAGS = FORBIDDEN_TAGS | {"title", "style", "template", "noscript"}

INLINE_MARKS: Dict[str, Dict[str, Any]] = {
    "b": {"bold": True},
    "strong": {"bold": True},
    "i": {"italic": True},
    "em": {"italic": True},
    "u": {"underline": True},
    "ins": {"underline": True},
    "s": {"strike": True},
    "strike": {"strike": True},
    "del": {"strike": True},
    "code": {"code": True},
}

BLOCK_TAGS = {
    "p": "paragraph",
    "h1": "heading",
    "h2": "heading",
    "h3": "heading",
    "h4": "heading",
    "h5": "heading",
    "h6": "heading",
    "ul": "list",
    "ol": "list",
    "li": "list_item",
    "blockquote": "blockquote",
    "table": "table",
    "tr": "table_row",
    "td": "table_cell",
    "th": "table_cell",
    "pre": "code_block",
}

# Structural tags that carry no block of their own but end loose paragraphs.
BOUNDARY_TAGS = {
    "html", "body", "head", "div", "section", "article", "header", "footer",
    "main", "nav", "aside", "figure", "figcaption", "thead", "tbody", "tfoot",
    "dl", "dt", "dd", "address", "form", "fieldset",
}

_NEWLINE_WS_RE = re.compile(r"[\r\n\t]")
_COLLAPSE_RE = re.compile(r"\s+")
_STYLE_RE = re.compile(r"\s*([a-zA-Z-]+)\s*:\s*([^;]+)")


def is_script_url(value: str) -> bool:
    """Return True if a URL would execute script when followed."""
    compact = re.sub(r"[\s\x00-\x1f]", "", html.unescape(value or "")).lower()
    return compact.startswith(SCRIPT_SCHEMES)


def _format_attrs(attrs: List[Tuple[str, Optional[str]]]) -> str:
    parts: List[str] = []
    for name, value in attrs:
        if value is None:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{html.escape(value, quote=True)}"')
    return "".join(parts)


class _Sanitizer(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.out: List[str] = []
        self._skip_depth = 0

    def _clean_attrs(self, attrs: List[Tuple[str, Optional[str]]]) -> List[Tuple[str, Optional[str]]]:
        kept: List[Tuple[str, Optional[str]]] = []
        for name, value in attrs:
            if name.startswith("on"):
                continue
            if name in URL_ATTRS and value is not None and is_script_url(value):
                continue
            kept.append((name, value))
        return kept

    def handle_starttag(self, tag, attrs):
        if tag in FORBIDDEN_TAGS:
            if tag not in VOID_TAGS:
                self._skip_depth += 1
            return
        if self._skip_depth:
            return
        self.out.append(f"<{tag}{_format_attrs(self._clean_attrs(attrs))}>")

    def handle_startendtag(self, tag, attrs):
        if tag in FORBIDDEN_TAGS or self._skip_depth:
            return
        cleaned = _format_attrs(self._clean_attrs(attrs))
        if tag in VOID_TAGS:
            self.out.append(f"<{tag}{cleaned}>")
        else:
            self.out.append(f"<{tag}{cleaned}></{tag}>")

    def handle_endtag(self, tag):
        if tag in FORBIDDEN_TAGS:
            if self._skip_depth:
                self._skip_depth -= 1
            return
        if self._skip_depth or tag in VOID_TAGS:
            return
        self.out.append(f"</{tag}>")

    def handle_data(self, data):
        if not self._skip_depth:
            self.out.append(html.escape(data, quote=False))

    def handle_entityref(self, name):
        if not self._skip_depth:
            self.out.append(f"&{name};")

    def handle_charref(self, name):
        if not self._skip_depth:
            self.out.append(f"&#{name};")

    # Comments, declarations and processing instructions are dropped.


def sanitize_html(markup: str) -> str:
    """Strip executable content from an HTML string, keeping everything else."""
    parser = _Sanitizer()
    parser.feed(markup or "")
    parser.close()
    return "".join(parser.out)


def _style_marks(style: Optional[str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for prop, value in _STYLE_RE.findall(style or ""):
        prop = prop.lower()
        value = value.strip().strip("'\"")
        if prop == "color" and value:
            out["color"] = value
        elif prop == "font-family" and value:
            out["font"] = value
    return out


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.doc = RichDocument()
        self.stack: List[Block] = []
        self.inline_stack: List[Tuple[str, Dict[str, Any]]] = []
        self.implicit: Optional[Block] = None
        self.skip_depth = 0

    # -- helpers ----------------------------------------------------------

    @property
    def pre_depth(self) -> int:
        return sum(1 for b in self.stack if b.kind == "code_block")

    def _container(self) -> List[Any]:
        return self.stack[-1].children if self.stack else self.doc.blocks

    def _loose(self) -> bool:
        return not self.stack or self.stack[-1].kind in CONTAINER_KINDS

    def _marks(self) -> Marks:
        if self.pre_depth:
            return PLAIN
        marks = PLAIN
        for _, changes in self.inline_stack:
            if changes:
                marks = replace(marks, **changes)
        return marks

    def _inline_target(self, create: bool = True) -> Optional[List[Any]]:
        if not self._loose():
            return self.stack[-1].children
        container = self._container()
        if self.implicit is not None and container and container[-1] is self.implicit:
            return self.implicit.children
        if not create:
            return None
        self.implicit = Block("paragraph")
        container.append(self.implicit)
        return self.implicit.children

    def _close_implicit(self) -> None:
        if self.implicit is not None:
            while self.implicit.children and isinstance(self.implicit.children[-1], LineBreak):
                self.implicit.children.pop()
        self.implicit = None

    def _append_text(self, text: str, collapsed: bool = False) -> None:
        if not text:
            return
        target = self._inline_target(create=bool(text.strip()))
        if target is None:
            return
        if collapsed and (not target or isinstance(target[-1], (LineBreak, Block))):
            text = text.lstrip()
            if not text:
                return
        target.append(InlineRun(text, self._marks()))

    def _pop_to(self, kinds: Tuple[str, ...]) -> None:
        for idx in range(len(self.stack) - 1, -1, -1):
            if self.stack[idx].kind in kinds:
                self._close_implicit()
                del self.stack[idx:]
                return

    # -- blocks -----------------------------------------------------------

    def _open_block(self, tag: str) -> None:
        kind = BLOCK_TAGS[tag]
        self._close_implicit()
        top = self.stack[-1] if self.stack else None
        if top is not None and top.kind in ("paragraph", "heading"):
            self.stack.pop()
        if kind == "list_item" and self.stack and self.stack[-1].kind == "list_item":
            self.stack.pop()
        if kind == "table_cell" and self.stack and self.stack[-1].kind == "table_cell":
            self.stack.pop()
        if kind == "table_row":
            while self.stack and self.stack[-1].kind in ("table_cell", "table_row"):
                self.stack.pop()
        block = Block(
            kind,
            level=int(tag[1]) if kind == "heading" else 0,
            ordered=tag == "ol",
            header=tag == "th",
        )
        self._container().append(block)
        self.stack.append(block)

    def _close_block(self, tag: str) -> None:
        kind = BLOCK_TAGS[tag]
        if not any(b.kind == kind for b in self.stack):
            return
        self._pop_to((kind,))

    # -- HTMLParser callbacks --------------------------------------------

    def handle_starttag(self, tag, attrs):
        if tag in SKIP_TAGS:
            if tag not in VOID_TAGS:
                self.skip_depth += 1
            return
        if self.skip_depth:
            return
        amap = dict(attrs)
        if tag in BLOCK_TAGS:
            self._open_block(tag)
        elif tag == "hr":
            self._close_implicit()
            if self.stack and self.stack[-1].kind in ("paragraph", "heading"):
                self.stack.pop()
            self._container().append(Block("horizontal_rule"))
        elif tag == "br":
            self._line_break()
        elif tag == "img":
            self._image(amap)
        elif tag in BOUNDARY_TAGS:
            self._close_implicit()
        elif tag not in VOID_TAGS:
            self.inline_stack.append((tag, self._inline_changes(tag, amap)))

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)
        if tag not in VOID_TAGS:
            self.handle_endtag(tag)

    def handle_endtag(self, tag):
        if tag in SKIP_TAGS:
            if self.skip_depth:
                self.skip_depth -= 1
            return
        if self.skip_depth:
            return
        if tag in BLOCK_TAGS:
            self._close_block(tag)
        elif tag in BOUNDARY_TAGS:
            self._close_implicit()
        elif tag not in VOID_TAGS:
            for idx in range(len(self.inline_stack) - 1, -1, -1):
                if self.inline_stack[idx][0] == tag:
                    del self.inline_stack[idx:]
                    break

    def handle_data(self, data):
        if self.skip_depth:
            return
        if self.pre_depth:
            self.stack[-1].children.append(InlineRun(data))
            return
        collapsed = bool(_NEWLINE_WS_RE.search(data))
        if collapsed:
            data = _COLLAPSE_RE.sub(" ", data)
        self._append_text(data, collapsed)

    def handle_entityref(self, name):
        self._literal(html.unescape(f"&{name};"))

    def handle_charref(self, name):
        self._literal(html.unescape(f"&#{name};"))

    def _literal(self, text: str) -> None:
        if self.skip_depth:
            return
        if self.pre_depth:
            self.stack[-1].children.append(InlineRun(text))
            return
        target = self._inline_target()
        if target is not None:
            target.append(InlineRun(text, self._marks()))

    def _line_break(self) -> None:
        if self.pre_depth:
            self.stack[-1].children.append(InlineRun("\n"))
            return
        if not self._loose():
            self.stack[-1].children.append(LineBreak())
            return
        target = self._inline_target(create=False)
        if target is None:
            return
        if target and isinstance(target[-1], LineBreak):
            # A blank line inside loose content starts a new paragraph.
            self._close_implicit()
        else:
            target.append(LineBreak())

    def _image(self, attrs: Dict[str, Optional[str]]) -> None:
        src = attrs.get("src")
        if not src:
            return
        target = self._inline_target()
        if target is not None:
            marks = self._marks().with_mark("image", src)
            target.append(InlineRun(attrs.get("alt") or "", marks))

    def _inline_changes(self, tag: str, attrs: Dict[str, Optional[str]]) -> Dict[str, Any]:
        if self.pre_depth:
            return {}
        changes = dict(INLINE_MARKS.get(tag, {}))
        if tag == "a" and attrs.get("href"):
            changes["link"] = attrs["href"]
        if tag == "font":
            if attrs.get("color"):
                changes["color"] = attrs["color"]
            if attrs.get("face"):
                changes["font"] = attrs["face"]
        if attrs.get("style"):
            changes.update(_style_marks(attrs["style"]))
        return changes

    def finish(self) -> RichDocument:
        self.close()
        self._close_implicit()
        return self.doc.normalize()


def parse_html(markup: str) -> RichDocument:
    """Sanitize ``markup`` and build a rich document from it."""
    builder = _TreeBuilder()
    builder.feed(sanitize_html(markup))
    return builder.finish()


# -- rendering --------------------------------------------------------------


def _escape_text(text: str) -> str:
    return html.escape(text, quote=False).replace("\t", "&#9;").replace("\n", "&#10;")


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def _render_inline(node: Any) -> str:
    if isinstance(node, LineBreak):
        return "<br>"
    marks: Marks = node.marks
    if node.is_image:
        out = f'<img src="{_attr(marks.image)}" alt="{_attr(node.text)}">'
    else:
        out = _escape_text(node.text)
        if marks.code:
            out = f"<code>{out}</code>"
        if marks.strike:
            out = f"<s>{out}</s>"
        if marks.underline:
            out = f"<u>{out}</u>"
        if marks.italic:
            out = f"<i>{out}</i>"
        if marks.bold:
            out = f"<b>{out}</b>"
    styles = []
    if marks.color:
        styles.append(f"color: {marks.color}")
    if marks.font:
        styles.append(f"font-family: {marks.font}")
    if styles:
        out = f'<span style="{_attr("; ".join(styles))}">{out}</span>'
    if marks.link:
        out = f'<a href="{_attr(marks.link)}">{out}</a>'
    return out


def _render_block(block: Block) -> str:
    if block.kind == "horizontal_rule":
        return "<hr>"
    if block.kind == "code_block":
        text = "".join(c.text for c in block.children if isinstance(c, InlineRun))
        return f"<pre><code>{html.escape(text, quote=False)}</code></pre>"
    inner = "".join(
        _render_block(c) if isinstance(c, Block) else _render_inline(c) for c in block.children
    )
    if block.kind == "heading":
        tag = f"h{block.level}"
    elif block.kind == "list":
        tag = "ol" if block.ordered else "ul"
    elif block.kind == "table_cell":
        tag = "th" if block.header else "td"
    else:
        tag = {
            "paragraph": "p",
            "list_item": "li",
            "blockquote": "blockquote",
            "table": "table",
            "table_row": "tr",
        }[block.kind]
    return f"<{tag}>{inner}</{tag}>"


def render_html(document: RichDocument) -> str:
    """Serialize a document to an HTML fragment."""
    return "".join(_render_block(b) for b in document.blocks)


def render_html_page(document: RichDocument, title: str = "Exported Note") -> str:
    body = render_html(document)
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        '<meta charset="UTF-8">\n'
        f"<title>{html.escape(title)}</title>\n"
        "</head>\n"
        "<body>\n"
        f"{body}\n"
        "</body>\n"
        "</html>\n"
    )
