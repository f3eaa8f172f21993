"""Markdown → rich text via an ordered chain of pattern rules.

The conversion is not a parser: each rule is a single regular-expression
rewrite from Markdown syntax to HTML, and the rules run in the order of
``RULES``. Overlapping constructs are resolved by that order, so reordering
the list changes the output for ambiguous input:

- headings run before emphasis, bold before italic (``**`` would otherwise
  be read as two italics);
- list items are wrapped one line at a time and ``merge_lists`` joins
  adjacent wrappers of the same type;
- images run before links (``![alt](url)`` contains a link pattern);
- list merging runs before ``line_breaks``, which turns every remaining
  newline into ``<br>``.

Text inside code spans has already been through the emphasis rules when the
code rules run; that is a property of the ordering, not a feature.

The resulting HTML goes through ``parse_html`` and is sanitized there.
"""

from __future__ import annotations

import html
import re
from typing import Callable, List, Tuple, Union

from .html_io import parse_html
from .model import RichDocument
from .txt import decode_text

Rule = Callable[[str], str]

_HEADING_RE = re.compile(r"^(#{1,6}) (.*?)$", re.M)
_BOLD_STAR_RE = re.compile(r"\*\*(.*?)\*\*")
_BOLD_UNDERSCORE_RE = re.compile(r"__(.*?)__")
_ITALIC_STAR_RE = re.compile(r"\*(.*?)\*")
_ITALIC_UNDERSCORE_RE = re.compile(r"_(.*?)_")
_STRIKE_RE = re.compile(r"~~(.*?)~~")
_BLOCKQUOTE_RE = re.compile(r"^> (.*?)$", re.M)
_FENCED_RE = re.compile(r"```(?:[^\n`]*\n)?([\s\S]*?)\n?```")
_INLINE_CODE_RE = re.compile(r"`([^`]+)`")
_BULLET_STAR_RE = re.compile(r"^\* (.*?)$", re.M)
_BULLET_DASH_RE = re.compile(r"^- (.*?)$", re.M)
_ORDERED_RE = re.compile(r"^\d+\. (.*?)$", re.M)
_IMAGE_RE = re.compile(r"!\[(.*?)\]\((.*?)\)")
_LINK_RE = re.compile(r"\[(.*?)\]\((.*?)\)")
_MERGE_UL_RE = re.compile(r"</ul>\n?<ul>")
_MERGE_OL_RE = re.compile(r"</ol>\n?<ol>")


def headings(md: str) -> str:
    def _sub(m: re.Match) -> str:
        level = len(m.group(1))
        return f"<h{level}>{m.group(2)}</h{level}>"

    return _HEADING_RE.sub(_sub, md)


def bold(md: str) -> str:
    md = _BOLD_STAR_RE.sub(r"<b>\1</b>", md)
    return _BOLD_UNDERSCORE_RE.sub(r"<b>\1</b>", md)


def italic(md: str) -> str:
    md = _ITALIC_STAR_RE.sub(r"<i>\1</i>", md)
    return _ITALIC_UNDERSCORE_RE.sub(r"<i>\1</i>", md)


def strikethrough(md: str) -> str:
    return _STRIKE_RE.sub(r"<s>\1</s>", md)


def blockquote(md: str) -> str:
    return _BLOCKQUOTE_RE.sub(r"<blockquote>\1</blockquote>", md)


def fenced_code(md: str) -> str:
    return _FENCED_RE.sub(r"<pre><code>\1</code></pre>", md)


def inline_code(md: str) -> str:
    return _INLINE_CODE_RE.sub(r"<code>\1</code>", md)


def unordered_list(md: str) -> str:
    md = _BULLET_STAR_RE.sub(r"<ul><li>\1</li></ul>", md)
    return _BULLET_DASH_RE.sub(r"<ul><li>\1</li></ul>", md)


def ordered_list(md: str) -> str:
    return _ORDERED_RE.sub(r"<ol><li>\1</li></ol>", md)


def images(md: str) -> str:
    def _sub(m: re.Match) -> str:
        alt = html.escape(m.group(1), quote=True)
        src = html.escape(m.group(2), quote=True)
        return f'<img src="{src}" alt="{alt}">'

    return _IMAGE_RE.sub(_sub, md)


def links(md: str) -> str:
    def _sub(m: re.Match) -> str:
        href = html.escape(m.group(2), quote=True)
        return f'<a href="{href}">{m.group(1)}</a>'

    return _LINK_RE.sub(_sub, md)


def merge_lists(md: str) -> str:
    md = _MERGE_UL_RE.sub("", md)
    return _MERGE_OL_RE.sub("", md)


def line_breaks(md: str) -> str:
    return md.replace("\n", "<br>")


RULES: List[Tuple[str, Rule]] = [
    ("headings", headings),
    ("bold", bold),
    ("italic", italic),
    ("strikethrough", strikethrough),
    ("blockquote", blockquote),
    ("fenced_code", fenced_code),
    ("inline_code", inline_code),
    ("unordered_list", unordered_list),
    ("ordered_list", ordered_list),
    ("images", images),
    ("links", links),
    ("merge_lists", merge_lists),
    ("line_breaks", line_breaks),
]


def markdown_to_html(markdown: str) -> str:
    out = (markdown or "").replace("\r\n", "\n").replace("\r", "\n")
    for _name, rule in RULES:
        out = rule(out)
    return out


def markdown_to_document(data: Union[str, bytes]) -> RichDocument:
    return parse_html(markdown_to_html(decode_text(data)))
