"""Word-processor collaborator built on python-docx.

Import reads paragraphs, headings, list paragraphs, tables and inline images
into a RichDocument. Export goes through an intermediate list of
``ParagraphSpec``/``RunSpec`` values so the mapping from the document tree to
styled paragraphs can be checked without python-docx.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Optional, Union

from docx import Document as DocxDocument
from docx.shared import Pt, RGBColor
from docx.table import Table
from docx.text.paragraph import Paragraph

from richnote.errors import ParseError

from .model import PLAIN, Block, InlineRun, LineBreak, Marks, RichDocument

logger = logging.getLogger(__name__)

_EMBED_ATTR = "{http://schemas.openxmlformats.org/officeDocument/2006/relationships}embed"
_HEADING_STYLE_RE = re.compile(r"^Heading (\d)$")
_HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")
_SHORT_HEX_RE = re.compile(r"^#([0-9a-fA-F]{3})$")
_RGB_COLOR_RE = re.compile(r"^rgb\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)$")
_DATA_URI_RE = re.compile(r"^data:image/[a-zA-Z+.-]+;base64,(.*)$", re.S)

CODE_FONT = "Courier New"


# -- import -----------------------------------------------------------------


def _extract_images_from_run(run) -> List[str]:
    """Return embedded images of this run as data URIs."""
    images: List[str] = []
    for blip in run._r.xpath(".//a:blip"):
        rId = blip.get(_EMBED_ATTR)
        if not rId:
            continue
        try:
            part = run.part.related_parts[rId]
        except KeyError:
            logger.debug(f"Dangling image relationship {rId}")
            continue
        encoded = base64.b64encode(part.blob).decode("ascii")
        images.append(f"data:{part.content_type};base64,{encoded}")
    return images


def _run_marks(run) -> Marks:
    font = run.font
    color = None
    if font.color is not None and font.color.type is not None and font.color.rgb is not None:
        color = f"#{font.color.rgb}".lower()
    return Marks(
        bold=bool(run.bold),
        italic=bool(run.italic),
        underline=bool(run.underline),
        strike=bool(font.strike),
        color=color,
        font=font.name or None,
    )


def _paragraph_children(para: Paragraph) -> List[Union[InlineRun, LineBreak]]:
    children: List[Union[InlineRun, LineBreak]] = []
    for run in para.runs:
        for src in _extract_images_from_run(run):
            children.append(InlineRun("", PLAIN.with_mark("image", src)))
        if not run.text:
            continue
        marks = _run_marks(run)
        for i, piece in enumerate(run.text.split("\n")):
            if i:
                children.append(LineBreak())
            if piece:
                children.append(InlineRun(piece, marks))
    return children


def _paragraph_block(para: Paragraph) -> Block:
    style = para.style.name if para.style is not None else ""
    children = _paragraph_children(para)
    m = _HEADING_STYLE_RE.match(style)
    if m:
        return Block("heading", children, level=min(6, max(1, int(m.group(1)))))
    if style == "Title":
        return Block("heading", children, level=1)
    if style in ("Quote", "Intense Quote"):
        return Block("blockquote", [Block("paragraph", children)])
    return Block("paragraph", children)


def _list_kind(para: Paragraph) -> Optional[bool]:
    """True for numbered, False for bulleted, None when not a list paragraph."""
    style = para.style.name if para.style is not None else ""
    if style.startswith("List Number"):
        return True
    if style.startswith("List Bullet") or style.startswith("List Paragraph"):
        return False
    return None


def _table_block(table: Table) -> Block:
    rows: List[Block] = []
    for r, row in enumerate(table.rows):
        cells = [Block("table_cell", _cell_children(cell), header=(r == 0)) for cell in row.cells]
        rows.append(Block("table_row", cells))
    return Block("table", rows)


def _cell_children(cell) -> List[Union[InlineRun, LineBreak]]:
    children: List[Union[InlineRun, LineBreak]] = []
    for i, para in enumerate(cell.paragraphs):
        if i:
            children.append(LineBreak())
        children.extend(_paragraph_children(para))
    return children


def read_docx_bytes(data: bytes) -> RichDocument:
    """Parse a .docx payload into a RichDocument.

    Doxygen:
    - @param data: Raw bytes of the .docx file.
    - @return: Normalized document in body order (paragraphs and tables).
    - @throws ParseError: If python-docx cannot open the payload.
    """
    try:
        docx = DocxDocument(io.BytesIO(data))
    except Exception as e:
        raise ParseError(f"python-docx could not open the document: {e}") from e

    blocks: List[Block] = []
    open_list: Optional[Block] = None
    for child in docx.element.body.iterchildren():
        tag = child.tag.rsplit("}", 1)[-1]
        if tag == "p":
            para = Paragraph(child, docx)
            ordered = _list_kind(para)
            if ordered is not None:
                if open_list is None or open_list.ordered != ordered:
                    open_list = Block("list", ordered=ordered)
                    blocks.append(open_list)
                open_list.children.append(Block("list_item", _paragraph_children(para)))
                continue
            open_list = None
            blocks.append(_paragraph_block(para))
        elif tag == "tbl":
            open_list = None
            blocks.append(_table_block(Table(child, docx)))
    return RichDocument(blocks).normalize()


# -- export -----------------------------------------------------------------


@dataclass
class RunSpec:
    text: str = ""
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    code: bool = False
    color: Optional[str] = None
    font: Optional[str] = None
    image: Optional[str] = None


@dataclass
class ParagraphSpec:
    """One output paragraph: style is paragraph|heading|list_item|quote|code."""

    style: str = "paragraph"
    level: int = 0
    ordered: bool = False
    runs: List[RunSpec] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(r.text for r in self.runs)


def _run_spec(node: Union[InlineRun, LineBreak], force_code: bool = False) -> RunSpec:
    if isinstance(node, LineBreak):
        return RunSpec(text="\n")
    m = node.marks
    if m.image is not None:
        return RunSpec(text=node.text, image=m.image)
    return RunSpec(
        text=node.text,
        bold=m.bold,
        italic=m.italic,
        underline=m.underline,
        strike=m.strike,
        code=m.code or force_code,
        color=m.color,
        font=m.font,
    )


def _inline_specs(block: Block, force_code: bool = False) -> List[RunSpec]:
    return [_run_spec(c, force_code) for c in block.children if not isinstance(c, Block)]


def _collect_specs(block: Block, out: List[ParagraphSpec], quote: bool = False, ordered: bool = False) -> None:
    kind = block.kind
    if kind == "heading":
        out.append(ParagraphSpec("heading", block.level, runs=_inline_specs(block)))
    elif kind == "list":
        for child in block.children:
            if isinstance(child, Block):
                _collect_specs(child, out, quote, ordered=block.ordered)
    elif kind == "list_item":
        out.append(ParagraphSpec("list_item", ordered=ordered, runs=_inline_specs(block)))
        for child in block.children:
            if isinstance(child, Block):
                _collect_specs(child, out, quote)
    elif kind == "blockquote":
        if block.has_blocks:
            for child in block.children:
                if isinstance(child, Block):
                    _collect_specs(child, out, quote=True)
        else:
            out.append(ParagraphSpec("quote", runs=_inline_specs(block)))
    elif kind == "code_block":
        out.append(ParagraphSpec("code", runs=_inline_specs(block, force_code=True)))
    elif kind == "table":
        for row in block.children:
            if isinstance(row, Block):
                _collect_specs(row, out, quote)
    elif kind == "table_row":
        runs: List[RunSpec] = []
        for i, cell in enumerate(c for c in block.children if isinstance(c, Block)):
            if i:
                runs.append(RunSpec(text="\t"))
            specs = _inline_specs(cell)
            if cell.header:
                for s in specs:
                    s.bold = True
            runs.extend(specs)
        out.append(ParagraphSpec("paragraph", runs=runs))
    elif kind == "horizontal_rule":
        out.append(ParagraphSpec("paragraph"))
    else:
        out.append(ParagraphSpec("quote" if quote else "paragraph", runs=_inline_specs(block)))


def build_paragraph_specs(doc: RichDocument) -> List[ParagraphSpec]:
    """Flatten the document into the ordered paragraph list handed to the writer."""
    out: List[ParagraphSpec] = []
    for block in doc.blocks:
        _collect_specs(block, out)
    return out


def _parse_color(value: str) -> Optional[RGBColor]:
    value = value.strip()
    m = _HEX_COLOR_RE.match(value)
    if m:
        return RGBColor.from_string(m.group(1).upper())
    m = _SHORT_HEX_RE.match(value)
    if m:
        return RGBColor.from_string("".join(ch * 2 for ch in m.group(1)).upper())
    m = _RGB_COLOR_RE.match(value)
    if m:
        r, g, b = (min(255, int(x)) for x in m.groups())
        return RGBColor(r, g, b)
    return None


def _add_image(paragraph, spec: RunSpec, width) -> None:
    m = _DATA_URI_RE.match(spec.image or "")
    if m:
        try:
            stream = io.BytesIO(base64.b64decode(m.group(1)))
            paragraph.add_run().add_picture(stream, width=width)
            return
        except Exception as e:
            logger.warning(f"Could not embed image, writing a placeholder: {e}")
    name = spec.text or os.path.basename(spec.image or "")
    paragraph.add_run(f"[image: {name}]")


def _paragraph_style(spec: ParagraphSpec) -> Optional[str]:
    if spec.style == "heading":
        return f"Heading {spec.level}"
    if spec.style == "list_item":
        return "List Number" if spec.ordered else "List Bullet"
    if spec.style == "quote":
        return "Quote"
    return None


def write_docx(source: Union[RichDocument, List[ParagraphSpec]]) -> bytes:
    """Render a document (or prepared paragraph specs) to .docx bytes."""
    specs = build_paragraph_specs(source) if isinstance(source, RichDocument) else source
    d = DocxDocument()
    section = d.sections[0]
    # Available width = page width - (left+right) margins
    avail_width = section.page_width - section.left_margin - section.right_margin
    for spec in specs:
        p = d.add_paragraph(style=_paragraph_style(spec))
        for rs in spec.runs:
            if rs.image is not None:
                _add_image(p, rs, avail_width)
                continue
            run = p.add_run(rs.text)
            run.bold = rs.bold or None
            run.italic = rs.italic or None
            run.underline = rs.underline or None
            if rs.strike:
                run.font.strike = True
            if rs.code:
                run.font.name = CODE_FONT
                run.font.size = Pt(10)
            elif rs.font:
                run.font.name = rs.font.split(",")[0].strip().strip("'\"")
            if rs.color:
                rgb = _parse_color(rs.color)
                if rgb is not None:
                    run.font.color.rgb = rgb
    out = io.BytesIO()
    d.save(out)
    return out.getvalue()
