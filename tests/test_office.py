import pytest

from richnote.docs.model import InlineRun, LineBreak
from richnote.docs.office import extract_heuristic, extract_structured, scan_readable_runs
from richnote.errors import ParseError, StructureNotFound


def test_runs_shorter_than_ten_characters_are_dropped():
    assert scan_readable_runs(b"\x00\x01Hello world!\x00ab\x00short\x00") == ["Hello world!"]


def test_runs_continue_through_line_endings():
    assert scan_readable_runs(b"\x00first line\r\nsecond line\x00") == ["first line\r\nsecond line"]


def test_line_endings_count_toward_opening_a_run():
    assert scan_readable_runs(b"\x00ab\ncdefghijklmn") == ["ab\ncdefghijklmn"]
    assert scan_readable_runs(b"\x00a\x00\r\n\r\nenough text\x00") == ["\r\n\r\nenough text"]


def test_heuristic_builds_paragraphs_from_runs():
    data = b"\x00" * 5 + b"Paragraph one here\x00\x00Second chunk line\r\nwith a break\x00\x07"
    doc = extract_heuristic(data)
    assert len(doc.blocks) == 2
    assert doc.blocks[0].inline_text() == "Paragraph one here"
    assert doc.blocks[1].children == [InlineRun("Second chunk line"), LineBreak(), InlineRun("with a break")]


def test_heuristic_without_runs_raises():
    with pytest.raises(ParseError):
        extract_heuristic(b"\x00\x01\x02\xff" * 20)


def test_structured_docx_body_runs():
    data = (
        b"PK\x03\x04\x14\x00junk word/document.xml<w:document><w:body><w:p><w:r><w:t>Hello there. </w:t></w:r>"
        b'<w:r><w:t xml:space="preserve">Fish &amp; chips</w:t></w:r></w:p></w:body>\x00\xff'
    )
    doc = extract_structured(data, "docx")
    assert [b.inline_text() for b in doc.blocks] == ["Hello there.", "Fish & chips."]


def test_structured_odt_keeps_nested_spans():
    data = (
        b"PK\x03\x04content.xml<office:text><text:p>Some <text:span>styled</text:span> words</text:p>"
        b"</office:text>"
    )
    doc = extract_structured(data, "odt")
    assert doc.plain_text() == "Some styled words."


def test_structured_failures_are_structure_not_found():
    with pytest.raises(StructureNotFound):
        extract_structured(b"word/document.xml<w:t>x</w:t>", "doc")
    with pytest.raises(StructureNotFound):
        extract_structured(b"PK\x03\x04 no parts here <w:t>x</w:t>", "docx")
    with pytest.raises(StructureNotFound):
        extract_structured(b"PK\x03\x04 word/document.xml \x00\x00 compressed", "docx")
    assert issubclass(StructureNotFound, ParseError)
