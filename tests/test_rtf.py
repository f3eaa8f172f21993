import pytest

from richnote.docs.model import InlineRun, LineBreak, RichDocument, text_paragraph
from richnote.docs.rtf import RTF_HEADER, document_to_rtf, rtf_to_document, rtf_to_text
from richnote.errors import ParseError


def test_control_words_are_stripped_and_par_breaks():
    assert rtf_to_text("\\b Hello\\b0 \\par World") == "Hello\nWorld"


def test_hex_escapes_decode_as_cp1252():
    assert rtf_to_text("{\\rtf1 caf\\'e9}") == "café"
    assert rtf_to_text(b"{\\rtf1 caf\\'e9}") == "café"


def test_escaped_braces_and_backslashes_survive():
    assert rtf_to_text("{\\rtf1 a\\{b\\}c\\\\d}") == "a{b}c\\d"


def test_destination_groups_are_dropped():
    src = "{\\rtf1{\\fonttbl{\\f0 Arial;}}{\\*\\generator Riched20;}{\\pict\\pngblip 89504e47}Body text\\par}"
    assert rtf_to_text(src) == "Body text"


def test_runs_of_breaks_collapse_to_one_blank_line():
    src = "{\\rtf1 one\\par\\par\\par\\par two}"
    assert rtf_to_text(src) == "one\n\ntwo"
    doc = rtf_to_document(src)
    assert [b.inline_text() for b in doc.blocks] == ["one", "two"]


def test_single_breaks_stay_inside_a_paragraph():
    doc = rtf_to_document("{\\rtf1 one\\line two}")
    assert doc.blocks[0].children == [InlineRun("one"), LineBreak(), InlineRun("two")]


def test_header_up_to_viewkind_is_removed():
    assert rtf_to_text(RTF_HEADER + "\nHello\\par\n}") == "Hello"


def test_unicode_escape_with_fallback_character():
    assert rtf_to_text("{\\rtf1 tick \\u10003?done}") == "tick \u2713done"


def test_empty_input_raises():
    with pytest.raises(ParseError):
        rtf_to_text("   ")
    with pytest.raises(ParseError):
        rtf_to_document("{\\rtf1\\b\\i}")


def test_export_uses_fixed_header_and_escapes_text():
    doc = RichDocument([text_paragraph("a{b}\\c caf\u00e9 \u2713")])
    out = document_to_rtf(doc)
    assert out.startswith(RTF_HEADER)
    assert out.endswith("\\par\n}")
    assert "a\\{b\\}\\\\c caf\\'e9 \\u10003?" in out


def test_exported_text_reads_back():
    doc = RichDocument([text_paragraph("line one"), text_paragraph("a{b}\\c caf\u00e9")])
    assert rtf_to_document(document_to_rtf(doc)).plain_text() == doc.plain_text()
