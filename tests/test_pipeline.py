import pytest

from richnote.docs.detect import OLE2_MAGIC, detect_format, extension_of
from richnote.docs.model import RichDocument, text_paragraph
from richnote.docs.pipeline import (
    Collaborators,
    Converter,
    Degraded,
    Failed,
    Structured,
    build_chain,
    import_document,
    import_path,
    run_chain,
)
from richnote.docs.txt import text_to_document
from richnote.errors import ParseError


def _raise(message):
    def convert(_data):
        raise ParseError(message)

    return convert


def test_extensions_are_case_insensitive():
    assert extension_of("Report.HTM") == "htm"
    assert detect_format("Report.HTM") == "html"
    assert detect_format("notes.xyz") == "txt"
    assert detect_format("README") == "txt"


def test_known_extension_wins_over_content_sniffing():
    assert detect_format("a.txt", b"%PDF-1.4") == "txt"


@pytest.mark.parametrize(
    "head,expected",
    [
        (b"{\\rtf1\\ansi hello}", "rtf"),
        (b"%PDF-1.7", "pdf"),
        (b"PK\x03\x04....word/document.xml", "docx"),
        (b"PK\x03\x04....content.xml", "odt"),
        (OLE2_MAGIC + b"\x00" * 8, "doc"),
        (b"just text", "txt"),
    ],
)
def test_sniffing_unknown_names(head, expected):
    assert detect_format("upload", head) == expected


def test_every_chain_ends_with_printable():
    for fmt in ("txt", "html", "md", "rtf", "docx", "odt", "doc", "pages", "pdf", "unknown"):
        assert build_chain(fmt)[-1].name == "printable"
    assert [c.name for c in build_chain("docx")] == ["docx", "structured", "heuristic", "printable"]


def test_unknown_extension_imports_as_plain_text():
    result = import_document("notes.xyz", b"hello\nworld")
    assert isinstance(result, Structured)
    assert result.converter == "plain"
    assert result.fragment.plain_text() == "hello\nworld"


def test_empty_input_fails():
    result = import_document("x.txt", b"")
    assert isinstance(result, Failed)
    assert not result.ok
    assert result.fragment is None


def test_unreadable_binary_fails():
    result = import_document("x.doc", b"\x00\x01\x02\xff" * 10)
    assert isinstance(result, Failed)
    assert result.reason.startswith("No readable content")


def test_html_import_is_structured_and_sanitized():
    result = import_document("page.html", b"<p>Hi <b>there</b><script>x()</script></p>")
    assert isinstance(result, Structured)
    assert result.fragment.to_html() == "<p>Hi <b>there</b></p>"


def test_rtf_import():
    result = import_document("a.rtf", b"{\\rtf1 Hello\\par}")
    assert isinstance(result, Structured)
    assert result.fragment.plain_text() == "Hello"


def test_markdown_import_is_structured():
    result = import_document("a.md", "# Hi")
    assert isinstance(result, Structured)
    assert result.fragment.blocks[0].kind == "heading"


def test_invalid_utf8_markdown_falls_back_to_printable():
    result = import_document("bad.md", b"**hi** \xff there")
    assert isinstance(result, Degraded)
    assert result.converter == "printable"
    assert "markdown:" in result.reason and "plain:" in result.reason
    assert "there" in result.fragment.plain_text()


def test_docx_collaborator_success():
    fake = Collaborators(docx_reader=lambda data: RichDocument([text_paragraph("from docx")]))
    result = import_document("a.docx", b"anything", fake)
    assert isinstance(result, Structured)
    assert result.converter == "docx"
    assert result.fragment.plain_text() == "from docx"


def test_docx_collaborator_failure_degrades_to_heuristic():
    fake = Collaborators(docx_reader=_raise("corrupt"))
    result = import_document("a.docx", b"\x00garbage bytes without signature\x00", fake)
    assert isinstance(result, Degraded)
    assert result.converter == "heuristic"
    assert "docx: corrupt" in result.reason
    assert result.fragment.plain_text() == "garbage bytes without signature"


def test_pdf_collaborator_failure_degrades_to_heuristic():
    fake = Collaborators(pdf_reader=_raise("no poppler"))
    result = import_document("scan.pdf", b"%PDF-1.4 readable stream text\x00\x00", fake)
    assert isinstance(result, Degraded)
    assert result.converter == "heuristic"
    assert "pdf-ocr: no poppler" in result.reason


def test_empty_converter_output_hands_over():
    chain = [Converter("empty", lambda data: RichDocument()), Converter("plain", text_to_document)]
    result = run_chain(chain, "text")
    assert isinstance(result, Degraded)
    assert result.converter == "plain"
    assert result.reason == "empty: no content"


def test_import_path_missing_file(tmp_path):
    result = import_path(str(tmp_path / "nope.txt"))
    assert isinstance(result, Failed)
    assert "Cannot read" in result.reason


def test_import_path_reads_file(tmp_path):
    path = tmp_path / "a.md"
    path.write_bytes(b"*hello*")
    result = import_path(str(path))
    assert isinstance(result, Structured)
    assert result.converter == "markdown"
