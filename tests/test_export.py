import pytest

from richnote.docs.export import EXPORT_FORMATS, export_document
from richnote.docs.html_io import parse_html
from richnote.docs.rtf import RTF_HEADER


@pytest.fixture
def doc():
    return parse_html("<h1>Title</h1><p>Some <b>bold</b> text</p>")


def _fail(*_args):
    raise RuntimeError("collaborator down")


def test_export_formats():
    assert EXPORT_FORMATS == ("txt", "html", "md", "rtf", "docx", "pdf")


def test_txt_and_md_are_plain_text(doc):
    for fmt in ("txt", "md"):
        result = export_document(doc, fmt)
        assert result.data == "Title\nSome bold text"
        assert result.extension == fmt
        assert not result.degraded
    assert export_document(doc, "txt").mime_type == "text/plain"


def test_html_is_a_full_page(doc):
    result = export_document(doc, ".HTML")
    assert result.extension == "html"
    assert result.mime_type == "text/html"
    assert "<h1>Title</h1><p>Some <b>bold</b> text</p>" in result.data
    assert result.as_bytes().startswith(b"<!DOCTYPE html>")


def test_rtf_export(doc):
    result = export_document(doc, "rtf")
    assert result.data.startswith(RTF_HEADER)
    assert "Title\\par\nSome bold text\\par\n" in result.data


def test_docx_export_is_a_zip(doc):
    result = export_document(doc, "docx")
    assert result.extension == "docx"
    assert result.data[:2] == b"PK"


def test_docx_failure_falls_back_to_text(doc):
    result = export_document(doc, "docx", docx_writer=_fail)
    assert result.degraded
    assert result.extension == "txt"
    assert result.data == "Title\nSome bold text"
    assert "collaborator down" in result.degraded_reason


def test_pdf_failure_falls_back_to_docx(doc):
    result = export_document(doc, "pdf", docx_writer=lambda d: b"DOCX", pdf_converter=_fail)
    assert result.degraded
    assert result.extension == "docx"
    assert result.data == b"DOCX"


def test_pdf_success(doc):
    result = export_document(doc, "pdf", docx_writer=lambda d: b"DOCX", pdf_converter=lambda b: b"%PDF" + b)
    assert not result.degraded
    assert result.mime_type == "application/pdf"
    assert result.data == b"%PDFDOCX"


def test_unknown_format_raises(doc):
    with pytest.raises(ValueError):
        export_document(doc, "odt")
