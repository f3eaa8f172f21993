from richnote.docs.html_io import is_script_url, parse_html, render_html, render_html_page, sanitize_html
from richnote.docs.model import InlineRun, LineBreak
from richnote.docs.pipeline import Structured, import_document


def test_sanitize_removes_handlers_and_script():
    assert sanitize_html('<p onclick="x()">hi<script>bad()</script></p>') == "<p>hi</p>"


def test_sanitize_removes_embedding_elements_with_their_content():
    markup = '<div>a<iframe src="x"><p>inner</p></iframe><object data="y">fallback</object><embed src="z">b</div>'
    assert sanitize_html(markup) == "<div>ab</div>"


def test_sanitize_strips_script_urls_but_keeps_links():
    out = sanitize_html('<a href="javascript:alert(1)">x</a><a href="https://example.com" onmouseover="steal()">y</a>')
    assert out == '<a>x</a><a href="https://example.com">y</a>'


def test_script_url_detection_sees_through_obfuscation():
    assert is_script_url(" JavaScript:alert(1)")
    assert is_script_url("java\tscript:alert(1)")
    assert is_script_url("&#106;avascript:alert(1)")
    assert not is_script_url("https://example.com/javascript:")


def test_import_sanitized_fragment():
    doc = parse_html('<p onclick="x()">hi<script>bad()</script></p>')
    assert doc.to_html() == "<p>hi</p>"


def test_parse_inline_marks():
    doc = parse_html("<p>a <b>b <i>c</i></b> <u>d</u> <s>e</s> <code>f</code></p>")
    runs = [c for c in doc.blocks[0].children if isinstance(c, InlineRun)]
    by_text = {r.text: r.marks for r in runs}
    assert by_text["b "].bold and not by_text["b "].italic
    assert by_text["c"].bold and by_text["c"].italic
    assert by_text["d"].underline
    assert by_text["e"].strike
    assert by_text["f"].code


def test_parse_links_colors_fonts_and_images():
    doc = parse_html(
        '<p><a href="https://example.com">site</a> <span style="color: red; font-family: Georgia">styled</span>'
        ' <font color="#00f" face="Courier">old</font> <img src="cat.png" alt="a cat"></p>'
    )
    runs = {r.text: r.marks for r in doc.blocks[0].children if isinstance(r, InlineRun)}
    assert runs["site"].link == "https://example.com"
    assert runs["styled"].color == "red" and runs["styled"].font == "Georgia"
    assert runs["old"].color == "#00f" and runs["old"].font == "Courier"
    assert runs["a cat"].image == "cat.png"


def test_loose_text_and_double_break_make_paragraphs():
    doc = parse_html("one<br>two<br><br>three")
    assert len(doc.blocks) == 2
    assert doc.blocks[0].children == [InlineRun("one"), LineBreak(), InlineRun("two")]
    assert doc.blocks[1].children == [InlineRun("three")]


def test_source_whitespace_is_collapsed():
    doc = parse_html("<p>\n   hello\n   world\n</p>")
    assert doc.plain_text().strip() == "hello world"


def test_structure_blocks():
    doc = parse_html(
        "<h2>Title</h2><ul><li>one</li><li>two</li></ul><ol><li>first</li></ol>"
        "<blockquote>quoted</blockquote><table><tr><th>H</th></tr><tr><td>C</td></tr></table><hr>"
    )
    kinds = [b.kind for b in doc.blocks]
    assert kinds == ["heading", "list", "list", "blockquote", "table", "horizontal_rule"]
    assert doc.blocks[0].level == 2
    assert not doc.blocks[1].ordered and doc.blocks[2].ordered
    assert [li.inline_text() for li in doc.blocks[1].children] == ["one", "two"]
    header_cell = doc.blocks[4].children[0].children[0]
    assert header_cell.header and header_cell.inline_text() == "H"


def test_unclosed_list_items_and_paragraphs_close_implicitly():
    doc = parse_html("<ul><li>a<li>b</ul><p>x<p>y")
    assert [li.inline_text() for li in doc.blocks[0].children] == ["a", "b"]
    assert [b.inline_text() for b in doc.blocks[1:]] == ["x", "y"]


def test_code_block_keeps_whitespace():
    doc = parse_html("<pre><code>def f():\n    return 1</code></pre>")
    assert doc.blocks[0].kind == "code_block"
    assert doc.blocks[0].inline_text() == "def f():\n    return 1"


def test_html_round_trip_is_lossless():
    doc = parse_html(
        '<h2>Title</h2><p>Plain <b>bold <i>both</i></b> <a href="https://x.org">link</a></p>'
        "<ul><li>one</li><li>two</li></ul><table><tr><th>H</th></tr><tr><td>C</td></tr></table>"
        "<pre><code>x = 1\n  y &lt; 2</code></pre><hr>"
        '<p><span style="color: red">red</span><br>next</p><p>  spaced  </p><p></p>'
    )
    again = parse_html(render_html(doc))
    assert again == doc


def test_export_page_wraps_fragment():
    doc = parse_html("<p>hello</p>")
    page = render_html_page(doc)
    assert page.startswith("<!DOCTYPE html>")
    assert "<title>Exported Note</title>" in page
    assert "<p>hello</p>" in page


def test_pre_closed_by_its_parent_ends_preformatted_text():
    doc = parse_html("<ul><li><pre>x</li></ul><p><b>bold</b></p>")
    assert [b.kind for b in doc.blocks] == ["list", "paragraph"]
    run = doc.blocks[1].children[0]
    assert run.text == "bold"
    assert run.marks.bold


def test_html_import_keeps_structure_after_unclosed_pre():
    result = import_document("a.html", "<ul><li><pre>x</li></ul>tail")
    assert isinstance(result, Structured)
    assert result.fragment.plain_text().split("\n")[-1] == "tail"
