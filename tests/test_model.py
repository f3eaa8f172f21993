import pytest

from richnote.docs.model import PLAIN, Block, InlineRun, LineBreak, Marks, RichDocument, text_paragraph


def test_marks_form_a_value_set():
    bold = PLAIN.with_mark("bold")
    assert bold.bold and not bold.is_plain
    assert bold.with_mark("bold", False) == PLAIN
    assert PLAIN.is_plain


def test_value_marks_need_a_value():
    with pytest.raises(ValueError):
        PLAIN.with_mark("color")
    assert PLAIN.with_mark("color", "red").color == "red"
    assert PLAIN.with_mark("color", "red").with_mark("color", "").color is None


def test_marks_reject_wrong_types():
    with pytest.raises(TypeError):
        Marks(bold="yes")
    with pytest.raises(ValueError):
        PLAIN.with_mark("sparkle")


def test_heading_level_is_validated():
    with pytest.raises(ValueError):
        Block("heading", level=7)
    with pytest.raises(ValueError):
        Block("marquee")


def test_normalize_merges_equal_runs_and_drops_empty_ones():
    bold = PLAIN.with_mark("bold")
    doc = RichDocument([
        Block("paragraph", [InlineRun("a"), InlineRun(""), InlineRun("b"), InlineRun("c", bold), InlineRun("d", bold)])
    ]).normalize()
    assert doc.blocks[0].children == [InlineRun("ab"), InlineRun("cd", bold)]


def test_normalize_keeps_image_runs_apart():
    img = PLAIN.with_mark("image", "a.png")
    doc = RichDocument([Block("paragraph", [InlineRun("", img), InlineRun("", img)])]).normalize()
    assert len(doc.blocks[0].children) == 2


def test_plain_text_flattens_blocks_rows_and_breaks():
    table = Block("table", [
        Block("table_row", [Block("table_cell", [InlineRun("A")], header=True), Block("table_cell", [InlineRun("B")], header=True)]),
        Block("table_row", [Block("table_cell", [InlineRun("1")]), Block("table_cell", [InlineRun("2")])]),
    ])
    doc = RichDocument([
        Block("heading", [InlineRun("Title")], level=1),
        Block("paragraph", [InlineRun("one"), LineBreak(), InlineRun("two")]),
        table,
        Block("list", [Block("list_item", [InlineRun("x")]), Block("list_item", [InlineRun("y")])]),
    ])
    assert doc.plain_text() == "Title\none\ntwo\nA\tB\n1\t2\nx\ny"


def test_image_flattens_to_marker():
    run = InlineRun("", PLAIN.with_mark("image", "http://example.com/pics/cat.png"))
    assert run.plain_text() == "[image: cat.png]"
    assert InlineRun("a cat", run.marks).plain_text() == "[image: a cat]"


def test_paths_resolve_and_reject_out_of_range():
    doc = RichDocument([text_paragraph("hello"), text_paragraph("world")])
    run = doc.node_at((1, 0))
    assert run.text == "world"
    assert doc.path_of(run) == (1, 0)
    assert doc.node_at((2, 0)) is None
    assert doc.node_at((0, 0, 0)) is None
    assert doc.node_at(()) is None


def test_snapshot_round_trip_is_exact():
    doc = RichDocument([
        Block("paragraph", [InlineRun("hi", PLAIN.with_mark("italic")), LineBreak(), InlineRun("there")]),
        Block("list", [Block("list_item", [InlineRun("x")])], ordered=True),
    ])
    restored = RichDocument.from_snapshot(doc.snapshot())
    assert restored == doc
    assert restored.doc_id != doc.doc_id
    assert restored.snapshot() == doc.snapshot()


def test_is_empty_ignores_whitespace_but_not_images():
    assert RichDocument().is_empty()
    assert RichDocument([text_paragraph("   ")]).is_empty()
    assert not RichDocument([Block("paragraph", [InlineRun("", PLAIN.with_mark("image", "a.png"))])]).is_empty()
