from richnote.docs.model import RichDocument, text_paragraph
from richnote.editor.selection import Position, SelectionDescriptor, SelectionTracker


class Holder:
    def __init__(self, doc):
        self.doc = doc


def _tracker(*lines):
    holder = Holder(RichDocument([text_paragraph(line) for line in lines]))
    return holder, SelectionTracker(lambda: holder.doc)


def test_capture_encodes_paths_and_offsets():
    holder, tracker = _tracker("hello", "world")
    tracker.set(holder.doc.node_at((0, 0)), 1, holder.doc.node_at((1, 0)), 3)
    desc = tracker.capture()
    assert desc.anchor == Position((0, 0), 1)
    assert desc.focus == Position((1, 0), 3)
    assert desc.doc_id == holder.doc.doc_id
    assert not desc.is_collapsed


def test_capture_without_selection_is_none():
    holder, tracker = _tracker("hello")
    assert tracker.capture() is None
    tracker.set(text_paragraph("elsewhere").children[0], 0)
    assert tracker.capture() is None


def test_restore_on_same_document():
    holder, tracker = _tracker("hello")
    tracker.set(holder.doc.node_at((0, 0)), 2)
    desc = tracker.capture()
    tracker.clear()
    assert tracker.restore(desc) is True
    assert tracker.live.anchor_node is holder.doc.node_at((0, 0))
    assert tracker.live.anchor_offset == 2


def test_restore_after_document_replacement_fails():
    holder, tracker = _tracker("hello")
    tracker.set(holder.doc.node_at((0, 0)), 2)
    desc = tracker.capture()
    holder.doc = RichDocument.from_snapshot(holder.doc.snapshot())
    assert tracker.restore(desc) is False
    assert tracker.last_restored is False


def test_restore_rejects_unresolvable_positions():
    holder, tracker = _tracker("hello")
    doc_id = holder.doc.doc_id
    for pos in (Position((0, 0), 6), Position((0,), 0), Position((3, 0), 0), Position((0, 0), -1)):
        assert tracker.restore(SelectionDescriptor(pos, pos, doc_id)) is False
    assert tracker.restore(None) is False
    end = Position((0, 0), 5)
    assert tracker.restore(SelectionDescriptor(end, end, doc_id)) is True


def test_preserving_restores_after_focus_moves():
    holder, tracker = _tracker("hello")
    run = holder.doc.node_at((0, 0))
    tracker.set(run, 0, run, 5)
    with tracker.preserving() as desc:
        tracker.clear()
    assert desc is not None
    assert tracker.live.focus_offset == 5
    assert tracker.last_restored


def test_ordered_puts_start_first():
    holder, tracker = _tracker("hello", "world")
    tracker.set(holder.doc.node_at((1, 0)), 2, holder.doc.node_at((0, 0)), 4)
    start, end = tracker.ordered()
    assert start == Position((0, 0), 4)
    assert end == Position((1, 0), 2)
