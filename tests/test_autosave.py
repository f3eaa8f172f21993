from richnote.editor.autosave import AUTOSAVE_INTERVAL, AutoSaver
from richnote.editor.session import EditorSession
from richnote.store.notes import NoteStore


class FakeSession:
    def __init__(self):
        self.has_unsaved_changes = True
        self.saves = 0

    def save(self):
        self.saves += 1
        self.has_unsaved_changes = False


def test_tick_waits_for_the_interval():
    session = FakeSession()
    saver = AutoSaver(session, clock=lambda: 0.0)
    assert AUTOSAVE_INTERVAL == 10.0
    assert not saver.tick(5)
    assert saver.tick(10)
    assert session.saves == 1


def test_tick_skips_clean_sessions():
    session = FakeSession()
    saver = AutoSaver(session, clock=lambda: 0.0)
    assert saver.tick(10)
    assert not saver.tick(20)
    session.has_unsaved_changes = True
    assert not saver.tick(25)
    assert saver.tick(30)
    assert session.saves == 2


def test_session_autosave_creates_then_updates_one_note():
    now = [0.0]
    session = EditorSession(store=NoteStore(), clock=lambda: now[0])
    session.insert_text("draft")
    assert session.autosaver.tick(10)
    assert len(session.store) == 1
    assert not session.has_unsaved_changes
    session.insert_text(" more")
    assert session.autosaver.tick(20)
    assert len(session.store) == 1
    assert session.store.get(session.current_note_id).content == "<p>draft more</p>"


def test_start_and_stop():
    session = FakeSession()
    saver = AutoSaver(session, interval=60)
    saver.start()
    saver.start()
    assert saver.running
    saver.stop()
    assert not saver.running
    assert session.saves == 0
