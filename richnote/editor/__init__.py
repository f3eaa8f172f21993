"""Editing session layer.

Exposes:
- EditorSession: owner of the document, history, selection and current note
- HistoryManager (bounded undo/redo), SelectionTracker (capture/restore)
- AutoSaver: periodic save while the session has unsaved changes
"""

from .history import MAX_HISTORY, HistoryManager
from .selection import LiveSelection, Position, SelectionDescriptor, SelectionTracker
from .autosave import AUTOSAVE_INTERVAL, AutoSaver
from .session import EditorSession

__all__ = [
    "MAX_HISTORY",
    "HistoryManager",
    "LiveSelection",
    "Position",
    "SelectionDescriptor",
    "SelectionTracker",
    "AUTOSAVE_INTERVAL",
    "AutoSaver",
    "EditorSession",
]
