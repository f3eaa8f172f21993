"""Note persistence: NoteStore and NoteRecord."""

from .notes import DEFAULT_TITLE, NoteRecord, NoteStore

__all__ = ["DEFAULT_TITLE", "NoteRecord", "NoteStore"]
