"""Error taxonomy shared by the import/export pipeline and the editing session."""

from __future__ import annotations


class RichNoteError(Exception):
    """Base class for all errors raised by richnote."""


class ReadError(RichNoteError):
    """The source could not be read at all (missing, unreadable, corrupt)."""


class ParseError(RichNoteError):
    """A converter could not interpret its input."""


class StructureNotFound(ParseError):
    """Structured extraction found no signature or no text-run markers."""


class UserCancel(RichNoteError):
    """An interactive confirmation was dismissed."""


class ExportError(RichNoteError):
    """A document-generation collaborator failed while exporting."""


class NoteNotFound(RichNoteError):
    """No note record exists for the requested id."""
