"""richnote: rich-text note engine (import/export pipeline, undo history, note store)."""

__version__ = "0.1.0"
