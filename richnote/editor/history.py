"""Bounded, linear undo/redo log of whole-document snapshots."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)

MAX_HISTORY = 50


class HistoryManager:
    """List of snapshots plus a cursor pointing at "now".

    - ``record`` truncates any redo branch, then evicts the oldest entry when
      the list is full, then appends and moves the cursor to the new entry.
    - ``undo``/``redo`` move the cursor and return the state to restore, or
      None at either end.
    - Inside ``replaying()`` records are ignored so that restoring a state does
      not register as a new edit.
    """

    def __init__(self, capacity: int = MAX_HISTORY) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._entries: List[str] = []
        self._index = -1
        self._replaying = False

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> Optional[str]:
        return self._entries[self._index] if self._entries else None

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    @property
    def is_replaying(self) -> bool:
        return self._replaying

    @contextmanager
    def replaying(self) -> Iterator[None]:
        self._replaying = True
        try:
            yield
        finally:
            self._replaying = False

    def record(self, state: str) -> bool:
        """Append a snapshot; returns False when suppressed by a replay."""
        if self._replaying:
            return False
        del self._entries[self._index + 1:]
        if len(self._entries) >= self.capacity:
            self._entries.pop(0)
            self._index = max(-1, self._index - 1)
        self._entries.append(state)
        self._index = len(self._entries) - 1
        return True

    def undo(self) -> Optional[str]:
        if not self.can_undo:
            return None
        self._index -= 1
        return self._entries[self._index]

    def redo(self) -> Optional[str]:
        if not self.can_redo:
            return None
        self._index += 1
        return self._entries[self._index]

    def clear(self, initial: Optional[str] = None) -> None:
        """Drop every entry, optionally starting over from ``initial``."""
        self._entries = []
        self._index = -1
        if initial is not None:
            self.record(initial)
