"""Key-value note storage backed by a single JSON file (or memory only)."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from richnote.errors import NoteNotFound, ReadError

logger = logging.getLogger(__name__)

NoteId = Union[int, str]

DEFAULT_TITLE = "Untitled Note"
EMPTY_PREVIEW = "Empty note"


@dataclass
class NoteRecord:
    id: NoteId
    title: str
    content: str
    last_modified: int

    def to_dict(self) -> Dict:
        return {"id": self.id, "title": self.title, "content": self.content, "lastModified": self.last_modified}

    @classmethod
    def from_dict(cls, data: Dict) -> "NoteRecord":
        return cls(
            id=data["id"],
            title=str(data.get("title") or DEFAULT_TITLE),
            content=str(data.get("content") or ""),
            last_modified=int(data.get("lastModified") or 0),
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


class NoteStore:
    """Notes keyed by id.

    Ids are millisecond timestamps, bumped when needed so that they strictly
    increase. With a ``path`` every change is written back to that file.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path
        self._notes: Dict[NoteId, NoteRecord] = {}
        self._last_id = 0
        if path and os.path.exists(path):
            self._load()

    def _load(self) -> None:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f) or {}
        except (OSError, ValueError) as e:
            raise ReadError(f"Cannot read note store {self.path}: {e}") from e
        items = raw.values() if isinstance(raw, dict) else raw
        for item in items:
            record = NoteRecord.from_dict(item)
            self._notes[record.id] = record
            if isinstance(record.id, int):
                self._last_id = max(self._last_id, record.id)
        logger.debug(f"Loaded {len(self._notes)} notes from {self.path}")

    def _flush(self) -> None:
        if not self.path:
            return
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        tmp = f"{self.path}.tmp"
        data = {str(k): v.to_dict() for k, v in self._notes.items()}
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def _next_id(self) -> int:
        self._last_id = max(_now_ms(), self._last_id + 1)
        return self._last_id

    def __len__(self) -> int:
        return len(self._notes)

    def __contains__(self, note_id: NoteId) -> bool:
        return note_id in self._notes

    def create(self, title: Optional[str], content: str) -> NoteRecord:
        note_id = self._next_id()
        record = NoteRecord(note_id, title or DEFAULT_TITLE, content, note_id)
        self._notes[note_id] = record
        self._flush()
        logger.info(f"Created note {note_id} '{record.title}'")
        return record

    def get(self, note_id: NoteId) -> NoteRecord:
        try:
            return self._notes[note_id]
        except KeyError:
            raise NoteNotFound(f"No note with id {note_id}") from None

    def update(self, note_id: NoteId, content: str) -> NoteRecord:
        record = self.get(note_id)
        record.content = content
        record.last_modified = max(_now_ms(), record.last_modified)
        self._flush()
        return record

    def rename(self, note_id: NoteId, title: str) -> NoteRecord:
        if not title:
            raise ValueError("Title must not be empty")
        record = self.get(note_id)
        record.title = title
        self._flush()
        return record

    def delete(self, note_id: NoteId) -> bool:
        if self._notes.pop(note_id, None) is None:
            return False
        self._flush()
        logger.info(f"Deleted note {note_id}")
        return True

    def list(self) -> List[NoteRecord]:
        """All notes, newest first."""
        return sorted(self._notes.values(), key=lambda r: (r.last_modified, str(r.id)), reverse=True)

    def preview(self, note_id: NoteId, limit: int = 100) -> str:
        from richnote.docs.html_io import parse_html

        text = parse_html(self.get(note_id).content).plain_text().replace("\n", " ").strip()
        return text[:limit] or EMPTY_PREVIEW
