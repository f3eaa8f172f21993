from __future__ import annotations

import logging
import os
import shutil
import time
from typing import Optional

logger = logging.getLogger(__name__)


class BufferManager:
    """Scratch directory under config/buffer/<timestamp> for collaborator files.

    The DOCX -> PDF converter works on paths, not bytes, so exports stage
    their files here. Debug mode keeps the directory on disk; otherwise
    cleanup() removes it. Usable as a context manager.
    """

    def __init__(self, project_root: Optional[str] = None, debug: bool = False) -> None:
        self.debug = bool(debug)
        root = project_root or os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
        base = os.path.join(root, "config", "buffer")
        ts = time.strftime("%Y%m%d-%H%M%S")
        self.base_dir = os.path.join(base, f"{ts}-{os.getpid()}-{id(self):x}")
        os.makedirs(self.base_dir, exist_ok=True)

    def path(self, *parts: str) -> str:
        p = os.path.join(self.base_dir, *parts)
        os.makedirs(os.path.dirname(p), exist_ok=True)
        return p

    def write_bytes(self, name: str, data: bytes) -> str:
        p = self.path(name)
        with open(p, "wb") as f:
            f.write(data)
        return p

    def read_bytes(self, name: str) -> bytes:
        with open(self.path(name), "rb") as f:
            return f.read()

    def cleanup(self) -> None:
        if self.debug:
            logger.debug(f"Keeping buffer directory {self.base_dir}")
            return
        shutil.rmtree(self.base_dir, ignore_errors=True)

    def __enter__(self) -> "BufferManager":
        return self

    def __exit__(self, *exc) -> None:
        self.cleanup()
