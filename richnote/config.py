import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Optional

import pytesseract

logger = logging.getLogger(__name__)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
CONFIG_DIR = os.path.join(PROJECT_ROOT, "config")
EDITOR_CONFIG_PATH = os.path.join(CONFIG_DIR, "editor.json")
DEPENDENCIES_PATH = os.path.join(CONFIG_DIR, "dependencies.json")


def _resolve_path(base: str, relative: str) -> str:
    return os.path.abspath(os.path.join(base, relative))


@dataclass
class EditorConfig:
    notes_path: Optional[str] = None
    ocr_lang: str = "eng"
    ocr_dpi: int = 200
    collaborator_timeout: Optional[float] = 60.0
    debug_buffer: bool = False
    poppler_path: Optional[str] = None


def load_config(path: Optional[str] = None) -> EditorConfig:
    """Load config/editor.json (or ``path``); defaults fill anything missing.

    A missing or unreadable file is not fatal: a warning is logged and the
    defaults are used. ``notes_path`` is resolved relative to the project root.
    """
    cfg_path = path or EDITOR_CONFIG_PATH
    cfg = EditorConfig()
    if not os.path.exists(cfg_path):
        logger.debug(f"No editor config at {cfg_path}, using defaults")
        return cfg
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            raw = json.load(f) or {}
    except (OSError, ValueError) as exc:
        logger.warning(f"Could not load editor config from {cfg_path}: {exc}")
        return cfg
    if not isinstance(raw, dict):
        logger.warning(f"Editor config {cfg_path} is not a JSON object, using defaults")
        return cfg

    known = {f.name for f in fields(EditorConfig)}
    for key, value in raw.items():
        if key in known:
            setattr(cfg, key, value)
        else:
            logger.warning(f"Ignoring unknown config key '{key}'")
    if cfg.notes_path:
        cfg.notes_path = _resolve_path(PROJECT_ROOT, cfg.notes_path)
    if cfg.collaborator_timeout is not None and cfg.collaborator_timeout <= 0:
        cfg.collaborator_timeout = None
    cfg.ocr_dpi = int(cfg.ocr_dpi)
    cfg.debug_buffer = bool(cfg.debug_buffer)
    return cfg


def configure_dependencies(deps_path: Optional[str] = None) -> Optional[str]:
    """Configure external dependencies (Tesseract, Poppler) from config/dependencies.json.

    Returns the absolute Poppler directory, or None when not configured.
    """
    deps_path = deps_path or DEPENDENCIES_PATH
    poppler_abs: Optional[str] = None

    if not os.path.exists(deps_path):
        logger.warning(f"dependencies.json not found at {deps_path}")
        return poppler_abs

    try:
        with open(deps_path, "r", encoding="utf-8") as deps_file:
            deps = json.load(deps_file) or {}
    except (OSError, ValueError) as exc:
        logger.warning(f"Could not load dependencies from {deps_path}: {exc}")
        return poppler_abs

    tess_rel = deps.get("tesseract_path")
    if tess_rel:
        tess_abs = _resolve_path(PROJECT_ROOT, tess_rel)
        if os.path.exists(tess_abs):
            pytesseract.pytesseract.tesseract_cmd = tess_abs
        else:
            logger.warning(f"Tesseract path from config does not exist: {tess_abs}")

    poppler_rel = deps.get("poppler_path")
    if poppler_rel:
        candidate = _resolve_path(PROJECT_ROOT, poppler_rel)
        if os.path.isdir(candidate):
            poppler_abs = candidate
        else:
            logger.warning(f"Poppler path from config does not exist or is not a directory: {candidate}")

    return poppler_abs
