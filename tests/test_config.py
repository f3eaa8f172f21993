import json
import os

from richnote.config import PROJECT_ROOT, EditorConfig, configure_dependencies, load_config


def test_missing_config_gives_defaults(tmp_path):
    assert load_config(str(tmp_path / "missing.json")) == EditorConfig()


def test_malformed_config_gives_defaults(tmp_path):
    path = tmp_path / "editor.json"
    path.write_text("{oops", encoding="utf-8")
    assert load_config(str(path)) == EditorConfig()
    path.write_text("[1, 2]", encoding="utf-8")
    assert load_config(str(path)) == EditorConfig()


def test_config_values_are_applied(tmp_path):
    path = tmp_path / "editor.json"
    path.write_text(
        json.dumps({
            "notes_path": "data/notes.json",
            "ocr_lang": "rus+eng",
            "ocr_dpi": "300",
            "collaborator_timeout": 0,
            "debug_buffer": 1,
            "colour_scheme": "dark",
        }),
        encoding="utf-8",
    )
    cfg = load_config(str(path))
    assert cfg.notes_path == os.path.join(PROJECT_ROOT, "data", "notes.json")
    assert cfg.ocr_lang == "rus+eng"
    assert cfg.ocr_dpi == 300
    assert cfg.collaborator_timeout is None
    assert cfg.debug_buffer is True
    assert not hasattr(cfg, "colour_scheme")


def test_shipped_config_loads():
    cfg = load_config()
    assert cfg.notes_path.endswith(os.path.join("config", "notes.json"))
    assert cfg.collaborator_timeout == 60.0


def test_dependencies_file_missing(tmp_path):
    assert configure_dependencies(str(tmp_path / "dependencies.json")) is None


def test_dependencies_poppler_directory(tmp_path):
    poppler = tmp_path / "poppler"
    poppler.mkdir()
    deps = tmp_path / "dependencies.json"
    deps.write_text(json.dumps({"poppler_path": str(poppler), "tesseract_path": str(tmp_path / "nope")}), encoding="utf-8")
    assert configure_dependencies(str(deps)) == str(poppler)

    deps.write_text(json.dumps({"poppler_path": str(tmp_path / "missing")}), encoding="utf-8")
    assert configure_dependencies(str(deps)) is None
