"""Tests for scripts/outline_sync.py."""
from __future__ import annotations

import importlib.util
from pathlib import Path
from typing import Any

import orjson
import pytest

LESSON = "import os\n\ndef intro():\n    pass\n\nclass Widget:\n    # #Locked\n    def render(self):\n        return 1\n"

SYMBOLS = [
    {"name": "intro", "start_line": 2, "end_line": 3},
    {
        "name": "Widget",
        "start_line": 5,
        "end_line": 8,
        "children": [{"name": "render", "start_line": 7, "end_line": 8}],
    },
]


def _load_cli_module() -> Any:
    root = Path(__file__).resolve().parents[1]
    script_path = root / "scripts" / "outline_sync.py"
    spec = importlib.util.spec_from_file_location("outline_sync", script_path)
    assert spec is not None
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def lesson(tmp_path: Path) -> tuple[Path, Path]:
    doc = tmp_path / "lesson.py"
    doc.write_bytes(LESSON.encode("utf-8"))
    symbols = tmp_path / "lesson.symbols.json"
    symbols.write_bytes(orjson.dumps(SYMBOLS))
    return doc, symbols


def test_show(lesson: tuple[Path, Path], capsys: pytest.CaptureFixture[str]) -> None:
    mod = _load_cli_module()
    doc, symbols = lesson
    assert mod.main(["show", str(doc), "--symbols", str(symbols)]) == 0
    snap = orjson.loads(capsys.readouterr().out)
    assert [i["label_text"] for i in snap["items"]] == ["intro", "Widget"]
    assert snap["items"][1]["children"][0]["label"] == "Locked"


def test_show_filtered(lesson: tuple[Path, Path], capsys: pytest.CaptureFixture[str]) -> None:
    mod = _load_cli_module()
    doc, symbols = lesson
    assert mod.main(["show", str(doc), "--symbols", str(symbols), "--filter", "Locked"]) == 0
    snap = orjson.loads(capsys.readouterr().out)
    assert [i["label_text"] for i in snap["items"]] == ["Widget"]


def test_scan(lesson: tuple[Path, Path], capsys: pytest.CaptureFixture[str]) -> None:
    mod = _load_cli_module()
    doc, symbols = lesson
    assert mod.main(["scan", str(doc), "--symbols", str(symbols)]) == 0
    report = orjson.loads(capsys.readouterr().out)
    assert report["language"] == "python"
    assert report["markers"] == [{"token": "Locked", "label": "Locked", "dialect": "hash", "line": 6}]
    assert report["labelled_symbols"][0]["name"] == "render"
    assert report["placeholders"] == []
    assert report["annotation_lines"] == [6]


def test_scan_uses_configured_dialects(
    tmp_path: Path,
    lesson: tuple[Path, Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    mod = _load_cli_module()
    doc, symbols = lesson
    config = tmp_path / "outline.json"
    config.write_bytes(orjson.dumps({"language_dialects": {"python": ["line"]}}))
    assert mod.main(["scan", str(doc), "--symbols", str(symbols), "--config", str(config)]) == 0
    report = orjson.loads(capsys.readouterr().out)
    assert report["markers"] == []
    assert report["labelled_symbols"] == []


def test_label_writes_file(lesson: tuple[Path, Path], capsys: pytest.CaptureFixture[str]) -> None:
    mod = _load_cli_module()
    doc, symbols = lesson
    assert mod.main(["label", str(doc), "--symbols", str(symbols), "intro", "hidden"]) == 0
    result = orjson.loads(capsys.readouterr().out)
    assert result == {"symbol": "intro", "label": "Hidden", "changed": True}
    assert doc.read_bytes().decode("utf-8").startswith("import os\n\n# #Hidden\ndef intro():\n")


def test_label_dry_run(lesson: tuple[Path, Path], capsys: pytest.CaptureFixture[str]) -> None:
    mod = _load_cli_module()
    doc, symbols = lesson
    args = ["label", str(doc), "--symbols", str(symbols), "render", "Normal", "--dry-run"]
    assert mod.main(args) == 0
    out = capsys.readouterr().out
    assert "#Locked" not in out
    assert doc.read_bytes().decode("utf-8") == LESSON


def test_label_unknown_symbol(lesson: tuple[Path, Path]) -> None:
    mod = _load_cli_module()
    doc, symbols = lesson
    assert mod.main(["label", str(doc), "--symbols", str(symbols), "ghost", "Hidden"]) == 1
    assert doc.read_bytes().decode("utf-8") == LESSON


def test_label_invalid_label(lesson: tuple[Path, Path]) -> None:
    mod = _load_cli_module()
    doc, symbols = lesson
    assert mod.main(["label", str(doc), "--symbols", str(symbols), "intro", "Archived"]) == 1


def test_missing_document(tmp_path: Path, lesson: tuple[Path, Path]) -> None:
    mod = _load_cli_module()
    _, symbols = lesson
    assert mod.main(["show", str(tmp_path / "missing.py"), "--symbols", str(symbols)]) == 1
