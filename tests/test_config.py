"""Tests for instructor_outline.config."""
from pathlib import Path

import orjson
import pytest

from instructor_outline.config import CONFIG_ENV_VAR, OutlineConfig, config_from_dict, load_config


def _write(path: Path, payload: object) -> Path:
    path.write_bytes(orjson.dumps(payload))
    return path


class TestDefaults:
    def test_values(self) -> None:
        config = OutlineConfig()
        assert config.max_lookback == 8
        assert config.default_dialect == "html"
        assert config.placeholder_prefix == "Commented: "
        assert config.labels_group_name == "Labels"
        assert config.view_title == "Instructor Outline"
        assert config.flag_color == "#FF9800"
        assert config.label_glyphs["Flagged"] == "🚩"

    def test_invalid_values_rejected(self) -> None:
        with pytest.raises(ValueError):
            OutlineConfig(max_lookback=0)
        with pytest.raises(ValueError):
            OutlineConfig(default_dialect="semicolon")  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            OutlineConfig(language_dialects={"python": ()})


class TestOverlay:
    def test_known_keys_replace_defaults(self) -> None:
        config = config_from_dict({
            "max_lookback": 3,
            "default_dialect": "line",
            "language_dialects": {"Python": ["line", "hash"]},
            "label_glyphs": {"Hidden": "H"},
            "future_setting": True,
        })
        assert config.max_lookback == 3
        assert config.default_dialect == "line"
        assert config.language_dialects == {"python": ("line", "hash")}
        assert config.label_glyphs["Hidden"] == "H"
        assert config.label_glyphs["Locked"] == "🔒"

    def test_wrong_types_rejected(self) -> None:
        with pytest.raises(ValueError, match="max_lookback"):
            config_from_dict({"max_lookback": "8"})
        with pytest.raises(ValueError, match="max_lookback"):
            config_from_dict({"max_lookback": True})
        with pytest.raises(ValueError, match="view_title"):
            config_from_dict({"view_title": 7})
        with pytest.raises(ValueError, match="language_dialects"):
            config_from_dict({"language_dialects": ["python"]})


class TestLoad:
    def test_from_path(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "outline.json", {"view_title": "Lesson"})
        assert load_config(path).view_title == "Lesson"

    def test_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write(tmp_path / "outline.json", {"flag_color": "#123456"})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().flag_color == "#123456"

    def test_defaults_without_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert load_config() == OutlineConfig()

    def test_non_object_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "outline.json", ["view_title"])
        with pytest.raises(ValueError, match="JSON object"):
            load_config(path)
