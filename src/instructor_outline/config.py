"""Outline configuration: defaults plus an optional JSON overlay.

A config file is a JSON object whose known keys replace the defaults;
unknown keys are ignored so newer files load in older builds. The
``INSTRUCTOR_OUTLINE_CONFIG`` environment variable names a default file.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from instructor_outline.annotations import ALL_DIALECTS, Dialect
from instructor_outline.io_utils import load_json
from instructor_outline.outline_tree import DEFAULT_GLYPHS
from instructor_outline.resolver import DEFAULT_PLACEHOLDER_PREFIX
from instructor_outline.rewriter import DEFAULT_MAX_LOOKBACK

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "INSTRUCTOR_OUTLINE_CONFIG"


@dataclass(frozen=True, slots=True)
class OutlineConfig:
    max_lookback: int = DEFAULT_MAX_LOOKBACK
    default_dialect: Dialect = "html"
    language_dialects: Mapping[str, tuple[Dialect, ...]] = field(default_factory=dict)
    placeholder_prefix: str = DEFAULT_PLACEHOLDER_PREFIX
    labels_group_name: str = "Labels"
    view_title: str = "Instructor Outline"
    label_glyphs: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_GLYPHS))
    flag_color: str = "#FF9800"

    def __post_init__(self) -> None:
        if self.max_lookback < 1:
            raise ValueError(f"max_lookback must be >= 1, got {self.max_lookback}")
        if self.default_dialect not in ALL_DIALECTS:
            raise ValueError(f"Unknown default_dialect: {self.default_dialect!r}")
        for lang, dialects in self.language_dialects.items():
            unknown = [d for d in dialects if d not in ALL_DIALECTS]
            if unknown or not dialects:
                raise ValueError(f"Bad dialect list for language {lang!r}: {list(dialects)}")


def _expect(key: str, value: Any, kind: type | tuple[type, ...]) -> Any:
    # bool is an int subclass; reject it where an int is expected
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ValueError(f"Config key {key!r} has wrong type: {type(value).__name__}")
    return value


def config_from_dict(payload: Mapping[str, Any], base: OutlineConfig | None = None) -> OutlineConfig:
    """Overlay the known keys of ``payload`` on ``base`` (or the defaults)."""
    base = base or OutlineConfig()
    known = {f.name for f in fields(OutlineConfig)}
    updates: dict[str, Any] = {}
    for key, value in payload.items():
        if key not in known:
            log.debug("Ignoring unknown config key %r", key)
            continue
        if key == "max_lookback":
            updates[key] = _expect(key, value, int)
        elif key == "language_dialects":
            raw = _expect(key, value, dict)
            updates[key] = {
                str(lang).lower(): tuple(_expect(f"{key}.{lang}", d, list)) for lang, d in raw.items()
            }
        elif key == "label_glyphs":
            raw = _expect(key, value, dict)
            updates[key] = {**base.label_glyphs, **{str(k): str(v) for k, v in raw.items()}}
        else:
            updates[key] = _expect(key, value, str)
    return replace(base, **updates)


def load_config(path: Path | None = None) -> OutlineConfig:
    """Load configuration from ``path``, the env var, or the defaults.

    Raises ValueError when the file is not a JSON object or a known key
    has the wrong type.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
        if not env_path:
            return OutlineConfig()
        path = Path(env_path)
    payload = load_json(path)
    if not isinstance(payload, dict):
        raise ValueError(f"Config payload must be a JSON object: {path}")
    config = config_from_dict(payload)
    log.debug("Loaded outline config from %s", path)
    return config
