"""I/O utilities for JSON payloads.

Symbol-tree payloads, configuration files and outline snapshots all go
through orjson here so the rest of the package never touches raw bytes.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson


def load_json(path: Path) -> Any:
    """Load JSON from a file."""
    return orjson.loads(path.read_bytes())


def loads_json(raw: str | bytes) -> Any:
    """Decode a JSON document held in memory."""
    return orjson.loads(raw)


def dumps_json(obj: Any, *, pretty: bool = True) -> bytes:
    """Encode an object as JSON bytes with sorted keys."""
    opts = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS if pretty else orjson.OPT_SORT_KEYS
    return orjson.dumps(obj, option=opts)

