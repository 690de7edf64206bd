"""Instructor label vocabulary.

Labels form a closed set. ``Normal`` is the implicit default and never
appears as an annotation in document text; the other six can be written
as ``#<Label>`` markers inside a comment.
"""
from __future__ import annotations

from typing import Literal

type Label = Literal[
    "Normal", "Hidden", "Locked", "Blocked", "Governed", "Sectioned", "Flagged",
]

NORMAL: Label = "Normal"
FLAGGED: Label = "Flagged"

ALL_LABELS: tuple[Label, ...] = (
    "Normal", "Hidden", "Locked", "Blocked", "Governed", "Sectioned", "Flagged",
)

# Display order for label rows and filter menus
MARKER_LABELS: tuple[Label, ...] = ALL_LABELS[1:]

_BY_LOWER: dict[str, Label] = {label.lower(): label for label in ALL_LABELS}


def to_label(token: str) -> Label | None:
    """Map an annotation token to a marker label, or None if not recognised.

    Matching ignores case. ``normal`` is not a marker token and maps to None.
    """
    label = _BY_LOWER.get(token.strip().lower())
    if label is None or label == NORMAL:
        return None
    return label


def coerce_label(value: str) -> Label:
    """Strictly parse user-supplied label text (CLI, config, drop payloads)."""
    label = _BY_LOWER.get(str(value).strip().lower())
    if label is None:
        raise ValueError(
            f"Unknown label {value!r}; expected one of {', '.join(ALL_LABELS)}",
        )
    return label
