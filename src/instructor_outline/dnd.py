"""Drag-and-drop onto the outline.

Two payload sources are understood. Items dragged from within the outline
arrive as a JSON list of item labels and are bundled under the drop
target. Entries dragged from elsewhere (a label palette, another view)
arrive as a JSON list of strings; those naming a marker label apply that
label to the drop target. MIME types and transfer plumbing belong to the
host.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import orjson

from instructor_outline.io_utils import loads_json
from instructor_outline.labels import MARKER_LABELS, Label

if TYPE_CHECKING:
    from instructor_outline.outline_tree import OutlineItem
    from instructor_outline.session import OutlineSession

log = logging.getLogger(__name__)

_MARKER_BY_LOWER: dict[str, Label] = {label.lower(): label for label in MARKER_LABELS}


def decode_drop_payload(raw: str | bytes | None) -> list[str]:
    """Decode a drop payload to a list of strings; malformed input gives []."""
    if not raw:
        return []
    try:
        payload = loads_json(raw)
    except orjson.JSONDecodeError:
        log.debug("Ignoring malformed drop payload: %r", raw[:80])
        return []
    if isinstance(payload, str):
        return [payload]
    if not isinstance(payload, list):
        return []
    return [entry for entry in payload if isinstance(entry, str) and entry]


async def handle_drop(
    session: OutlineSession,
    target: OutlineItem | None,
    *,
    outline_payload: str | bytes | None = None,
    local_payload: str | bytes | None = None,
) -> int:
    """Apply a drop onto ``target`` (None means the top level).

    Returns the number of entries acted on.
    """
    handled = 0
    parent = target.label_text if target is not None else None
    for label_text in decode_drop_payload(outline_payload):
        if label_text == parent:
            continue
        session.add_bundled_section(label_text, parent)
        handled += 1
    if target is None:
        return handled
    for entry in decode_drop_payload(local_payload):
        label = _MARKER_BY_LOWER.get(entry.strip().lower())
        if label is None:
            continue
        if await session.apply_label_to_target(label, target.label_text):
            handled += 1
    return handled
