"""Deterministic dict form of the visible outline (CLI output, snapshot tests)."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from instructor_outline.aggregation import LABELS_GROUP_KIND
from instructor_outline.symbols import Range

if TYPE_CHECKING:
    from instructor_outline.outline_tree import OutlineItem
    from instructor_outline.session import OutlineSession


def range_to_dict(rng: Range | None) -> dict[str, int] | None:
    if rng is None:
        return None
    return {
        "start_line": rng.start.line,
        "start_character": rng.start.character,
        "end_line": rng.end.line,
        "end_character": rng.end.character,
    }


def item_to_dict(item: OutlineItem) -> dict[str, Any]:
    return {
        "label_text": item.label_text,
        "kind": item.kind,
        "label": item.label,
        "display_label": item.display_label,
        "description": item.description,
        "collapse": item.collapse,
        "range": range_to_dict(item.range),
        "flag": (
            {
                "section": item.flag.section,
                "name": item.flag.name,
                "color": item.flag.color,
                "purpose": item.flag.purpose,
            }
            if item.flag is not None else None
        ),
    }


def outline_to_dict(session: OutlineSession) -> dict[str, Any]:
    """Serialize what the view shows under the current filters.

    A name already expanded higher up in the same path is emitted without
    children, so colliding names cannot recurse forever.
    """

    def visit(item: OutlineItem, path: frozenset[str]) -> dict[str, Any]:
        out = item_to_dict(item)
        if item.kind == LABELS_GROUP_KIND or item.label_text in path:
            out["children"] = []
            return out
        inner = path | {item.label_text}
        out["children"] = [visit(child, inner) for child in session.get_children(item)]
        return out

    roots = session.get_root_items()
    group = next((r for r in roots if r.kind == LABELS_GROUP_KIND), None)
    return {
        "title": session.view_title,
        "uri": session.document.uri if session.document is not None else None,
        "filters": sorted(session.active_filter_labels),
        "labels": (
            {
                "description": group.description,
                "rows": [
                    {"label": row.label, "active": row.filter_active, "description": row.description}
                    for row in session.get_children(group)
                ],
            }
            if group is not None else None
        ),
        "items": [visit(item, frozenset()) for item in roots if item.kind != LABELS_GROUP_KIND],
    }
