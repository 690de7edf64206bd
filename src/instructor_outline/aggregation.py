"""Label aggregation and filter matching over the outline adjacency map.

The outline keeps children in a ``parent name -> children`` map, so two
items sharing a name share a child list and a name can, by collision, end
up beneath itself. Every traversal here walks an explicit stack and
expands each name at most once; a repeated name truncates the walk
instead of looping.
"""
from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Collection, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

from instructor_outline.labels import ALL_LABELS, NORMAL, Label

if TYPE_CHECKING:
    from instructor_outline.outline_tree import OutlineItem

type ChildrenMap = Mapping[str, Sequence[OutlineItem]]

LABELS_GROUP_KIND = "labels_group"
MIRROR_KINDS = frozenset({"flag", "bundled"})


def count_descendant_labels(children: ChildrenMap, name: str) -> Counter[Label]:
    """Count display labels of every descendant of ``name``.

    Normal is counted too; callers drop it when rendering a summary.
    """
    counts: Counter[Label] = Counter()
    visited = {name}
    stack = [name]
    while stack:
        current = stack.pop()
        for child in children.get(current, ()):
            counts[child.display_label] += 1
            if child.label_text not in visited and children.get(child.label_text):
                visited.add(child.label_text)
                stack.append(child.label_text)
    return counts


def summarize_counts(counts: Mapping[Label, int], glyphs: Mapping[str, str]) -> str:
    """Compact ``glyph+count`` summary, Normal excluded: ``"🙈2 🔒1"``."""
    parts = [
        f"{glyphs.get(label) or label}{counts[label]}"
        for label in ALL_LABELS
        if label != NORMAL and counts.get(label, 0) > 0
    ]
    return " ".join(parts)


def item_matches_filter(item: OutlineItem, filters: Collection[Label]) -> bool:
    """Own label in the set; a flag also satisfies the Flagged criterion."""
    return any(item.carries(label) for label in filters)


def _branch_any(
    item: OutlineItem,
    children: ChildrenMap,
    predicate: Callable[[OutlineItem], bool],
) -> bool:
    visited: set[str] = set()
    stack = [item]
    while stack:
        node = stack.pop()
        if predicate(node):
            return True
        if node.label_text in visited:
            continue
        visited.add(node.label_text)
        stack.extend(children.get(node.label_text, ()))
    return False


def branch_matches_filter(
    item: OutlineItem,
    children: ChildrenMap,
    filters: Collection[Label],
) -> bool:
    """True if the item or any descendant matches the active filters."""
    if not filters:
        return False
    return _branch_any(item, children, lambda node: item_matches_filter(node, filters))


def branch_has_label(item: OutlineItem, children: ChildrenMap, label: Label) -> bool:
    return _branch_any(item, children, lambda node: node.carries(label))


def _labelled_names(item: OutlineItem, children: ChildrenMap, label: Label) -> set[str]:
    names: set[str] = set()
    visited: set[str] = set()
    stack = [item]
    while stack:
        node = stack.pop()
        if node.carries(label):
            names.add(node.label_text)
        if node.label_text in visited:
            continue
        visited.add(node.label_text)
        stack.extend(children.get(node.label_text, ()))
    return names


def count_top_level_branches_with_label(
    roots: Iterable[OutlineItem],
    children: ChildrenMap,
    label: Label,
) -> int:
    """Number of top-level branches holding at least one ``label`` item.

    Counts branches, not occurrences: three Hidden items nested under one
    root contribute 1. Flag and bundled roots mirror a section by name, so
    they count only when no symbol branch already holds that section.
    """
    count = 0
    seen: set[str] = set()
    mirrors: list[OutlineItem] = []
    for root in roots:
        if root.kind == LABELS_GROUP_KIND:
            continue
        if root.kind in MIRROR_KINDS:
            mirrors.append(root)
            continue
        names = _labelled_names(root, children, label)
        if names:
            count += 1
            seen |= names
    for root in mirrors:
        names = _labelled_names(root, children, label)
        if names and not names <= seen:
            count += 1
            seen |= names
    return count


def items_with_label(
    roots: Iterable[OutlineItem],
    children: ChildrenMap,
    label: Label,
) -> list[OutlineItem]:
    """Every item carrying ``label``, in pre-order."""
    found: list[OutlineItem] = []
    visited: set[str] = set()
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        if node.kind == LABELS_GROUP_KIND:
            continue
        if node.carries(label):
            found.append(node)
        if node.label_text in visited:
            continue
        visited.add(node.label_text)
        stack.extend(reversed(children.get(node.label_text, ())))
    return found


def filter_items(
    items: Iterable[OutlineItem],
    children: ChildrenMap,
    filters: Collection[Label],
) -> list[OutlineItem]:
    """Keep items whose branch matches; the labels group always stays."""
    if not filters:
        return list(items)
    return [
        item for item in items
        if item.kind == LABELS_GROUP_KIND or branch_matches_filter(item, children, filters)
    ]
