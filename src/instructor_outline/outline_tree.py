"""Outline tree builder.

Merges the external symbol tree with resolved annotations and the
session's stores into presentation items. Build order:

  1. walk symbols into a ``parent name -> children`` map with back-references
  2. resolve each symbol's label (range key, then bare-name fallback)
  3. drop symbols sitting on a bare annotation line, lifting their children
  4. splice placeholder entries under their parent or among the roots
  5. append bundled sections and flag entries as extra roots
  6. compute collapse state and per-branch summary descriptions

The virtual "Labels" group depends on the active filters, which change
without a rebuild, so it is synthesized per request by
``build_labels_group``.
"""
from __future__ import annotations

import itertools
from collections.abc import Collection, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal

from instructor_outline.aggregation import (
    LABELS_GROUP_KIND,
    count_descendant_labels,
    count_top_level_branches_with_label,
    summarize_counts,
)
from instructor_outline.labels import FLAGGED, MARKER_LABELS, NORMAL, Label
from instructor_outline.resolver import PlaceholderEntry
from instructor_outline.store import BundledSections, Flag, FlagRegistry, LabelStore
from instructor_outline.symbols import Range, Symbol, SymbolKey, symbol_key

type CollapseState = Literal["none", "collapsed", "expanded"]
type ItemKind = Literal[
    "symbol", "placeholder", "bundled", "flag", "labels_group", "label_row",
]

CHECKED = "☑"
UNCHECKED = "☐"

DEFAULT_GLYPHS: dict[str, str] = {
    "Hidden": "🙈",
    "Locked": "🔒",
    "Blocked": "🚫",
    "Governed": "📜",
    "Sectioned": "📁",
    "Flagged": "🚩",
}


@dataclass(slots=True, eq=False)
class OutlineItem:
    """One row of the outline view. Identity, not value, distinguishes rows."""

    label_text: str
    label: Label = NORMAL
    range: Range | None = None
    flag: Flag | None = None
    collapse: CollapseState = "none"
    kind: ItemKind = "symbol"
    item_id: str = ""
    description: str | None = None
    symbol_key: SymbolKey | None = None
    filter_active: bool = False

    @property
    def display_label(self) -> Label:
        """A flag takes precedence over any stored label."""
        return FLAGGED if self.flag is not None else self.label

    @property
    def start_line(self) -> int | None:
        return self.range.start.line if self.range is not None else None

    @property
    def is_collapsible(self) -> bool:
        return self.collapse != "none"

    def carries(self, label: Label) -> bool:
        return self.label == label or (label == FLAGGED and self.flag is not None)

    def __repr__(self) -> str:
        return f"OutlineItem({self.label_text!r}, {self.display_label}, line={self.start_line})"


@dataclass(slots=True)
class OutlineTree:
    """Roots plus the name-keyed child map and child -> parent references."""

    roots: list[OutlineItem] = field(default_factory=list)
    children: dict[str, list[OutlineItem]] = field(default_factory=dict)
    parents: dict[str, OutlineItem] = field(default_factory=dict)
    label_rows: list[OutlineItem] = field(default_factory=list)

    def attach(self, item: OutlineItem, parent: OutlineItem | None) -> None:
        if parent is None:
            self.roots.append(item)
            return
        self.children.setdefault(parent.label_text, []).append(item)
        self.parents[item.item_id] = parent

    def children_of(self, item: OutlineItem) -> list[OutlineItem]:
        if item.kind == LABELS_GROUP_KIND:
            return list(self.label_rows)
        return list(self.children.get(item.label_text, []))

    def parent_of(self, item: OutlineItem) -> OutlineItem | None:
        return self.parents.get(item.item_id)

    def iter_items(self) -> Iterator[OutlineItem]:
        """Pre-order walk; each name is expanded once."""
        expanded: set[str] = set()
        stack = list(reversed(self.roots))
        while stack:
            item = stack.pop()
            yield item
            if item.label_text in expanded:
                continue
            expanded.add(item.label_text)
            stack.extend(reversed(self.children.get(item.label_text, [])))

    def find_by_name(
        self,
        name: str,
        *,
        kinds: Collection[ItemKind] | None = None,
    ) -> OutlineItem | None:
        for item in self.iter_items():
            if item.label_text == name and (kinds is None or item.kind in kinds):
                return item
        return None

    def clear(self) -> None:
        self.roots.clear()
        self.children.clear()
        self.parents.clear()
        self.label_rows.clear()


def _same_entry(a: OutlineItem, b: OutlineItem) -> bool:
    return a.label_text == b.label_text and a.start_line == b.start_line


def _describe(
    item: OutlineItem,
    children: Mapping[str, Sequence[OutlineItem]],
    glyphs: Mapping[str, str],
) -> str | None:
    if item.flag is not None:
        desc = f"{glyphs.get(FLAGGED, '')} Flagged: {item.flag.name}".strip()
    elif item.label != NORMAL:
        desc = f"{glyphs.get(item.label, '')} {item.label}".strip()
    else:
        desc = ""
    if item.flag is None and item.is_collapsible:
        summary = summarize_counts(count_descendant_labels(children, item.label_text), glyphs)
        if summary:
            desc = f"{desc} {summary}" if desc else summary
    return desc or None


def build_outline_tree(
    symbols: Sequence[Symbol],
    *,
    store: LabelStore,
    placeholders: Sequence[PlaceholderEntry] = (),
    annotation_lines: Collection[int] = (),
    bundled: BundledSections | None = None,
    flags: FlagRegistry | None = None,
    glyphs: Mapping[str, str] | None = None,
) -> OutlineTree:
    """Build the labelled outline for one document snapshot."""
    glyphs = DEFAULT_GLYPHS if glyphs is None else glyphs
    tree = OutlineTree()
    counter = itertools.count(1)

    def new_id(kind: str) -> str:
        return f"{kind}-{next(counter)}"

    # 1-3. symbols, labels, annotation-line filtering
    stack: list[tuple[Symbol, OutlineItem | None]] = [
        (sym, None) for sym in reversed(symbols)
    ]
    while stack:
        sym, parent = stack.pop()
        if sym.start_line in annotation_lines:
            stack.extend((child, parent) for child in reversed(sym.children))
            continue
        item = OutlineItem(
            label_text=sym.name,
            label=store.lookup(sym.name, sym.start_line),
            range=sym.range,
            kind="symbol",
            item_id=new_id("symbol"),
            symbol_key=symbol_key(sym),
        )
        tree.attach(item, parent)
        stack.extend((child, item) for child in reversed(sym.children))

    # 4. placeholders
    for entry in placeholders:
        item = OutlineItem(
            label_text=entry.display_name,
            label=store.manual_label(entry.display_name) or entry.label,
            range=entry.range,
            kind="placeholder",
            item_id=new_id("placeholder"),
        )
        parent = (
            tree.find_by_name(entry.parent_name, kinds=("symbol",))
            if entry.parent_name else None
        )
        if parent is not None:
            siblings = tree.children.get(parent.label_text, [])
            if not any(_same_entry(s, item) for s in siblings):
                tree.attach(item, parent)
            continue
        if any(_same_entry(r, item) for r in tree.roots):
            continue
        for i, root in enumerate(tree.roots):
            if root.start_line is not None and root.start_line > entry.line:
                tree.roots.insert(i, item)
                break
        else:
            tree.roots.append(item)

    # 5. bundled sections and flags
    if bundled is not None:
        for name in bundled.roots():
            if any(r.label_text == name and r.kind == "bundled" for r in tree.roots):
                continue
            tree.roots.append(_bundled_item(tree, store, name, new_id("bundled")))
        for parent_name in bundled.parents():
            parent = tree.find_by_name(parent_name)
            for name in bundled.children_of(parent_name):
                siblings = tree.children.get(parent_name, [])
                if any(s.label_text == name for s in siblings):
                    continue
                child = _bundled_item(tree, store, name, new_id("bundled"))
                tree.children.setdefault(parent_name, []).append(child)
                if parent is not None:
                    tree.parents[child.item_id] = parent
    if flags is not None:
        for flag in flags:
            for item in tree.iter_items():
                if item.kind == "symbol" and item.label_text == flag.section:
                    item.flag = flag
            tree.roots.append(
                OutlineItem(
                    label_text=flag.section,
                    label=FLAGGED,
                    flag=flag,
                    kind="flag",
                    item_id=new_id("flag"),
                )
            )

    # 6. collapse state and descriptions, once the structure is final
    for item in tree.iter_items():
        item.collapse = "collapsed" if tree.children.get(item.label_text) else "none"
    for item in tree.iter_items():
        item.description = _describe(item, tree.children, glyphs)
    return tree


def _bundled_item(
    tree: OutlineTree,
    store: LabelStore,
    name: str,
    item_id: str,
) -> OutlineItem:
    source = tree.find_by_name(name, kinds=("symbol", "placeholder"))
    if source is not None:
        return OutlineItem(
            label_text=name,
            label=source.label,
            range=source.range,
            kind="bundled",
            item_id=item_id,
            symbol_key=source.symbol_key,
        )
    return OutlineItem(
        label_text=name,
        label=store.lookup(name),
        kind="bundled",
        item_id=item_id,
    )


def build_labels_group(
    tree: OutlineTree,
    filters: Collection[Label],
    *,
    group_name: str = "Labels",
    glyphs: Mapping[str, str] | None = None,
) -> OutlineItem:
    """Synthesize the "Labels" group and its per-label filter rows.

    Each row shows whether its label is an active filter and how many
    top-level branches carry it; the group lists nonzero counts only.
    """
    glyphs = DEFAULT_GLYPHS if glyphs is None else glyphs
    group = OutlineItem(
        label_text=group_name,
        collapse="collapsed",
        kind="labels_group",
        item_id="labels-group",
        filter_active=bool(filters),
    )
    rows: list[OutlineItem] = []
    parts: list[str] = []
    for label in MARKER_LABELS:
        count = count_top_level_branches_with_label(tree.roots, tree.children, label)
        active = label in filters
        rows.append(
            OutlineItem(
                label_text=label,
                label=label,
                kind="label_row",
                item_id=f"label-row-{label}",
                description=f"{CHECKED if active else UNCHECKED} {label} ({count})",
                filter_active=active,
            )
        )
        if count > 0:
            parts.append(f"{glyphs.get(label) or label}{count}")
    group.description = f"{CHECKED if filters else UNCHECKED} {', '.join(parts)}".rstrip()
    tree.label_rows = rows
    for row in rows:
        tree.parents[row.item_id] = group
    return group
