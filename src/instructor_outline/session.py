"""Outline session: owns the stores and keeps the outline in sync.

One ``OutlineSession`` serves one editor host. The label store, flags,
bundled sections and filters live here for the session's lifetime and
survive every rebuild; the outline tree, placeholder entries and
annotation-line set are derived state, rebuilt from scratch whenever the
document opens, changes, or the active document switches.

Handlers are coroutines driven by a single event loop. The only
suspension points are the host's symbol lookup and text edit, so state
mutated between awaits is never observed half-written. A rebuild that is
overtaken by a newer one while awaiting symbols discards its results.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from instructor_outline.aggregation import LABELS_GROUP_KIND, filter_items, items_with_label
from instructor_outline.annotations import (
    Dialect,
    annotation_line_numbers,
    dialects_for_language,
    is_inside_html_script,
    preferred_dialect,
    scan_annotations,
)
from instructor_outline.config import OutlineConfig
from instructor_outline.host import EditorHost, TextDocument
from instructor_outline.labels import Label, coerce_label
from instructor_outline.outline_tree import (
    OutlineItem,
    OutlineTree,
    build_labels_group,
    build_outline_tree,
)
from instructor_outline.resolver import PlaceholderEntry, resolve_markers
from instructor_outline.rewriter import plan_annotation_edit, to_text_edit
from instructor_outline.store import (
    BundledSections,
    Flag,
    FilterState,
    FlagRegistry,
    LabelStore,
)
from instructor_outline.symbols import (
    FlatSymbol,
    Range,
    Symbol,
    compute_line_starts,
    flatten_symbols,
    symbol_key,
)

log = logging.getLogger(__name__)


class OutlineSession:
    """Instructor outline over the host's active document."""

    def __init__(self, host: EditorHost, config: OutlineConfig | None = None) -> None:
        self.host = host
        self.config = config or OutlineConfig()
        self.store = LabelStore()
        self.flags = FlagRegistry()
        self.bundled = BundledSections()
        self.filters = FilterState()
        self.tree = OutlineTree()
        self.placeholders: list[PlaceholderEntry] = []
        self.annotation_lines: set[int] = set()
        self._document: TextDocument | None = None
        self._symbols: list[Symbol] = []
        self._generation = 0

    # ------------------------------------------------------------------
    # Rebuild
    # ------------------------------------------------------------------

    async def rebuild(self) -> None:
        """Re-derive the outline from the host's active document."""
        self._generation += 1
        generation = self._generation
        doc = self.host.active_document()
        if doc is None:
            log.debug("No active document; clearing outline")
            self._document = None
            self._symbols = []
            self.placeholders = []
            self.annotation_lines = set()
            self.tree.clear()
            self.host.notify_view_changed()
            return

        try:
            symbols = list(await self.host.resolve_symbol_tree(doc) or [])
        except Exception:
            log.exception("Symbol lookup failed for %s; treating as no symbols", doc.uri)
            symbols = []
        if generation != self._generation:
            log.debug("Rebuild for %s superseded; dropping results", doc.uri)
            return

        self.store.begin_rebuild()
        annotation_lines = annotation_line_numbers(doc.text)
        flat = flatten_symbols(symbols)
        dialects = dialects_for_language(doc.language_id, self.config.language_dialects)
        try:
            markers = list(scan_annotations(doc.text, doc.language_id, dialects=dialects))
        except (ValueError, re.error):
            log.exception("Annotation scan failed for %s; treating as unannotated", doc.uri)
            markers = []

        resolved = resolve_markers(
            markers,
            flat,
            compute_line_starts(doc.text),
            skip_lines=annotation_lines,
            placeholder_prefix=self.config.placeholder_prefix,
        )
        ranges = {symbol_key(f.symbol): f.symbol.range for f in flat}
        for assignment in resolved.assignments:
            self.store.set_label(assignment.owner, assignment.label)
            self.store.set_range(assignment.owner, ranges[assignment.owner])
        for entry in resolved.placeholders:
            self.store.set_label(entry.key, entry.label)
            self.store.set_range(entry.key, entry.range)

        self._document = doc
        self._symbols = symbols
        self.placeholders = resolved.placeholders
        self.annotation_lines = annotation_lines
        self._build_tree()
        log.debug(
            "Rebuilt outline for %s: %d symbols, %d markers, %d placeholders",
            doc.uri, len(flat), len(markers), len(resolved.placeholders),
        )
        self.host.notify_view_changed()

    def _build_tree(self) -> None:
        self.tree = build_outline_tree(
            self._symbols,
            store=self.store,
            placeholders=self.placeholders,
            annotation_lines=self.annotation_lines,
            bundled=self.bundled,
            flags=self.flags,
            glyphs=self.config.label_glyphs,
        )

    def _refresh(self) -> None:
        """Rebuild the tree from cached symbols after a store-only change."""
        if self._document is not None:
            self._build_tree()
        self.host.notify_view_changed()

    async def on_document_opened(self) -> None:
        await self.rebuild()

    async def on_document_changed(self) -> None:
        await self.rebuild()

    async def on_active_document_changed(self) -> None:
        await self.rebuild()

    async def sync(self) -> None:
        """Manual resync."""
        await self.rebuild()

    # ------------------------------------------------------------------
    # Tree access
    # ------------------------------------------------------------------

    @property
    def document(self) -> TextDocument | None:
        return self._document

    def labels_group(self) -> OutlineItem:
        return build_labels_group(
            self.tree,
            self.filters.labels,
            group_name=self.config.labels_group_name,
            glyphs=self.config.label_glyphs,
        )

    def get_root_items(self) -> list[OutlineItem]:
        """Labels group followed by the (filtered) top-level items."""
        if self._document is None:
            return []
        roots = filter_items(self.tree.roots, self.tree.children, self.filters.labels)
        return [self.labels_group(), *roots]

    @property
    def root_items(self) -> list[OutlineItem]:
        return self.get_root_items()

    def get_children(self, item: OutlineItem | None = None) -> list[OutlineItem]:
        if item is None:
            return self.get_root_items()
        children = self.tree.children_of(item)
        if item.kind == LABELS_GROUP_KIND:
            return children
        return filter_items(children, self.tree.children, self.filters.labels)

    def get_parent(self, item: OutlineItem) -> OutlineItem | None:
        return self.tree.parent_of(item)

    def items_by_label(self, label: Label) -> list[OutlineItem]:
        return items_with_label(self.tree.roots, self.tree.children, coerce_label(label))

    def fold_targets(self, label: Label) -> list[Range]:
        """Ranges of every item carrying ``label``, for host fold/unfold commands."""
        return [item.range for item in self.items_by_label(label) if item.range is not None]

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def _candidates(self) -> list[FlatSymbol]:
        return [
            f for f in flatten_symbols(self._symbols)
            if f.start_line not in self.annotation_lines
        ]

    def _find_symbol(self, name: str, cursor_line: int | None) -> Symbol | None:
        matches = [f for f in self._candidates() if f.name == name]
        if not matches:
            return None
        if cursor_line is not None:
            # innermost match under the cursor
            under_cursor = [f for f in matches if f.symbol.range.contains_line(cursor_line)]
            if under_cursor:
                return max(under_cursor, key=lambda f: f.depth).symbol
        return matches[0].symbol

    def _dialect_for(self, doc: TextDocument, line: int) -> Dialect:
        starts = compute_line_starts(doc.text)
        offset = starts[line] if line < len(starts) else len(doc.text)
        if is_inside_html_script(doc.text, offset, doc.language_id):
            return "line"
        return preferred_dialect(
            doc.language_id, self.config.default_dialect, self.config.language_dialects,
        )

    async def set_label(self, symbol_name: str, label: Label) -> bool:
        """Label a symbol by rewriting its annotation line.

        Placeholders and names with no symbol behind them carry a manual
        label instead. Returns False, with the store untouched, when the
        host rejects the edit.
        """
        label = coerce_label(label)
        if any(p.display_name == symbol_name for p in self.placeholders):
            self.store.set_label(symbol_name, label)
            self._refresh()
            return True

        await self.rebuild()
        doc = self._document
        target = self._find_symbol(symbol_name, doc.cursor_line) if doc is not None else None
        if doc is None or target is None:
            new = self.store.toggle_manual(symbol_name, label)
            log.debug("No symbol named %r; manual label now %s", symbol_name, new)
            self._refresh()
            return True

        lines = doc.lines()
        edit = plan_annotation_edit(
            lines,
            target.start_line,
            label,
            dialect=self._dialect_for(doc, target.start_line),
            max_lookback=self.config.max_lookback,
        )
        if edit is not None:
            ok = await self.host.apply_text_edit(doc, to_text_edit(edit, lines))
            if not ok:
                log.warning(
                    "Edit rejected while labelling %r as %s in %s", symbol_name, label, doc.uri,
                )
                return False
        # the document now states the label; a name-only entry would shadow it
        self.store.clear_manual(target.name)
        key = symbol_key(target)
        self.store.set_label(key, label)
        self.store.set_range(key, target.range)
        await self.rebuild()
        return True

    async def apply_label_to_target(self, label: Label, section_name: str) -> bool:
        """Label a section by name, if the outline knows where it is."""
        item = self.tree.find_by_name(section_name, kinds=("symbol", "placeholder", "bundled"))
        if item is None or item.range is None:
            log.debug("No ranged outline item named %r", section_name)
            return False
        return await self.set_label(section_name, label)

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    def add_flag(
        self,
        section: str,
        name: str,
        color: str | None = None,
        purpose: Label | None = None,
    ) -> Flag:
        flag = Flag(
            section,
            name,
            color or self.config.flag_color,
            coerce_label(purpose) if purpose is not None else None,
        )
        self.flags.set_flag(flag)
        self._refresh()
        return flag

    def toggle_flag_state(self, name: str, purpose: Label | None = None) -> int:
        touched = self.flags.toggle_purpose(
            name, coerce_label(purpose) if purpose is not None else None,
        )
        self._refresh()
        return touched

    def bulk_toggle_flags(self, purpose: Label) -> None:
        self.flags.set_all_purposes(coerce_label(purpose))
        self._refresh()

    def filter_flags(self) -> None:
        self.filters.flags_only()
        self._refresh()

    # ------------------------------------------------------------------
    # Bundles and filters
    # ------------------------------------------------------------------

    def add_bundled_section(self, label: str, parent_label: str | None = None) -> None:
        self.bundled.add(label, parent_label)
        self._refresh()

    def set_filter_labels(self, labels: Iterable[str]) -> None:
        self.filters.set(coerce_label(label) for label in labels)
        self._refresh()

    def toggle_label_filter(self, label: Label) -> bool:
        active = self.filters.toggle(coerce_label(label))
        self._refresh()
        return active

    def clear_filter(self) -> None:
        self.filters.clear()
        self._refresh()

    def toggle_all_filters(self) -> None:
        self.filters.toggle_all()
        self._refresh()

    @property
    def active_filter_labels(self) -> frozenset[Label]:
        return self.filters.labels

    @property
    def view_title(self) -> str:
        title = self.config.view_title
        return f"{title} (Filtered)" if self.filters.active else title

    def reset(self) -> None:
        """Forget every label, flag, bundle and filter."""
        self.store.reset()
        self.flags.clear()
        self.bundled.clear()
        self.filters = FilterState()
        self._refresh()

