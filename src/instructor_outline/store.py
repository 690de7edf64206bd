"""In-memory label, flag, bundle and filter state.

These stores belong to one outline session and outlive every rebuild of
the derived tree. Entries derived from document annotations are keyed by
``(name, start_line)`` or by a placeholder key and are dropped at the start
of each rebuild (the rescan puts them back). Entries keyed by bare name are
manual overrides for items the document cannot carry an annotation for,
and persist until ``reset()``.

All operations are total: unknown keys read as Normal / absent.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace

from instructor_outline.labels import ALL_LABELS, MARKER_LABELS, NORMAL, Label
from instructor_outline.resolver import PlaceholderKey
from instructor_outline.symbols import Range, SymbolKey

type StoreKey = SymbolKey | PlaceholderKey | str

ROOT_BUNDLE = "root"


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


class LabelStore:
    """Symbol identity -> label, plus the marker range that produced it."""

    def __init__(self) -> None:
        self._labels: dict[StoreKey, Label] = {}
        self._ranges: dict[StoreKey, Range] = {}

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, key: object) -> bool:
        return key in self._labels

    def set_label(self, key: StoreKey, label: Label) -> None:
        self._labels[key] = label

    def get_label(self, key: StoreKey) -> Label:
        return self._labels.get(key, NORMAL)

    def set_range(self, key: StoreKey, rng: Range) -> None:
        self._ranges[key] = rng

    def get_range(self, key: StoreKey) -> Range | None:
        return self._ranges.get(key)

    def lookup(self, name: str, start_line: int | None = None) -> Label:
        """Label for a symbol: range-keyed entry first, then the name alone."""
        if start_line is not None:
            keyed = self._labels.get((name, start_line))
            if keyed is not None:
                return keyed
        return self._labels.get(name, NORMAL)

    def manual_label(self, name: str) -> Label | None:
        return self._labels.get(name)

    def toggle_manual(self, name: str, label: Label) -> Label:
        """Set a name-only label, or reset it to Normal if already set."""
        new = NORMAL if self._labels.get(name) == label else label
        self._labels[name] = new
        return new

    def clear_manual(self, name: str) -> None:
        self._labels.pop(name, None)
        self._ranges.pop(name, None)

    def begin_rebuild(self) -> None:
        """Drop document-derived entries; manual name-only entries survive."""
        self._labels = {k: v for k, v in self._labels.items() if isinstance(k, str)}
        self._ranges = {k: v for k, v in self._ranges.items() if isinstance(k, str)}

    def reset(self) -> None:
        self._labels.clear()
        self._ranges.clear()


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Flag:
    """A named flag attached to a section. At most one per section."""

    section: str
    name: str
    color: str
    purpose: Label | None = None


class FlagRegistry:
    """Ordered flags keyed by section name (last write wins per section)."""

    def __init__(self) -> None:
        self._flags: list[Flag] = []

    def __iter__(self) -> Iterator[Flag]:
        return iter(list(self._flags))

    def __len__(self) -> int:
        return len(self._flags)

    def set_flag(self, flag: Flag) -> None:
        for i, existing in enumerate(self._flags):
            if existing.section == flag.section:
                self._flags[i] = flag
                return
        self._flags.append(flag)

    def flag_for(self, section: str) -> Flag | None:
        for flag in self._flags:
            if flag.section == section:
                return flag
        return None

    def toggle_purpose(self, name: str, purpose: Label | None = None) -> int:
        """Set the purpose of every flag called ``name``.

        Without an explicit purpose, Blocked flips to Normal and anything
        else flips to Blocked. Returns the number of flags touched.
        """
        touched = 0
        for i, flag in enumerate(self._flags):
            if flag.name != name:
                continue
            new_purpose = purpose or ("Normal" if flag.purpose == "Blocked" else "Blocked")
            self._flags[i] = replace(flag, purpose=new_purpose)
            touched += 1
        return touched

    def set_all_purposes(self, purpose: Label) -> None:
        self._flags = [replace(f, purpose=purpose) for f in self._flags]

    def remove(self, section: str) -> bool:
        before = len(self._flags)
        self._flags = [f for f in self._flags if f.section != section]
        return len(self._flags) != before

    def clear(self) -> None:
        self._flags.clear()


# ---------------------------------------------------------------------------
# Bundled sections
# ---------------------------------------------------------------------------


class BundledSections:
    """User-made groupings: parent label -> ordered child labels.

    The reserved parent ``"root"`` places children at the top level.
    """

    def __init__(self) -> None:
        self._groups: dict[str, list[str]] = {}

    def add(self, label: str, parent: str | None = None) -> None:
        self._groups.setdefault(parent or ROOT_BUNDLE, []).append(label)

    def children_of(self, parent: str) -> list[str]:
        return list(self._groups.get(parent, []))

    def roots(self) -> list[str]:
        return self.children_of(ROOT_BUNDLE)

    def parents(self) -> list[str]:
        return [p for p in self._groups if p != ROOT_BUNDLE]

    def clear(self) -> None:
        self._groups.clear()


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class FilterState:
    """Active filter labels. Empty means no filtering.

    ``toggle_all`` remembers the last non-empty selection so switching
    filtering off and on again restores it.
    """

    def __init__(self) -> None:
        self._labels: set[Label] = set()
        self._previous: tuple[Label, ...] = ()

    @property
    def labels(self) -> frozenset[Label]:
        return frozenset(self._labels)

    @property
    def active(self) -> bool:
        return bool(self._labels)

    def __contains__(self, label: object) -> bool:
        return label in self._labels

    def set(self, labels: Iterable[Label]) -> None:
        self._labels = set(labels)

    def clear(self) -> None:
        self._labels.clear()

    def toggle(self, label: Label) -> bool:
        """Flip one label; returns True if it is now active."""
        if label in self._labels:
            self._labels.discard(label)
            return False
        self._labels.add(label)
        return True

    def toggle_all(self) -> None:
        if self._labels:
            self._previous = tuple(sorted(self._labels, key=ALL_LABELS.index))
            self._labels.clear()
            return
        self._labels = set(self._previous or MARKER_LABELS)

    def flags_only(self) -> None:
        self._labels = {"Flagged"}
