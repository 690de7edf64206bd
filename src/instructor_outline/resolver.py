"""Assign annotation markers to the symbols they label.

Each marker at line L belongs to the symbol with the smallest non-negative
``start_line - L`` (the nearest following symbol). When nothing starts at
or after L the marker labels commented-out or orphaned code, so a
placeholder entry is synthesized and parented to:

  1. the first symbol whose range encloses L, else
  2. the nearest preceding symbol by start line, else
  3. nothing (a top-level orphan).

Ties on distance go to the shallower symbol, then to the earlier one in
pre-order. Cost is O(markers x symbols), bounded by one document.
"""
from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass, field

from instructor_outline.annotations import AnnotationMarker
from instructor_outline.labels import Label
from instructor_outline.symbols import (
    FlatSymbol,
    Position,
    Range,
    SymbolKey,
    position_for_offset,
    symbol_key,
)

DEFAULT_PLACEHOLDER_PREFIX = "Commented: "


@dataclass(frozen=True, slots=True)
class PlaceholderKey:
    """Synthetic identity for a placeholder: marker line plus raw token."""

    line: int
    token: str

    def __str__(self) -> str:
        return f"__commented__{self.line}@@{self.token}"


@dataclass(frozen=True, slots=True)
class PlaceholderEntry:
    """A labelled marker with no following symbol (commented-out region)."""

    key: PlaceholderKey
    display_name: str
    label: Label
    range: Range                # zero-width at the marker
    parent_name: str | None

    @property
    def line(self) -> int:
        return self.range.start.line


@dataclass(frozen=True, slots=True)
class MarkerAssignment:
    """A marker resolved onto its owning symbol."""

    owner: SymbolKey
    label: Label
    marker_range: Range
    marker_line: int


@dataclass(slots=True)
class ResolvedAnnotations:
    assignments: list[MarkerAssignment] = field(default_factory=list)
    placeholders: list[PlaceholderEntry] = field(default_factory=list)

    def labels_by_owner(self) -> dict[SymbolKey, Label]:
        """Owner -> label; later markers override earlier ones."""
        return {a.owner: a.label for a in self.assignments}


def find_owner(
    line: int,
    candidates: Sequence[FlatSymbol],
) -> FlatSymbol | None:
    """Nearest symbol starting at or after ``line``."""
    best: FlatSymbol | None = None
    best_rank: tuple[int, int, int] | None = None
    for sym in candidates:
        delta = sym.start_line - line
        if delta < 0:
            continue
        rank = (delta, sym.depth, sym.index)
        if best_rank is None or rank < best_rank:
            best, best_rank = sym, rank
    return best


def find_placeholder_parent(
    line: int,
    candidates: Sequence[FlatSymbol],
) -> FlatSymbol | None:
    """Enclosing symbol for ``line``, else the nearest preceding one."""
    for sym in candidates:
        if sym.start_line <= line <= sym.end_line:
            return sym
    best: FlatSymbol | None = None
    for sym in candidates:
        if sym.start_line > line:
            continue
        if best is None or sym.start_line > best.start_line:
            best = sym
    return best


def resolve_markers(
    markers: Iterable[AnnotationMarker],
    flat_symbols: Sequence[FlatSymbol],
    line_starts: list[int],
    *,
    skip_lines: Collection[int] = (),
    placeholder_prefix: str = DEFAULT_PLACEHOLDER_PREFIX,
) -> ResolvedAnnotations:
    """Resolve every marker onto a symbol or a placeholder entry.

    Symbols that start on a line in ``skip_lines`` (bare annotation lines
    that a symbol service reported as symbols) are never owners or parents.
    """
    candidates = [s for s in flat_symbols if s.start_line not in skip_lines]
    resolved = ResolvedAnnotations()
    for marker in markers:
        pos: Position = position_for_offset(line_starts, marker.offset)
        marker_range = Range.point(pos)
        owner = find_owner(pos.line, candidates)
        if owner is not None:
            resolved.assignments.append(
                MarkerAssignment(symbol_key(owner.symbol), marker.label, marker_range, pos.line)
            )
            continue
        parent = find_placeholder_parent(pos.line, candidates)
        resolved.placeholders.append(
            PlaceholderEntry(
                key=PlaceholderKey(pos.line, marker.token),
                display_name=f"{placeholder_prefix}{marker.token}",
                label=marker.label,
                range=marker_range,
                parent_name=parent.name if parent is not None else None,
            )
        )
    return resolved
