"""Document symbols, positions, and the symbol tree normalizer.

The symbol tree is produced by an external language-analysis service; this
module only models it and flattens it for scanning:

- ``Position`` / ``Range`` -- 0-based line/character coordinates.
- ``Symbol`` -- a named region with nested children (read-only input).
- ``flatten_symbols`` -- pre-order flattening with parent and depth kept.
- ``symbols_from_payload`` -- lenient decoding of the service's JSON.
- line-start helpers for converting character offsets to positions.
"""
from __future__ import annotations

import bisect
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

type SymbolKey = tuple[str, int]


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True, order=True)
class Position:
    """A 0-based line/character position in a document."""

    line: int
    character: int = 0

    def __post_init__(self) -> None:
        if self.line < 0 or self.character < 0:
            raise ValueError(
                f"Position must be non-negative, got ({self.line}, {self.character})",
            )


@dataclass(frozen=True, slots=True)
class Range:
    """A half-open document range between two positions."""

    start: Position
    end: Position

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Range end {self.end} precedes start {self.start}")

    @classmethod
    def point(cls, pos: Position) -> Range:
        """Zero-width range at ``pos``."""
        return cls(pos, pos)

    @classmethod
    def lines(cls, start_line: int, end_line: int) -> Range:
        return cls(Position(start_line), Position(end_line))

    def contains_line(self, line: int) -> bool:
        return self.start.line <= line <= self.end.line


# ---------------------------------------------------------------------------
# Symbols
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Symbol:
    """A named structural region reported by the symbol service."""

    name: str
    range: Range
    children: tuple[Symbol, ...] = ()
    kind: str = ""

    @property
    def start_line(self) -> int:
        return self.range.start.line

    @property
    def end_line(self) -> int:
        return self.range.end.line


def symbol_key(symbol: Symbol) -> SymbolKey:
    """Composite identity: names alone are not unique within a document."""
    return (symbol.name, symbol.start_line)


@dataclass(frozen=True, slots=True)
class FlatSymbol:
    """A symbol plus its position in the flattened pre-order list."""

    symbol: Symbol
    index: int
    depth: int
    parent_name: str | None

    @property
    def name(self) -> str:
        return self.symbol.name

    @property
    def start_line(self) -> int:
        return self.symbol.start_line

    @property
    def end_line(self) -> int:
        return self.symbol.end_line


def flatten_symbols(symbols: Sequence[Symbol]) -> list[FlatSymbol]:
    """Flatten a nested symbol tree into pre-order (parents before children).

    Sibling order is preserved as given. Uses an explicit stack so deeply
    nested documents never hit the interpreter recursion limit.
    """
    flat: list[FlatSymbol] = []
    stack: list[tuple[Symbol, int, str | None]] = [
        (sym, 0, None) for sym in reversed(symbols)
    ]
    while stack:
        sym, depth, parent_name = stack.pop()
        flat.append(FlatSymbol(sym, len(flat), depth, parent_name))
        for child in reversed(sym.children):
            stack.append((child, depth + 1, sym.name))
    return flat


# ---------------------------------------------------------------------------
# Payload decoding
# ---------------------------------------------------------------------------


def _position_from(raw: Any) -> Position | None:
    if not isinstance(raw, dict):
        return None
    line = raw.get("line")
    character = raw.get("character", 0)
    if not isinstance(line, int) or not isinstance(character, int):
        return None
    if line < 0 or character < 0:
        return None
    return Position(line, character)


def _range_from(entry: dict[str, Any]) -> Range | None:
    raw_range = entry.get("range")
    if isinstance(raw_range, dict):
        start = _position_from(raw_range.get("start"))
        end = _position_from(raw_range.get("end"))
        if start is None or end is None or end < start:
            return None
        return Range(start, end)
    # Shorthand used by hand-written fixtures: {"start_line": 3, "end_line": 9}
    start_line = entry.get("start_line")
    end_line = entry.get("end_line", start_line)
    if isinstance(start_line, int) and isinstance(end_line, int):
        if 0 <= start_line <= end_line:
            return Range.lines(start_line, end_line)
    return None


def symbols_from_payload(payload: Any) -> list[Symbol]:
    """Decode a symbol service payload (LSP ``DocumentSymbol`` shape).

    Malformed entries (missing name, unusable range) are skipped together
    with their subtree; this never raises on bad input.
    """
    if isinstance(payload, dict):
        payload = payload.get("symbols", [])
    if not isinstance(payload, list):
        return []
    out: list[Symbol] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        rng = _range_from(entry)
        if not isinstance(name, str) or not name or rng is None:
            continue
        kind = entry.get("kind", "")
        out.append(
            Symbol(
                name=name,
                range=rng,
                children=tuple(symbols_from_payload(entry.get("children") or [])),
                kind=str(kind) if kind is not None else "",
            )
        )
    return out


# ---------------------------------------------------------------------------
# Offset helpers
# ---------------------------------------------------------------------------


def compute_line_starts(text: str) -> list[int]:
    """Pre-compute char offsets of every line start (after each ``\\n``).

    Position 0 is always a line start.
    """
    starts = [0]
    for i, ch in enumerate(text):
        if ch == "\n":
            starts.append(i + 1)
    return starts


def line_for_offset(line_starts: list[int], offset: int) -> int:
    """0-based line containing ``offset`` (binary search over line starts)."""
    return max(0, bisect.bisect_right(line_starts, offset) - 1)


def position_for_offset(line_starts: list[int], offset: int) -> Position:
    line = line_for_offset(line_starts, offset)
    return Position(line, offset - line_starts[line])
