"""Tests for instructor_outline.resolver: owner and placeholder assignment."""
from typing import Any

from instructor_outline.annotations import scan_annotations
from instructor_outline.resolver import (
    PlaceholderKey,
    ResolvedAnnotations,
    find_owner,
    find_placeholder_parent,
    resolve_markers,
)
from instructor_outline.symbols import Range, Symbol, compute_line_starts, flatten_symbols


def _sym(name: str, start: int, end: int, *children: Symbol) -> Symbol:
    return Symbol(name, Range.lines(start, end), tuple(children))


def _doc(marker_lines: dict[int, str], total: int = 40) -> str:
    return "\n".join(marker_lines.get(i, f"line {i}") for i in range(total))


def _resolve(text: str, symbols: list[Symbol], **kwargs: Any) -> ResolvedAnnotations:
    return resolve_markers(
        scan_annotations(text),
        flatten_symbols(symbols),
        compute_line_starts(text),
        **kwargs,
    )


class TestNearestOwner:
    def test_marker_goes_to_nearest_following_symbol(self) -> None:
        symbols = [_sym("A", 10, 14), _sym("B", 20, 24), _sym("C", 30, 34)]
        resolved = _resolve(_doc({15: "// #Locked"}), symbols)
        assert resolved.placeholders == []
        (assignment,) = resolved.assignments
        assert assignment.owner == ("B", 20)
        assert assignment.label == "Locked"
        assert assignment.marker_line == 15

    def test_marker_on_symbol_line_owns_that_symbol(self) -> None:
        symbols = [_sym("A", 10, 14), _sym("B", 20, 24)]
        resolved = _resolve(_doc({10: "<!-- #Hidden -->"}), symbols)
        assert resolved.assignments[0].owner == ("A", 10)

    def test_nested_symbols_are_candidates(self) -> None:
        symbols = [_sym("outer", 0, 30, _sym("inner", 12, 18))]
        resolved = _resolve(_doc({11: "// #Hidden"}), symbols)
        assert resolved.assignments[0].owner == ("inner", 12)

    def test_tie_prefers_shallower_symbol(self) -> None:
        flat = flatten_symbols([_sym("section", 5, 20, _sym("heading", 5, 5))])
        owner = find_owner(5, list(reversed(flat)))
        assert owner is not None
        assert owner.name == "section"

    def test_tie_same_depth_prefers_earlier(self) -> None:
        flat = flatten_symbols([_sym("first", 5, 5), _sym("second", 5, 5)])
        owner = find_owner(5, list(reversed(flat)))
        assert owner is not None
        assert owner.name == "first"

    def test_later_marker_wins_for_same_owner(self) -> None:
        symbols = [_sym("A", 10, 14)]
        resolved = _resolve(_doc({8: "// #Hidden", 9: "// #Locked"}), symbols)
        assert resolved.labels_by_owner() == {("A", 10): "Locked"}


class TestPlaceholders:
    def test_enclosing_parent(self) -> None:
        symbols = [_sym("A", 0, 10)]
        resolved = _resolve(_doc({5: "// #Hidden"}, total=12), symbols)
        assert resolved.assignments == []
        (entry,) = resolved.placeholders
        assert entry.parent_name == "A"
        assert entry.line == 5
        assert entry.label == "Hidden"
        assert entry.display_name == "Commented: Hidden"
        assert str(entry.key) == "__commented__5@@Hidden"
        assert entry.range.start == entry.range.end

    def test_nearest_preceding_parent(self) -> None:
        symbols = [_sym("A", 0, 2), _sym("B", 3, 4)]
        resolved = _resolve(_doc({6: "# #Blocked"}, total=8), symbols)
        assert resolved.placeholders[0].parent_name == "B"

    def test_orphan_without_symbols(self) -> None:
        resolved = _resolve("// #Hidden\n", [])
        (entry,) = resolved.placeholders
        assert entry.parent_name is None

    def test_custom_prefix_and_raw_token(self) -> None:
        resolved = _resolve("// #hidden\n", [], placeholder_prefix="Disabled: ")
        (entry,) = resolved.placeholders
        assert entry.display_name == "Disabled: hidden"
        assert entry.key == PlaceholderKey(0, "hidden")

    def test_annotation_line_symbols_are_skipped(self) -> None:
        # a symbol service that reports the annotation comment itself as a symbol
        symbols = [_sym("A", 0, 3), _sym("<!-- #Hidden -->", 5, 5)]
        text = _doc({5: "<!-- #Hidden -->"}, total=6)
        resolved = _resolve(text, symbols, skip_lines={5})
        assert resolved.assignments == []
        assert resolved.placeholders[0].parent_name == "A"


class TestPlaceholderParent:
    def test_first_enclosing_wins(self) -> None:
        flat = flatten_symbols([_sym("outer", 0, 20, _sym("inner", 2, 8))])
        parent = find_placeholder_parent(5, flat)
        assert parent is not None
        assert parent.name == "outer"

    def test_none_when_everything_follows(self) -> None:
        flat = flatten_symbols([_sym("late", 9, 12)])
        assert find_placeholder_parent(3, flat) is None
