"""Tests for instructor_outline.aggregation: counts, branch matching, filtering."""
from instructor_outline.aggregation import (
    branch_matches_filter,
    count_descendant_labels,
    count_top_level_branches_with_label,
    filter_items,
    item_matches_filter,
    items_with_label,
    summarize_counts,
)
from instructor_outline.labels import Label
from instructor_outline.outline_tree import DEFAULT_GLYPHS, OutlineItem
from instructor_outline.store import Flag


def _item(name: str, label: Label = "Normal", *, kind: str = "symbol") -> OutlineItem:
    return OutlineItem(label_text=name, label=label, kind=kind, item_id=f"{kind}-{name}")  # type: ignore[arg-type]


class TestCountDescendantLabels:
    def test_counts_every_descendant(self) -> None:
        children = {
            "root": [_item("a", "Hidden"), _item("b", "Locked")],
            "a": [_item("a1", "Hidden"), _item("a2")],
        }
        counts = count_descendant_labels(children, "root")
        assert counts["Hidden"] == 2
        assert counts["Locked"] == 1
        assert counts["Normal"] == 1

    def test_name_cycle_terminates(self) -> None:
        a = _item("A", "Hidden")
        b = _item("B", "Locked")
        children = {"A": [b], "B": [a]}
        counts = count_descendant_labels(children, "A")
        assert sum(counts.values()) == 2

    def test_self_cycle_terminates(self) -> None:
        a = _item("A", "Hidden")
        counts = count_descendant_labels({"A": [a]}, "A")
        assert counts["Hidden"] == 1

    def test_summary_skips_normal(self) -> None:
        summary = summarize_counts({"Normal": 5, "Locked": 1, "Hidden": 2}, DEFAULT_GLYPHS)
        assert summary == "🙈2 🔒1"
        assert summarize_counts({"Normal": 3}, DEFAULT_GLYPHS) == ""


class TestBranchCounting:
    def test_branches_not_occurrences(self) -> None:
        root = _item("root")
        other = _item("other")
        children = {
            "root": [_item("x", "Hidden")],
            "x": [_item("y", "Hidden")],
            "y": [_item("z", "Hidden")],
        }
        assert count_top_level_branches_with_label([root, other], children, "Hidden") == 1

    def test_root_itself_counts(self) -> None:
        roots = [_item("a", "Locked"), _item("b", "Locked"), _item("c")]
        assert count_top_level_branches_with_label(roots, {}, "Locked") == 2

    def test_labels_group_ignored(self) -> None:
        group = _item("Labels", "Hidden", kind="labels_group")
        assert count_top_level_branches_with_label([group], {}, "Hidden") == 0

    def test_cycle_terminates(self) -> None:
        a = _item("A")
        children = {"A": [_item("B")], "B": [a]}
        assert count_top_level_branches_with_label([a], children, "Hidden") == 0

    def test_mirror_roots_of_counted_sections_skipped(self) -> None:
        flag = Flag("intro", "review", "#FF9800")
        intro = _item("intro")
        intro.flag = flag
        mirror = _item("intro", "Flagged", kind="flag")
        mirror.flag = flag
        roots = [intro, _item("other"), mirror]
        assert count_top_level_branches_with_label(roots, {}, "Flagged") == 1

    def test_mirror_root_of_absent_section_counts(self) -> None:
        mirror = _item("ghost", "Hidden", kind="bundled")
        roots = [_item("intro", "Hidden"), mirror]
        assert count_top_level_branches_with_label(roots, {}, "Hidden") == 2


class TestFilterMatching:
    def test_own_label(self) -> None:
        assert item_matches_filter(_item("a", "Blocked"), {"Blocked"})
        assert not item_matches_filter(_item("a", "Blocked"), {"Hidden"})

    def test_flag_precedence(self) -> None:
        item = _item("a", "Hidden")
        item.flag = Flag("a", "review", "#FF9800")
        assert item.display_label == "Flagged"
        assert item_matches_filter(item, {"Flagged"})

    def test_descendant_match_keeps_ancestor(self) -> None:
        root = _item("root")
        children = {"root": [_item("mid")], "mid": [_item("leaf", "Blocked")]}
        assert branch_matches_filter(root, children, {"Blocked"})
        assert not branch_matches_filter(root, children, {"Locked"})

    def test_empty_filter_matches_nothing(self) -> None:
        assert not branch_matches_filter(_item("a", "Hidden"), {}, set())

    def test_filter_items_preserves_ancestors_and_labels_group(self) -> None:
        group = _item("Labels", kind="labels_group")
        keep = _item("keep")
        drop = _item("drop")
        children = {"keep": [_item("blocked", "Blocked")], "drop": [_item("fine")]}
        kept = filter_items([group, keep, drop], children, {"Blocked"})
        assert [i.label_text for i in kept] == ["Labels", "keep"]

    def test_filter_items_without_filters_keeps_all(self) -> None:
        items = [_item("a"), _item("b")]
        assert filter_items(items, {}, set()) == items


def test_items_with_label_pre_order() -> None:
    roots = [_item("r1", "Hidden"), _item("r2")]
    children = {"r1": [_item("c1", "Hidden")], "r2": [_item("c2", "Hidden"), _item("c3")]}
    found = items_with_label(roots, children, "Hidden")
    assert [i.label_text for i in found] == ["r1", "c1", "c2"]
