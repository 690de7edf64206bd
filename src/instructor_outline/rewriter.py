"""Annotation rewriting: keep a symbol's annotation line in step with its label.

Given a symbol's start line and the desired label, look upward (at most
``max_lookback`` lines, blank lines only in between) for an existing
annotation line, then:

  found,  Normal      -> delete the whole line
  found,  not Normal  -> replace it in place, keeping indent and dialect
  absent, not Normal  -> insert a line above the symbol, copying its indent
  absent, Normal      -> nothing to do

Replacing a line with identical text is reported as no edit, so applying
the same label twice leaves the document untouched after the first time.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from instructor_outline.annotations import (
    Dialect,
    annotation_text,
    detect_dialect,
    is_annotation_line,
    leading_whitespace,
)
from instructor_outline.labels import NORMAL, Label
from instructor_outline.symbols import Position, Range, compute_line_starts

type EditAction = Literal["insert", "replace", "delete"]

DEFAULT_MAX_LOOKBACK = 8


@dataclass(frozen=True, slots=True)
class AnnotationEdit:
    """A planned line-level change. ``new_text`` excludes the line ending."""

    action: EditAction
    line: int
    new_text: str = ""


@dataclass(frozen=True, slots=True)
class TextEdit:
    """A contiguous replacement, the shape host editors accept."""

    range: Range
    new_text: str


def _content(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def find_annotation_line(
    lines: Sequence[str],
    start_line: int,
    max_lookback: int = DEFAULT_MAX_LOOKBACK,
) -> int | None:
    """Nearest annotation line directly above ``start_line``.

    Only blank lines may separate the annotation from the symbol; the
    first other non-blank line stops the search.
    """
    stop = max(0, start_line - max_lookback)
    for i in range(min(start_line, len(lines)) - 1, stop - 1, -1):
        text = lines[i]
        if is_annotation_line(text):
            return i
        if text.strip():
            return None
    return None


def plan_annotation_edit(
    lines: Sequence[str],
    start_line: int,
    label: Label,
    *,
    dialect: Dialect = "html",
    max_lookback: int = DEFAULT_MAX_LOOKBACK,
) -> AnnotationEdit | None:
    """Decide the edit that makes the document carry ``label`` for a symbol.

    ``lines`` is the document split on ``\\n`` (a trailing ``\\r`` is kept
    on each line and preserved by replacements). Returns None when the
    document already matches.
    """
    existing = find_annotation_line(lines, start_line, max_lookback)
    if existing is not None:
        if label == NORMAL:
            return AnnotationEdit("delete", existing)
        current = _content(lines[existing])
        written = annotation_text(label, detect_dialect(current) or dialect)
        new_text = leading_whitespace(current) + (written or "")
        if new_text == current:
            return None
        return AnnotationEdit("replace", existing, new_text)
    written = annotation_text(label, dialect)
    if written is None:
        return None
    symbol_line = lines[start_line] if start_line < len(lines) else ""
    return AnnotationEdit("insert", start_line, leading_whitespace(_content(symbol_line)) + written)


def to_text_edit(edit: AnnotationEdit, lines: Sequence[str]) -> TextEdit:
    """Express a line-level edit as a range replacement."""
    line = edit.line
    if edit.action == "insert":
        symbol_line = lines[line] if line < len(lines) else ""
        eol = "\r\n" if symbol_line.endswith("\r") else "\n"
        return TextEdit(Range.point(Position(line, 0)), edit.new_text + eol)
    content = _content(lines[line])
    if edit.action == "replace":
        return TextEdit(Range(Position(line, 0), Position(line, len(content))), edit.new_text)
    if line + 1 < len(lines):
        return TextEdit(Range(Position(line, 0), Position(line + 1, 0)), "")
    return TextEdit(Range(Position(line, 0), Position(line, len(lines[line]))), "")


def apply_text_edit(text: str, edit: TextEdit) -> str:
    """Apply a range replacement to ``text``. Positions past a line end clamp."""
    starts = compute_line_starts(text)

    def offset(pos: Position) -> int:
        if pos.line >= len(starts):
            return len(text)
        line_end = starts[pos.line + 1] - 1 if pos.line + 1 < len(starts) else len(text)
        return min(starts[pos.line] + pos.character, line_end)

    start = offset(edit.range.start)
    end = offset(edit.range.end)
    if edit.range.end.character == 0 and edit.range.end.line < len(starts):
        end = starts[edit.range.end.line]
    return text[:start] + edit.new_text + text[end:]


def apply_edit_to_text(text: str, edit: AnnotationEdit) -> str:
    """Pure application of a planned edit (in-memory documents, tests)."""
    return apply_text_edit(text, to_text_edit(edit, text.split("\n")))
