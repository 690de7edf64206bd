"""Shared fixtures: an in-memory host whose symbols track the document text.

The symbol provider here plays the external language service for
Python-like documents: every ``def``/``class`` line is a symbol, nested by
indentation, ending just before the next symbol at the same or a shallower
indent (or at the last line).
"""
from __future__ import annotations

import re
from collections.abc import Callable

import pytest

from instructor_outline.host import InMemoryHost, TextDocument
from instructor_outline.symbols import Range, Symbol

_DEF_RE = re.compile(r"^(?P<indent>[ \t]*)(?:def|class)\s+(?P<name>\w+)")


def _nest(entries: list[tuple[int, int, str]], lo: int, hi: int, last_line: int) -> list[Symbol]:
    out: list[Symbol] = []
    i = lo
    while i < hi:
        line, indent, name = entries[i]
        j = i + 1
        while j < hi and entries[j][1] > indent:
            j += 1
        end = max(line, entries[j][0] - 1 if j < hi else last_line)
        out.append(Symbol(name, Range.lines(line, end), tuple(_nest(entries, i + 1, j, end))))
        i = j
    return out


def python_symbols(doc: TextDocument) -> list[Symbol]:
    lines = doc.text.split("\n")
    entries = [
        (i, len(m.group("indent")), m.group("name"))
        for i, line in enumerate(lines)
        if (m := _DEF_RE.match(line))
    ]
    return _nest(entries, 0, len(entries), len(lines) - 1)


@pytest.fixture
def python_host() -> Callable[..., InMemoryHost]:
    def make(
        text: str,
        *,
        language_id: str = "python",
        cursor_line: int | None = None,
    ) -> InMemoryHost:
        doc = TextDocument("file:///lesson.py", text, language_id, 1, cursor_line)
        return InMemoryHost(doc, python_symbols)

    return make
