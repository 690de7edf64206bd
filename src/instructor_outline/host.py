"""Editor collaborators the outline session talks to.

The session never reaches into an editor directly. It asks an
``EditorHost`` for the active document, for that document's symbol tree
(produced by an external language service), to apply text edits, and to
refresh the view. ``InMemoryHost`` is a complete host over a plain string,
used by the CLI and the test suite.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from instructor_outline.io_utils import load_json
from instructor_outline.rewriter import TextEdit, apply_text_edit
from instructor_outline.symbols import Symbol, symbols_from_payload

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TextDocument:
    """Snapshot of an open document."""

    uri: str
    text: str
    language_id: str = ""
    version: int = 1
    cursor_line: int | None = None

    def lines(self) -> list[str]:
        return self.text.split("\n")


class EditorHost(ABC):
    """Abstract interface to the editor that owns the documents."""

    @abstractmethod
    def active_document(self) -> TextDocument | None:
        """Return the focused document, or None when no editor is open."""

    @abstractmethod
    async def resolve_symbol_tree(self, doc: TextDocument) -> Sequence[Symbol]:
        """Return the symbol tree for ``doc`` (possibly empty)."""

    @abstractmethod
    async def apply_text_edit(self, doc: TextDocument, edit: TextEdit) -> bool:
        """Apply ``edit`` to ``doc``. Returns False if the editor refused it."""

    @abstractmethod
    def notify_view_changed(self) -> None:
        """Ask the view to re-read the outline. Fire and forget."""


type SymbolProvider = Callable[[TextDocument], Sequence[Symbol]]


class StaticSymbolProvider:
    """Serves the same symbol tree for every document."""

    def __init__(self, symbols: Sequence[Symbol] = ()) -> None:
        self.symbols = list(symbols)

    def __call__(self, doc: TextDocument) -> Sequence[Symbol]:
        return self.symbols


def symbol_provider_from_file(path: Path) -> StaticSymbolProvider:
    """Load an LSP-style symbol payload (JSON list or ``{"symbols": [...]}``)."""
    symbols = symbols_from_payload(load_json(path))
    log.debug("Loaded %d top-level symbols from %s", len(symbols), path)
    return StaticSymbolProvider(symbols)


class InMemoryHost(EditorHost):
    """Single-document host backed by a string.

    Edits rewrite ``document.text`` and bump its version. Setting
    ``fail_edits`` makes every edit report failure without touching the
    text. ``refresh_count`` records view notifications.
    """

    def __init__(
        self,
        document: TextDocument | None = None,
        symbol_provider: SymbolProvider | None = None,
    ) -> None:
        self.document = document
        self.symbol_provider: SymbolProvider = symbol_provider or StaticSymbolProvider()
        self.fail_edits = False
        self.refresh_count = 0
        self.applied_edits: list[TextEdit] = []

    def active_document(self) -> TextDocument | None:
        return self.document

    def open(self, document: TextDocument | None) -> None:
        self.document = document

    def set_cursor(self, line: int | None) -> None:
        if self.document is not None:
            self.document = TextDocument(
                self.document.uri,
                self.document.text,
                self.document.language_id,
                self.document.version,
                line,
            )

    async def resolve_symbol_tree(self, doc: TextDocument) -> Sequence[Symbol]:
        return self.symbol_provider(doc)

    async def apply_text_edit(self, doc: TextDocument, edit: TextEdit) -> bool:
        if self.fail_edits or self.document is None or self.document.uri != doc.uri:
            return False
        current = self.document
        self.document = TextDocument(
            current.uri,
            apply_text_edit(current.text, edit),
            current.language_id,
            current.version + 1,
            current.cursor_line,
        )
        self.applied_edits.append(edit)
        return True

    def notify_view_changed(self) -> None:
        self.refresh_count += 1
