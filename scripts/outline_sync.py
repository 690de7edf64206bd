#!/usr/bin/env python3
"""Inspect and edit instructor annotations in a document from the command line.

The document's symbol tree comes from a JSON file (LSP DocumentSymbol
shape, or ``{"name", "start_line", "end_line", "children"}`` shorthand),
as produced by whatever language service the editor uses.

Structured JSON goes to stdout; progress and errors go to stderr.

Usage::

    python3 scripts/outline_sync.py show lesson.html --symbols lesson.symbols.json
    python3 scripts/outline_sync.py show lesson.html --symbols s.json --filter Hidden --filter Locked
    python3 scripts/outline_sync.py scan lesson.html --symbols s.json
    python3 scripts/outline_sync.py label lesson.html --symbols s.json intro Hidden [--dry-run]
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from instructor_outline.annotations import dialects_for_language, scan_annotations
from instructor_outline.config import load_config
from instructor_outline.host import InMemoryHost, TextDocument, symbol_provider_from_file
from instructor_outline.io_utils import dumps_json
from instructor_outline.labels import ALL_LABELS, coerce_label
from instructor_outline.session import OutlineSession
from instructor_outline.snapshot import outline_to_dict, range_to_dict
from instructor_outline.symbols import compute_line_starts, line_for_offset

log = logging.getLogger("outline_sync")

LANGUAGE_BY_SUFFIX: dict[str, str] = {
    ".html": "html",
    ".htm": "html",
    ".vue": "vue",
    ".svelte": "svelte",
    ".xml": "xml",
    ".md": "markdown",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".css": "css",
    ".scss": "scss",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".py": "python",
    ".sh": "shellscript",
    ".rb": "ruby",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
}


def dump_json(obj: Any) -> None:
    sys.stdout.buffer.write(dumps_json(obj))
    sys.stdout.buffer.write(b"\n")


def guess_language(path: Path) -> str:
    return LANGUAGE_BY_SUFFIX.get(path.suffix.lower(), "")


def open_session(args: argparse.Namespace) -> tuple[OutlineSession, InMemoryHost]:
    doc_path = Path(args.document)
    document = TextDocument(
        uri=doc_path.as_uri() if doc_path.is_absolute() else str(doc_path),
        text=doc_path.read_bytes().decode("utf-8"),
        language_id=args.language or guess_language(doc_path),
        cursor_line=getattr(args, "cursor_line", None),
    )
    host = InMemoryHost(document, symbol_provider_from_file(Path(args.symbols)))
    config = load_config(Path(args.config) if args.config else None)
    return OutlineSession(host, config), host


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


async def cmd_show(args: argparse.Namespace) -> int:
    session, _ = open_session(args)
    await session.sync()
    if args.filter:
        session.set_filter_labels(args.filter)
    dump_json(outline_to_dict(session))
    return 0


async def cmd_scan(args: argparse.Namespace) -> int:
    session, host = open_session(args)
    await session.sync()
    doc = host.active_document()
    assert doc is not None
    line_starts = compute_line_starts(doc.text)
    dialects = dialects_for_language(doc.language_id, session.config.language_dialects)
    markers = [
        {
            "token": m.token,
            "label": m.label,
            "dialect": m.dialect,
            "line": line_for_offset(line_starts, m.offset),
        }
        for m in scan_annotations(doc.text, doc.language_id, dialects=dialects)
    ]
    labelled = [
        {"name": item.label_text, "label": item.label, "range": range_to_dict(item.range)}
        for item in session.tree.iter_items()
        if item.kind == "symbol" and item.label != "Normal"
    ]
    placeholders = [
        {
            "key": str(p.key),
            "name": p.display_name,
            "label": p.label,
            "line": p.line,
            "parent": p.parent_name,
        }
        for p in session.placeholders
    ]
    dump_json({
        "uri": doc.uri,
        "language": doc.language_id,
        "markers": markers,
        "labelled_symbols": labelled,
        "placeholders": placeholders,
        "annotation_lines": sorted(session.annotation_lines),
    })
    return 0


async def cmd_label(args: argparse.Namespace) -> int:
    label = coerce_label(args.label)
    session, host = open_session(args)
    await session.sync()
    if session.tree.find_by_name(args.symbol, kinds=("symbol", "placeholder")) is None:
        log.error("No outline entry named %r", args.symbol)
        return 1
    before = host.active_document()
    ok = await session.set_label(args.symbol, label)
    if not ok:
        log.error("Could not label %r as %s", args.symbol, label)
        return 1
    after = host.active_document()
    assert before is not None and after is not None
    changed = after.text != before.text
    if args.dry_run:
        sys.stdout.write(after.text)
        return 0
    if changed:
        Path(args.document).write_bytes(after.text.encode("utf-8"))
        log.info("Labelled %r as %s in %s", args.symbol, label, args.document)
    else:
        log.info("%r already labelled %s; no change", args.symbol, label)
    dump_json({"symbol": args.symbol, "label": label, "changed": changed})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Instructor outline: inspect and edit annotation labels.",
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    def common(p: argparse.ArgumentParser) -> None:
        p.add_argument("document", help="Document to read")
        p.add_argument("--symbols", required=True, help="JSON symbol tree for the document")
        p.add_argument("--language", default="", help="Language id (default: from suffix)")
        p.add_argument("--config", default="", help="Outline config JSON")

    show = sub.add_parser("show", help="Print the labelled outline as JSON")
    common(show)
    show.add_argument(
        "--filter", action="append", default=[], choices=ALL_LABELS[1:],
        help="Only show branches carrying this label (repeatable)",
    )
    show.set_defaults(func=cmd_show)

    scan = sub.add_parser("scan", help="Print markers, owners and placeholders as JSON")
    common(scan)
    scan.set_defaults(func=cmd_scan)

    label = sub.add_parser("label", help="Set a symbol's label and rewrite its annotation")
    common(label)
    label.add_argument("symbol", help="Symbol name")
    label.add_argument("label", help=f"One of: {', '.join(ALL_LABELS)}")
    label.add_argument("--cursor-line", type=int, default=None,
                       help="Prefer the same-named symbol containing this 0-based line")
    label.add_argument("--dry-run", action="store_true",
                       help="Print the rewritten document instead of saving it")
    label.set_defaults(func=cmd_label)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    try:
        return asyncio.run(args.func(args))
    except (OSError, ValueError) as exc:
        log.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
