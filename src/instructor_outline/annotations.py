"""Annotation marker scanning across comment dialects.

An annotation is a comment whose body is ``#<Label>`` (optionally spelled
``#IN:<Label>``, or ``IN:#<Label>`` as older files do). Four comment
shapes are recognised:

  html   -- ``<!-- #Hidden -->``
  line   -- ``// #Hidden``
  block  -- ``/* #Hidden */``
  hash   -- ``# #Hidden``

Keyword and ``IN:`` prefix match case-insensitively. The document's
language family decides which shapes are acceptable; an unknown language
accepts all four. Tokens that are not one of the six marker labels are
skipped without complaint.
"""
from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from instructor_outline.labels import NORMAL, Label, to_label

type Dialect = Literal["html", "line", "block", "hash"]

ALL_DIALECTS: tuple[Dialect, ...] = ("html", "line", "block", "hash")


# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

_TOKEN = r"(?:IN:)?#(?:IN:)?(?P<{name}>\w+)"

_DIALECT_SOURCES: dict[Dialect, str] = {
    "html": r"<!--\s*" + _TOKEN.format(name="html") + r"\s*-->",
    "line": r"//\s*" + _TOKEN.format(name="line"),
    "block": r"/\*\s*" + _TOKEN.format(name="block") + r"\s*\*/",
    "hash": r"#\s*" + _TOKEN.format(name="hash"),
}

# A line consisting of exactly one annotation comment (token checked separately).
_ANNOTATION_LINE_RE = re.compile(
    r"^\s*(?:"
    + "|".join(_DIALECT_SOURCES[d] for d in ALL_DIALECTS)
    + r")\s*$",
    re.IGNORECASE,
)

_LEADING_WS_RE = re.compile(r"^\s*")


# ---------------------------------------------------------------------------
# Language families
# ---------------------------------------------------------------------------

_MARKUP: tuple[Dialect, ...] = ("html", "line", "block")
_C_FAMILY: tuple[Dialect, ...] = ("line", "block")
_HASH: tuple[Dialect, ...] = ("hash",)

DEFAULT_LANGUAGE_DIALECTS: dict[str, tuple[Dialect, ...]] = {
    "html": _MARKUP,
    "xml": ("html",),
    "vue": _MARKUP,
    "svelte": _MARKUP,
    "markdown": ("html", "hash"),
    "javascript": _C_FAMILY,
    "javascriptreact": _C_FAMILY,
    "typescript": _C_FAMILY,
    "typescriptreact": _C_FAMILY,
    "c": _C_FAMILY,
    "cpp": _C_FAMILY,
    "csharp": _C_FAMILY,
    "java": _C_FAMILY,
    "go": _C_FAMILY,
    "rust": _C_FAMILY,
    "kotlin": _C_FAMILY,
    "swift": _C_FAMILY,
    "php": _C_FAMILY,
    "scss": _C_FAMILY,
    "less": _C_FAMILY,
    "css": ("block",),
    "python": _HASH,
    "shellscript": _HASH,
    "ruby": _HASH,
    "perl": _HASH,
    "r": _HASH,
    "yaml": _HASH,
    "toml": _HASH,
    "powershell": _HASH,
    "dockerfile": _HASH,
    "makefile": _HASH,
}


def dialects_for_language(
    language_id: str,
    overrides: Mapping[str, tuple[Dialect, ...]] | None = None,
) -> tuple[Dialect, ...]:
    """Comment dialects acceptable in a language family (all four if unknown)."""
    lang = (language_id or "").strip().lower()
    if overrides and lang in overrides:
        return tuple(overrides[lang])
    return DEFAULT_LANGUAGE_DIALECTS.get(lang, ALL_DIALECTS)


def preferred_dialect(
    language_id: str,
    default: Dialect = "html",
    overrides: Mapping[str, tuple[Dialect, ...]] | None = None,
) -> Dialect:
    """Dialect used when writing a new annotation into this language."""
    lang = (language_id or "").strip().lower()
    if overrides and lang in overrides:
        dialects = tuple(overrides[lang])
    elif lang in DEFAULT_LANGUAGE_DIALECTS:
        dialects = DEFAULT_LANGUAGE_DIALECTS[lang]
    else:
        return default
    return dialects[0] if dialects else default


@lru_cache(maxsize=32)
def build_marker_pattern(dialects: tuple[str, ...]) -> re.Pattern[str]:
    """Compile one alternation over the requested dialects.

    Raises ValueError for an unknown dialect name or an empty selection.
    """
    if not dialects:
        raise ValueError("At least one comment dialect is required")
    parts: list[str] = []
    for name in dialects:
        source = _DIALECT_SOURCES.get(name)  # type: ignore[call-overload]
        if source is None:
            raise ValueError(f"Unknown comment dialect: {name!r}")
        parts.append(source)
    return re.compile("|".join(parts), re.IGNORECASE)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AnnotationMarker:
    """One recognised marker in document text."""

    token: str          # raw token as written: "hidden", "Locked"
    label: Label
    offset: int         # char offset of the comment opener
    dialect: Dialect


def scan_annotations(
    text: str,
    language_id: str = "",
    *,
    dialects: tuple[Dialect, ...] | None = None,
) -> Iterator[AnnotationMarker]:
    """Yield annotation markers in document order.

    ``dialects`` overrides the language-derived selection. Unknown tokens
    are skipped.
    """
    selected = dialects if dialects is not None else dialects_for_language(language_id)
    pattern = build_marker_pattern(tuple(selected))
    for match in pattern.finditer(text):
        dialect = match.lastgroup
        if dialect is None:
            continue
        token = match.group(dialect)
        label = to_label(token)
        if label is None:
            continue
        yield AnnotationMarker(token, label, match.start(), dialect)  # type: ignore[arg-type]


def is_annotation_line(line: str) -> bool:
    """True when the line holds exactly one recognised annotation and nothing else.

    Comment lines such as ``// #region`` carry an unknown token and are
    ordinary content, not annotations.
    """
    match = _ANNOTATION_LINE_RE.match(line)
    if match is None or match.lastgroup is None:
        return False
    return to_label(match.group(match.lastgroup)) is not None


def annotation_line_numbers(text: str) -> set[int]:
    """0-based numbers of every bare annotation line in ``text``."""
    return {
        i for i, line in enumerate(text.split("\n")) if is_annotation_line(line)
    }


def detect_dialect(line: str) -> Dialect | None:
    """Dialect of a bare annotation line, or None if it is not one."""
    if not is_annotation_line(line):
        return None
    match = _ANNOTATION_LINE_RE.match(line)
    return match.lastgroup if match else None  # type: ignore[return-value]


def annotation_text(label: Label, dialect: Dialect = "html") -> str | None:
    """Canonical annotation comment for a label; None for Normal."""
    if label == NORMAL:
        return None
    if dialect == "html":
        return f"<!-- #{label} -->"
    if dialect == "line":
        return f"// #{label}"
    if dialect == "block":
        return f"/* #{label} */"
    return f"# #{label}"


def leading_whitespace(line: str) -> str:
    match = _LEADING_WS_RE.match(line)
    return match.group(0) if match else ""


def is_inside_html_script(text: str, offset: int, language_id: str) -> bool:
    """For HTML documents, True if ``offset`` falls inside a ``<script>`` block.

    A tag starting exactly at ``offset`` belongs to the markup: the line
    holding ``<script>`` or ``</script>`` is not inside the block.
    """
    if (language_id or "").lower() != "html":
        return False
    lowered = text.lower()
    last_open = lowered.rfind("<script", 0, offset)
    last_close = lowered.rfind("</script", 0, offset + len("</script"))
    return last_open != -1 and last_open > last_close
