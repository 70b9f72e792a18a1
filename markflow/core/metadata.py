"""Preamble parsing for source documents.

A preamble is a block of ``key: value`` lines between two ``---`` lines at
the very start of the text. Values are plain strings: each line is split at
its first colon, so ``title: Rust: A Guide`` keeps its second colon and
``version: 012`` stays ``"012"``.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel, Field

from markflow.core.content import Diagnostic, Metadata

logger = logging.getLogger(__name__)

DELIMITER = "---"
RECOGNIZED_KEYS = ("title", "author", "description", "tags", "cover")

# Opening delimiter at offset 0, block, closing delimiter on its own line.
_PREAMBLE_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
_OPENING_RE = re.compile(r"\A---[ \t]*\r?\n")
# What a line of a preamble looks like; used to find where a preamble
# without its closing delimiter ends.
_FIELD_LINE_RE = re.compile(r"^[ \t]*[A-Za-z_][\w.-]*[ \t]*:")
_QUOTES = ('"', "'")


class ParsedDocument(BaseModel):
    """Result of splitting raw source text into metadata and body."""

    metadata: Metadata = Field(default_factory=Metadata)
    body: str = ""
    warnings: list[Diagnostic] = Field(default_factory=list)


def parse_preamble(text: str) -> ParsedDocument:
    """Split ``text`` into (Metadata, body, warnings).

    Never raises on bad input. A line without a colon is skipped with a
    warning; the rest of the block still counts. An unterminated block is
    treated as absent.
    """
    m = _PREAMBLE_RE.match(text)
    if m is None:
        opening = _OPENING_RE.match(text)
        if opening is None:
            return ParsedDocument(body=text)
        return _unterminated(text, opening.end())

    fields, warnings = _parse_lines(m.group(1))
    return ParsedDocument(metadata=_build_metadata(fields), body=text[m.end():], warnings=warnings)


def serialize_preamble(metadata: Metadata) -> str:
    """Render metadata as a preamble block; the inverse of parse_preamble.

    Line breaks inside a value become spaces, since a value is one line.
    """
    lines = [DELIMITER]
    for key in RECOGNIZED_KEYS:
        value = getattr(metadata, key)
        if key == "tags":
            if value:
                lines.append(f"tags: {', '.join(value)}")
        elif value is not None:
            lines.append(f"{key}: {_quote(value)}")
    for key, value in metadata.extra.items():
        lines.append(f"{key}: {_quote(value)}")
    lines.append(DELIMITER)
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _parse_lines(block: str) -> tuple[dict[str, str], list[Diagnostic]]:
    fields: dict[str, str] = {}
    warnings: list[Diagnostic] = []
    for lineno, line in enumerate(block.splitlines(), start=2):
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            message = f"preamble line {lineno} is not 'key: value': {line.strip()!r}"
            logger.warning("ignoring %s", message)
            warnings.append(Diagnostic(stage="metadata", message=message))
            continue
        fields[key] = _unquote(value.strip())
    return fields, warnings


def _build_metadata(fields: dict[str, str]) -> Metadata:
    known: dict = {}
    extra: dict[str, str] = {}
    for key, value in fields.items():
        if key == "tags":
            known["tags"] = _parse_tags(value)
        elif key in RECOGNIZED_KEYS:
            known[key] = value
        else:
            extra[key] = value
    return Metadata(**known, extra=extra)


def _parse_tags(value: str) -> list[str]:
    # "[a, b]" is accepted as well as "a, b".
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    items = (_unquote(t.strip()) for t in value.split(","))
    return [t.strip() for t in items if t.strip()]


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        return value[1:-1]
    return value


def _quote(value: str) -> str:
    value = " ".join(value.splitlines())
    if value != value.strip() or (len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]):
        return f'"{value}"'
    return value


def _unterminated(text: str, start: int) -> ParsedDocument:
    """An opening delimiter with no closing one.

    The opening line and the run of ``key: value`` lines after it are
    removed; everything from the first other line on is the body. The
    metadata itself is ignored.
    """
    pos = start
    while pos < len(text):
        end = text.find("\n", pos)
        end = len(text) if end == -1 else end + 1
        if not _FIELD_LINE_RE.match(text[pos:end]):
            break
        pos = end
    message = "unterminated preamble: missing closing '---'"
    logger.warning("ignoring metadata: %s", message)
    return ParsedDocument(
        body=text[pos:].lstrip("\r\n"),
        warnings=[Diagnostic(stage="metadata", message=message)],
    )
