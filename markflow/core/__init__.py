"""Core subsystem: content model, preamble parsing and rendering.

The orchestrator lives in ``markflow.core.pipeline``; it depends on the
adapters package, which in turn depends on the content model here.
"""

from markflow.core.content import (
    DEFAULT_TITLE,
    AdapterError,
    AdapterResult,
    Content,
    Diagnostic,
    Metadata,
    Target,
    extract_tags,
    extract_title,
)
from markflow.core.metadata import ParsedDocument, parse_preamble, serialize_preamble
from markflow.core.renderer import MarkdownRenderer, RenderResult

__all__ = [
    "AdapterError",
    "AdapterResult",
    "Content",
    "DEFAULT_TITLE",
    "Diagnostic",
    "MarkdownRenderer",
    "Metadata",
    "ParsedDocument",
    "RenderResult",
    "Target",
    "extract_tags",
    "extract_title",
    "parse_preamble",
    "serialize_preamble",
]
