"""Markdown -> canonical HTML, wrapping markdown-it-py with GFM extensions."""

from __future__ import annotations

import logging

from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore
from markdown_it.token import Token
from mdit_py_plugins.dollarmath import dollarmath_plugin
from mdit_py_plugins.footnote import footnote_plugin
from mdit_py_plugins.tasklists import tasklists_plugin
from pydantic import BaseModel, Field

from markflow.config.models import RenderConfig
from markflow.core.content import Diagnostic

logger = logging.getLogger(__name__)

_REMOTE_PREFIXES = ("http://", "https://", "//", "data:")


class RenderResult(BaseModel):
    """Canonical HTML plus non-fatal render warnings.

    ``failed`` is set when the engine raised; ``html`` is then empty.
    """

    html: str = ""
    warnings: list[Diagnostic] = Field(default_factory=list)
    failed: bool = False


class MarkdownRenderer:
    """GitHub-flavored Markdown renderer.

    Tables, strikethrough, autolinks, task lists, footnotes and fenced code
    come from markdown-it-py and mdit-py-plugins. ``$...$`` and ``$$...$$``
    are kept as opaque math elements (``span.math.inline`` /
    ``div.math.block``) holding the TeX source; what to do with them is up
    to each platform adapter.
    """

    def __init__(self, config: RenderConfig | None = None) -> None:
        self.config = config or RenderConfig()
        self._md = self._build()

    def _build(self) -> MarkdownIt:
        md = MarkdownIt(
            "gfm-like",
            {"linkify": self.config.linkify, "typographer": self.config.typographer},
        )
        md.use(footnote_plugin).use(tasklists_plugin)
        # "costs $5 and $10" is prose, not math.
        md.use(dollarmath_plugin, allow_digits=False, allow_labels=False)
        if self.config.typographer:
            md.enable(["replacements", "smartquotes"])
        default_lang = self.config.default_code_language
        if default_lang:
            md.core.ruler.push("default_code_language", _default_info(default_lang))
        # Compile the rule chains now so concurrent renders only read them.
        md.parse("")
        return md

    def render(self, body: str) -> RenderResult:
        """Render ``body`` to HTML. Never raises."""
        env: dict = {}
        try:
            tokens = self._md.parse(body, env)
            html = self._md.renderer.render(tokens, self._md.options, env)
        except Exception as exc:
            logger.error("markdown rendering failed: %s", exc, exc_info=True)
            return RenderResult(
                failed=True,
                warnings=[
                    Diagnostic(
                        stage="render",
                        message=f"markdown engine error: {exc}",
                        severity="error",
                    )
                ],
            )
        return RenderResult(html=html, warnings=_collect_warnings(body, tokens))


def _default_info(lang: str):
    def rule(state: StateCore) -> None:
        for token in state.tokens:
            if token.type == "fence" and not token.info.strip():
                token.info = lang

    return rule


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


def _collect_warnings(body: str, tokens: list[Token]) -> list[Diagnostic]:
    lines = body.splitlines()
    warnings: list[Diagnostic] = []

    for token in tokens:
        if token.type == "fence" and token.map and not _fence_closed(token, lines):
            warnings.append(
                Diagnostic(
                    stage="render",
                    message=f"unterminated code fence opened on line {token.map[0] + 1}",
                )
            )
        if token.type != "inline" or not token.children:
            continue
        for child in token.children:
            if child.type == "text" and "$$" in child.content:
                warnings.append(
                    Diagnostic(
                        stage="render",
                        message="unbalanced '$$' math delimiter left as text",
                        fragment=child.content,
                    )
                )
            elif child.type == "image":
                src = str(child.attrGet("src") or "")
                if src and not src.startswith(_REMOTE_PREFIXES):
                    warnings.append(
                        Diagnostic(
                            stage="render",
                            message=f"relative image path {src!r} must be uploaded manually",
                            fragment=src,
                        )
                    )
    return warnings


def _fence_closed(token: Token, lines: list[str]) -> bool:
    start, end = token.map
    if end - start < 2 or end > len(lines):
        return False
    closing = lines[end - 1].lstrip(" \t>")
    return closing.startswith(token.markup)
