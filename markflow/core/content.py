"""Pydantic models for the content pipeline."""

from __future__ import annotations

import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, PrivateAttr

# Average reading speed used for reading_time, characters per minute.
_READING_SPEED = 200
_SUMMARY_LIMIT = 200
_H1_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$")

DEFAULT_TITLE = "Untitled"


class Target(str, Enum):
    """Publishing destinations with their own HTML constraints."""

    wechat = "wechat"
    zhihu = "zhihu"


class Metadata(BaseModel):
    """Preamble metadata. Unrecognized keys are kept in ``extra``."""

    title: str | None = None
    author: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    cover: str | None = None
    extra: dict[str, str] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return self == Metadata()


class Diagnostic(BaseModel):
    """A non-fatal (or fatal, for the failing stage) problem found during a run."""

    stage: str
    message: str
    severity: Literal["warning", "error"] = "warning"
    target: str | None = None
    fragment: str | None = None

    def __str__(self) -> str:
        where = f"{self.stage}/{self.target}" if self.target else self.stage
        return f"[{where}] {self.message}"


class AdapterError(Exception):
    """A transformation step of one adapter failed."""

    def __init__(self, target: str, step: str, fragment: str, cause: Exception) -> None:
        self.target = target
        self.step = step
        self.fragment = fragment
        super().__init__(f"{target} adapter step {step!r} failed: {cause}")
        self.__cause__ = cause


class AdapterResult(BaseModel):
    """Outcome of adapting canonical HTML for one target."""

    target: str
    html: str | None = None
    notices: list[Diagnostic] = Field(default_factory=list)
    error: Diagnostic | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.html is not None

    @classmethod
    def failure(cls, exc: AdapterError) -> AdapterResult:
        return cls(
            target=exc.target,
            error=Diagnostic(
                stage="adapt",
                message=str(exc),
                severity="error",
                target=exc.target,
                fragment=exc.fragment,
            ),
        )


class Content(BaseModel):
    """The unit of work: one source file flowing through the pipeline.

    ``canonical_html`` is written exactly once per run. Adapters only ever
    read it; each produces its own string stored under ``adapted``.
    """

    source_path: str
    metadata: Metadata = Field(default_factory=Metadata)
    body: str = ""
    adapted: dict[str, AdapterResult] = Field(default_factory=dict)

    _canonical_html: str | None = PrivateAttr(default=None)

    @property
    def canonical_html(self) -> str | None:
        return self._canonical_html

    def set_canonical_html(self, html: str) -> None:
        if self._canonical_html is not None:
            raise ValueError(f"canonical HTML already produced for {self.source_path}")
        self._canonical_html = html

    # -- derived fields ------------------------------------------------------

    @property
    def title(self) -> str:
        """Preamble title, else the first level-1 heading, else a placeholder."""
        if self.metadata.title:
            return self.metadata.title
        return extract_title(self.body) or DEFAULT_TITLE

    @property
    def word_count(self) -> int:
        # Character based so CJK text counts sensibly.
        return len(self.body)

    @property
    def reading_time(self) -> int:
        return max(self.word_count // _READING_SPEED, 1)

    @property
    def summary(self) -> str:
        if self.metadata.description:
            return self.metadata.description
        lines = [
            line.strip()
            for line in self.body.splitlines()
            if line.strip() and not line.lstrip().startswith("#")
        ][:3]
        text = " ".join(lines)
        if len(text) > _SUMMARY_LIMIT:
            return text[: _SUMMARY_LIMIT - 3] + "..."
        return text


def extract_title(body: str) -> str | None:
    """Return the text of the first ATX level-1 heading, if any."""
    in_fence = False
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith(("```", "~~~")):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        m = _H1_RE.match(stripped)
        if m:
            return m.group(1)
    return None


def extract_tags(body: str, keywords: list[str], limit: int) -> list[str]:
    """Keywords that occur in ``body`` (case-insensitive), in keyword order."""
    lowered = body.lower()
    found = [k for k in keywords if k and k.lower() in lowered]
    return found[:limit]
