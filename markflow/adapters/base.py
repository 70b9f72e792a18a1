"""Abstract platform adapter interface for MarkFlow."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import ClassVar

from bs4 import BeautifulSoup, NavigableString, Tag

from markflow.config.models import MarkflowConfig
from markflow.core.content import AdapterError, AdapterResult, Diagnostic, Metadata, Target

logger = logging.getLogger(__name__)

_FRAGMENT_LIMIT = 200
_EVENT_ATTR_RE = re.compile(r"^on[a-z]+$", re.IGNORECASE)

Step = Callable[[BeautifulSoup, Metadata], None]


class PlatformAdapter(ABC):
    """Transforms canonical HTML into HTML one platform accepts.

    Every adapter exposes the same two capabilities: ``adapt_html`` runs the
    full ordered list of named steps on a private parse of the canonical
    string, and ``adapt_styles`` applies only the styling pass. Adapters hold
    no per-call state, so one instance can serve concurrent runs.
    """

    target: ClassVar[Target]

    def __init__(self, config: MarkflowConfig) -> None:
        self.config = config

    @abstractmethod
    def steps(self) -> list[tuple[str, Step]]:
        """Ordered (name, callable) transformation steps."""
        ...

    @abstractmethod
    def adapt_styles(self, html: str) -> str:
        """Apply the platform's styling convention to an HTML string."""
        ...

    @property
    @abstractmethod
    def stylesheet(self) -> str:
        """CSS used for local previews of this platform's output."""
        ...

    def validate(self, metadata: Metadata, soup: BeautifulSoup) -> list[Diagnostic]:
        """Platform limits (title length, size, ...). Never fatal."""
        return []

    # -- adapt_html ------------------------------------------------------------

    def adapt_html(self, canonical_html: str, metadata: Metadata) -> AdapterResult:
        name = self.target.value
        logger.debug("adapting html for %s", name)
        try:
            soup = self._parse(canonical_html)
            notices: list[Diagnostic] = []
            self._run_step(
                "validate",
                lambda s, m: notices.extend(self.validate(m, s)),
                soup,
                metadata,
                canonical_html,
            )
            for step_name, step in self.steps():
                self._run_step(step_name, step, soup, metadata, canonical_html)
        except AdapterError as exc:
            logger.warning("%s", exc)
            return AdapterResult.failure(exc)
        return AdapterResult(target=name, html=str(soup), notices=notices)

    def _parse(self, html: str) -> BeautifulSoup:
        try:
            return BeautifulSoup(html, "html.parser")
        except Exception as exc:
            raise AdapterError(self.target.value, "parse", _clip(html), exc) from exc

    def _run_step(
        self, name: str, step: Step, soup: BeautifulSoup, metadata: Metadata, source: str
    ) -> None:
        try:
            step(soup, metadata)
        except AdapterError:
            raise
        except Exception as exc:
            raise AdapterError(self.target.value, name, _clip(source), exc) from exc

    def _each(self, step: str, elements: Iterable[Tag], fn: Callable[[Tag], None]) -> None:
        """Apply ``fn`` per element, naming the element that broke on failure."""
        for el in list(elements):
            try:
                fn(el)
            except Exception as exc:
                raise AdapterError(self.target.value, step, _clip(str(el)), exc) from exc

    # -- shared steps ----------------------------------------------------------

    def _sanitize(self, soup: BeautifulSoup, forbidden: Iterable[str]) -> None:
        for el in soup.find_all(list(forbidden)):
            el.decompose()
        for el in soup.find_all(True):
            for attr in list(el.attrs):
                value = el.attrs[attr]
                if _EVENT_ATTR_RE.match(attr):
                    del el.attrs[attr]
                elif isinstance(value, str) and value.strip().lower().startswith("javascript:"):
                    del el.attrs[attr]

    def _replace_task_checkboxes(self, soup: BeautifulSoup, metadata: Metadata) -> None:
        """Task list checkboxes become ☑/☐ glyphs; neither platform keeps inputs."""
        for box in soup.find_all("input", attrs={"type": "checkbox"}):
            box.replace_with(NavigableString("☑" if box.has_attr("checked") else "☐"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def has_class(el: Tag, *names: str) -> bool:
    classes = el.get("class") or []
    return all(n in classes for n in names)


def add_class(el: Tag, name: str) -> None:
    classes = list(el.get("class") or [])
    if name not in classes:
        classes.append(name)
    el["class"] = classes


def math_elements(soup: BeautifulSoup) -> list[tuple[Tag, str, bool]]:
    """(element, tex, is_block) for every math element the renderer emitted."""
    found = []
    for el in soup.find_all(["span", "div"]):
        if not has_class(el, "math"):
            continue
        if has_class(el, "block"):
            found.append((el, el.get_text().strip("\n"), True))
        elif has_class(el, "inline"):
            found.append((el, el.get_text(), False))
    return found


def page_title(metadata: Metadata, soup: BeautifulSoup) -> str:
    if metadata.title:
        return metadata.title
    h1 = soup.find("h1")
    return h1.get_text(strip=True) if h1 else ""


def _clip(text: str) -> str:
    return text if len(text) <= _FRAGMENT_LIMIT else text[:_FRAGMENT_LIMIT] + "..."
