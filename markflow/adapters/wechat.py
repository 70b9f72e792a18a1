"""WeChat official-account adapter.

The WeChat editor drops external stylesheets and strips ``href`` from
inline anchors, so everything is styled inline and external links become
numbered footnotes collected at the end of the article.
"""

from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup, NavigableString, Tag

from markflow.adapters.base import PlatformAdapter, Step, has_class, math_elements, page_title
from markflow.config.models import MarkflowConfig
from markflow.core.content import Diagnostic, Metadata, Target

logger = logging.getLogger(__name__)

_FONT_STACK = (
    "-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif"
)
_MONO_STACK = "'Consolas', 'Monaco', 'Courier New', monospace"

# Keyed by tag name, or ".class" for class-specific rules. Applied in this order.
DEFAULT_STYLES: dict[str, str] = {
    "p": "font-size: 16px; line-height: 1.8; margin: 20px 0; color: #333; text-align: justify;",
    "h1": (
        "font-size: 24px; font-weight: bold; text-align: center; margin: 30px 0 20px 0; "
        "color: #2c3e50; border-bottom: 2px solid #3498db; padding-bottom: 10px;"
    ),
    "h2": (
        "font-size: 20px; font-weight: bold; margin: 25px 0 15px 0; color: #2c3e50; "
        "border-left: 4px solid #3498db; padding-left: 15px;"
    ),
    "h3": "font-size: 18px; font-weight: bold; margin: 20px 0 10px 0; color: #34495e;",
    "h4": "font-size: 16px; font-weight: bold; margin: 15px 0 8px 0; color: #34495e;",
    "blockquote": (
        "border-left: 4px solid #ddd; margin: 20px 0; padding: 10px 20px; "
        "background-color: #f9f9f9; font-style: italic; color: #666;"
    ),
    "pre": (
        "background-color: #f8f8f8; border: 1px solid #ddd; border-radius: 6px; padding: 15px; "
        f"margin: 20px 0; overflow-x: auto; font-family: {_MONO_STACK}; font-size: 14px; "
        "line-height: 1.4;"
    ),
    "code": (
        "background-color: #f1f2f3; padding: 2px 6px; border-radius: 3px; "
        f"font-family: {_MONO_STACK}; font-size: 14px; color: #e96900;"
    ),
    "img": (
        "max-width: 100%; height: auto; display: block; margin: 20px auto; "
        "border-radius: 8px; box-shadow: 0 2px 8px rgba(0,0,0,0.1);"
    ),
    "table": "width: 100%; border-collapse: collapse; margin: 20px 0; font-size: 14px;",
    "th": (
        "background-color: #f1f2f3; padding: 12px; text-align: left; border: 1px solid #ddd; "
        "font-weight: bold;"
    ),
    "td": "padding: 12px; text-align: left; border: 1px solid #ddd;",
    "ul": "margin: 15px 0; padding-left: 30px;",
    "ol": "margin: 15px 0; padding-left: 30px;",
    "li": "margin: 8px 0; line-height: 1.6;",
    "strong": "font-weight: bold; color: #2c3e50;",
    "em": "font-style: italic; color: #7f8c8d;",
    "del": "color: #999;",
    "hr": "margin: 30px 0; border: none; border-top: 1px solid #ddd;",
    "sup": "font-size: 12px; color: #3498db;",
    ".link": "color: #3498db; border-bottom: 1px dotted #3498db;",
    ".math": f"font-family: {_MONO_STACK}; color: #555;",
    ".table-wrapper": "overflow-x: auto; margin: 20px 0;",
    ".wechat-footnotes": "margin-top: 30px; padding-top: 10px; border-top: 1px solid #ddd;",
    ".footnotes-title": "font-size: 14px; color: #666; margin: 10px 0; font-weight: bold;",
    ".footnotes-list": "list-style: none; padding-left: 0; margin: 0;",
    ".footnote-item": "font-size: 12px; color: #666; line-height: 1.8; margin: 0; word-break: break-all;",
}

FORBIDDEN_TAGS = ("script", "style", "iframe", "object", "embed", "form", "link", "meta")

_EXTERNAL_RE = re.compile(r"^https?://", re.IGNORECASE)
# A "[3]" marker the author already typed at the end of the link text.
_MARKER_RE = re.compile(r"\s*\[\d+\]\s*$")
_DIMENSION_DECL_RE = re.compile(r"(?:^|;)\s*(?:width|height)\s*:[^;]*", re.IGNORECASE)


class WeChatAdapter(PlatformAdapter):
    target = Target.wechat

    def __init__(self, config: MarkflowConfig) -> None:
        super().__init__(config)
        self._styles = {**DEFAULT_STYLES, **config.wechat.styles}

    def steps(self) -> list[tuple[str, Step]]:
        return [
            ("sanitize", lambda soup, _meta: self._sanitize(soup, FORBIDDEN_TAGS)),
            ("tasks", self._replace_task_checkboxes),
            ("math", self._flatten_math),
            ("footnotes", self._convert_links),
            ("images", self._constrain_images),
            ("tables", self._wrap_tables),
            ("styles", lambda soup, _meta: self._inline_styles(soup)),
        ]

    def adapt_styles(self, html: str) -> str:
        soup = self._parse(html)
        self._inline_styles(soup)
        return str(soup)

    @property
    def stylesheet(self) -> str:
        rules = []
        for key, style in self._styles.items():
            rules.append(f"{key} {{ {style} }}")
        return f"body {{ font-family: {_FONT_STACK}; color: #333; line-height: 1.6; }}\n" + "\n".join(rules)

    def validate(self, metadata: Metadata, soup: BeautifulSoup) -> list[Diagnostic]:
        cfg = self.config.wechat
        notices: list[Diagnostic] = []

        def notice(message: str) -> None:
            notices.append(Diagnostic(stage="validate", target=self.target.value, message=message))

        title = page_title(metadata, soup)
        if not title:
            notice("title is empty")
        elif len(title) > cfg.max_title_length:
            notice(f"title longer than {cfg.max_title_length} characters ({len(title)})")
        length = len(soup.get_text())
        if length > cfg.max_content_length:
            notice(f"content longer than {cfg.max_content_length} characters ({length})")
        if metadata.cover and not metadata.cover.startswith(("http://", "https://", "data:")):
            notice("cover must be an http(s) URL or data URI")
        return notices

    # -- steps -----------------------------------------------------------------

    def _flatten_math(self, soup: BeautifulSoup, metadata: Metadata) -> None:
        """WeChat cannot render TeX; show the source literally."""
        for el, tex, block in math_elements(soup):
            new = soup.new_tag("p" if block else "span")
            new["class"] = ["math"]
            new.string = f"$${tex}$$" if block else f"${tex}$"
            el.replace_with(new)

    def _convert_links(self, soup: BeautifulSoup, metadata: Metadata) -> None:
        """Turn anchors into spans; external URLs and author footnotes get [n] markers.

        External links and Markdown footnotes share one sequence, numbered by
        first appearance in the document. A URL linked twice keeps its number.
        """
        definitions = self._take_author_footnotes(soup)
        entries: list[tuple[str, str | None]] = []  # (label, url) in number order
        by_url: dict[str, int] = {}
        by_footnote: dict[str, int] = {}

        def number_for(table: dict[str, int], key: str, label: str, url: str | None) -> int:
            if key not in table:
                entries.append((label, url))
                table[key] = len(entries)
            return table[key]

        def convert(a: Tag) -> None:
            href = str(a.get("href") or "").strip()
            sup_parent = a.parent if isinstance(a.parent, Tag) else None
            if sup_parent is not None and sup_parent.name == "sup" and has_class(sup_parent, "footnote-ref"):
                fid = href.lstrip("#")
                n = number_for(by_footnote, fid, definitions.get(fid, ""), None)
                marker = soup.new_tag("sup")
                marker.string = f"[{n}]"
                sup_parent.replace_with(marker)
                return

            a.name = "span"
            a.attrs = {"class": ["link"]}
            if not _EXTERNAL_RE.match(href):
                return
            _strip_marker(a)
            text = a.get_text().strip()
            n = number_for(by_url, href, text if text != href else "", href)
            marker = soup.new_tag("sup")
            marker.string = f"[{n}]"
            a.insert_after(marker)

        self._each("footnotes", soup.find_all("a"), convert)

        if entries:
            soup.append(self._footnote_section(soup, entries))

    def _take_author_footnotes(self, soup: BeautifulSoup) -> dict[str, str]:
        """Remove the footnote block the renderer emitted; return id -> text."""
        definitions: dict[str, str] = {}
        section = soup.find("section", class_="footnotes")
        if section is not None:
            for item in section.find_all("li", class_="footnote-item"):
                for backref in item.find_all("a", class_="footnote-backref"):
                    backref.decompose()
                # The entry is plain text, so links keep their URL in brackets.
                for a in item.find_all("a"):
                    href = str(a.get("href") or "").strip()
                    text = a.get_text().strip()
                    if _EXTERNAL_RE.match(href) and text != href:
                        text = f"{text} ({href})" if text else href
                    a.replace_with(NavigableString(text))
                definitions[str(item.get("id", ""))] = " ".join(item.get_text().split())
            section.decompose()
        for sep in soup.find_all("hr", class_="footnotes-sep"):
            sep.decompose()
        return definitions

    def _footnote_section(self, soup: BeautifulSoup, entries: list[tuple[str, str | None]]) -> Tag:
        section = soup.new_tag("section")
        section["class"] = ["wechat-footnotes"]
        title = soup.new_tag("p")
        title["class"] = ["footnotes-title"]
        title.string = self.config.wechat.footnote_heading
        section.append(title)

        ol = soup.new_tag("ol")
        ol["class"] = ["footnotes-list"]
        for n, (label, url) in enumerate(entries, start=1):
            li = soup.new_tag("li")
            li["class"] = ["footnote-item"]
            parts = [f"[{n}]"]
            if label:
                parts.append(f"{label}:" if url else label)
            if url:
                parts.append(url)
            li.string = " ".join(parts)
            ol.append(li)
        section.append(ol)
        return section

    def _constrain_images(self, soup: BeautifulSoup, metadata: Metadata) -> None:
        def constrain(img: Tag) -> None:
            for attr in ("width", "height", "srcset", "sizes"):
                if attr in img.attrs:
                    del img.attrs[attr]
            if img.has_attr("style"):
                kept = _DIMENSION_DECL_RE.sub("", str(img["style"])).strip(" ;")
                if kept:
                    img["style"] = kept
                else:
                    del img["style"]
            if not img.has_attr("alt"):
                img["alt"] = ""

        self._each("images", soup.find_all("img"), constrain)

    def _wrap_tables(self, soup: BeautifulSoup, metadata: Metadata) -> None:
        def wrap(table: Tag) -> None:
            parent = table.parent
            if isinstance(parent, Tag) and has_class(parent, "table-wrapper"):
                return
            wrapper = soup.new_tag("section")
            wrapper["class"] = ["table-wrapper"]
            table.wrap(wrapper)

        self._each("tables", soup.find_all("table"), wrap)

    def _inline_styles(self, soup: BeautifulSoup) -> None:
        def inline(el: Tag) -> None:
            rules = []
            if el.name in self._styles:
                rules.append(self._styles[el.name])
            for cls in el.get("class") or []:
                rule = self._styles.get(f".{cls}")
                if rule:
                    rules.append(rule)
            if not rules:
                return
            existing = str(el.get("style", "")).strip().rstrip(";")
            merged = " ".join(rules)
            el["style"] = f"{existing}; {merged}" if existing else merged

        self._each("styles", soup.find_all(True), inline)


def _strip_marker(anchor: Tag) -> None:
    """Drop a trailing "[n]" the author typed; the adapter assigns its own."""
    strings = [s for s in anchor.find_all(string=True) if s.strip()]
    if not strings:
        return
    last = strings[-1]
    cleaned = _MARKER_RE.sub("", str(last))
    if cleaned != str(last):
        last.replace_with(NavigableString(cleaned))


__all__ = ["DEFAULT_STYLES", "WeChatAdapter"]
