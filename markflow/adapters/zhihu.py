"""Zhihu adapter.

Zhihu keeps CSS classes and renders LaTeX client-side, so this adapter
tags elements with the editor's ``ztext-*`` classes instead of inlining
styles, and leaves math source untouched.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, NavigableString, Tag

from markflow.adapters.base import PlatformAdapter, Step, add_class, math_elements, page_title
from markflow.core.content import Diagnostic, Metadata, Target

logger = logging.getLogger(__name__)

FORBIDDEN_TAGS = (
    "script", "style", "iframe", "object", "embed", "form", "input", "button", "meta", "link",
)
# Words Zhihu's review tends to flag.
FLAGGED_KEYWORDS = ("广告", "推广", "联系方式")

STYLESHEET = """\
.ztext-image { max-width: 100%; height: auto; display: block; margin: 20px auto; }
.ztext-table { width: 100%; border-collapse: collapse; margin: 20px 0; }
.ztext-list { margin: 15px 0; padding-left: 30px; }
.ztext-math { font-family: 'Times New Roman', serif; }
.ztext-tag { display: inline-block; background: #f0f0f0; color: #666; padding: 2px 8px; border-radius: 12px; font-size: 12px; margin: 2px; }
.ztext-meta { margin-top: 30px; padding-top: 20px; border-top: 1px solid #eee; }
.highlight { background: #f8f8f8; border-radius: 4px; padding: 16px; margin: 16px 0; }
.inline-code { background: #f0f0f0; color: #d73a49; padding: 2px 4px; border-radius: 3px; font-family: 'SFMono-Regular', Consolas, monospace; }
"""


class ZhihuAdapter(PlatformAdapter):
    target = Target.zhihu

    def steps(self) -> list[tuple[str, Step]]:
        return [
            ("tasks", self._replace_task_checkboxes),
            ("sanitize", lambda soup, _meta: self._sanitize(soup, FORBIDDEN_TAGS)),
            ("math", self._tag_math),
            ("code", self._wrap_code),
            ("images", self._responsive_images),
            ("tables", lambda soup, _meta: self._tag_all(soup, "tables", ["table"], "ztext-table")),
            ("lists", lambda soup, _meta: self._tag_all(soup, "lists", ["ul", "ol"], "ztext-list")),
            ("tags", self._append_tags),
        ]

    def adapt_styles(self, html: str) -> str:
        # Classes are styled by Zhihu itself; nothing to inline.
        return html

    @property
    def stylesheet(self) -> str:
        return STYLESHEET

    def validate(self, metadata: Metadata, soup: BeautifulSoup) -> list[Diagnostic]:
        cfg = self.config.zhihu
        notices: list[Diagnostic] = []

        def notice(message: str) -> None:
            notices.append(Diagnostic(stage="validate", target=self.target.value, message=message))

        title = page_title(metadata, soup)
        if not title:
            notice("title is empty")
        elif len(title) > cfg.max_title_length:
            notice(f"title longer than {cfg.max_title_length} characters ({len(title)})")
        text = soup.get_text()
        if len(text) > cfg.max_content_length:
            notice(f"content longer than {cfg.max_content_length} characters ({len(text)})")
        if len(metadata.tags) > cfg.max_tags:
            notice(f"more than {cfg.max_tags} tags ({len(metadata.tags)})")
        for word in FLAGGED_KEYWORDS:
            if word in text:
                notice(f"content contains possibly restricted keyword {word!r}")
        return notices

    # -- steps -----------------------------------------------------------------

    def _tag_math(self, soup: BeautifulSoup, metadata: Metadata) -> None:
        enabled = self.config.zhihu.enable_math
        for el, tex, block in math_elements(soup):
            if not enabled:
                el.replace_with(NavigableString(f"$${tex}$$" if block else f"${tex}$"))
                continue
            new = soup.new_tag("div" if block else "span")
            new["class"] = ["ztext-math"]
            new["data-eeimg"] = "1"
            new["data-tex"] = tex
            new["data-mode"] = "display" if block else "inline"
            new.string = tex
            el.replace_with(new)

    def _wrap_code(self, soup: BeautifulSoup, metadata: Metadata) -> None:
        theme = self.config.zhihu.code_theme

        def wrap_block(pre: Tag) -> None:
            code = pre.find("code")
            if code is None:
                return
            lang = _detect_language(code)
            code["class"] = [f"language-{lang}"]
            code["data-lang"] = lang
            wrapper = soup.new_tag("div")
            wrapper["class"] = ["highlight"]
            wrapper["data-theme"] = theme
            pre.wrap(wrapper)

        def tag_inline(code: Tag) -> None:
            if code.find_parent("pre") is None:
                add_class(code, "inline-code")

        self._each("code", soup.find_all("pre"), wrap_block)
        self._each("code", soup.find_all("code"), tag_inline)

    def _responsive_images(self, soup: BeautifulSoup, metadata: Metadata) -> None:
        def responsive(img: Tag) -> None:
            for attr in ("width", "height", "style"):
                if attr in img.attrs:
                    del img.attrs[attr]
            add_class(img, "ztext-image")
            img["loading"] = "lazy"
            if not img.has_attr("alt"):
                img["alt"] = ""

        self._each("images", soup.find_all("img"), responsive)

    def _tag_all(self, soup: BeautifulSoup, step: str, names: list[str], cls: str) -> None:
        self._each(step, soup.find_all(names), lambda el: add_class(el, cls))

    def _append_tags(self, soup: BeautifulSoup, metadata: Metadata) -> None:
        if not self.config.zhihu.show_tags or not metadata.tags:
            return
        meta = soup.new_tag("div")
        meta["class"] = ["ztext-meta"]
        tags = soup.new_tag("div")
        tags["class"] = ["ztext-tags"]
        for i, tag in enumerate(metadata.tags):
            if i:
                tags.append(NavigableString(" "))
            span = soup.new_tag("span")
            span["class"] = ["ztext-tag"]
            span.string = f"#{tag}"
            tags.append(span)
        meta.append(tags)
        soup.append(meta)


def _detect_language(code: Tag) -> str:
    for cls in code.get("class") or []:
        if cls.startswith("language-") and len(cls) > len("language-"):
            return cls[len("language-"):]
    return "text"
