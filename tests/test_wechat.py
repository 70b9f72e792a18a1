"""Tests for the WeChat adapter."""

from bs4 import BeautifulSoup
import pytest

from markflow.adapters.wechat import DEFAULT_STYLES, WeChatAdapter
from markflow.config.models import MarkflowConfig, WeChatConfig
from markflow.core.content import Metadata


@pytest.fixture
def adapter(sample_config):
    return WeChatAdapter(sample_config)


def _adapt(adapter, html, metadata=None):
    result = adapter.adapt_html(html, metadata or Metadata(title="T"))
    assert result.ok, result.error
    return BeautifulSoup(result.html, "html.parser")


def _footnotes(soup):
    return [li.get_text() for li in soup.select("section.wechat-footnotes li.footnote-item")]


# ── link footnotes ──────────────────────────────────────────────────


class TestLinkFootnotes:
    def test_three_links_numbered_in_document_order(self, adapter):
        html = (
            '<p><a href="https://x.test">X</a> then <a href="https://y.test">Y</a>'
            ' then <a href="https://z.test">Z</a></p>'
        )
        soup = _adapt(adapter, html)
        assert _footnotes(soup) == [
            "[1] X: https://x.test",
            "[2] Y: https://y.test",
            "[3] Z: https://z.test",
        ]
        assert [s.get_text() for s in soup.p.find_all("sup")] == ["[1]", "[2]", "[3]"]

    def test_no_href_or_anchor_survives(self, adapter):
        soup = _adapt(adapter, '<p><a href="https://x.test" title="t">X</a></p>')
        assert soup.find("a") is None
        assert soup.find(attrs={"href": True}) is None
        link = soup.find("span", class_="link")
        assert link.get_text() == "X"

    def test_repeated_url_reuses_number(self, adapter):
        html = '<p><a href="https://x.test">one</a> <a href="https://x.test">two</a></p>'
        soup = _adapt(adapter, html)
        assert _footnotes(soup) == ["[1] one: https://x.test"]
        assert [s.get_text() for s in soup.p.find_all("sup")] == ["[1]", "[1]"]

    def test_bare_url_has_no_label(self, adapter):
        soup = _adapt(adapter, '<p><a href="https://x.test">https://x.test</a></p>')
        assert _footnotes(soup) == ["[1] https://x.test"]

    def test_internal_link_is_not_a_footnote(self, adapter):
        soup = _adapt(adapter, '<p><a href="#intro">Intro</a></p>')
        assert soup.find("section", class_="wechat-footnotes") is None
        assert soup.find("sup") is None
        assert soup.find("span", class_="link").get_text() == "Intro"

    def test_heading_from_config(self):
        cfg = MarkflowConfig(wechat=WeChatConfig(footnote_heading="References"))
        soup = _adapt(WeChatAdapter(cfg), '<p><a href="https://x.test">X</a></p>')
        assert soup.find("p", class_="footnotes-title").get_text() == "References"


class TestAuthorFootnotes:
    def test_author_footnotes_share_the_sequence(self, adapter, renderer):
        md = "See [docs](https://a.test), a claim[^note] and [more](https://b.test).\n\n[^note]: Source text.\n"
        soup = _adapt(adapter, renderer.render(md).html)
        assert _footnotes(soup) == [
            "[1] docs: https://a.test",
            "[2] Source text.",
            "[3] more: https://b.test",
        ]
        assert soup.find("section", class_="footnotes") is None
        assert soup.find("hr", class_="footnotes-sep") is None
        assert "↩" not in soup.get_text()

    def test_link_inside_footnote_keeps_its_url(self, adapter, renderer):
        md = "Claim[^1].\n\n[^1]: See [paper](https://paper.test/x).\n"
        soup = _adapt(adapter, renderer.render(md).html)
        assert _footnotes(soup) == ["[1] See paper (https://paper.test/x)."]
        assert soup.find(attrs={"href": True}) is None

    def test_bare_url_inside_footnote_not_repeated(self, adapter, renderer):
        md = "Claim[^1].\n\n[^1]: <https://paper.test/x>\n"
        soup = _adapt(adapter, renderer.render(md).html)
        assert _footnotes(soup) == ["[1] https://paper.test/x"]

    def test_existing_marker_is_renumbered_not_merged(self, adapter, renderer):
        md = "A claim[^1] and [docs [1]](https://a.test).\n\n[^1]: First note.\n"
        soup = _adapt(adapter, renderer.render(md).html)
        assert _footnotes(soup) == ["[1] First note.", "[2] docs: https://a.test"]
        assert soup.find("span", class_="link").get_text() == "docs"
        assert [s.get_text() for s in soup.p.find_all("sup")] == ["[1]", "[2]"]


# ── other steps ─────────────────────────────────────────────────────


class TestStyles:
    def test_styles_are_inlined(self, adapter):
        soup = _adapt(adapter, "<h1>T</h1><p>body</p>")
        assert soup.h1["style"] == DEFAULT_STYLES["h1"]
        assert soup.p["style"] == DEFAULT_STYLES["p"]

    def test_class_rules_are_applied(self, adapter):
        soup = _adapt(adapter, '<p><a href="https://x.test">X</a></p>')
        assert DEFAULT_STYLES[".link"] in soup.find("span", class_="link")["style"]

    def test_config_overrides_a_rule(self):
        cfg = MarkflowConfig(wechat=WeChatConfig(styles={"p": "color: red;"}))
        soup = _adapt(WeChatAdapter(cfg), "<p>x</p>")
        assert soup.p["style"] == "color: red;"

    def test_no_style_element_in_output(self, adapter):
        soup = _adapt(adapter, "<style>p{color:red}</style><p>x</p>")
        assert soup.find("style") is None

    def test_adapt_styles_only_styles(self, adapter):
        html = adapter.adapt_styles('<p><a href="https://x.test">X</a></p>')
        assert 'href="https://x.test"' in html
        assert DEFAULT_STYLES["p"] in html

    def test_stylesheet_contains_rules(self, adapter):
        assert ".footnote-item {" in adapter.stylesheet


class TestImages:
    def test_dimensions_removed(self, adapter):
        soup = _adapt(
            adapter,
            '<p><img src="https://x.test/a.png" width="600" height="400" style="width: 600px; border: 0"></p>',
        )
        img = soup.img
        assert not img.has_attr("width")
        assert not img.has_attr("height")
        assert img["style"].startswith("border: 0; ")
        assert "max-width: 100%" in img["style"]
        assert img["alt"] == ""


class TestStructure:
    def test_tables_are_wrapped(self, adapter):
        soup = _adapt(adapter, "<table><tr><td>1</td></tr></table>")
        assert soup.table.parent.name == "section"
        assert "table-wrapper" in soup.table.parent["class"]

    def test_math_shown_as_source(self, adapter, renderer):
        soup = _adapt(adapter, renderer.render("Mass $E=mc^2$.\n\n$$\nx+1\n$$\n").html)
        maths = soup.find_all(class_="math")
        assert [m.get_text() for m in maths] == ["$E=mc^2$", "$$x+1$$"]

    def test_task_checkboxes_become_glyphs(self, adapter, renderer):
        soup = _adapt(adapter, renderer.render("- [x] done\n- [ ] todo\n").html)
        assert soup.find("input") is None
        assert "☑" in soup.get_text()
        assert "☐" in soup.get_text()

    def test_scripts_and_handlers_removed(self, adapter):
        soup = _adapt(adapter, '<p onclick="evil()">hi</p><script>alert(1)</script>')
        assert soup.find("script") is None
        assert not soup.p.has_attr("onclick")


class TestValidation:
    def test_long_title_is_a_notice(self, adapter):
        result = adapter.adapt_html("<p>x</p>", Metadata(title="t" * 65))
        assert result.ok
        assert any("title longer" in n.message for n in result.notices)

    def test_missing_title_is_a_notice(self, adapter):
        result = adapter.adapt_html("<p>x</p>", Metadata())
        assert any("title is empty" in n.message for n in result.notices)

    def test_relative_cover_is_a_notice(self, adapter):
        result = adapter.adapt_html("<p>x</p>", Metadata(title="t", cover="cover.png"))
        assert any("cover" in n.message for n in result.notices)


class TestFailure:
    def test_step_failure_names_the_step(self, adapter, monkeypatch):
        def boom(self, soup, metadata):
            raise RuntimeError("cannot constrain")

        monkeypatch.setattr(WeChatAdapter, "_constrain_images", boom)
        result = adapter.adapt_html('<p><img src="a.png"></p>', Metadata(title="t"))
        assert not result.ok
        assert result.error.target == "wechat"
        assert "'images'" in result.error.message
        assert "cannot constrain" in result.error.message

    def test_validation_failure_becomes_adapter_error(self, adapter, monkeypatch):
        def boom(self, metadata, soup):
            raise KeyError("limits")

        monkeypatch.setattr(WeChatAdapter, "validate", boom)
        result = adapter.adapt_html("<p>x</p>", Metadata(title="t"))
        assert not result.ok
        assert result.html is None
        assert "'validate'" in result.error.message

    def test_canonical_html_is_not_mutated(self, adapter):
        html = '<p><a href="https://x.test">X</a></p>'
        adapter.adapt_html(html, Metadata(title="t"))
        assert html == '<p><a href="https://x.test">X</a></p>'
