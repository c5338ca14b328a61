import pytest

from stitch.discovery import SourceKind
from stitch.errors import MarkdownRenderError
from stitch.protocols import ContentRenderer
from stitch.renderers import HTMLRenderer, MarkdownRenderer, RendererRegistry


def test_markdown_heading():
    assert MarkdownRenderer().render("# About") == "<h1>About</h1>\n"


def test_markdown_keeps_raw_html_and_markers():
    renderer = MarkdownRenderer()
    html = renderer.render("<div class=\"hero\">x</div>\n\n{{nav}}\n")
    assert '<div class="hero">x</div>' in html
    assert "<p>{{nav}}</p>" in html


def test_markdown_plugins_enabled():
    html = MarkdownRenderer().render("~~gone~~\n\n| a | b |\n|---|---|\n| 1 | 2 |\n")
    assert "<del>gone</del>" in html
    assert "<table>" in html


def test_markdown_highlights_known_languages():
    html = MarkdownRenderer().render("```python\nprint('hi')\n```\n")
    assert 'class="highlight"' in html


def test_markdown_unknown_language_falls_back_to_plain_block():
    html = MarkdownRenderer().render("```nosuchlang\n<tag> & more\n```\n")
    assert '<pre><code class="language-nosuchlang">' in html
    assert "&lt;tag&gt; &amp; more" in html


def test_markdown_keeps_tag_markers_but_escapes_other_text():
    html = MarkdownRenderer().render("Intro <#nav /> and <#site_footer/> when a < b & c")
    assert "<#nav />" in html
    assert "<#site_footer/>" in html
    assert "a &lt; b &amp; c" in html


def test_markdown_code_never_forms_markers():
    renderer = MarkdownRenderer()
    inline = renderer.render("Write `{{ nav }}` or `<#nav />`.")
    assert "<code>&#123;&#123; nav }}</code>" in inline
    assert "&lt;#nav /&gt;" in inline
    for fence in ("nosuchlang", "html", ""):
        block = renderer.render(f"```{fence}\n<p>{{{{ nav }}}}</p>\n```\n")
        assert "{{" not in block
        assert "&#123;" in block


def test_markdown_is_lenient_with_malformed_input():
    html = MarkdownRenderer().render("**unclosed *emphasis\n\n[broken](link")
    assert "unclosed" in html


def test_markdown_failure_is_wrapped(monkeypatch):
    renderer = MarkdownRenderer()

    def boom(text):
        raise ValueError("parser exploded")

    monkeypatch.setattr(renderer, "_markdown", boom)
    with pytest.raises(MarkdownRenderError) as excinfo:
        renderer.render("# x")
    assert isinstance(excinfo.value.original_error, ValueError)
    assert "parser exploded" in excinfo.value.message


def test_html_renderer_passthrough():
    renderer = HTMLRenderer()
    assert renderer.render("<p>{{ nav }}</p>\r\n") == "<p>{{ nav }}</p>\r\n"
    assert renderer.source_type == "html"


def test_renderers_follow_protocol():
    assert isinstance(MarkdownRenderer(), ContentRenderer)
    assert isinstance(HTMLRenderer(), ContentRenderer)


def test_registry_selects_by_kind_and_prefers_later_registrations():
    registry = RendererRegistry()
    assert isinstance(registry.get_renderer(SourceKind.MARKDOWN_PAGE), MarkdownRenderer)
    assert isinstance(registry.get_renderer(SourceKind.HTML_PAGE), HTMLRenderer)
    assert registry.get_renderer(SourceKind.STATIC_ASSET) is None

    class Shouting:
        source_type = "shout"

        def can_render(self, kind):
            return kind is SourceKind.HTML_PAGE

        def render(self, content):
            return content.upper()

    custom = Shouting()
    registry.register(custom)
    assert registry.get_renderer(SourceKind.HTML_PAGE) is custom
