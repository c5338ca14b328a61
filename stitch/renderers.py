"""Content renderers for Stitch.

This module contains implementations of the ContentRenderer protocol
for the two render-eligible source kinds. Each renderer only turns source
text into HTML; component injection happens afterwards, on the result.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
- HTMLRenderer: Passes through HTML content.
- RendererRegistry: Picks the renderer for a source kind.
"""

from __future__ import annotations

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .discovery import SourceKind
from .errors import MarkdownRenderError
from .html_utils import escape_html
from .injection import TAG_MARKER_RE
from .protocols import ContentRenderer


def _shield_braces(html: str) -> str:
    """Encode ``{`` so code samples never form component markers."""
    return html.replace("{", "&#123;")


def _merge_text_tokens(tokens) -> list:
    merged: list = []
    for token in tokens:
        if token.get("type") == "text" and merged and merged[-1].get("type") == "text":
            merged[-1] = {"type": "text", "raw": merged[-1]["raw"] + token["raw"]}
        else:
            merged.append(token)
    return merged


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown HTML renderer that keeps raw HTML and highlights code blocks.

    Tag-form component markers (``<#name />``) in prose are emitted
    unescaped so the injection engine resolves them like in HTML pages.
    Markers inside code spans and code blocks are rendered as literal text.
    """

    def __init__(self):
        super().__init__(escape=False)

    def render_tokens(self, tokens, state) -> str:
        # The inline parser may split one marker over several text tokens.
        return super().render_tokens(_merge_text_tokens(tokens), state)

    def text(self, text: str) -> str:
        pieces = []
        position = 0
        for match in TAG_MARKER_RE.finditer(text):
            pieces.append(super().text(text[position : match.start()]))
            pieces.append(match.group(0))
            position = match.end()
        pieces.append(super().text(text[position:]))
        return "".join(pieces)

    def codespan(self, text: str) -> str:
        return super().codespan(_shield_braces(text))

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Info string of the fence; its first word names the language.

        Returns:
            HTML string with highlighted code, or a plain escaped block when
            the language is unknown.
        """
        lang = info.split()[0] if info and info.strip() else None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return _shield_braces(highlight(code, lexer, formatter))
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        code_html = _shield_braces(escape_html(code, quote=False))
        return f"<pre><code{lang_class}>{code_html}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    Rendering is CommonMark-style and lenient: malformed input produces
    best-effort HTML. Raw HTML, including component markers, is kept.
    """

    plugins = ["strikethrough", "footnotes", "table", "url"]

    def __init__(self):
        self._markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(), plugins=self.plugins
        )

    @property
    def source_type(self) -> str:
        """Return the source type identifier."""
        return "markdown"

    def can_render(self, kind: SourceKind) -> bool:
        return kind is SourceKind.MARKDOWN_PAGE

    def render(self, content: str) -> str:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source content.

        Returns:
            Rendered HTML.

        Raises:
            MarkdownRenderError: If the Markdown library fails on the input.
        """
        try:
            return self._markdown(content)
        except Exception as exc:
            raise MarkdownRenderError(None, f"Cannot render Markdown: {exc}", exc) from exc


class HTMLRenderer:
    """Passes through HTML content unchanged."""

    @property
    def source_type(self) -> str:
        """Return the source type identifier."""
        return "html"

    def can_render(self, kind: SourceKind) -> bool:
        return kind is SourceKind.HTML_PAGE

    def render(self, content: str) -> str:
        return content


class RendererRegistry:
    """Registry for content renderers.

    This registry allows adding new renderers without modifying
    existing code.
    """

    def __init__(self):
        """Initialize the registry with default renderers."""
        self._renderers: list[ContentRenderer] = []
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer: ContentRenderer) -> None:
        """Register a new renderer.

        Renderers registered later are consulted first, so a custom renderer
        can take over a kind from a default one.

        Args:
            renderer: A ContentRenderer implementation.
        """
        self._renderers.insert(0, renderer)

    def get_renderer(self, kind: SourceKind) -> ContentRenderer | None:
        """Get the renderer for a source kind.

        Args:
            kind: Kind of the source file.

        Returns:
            The first renderer that can handle the kind, or None.
        """
        for renderer in self._renderers:
            if renderer.can_render(kind):
                return renderer
        return None
