"""Component injection for Stitch.

A page references a component by name with either of two markers:

- ``{{ name }}``, which also survives Markdown rendering as plain text.
- ``<#name />``, the tag form. Whitespace around the name is optional.

Names consist of letters, digits, ``_``, ``.`` and ``-``.

Injection is a single left-to-right pass. Spliced component markup is never
rescanned, so marker-like text inside a component is emitted as-is and
self-references cannot loop.

HTML pages are scanned as written, including text inside <code> and <pre>;
write &#123;{ there to show a literal marker. Markdown code spans and code
blocks are rendered with their braces encoded, so template snippets in
documentation pages are never taken for references.
"""

from __future__ import annotations

import re
from pathlib import Path

from .components import ComponentRegistry
from .errors import UnknownComponentError

COMPONENT_REF_RE = re.compile(
    r"\{\{\s*(?P<name>[\w.-]+)\s*\}\}"
    r"|<\s*#(?P<tag>[\w.-]+)\s*/>"
)
TAG_MARKER_RE = re.compile(r"<\s*#[\w.-]+\s*/>")


def _ref_name(match: re.Match) -> str:
    return match.group("name") or match.group("tag")


def find_references(html: str) -> list[str]:
    """List the component names referenced by ``html`` in document order.

    Examples:
        >>> find_references("<body>{{ nav }}<#footer /></body>")
        ['nav', 'footer']
    """
    return [_ref_name(m) for m in COMPONENT_REF_RE.finditer(html)]


def inject(html: str, registry: ComponentRegistry, source_path: Path | None = None) -> str:
    """Replace component references with component markup.

    Args:
        html: Page HTML.
        registry: Loaded components.
        source_path: Page being built, used in error reports.

    Returns:
        HTML with every reference spliced. Text without references is
        returned unchanged.

    Raises:
        UnknownComponentError: If a referenced name is not in the registry.
    """
    pieces: list[str] = []
    position = 0
    for match in COMPONENT_REF_RE.finditer(html):
        name = _ref_name(match)
        component = registry.lookup(name)
        if component is None:
            raise UnknownComponentError(name, source_path)
        pieces.append(html[position : match.start()])
        pieces.append(component.raw_markup)
        position = match.end()
    if not pieces:
        return html
    pieces.append(html[position:])
    return "".join(pieces)
