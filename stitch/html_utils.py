"""HTML utility functions for Stitch.

Functions:
    escape_html: Escape special HTML characters in a string.
    insert_before_body_end: Insert markup before the closing body tag.
"""

from __future__ import annotations

import re

_BODY_CLOSE_RE = re.compile(r"</\s*body\s*>", re.IGNORECASE)


def escape_html(text: str, quote: bool = True) -> str:
    """Escape special HTML characters in a string.

    Converts the following characters to their HTML entity equivalents:
    - & becomes &amp;
    - < becomes &lt;
    - > becomes &gt;
    - " becomes &quot; (only when ``quote`` is true)

    Args:
        text: The string to escape.
        quote: Whether to escape double quotes as well.

    Returns:
        The escaped string, safe for inclusion in HTML.

    Examples:
        >>> escape_html('<script>alert("XSS")</script>')
        '&lt;script&gt;alert(&quot;XSS&quot;)&lt;/script&gt;'

        >>> escape_html('Tom & Jerry')
        'Tom &amp; Jerry'
    """
    escaped = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    if quote:
        escaped = escaped.replace('"', "&quot;")
    return escaped


def insert_before_body_end(html: str, snippet: str) -> str:
    """Insert ``snippet`` before the last ``</body>`` tag, or append it.

    Examples:
        >>> insert_before_body_end("<body>Hi</body>", "<script></script>")
        '<body>Hi<script></script></body>'

        >>> insert_before_body_end("<p>Hi</p>", "<script></script>")
        '<p>Hi</p><script></script>'
    """
    matches = list(_BODY_CLOSE_RE.finditer(html))
    if not matches:
        return html + snippet
    index = matches[-1].start()
    return html[:index] + snippet + html[index:]
