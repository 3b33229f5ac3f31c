"""
HTML text helpers shared by the rendering pipeline and the diagnostics formatter.
"""

from markupsafe import escape

# Autoescaping emits one of these for a literal apostrophe
APOSTROPHE_ENTITIES = ("&#39;", "&#039;")


def escape_html(text: str) -> str:
    """
    Escape text for safe inclusion in an HTML document.

    Escapes &, <, >, " and '.

    Examples:
        >>> escape_html("<mj-text>it's</mj-text>")
        '&lt;mj-text&gt;it&#39;s&lt;/mj-text&gt;'
    """
    return str(escape(text))


def unescape_apostrophes(text: str) -> str:
    """Turn escaped apostrophes produced by template autoescaping back into literal quotes."""
    for entity in APOSTROPHE_ENTITIES:
        text = text.replace(entity, "'")
    return text
