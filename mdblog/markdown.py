"""Markdown to HTML conversion for mdblog.

Post bodies are converted with mistune. Fenced code blocks that name a
language are highlighted with Pygments; anything else falls back to a plain
escaped ``<pre><code>`` block.
"""

from __future__ import annotations

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

PLUGINS = ["strikethrough", "footnotes", "table", "url", "math"]


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer that keeps raw HTML and highlights fenced code."""

    def __init__(self):
        super().__init__(escape=False)

    def block_code(self, code: str, info: str | None = None) -> str:
        lang = info.split()[0] if info and info.strip() else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                return highlight(code, lexer, HtmlFormatter(cssclass="highlight"))
        escaped = mistune.escape(code)
        lang_class = f' class="language-{mistune.escape(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


def render_markdown(text: str) -> str:
    """Convert markdown text to HTML.

    Args:
        text: Markdown source.

    Returns:
        Rendered HTML string.
    """
    markdown = mistune.create_markdown(renderer=_HighlightRenderer(), plugins=PLUGINS)
    return markdown(text)


def pygments_css(style: str = "default") -> str:
    """Return the Pygments stylesheet for the ``.highlight`` class."""
    return HtmlFormatter(style=style).get_style_defs(".highlight")
