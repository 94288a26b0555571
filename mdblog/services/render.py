"""Markdown rendering and HTML sanitization."""

from functools import lru_cache

import bleach
import markdown
from pygments.formatters import HtmlFormatter

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "codehilite", "toc", "sane_lists"]

HIGHLIGHT_CSS_CLASS = "codehilite"

ALLOWED_TAGS = frozenset(
    {
        "a", "abbr", "b", "blockquote", "br", "code", "del", "details", "div",
        "em", "figcaption", "figure", "h1", "h2", "h3", "h4", "h5", "h6", "hr",
        "i", "img", "kbd", "li", "ol", "p", "pre", "s", "span", "strong", "sub",
        "summary", "sup", "table", "tbody", "td", "th", "thead", "tr", "ul",
    }
)

ALLOWED_ATTRIBUTES = {
    "*": ["class", "id", "title"],
    "a": ["href", "rel", "target"],
    "img": ["src", "alt", "width", "height", "loading"],
    "td": ["align"],
    "th": ["align"],
    "iframe": [
        "src", "width", "height", "frameborder", "allow", "allowfullscreen",
        "loading", "referrerpolicy",
    ],
}


def sanitize_html(html: str, allow_iframes: bool = False) -> str:
    """Strip scripts, event handlers and unknown tags from rendered HTML."""
    tags = ALLOWED_TAGS | {"iframe"} if allow_iframes else ALLOWED_TAGS
    return bleach.clean(html, tags=tags, attributes=ALLOWED_ATTRIBUTES, strip=True)


def render_markdown(
    text: str,
    *,
    allow_iframes: bool = False,
    disable_html_sanitization: bool = False,
) -> str:
    """Render Markdown to HTML, sanitized unless explicitly disabled."""
    html = markdown.markdown(text, extensions=MARKDOWN_EXTENSIONS)
    if disable_html_sanitization:
        return html
    return sanitize_html(html, allow_iframes=allow_iframes)


@lru_cache
def highlight_css() -> str:
    """Pygments stylesheet matching the classes emitted by codehilite."""
    return HtmlFormatter().get_style_defs(f".{HIGHLIGHT_CSS_CLASS}")
