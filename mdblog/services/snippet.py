"""Plain-text helpers over a post's Markdown body."""

import html
import math
import re

import markdown

WORDS_PER_MINUTE = 200

_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_markdown(text: str) -> str:
    """Return the visible text of a Markdown fragment, on a single line."""
    rendered = markdown.markdown(text)
    plain = html.unescape(_TAG_RE.sub("", rendered))
    return _WHITESPACE_RE.sub(" ", plain).strip()


def extract_snippet(body: str) -> str:
    """Derive a summary from the first paragraph of *body*.

    The body is split on the first blank line and the leading chunk is
    stripped of Markdown syntax. Returns an empty string when there is no
    content.
    """
    first = body.strip().split("\n\n", 1)[0]
    if not first:
        return ""
    return strip_markdown(first)


def estimate_read_time(body: str) -> int:
    """Minutes needed to read *body*, rounded up, never less than one."""
    words = len(body.split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))
