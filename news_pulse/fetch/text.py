"""Plain-text helpers for excerpts built from HTML and Markdown bodies."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup


_WHITESPACE_RE = re.compile(r"\s+")

_MARKDOWN_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"```[\s\S]*?```"), "[code]"),
    (re.compile(r"#{1,6}\s"), ""),
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"!\[([^\]]*)\]\([^)]+\)"), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"^\s*[-*+]\s", re.MULTILINE), "• "),
    (re.compile(r"\n{2,}"), " "),
]


def strip_html(html: str | None) -> str:
    """Convert an HTML fragment to a single line of plain text.

    Example:
        >>> strip_html("<p>Hello <b>world</b></p><script>x()</script>")
        'Hello world'
    """
    if not html:
        return ""
    if "<" not in html:
        return _WHITESPACE_RE.sub(" ", html).strip()
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return _WHITESPACE_RE.sub(" ", soup.get_text(separator=" ")).strip()


def first_image_url(html: str | None) -> str | None:
    """Return the ``src`` of the first ``<img>`` in an HTML fragment."""
    if not html or "<img" not in html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    img = soup.find("img", src=True)
    if img is None:
        return None
    return str(img["src"]).strip() or None


def truncate(text: str, max_chars: int, suffix: str = "...") -> str:
    """Cut text to ``max_chars`` characters, appending ``suffix`` when cut."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + suffix


def truncate_markdown(content: str, max_chars: int) -> str:
    """Flatten Markdown release notes into a short plain-text excerpt."""
    text = content or ""
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return truncate(text.strip(), max_chars)
