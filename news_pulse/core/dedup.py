"""
Cross-source deduplication using normalized links and titles.

This module removes duplicate items based on:
1. Normalized link matches (same article under http/https, www, trailing slash)
2. Normalized title prefix matches (same headline syndicated elsewhere)
3. Optional fuzzy title similarity (near-identical headlines)

Input is expected to be ranked best first, so the first occurrence of a
duplicate group is the highest-scored one and wins.
"""

from __future__ import annotations

import re

from rapidfuzz import fuzz

from .types import Item


_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_link(link: str) -> str:
    """Normalize a link for duplicate detection.

    Lowercases, strips the scheme, a leading ``www.`` and a trailing slash.

    Example:
        >>> normalize_link("http://Foo.com/bar/")
        'foo.com/bar'
        >>> normalize_link("https://www.foo.com/bar")
        'foo.com/bar'
    """
    text = link.strip().lower()
    text = _SCHEME_RE.sub("", text)
    if text.startswith("www."):
        text = text[4:]
    return text.rstrip("/")


def normalize_title(title: str, prefix_length: int = 50) -> str:
    """Keep lowercase alphanumerics of a title, truncated to a fixed prefix."""
    return _NON_ALNUM_RE.sub("", title.lower())[:prefix_length]


def dedup_items(
    items: list[Item],
    prefix_length: int = 50,
    min_title_key_length: int = 10,
    similarity_threshold: int | None = None,
) -> list[Item]:
    """Remove duplicate items from a ranked list, preserving order.

    Args:
        items: Items ranked best first
        prefix_length: Characters of the normalized title used as key
        min_title_key_length: Normalized titles of this length or shorter
            are too generic to mark duplicates
        similarity_threshold: rapidfuzz ratio (0-100) above which two
            normalized titles count as duplicates; None disables the check

    Returns:
        Deduplicated list of items
    """
    seen_links: set[str] = set()
    seen_titles: set[str] = set()
    kept_titles: list[str] = []
    kept: list[Item] = []

    for item in items:
        link_key = normalize_link(item.link)
        if link_key in seen_links:
            continue

        title_key = normalize_title(item.title, prefix_length)
        significant = len(title_key) > min_title_key_length
        if significant and title_key in seen_titles:
            continue
        if significant and similarity_threshold is not None:
            if _is_similar_title(title_key, kept_titles, similarity_threshold):
                continue

        seen_links.add(link_key)
        if significant:
            seen_titles.add(title_key)
            kept_titles.append(title_key)
        kept.append(item)

    return kept


def _is_similar_title(title: str, titles: list[str], threshold: int) -> bool:
    """Check if a normalized title is similar to any already kept title.

    Uses rapidfuzz's ratio, the normalized Indel similarity as a percentage.
    """
    for existing in titles:
        if fuzz.ratio(title, existing) >= threshold:
            return True
    return False
