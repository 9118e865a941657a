"""Identity helpers for aggregated items.

An item id is derived from the source name plus a source-local key (a feed
GUID, an API object id, a product slug). Fetching the same article twice
therefore yields the same id, which both the classification cache and
deduplication rely on.
"""

from __future__ import annotations

import hashlib
import re


def slugify(text: str) -> str:
    """Convert text to URL-safe slug.

    Args:
        text: The text to slugify

    Returns:
        A lowercase, hyphenated slug limited to 50 characters
    """
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    if not slug:
        slug = "untitled"
    return slug[:50]


def short_hash(value: str, length: int = 12) -> str:
    """Return the first ``length`` hex characters of the SHA-1 of ``value``."""
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:length]


def item_id(source: str, local_key: str) -> str:
    """Build a stable item identifier from a source name and a source-local key.

    ``item_id("Hacker News", "hn-123")`` gives ``"hacker-news-<12 hex chars>"``.
    """
    key = (local_key or "").strip()
    return f"{slugify(source)}-{short_hash(key)}"
