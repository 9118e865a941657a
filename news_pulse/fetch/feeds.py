"""
RSS/Atom feed adapter.

One ``FeedSource`` fans out over a list of feeds, fetching them
concurrently and isolating failures per feed. Aggregator-tier feeds only
keep entries that look AI-related.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import time
from typing import Any, Callable

import feedparser
import httpx

from ..core.identity import item_id
from ..core.taxonomy import Taxonomy, mentions
from ..core.types import TIERS, Item, SourceResult, isoformat, parse_timestamp
from ..utils.logging import log_event
from .base import Source
from .fetcher import fetch_url
from .text import first_image_url, strip_html, truncate

logger = logging.getLogger(__name__)

_FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"


@dataclass
class FeedConfig:
    """One tracked feed.

    Attributes:
        name: Display name, used as the item source
        url: Feed URL
        tier: Trust tier of the publisher
        category: Category hint for items of this feed
    """

    name: str
    url: str
    tier: str = "aggregator"
    category: str | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, Any], default_tier: str = "aggregator") -> FeedConfig:
        tier = str(data.get("tier") or default_tier)
        if tier not in TIERS:
            raise ValueError(f"Unknown tier {tier!r} for feed {data.get('name')!r}")
        return cls(
            name=str(data["name"]),
            url=str(data["url"]),
            tier=tier,
            category=data.get("category"),
        )


class FeedSource(Source):
    """Adapter over a list of RSS/Atom feeds parsed with feedparser."""

    def __init__(
        self,
        name: str,
        feeds: list[FeedConfig],
        taxonomy: Taxonomy,
        retries: int = 1,
        max_excerpt_chars: int = 500,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(retries=retries, clock=clock)
        self.name = name
        self.feeds = feeds
        self.taxonomy = taxonomy
        self.max_excerpt_chars = max_excerpt_chars

    async def fetch(self, client: httpx.AsyncClient, lookback: timedelta) -> SourceResult:
        if not self.feeds:
            return SourceResult(source=self.name)
        cutoff = self.cutoff(lookback)
        results = await asyncio.gather(
            *(self._fetch_feed(client, feed, cutoff) for feed in self.feeds),
            return_exceptions=True,
        )

        items: list[Item] = []
        errors: list[str] = []
        for feed, result in zip(self.feeds, results):
            if isinstance(result, BaseException):
                errors.append(f"{feed.name}: {type(result).__name__}: {result}")
                continue
            feed_items, error = result
            if error:
                errors.append(f"{feed.name}: {error}")
            items.extend(feed_items)

        if errors:
            log_event(
                logger,
                "Feed failures",
                logging.WARNING,
                event="feed_failures",
                source=self.name,
                failed=len(errors),
                total=len(self.feeds),
            )
        # Partial failures are only logged; the adapter failed if every feed did.
        error = "; ".join(errors) if len(errors) == len(self.feeds) else None
        return SourceResult(source=self.name, items=items, error=error)

    async def _fetch_feed(
        self,
        client: httpx.AsyncClient,
        feed: FeedConfig,
        cutoff: datetime,
    ) -> tuple[list[Item], str | None]:
        result = await fetch_url(client, feed.url, self.retries, headers={"Accept": _FEED_ACCEPT})
        if not result.ok:
            return [], result.error

        parsed = feedparser.parse(result.text)
        if parsed.get("bozo") and not parsed.entries:
            reason = parsed.get("bozo_exception")
            return [], f"Unparseable feed: {type(reason).__name__ if reason else 'unknown'}"

        items = []
        for entry in parsed.entries:
            item = self._entry_to_item(feed, entry, cutoff)
            if item is not None:
                items.append(item)
        return items, None

    def _entry_to_item(self, feed: FeedConfig, entry: Any, cutoff: datetime) -> Item | None:
        title = strip_html(entry.get("title"))
        link = (entry.get("link") or "").strip()
        if not title or not link:
            return None

        published = _entry_published(entry)
        if published is None or published <= cutoff:
            return None

        body = _entry_body(entry)
        excerpt = truncate(strip_html(entry.get("summary") or body), self.max_excerpt_chars)
        if feed.tier == "aggregator" and not mentions(f"{title} {excerpt}".lower(), self.taxonomy.ai_keywords):
            return None

        local_key = entry.get("id") or link
        return Item(
            id=item_id(feed.name, local_key),
            title=title,
            link=link,
            published_at=isoformat(published),
            source=feed.name,
            tier=feed.tier,
            excerpt=excerpt,
            image_url=_entry_image(entry, body),
            source_category=feed.category,
        )


def _entry_published(entry: Any) -> datetime | None:
    for key in ("published_parsed", "updated_parsed"):
        struct = entry.get(key)
        if struct:
            return datetime(*struct[:6], tzinfo=timezone.utc)
    return parse_timestamp(entry.get("published") or entry.get("updated"))


def _entry_body(entry: Any) -> str:
    content = entry.get("content") or []
    if content:
        return content[0].get("value") or ""
    return entry.get("summary") or ""


def _entry_image(entry: Any, body: str) -> str | None:
    for enclosure in entry.get("enclosures") or []:
        href = enclosure.get("href")
        if href and str(enclosure.get("type", "image")).startswith("image"):
            return href
    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            if media.get("url"):
                return media["url"]
    return first_image_url(body) or first_image_url(entry.get("summary"))
