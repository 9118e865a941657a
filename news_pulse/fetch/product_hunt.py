"""
Product Hunt adapter.

Product Hunt exposes no usable public API for recent launches, so the feed
page is downloaded and its ``<item>``/``<entry>`` blocks are scraped with
BeautifulSoup. Only AI-related launches are kept.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import time
from typing import Callable

from bs4 import BeautifulSoup, NavigableString, Tag
import httpx

from ..core.identity import item_id
from ..core.taxonomy import Taxonomy, mentions
from ..core.types import Item, SourceResult, isoformat, parse_timestamp
from .base import Source
from .fetcher import fetch_url
from .text import strip_html, truncate

PRODUCT_HUNT_FEED = "https://www.producthunt.com/feed"


class ProductHuntSource(Source):
    """Adapter scraping AI launches from the Product Hunt feed."""

    name = "Product Hunt"

    def __init__(
        self,
        taxonomy: Taxonomy,
        url: str = PRODUCT_HUNT_FEED,
        max_items: int = 10,
        retries: int = 1,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(retries=retries, clock=clock)
        self.taxonomy = taxonomy
        self.url = url
        self.max_items = max_items

    async def fetch(self, client: httpx.AsyncClient, lookback: timedelta) -> SourceResult:
        result = await fetch_url(
            client,
            self.url,
            self.retries,
            headers={"Accept": "application/rss+xml, application/xml, text/xml"},
        )
        if not result.ok:
            return self.failed(result.error or "Empty response")
        return SourceResult(source=self.name, items=self.parse(result.text or "", self.cutoff(lookback)))

    def parse(self, markup: str, cutoff: datetime) -> list[Item]:
        soup = BeautifulSoup(markup, "html.parser")
        items: list[Item] = []
        for block in soup.find_all(["item", "entry"]):
            item = self._block_to_item(block, cutoff)
            if item is None:
                continue
            items.append(item)
            if len(items) >= self.max_items:
                break
        return items

    def _block_to_item(self, block: Tag, cutoff: datetime) -> Item | None:
        title = _child_text(block, "title")
        link = _block_link(block)
        if not title or not link:
            return None

        raw_date = _child_text(block, "pubdate") or _child_text(block, "published") or _child_text(block, "updated")
        published = parse_timestamp(raw_date) if raw_date else self.now()
        if published is None or published <= cutoff:
            return None

        description = strip_html(_child_text(block, "description") or _child_text(block, "content") or _child_text(block, "summary"))
        combined = f"{title} {description}".lower()
        if not mentions(combined, self.taxonomy.product_keywords):
            return None

        slug = link.rstrip("/").rsplit("/", 1)[-1]
        return Item(
            id=item_id(self.name, f"ph-{slug}"),
            title=title,
            link=link,
            published_at=isoformat(published),
            source=self.name,
            tier="community",
            excerpt=truncate(description, 300),
            source_category=product_category(combined),
            source_tags=("Product Hunt", "New Tool"),
        )


def product_category(text: str) -> str:
    """Guess a category for a launch from its title and description."""
    if mentions(text, ("code", "coding", "developer", "ide", "programming")):
        return "ide_launch"
    if mentions(text, ("agent", "automation", "workflow")):
        return "agent"
    if mentions(text, ("image", "design", "art")):
        return "image_ai"
    if mentions(text, ("video",)):
        return "video_ai"
    if mentions(text, ("api", "integration")):
        return "api"
    return "feature"


def _child_text(block: Tag, name: str) -> str:
    child = block.find(name)
    if child is None:
        return ""
    return child.get_text(" ", strip=True)


def _block_link(block: Tag) -> str | None:
    """Find the link of an RSS item or Atom entry.

    ``html.parser`` treats ``<link>`` as a void element, so an RSS link's
    URL ends up as the text node right after the tag.
    """
    tag = block.find("link")
    if tag is None:
        return None
    href = tag.get("href")
    if href:
        return str(href).strip()
    text = tag.get_text(strip=True)
    if text:
        return text
    sibling = tag.next_sibling
    if isinstance(sibling, NavigableString) and sibling.strip():
        return sibling.strip()
    return None
