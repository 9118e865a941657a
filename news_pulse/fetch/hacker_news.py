"""
Hacker News adapter backed by the public Firebase REST API.

Story ids come from the top, new and best lists; stories are fetched in
batches and kept only when they mention AI keywords and none of the
negative (hiring, jobs) keywords.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import logging
import math
import time
from typing import Any, Callable

import httpx

from ..core.identity import item_id
from ..core.taxonomy import Taxonomy, contains, matching, mentions
from ..core.types import Item, SourceResult, isoformat
from ..utils.logging import log_event
from .base import Source
from .fetcher import fetch_url
from .text import strip_html, truncate

logger = logging.getLogger(__name__)

HN_API_BASE = "https://hacker-news.firebaseio.com/v0"

_STORY_LISTS = (("topstories", 100), ("newstories", 50), ("beststories", 50))

_TOOL_TERMS = ("cursor", "copilot", "windsurf", "codeium", "aider", "v0", "bolt")
_AGENT_TERMS = ("langchain", "llamaindex", "llama-index", "ai agent", "mcp", "rag")
_MODEL_TERMS = ("gpt", "claude", "gemini", "llama", "mistral", "o1", "o3")
_IMAGE_TERMS = ("diffusion", "midjourney", "dall-e", "sora", "stable diffusion")


class HackerNewsSource(Source):
    """Adapter for AI-related Hacker News stories."""

    name = "Hacker News"

    def __init__(
        self,
        taxonomy: Taxonomy,
        max_stories: int = 20,
        batch_size: int = 20,
        max_candidates: int = 200,
        retries: int = 1,
        api_base: str = HN_API_BASE,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(retries=retries, clock=clock)
        self.taxonomy = taxonomy
        self.max_stories = max_stories
        self.batch_size = batch_size
        self.max_candidates = max_candidates
        self.api_base = api_base.rstrip("/")

    async def fetch(self, client: httpx.AsyncClient, lookback: timedelta) -> SourceResult:
        cutoff = self.cutoff(lookback)
        id_lists = await asyncio.gather(
            *(self._story_ids(client, kind) for kind, _ in _STORY_LISTS)
        )
        if all(ids is None for ids in id_lists):
            return self.failed("All story lists failed")

        candidates: list[int] = []
        seen: set[int] = set()
        for ids, (_, limit) in zip(id_lists, _STORY_LISTS):
            for story_id in (ids or [])[:limit]:
                if story_id not in seen:
                    seen.add(story_id)
                    candidates.append(story_id)
        candidates = candidates[: self.max_candidates]

        ranked: list[tuple[int, Item]] = []
        # Stop early once there is a comfortable margin over the cap.
        enough = math.ceil(self.max_stories * 1.5)
        for start in range(0, len(candidates), self.batch_size):
            batch = candidates[start : start + self.batch_size]
            stories = await asyncio.gather(*(self._story(client, story_id) for story_id in batch))
            for story in stories:
                parsed = self._story_to_item(story, cutoff) if story else None
                if parsed is not None:
                    ranked.append(parsed)
            if len(ranked) >= enough:
                break

        ranked.sort(key=lambda pair: pair[0], reverse=True)
        items = [item for _, item in ranked[: self.max_stories]]
        log_event(
            logger,
            "Hacker News stories",
            logging.DEBUG,
            event="hn_stories",
            candidates=len(candidates),
            kept=len(items),
        )
        return SourceResult(source=self.name, items=items)

    async def _story_ids(self, client: httpx.AsyncClient, kind: str) -> list[int] | None:
        result = await fetch_url(client, f"{self.api_base}/{kind}.json", self.retries)
        if not result.ok:
            return None
        try:
            ids = result.json()
        except ValueError:
            return None
        if not isinstance(ids, list):
            return None
        return [int(story_id) for story_id in ids if isinstance(story_id, int)]

    async def _story(self, client: httpx.AsyncClient, story_id: int) -> dict[str, Any] | None:
        result = await fetch_url(client, f"{self.api_base}/item/{story_id}.json", self.retries)
        if not result.ok:
            return None
        try:
            story = result.json()
        except ValueError:
            return None
        return story if isinstance(story, dict) else None

    def _story_to_item(self, story: dict[str, Any], cutoff: datetime) -> tuple[int, Item] | None:
        """Map a story to an Item plus its keyword relevance, or None to skip it."""
        if story.get("type") != "story" or story.get("deleted") or story.get("dead"):
            return None
        title = (story.get("title") or "").strip()
        if not title or not isinstance(story.get("time"), (int, float)):
            return None
        published = datetime.fromtimestamp(story["time"], tz=timezone.utc)
        if published <= cutoff:
            return None

        body = story.get("text") or ""
        combined = f"{title} {story.get('url') or ''} {body}".lower()
        if mentions(combined, self.taxonomy.hn_negative_keywords):
            return None
        matched = matching(combined, self.taxonomy.hn_keywords)
        if not matched:
            return None

        points = story.get("score") or 1
        relevance = min(10, round(math.log10(points + 1) * 2 + len(matched) * 1.5))
        if body:
            excerpt = truncate(strip_html(body), 300)
        else:
            excerpt = f"{points} points | {story.get('descendants') or 0} comments"

        story_id = story["id"]
        item = Item(
            id=item_id(self.name, f"hn-{story_id}"),
            title=title,
            link=story.get("url") or f"https://news.ycombinator.com/item?id={story_id}",
            published_at=isoformat(published),
            source=self.name,
            tier="community",
            excerpt=excerpt,
            source_category=story_category(combined, matched),
            source_tags=tuple(term[:1].upper() + term[1:] for term in matched[:4]),
        )
        return relevance, item


def story_category(text: str, matched: list[str]) -> str:
    """Guess a category for a story from its text and matched keywords."""
    launch = any(contains(text, term) for term in ("launch", "release", "announce", "new model"))
    if mentions(text, _TOOL_TERMS):
        return "ide_launch" if launch or contains(text, "new") else "ide_update"
    if any(term in matched for term in _AGENT_TERMS):
        return "agent"
    if launch and any(term in matched for term in _MODEL_TERMS):
        return "model_launch"
    if mentions(text, _IMAGE_TERMS):
        return "video_ai" if contains(text, "video") else "image_ai"
    if mentions(text, ("paper", "arxiv", "research")):
        return "research"
    if mentions(text, ("tutorial", "guide", "how to")):
        return "tutorial"
    if mentions(text, ("api", "sdk")):
        return "api"
    return "feature"
