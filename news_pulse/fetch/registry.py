"""Source registry: builds the configured adapters by name."""

from __future__ import annotations

import time
from typing import Callable

from ..config import AppConfig, get_github_token
from ..core.taxonomy import Taxonomy
from .base import Source
from .feeds import FeedConfig, FeedSource
from .github_releases import GitHubReleasesSource, TrackedRepo
from .hacker_news import HackerNewsSource
from .product_hunt import ProductHuntSource


SourceBuilder = Callable[[AppConfig, Taxonomy, Callable[[], float]], Source]


def _official_changelogs(cfg: AppConfig, taxonomy: Taxonomy, clock: Callable[[], float]) -> Source:
    feeds = [FeedConfig.from_mapping({**feed, "tier": "official"}) for feed in cfg.sources.official_feeds]
    return FeedSource("Official Changelogs", feeds, taxonomy, retries=cfg.fetch.retries, clock=clock)


def _rss_feeds(cfg: AppConfig, taxonomy: Taxonomy, clock: Callable[[], float]) -> Source:
    feeds = [FeedConfig.from_mapping(feed) for feed in cfg.sources.rss_feeds]
    return FeedSource("RSS Feeds", feeds, taxonomy, retries=cfg.fetch.retries, clock=clock)


def _github_releases(cfg: AppConfig, taxonomy: Taxonomy, clock: Callable[[], float]) -> Source:
    repos = [TrackedRepo.from_mapping(repo) for repo in cfg.sources.github_repos]
    return GitHubReleasesSource(
        repos,
        token=get_github_token(cfg.sources),
        retries=cfg.fetch.retries,
        clock=clock,
    )


def _hacker_news(cfg: AppConfig, taxonomy: Taxonomy, clock: Callable[[], float]) -> Source:
    return HackerNewsSource(
        taxonomy,
        max_stories=cfg.sources.hacker_news_max_stories,
        retries=cfg.fetch.retries,
        clock=clock,
    )


def _product_hunt(cfg: AppConfig, taxonomy: Taxonomy, clock: Callable[[], float]) -> Source:
    return ProductHuntSource(
        taxonomy,
        url=cfg.sources.product_hunt_url,
        max_items=cfg.sources.product_hunt_max_items,
        retries=cfg.fetch.retries,
        clock=clock,
    )


_SOURCE_REGISTRY: dict[str, SourceBuilder] = {
    "official_changelogs": _official_changelogs,
    "rss_feeds": _rss_feeds,
    "github_releases": _github_releases,
    "hacker_news": _hacker_news,
    "product_hunt": _product_hunt,
}


def available_sources() -> list[str]:
    """Return the set of registered source names."""
    return sorted(_SOURCE_REGISTRY.keys())


def create_sources(
    cfg: AppConfig,
    taxonomy: Taxonomy,
    clock: Callable[[], float] = time.time,
) -> list[Source]:
    """Build the enabled source adapters in configured order."""
    sources: list[Source] = []
    for name in cfg.sources.enabled:
        builder = _SOURCE_REGISTRY.get(name.lower().strip())
        if builder is None:
            supported = ", ".join(available_sources())
            raise ValueError(f"Unsupported source: {name}. Supported: {supported}")
        sources.append(builder(cfg, taxonomy, clock))
    return sources
