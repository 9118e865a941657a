"""
Source adapters and HTTP fetching.

This package holds the shared async fetcher, the ``Source`` interface and
one adapter per external origin.
"""

from .base import Source
from .feeds import FeedConfig, FeedSource
from .fetcher import FetchResult, build_client, fetch_url
from .github_releases import GitHubReleasesSource, TrackedRepo, is_major_release
from .hacker_news import HackerNewsSource
from .product_hunt import ProductHuntSource
from .registry import available_sources, create_sources

__all__ = [
    "Source",
    "FeedConfig",
    "FeedSource",
    "FetchResult",
    "build_client",
    "fetch_url",
    "GitHubReleasesSource",
    "TrackedRepo",
    "is_major_release",
    "HackerNewsSource",
    "ProductHuntSource",
    "available_sources",
    "create_sources",
]
