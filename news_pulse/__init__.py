"""
News Pulse - multi-source AI news aggregation.

This package fetches items from official changelogs, RSS feeds, GitHub
releases, Hacker News and Product Hunt, deduplicates and scores them,
classifies the most relevant ones through an LLM behind a rate-limited key
pool, and serves the result under a refresh schedule.

Main entry point is the CLI via `news-pulse refresh` command.

Example:
    $ news-pulse refresh --force
"""

__all__ = ["__version__", "NewsPipeline", "Item", "RefreshResult", "load_config"]
__version__ = "0.1.0"

from .config import load_config
from .core.types import Item, RefreshResult
from .pipeline import NewsPipeline
