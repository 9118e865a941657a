"""
Core domain models and business logic.

This package contains data types and pure functions that are
independent of any network or storage concern.
"""

from .dedup import dedup_items, normalize_link, normalize_title
from .identity import item_id, short_hash, slugify
from .scoring import is_noise, rank_items, score_item
from .taxonomy import Taxonomy
from .types import (
    CATEGORIES,
    PRIORITIES,
    PRIORITY_ORDER,
    SENTIMENTS,
    TIER_ORDER,
    TIERS,
    AggregateResult,
    Item,
    RefreshResult,
    SourceReport,
    SourceResult,
)

__all__ = [
    "CATEGORIES",
    "PRIORITIES",
    "PRIORITY_ORDER",
    "SENTIMENTS",
    "TIERS",
    "TIER_ORDER",
    "AggregateResult",
    "Item",
    "RefreshResult",
    "SourceReport",
    "SourceResult",
    "Taxonomy",
    "dedup_items",
    "normalize_link",
    "normalize_title",
    "item_id",
    "short_hash",
    "slugify",
    "is_noise",
    "rank_items",
    "score_item",
]
