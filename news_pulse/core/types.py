"""
Core data types for the news pipeline.

This module defines the fundamental data structures used throughout the pipeline:
- Item: One aggregated, possibly classified piece of content
- SourceResult: What a single source adapter returned
- SourceReport: Per-source health entry produced by the aggregator
- AggregateResult: Output of one aggregation pass
- RefreshResult: Output of the refresh entry point

Closed vocabularies (categories, priorities, tiers, sentiments) are plain
string tuples; ordering maps give their rank.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any


CATEGORIES: tuple[str, ...] = (
    "model_launch",
    "ide_update",
    "ide_launch",
    "feature",
    "research",
    "tutorial",
    "market",
    "video_ai",
    "image_ai",
    "agent",
    "api",
    "other",
)

PRIORITIES: tuple[str, ...] = ("breaking", "high", "normal", "low")
PRIORITY_ORDER: dict[str, int] = {name: rank for rank, name in enumerate(PRIORITIES)}

TIERS: tuple[str, ...] = ("official", "trusted", "community", "aggregator")
TIER_ORDER: dict[str, int] = {name: rank for rank, name in enumerate(TIERS)}

SENTIMENTS: tuple[str, ...] = ("positive", "neutral", "negative")

MAX_TAGS = 4


@dataclass(frozen=True)
class Item:
    """Represents one aggregated item.

    Core fields are filled by source adapters. Enrichment fields stay None
    until classification; enriched copies are produced with
    ``with_enrichment`` so an Item is never mutated in place.

    Attributes:
        id: Source-scoped identifier, stable across refreshes
        title: Headline
        link: Canonical URL
        published_at: ISO 8601 UTC publication timestamp
        source: Originating source name (e.g. "OpenAI", "Hacker News")
        tier: Source trust tier, one of TIERS
        excerpt: Short plain-text content excerpt
        image_url: Optional illustration URL
        source_category: Category hint supplied by the adapter
        source_tags: Tags supplied by the adapter
        score: Aggregator relevance score
        category: Classified category, one of CATEGORIES
        priority: Classified priority, one of PRIORITIES
        relevance: Classified relevance, 1-10
        sentiment: One of SENTIMENTS
        tags: Up to MAX_TAGS short tags
        actionable: Whether the item calls for action from the reader
        impact: Free-text impact note
        summary: Short summary
        related_models: Model names mentioned
        related_companies: Company names mentioned
        classified_by: "provider" or "heuristic"
    """

    id: str
    title: str
    link: str
    published_at: str
    source: str
    tier: str = "aggregator"
    excerpt: str = ""
    image_url: str | None = None
    source_category: str | None = None
    source_tags: tuple[str, ...] = ()
    score: float = 0.0
    category: str | None = None
    priority: str | None = None
    relevance: int | None = None
    sentiment: str | None = None
    tags: tuple[str, ...] = ()
    actionable: bool | None = None
    impact: str | None = None
    summary: str | None = None
    related_models: tuple[str, ...] = ()
    related_companies: tuple[str, ...] = ()
    classified_by: str | None = None

    @property
    def is_classified(self) -> bool:
        return self.category is not None and self.priority is not None

    @property
    def text(self) -> str:
        """Lowercased title and excerpt, the haystack for keyword matching."""
        return f"{self.title} {self.excerpt}".lower()

    @property
    def tier_rank(self) -> int:
        return TIER_ORDER.get(self.tier, len(TIERS) - 1)

    @property
    def published(self) -> datetime | None:
        return parse_timestamp(self.published_at)

    def with_score(self, score: float) -> Item:
        return replace(self, score=score)

    def with_enrichment(self, enrichment: dict[str, Any]) -> Item:
        """Return a copy with enrichment fields taken from a mapping.

        Only known enrichment keys are applied; list values become tuples.
        """
        changes: dict[str, Any] = {}
        for key in ENRICHMENT_FIELDS:
            if key not in enrichment:
                continue
            value = enrichment[key]
            if key in _TUPLE_FIELDS:
                value = tuple(value or ())
            changes[key] = value
        return replace(self, **changes)

    def enrichment(self) -> dict[str, Any]:
        """Return the enrichment fields as a JSON-ready mapping."""
        data: dict[str, Any] = {}
        for key in ENRICHMENT_FIELDS:
            value = getattr(self, key)
            data[key] = list(value) if key in _TUPLE_FIELDS else value
        return data

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for key in _ALL_FIELDS:
            value = getattr(self, key)
            data[key] = list(value) if isinstance(value, tuple) else value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Item:
        values: dict[str, Any] = {}
        for key in _ALL_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if key in _TUPLE_FIELDS or key == "source_tags":
                value = tuple(value or ())
            values[key] = value
        return cls(**values)


ENRICHMENT_FIELDS: tuple[str, ...] = (
    "category",
    "priority",
    "relevance",
    "sentiment",
    "tags",
    "actionable",
    "impact",
    "summary",
    "related_models",
    "related_companies",
    "classified_by",
)
_TUPLE_FIELDS = {"tags", "related_models", "related_companies"}
_ALL_FIELDS: tuple[str, ...] = tuple(Item.__dataclass_fields__)


@dataclass
class SourceResult:
    """What one source adapter returned for a fetch pass.

    ``error`` is set when the adapter failed as a whole. Partial failures
    (for example one feed out of many) keep the items that did arrive and
    are only logged by the adapter.
    """

    source: str
    items: list[Item] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None or bool(self.items)


@dataclass
class SourceReport:
    """Health entry for one source in an aggregation pass.

    Attributes:
        source: Source adapter name
        success: Whether the adapter produced a usable result
        item_count: Items contributed before filtering
        error: Error summary, if any
        elapsed_seconds: Wall time spent in the adapter
        from_cache: Items came from the raw-source cache after a failure
    """

    source: str
    success: bool
    item_count: int = 0
    error: str | None = None
    elapsed_seconds: float = 0.0
    from_cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "success": self.success,
            "item_count": self.item_count,
            "error": self.error,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "from_cache": self.from_cache,
        }


@dataclass
class AggregateResult:
    items: list[Item] = field(default_factory=list)
    reports: list[SourceReport] = field(default_factory=list)
    raw_count: int = 0

    @property
    def all_failed(self) -> bool:
        return bool(self.reports) and not any(r.success for r in self.reports)


@dataclass
class RefreshResult:
    """Output of ``NewsPipeline.refresh``.

    Attributes:
        items: Ranked, classified items
        from_cache: Whether the items were served from the combined cache
        origin: Which path produced the result ("fresh", "cache", ...)
        stats: Aggregate stats (total, new, sources, categories)
        scheduler: Scheduler summary (next_refresh_seconds, processing)
        error: Set only when no data is available at all
        last_updated: ISO 8601 timestamp of the response
    """

    items: list[Item]
    from_cache: bool
    origin: str
    stats: dict[str, Any] = field(default_factory=dict)
    scheduler: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    last_updated: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "items": [item.to_dict() for item in self.items],
            "from_cache": self.from_cache,
            "origin": self.origin,
            "stats": self.stats,
            "scheduler": self.scheduler,
            "last_updated": self.last_updated,
        }
        if self.error:
            data["error"] = self.error
        return data


def build_stats(items: list[Item]) -> dict[str, Any]:
    """Compute the response stats block for a list of items."""
    categories = {name: 0 for name in CATEGORIES}
    for item in items:
        if item.category in categories:
            categories[item.category] += 1
    return {
        "total": len(items),
        "new": sum(1 for item in items if item.priority in ("breaking", "high")),
        "sources": len({item.source for item in items if item.source}),
        "categories": categories,
    }


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 or RFC 2822 timestamp into an aware UTC datetime.

    Returns None for empty or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def isoformat(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
