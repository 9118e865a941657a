"""Tests for the aggregation pass: isolation, cache back-fill and post-processing."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from news_pulse.aggregator import Aggregator, sources_health
from news_pulse.cache import TTLCache
from news_pulse.config import AggregateConfig, DedupConfig, FetchConfig
from news_pulse.core.taxonomy import Taxonomy
from news_pulse.core.types import SourceResult
from news_pulse.fetch.base import Source


class StaticSource(Source):
    def __init__(self, name, items=(), error=None, exc=None, delay=0.0):
        super().__init__(retries=0)
        self.name = name
        self.items = list(items)
        self.error = error
        self.exc = exc
        self.delay = delay

    async def fetch(self, client, lookback):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return SourceResult(source=self.name, items=list(self.items), error=self.error)


def _aggregator(sources, clock, cache=None, **fetch):
    fetch.setdefault("source_timeout_seconds", 0.5)
    return Aggregator(
        sources,
        Taxonomy(),
        FetchConfig(**fetch),
        AggregateConfig(max_items=10),
        DedupConfig(),
        source_cache=cache,
        clock=clock,
    )


def test_failures_are_isolated_per_source(clock, make_item):
    good = StaticSource("Good", [make_item("g1", title="Introducing the agent runtime")])
    sources = [
        good,
        StaticSource("Raises", exc=RuntimeError("boom")),
        StaticSource("Slow", delay=5),
        StaticSource("Errors", error="HTTP 500"),
    ]
    result = asyncio.run(_aggregator(sources, clock).aggregate())

    assert [item.id for item in result.items] == ["g1"]
    reports = {report.source: report for report in result.reports}
    assert reports["Good"].success
    assert not reports["Raises"].success and "boom" in reports["Raises"].error
    assert not reports["Slow"].success and "Timed out" in reports["Slow"].error
    assert not reports["Errors"].success
    assert not result.all_failed


def test_failed_source_is_backfilled_from_cache(clock, make_item):
    cache = TTLCache(None, ttl_seconds=300, clock=clock)
    cache.set("Flaky", [make_item("cached-1", title="Cached story about agents")])
    result = asyncio.run(_aggregator([StaticSource("Flaky", error="HTTP 503")], clock, cache).aggregate())

    (report,) = result.reports
    assert report.from_cache
    assert not report.success
    assert report.item_count == 1
    assert [item.id for item in result.items] == ["cached-1"]


def test_successful_source_refreshes_cache(clock, make_item):
    cache = TTLCache(None, ttl_seconds=300, clock=clock)
    items = [make_item("n1", title="Fresh story about agents")]
    asyncio.run(_aggregator([StaticSource("Fresh", items)], clock, cache).aggregate())
    assert cache.get("Fresh") == items


def test_process_filters_noise_duplicates_and_old_items(clock, make_item):
    aggregator = _aggregator([], clock)
    raw = [
        make_item("keep", title="Introducing Widget 2.0", tier="official"),
        make_item("dup", title="Introducing Widget 2.0", link="https://other.example/x"),
        make_item("noise", title="chore: bump deps to 1.2.4"),
        make_item("old", title="A story from last week", age_seconds=5 * 86400),
        make_item("other", title="Second story about models"),
    ]

    result = aggregator.process(raw, timedelta(days=3))

    assert [item.id for item in result] == ["keep", "other"]
    assert result[0].score > result[1].score


def test_process_truncates_to_max_items(clock, make_item):
    aggregator = _aggregator([], clock)
    words = [
        "alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotel",
        "india", "juliet", "kilo", "lima", "mike", "november", "oscar",
    ]
    raw = [make_item(word, title=f"{word.title()} team publishes quarterly notes") for word in words]
    assert len(aggregator.process(raw, timedelta(days=3))) == 10


def test_aggregate_sync_degrades_to_empty_on_deadline(clock):
    aggregator = _aggregator([StaticSource("Slow", delay=2)], clock, fetch_timeout_seconds=0.1, source_timeout_seconds=5)
    result = aggregator.aggregate_sync()
    assert result.items == []
    assert result.reports == []


def test_sources_health_summary(clock, make_item):
    sources = [StaticSource("A", [make_item("a1", title="Story about agents here")]), StaticSource("B", error="down")]
    result = asyncio.run(_aggregator(sources, clock).aggregate())
    health = sources_health(result.reports)
    assert health["healthy"] == 1
    assert health["total"] == 2
    assert health["percentage"] == 50
    assert health["sources"]["B"]["error"] == "down"


def test_stale_duplicate_does_not_suppress_fresh_copy(clock, make_item):
    aggregator = _aggregator([], clock)
    raw = [
        make_item("stale", title="Agent runtime reaches general availability", link="https://x.com/a",
                  tier="official", age_seconds=10 * 86400),
        make_item("fresh", title="Agent runtime reaches general availability", link="https://x.com/a",
                  tier="aggregator", age_seconds=3600),
    ]

    result = aggregator.process(raw, timedelta(days=3))

    assert [item.id for item in result] == ["fresh"]
