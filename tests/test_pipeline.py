"""End-to-end tests for the refresh entry point with mocked HTTP."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
import json

import httpx
import pytest

from news_pulse.config import AppConfig
from news_pulse.pipeline import NewsPipeline

MINUTE = 60

CLASSIFICATION = {
    "category": "agent",
    "priority": "high",
    "summary": "Agents got better.",
    "tags": ["Agents"],
    "related_models": [],
    "related_companies": [],
    "relevance": 8,
    "sentiment": "positive",
    "actionable": True,
    "impact": "Ship it.",
}


class FeedServer:
    """Serves one RSS feed; can be switched to failing."""

    def __init__(self, clock, age_minutes=60):
        self.clock = clock
        self.age_minutes = age_minutes
        self.failing = False
        self.requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests += 1
        if self.failing:
            return httpx.Response(500)
        published = datetime.fromtimestamp(self.clock.now, tz=timezone.utc) - timedelta(minutes=self.age_minutes)
        entries = [
            ("Agent toolkit 2.0 released", "https://blog.example/agents", "a-1"),
            ("Vector search lands in the agent SDK", "https://blog.example/vector", "a-2"),
        ]
        items = "".join(
            f"<item><title>{title}</title><link>{link}</link><guid>{guid}</guid>"
            f"<pubDate>{format_datetime(published)}</pubDate><description>Agents</description></item>"
            for title, link, guid in entries
        )
        return httpx.Response(200, text=f"<rss version='2.0'><channel><title>Blog</title>{items}</channel></rss>")


class ClassifierServer:
    def __init__(self):
        self.requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests += 1
        content = json.dumps(CLASSIFICATION)
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


@pytest.fixture
def cfg(tmp_path) -> AppConfig:
    cfg = AppConfig()
    cfg.storage.data_dir = str(tmp_path / "data")
    cfg.sources.enabled = ["rss_feeds"]
    cfg.sources.rss_feeds = [{"name": "Blog", "url": "https://blog.example/feed", "tier": "trusted", "category": "agent"}]
    cfg.fetch.retries = 0
    cfg.classifier.api_keys = ["key-1", "key-2"]
    cfg.classifier.batch_delay_seconds = 0
    return cfg


def _pipeline(cfg, clock, feed, classifier) -> NewsPipeline:
    return NewsPipeline.from_config(
        cfg,
        transport=httpx.MockTransport(feed),
        provider_transport=httpx.MockTransport(classifier),
        clock=clock,
    )


def test_first_refresh_fetches_and_classifies(cfg, clock, tmp_path):
    feed, classifier = FeedServer(clock), ClassifierServer()
    pipeline = _pipeline(cfg, clock, feed, classifier)

    result = pipeline.refresh()

    assert result.origin == "fresh"
    assert not result.from_cache
    assert len(result.items) == 2
    assert all(item.classified_by == "provider" for item in result.items)
    assert classifier.requests == 2
    assert result.stats["total"] == 2
    assert result.stats["new"] == 2
    assert result.stats["categories"]["agent"] == 2
    assert result.scheduler == {"next_refresh_seconds": 15 * MINUTE, "processing": False}
    assert result.last_updated == "2026-01-15T12:00:00Z"

    data_dir = tmp_path / "data"
    for name in ("source-cache.json", "analysis-cache.json", "news-cache.json", "scheduler-state.json"):
        assert (data_dir / name).exists()


def test_recent_cache_is_served_without_scheduler(cfg, clock):
    feed, classifier = FeedServer(clock, age_minutes=10), ClassifierServer()
    pipeline = _pipeline(cfg, clock, feed, classifier)
    pipeline.refresh()

    result = pipeline.refresh()

    assert result.origin == "quick_cache"
    assert result.from_cache
    assert feed.requests == 1


def test_throttled_request_serves_cache(cfg, clock):
    feed, classifier = FeedServer(clock), ClassifierServer()
    pipeline = _pipeline(cfg, clock, feed, classifier)
    pipeline.refresh()

    clock.advance(2 * MINUTE)
    result = pipeline.refresh()

    assert result.origin == "cache"
    assert result.from_cache
    assert len(result.items) == 2
    assert feed.requests == 1


def test_fetch_only_reuses_cached_classifications(cfg, clock):
    feed, classifier = FeedServer(clock), ClassifierServer()
    pipeline = _pipeline(cfg, clock, feed, classifier)
    pipeline.refresh()

    clock.advance(10 * MINUTE)
    result = pipeline.refresh()

    assert result.origin == "fetch_only"
    assert feed.requests == 2
    assert classifier.requests == 2
    assert all(item.classified_by == "provider" for item in result.items)
    assert not pipeline.scheduler.is_processing()


def test_failed_fetch_falls_back_to_cached_news(cfg, clock):
    feed, classifier = FeedServer(clock), ClassifierServer()
    pipeline = _pipeline(cfg, clock, feed, classifier)
    pipeline.refresh()

    # Past the source cache TTL, within the combined-output TTL.
    clock.advance(6 * MINUTE)
    feed.failing = True
    result = pipeline.refresh(force=True)

    assert result.origin == "fallback"
    assert result.from_cache
    assert len(result.items) == 2
    assert not pipeline.scheduler.is_processing()


def test_no_data_at_all_returns_error(cfg, clock):
    feed, classifier = FeedServer(clock), ClassifierServer()
    feed.failing = True
    pipeline = _pipeline(cfg, clock, feed, classifier)

    result = pipeline.refresh()

    assert result.origin == "empty"
    assert result.items == []
    assert result.error == "No news available"
    assert result.to_dict()["error"] == "No news available"


def test_running_cycle_makes_requests_wait(cfg, clock):
    feed, classifier = FeedServer(clock), ClassifierServer()
    pipeline = _pipeline(cfg, clock, feed, classifier)
    pipeline.refresh()

    clock.advance(2 * MINUTE)
    pipeline.scheduler.start_analysis()
    result = pipeline.refresh()

    assert result.origin == "wait"
    assert result.from_cache
    assert result.scheduler["processing"] is True


def test_unexpected_error_falls_back_to_cache(cfg, clock, monkeypatch):
    feed, classifier = FeedServer(clock), ClassifierServer()
    pipeline = _pipeline(cfg, clock, feed, classifier)
    pipeline.refresh()

    def explode(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(pipeline.aggregator, "aggregate_sync", explode)
    result = pipeline.refresh(force=True)

    assert result.origin == "error_fallback"
    assert result.from_cache
    assert not pipeline.scheduler.is_processing()


def test_provider_outage_still_returns_classified_items(cfg, clock):
    feed = FeedServer(clock)
    pipeline = _pipeline(cfg, clock, feed, lambda request: httpx.Response(503))

    result = pipeline.refresh()

    assert result.origin == "fresh"
    assert len(result.items) == 2
    assert all(item.classified_by == "heuristic" for item in result.items)


def test_status_cleanup_and_reset(cfg, clock):
    feed, classifier = FeedServer(clock), ClassifierServer()
    pipeline = _pipeline(cfg, clock, feed, classifier)
    pipeline.refresh()

    status = pipeline.status()
    assert status["scheduler"]["fetch_count"] == 1
    assert status["analysis"]["pool"]["total_keys"] == 2
    assert status["caches"]["analysis"]["valid"] == 2
    assert status["sources"] == ["RSS Feeds"]
    assert status["news_cached"]
    assert [entry["key"] for entry in status["analysis"]["keys"]] == ["***ey-1", "***ey-2"]

    clock.advance(8 * 24 * 60 * MINUTE)
    removed = pipeline.cleanup()
    assert removed == {"sources": 1, "analysis": 2, "news": 1}

    pipeline.reset_scheduler()
    assert pipeline.status()["scheduler"]["fetch_count"] == 0
    pipeline.close()


def test_unknown_provider_fails_at_construction(cfg, clock):
    cfg.classifier.provider = "carrier-pigeon"
    with pytest.raises(ValueError, match="Unsupported provider"):
        NewsPipeline.from_config(cfg, clock=clock)


def test_reset_keys_clears_cooldowns(cfg, clock):
    feed = FeedServer(clock)
    pipeline = _pipeline(cfg, clock, feed, lambda request: httpx.Response(429))
    pipeline.refresh()
    assert pipeline.status()["analysis"]["pool"]["keys_in_cooldown"] == 2

    pipeline.reset_keys()

    pool = pipeline.status()["analysis"]["pool"]
    assert pool["keys_in_cooldown"] == 0
    assert pool["healthy_keys"] == 2
