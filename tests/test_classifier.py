"""Tests for the classification orchestrator and keyword heuristics."""

from __future__ import annotations

import threading

from news_pulse.analyzers.classifier import ClassificationOrchestrator
from news_pulse.analyzers.heuristics import fallback_enrichment, heuristic_classify
from news_pulse.cache import TTLCache
from news_pulse.config import ClassifierConfig
from news_pulse.core.taxonomy import Taxonomy
from news_pulse.llm.key_pool import KeyPool
from news_pulse.llm.providers.base import ClassifierProvider, ProviderError


class ScriptedProvider(ClassifierProvider):
    """Returns or raises the next scripted outcome; repeats the last one."""

    name = "scripted"

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self._lock = threading.Lock()

    def classify(self, item, api_key):
        with self._lock:
            self.calls.append((item.id, api_key))
            outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return dict(outcome)


class BlockingProvider(ClassifierProvider):
    def __init__(self):
        self.release = threading.Event()

    def classify(self, item, api_key):
        self.release.wait(5)
        return {"category": "agent", "priority": "high", "relevance": 9}


GOOD = {
    "category": "agent",
    "priority": "high",
    "summary": "Agents got better.",
    "tags": ["Agents"],
    "related_models": [],
    "related_companies": ["Example"],
    "relevance": 8,
    "sentiment": "positive",
    "actionable": True,
    "impact": "Ship it.",
}


def _orchestrator(provider, clock, keys=("k1", "k2"), sleeps=None, **cfg):
    cfg.setdefault("batch_delay_seconds", 0)
    return ClassificationOrchestrator(
        provider,
        KeyPool(list(keys), clock=clock),
        TTLCache(None, ttl_seconds=3600, clock=clock),
        Taxonomy(),
        ClassifierConfig(**cfg),
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
    )


def test_every_item_is_classified_when_provider_fails(clock, make_item):
    provider = ScriptedProvider(ProviderError("HTTP 500", status_code=500))
    orchestrator = _orchestrator(provider, clock)
    items = [make_item(f"item-{idx}", title=f"Story number {idx} about agents") for idx in range(5)]

    result = orchestrator.classify(items)

    assert {item.id for item in result} == {item.id for item in items}
    assert all(item.is_classified for item in result)
    assert all(item.classified_by == "heuristic" for item in result)
    # Heuristic results are not cached, so the provider is retried next time.
    assert orchestrator.cache.stats()["total"] == 0


def test_provider_results_are_cached(clock, make_item):
    provider = ScriptedProvider(GOOD)
    orchestrator = _orchestrator(provider, clock)
    items = [make_item("a"), make_item("b")]

    first = orchestrator.classify(items)
    second = orchestrator.classify(items)

    assert len(provider.calls) == 2
    assert [item.classified_by for item in first] == ["provider", "provider"]
    assert [item.id for item in second] == [item.id for item in first]
    assert orchestrator.cache.get("a")["category"] == "agent"


def test_rate_limit_retries_with_backoff_and_another_key(clock, make_item):
    provider = ScriptedProvider(ProviderError("HTTP 429", status_code=429), GOOD)
    sleeps = []
    orchestrator = _orchestrator(provider, clock, sleeps=sleeps, retry_backoff_seconds=[0.3, 0.6])

    (item,) = orchestrator.classify([make_item("a")])

    assert item.classified_by == "provider"
    assert sleeps == [0.3]
    keys = [key for _, key in provider.calls]
    assert len(keys) == 2
    assert keys[0] != keys[1]


def test_rate_limit_retries_are_bounded(clock, make_item):
    provider = ScriptedProvider(ProviderError("HTTP 429", status_code=429))
    sleeps = []
    orchestrator = _orchestrator(provider, clock, sleeps=sleeps, max_rate_limit_retries=2)

    (item,) = orchestrator.classify([make_item("a")])

    assert item.classified_by == "heuristic"
    assert len(provider.calls) == 3
    assert sleeps == [0.3, 0.6]


def test_no_keys_falls_back_to_heuristics(clock, make_item):
    provider = ScriptedProvider(GOOD)
    orchestrator = _orchestrator(provider, clock, keys=())
    (item,) = orchestrator.classify([make_item("a")])
    assert item.classified_by == "heuristic"
    assert provider.calls == []


def test_slow_calls_time_out_to_heuristics(clock, make_item):
    provider = BlockingProvider()
    orchestrator = _orchestrator(
        provider,
        clock,
        item_timeout_seconds=0.05,
        classify_timeout_seconds=1,
        max_rate_limit_retries=0,
    )
    try:
        result = orchestrator.classify([make_item("a"), make_item("b")])
    finally:
        provider.release.set()

    assert len(result) == 2
    assert all(item.classified_by == "heuristic" for item in result)


def test_normalize_repairs_invalid_fields(clock, make_item):
    orchestrator = _orchestrator(ScriptedProvider(GOOD), clock)
    item = make_item("a", title="Introducing a new coding model")
    raw = {
        "category": "bogus",
        "priority": "urgent",
        "relevance": "11",
        "tags": ["a", "b", "c", "d", "e", "f"],
        "sentiment": "meh",
        "relatedModels": ["GPT-5"],
        "summary": "   ",
    }

    enrichment = orchestrator.normalize(item, raw)

    assert enrichment["category"] == "feature"
    assert enrichment["priority"] == "normal"
    assert enrichment["relevance"] == 10
    assert enrichment["sentiment"] == "neutral"
    assert enrichment["tags"] == ["a", "b", "c", "d"]
    assert enrichment["related_models"] == ["GPT-5"]
    assert enrichment["summary"] == item.title
    assert enrichment["classified_by"] == "provider"


def test_official_launch_is_boosted_to_breaking(clock, make_item):
    orchestrator = _orchestrator(ScriptedProvider(GOOD), clock)
    item = make_item("a", tier="official", source="OpenAI")
    enrichment = orchestrator.normalize(item, {"category": "model_launch", "priority": "normal"})
    assert enrichment["priority"] == "breaking"


def test_finalize_orders_by_priority_and_applies_relevance_floor(clock, make_item):
    orchestrator = _orchestrator(ScriptedProvider(GOOD), clock, min_relevance=5)
    items = [
        make_item("low-normal").with_enrichment({"priority": "normal", "relevance": 2, "category": "feature"}),
        make_item("low-breaking").with_enrichment({"priority": "breaking", "relevance": 1, "category": "feature"}),
        make_item("official-high", tier="official").with_enrichment({"priority": "high", "relevance": 3, "category": "feature"}),
        make_item("normal").with_enrichment({"priority": "normal", "relevance": 6, "category": "feature"}),
        make_item("high").with_enrichment({"priority": "high", "relevance": 9, "category": "feature"}),
    ]

    result = orchestrator.finalize(items)

    assert [item.id for item in result] == ["low-breaking", "high", "official-high", "normal"]


def test_enrich_from_cache_never_calls_provider(clock, make_item):
    provider = ScriptedProvider(GOOD)
    orchestrator = _orchestrator(provider, clock)
    orchestrator.cache.set("cached", dict(GOOD, classified_by="provider"))

    result = orchestrator.enrich_from_cache([make_item("cached"), make_item("fresh")])

    assert provider.calls == []
    by_id = {item.id: item for item in result}
    assert by_id["cached"].classified_by == "provider"
    assert by_id["fresh"].classified_by == "heuristic"


def test_heuristic_detects_tools_and_breaking_launches(make_item):
    taxonomy = Taxonomy()
    result = heuristic_classify(make_item(title="Introducing Cursor 2.0 with background agents"), taxonomy)
    assert result.category == "ide_launch"
    assert result.priority == "breaking"

    opinion = heuristic_classify(make_item(title="Some thoughts on benchmark culture"), taxonomy)
    assert opinion.category == "research"
    assert opinion.priority == "low"


def test_fallback_enrichment_uses_source_category_hint(make_item):
    item = make_item(title="Weekly roundup of interesting things", source_category="market")
    enrichment = fallback_enrichment(item, Taxonomy())
    assert enrichment["category"] == "market"
    assert enrichment["relevance"] == 5
    assert enrichment["classified_by"] == "heuristic"


class HangsOnProvider(ClassifierProvider):
    """Blocks only for the given item ids; answers the rest immediately."""

    def __init__(self, *hanging_ids):
        self.hanging_ids = set(hanging_ids)
        self.release = threading.Event()
        self.calls = []

    def classify(self, item, api_key):
        self.calls.append(item.id)
        if item.id in self.hanging_ids:
            self.release.wait(5)
        return dict(GOOD)


def test_hung_call_does_not_starve_later_batches(clock, make_item):
    provider = HangsOnProvider("a")
    orchestrator = _orchestrator(
        provider,
        clock,
        batch_size=1,
        item_timeout_seconds=0.1,
        classify_timeout_seconds=3,
        max_rate_limit_retries=0,
    )
    try:
        result = orchestrator.classify([make_item("a"), make_item("b"), make_item("c")])
    finally:
        provider.release.set()

    by_id = {item.id: item.classified_by for item in result}
    assert by_id == {"a": "heuristic", "b": "provider", "c": "provider"}
    assert "b" in provider.calls and "c" in provider.calls


def test_missing_provider_does_not_consume_keys(clock, make_item):
    orchestrator = _orchestrator(None, clock)
    (item,) = orchestrator.classify([make_item("a")])
    assert item.classified_by == "heuristic"
    assert orchestrator.pool.stats()["total_requests"] == 0
