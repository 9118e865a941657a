"""Tests for the durable TTL caches."""

from __future__ import annotations

import json

from news_pulse.cache import CacheSet, TTLCache
from news_pulse.config import CacheConfig


def test_entry_is_invalid_at_expiry(tmp_path, clock):
    cache = TTLCache(tmp_path / "c.json", ttl_seconds=60, clock=clock)
    cache.set("k", {"v": 1})

    clock.advance(59)
    assert cache.has("k")
    assert cache.get("k") == {"v": 1}

    clock.advance(1)
    assert not cache.has("k")
    assert cache.get("k") is None
    assert cache.stats()["total"] == 0


def test_custom_ttl_overrides_default(tmp_path, clock):
    cache = TTLCache(tmp_path / "c.json", ttl_seconds=60, clock=clock)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2)
    clock.advance(10)
    assert cache.get("short") is None
    assert cache.get("long") == 2


def test_values_survive_reload_and_expired_entries_are_dropped(tmp_path, clock):
    path = tmp_path / "c.json"
    cache = TTLCache(path, ttl_seconds=60, clock=clock)
    cache.set("old", "a", ttl=10)
    cache.set("fresh", "b")

    clock.advance(30)
    reloaded = TTLCache(path, ttl_seconds=60, clock=clock)
    assert reloaded.get("fresh") == "b"
    assert reloaded.get("old") is None
    assert reloaded.stats()["total"] == 1


def test_unreadable_file_starts_empty(tmp_path, clock):
    path = tmp_path / "c.json"
    path.write_text("{not json", encoding="utf-8")
    cache = TTLCache(path, ttl_seconds=60, clock=clock)
    assert cache.get("anything") is None

    cache.set("k", "v")
    assert json.loads(path.read_text(encoding="utf-8"))["k"]["value"] == "v"


def test_cleanup_removes_only_expired(tmp_path, clock):
    cache = TTLCache(tmp_path / "c.json", ttl_seconds=60, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, source="src")
    cache.set("c", 3, ttl=120)
    clock.advance(61)

    assert cache.cleanup() == 2
    assert cache.stats()["total"] == 1
    assert cache.get("c") == 3


def test_stats_track_hits_and_misses(clock):
    cache = TTLCache(None, ttl_seconds=60, clock=clock)
    cache.set("k", "v")
    cache.get("k")
    cache.get("missing")

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["valid"] == 1
    assert stats["newest"].startswith("2026-01-15")


def test_cache_set_persists_items(tmp_path, clock, make_item):
    caches = CacheSet(tmp_path, CacheConfig(), clock=clock)
    items = [make_item("one", source_tags=("Release",)), make_item("two")]
    caches.sources.set("Example", items)

    reloaded = CacheSet(tmp_path, CacheConfig(), clock=clock)
    assert reloaded.sources.get("Example") == items
    assert (tmp_path / "source-cache.json").exists()
    assert set(reloaded.stats_all()) == {"sources", "analysis", "news"}
