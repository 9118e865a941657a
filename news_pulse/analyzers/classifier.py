"""
Classification orchestrator.

Enriches ranked items through the external classifier while bounding call
volume and latency:
- cached classifications are reused (keyed by item id)
- misses are classified in small concurrent batches with a pause between them
- every call runs under a timeout; failures fall back to keyword heuristics
- rate-limited calls are retried a bounded number of times with a fresh key

``classify`` never raises and returns a classification for every input
item before the final relevance floor is applied.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from contextvars import copy_context
from datetime import datetime, timezone
import logging
import time
from typing import Any, Callable

from ..cache import TTLCache
from ..config import ClassifierConfig
from ..core.taxonomy import Taxonomy
from ..core.types import CATEGORIES, MAX_TAGS, PRIORITIES, PRIORITY_ORDER, SENTIMENTS, Item
from ..llm.key_pool import KeyPool
from ..llm.providers.base import ClassifierProvider, ProviderError
from ..utils.logging import log_event
from .heuristics import apply_boosts, fallback_enrichment, fallback_summary, heuristic_classify

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ClassificationOrchestrator:
    """Batches, caches and guards classifier calls."""

    def __init__(
        self,
        provider: ClassifierProvider | None,
        pool: KeyPool,
        cache: TTLCache[dict[str, Any]],
        taxonomy: Taxonomy,
        cfg: ClassifierConfig,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.pool = pool
        self.cache = cache
        self.taxonomy = taxonomy
        self.cfg = cfg
        self._sleep = sleep

    @property
    def batch_size(self) -> int:
        if self.cfg.batch_size:
            return max(1, int(self.cfg.batch_size))
        return min(3, max(1, self.pool.size // 4))

    def classify(self, items: list[Item]) -> list[Item]:
        """Classify items, then sort and apply the relevance floor."""
        if not items:
            return []
        hits, misses = self._partition(items)
        log_event(
            logger,
            "Classification started",
            event="classify_start",
            items=len(items),
            cache_hits=len(hits),
            misses=len(misses),
            batch_size=self.batch_size,
            keys_available=self.pool.has_available_keys(),
        )
        classified = self._classify_misses(misses) if misses else []
        return self.finalize(hits + classified)

    def enrich_from_cache(self, items: list[Item]) -> list[Item]:
        """Merge cached classifications without calling the classifier.

        Cache misses get the heuristic enrichment.
        """
        hits, misses = self._partition(items)
        fallbacks = [item.with_enrichment(fallback_enrichment(item, self.taxonomy)) for item in misses]
        return self.finalize(hits + fallbacks)

    def finalize(self, items: list[Item]) -> list[Item]:
        """Sort by priority, relevance, score and recency; drop low relevance."""
        ordered = sorted(items, key=_priority_key)
        return [item for item in ordered if self._passes_floor(item)]

    def normalize(self, item: Item, raw: dict[str, Any]) -> dict[str, Any]:
        """Validate classifier output field by field.

        Invalid category or priority values are replaced by the heuristic
        result; other fields fall back to neutral defaults.
        """
        category = raw.get("category")
        if category not in CATEGORIES:
            category = heuristic_classify(item, self.taxonomy).category
        priority = raw.get("priority")
        if priority not in PRIORITIES:
            priority = heuristic_classify(item, self.taxonomy, category=category).priority
        priority = apply_boosts(item, category, priority, self.taxonomy)

        summary = raw.get("summary")
        sentiment = raw.get("sentiment")
        impact = raw.get("impact", raw.get("technicalImpact"))
        return {
            "category": category,
            "priority": priority,
            "summary": summary.strip() if isinstance(summary, str) and summary.strip() else fallback_summary(item),
            "tags": _string_list(raw.get("tags"))[:MAX_TAGS],
            "related_models": _string_list(raw.get("related_models", raw.get("relatedModels"))),
            "related_companies": _string_list(raw.get("related_companies", raw.get("relatedCompanies"))),
            "relevance": _relevance(raw.get("relevance", raw.get("relevanceScore"))),
            "sentiment": sentiment if sentiment in SENTIMENTS else "neutral",
            "actionable": bool(raw.get("actionable")),
            "impact": impact.strip() if isinstance(impact, str) else "",
            "classified_by": "provider",
        }

    def stats(self) -> dict[str, Any]:
        return {
            "cache": self.cache.stats(),
            "pool": self.pool.stats(),
            "keys": self.pool.detailed_status(),
            "taxonomy": self.taxonomy.sizes(),
            "batch_size": self.batch_size,
        }

    def _partition(self, items: list[Item]) -> tuple[list[Item], list[Item]]:
        hits: list[Item] = []
        misses: list[Item] = []
        for item in items:
            cached = self.cache.get(item.id)
            if isinstance(cached, dict):
                hits.append(item.with_enrichment(cached))
            else:
                misses.append(item)
        return hits, misses

    def _classify_misses(self, misses: list[Item]) -> list[Item]:
        deadline = time.monotonic() + self.cfg.classify_timeout_seconds
        size = self.batch_size
        # Worst case for one item: every rate-limit retry plus its backoff.
        retries = max(0, self.cfg.max_rate_limit_retries)
        item_budget = self.cfg.item_timeout_seconds * (retries + 1) + sum(self._backoff(i) for i in range(retries))

        results: dict[str, Item] = {}
        for start in range(0, len(misses), size):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                log_event(logger, "Classification deadline reached", logging.WARNING, event="classify_deadline", pending=len(misses) - start)
                break
            batch = misses[start : start + size]
            # One executor per batch: a hung call keeps its thread, and the
            # next batch must not queue behind it.
            executor = ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="classify")
            try:
                future_map = {}
                for item in batch:
                    # Copy current context (including tracing ids) into worker thread.
                    ctx = copy_context()
                    future_map[executor.submit(ctx.run, self._classify_one, item)] = item
                done, not_done = wait(future_map, timeout=min(remaining, item_budget))
            finally:
                executor.shutdown(wait=False, cancel_futures=True)
            for future in done:
                item = future_map[future]
                results[item.id] = future.result()
            for future in not_done:
                item = future_map[future]
                log_event(logger, "Classification timed out", logging.WARNING, event="classify_timeout", item_id=item.id)
            if start + size < len(misses) and self.cfg.batch_delay_seconds > 0:
                self._sleep(self.cfg.batch_delay_seconds)

        classified = []
        for item in misses:
            enriched = results.get(item.id)
            if enriched is None:
                enriched = item.with_enrichment(fallback_enrichment(item, self.taxonomy))
            classified.append(enriched)
        provider_count = sum(1 for item in classified if item.classified_by == "provider")
        log_event(
            logger,
            "Classification finished",
            event="classify_done",
            items=len(classified),
            provider=provider_count,
            heuristic=len(classified) - provider_count,
        )
        return classified

    def _classify_one(self, item: Item) -> Item:
        """Classify one item; never raises."""
        if self.provider is None:
            return item.with_enrichment(fallback_enrichment(item, self.taxonomy))
        attempt = 0
        while True:
            key = self.pool.next()
            if key is None:
                return item.with_enrichment(fallback_enrichment(item, self.taxonomy))
            try:
                raw = self.provider.classify(item, key)
            except ProviderError as exc:
                self.pool.report_error(key, exc.status_code)
                if exc.rate_limited and attempt < self.cfg.max_rate_limit_retries:
                    delay = self._backoff(attempt)
                    attempt += 1
                    log_event(
                        logger,
                        "Rate limited, retrying with another key",
                        logging.WARNING,
                        event="classify_rate_limited",
                        item_id=item.id,
                        attempt=attempt,
                        delay=delay,
                    )
                    self._sleep(delay)
                    continue
                log_event(
                    logger,
                    "Classifier failed, using heuristics",
                    logging.WARNING,
                    event="classify_failed",
                    item_id=item.id,
                    status_code=exc.status_code,
                    error=str(exc),
                )
                return item.with_enrichment(fallback_enrichment(item, self.taxonomy))
            except Exception as exc:  # noqa: BLE001
                self.pool.report_error(key)
                log_event(
                    logger,
                    "Unexpected classifier error, using heuristics",
                    logging.ERROR,
                    event="classify_error",
                    item_id=item.id,
                    error=f"{type(exc).__name__}: {exc}",
                )
                return item.with_enrichment(fallback_enrichment(item, self.taxonomy))

            self.pool.report_success(key)
            enrichment = self.normalize(item, raw)
            self.cache.set(item.id, enrichment, source=item.source)
            return item.with_enrichment(enrichment)

    def _backoff(self, attempt: int) -> float:
        table = self.cfg.retry_backoff_seconds
        if not table:
            return 0.0
        return float(table[min(attempt, len(table) - 1)])

    def _passes_floor(self, item: Item) -> bool:
        if item.priority == "breaking":
            return True
        if item.priority == "high" and item.tier == "official":
            return True
        return (item.relevance or 0) >= self.cfg.min_relevance


def _priority_key(item: Item) -> tuple:
    published = item.published or _EPOCH
    return (
        PRIORITY_ORDER.get(item.priority or "", len(PRIORITY_ORDER)),
        -(item.relevance or 0),
        -item.score,
        -published.timestamp(),
        item.id,
    )


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(entry).strip() for entry in value if isinstance(entry, (str, int, float)) and str(entry).strip()]


def _relevance(value: Any) -> int:
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 5
    return min(10, max(1, number))
