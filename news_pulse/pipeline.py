"""
Refresh entry point.

``NewsPipeline.refresh`` is what a presentation layer calls per request.
It coordinates the whole workflow:
1. Serve the combined cache directly while it is recent (quick cache)
2. Ask the scheduler what this request should do
3. Fetch from every source (optionally)
4. Classify the top-ranked items, or merge cached classifications only
5. Store the combined output and clean up expired cache entries

Nothing in this path raises: unexpected errors fall back to the combined
cache, and an error result is returned only when no data exists at all.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import time
from typing import Any, Callable

import httpx

from .aggregator import Aggregator, sources_health
from .analyzers.classifier import ClassificationOrchestrator
from .cache import CacheSet
from .config import AppConfig, get_api_keys
from .core.taxonomy import Taxonomy
from .core.types import Item, RefreshResult, build_stats, isoformat
from .fetch.registry import create_sources
from .llm.key_pool import KeyPool
from .llm.providers import create_provider
from .llm.tracing import flush, record_span_error, set_span_output, setup_langfuse, start_span
from .scheduler import FETCH_AND_ANALYZE, FETCH_ONLY, SERVE_CACHE, WAIT, Scheduler
from .utils.logging import log_event

logger = logging.getLogger(__name__)

SCHEDULER_STATE_FILE = "scheduler-state.json"


class NewsPipeline:
    """Wires caches, sources, classifier and scheduler into one refresh call."""

    def __init__(
        self,
        cfg: AppConfig,
        caches: CacheSet,
        aggregator: Aggregator,
        orchestrator: ClassificationOrchestrator,
        scheduler: Scheduler,
        clock: Callable[[], float] = time.time,
    ):
        self.cfg = cfg
        self.caches = caches
        self.aggregator = aggregator
        self.orchestrator = orchestrator
        self.scheduler = scheduler
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        cfg: AppConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        provider_transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> NewsPipeline:
        """Build a pipeline from configuration.

        ``transport`` and ``provider_transport`` replace the network layer of
        the source fetches and of the classifier calls respectively.
        Unknown provider or source names raise ``ValueError``.
        """
        setup_langfuse(cfg.langfuse)
        data_dir = Path(cfg.storage.data_dir)
        taxonomy = Taxonomy.from_overrides(cfg.keywords)
        caches = CacheSet(data_dir, cfg.cache, clock=clock)

        aggregator = Aggregator(
            create_sources(cfg, taxonomy, clock=clock),
            taxonomy,
            cfg.fetch,
            cfg.aggregate,
            cfg.dedup,
            source_cache=caches.sources,
            transport=transport,
            clock=clock,
        )
        pool = KeyPool(get_api_keys(cfg.classifier), cfg.pool, clock=clock)
        orchestrator = ClassificationOrchestrator(
            create_provider(cfg.classifier, transport=provider_transport),
            pool,
            caches.analysis,
            taxonomy,
            cfg.classifier,
        )
        scheduler = Scheduler(cfg.scheduler, data_dir / SCHEDULER_STATE_FILE, clock=clock)
        return cls(cfg, caches, aggregator, orchestrator, scheduler, clock=clock)

    def refresh(self, force: bool = False) -> RefreshResult:
        """Return the current news, refreshing it when the schedule allows."""
        with start_span("news_pulse.refresh", kind="chain", input_value={"force": force}) as span:
            try:
                result = self._refresh(force)
            except Exception as exc:  # noqa: BLE001
                record_span_error(span, exc)
                log_event(
                    logger,
                    "Refresh failed",
                    logging.ERROR,
                    event="refresh_error",
                    error=f"{type(exc).__name__}: {exc}",
                )
                result = self._error_result(f"Failed to fetch news: {exc}")
            set_span_output(span, {"origin": result.origin, "items": len(result.items)})
            return result

    def status(self) -> dict[str, Any]:
        return {
            "scheduler": self.scheduler.status(),
            "analysis": self.orchestrator.stats(),
            "caches": self.caches.stats_all(),
            "news_cached": self.caches.news.has(CacheSet.NEWS_KEY),
            "sources": [source.name for source in self.aggregator.sources],
        }

    def cleanup(self) -> dict[str, int]:
        """Remove expired entries from every cache."""
        return self.caches.cleanup_all()

    def reset_scheduler(self) -> None:
        self.scheduler.reset()

    def reset_keys(self) -> None:
        """Clear cooldowns and error counters of every classifier key."""
        self.orchestrator.pool.reset_all()

    def close(self) -> None:
        flush()

    def _refresh(self, force: bool) -> RefreshResult:
        self.scheduler.init()

        cached = self._cached_news()
        if cached and not force and self._is_recent(cached):
            return self._response(cached, from_cache=True, origin="quick_cache")

        action = FETCH_AND_ANALYZE if force else self.scheduler.next_action()
        log_event(logger, "Refresh action", event="refresh_action", action=action, force=force)

        if action == WAIT:
            if cached:
                return self._response(cached, from_cache=True, origin="wait")
            return self._response([], from_cache=False, origin="wait", error="Processing in progress, please wait")

        if action == SERVE_CACHE:
            if cached:
                return self._response(cached, from_cache=True, origin="cache")
            # Nothing to serve yet; run a full cycle instead.
            action = FETCH_AND_ANALYZE

        return self._run_cycle(analyze=action != FETCH_ONLY)

    def _run_cycle(self, analyze: bool) -> RefreshResult:
        if analyze:
            self.scheduler.start_analysis()
        else:
            self.scheduler.start_fetch()

        try:
            aggregate = self.aggregator.aggregate_sync()
            self.scheduler.complete_fetch()
            health = sources_health(aggregate.reports)
            log_event(
                logger,
                "Sources health",
                event="sources_health",
                healthy=health["healthy"],
                total=health["total"],
            )
            if aggregate.all_failed:
                log_event(logger, "Every source failed", logging.WARNING, event="sources_all_failed", total=health["total"])

            if not aggregate.items:
                self.scheduler.fail()
                fallback = self._cached_news()
                if fallback:
                    return self._response(fallback, from_cache=True, origin="fallback")
                return self._response([], from_cache=False, origin="empty", error="No news available")

            top = aggregate.items[: self.cfg.aggregate.analyze_top_n]
            if analyze:
                items = self.orchestrator.classify(top)
            else:
                items = self.orchestrator.enrich_from_cache(top)

            if items:
                self.caches.news.set(CacheSet.NEWS_KEY, items)
            if analyze:
                self.scheduler.complete_analysis()
            else:
                self.scheduler.finish()
            self.caches.cleanup_all()
        except Exception as exc:  # noqa: BLE001
            self.scheduler.fail()
            log_event(
                logger,
                "Processing error",
                logging.ERROR,
                event="refresh_processing_error",
                error=f"{type(exc).__name__}: {exc}",
            )
            fallback = self._cached_news()
            if fallback:
                return self._response(fallback, from_cache=True, origin="error_fallback")
            return self._response([], from_cache=False, origin="empty", error=f"Failed to fetch news: {exc}")

        return self._response(items, from_cache=False, origin="fresh" if analyze else "fetch_only")

    def _cached_news(self) -> list[Item]:
        return self.caches.news.get(CacheSet.NEWS_KEY) or []

    def _is_recent(self, items: list[Item]) -> bool:
        stamps = [item.published.timestamp() for item in items if item.published is not None]
        if not stamps:
            return False
        return self._clock() - max(stamps) < self.cfg.cache.quick_cache_max_age_seconds

    def _error_result(self, error: str) -> RefreshResult:
        try:
            cached = self._cached_news()
        except Exception:  # noqa: BLE001
            cached = []
        if cached:
            return self._response(cached, from_cache=True, origin="error_fallback")
        return self._response([], from_cache=False, origin="empty", error=error)

    def _response(
        self,
        items: list[Item],
        from_cache: bool,
        origin: str,
        error: str | None = None,
    ) -> RefreshResult:
        log_event(
            logger,
            "Refresh response",
            event="refresh_response",
            origin=origin,
            items=len(items),
            from_cache=from_cache,
        )
        return RefreshResult(
            items=items,
            from_cache=from_cache,
            origin=origin,
            stats=build_stats(items),
            scheduler={
                "next_refresh_seconds": round(self.scheduler.seconds_until_next_analysis()),
                "processing": self.scheduler.is_processing(),
            },
            error=error,
            last_updated=isoformat(datetime.fromtimestamp(self._clock(), tz=timezone.utc)),
        )
