"""
Multi-source aggregation pass.

One pass runs every registered source concurrently through a shared
``httpx.AsyncClient``, isolates per-source failures, then filters noise,
scores, orders, deduplicates, applies the lookback window and truncates.

Pipeline of a pass:
1. Fetch (settle-all, each source under its own timeout)
2. Back-fill failed sources from the raw-source cache
3. Noise filter
4. Score and order (score, tier, recency, id)
5. Deduplicate (higher-ranked duplicate wins)
6. Date filter and truncation
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
import logging
import time
from typing import Any, Callable

import httpx

from .cache import TTLCache
from .config import AggregateConfig, DedupConfig, FetchConfig
from .core.dedup import dedup_items
from .core.scoring import is_noise, rank_items
from .core.taxonomy import Taxonomy
from .core.types import AggregateResult, Item, SourceReport, SourceResult
from .fetch.base import Source
from .fetch.fetcher import build_client
from .utils.logging import log_event
from .utils.timeouts import await_with_timeout

logger = logging.getLogger(__name__)


class Aggregator:
    """Fetches, filters, scores and deduplicates items from all sources."""

    def __init__(
        self,
        sources: list[Source],
        taxonomy: Taxonomy,
        fetch_cfg: FetchConfig,
        aggregate_cfg: AggregateConfig,
        dedup_cfg: DedupConfig,
        source_cache: TTLCache[list[Item]] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.sources = sources
        self.taxonomy = taxonomy
        self.fetch_cfg = fetch_cfg
        self.aggregate_cfg = aggregate_cfg
        self.dedup_cfg = dedup_cfg
        self.source_cache = source_cache
        self.transport = transport
        self._clock = clock

    def default_lookback(self) -> timedelta:
        return timedelta(days=self.fetch_cfg.lookback_days)

    async def aggregate(self, lookback: timedelta | None = None) -> AggregateResult:
        """Run one aggregation pass. Never raises for source failures."""
        lookback = lookback or self.default_lookback()
        async with build_client(self.fetch_cfg, transport=self.transport) as client:
            outcomes = await asyncio.gather(
                *(self._run_source(client, source, lookback) for source in self.sources)
            )

        reports: list[SourceReport] = []
        raw: list[Item] = []
        for items, report in outcomes:
            reports.append(report)
            raw.extend(items)

        items = self.process(raw, lookback)
        healthy = sum(1 for report in reports if report.success)
        log_event(
            logger,
            "Aggregation complete",
            event="aggregate_done",
            sources=len(reports),
            healthy_sources=healthy,
            raw_items=len(raw),
            items=len(items),
        )
        return AggregateResult(items=items, reports=reports, raw_count=len(raw))

    def aggregate_sync(self, lookback: timedelta | None = None) -> AggregateResult:
        """Blocking wrapper bounded by ``fetch_timeout_seconds``.

        A pass that exceeds the deadline degrades to an empty result.
        """
        return asyncio.run(
            await_with_timeout(
                self.aggregate(lookback),
                self.fetch_cfg.fetch_timeout_seconds,
                AggregateResult(),
                label="aggregate",
            )
        )

    def process(self, raw: list[Item], lookback: timedelta) -> list[Item]:
        """Noise filter, date filter, rank, deduplicate and truncate.

        Items outside the lookback window are dropped before deduplication
        so they never suppress a fresh copy of the same story.
        """
        cfg = self.aggregate_cfg
        cutoff = datetime.fromtimestamp(self._clock(), tz=timezone.utc) - lookback
        kept = [
            item
            for item in raw
            if _is_recent(item, cutoff) and not is_noise(item, self.taxonomy, cfg.min_title_length)
        ]
        ranked = rank_items(kept, self.taxonomy)
        unique = dedup_items(
            ranked,
            prefix_length=self.dedup_cfg.title_prefix_length,
            min_title_key_length=self.dedup_cfg.min_title_key_length,
            similarity_threshold=self.dedup_cfg.title_similarity_threshold,
        )
        return unique[: cfg.max_items]

    async def _run_source(
        self,
        client: httpx.AsyncClient,
        source: Source,
        lookback: timedelta,
    ) -> tuple[list[Item], SourceReport]:
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(
                source.fetch(client, lookback),
                timeout=self.fetch_cfg.source_timeout_seconds,
            )
        except asyncio.TimeoutError:
            result = SourceResult(source=source.name, error=f"Timed out after {self.fetch_cfg.source_timeout_seconds}s")
        except Exception as exc:  # noqa: BLE001
            result = SourceResult(source=source.name, error=f"{type(exc).__name__}: {exc}")
        elapsed = time.monotonic() - started

        report = SourceReport(
            source=source.name,
            success=result.success,
            item_count=len(result.items),
            error=result.error,
            elapsed_seconds=elapsed,
        )
        items = list(result.items)

        if result.success:
            if items and self.source_cache is not None:
                self.source_cache.set(source.name, items, source=source.name)
        else:
            cached = self.source_cache.get(source.name) if self.source_cache is not None else None
            if cached:
                items = list(cached)
                report.item_count = len(items)
                report.from_cache = True
            log_event(
                logger,
                "Source failed",
                logging.WARNING,
                event="source_failed",
                source=source.name,
                error=result.error,
                from_cache=report.from_cache,
            )

        log_event(
            logger,
            "Source fetched",
            logging.DEBUG,
            event="source_fetched",
            source=source.name,
            items=report.item_count,
            elapsed=round(elapsed, 3),
        )
        return items, report


def sources_health(reports: list[SourceReport]) -> dict[str, Any]:
    """Summarize source reports: healthy/total counts and per-source details."""
    total = len(reports)
    healthy = sum(1 for report in reports if report.success)
    return {
        "healthy": healthy,
        "total": total,
        "percentage": round(healthy / total * 100) if total else 0,
        "sources": {report.source: report.to_dict() for report in reports},
    }


def _is_recent(item: Item, cutoff: datetime) -> bool:
    published = item.published
    return published is not None and published > cutoff
