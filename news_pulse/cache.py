"""
Durable key/value caches with per-instance time-to-live.

Each ``TTLCache`` keeps an in-memory dict as the source of truth and mirrors
it to a JSON file after every mutation. Entries are never returned once
``now >= expires_at``: every read path re-checks expiry, and expired
entries are dropped while loading from disk.

Three logical caches back the pipeline (see ``CacheSet``):
- sources: raw items per source adapter (short TTL)
- analysis: per-item classification results (long TTL)
- news: the combined ranked output (medium TTL)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
import os
from pathlib import Path
import tempfile
import threading
import time
from typing import Any, Callable, Generic, TypeVar

from .config import CacheConfig
from .utils.logging import log_event

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry(Generic[T]):
    """One cached value.

    Attributes:
        value: The cached payload
        created_at: Epoch seconds when the entry was written
        expires_at: Epoch seconds after which the entry is invalid
        source: Optional provenance tag (e.g. the originating source name)
    """

    value: T
    created_at: float
    expires_at: float
    source: str | None = None

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def _identity(value: Any) -> Any:
    return value


class TTLCache(Generic[T]):
    """Thread-safe TTL cache persisted to a JSON file.

    Values must be JSON-serializable after ``encode``; ``decode`` rebuilds
    them on load. Pass ``path=None`` for a memory-only cache.
    """

    def __init__(
        self,
        path: Path | None,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
        encode: Callable[[T], Any] = _identity,
        decode: Callable[[Any], T] = _identity,
        name: str | None = None,
    ):
        self.path = path
        self.ttl_seconds = ttl_seconds
        self.name = name or (path.stem if path else "memory")
        self._clock = clock
        self._encode = encode
        self._decode = decode
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()
        self._loaded = False
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> T | None:
        with self._lock:
            self._load_locked()
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                self._save_locked()
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: T, ttl: float | None = None, source: str | None = None) -> None:
        with self._lock:
            self._load_locked()
            now = self._clock()
            self._entries[key] = CacheEntry(
                value=value,
                created_at=now,
                expires_at=now + (self.ttl_seconds if ttl is None else ttl),
                source=source,
            )
            self._save_locked()

    def has(self, key: str) -> bool:
        with self._lock:
            self._load_locked()
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._save_locked()
                return False
            return True

    def cleanup(self) -> int:
        """Remove every expired entry and return how many were removed."""
        with self._lock:
            self._load_locked()
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            if expired:
                self._save_locked()
                log_event(logger, "Cache cleanup", event="cache_cleanup", cache=self.name, removed=len(expired))
            return len(expired)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            self._load_locked()
            now = self._clock()
            valid = [entry for entry in self._entries.values() if not entry.is_expired(now)]
            oldest = min((entry.created_at for entry in valid), default=None)
            newest = max((entry.created_at for entry in valid), default=None)
            return {
                "total": len(self._entries),
                "valid": len(valid),
                "expired": len(self._entries) - len(valid),
                "oldest": _iso(oldest),
                "newest": _iso(newest),
                "hits": self._hits,
                "misses": self._misses,
            }

    def _load_locked(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if self.path is None or not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log_event(
                logger,
                "Cache file unreadable, starting empty",
                logging.WARNING,
                event="cache_load_failed",
                cache=self.name,
                error=f"{type(exc).__name__}: {exc}",
            )
            return
        if not isinstance(raw, dict):
            return

        now = self._clock()
        kept = 0
        skipped = 0
        for key, payload in raw.items():
            try:
                entry = CacheEntry(
                    value=self._decode(payload["value"]),
                    created_at=float(payload["created_at"]),
                    expires_at=float(payload["expires_at"]),
                    source=payload.get("source"),
                )
            except (KeyError, TypeError, ValueError):
                skipped += 1
                continue
            if entry.is_expired(now):
                skipped += 1
                continue
            self._entries[key] = entry
            kept += 1
        log_event(logger, "Cache loaded", logging.DEBUG, event="cache_loaded", cache=self.name, valid=kept, skipped=skipped)

    def _save_locked(self) -> None:
        if self.path is None:
            return
        payload = {
            key: {
                "value": self._encode(entry.value),
                "created_at": entry.created_at,
                "expires_at": entry.expires_at,
                "source": entry.source,
            }
            for key, entry in self._entries.items()
        }
        try:
            write_json_atomic(self.path, payload)
        except OSError as exc:
            log_event(
                logger,
                "Cache save failed",
                logging.ERROR,
                event="cache_save_failed",
                cache=self.name,
                error=f"{type(exc).__name__}: {exc}",
            )


class CacheSet:
    """The three logical caches used by the pipeline.

    Attributes:
        sources: Raw items per source name
        analysis: Enrichment mapping per item id
        news: Combined ranked output under ``NEWS_KEY``
    """

    NEWS_KEY = "latest"

    def __init__(
        self,
        data_dir: Path | None,
        cfg: CacheConfig,
        clock: Callable[[], float] = time.time,
    ):
        from .core.types import Item

        def _encode_items(items: list[Item]) -> list[dict[str, Any]]:
            return [item.to_dict() for item in items]

        def _decode_items(raw: list[dict[str, Any]]) -> list[Item]:
            return [Item.from_dict(entry) for entry in raw]

        def _path(name: str) -> Path | None:
            return data_dir / name if data_dir is not None else None

        self.sources: TTLCache[list[Item]] = TTLCache(
            _path("source-cache.json"),
            cfg.source_ttl_seconds,
            clock=clock,
            encode=_encode_items,
            decode=_decode_items,
            name="sources",
        )
        self.analysis: TTLCache[dict[str, Any]] = TTLCache(
            _path("analysis-cache.json"),
            cfg.analysis_ttl_seconds,
            clock=clock,
            name="analysis",
        )
        self.news: TTLCache[list[Item]] = TTLCache(
            _path("news-cache.json"),
            cfg.news_ttl_seconds,
            clock=clock,
            encode=_encode_items,
            decode=_decode_items,
            name="news",
        )

    def all(self) -> dict[str, TTLCache[Any]]:
        return {"sources": self.sources, "analysis": self.analysis, "news": self.news}

    def cleanup_all(self) -> dict[str, int]:
        return {name: cache.cleanup() for name, cache in self.all().items()}

    def stats_all(self) -> dict[str, dict[str, Any]]:
        return {name: cache.stats() for name, cache in self.all().items()}


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write JSON to ``path`` via a temporary file and an atomic rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=True, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def _iso(epoch: float | None) -> str | None:
    if epoch is None:
        return None
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()
