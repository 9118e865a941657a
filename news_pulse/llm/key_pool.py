"""
Rate-limit aware pool of classifier API keys.

Keys are handed out round-robin starting from a random index. A key that
hits HTTP 429 is put in an exponentially growing cooldown; a key that keeps
failing for other reasons gets a flat cooldown once it crosses the error
threshold. When every key is cooling down, the one that recovers soonest is
returned anyway, so ``next()`` only returns None for an empty pool.

All state is guarded by one lock; classification workers report results
from several threads at once.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
import random
import threading
import time
from typing import Any, Callable

from ..config import PoolConfig
from ..utils.logging import log_event, mask_secret

logger = logging.getLogger(__name__)


@dataclass
class KeyStatus:
    """Health record of one key.

    Attributes:
        key: The raw API key
        index: Position in the configured key list
        request_count: Times the key was handed out
        last_used: Epoch seconds of the last hand-out
        cooldown_until: Epoch seconds until which the key is skipped
        error_count: Current error counter (decremented on success)
        healthy: Whether the key is considered healthy
        success_rate: Percentage of requests without an outstanding error
    """

    key: str
    index: int
    request_count: int = 0
    last_used: float = 0.0
    cooldown_until: float = 0.0
    error_count: int = 0
    healthy: bool = True
    success_rate: float = 100.0

    def update_success_rate(self) -> None:
        total = self.request_count or 1
        self.success_rate = max(0.0, (total - self.error_count) / total * 100)

    def reset(self) -> None:
        self.healthy = True
        self.error_count = 0
        self.cooldown_until = 0.0


class KeyPool:
    """Thread-safe round-robin key pool with cooldowns."""

    def __init__(
        self,
        keys: list[str],
        cfg: PoolConfig | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ):
        self.cfg = cfg or PoolConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._keys = list(keys)
        self._status: dict[str, KeyStatus] = {
            key: KeyStatus(key=key, index=index) for index, key in enumerate(self._keys)
        }
        rng = rng or random.Random()
        # Random start spreads load across restarts.
        self._cursor = rng.randrange(len(self._keys)) if self._keys else 0
        log_event(logger, "Key pool initialized", event="pool_init", keys=len(self._keys))

    @property
    def size(self) -> int:
        return len(self._keys)

    def next(self) -> str | None:
        """Return the next usable key, or the least-cooldown key if none is usable."""
        with self._lock:
            if not self._keys:
                return None
            now = self._clock()
            for _ in range(len(self._keys) * 2):
                status = self._status[self._keys[self._cursor]]
                self._cursor = (self._cursor + 1) % len(self._keys)

                if status.cooldown_until > now:
                    continue
                if not status.healthy and status.error_count >= self.cfg.max_errors:
                    # Cooldown is over: give the key a fresh start.
                    status.reset()
                return self._hand_out(status, now)

            status = min(self._status.values(), key=lambda s: (s.cooldown_until, s.index))
            log_event(
                logger,
                "All keys cooling down, using least-cooldown key",
                logging.WARNING,
                event="pool_exhausted",
                key=mask_secret(status.key),
                wait_seconds=round(max(0.0, status.cooldown_until - now), 1),
            )
            return self._hand_out(status, now)

    def report_success(self, key: str) -> None:
        with self._lock:
            status = self._status.get(key)
            if status is None:
                return
            status.error_count = max(0, status.error_count - 1)
            status.healthy = True
            status.update_success_rate()

    def report_error(self, key: str, status_code: int | None = None) -> None:
        with self._lock:
            status = self._status.get(key)
            if status is None:
                return
            status.error_count += 1
            now = self._clock()
            if status_code == 429:
                exponent = min(status.error_count, self.cfg.cooldown_exponent_cap)
                duration = self.cfg.cooldown_seconds * self.cfg.cooldown_multiplier**exponent
                status.cooldown_until = now + duration
                status.healthy = False
                log_event(
                    logger,
                    "Key rate limited",
                    logging.WARNING,
                    event="pool_rate_limited",
                    key_index=status.index,
                    cooldown_seconds=round(duration, 1),
                )
            elif status.error_count >= self.cfg.max_errors:
                status.cooldown_until = now + self.cfg.cooldown_seconds
                status.healthy = False
                log_event(
                    logger,
                    "Key cooling down after repeated errors",
                    logging.WARNING,
                    event="pool_error_cooldown",
                    key_index=status.index,
                    errors=status.error_count,
                )
            status.update_success_rate()

    def stats(self) -> dict[str, int]:
        with self._lock:
            now = self._clock()
            statuses = list(self._status.values())
            return {
                "total_requests": sum(s.request_count for s in statuses),
                "total_errors": sum(s.error_count for s in statuses),
                "keys_in_cooldown": sum(1 for s in statuses if s.cooldown_until > now),
                "healthy_keys": sum(1 for s in statuses if s.healthy),
                "total_keys": len(statuses),
            }

    def detailed_status(self) -> list[dict[str, Any]]:
        """Per-key status with the key masked to its last four characters."""
        with self._lock:
            details = []
            for status in self._status.values():
                entry = asdict(status)
                entry["key"] = mask_secret(status.key)
                details.append(entry)
            return details

    def has_available_keys(self) -> bool:
        with self._lock:
            now = self._clock()
            return any(s.healthy and s.cooldown_until <= now for s in self._status.values())

    def reset_all(self) -> None:
        with self._lock:
            for status in self._status.values():
                status.reset()
            log_event(logger, "All keys reset", event="pool_reset_all")

    def _hand_out(self, status: KeyStatus, now: float) -> str:
        status.request_count += 1
        status.last_used = now
        return status.key
