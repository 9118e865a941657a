"""
Refresh scheduler.

Decides, per inbound request, whether to serve cached data, fetch only, or
fetch and classify, so that external call volume stays bounded while data
still refreshes once it goes stale.

The state is a small JSON record persisted on every transition. A
``processing`` flag older than ``max_processing_seconds`` is treated as a
crashed run and cleared on the next read.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
import threading
import time
from typing import Any, Callable

from .cache import write_json_atomic
from .config import SchedulerConfig
from .utils.logging import log_event
from .utils.timeouts import run_with_timeout

logger = logging.getLogger(__name__)

FETCH_AND_ANALYZE = "fetch_and_analyze"
FETCH_ONLY = "fetch_only"
SERVE_CACHE = "serve_cache"
WAIT = "wait"


@dataclass
class SchedulerState:
    """Persisted scheduler record.

    Attributes:
        last_fetch: Epoch seconds of the last completed fetch
        last_analysis: Epoch seconds of the last completed classification
        fetch_count: Completed fetches since the last reset
        last_fetch_date: ISO timestamp of the last completed fetch
        processing: Whether a refresh cycle is running
        processing_started: Epoch seconds when the running cycle started
    """

    last_fetch: float = 0.0
    last_analysis: float = 0.0
    fetch_count: int = 0
    last_fetch_date: str = ""
    processing: bool = False
    processing_started: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchedulerState:
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


class Scheduler:
    """Idle/processing state machine with persisted timestamps."""

    def __init__(
        self,
        cfg: SchedulerConfig | None = None,
        path: Path | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cfg = cfg or SchedulerConfig()
        self.path = path
        self._clock = clock
        self._lock = threading.RLock()
        self._state = SchedulerState()
        self._initialized = False

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            self.init()
            self._check_timeout()
            return SchedulerState(**asdict(self._state))

    def init(self) -> None:
        """Load persisted state once; slow or broken storage yields defaults."""
        with self._lock:
            if self._initialized:
                return
            self._initialized = True
            loaded = run_with_timeout(
                self._load_state,
                self.cfg.init_timeout_seconds,
                None,
                label="scheduler_init",
            )
            if loaded is not None:
                self._state = loaded
            self._check_timeout()

    def start_fetch(self) -> None:
        self._start("fetch")

    def start_analysis(self) -> None:
        self._start("analysis")

    def complete_fetch(self) -> None:
        with self._lock:
            self.init()
            now = self._clock()
            self._state.last_fetch = now
            self._state.fetch_count += 1
            self._state.last_fetch_date = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()
            self._save()

    def complete_analysis(self) -> None:
        with self._lock:
            self.init()
            self._state.last_analysis = self._clock()
            self._state.processing = False
            self._state.processing_started = None
            self._save()

    def fail(self) -> None:
        """Leave the processing state without recording a completion."""
        with self._lock:
            self.init()
            self._state.processing = False
            self._state.processing_started = None
            self._save()

    def finish(self) -> None:
        """Leave the processing state after a fetch-only cycle."""
        self.fail()

    def can_fetch(self) -> bool:
        with self._lock:
            self.init()
            return self._clock() - self._state.last_fetch >= self.cfg.min_fetch_interval_seconds

    def can_analyze(self) -> bool:
        with self._lock:
            self.init()
            return self._clock() - self._state.last_analysis >= self.cfg.min_analysis_interval_seconds

    def is_stale(self) -> bool:
        with self._lock:
            self.init()
            return self._clock() - self._state.last_analysis >= self.cfg.stale_threshold_seconds

    def is_processing(self) -> bool:
        with self._lock:
            self.init()
            self._check_timeout()
            return self._state.processing

    def seconds_until_next_fetch(self) -> float:
        with self._lock:
            self.init()
            elapsed = self._clock() - self._state.last_fetch
            return max(0.0, self.cfg.min_fetch_interval_seconds - elapsed)

    def seconds_until_next_analysis(self) -> float:
        with self._lock:
            self.init()
            elapsed = self._clock() - self._state.last_analysis
            return max(0.0, self.cfg.min_analysis_interval_seconds - elapsed)

    def next_action(self) -> str:
        """Decide what the current request should do.

        Returns one of ``wait``, ``fetch_and_analyze``, ``fetch_only`` and
        ``serve_cache``. Staleness wins over the fetch throttle, so data is
        always refreshed eventually.
        """
        with self._lock:
            if self.is_processing():
                return WAIT
            can_fetch = self.can_fetch()
            can_analyze = self.can_analyze()
            if self.is_stale() and can_analyze:
                return FETCH_AND_ANALYZE
            if can_fetch and not can_analyze:
                return FETCH_ONLY
            if can_fetch and can_analyze:
                return FETCH_AND_ANALYZE
            return SERVE_CACHE

    def status(self) -> dict[str, Any]:
        with self._lock:
            self.init()
            state = self._state
            return {
                "last_fetch": _iso(state.last_fetch),
                "last_analysis": _iso(state.last_analysis),
                "fetch_count": state.fetch_count,
                "can_fetch": self.can_fetch(),
                "can_analyze": self.can_analyze(),
                "is_stale": self.is_stale(),
                "is_processing": self.is_processing(),
                "next_fetch_in": round(self.seconds_until_next_fetch()),
                "next_analysis_in": round(self.seconds_until_next_analysis()),
            }

    def reset(self) -> None:
        with self._lock:
            self._initialized = True
            self._state = SchedulerState()
            self._save()
            log_event(logger, "Scheduler state reset", event="scheduler_reset")

    def _start(self, phase: str) -> None:
        with self._lock:
            self.init()
            self._state.processing = True
            self._state.processing_started = self._clock()
            self._save()
            log_event(logger, "Scheduler processing", logging.DEBUG, event="scheduler_start", phase=phase)

    def _check_timeout(self) -> None:
        state = self._state
        if not state.processing:
            return
        started = state.processing_started
        if started is None or self._clock() - started > self.cfg.max_processing_seconds:
            log_event(logger, "Processing timed out, resetting", logging.WARNING, event="scheduler_timeout")
            state.processing = False
            state.processing_started = None
            self._save()

    def _load_state(self) -> SchedulerState | None:
        if self.path is None or not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log_event(
                logger,
                "Scheduler state unreadable, using defaults",
                logging.WARNING,
                event="scheduler_load_failed",
                error=f"{type(exc).__name__}: {exc}",
            )
            return None
        if not isinstance(raw, dict):
            return None
        return SchedulerState.from_dict(raw)

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            write_json_atomic(self.path, asdict(self._state))
        except OSError as exc:
            log_event(
                logger,
                "Scheduler state save failed",
                logging.ERROR,
                event="scheduler_save_failed",
                error=f"{type(exc).__name__}: {exc}",
            )


def _iso(epoch: float) -> str | None:
    if not epoch:
        return None
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()
