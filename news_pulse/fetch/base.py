"""Abstract interface for source adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
import time
from typing import Callable

import httpx

from ..core.types import SourceResult


class Source(ABC):
    """One external origin of items.

    Adapters map native records to ``Item`` and must never raise out of
    ``fetch``: any failure is reported through ``SourceResult.error``.
    """

    name: str = "source"

    def __init__(self, retries: int = 1, clock: Callable[[], float] = time.time):
        self.retries = retries
        self._clock = clock

    @abstractmethod
    async def fetch(self, client: httpx.AsyncClient, lookback: timedelta) -> SourceResult:
        """Fetch recent items through the shared client."""
        raise NotImplementedError

    def now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def cutoff(self, lookback: timedelta) -> datetime:
        return self.now() - lookback

    def failed(self, error: str) -> SourceResult:
        return SourceResult(source=self.name, items=[], error=error)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
