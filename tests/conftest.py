"""Shared fixtures: a controllable clock and an item factory."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from news_pulse.core.types import Item, isoformat

# 2026-01-15T12:00:00Z
NOW = 1768478400.0


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_item(clock):
    def _make(
        item_id: str = "item-1",
        title: str = "Introducing a new coding model",
        link: str | None = None,
        age_seconds: float = 3600,
        **fields,
    ) -> Item:
        published = datetime.fromtimestamp(clock.now - age_seconds, tz=timezone.utc)
        return Item(
            id=item_id,
            title=title,
            link=link or f"https://example.com/{item_id}",
            published_at=isoformat(published),
            source=fields.pop("source", "Example"),
            **fields,
        )

    return _make
