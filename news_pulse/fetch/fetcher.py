"""
Async HTTP fetching shared by all source adapters.

Every adapter of one aggregation pass goes through a single
``httpx.AsyncClient`` built by ``build_client``. ``fetch_url`` adds bounded
retries with a linear backoff and never raises; failures come back as a
``FetchResult`` with ``error`` set.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
from typing import Any

import httpx

from ..config import FetchConfig


@dataclass
class FetchResult:
    """Result of an HTTP fetch operation.

    Either text will be populated (success) or error will be populated (failure),
    but never both. status_code may be None for network-level failures.

    Attributes:
        url: The URL that was fetched
        status_code: HTTP status code, or None if request failed before getting response
        text: The response body text, or None on error
        error: Error message if fetch failed, None on success
    """

    url: str
    status_code: int | None
    text: str | None
    error: str | None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None

    def json(self) -> Any:
        """Decode the body as JSON; raises ValueError on failure or empty body."""
        if self.text is None:
            raise ValueError(f"No body for {self.url}: {self.error}")
        return json.loads(self.text)


def build_client(
    cfg: FetchConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared async client for one aggregation pass."""
    return httpx.AsyncClient(
        timeout=cfg.timeout_seconds,
        headers={"User-Agent": cfg.user_agent},
        follow_redirects=True,
        trust_env=cfg.trust_env,
        transport=transport,
    )


async def fetch_url(
    client: httpx.AsyncClient,
    url: str,
    retries: int,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
) -> FetchResult:
    """Fetch a URL with retry logic.

    Network errors, HTTP 429 and 5xx responses are retried; other 4xx
    responses fail immediately.

    Args:
        client: Shared async client
        url: The URL to fetch
        retries: Number of retry attempts after initial failure
        headers: Extra request headers
        params: Query parameters

    Returns:
        FetchResult with text on success or error message on failure
    """
    last_error: str | None = None
    status_code: int | None = None

    for attempt in range(retries + 1):
        try:
            resp = await client.get(url, headers=headers, params=params)
        except Exception as exc:  # noqa: BLE001
            last_error = f"{type(exc).__name__}: {exc}"
        else:
            if resp.status_code < 400:
                return FetchResult(url=url, status_code=resp.status_code, text=resp.text, error=None)
            status_code = resp.status_code
            last_error = f"HTTP {resp.status_code}"
            if resp.status_code < 500 and resp.status_code != 429:
                break
        if attempt < retries:
            # Linear backoff: 0.5s, 1.0s, 1.5s...
            await asyncio.sleep(0.5 * (attempt + 1))

    return FetchResult(url=url, status_code=status_code, text=None, error=last_error)
