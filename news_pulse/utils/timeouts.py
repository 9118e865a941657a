"""Timeout wrappers that degrade to a fallback value instead of raising."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
import logging
from typing import Awaitable, Callable, TypeVar

from .logging import log_event

T = TypeVar("T")

logger = logging.getLogger(__name__)


def run_with_timeout(func: Callable[[], T], timeout: float, fallback: T, label: str = "call") -> T:
    """Run a blocking callable with a deadline.

    Returns ``fallback`` when the call exceeds ``timeout`` seconds or raises.
    The worker thread is not joined on timeout; it finishes in the background.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"timeout-{label}")
    future = executor.submit(func)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        log_event(logger, "Call timed out", logging.WARNING, event="timeout", label=label, timeout=timeout)
        return fallback
    except Exception as exc:  # noqa: BLE001
        log_event(
            logger,
            "Call failed",
            logging.WARNING,
            event="call_failed",
            label=label,
            error=f"{type(exc).__name__}: {exc}",
        )
        return fallback
    finally:
        executor.shutdown(wait=False)


async def await_with_timeout(awaitable: Awaitable[T], timeout: float, fallback: T, label: str = "task") -> T:
    """Await with a deadline, returning ``fallback`` on timeout or error."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        log_event(logger, "Task timed out", logging.WARNING, event="timeout", label=label, timeout=timeout)
        return fallback
    except Exception as exc:  # noqa: BLE001
        log_event(
            logger,
            "Task failed",
            logging.WARNING,
            event="task_failed",
            label=label,
            error=f"{type(exc).__name__}: {exc}",
        )
        return fallback
