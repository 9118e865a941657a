"""
Shared utility functions.

This package contains utility code used across multiple
pipeline stages.
"""

from .logging import (
    JsonlFormatter,
    log_event,
    mask_secret,
    setup_logging,
    truncate_text,
)
from .timeouts import await_with_timeout, run_with_timeout

__all__ = [
    "setup_logging",
    "log_event",
    "mask_secret",
    "truncate_text",
    "JsonlFormatter",
    "run_with_timeout",
    "await_with_timeout",
]
