"""Abstract interface and shared helpers for classifier providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
from typing import Any

from ...core.types import Item


class ProviderError(Exception):
    """A classifier call failed.

    ``status_code`` carries the HTTP status when the provider answered with
    an error response (429 drives rate-limit retries), and is None for
    network failures and malformed responses.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429


class ClassifierProvider(ABC):
    """Provider interface for single-item classification.

    Implementations are stateless with respect to credentials: the API key
    to use is passed on every call so the caller's key pool stays in charge
    of rotation.
    """

    name: str = "provider"

    @abstractmethod
    def classify(self, item: Item, api_key: str) -> dict[str, Any]:
        """Return the raw classification object for one item.

        Raises:
            ProviderError: On transport errors, error responses or output
                that is not a JSON object
        """
        raise NotImplementedError


def parse_json_response(content: str) -> dict[str, Any]:
    """Parse model output into a JSON object, tolerating fences and chatter."""
    if not content:
        raise json.JSONDecodeError("Empty content", content or "", 0)
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        parsed = json.loads(_extract_json_snippet(content))
    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("Expected a JSON object", content, 0)
    return parsed


def _extract_json_snippet(content: str) -> str:
    fence = _extract_fenced_json(content)
    if fence:
        return fence
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise json.JSONDecodeError("No JSON object found", content, 0)
    return content[start : end + 1]


def _extract_fenced_json(content: str) -> str | None:
    lines = content.splitlines()
    start_idx = None
    for idx, line in enumerate(lines):
        if line.strip().startswith("```") and "json" in line.lower():
            start_idx = idx + 1
            break
    if start_idx is None:
        return None
    for idx in range(start_idx, len(lines)):
        if lines[idx].strip().startswith("```"):
            snippet = "\n".join(lines[start_idx:idx]).strip()
            return snippet or None
    return None
