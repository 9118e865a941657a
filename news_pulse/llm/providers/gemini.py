"""Google Gemini provider for item classification."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from ...config import ClassifierConfig
from ...core.types import Item
from ...utils.logging import log_event, truncate_text
from ..prompts import build_classification_prompt
from ..tracing import record_span_error, set_span_output, start_span
from .base import ClassifierProvider, ProviderError, parse_json_response

logger = logging.getLogger(__name__)


class GeminiProvider(ClassifierProvider):
    """Gemini-backed classifier using the ``generateContent`` endpoint."""

    name = "gemini"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
    DEFAULT_MODEL = "gemini-2.0-flash"

    def __init__(self, cfg: ClassifierConfig, transport: httpx.BaseTransport | None = None):
        self.cfg = cfg
        self.model = cfg.model or self.DEFAULT_MODEL
        self.base_url = (cfg.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.transport = transport

    def classify(self, item: Item, api_key: str) -> dict[str, Any]:
        prompt = build_classification_prompt(item, self.cfg.max_excerpt_chars)
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.cfg.temperature,
                "maxOutputTokens": self.cfg.max_tokens,
                "responseMimeType": "application/json",
            },
        }
        with start_span(
            "gemini.classify",
            kind="llm",
            input_value=prompt,
            attributes={
                "llm.model": self.model,
                "llm.provider": self.name,
                "item.id": item.id,
                "item.source": item.source,
            },
        ) as span:
            try:
                data = self._post(payload, api_key)
                content = _extract_text(data)
                set_span_output(span, content)
                return parse_json_response(content)
            except ProviderError as exc:
                record_span_error(span, exc)
                raise
            except json.JSONDecodeError as exc:
                record_span_error(span, exc)
                log_event(
                    logger,
                    "Malformed classifier output",
                    logging.DEBUG,
                    event="llm_parse_error",
                    item_id=item.id,
                    raw_response=truncate_text(content, 2000),
                )
                raise ProviderError(f"Malformed response: {exc.msg}") from exc

    def _post(self, payload: dict[str, Any], api_key: str) -> dict[str, Any]:
        url = f"{self.base_url}/v1beta/models/{self.model}:generateContent"
        params = {"key": api_key}
        try:
            with httpx.Client(
                timeout=self.cfg.item_timeout_seconds,
                trust_env=self.cfg.trust_env,
                transport=self.transport,
            ) as client:
                resp = client.post(url, params=params, json=payload)
        except httpx.HTTPError as exc:
            raise ProviderError(f"{type(exc).__name__}: {exc}") from exc
        if resp.status_code >= 400:
            raise ProviderError(f"HTTP {resp.status_code}", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError("Response body is not JSON", status_code=resp.status_code) from exc


def _extract_text(data: dict[str, Any]) -> str:
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"] or ""
    except (KeyError, IndexError, TypeError):
        return ""
