"""Provider factory and registry for hot-swappable classifier backends."""

from __future__ import annotations

import httpx

from ...config import ClassifierConfig
from .base import ClassifierProvider
from .gemini import GeminiProvider
from .openai_compatible import OpenAICompatibleProvider


ProviderBuilder = type[ClassifierProvider]

_PROVIDER_REGISTRY: dict[str, ProviderBuilder] = {
    "gemini": GeminiProvider,
    "groq": OpenAICompatibleProvider,
    "openai_compatible": OpenAICompatibleProvider,
    "openai-compatible": OpenAICompatibleProvider,
}


def available_providers() -> list[str]:
    """Return the set of registered provider names."""
    return sorted(_PROVIDER_REGISTRY.keys())


def create_provider(
    cfg: ClassifierConfig,
    transport: httpx.BaseTransport | None = None,
) -> ClassifierProvider:
    """Build a provider instance from runtime config."""
    name = cfg.provider.lower().strip()
    builder = _PROVIDER_REGISTRY.get(name)
    if builder is None:
        supported = ", ".join(available_providers())
        raise ValueError(f"Unsupported provider: {cfg.provider}. Supported: {supported}")
    return builder(cfg, transport=transport)
