"""Classifier provider implementations."""

from .base import ClassifierProvider, ProviderError, parse_json_response
from .factory import available_providers, create_provider
from .gemini import GeminiProvider
from .openai_compatible import OpenAICompatibleProvider

__all__ = [
    "ClassifierProvider",
    "ProviderError",
    "parse_json_response",
    "available_providers",
    "create_provider",
    "GeminiProvider",
    "OpenAICompatibleProvider",
]
