"""LLM classification backends, credential pool and observability."""

from .key_pool import KeyPool, KeyStatus
from .providers.base import ClassifierProvider, ProviderError
from .providers.factory import available_providers, create_provider
from .providers.gemini import GeminiProvider
from .providers.openai_compatible import OpenAICompatibleProvider
from .tracing import flush, record_span_error, set_span_output, setup_langfuse, start_span

__all__ = [
    "KeyPool",
    "KeyStatus",
    "ClassifierProvider",
    "ProviderError",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "create_provider",
    "available_providers",
    "setup_langfuse",
    "flush",
    "start_span",
    "set_span_output",
    "record_span_error",
]
