"""LLM provider adapters.

This package translates provider-neutral conversation requests into the wire
formats of the supported upstream APIs and parses their replies.

Supported providers:
- AnthropicAdapter: Claude models via the Messages API
- OpenAIAdapter: GPT and o-series models via chat completions
- GeminiAdapter: Gemini models via generateContent
- DeepSeekAdapter: DeepSeek chat and reasoner models
"""

from fullintel.core.providers.anthropic import AnthropicAdapter
from fullintel.core.providers.base import (
    MODEL_PREFIXES,
    ProviderAdapter,
    ProviderKind,
    detect_provider,
)
from fullintel.core.providers.deepseek import DeepSeekAdapter
from fullintel.core.providers.gemini import GeminiAdapter
from fullintel.core.providers.openai import OpenAIAdapter
from fullintel.core.providers.registry import create_adapter, create_adapters
from fullintel.core.providers.sse import SSEStreamParser

__all__ = [
    # Abstract base
    "ProviderAdapter",
    "ProviderKind",
    "SSEStreamParser",
    "MODEL_PREFIXES",
    "detect_provider",
    # Concrete adapters
    "AnthropicAdapter",
    "OpenAIAdapter",
    "GeminiAdapter",
    "DeepSeekAdapter",
    # Registry
    "create_adapter",
    "create_adapters",
]
