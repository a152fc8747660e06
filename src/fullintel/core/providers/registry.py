"""Provider adapter registry.

Maps each ProviderKind to its adapter class and builds adapter instances
with per-provider endpoint overrides.
"""

from typing import Dict, Mapping, Optional, Type

from fullintel.core.providers.anthropic import AnthropicAdapter
from fullintel.core.providers.base import DEFAULT_MAX_TOKENS, ProviderAdapter, ProviderKind
from fullintel.core.providers.deepseek import DeepSeekAdapter
from fullintel.core.providers.gemini import GeminiAdapter
from fullintel.core.providers.openai import OpenAIAdapter

ADAPTER_CLASSES: Dict[ProviderKind, Type[ProviderAdapter]] = {
    ProviderKind.ANTHROPIC: AnthropicAdapter,
    ProviderKind.OPENAI: OpenAIAdapter,
    ProviderKind.GEMINI: GeminiAdapter,
    ProviderKind.DEEPSEEK: DeepSeekAdapter,
}


def create_adapter(
    kind: ProviderKind,
    *,
    base_url: Optional[str] = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> ProviderAdapter:
    return ADAPTER_CLASSES[kind](base_url=base_url, max_tokens=max_tokens)


def create_adapters(
    base_urls: Optional[Mapping[ProviderKind, Optional[str]]] = None,
    *,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> Dict[ProviderKind, ProviderAdapter]:
    """One adapter per provider family."""
    base_urls = base_urls or {}
    return {
        kind: create_adapter(kind, base_url=base_urls.get(kind), max_tokens=max_tokens)
        for kind in ProviderKind
    }
