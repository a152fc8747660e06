"""Core resilience, provider and client layers for fullintel."""

from fullintel.core.llm_client import ResilientClient, TokenStream
from fullintel.core.llm_provider import (
    CacheTTL,
    ChatMessage,
    ChatRole,
    ConversationRequest,
    LLMError,
)
from fullintel.core.rate_limit import RateLimitConfig, RateLimiter
from fullintel.core.resilience import CircuitBreaker, CircuitBreakerError, CircuitState

__all__ = [
    "ResilientClient",
    "TokenStream",
    "CacheTTL",
    "ChatMessage",
    "ChatRole",
    "ConversationRequest",
    "LLMError",
    "RateLimitConfig",
    "RateLimiter",
    "CircuitBreaker",
    "CircuitBreakerError",
    "CircuitState",
]
