"""
Provider-neutral conversation types and the LLM error taxonomy.

Every provider adapter consumes a ``ConversationRequest`` and every failure
raised by the client layer derives from ``LLMError``.

Example:
    from fullintel.core.llm_provider import CacheTTL, ChatMessage, ConversationRequest

    request = (
        ConversationRequest(model="claude-sonnet-4-5-20250929")
        .with_system("You are a research analyst.")
        .with_message(ChatMessage.user("Summarize Acme Corp."))
        .with_caching(CacheTTL.ONE_HOUR)
    )
    request.validate()
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


# =============================================================================
# Enums
# =============================================================================


class ChatRole(str, Enum):
    """Role of a message in a conversation.

    SYSTEM: System instructions/context
    USER: User input
    ASSISTANT: Model response
    """

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    def to_provider_role(self, provider: str) -> str:
        """Wire-format role name for ``provider``.

        Gemini calls the assistant role "model"; every other provider uses
        the neutral names unchanged.
        """
        if self is ChatRole.ASSISTANT and provider.lower() in ("gemini", "google"):
            return "model"
        return self.value


class CacheTTL(str, Enum):
    """Anthropic prompt cache lifetime."""

    FIVE_MINUTES = "5m"
    ONE_HOUR = "1h"

    @property
    def anthropic_beta_header(self) -> str:
        if self is CacheTTL.ONE_HOUR:
            return "extended-cache-ttl-2025-04-11"
        return "prompt-caching-2024-07-31"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ChatMessage:
    """A single message in a conversation.

    Attributes:
        role: The role of the message sender
        content: The message content
    """

    role: ChatRole
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role=ChatRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=ChatRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role=ChatRole.ASSISTANT, content=content)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the neutral ``{"role", "content"}`` dict."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class ConversationRequest:
    """Provider-agnostic request for one model reply.

    Message order is conversation order and is preserved by every adapter.
    The builder helpers return new instances and leave the receiver unchanged.

    Attributes:
        model: Model identifier; its prefix selects the provider
        system: Optional system prompt
        messages: Ordered conversation turns
        enable_caching: Request prompt caching (honoured by Anthropic only)
        cache_ttl: Cache lifetime selector (Anthropic only)
    """

    model: str
    system: Optional[str] = None
    messages: List[ChatMessage] = field(default_factory=list)
    enable_caching: bool = False
    cache_ttl: Optional[CacheTTL] = None

    @classmethod
    def simple(cls, model: str, system: str, user: str) -> "ConversationRequest":
        """Single-turn request: one system prompt plus one user message."""
        return cls(model=model, system=system, messages=[ChatMessage.user(user)])

    def with_system(self, system: str) -> "ConversationRequest":
        return replace(self, system=system)

    def with_message(self, message: ChatMessage) -> "ConversationRequest":
        return replace(self, messages=[*self.messages, message])

    def with_messages(self, messages: Iterable[ChatMessage]) -> "ConversationRequest":
        return replace(self, messages=[*self.messages, *messages])

    def with_caching(self, ttl: CacheTTL = CacheTTL.FIVE_MINUTES) -> "ConversationRequest":
        return replace(self, enable_caching=True, cache_ttl=ttl)

    def without_caching(self) -> "ConversationRequest":
        return replace(self, enable_caching=False, cache_ttl=None)

    @property
    def effective_cache_ttl(self) -> CacheTTL:
        return self.cache_ttl or CacheTTL.FIVE_MINUTES

    def validate(self) -> None:
        """Reject a request with neither system text nor messages.

        Raises:
            EmptyConversationError: If both are empty
        """
        if not self.system and not self.messages:
            raise EmptyConversationError()


# =============================================================================
# Exceptions
# =============================================================================


class LLMError(Exception):
    """Base exception for LLM operations.

    Attributes:
        message: Human-readable error description
        provider: Name of the provider involved, if known
        retryable: Whether the operation can be retried
        status_code: HTTP status code if applicable
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.retryable = retryable
        self.status_code = status_code


class MissingApiKeyError(LLMError):
    """No API key was supplied for the provider."""

    def __init__(self, provider: Optional[str] = None):
        super().__init__(
            f"API key not configured for provider: {provider or 'unknown'}",
            provider=provider,
        )


class RateLimitExceededError(LLMError):
    """Local rate limiter denied the request twice in a row.

    Attributes:
        retry_after: Seconds until the limiter will have a token
    """

    def __init__(self, provider: str, *, retry_after: Optional[float] = None):
        super().__init__(
            f"Rate limit exceeded for provider: {provider}",
            provider=provider,
            retryable=True,
        )
        self.retry_after = retry_after


class UnsupportedModelError(LLMError):
    """Model identifier does not match any known provider prefix."""

    def __init__(self, model: str):
        super().__init__(f"Unsupported model: {model}")
        self.model = model


class CircuitBreakerOpenError(LLMError):
    """Provider circuit is open; no network call was made.

    Attributes:
        retry_after: Seconds until the circuit admits a trial call
    """

    def __init__(self, provider: str, *, retry_after: Optional[float] = None):
        super().__init__(
            f"Circuit breaker open for provider: {provider}",
            provider=provider,
            retryable=True,
        )
        self.retry_after = retry_after


class EmptyConversationError(LLMError):
    """Request carries neither system text nor messages."""

    def __init__(self) -> None:
        super().__init__("Conversation request must have a system prompt or messages")


class ProviderError(LLMError):
    """Upstream API answered with an error or an unusable body.

    Attributes:
        body: Raw response body, verbatim
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        retryable = status_code is not None and (status_code == 429 or status_code >= 500)
        super().__init__(
            message, provider=provider, retryable=retryable, status_code=status_code
        )
        self.body = body


class AuthenticationError(ProviderError):
    """Upstream API rejected the credentials (HTTP 401)."""

    def __init__(
        self,
        message: str = "Authentication failed (401)",
        *,
        provider: Optional[str] = None,
        body: str = "",
    ):
        super().__init__(message, provider=provider, status_code=401, body=body)


class NoContentError(ProviderError):
    """Successful HTTP response without extractable text."""

    def __init__(self, message: str, *, provider: Optional[str] = None, body: str = ""):
        super().__init__(message, provider=provider, body=body)


class NetworkError(LLMError):
    """Transport-level failure talking to the provider.

    Attributes:
        cause: The underlying transport exception
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(f"Network error: {message}", provider=provider, retryable=True)
        self.cause = cause


class StreamingError(LLMError):
    """A streamed reply could not be established or consumed."""

    def __init__(self, message: str, *, provider: Optional[str] = None):
        super().__init__(f"Streaming error: {message}", provider=provider)
