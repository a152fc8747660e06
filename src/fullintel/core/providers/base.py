"""Base classes and provider detection for LLM provider adapters.

An adapter is a pure translation layer: it turns a ``ConversationRequest``
into one upstream's URL, headers and JSON body, and turns that upstream's
reply (whole or streamed) back into text. Adapters never perform I/O;
``ResilientClient`` owns the HTTP client and the resilience gates.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from fullintel.core.llm_provider import (
    AuthenticationError,
    ConversationRequest,
    ProviderError,
    UnsupportedModelError,
)
from fullintel.core.providers.sse import SSEStreamParser


DEFAULT_MAX_TOKENS = 4096


class ProviderKind(str, Enum):
    """Closed set of upstream provider families."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"


# Ordered prefix table; first match wins.
MODEL_PREFIXES: Tuple[Tuple[str, ProviderKind], ...] = (
    ("claude", ProviderKind.ANTHROPIC),
    ("gemini", ProviderKind.GEMINI),
    ("deepseek", ProviderKind.DEEPSEEK),
    ("gpt", ProviderKind.OPENAI),
    ("o1", ProviderKind.OPENAI),
    ("o3", ProviderKind.OPENAI),
)


def detect_provider(model: str) -> ProviderKind:
    """Map a model identifier to its provider family by prefix.

    Args:
        model: Model identifier, e.g. ``"claude-sonnet-4-5-20250929"``

    Returns:
        The matching ProviderKind

    Raises:
        UnsupportedModelError: If no prefix matches
    """
    for prefix, kind in MODEL_PREFIXES:
        if model.startswith(prefix):
            return kind
    raise UnsupportedModelError(model)


class ProviderAdapter(ABC):
    """Wire-format translation for one provider family.

    Attributes:
        kind: Provider family handled by the adapter
        display_name: Human-facing provider name used in error messages
        default_base_url: Endpoint used when no override is configured
    """

    kind: ProviderKind
    display_name: str = "Provider"
    default_base_url: str = ""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.max_tokens = max_tokens

    # ------------------------------------------------------------------
    # Request construction
    # ------------------------------------------------------------------

    def endpoint(self, request: ConversationRequest, api_key: str, *, stream: bool = False) -> str:
        """URL to POST the request to."""
        return self.base_url

    def params(self, api_key: str, *, stream: bool = False) -> Dict[str, str]:
        """Query parameters to send with the request."""
        return {}

    @abstractmethod
    def build_headers(self, request: ConversationRequest, api_key: str) -> Dict[str, str]:
        """HTTP headers, including authentication."""

    @abstractmethod
    def build_body(self, request: ConversationRequest, *, stream: bool = False) -> Dict[str, Any]:
        """JSON request body."""

    # ------------------------------------------------------------------
    # Response handling
    # ------------------------------------------------------------------

    @abstractmethod
    def parse_response(self, request: ConversationRequest, data: Dict[str, Any]) -> str:
        """Extract reply text from a whole (non-streamed) JSON response.

        Raises:
            NoContentError: If the response holds no text
        """

    @abstractmethod
    def stream_parser(self, request: ConversationRequest) -> SSEStreamParser:
        """Fresh parser for one streamed reply."""

    def error_for_status(self, status_code: int, body: str) -> ProviderError:
        """Build the error for a non-2xx upstream response.

        The body is kept verbatim for diagnosis.
        """
        if status_code == 401:
            return AuthenticationError(
                f"{self.display_name} Authentication Failed (401). Error: {body}",
                provider=self.kind.value,
                body=body,
            )
        return ProviderError(
            f"{self.display_name} API Error ({status_code}): {body}",
            provider=self.kind.value,
            status_code=status_code,
            body=body,
        )


def first(items: Any) -> Any:
    """First element of a JSON list, or None."""
    if isinstance(items, list) and items:
        return items[0]
    return None
