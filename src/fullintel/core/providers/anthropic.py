"""Anthropic Messages API adapter.

API documentation: https://docs.anthropic.com/en/api/messages

The system prompt travels in the top-level ``system`` field and the message
list carries only user and assistant turns. With caching enabled, the system
prompt and the most recent user message are sent as content blocks marked
``cache_control: ephemeral`` and the cache TTL picks the ``anthropic-beta``
feature header.
"""

from typing import Any, Dict, List, Optional

from fullintel.core.llm_provider import ChatRole, ConversationRequest, NoContentError
from fullintel.core.providers.base import ProviderAdapter, ProviderKind, first
from fullintel.core.providers.sse import SSEStreamParser

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


def _cached_block(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text, "cache_control": {"type": "ephemeral"}}


class AnthropicStreamParser(SSEStreamParser):
    """Emits ``delta.text`` of ``content_block_delta`` events."""

    def parse_event(self, event: Dict[str, Any]) -> List[str]:
        if event.get("type") != "content_block_delta":
            return []
        delta = event.get("delta")
        if isinstance(delta, dict) and isinstance(delta.get("text"), str):
            return [delta["text"]]
        return []


class AnthropicAdapter(ProviderAdapter):
    """Adapter for Claude models."""

    kind = ProviderKind.ANTHROPIC
    display_name = "Anthropic"
    default_base_url = ANTHROPIC_API_URL

    def build_headers(self, request: ConversationRequest, api_key: str) -> Dict[str, str]:
        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        if request.enable_caching:
            headers["anthropic-beta"] = request.effective_cache_ttl.anthropic_beta_header
        return headers

    def build_body(self, request: ConversationRequest, *, stream: bool = False) -> Dict[str, Any]:
        turns = [m for m in request.messages if m.role is not ChatRole.SYSTEM]

        cached_index: Optional[int] = None
        if request.enable_caching:
            for index in range(len(turns) - 1, -1, -1):
                if turns[index].role is ChatRole.USER:
                    cached_index = index
                    break

        messages = []
        for index, message in enumerate(turns):
            content: Any = message.content
            if index == cached_index:
                content = [_cached_block(message.content)]
            messages.append(
                {"role": message.role.to_provider_role(self.kind.value), "content": content}
            )

        body: Dict[str, Any] = {
            "model": request.model,
            "max_tokens": self.max_tokens,
            "messages": messages,
        }
        if request.system:
            body["system"] = (
                [_cached_block(request.system)] if request.enable_caching else request.system
            )
        if stream:
            body["stream"] = True
        return body

    def parse_response(self, request: ConversationRequest, data: Dict[str, Any]) -> str:
        block = first(data.get("content"))
        if isinstance(block, dict) and isinstance(block.get("text"), str):
            return block["text"]
        raise NoContentError("No content in Anthropic response", provider=self.kind.value)

    def stream_parser(self, request: ConversationRequest) -> SSEStreamParser:
        return AnthropicStreamParser()
