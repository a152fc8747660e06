"""OpenAI-compatible chat completions adapter.

API documentation: https://platform.openai.com/docs/api-reference/chat

The system prompt becomes the first message (role ``system``) followed by
the conversation in order. Prompt caching is automatic on this API, so the
caching flag has no wire effect.
"""

from typing import Any, Dict, List

from fullintel.core.llm_provider import ConversationRequest, NoContentError
from fullintel.core.providers.base import ProviderAdapter, ProviderKind, first
from fullintel.core.providers.sse import SSEStreamParser

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"


def choice_field(event: Dict[str, Any], container: str, key: str) -> Any:
    """``event["choices"][0][container][key]`` or None."""
    choice = first(event.get("choices"))
    if not isinstance(choice, dict):
        return None
    inner = choice.get(container)
    if not isinstance(inner, dict):
        return None
    return inner.get(key)


class OpenAIStreamParser(SSEStreamParser):
    """Emits ``choices[0].delta.content``."""

    def parse_event(self, event: Dict[str, Any]) -> List[str]:
        content = choice_field(event, "delta", "content")
        return [content] if isinstance(content, str) else []


class OpenAIAdapter(ProviderAdapter):
    """Adapter for GPT and o-series models."""

    kind = ProviderKind.OPENAI
    display_name = "OpenAI"
    default_base_url = OPENAI_API_URL

    def build_headers(self, request: ConversationRequest, api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "content-type": "application/json",
        }

    def build_messages(self, request: ConversationRequest) -> List[Dict[str, str]]:
        messages = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        for message in request.messages:
            messages.append(
                {
                    "role": message.role.to_provider_role(self.kind.value),
                    "content": message.content,
                }
            )
        return messages

    def build_body(self, request: ConversationRequest, *, stream: bool = False) -> Dict[str, Any]:
        return {
            "model": request.model,
            "messages": self.build_messages(request),
            "stream": stream,
        }

    def parse_response(self, request: ConversationRequest, data: Dict[str, Any]) -> str:
        content = choice_field(data, "message", "content")
        if isinstance(content, str):
            return content
        raise NoContentError(
            f"No content in {self.display_name} response", provider=self.kind.value
        )

    def stream_parser(self, request: ConversationRequest) -> SSEStreamParser:
        return OpenAIStreamParser()
