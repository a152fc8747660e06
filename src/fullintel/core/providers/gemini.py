"""Google Gemini ``generateContent`` adapter.

API documentation: https://ai.google.dev/api/generate-content

Gemini differs structurally from the other providers: turns go in
``contents`` with a ``parts`` list, the system prompt goes in
``systemInstruction``, the assistant role is called ``model`` and the API
key travels as the ``key`` query parameter.
"""

from typing import Any, Dict, List

from fullintel.core.llm_provider import ChatRole, ConversationRequest, NoContentError
from fullintel.core.providers.base import ProviderAdapter, ProviderKind, first
from fullintel.core.providers.sse import SSEStreamParser

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def candidate_text(data: Dict[str, Any]) -> Any:
    """``candidates[0].content.parts[0].text`` or None."""
    candidate = first(data.get("candidates"))
    if not isinstance(candidate, dict):
        return None
    content = candidate.get("content")
    if not isinstance(content, dict):
        return None
    part = first(content.get("parts"))
    if not isinstance(part, dict):
        return None
    return part.get("text")


class GeminiStreamParser(SSEStreamParser):
    """Emits the first candidate's first part text of each chunk."""

    allow_bare_json = True

    def parse_event(self, event: Dict[str, Any]) -> List[str]:
        text = candidate_text(event)
        return [text] if isinstance(text, str) else []


class GeminiAdapter(ProviderAdapter):
    """Adapter for Gemini models."""

    kind = ProviderKind.GEMINI
    display_name = "Gemini"
    default_base_url = GEMINI_API_BASE_URL

    def endpoint(self, request: ConversationRequest, api_key: str, *, stream: bool = False) -> str:
        method = "streamGenerateContent" if stream else "generateContent"
        return f"{self.base_url}/{request.model}:{method}"

    def params(self, api_key: str, *, stream: bool = False) -> Dict[str, str]:
        params = {"key": api_key}
        if stream:
            params["alt"] = "sse"
        return params

    def build_headers(self, request: ConversationRequest, api_key: str) -> Dict[str, str]:
        return {"content-type": "application/json"}

    def build_body(self, request: ConversationRequest, *, stream: bool = False) -> Dict[str, Any]:
        contents = [
            {
                "role": message.role.to_provider_role(self.kind.value),
                "parts": [{"text": message.content}],
            }
            for message in request.messages
            if message.role is not ChatRole.SYSTEM
        ]
        body: Dict[str, Any] = {"contents": contents}
        if request.system:
            body["systemInstruction"] = {"parts": [{"text": request.system}]}
        return body

    def parse_response(self, request: ConversationRequest, data: Dict[str, Any]) -> str:
        text = candidate_text(data)
        if isinstance(text, str):
            return text
        raise NoContentError("No content in Gemini response", provider=self.kind.value)

    def stream_parser(self, request: ConversationRequest) -> SSEStreamParser:
        return GeminiStreamParser()
