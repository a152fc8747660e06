"""DeepSeek adapter.

DeepSeek speaks the OpenAI chat completions dialect. Reasoning models
(identifier containing ``reasoner``) additionally return a
``reasoning_content`` trace, which is surfaced ahead of the final answer:

    ## AI Reasoning Process

    <reasoning>

    ---

    ## Final Analysis

    <answer>
"""

from typing import Any, Dict, List

from fullintel.core.llm_provider import ConversationRequest, NoContentError
from fullintel.core.providers.base import ProviderKind
from fullintel.core.providers.openai import OpenAIAdapter, OpenAIStreamParser, choice_field
from fullintel.core.providers.sse import SSEStreamParser

DEEPSEEK_API_URL = "https://api.deepseek.com/chat/completions"

REASONING_HEADING = "## AI Reasoning Process\n\n"
FINAL_ANALYSIS_HEADING = "## Final Analysis\n\n"
SECTION_BREAK = "\n\n---\n\n"


def is_reasoning_model(model: str) -> bool:
    return "reasoner" in model


class DeepSeekReasoningStreamParser(SSEStreamParser):
    """Emits reasoning tokens, then answer tokens.

    The section break is emitted once, ahead of the first non-empty answer
    token, whether or not any reasoning was streamed.
    """

    def __init__(self) -> None:
        super().__init__()
        self.separator_sent = False

    def parse_event(self, event: Dict[str, Any]) -> List[str]:
        tokens: List[str] = []

        reasoning = choice_field(event, "delta", "reasoning_content")
        if isinstance(reasoning, str) and reasoning:
            tokens.append(reasoning)

        content = choice_field(event, "delta", "content")
        if isinstance(content, str) and content:
            if not self.separator_sent:
                self.separator_sent = True
                content = SECTION_BREAK + content
            tokens.append(content)

        return tokens


class DeepSeekAdapter(OpenAIAdapter):
    """Adapter for deepseek-chat and deepseek-reasoner."""

    kind = ProviderKind.DEEPSEEK
    display_name = "DeepSeek"
    default_base_url = DEEPSEEK_API_URL

    def parse_response(self, request: ConversationRequest, data: Dict[str, Any]) -> str:
        if not is_reasoning_model(request.model):
            return super().parse_response(request, data)

        reasoning = choice_field(data, "message", "reasoning_content") or ""
        content = choice_field(data, "message", "content") or ""

        result = ""
        if reasoning:
            result = f"{REASONING_HEADING}{reasoning}{SECTION_BREAK}{FINAL_ANALYSIS_HEADING}"
        result += content

        if not result:
            raise NoContentError("No content in DeepSeek R1 response", provider=self.kind.value)
        return result

    def stream_parser(self, request: ConversationRequest) -> SSEStreamParser:
        if is_reasoning_model(request.model):
            return DeepSeekReasoningStreamParser()
        return OpenAIStreamParser()
