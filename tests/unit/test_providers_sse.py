"""
Tests for streamed reply parsing.

Covers line reassembly across chunk boundaries, the [DONE] sentinel,
provider-specific event shapes and the DeepSeek reasoning separator.
"""

import json

import pytest

from fullintel.core.providers.anthropic import AnthropicStreamParser
from fullintel.core.providers.deepseek import DeepSeekReasoningStreamParser
from fullintel.core.providers.gemini import GeminiStreamParser
from fullintel.core.providers.openai import OpenAIStreamParser
from fullintel.core.providers.sse import LineDecoder, SSEStreamParser, extract_payload


def sse(event) -> bytes:
    return f"data: {json.dumps(event)}\n\n".encode("utf-8")


def openai_delta(**delta) -> dict:
    return {"choices": [{"delta": delta}]}


def feed_all(parser, chunks) -> list:
    tokens = []
    for chunk in chunks:
        tokens.extend(parser.feed(chunk))
    tokens.extend(parser.flush())
    return tokens


class TestLineDecoder:
    """Tests for LineDecoder."""

    def test_line_split_across_chunks(self):
        decoder = LineDecoder()
        assert decoder.feed(b"data: {\"a\"") == []
        assert decoder.feed(b": 1}\nnext") == ['data: {"a": 1}']
        assert decoder.flush() == ["next"]

    def test_multibyte_character_split(self):
        decoder = LineDecoder()
        encoded = "café\n".encode("utf-8")
        lines = decoder.feed(encoded[:4]) + decoder.feed(encoded[4:])
        assert lines == ["café"]

    def test_crlf(self):
        assert LineDecoder().feed(b"data: x\r\n") == ["data: x"]


class TestExtractPayload:
    """Tests for extract_payload."""

    def test_data_prefix(self):
        assert extract_payload('data: {"x": 1}') == '{"x": 1}'

    def test_non_data_lines_skipped(self):
        assert extract_payload("event: message_start") is None
        assert extract_payload(": keep-alive") is None
        assert extract_payload("") is None

    def test_bare_json_mode(self):
        assert extract_payload("[", allow_bare_json=True) is None
        assert extract_payload("]", allow_bare_json=True) is None
        assert extract_payload(",", allow_bare_json=True) is None
        assert extract_payload('[{"a": 1}', allow_bare_json=True) == '{"a": 1}'
        assert extract_payload(',{"a": 1}]', allow_bare_json=True) == '{"a": 1}'


class TestAnthropicStreamParser:
    """Tests for AnthropicStreamParser."""

    def test_text_deltas_only(self):
        chunks = [
            sse({"type": "message_start", "message": {}}),
            b"event: content_block_delta\n",
            sse({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hel"}}),
            sse({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "lo"}}),
            sse({"type": "message_stop"}),
        ]
        assert feed_all(AnthropicStreamParser(), chunks) == ["Hel", "lo"]

    def test_event_split_mid_json(self):
        raw = sse({"type": "content_block_delta", "delta": {"text": "whole"}})
        chunks = [raw[:10], raw[10:25], raw[25:]]
        assert feed_all(AnthropicStreamParser(), chunks) == ["whole"]

    def test_malformed_json_skipped(self):
        chunks = [b"data: {not json\n\n", sse({"type": "content_block_delta", "delta": {"text": "ok"}})]
        assert feed_all(AnthropicStreamParser(), chunks) == ["ok"]


class TestOpenAIStreamParser:
    """Tests for OpenAIStreamParser."""

    def test_content_deltas_until_done(self):
        parser = OpenAIStreamParser()
        chunks = [
            sse(openai_delta(role="assistant")),
            sse(openai_delta(content="A")),
            sse(openai_delta(content="B")),
            b"data: [DONE]\n\n",
            sse(openai_delta(content="after done")),
        ]

        assert feed_all(parser, chunks) == ["A", "B"]
        assert parser.finished

    def test_empty_content_not_emitted(self):
        assert feed_all(OpenAIStreamParser(), [sse(openai_delta(content=""))]) == []

    def test_trailing_line_without_newline(self):
        payload = f"data: {json.dumps(openai_delta(content='tail'))}".encode()
        assert feed_all(OpenAIStreamParser(), [payload]) == ["tail"]


class TestDeepSeekReasoningStreamParser:
    """Tests for the reasoning separator."""

    def test_separator_before_first_answer_token(self):
        chunks = [
            sse(openai_delta(reasoning_content="think ")),
            sse(openai_delta(reasoning_content="more")),
            sse(openai_delta(content="Answer")),
            sse(openai_delta(content=" done")),
        ]

        tokens = feed_all(DeepSeekReasoningStreamParser(), chunks)

        assert tokens == ["think ", "more", "\n\n---\n\nAnswer", " done"]

    def test_separator_without_reasoning(self):
        chunks = [sse(openai_delta(content="A")), sse(openai_delta(content="B"))]
        assert feed_all(DeepSeekReasoningStreamParser(), chunks) == ["\n\n---\n\nA", "B"]

    def test_empty_content_does_not_consume_separator(self):
        chunks = [
            sse(openai_delta(reasoning_content="r")),
            sse(openai_delta(content="")),
            sse(openai_delta(content="C")),
        ]
        assert feed_all(DeepSeekReasoningStreamParser(), chunks) == ["r", "\n\n---\n\nC"]


class TestGeminiStreamParser:
    """Tests for GeminiStreamParser."""

    def candidate(self, text):
        return {"candidates": [{"content": {"parts": [{"text": text}]}}]}

    def test_sse_frames(self):
        chunks = [sse(self.candidate("Hi")), sse(self.candidate(" there"))]
        assert feed_all(GeminiStreamParser(), chunks) == ["Hi", " there"]

    def test_json_array_body(self):
        body = "[" + json.dumps(self.candidate("one")) + "\n,\n" + json.dumps(
            self.candidate("two")
        ) + "\n]\n"
        assert feed_all(GeminiStreamParser(), [body.encode()]) == ["one", "two"]

    def test_chunks_without_text_skipped(self):
        chunks = [sse({"candidates": [{"finishReason": "STOP"}]}), sse(self.candidate("x"))]
        assert feed_all(GeminiStreamParser(), chunks) == ["x"]


class TestSSEStreamParserBase:
    """Tests for the abstract parser base."""

    def test_base_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            SSEStreamParser()

    def test_subclass_supplies_parse_event(self):
        class EchoParser(SSEStreamParser):
            def parse_event(self, event):
                return [event.get("text", "")]

        parser = EchoParser()
        assert parser.feed(b'data: {"text": "hi"}\n') == ["hi"]
