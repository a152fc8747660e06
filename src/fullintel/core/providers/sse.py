"""Incremental decoding of streamed provider replies.

Upstream bodies arrive as arbitrary byte chunks. ``LineDecoder`` turns them
into complete text lines (a multi-byte character or a line split across two
chunks is carried over to the next one), and ``SSEStreamParser`` turns lines
into text tokens using a provider-specific ``parse_event`` hook.

Lines that are not ``data:`` frames, and payloads that are not the JSON
shape a provider expects, are skipped: partial and keep-alive lines are a
normal part of these streams.
"""

import codecs
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class LineDecoder:
    """Split a byte stream into text lines across chunk boundaries."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> List[str]:
        text = self._pending + self._decoder.decode(chunk)
        lines = text.split("\n")
        self._pending = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> List[str]:
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [text.rstrip("\r")] if text else []


def extract_payload(line: str, *, allow_bare_json: bool = False) -> Optional[str]:
    """Return the payload of one stream line, or None to skip it.

    With ``allow_bare_json`` (Gemini), lines holding a bare JSON object and
    JSON-array filler (``[``, ``]``, ``,``) are tolerated as well.
    """
    line = line.strip()
    if not line:
        return None

    if line.startswith("data:"):
        payload = line[len("data:"):].strip()
    elif allow_bare_json:
        payload = line
    else:
        return None

    if allow_bare_json and payload != DONE_SENTINEL:
        payload = payload.lstrip("[,").rstrip("],").strip()
        if not payload.startswith("{"):
            return None
    return payload or None


class SSEStreamParser(ABC):
    """Stateful token extractor for one streamed reply.

    Subclasses implement ``parse_event`` for a single decoded JSON event.
    After the ``[DONE]`` sentinel ``finished`` is True and further input is
    ignored.
    """

    allow_bare_json = False

    def __init__(self) -> None:
        self._lines = LineDecoder()
        self.finished = False

    def feed(self, chunk: bytes) -> List[str]:
        """Consume one body chunk and return the tokens it completed."""
        if self.finished:
            return []
        return self._consume(self._lines.feed(chunk))

    def flush(self) -> List[str]:
        """Consume whatever is left once the body has ended."""
        if self.finished:
            return []
        return self._consume(self._lines.flush())

    def _consume(self, lines: List[str]) -> List[str]:
        tokens: List[str] = []
        for line in lines:
            payload = extract_payload(line, allow_bare_json=self.allow_bare_json)
            if payload is None:
                continue
            if payload == DONE_SENTINEL:
                self.finished = True
                break
            try:
                event = json.loads(payload)
            except ValueError:
                logger.debug("Skipping unparseable stream line: %.80s", payload)
                continue
            if not isinstance(event, dict):
                continue
            tokens.extend(token for token in self.parse_event(event) if token)
        return tokens

    @abstractmethod
    def parse_event(self, event: Dict[str, Any]) -> List[str]:
        """Tokens carried by one decoded event."""
