"""Incremental decoding of chat-completion server-sent events."""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable
from typing import Any, Optional

from .errors import ChatError, ErrorKind
from .models import ChatCompletionResult

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"


class _StreamAccumulator:
    """Collects deltas and the last finish reason seen on the stream."""

    def __init__(self) -> None:
        self.parts: list[str] = []
        self.finish_reason: Optional[str] = None

    @property
    def text(self) -> str:
        return "".join(self.parts)

    def consume_line(self, line: str) -> bool:
        """Process one SSE line. Returns True once the terminal marker arrives."""
        trimmed = line.strip()
        if not trimmed.startswith("data:"):
            return False

        data = trimmed[5:].strip()
        if data == DONE_MARKER:
            return True

        try:
            chunk = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ChatError(
                ErrorKind.RESPONSE_FORMAT,
                "Unexpected API response: stream chunk could not be parsed",
            ) from exc

        choice = _first_choice(chunk)
        if choice is None:
            return False
        finish_reason = choice.get("finish_reason")
        if isinstance(finish_reason, str):
            self.finish_reason = finish_reason
        delta = choice.get("delta")
        if isinstance(delta, dict) and isinstance(delta.get("content"), str):
            self.parts.append(delta["content"])
        return False

    def result(self) -> ChatCompletionResult:
        return ChatCompletionResult(content=self.text.strip(), finish_reason=self.finish_reason)


def _first_choice(chunk: Any) -> Optional[dict]:
    if not isinstance(chunk, dict):
        return None
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    return choices[0]


async def read_event_stream(chunks: AsyncIterable[bytes]) -> ChatCompletionResult:
    """
    Consume a `text/event-stream` body and rebuild the completion.

    Lines are split on newlines; a partial trailing line is held back and
    prefixed onto the next chunk. The stream ends at `data: [DONE]`, or
    leniently at end of body when some text was received.

    Raises:
        ChatError: RESPONSE_FORMAT when a payload is not JSON or the stream
            ended without producing any text.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    accumulator = _StreamAccumulator()
    buffer = ""

    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        lines = buffer.split("\n")
        buffer = lines.pop()
        for line in lines:
            if accumulator.consume_line(line):
                return accumulator.result()

    buffer += decoder.decode(b"", final=True)
    if buffer and accumulator.consume_line(buffer):
        return accumulator.result()

    if accumulator.text.strip():
        logger.debug("stream ended without done marker")
        return accumulator.result()

    raise ChatError(ErrorKind.RESPONSE_FORMAT, "Unexpected API response: stream result was empty")
