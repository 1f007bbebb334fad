"""In-process stand-ins for an OpenAI-compatible chat-completions server."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Iterable, Optional

import httpx


async def _aiter(chunks: Iterable[bytes], *, hang_after: Optional[asyncio.Event] = None):
    for chunk in chunks:
        yield chunk
    if hang_after is not None:
        hang_after.set()
        await asyncio.sleep(30)


def sse_lines(*deltas: str, finish_reason: Optional[str] = "stop", done: bool = True) -> str:
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": delta}, "finish_reason": None}]})
        for delta in deltas
    ]
    if finish_reason is not None:
        lines.append("data: " + json.dumps({"choices": [{"delta": {}, "finish_reason": finish_reason}]}))
    if done:
        lines.append("data: [DONE]")
    return "\n".join(lines) + "\n"


def stream_response(
    chunks: Iterable[str | bytes],
    *,
    hang_after: Optional[asyncio.Event] = None,
) -> httpx.Response:
    encoded = [chunk.encode("utf-8") if isinstance(chunk, str) else chunk for chunk in chunks]
    return httpx.Response(
        200,
        headers={"Content-Type": "text/event-stream"},
        content=_aiter(encoded, hang_after=hang_after),
    )


def json_response(content: Any, finish_reason: Optional[str] = "stop") -> httpx.Response:
    return httpx.Response(
        200,
        json={"choices": [{"message": {"content": content}, "finish_reason": finish_reason}]},
    )


def error_response(status_code: int, message: Optional[str] = None) -> httpx.Response:
    if message is None:
        return httpx.Response(status_code, json={})
    return httpx.Response(status_code, json={"error": {"message": message}})


class FakeChatServer:
    """Replays canned responses and records every request body it receives."""

    def __init__(self, *responses: httpx.Response | Callable[[], httpx.Response]) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []
        self.bodies: list[dict[str, Any]] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(json.loads(request.content))
        if not self._responses:
            raise AssertionError("unexpected extra chat-completions request")
        response = self._responses.pop(0)
        return response() if callable(response) else response

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
