"""HTTP transport for a single OpenAI-compatible chat-completions request."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import aclosing
from time import perf_counter
from typing import Any, Dict, Optional, Sequence, TypeVar

import httpx

from .config import REQUEST_LIMITS
from .errors import ChatCancelledError, ChatError, ErrorKind
from .models import ChatCompletionResult, ChatConfig, ChatMessage, ChatRequestOptions
from .streaming import read_event_stream

T = TypeVar("T")

logger = logging.getLogger(__name__)

ERROR_FALLBACK_PREFIX = "API request failed"

_async_client: httpx.AsyncClient | None = None
_client_lock = asyncio.Lock()


async def get_async_client() -> httpx.AsyncClient:
    """Return a shared AsyncClient with connection pooling."""
    global _async_client
    if _async_client and not _async_client.is_closed:
        return _async_client

    async with _client_lock:
        if _async_client and not _async_client.is_closed:
            return _async_client
        limits = httpx.Limits(
            max_keepalive_connections=REQUEST_LIMITS.max_keepalive_connections,
            max_connections=REQUEST_LIMITS.max_connections,
        )
        timeout = httpx.Timeout(
            connect=REQUEST_LIMITS.connect_timeout,
            read=REQUEST_LIMITS.read_timeout,
            write=REQUEST_LIMITS.write_timeout,
            pool=REQUEST_LIMITS.pool_timeout,
        )
        _async_client = httpx.AsyncClient(limits=limits, timeout=timeout)
        return _async_client


async def close_async_client() -> None:
    """Close the shared AsyncClient (used on application shutdown)."""
    global _async_client
    if _async_client and not _async_client.is_closed:
        await _async_client.aclose()
    _async_client = None


def build_request_body(
    config: ChatConfig,
    messages: Sequence[ChatMessage],
    options: ChatRequestOptions,
) -> Dict[str, Any]:
    return {
        "model": config.model,
        "messages": [message.model_dump() for message in messages],
        "temperature": options.temperature,
        "max_tokens": options.max_tokens,
        "stream": options.stream,
    }


async def _until_cancelled(awaitable: Awaitable[T], signal: Optional[asyncio.Event]) -> T:
    """Await `awaitable`, abandoning it with ChatCancelledError if `signal` fires first."""
    if signal is None:
        return await awaitable
    if signal.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise ChatCancelledError()

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
            await asyncio.wait({task})

    if task.done() and not task.cancelled():
        return task.result()
    raise ChatCancelledError()


async def _iter_chunks(
    response: httpx.Response,
    signal: Optional[asyncio.Event],
) -> AsyncIterator[bytes]:
    iterator = response.aiter_bytes().__aiter__()
    while True:
        try:
            chunk = await _until_cancelled(iterator.__anext__(), signal)
        except StopAsyncIteration:
            return
        yield chunk


def _error_message(body: bytes, status_code: int) -> str:
    """Best-effort `error.message` from a failure payload."""
    try:
        payload = json.loads(body.decode("utf-8", errors="replace"))
    except ValueError:
        payload = {}
    error = payload.get("error") if isinstance(payload, dict) else None
    message = error.get("message") if isinstance(error, dict) else None
    if isinstance(message, str) and message:
        return message
    return f"{ERROR_FALLBACK_PREFIX}: {status_code}"


def _parse_completion_body(body: bytes) -> ChatCompletionResult:
    try:
        data = json.loads(body.decode("utf-8"))
    except ValueError as exc:
        raise ChatError(
            ErrorKind.RESPONSE_FORMAT,
            "Unexpected API response: body is not valid JSON",
        ) from exc

    choices = data.get("choices") if isinstance(data, dict) else None
    choice = choices[0] if isinstance(choices, list) and choices and isinstance(choices[0], dict) else {}
    message = choice.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    finish_reason = choice.get("finish_reason")
    return ChatCompletionResult(
        content=content if isinstance(content, str) else "",
        finish_reason=finish_reason if isinstance(finish_reason, str) else None,
    )


async def request_chat_completion(
    config: ChatConfig,
    messages: Sequence[ChatMessage],
    options: ChatRequestOptions,
    signal: Optional[asyncio.Event] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> ChatCompletionResult:
    """
    POST one chat-completions request and return its content.

    Args:
        config: Endpoint, key and model to use
        messages: Conversation turns, sent in order
        options: stream/temperature/max_tokens for this request
        signal: Optional event; once set the request is abandoned
        client: Optional AsyncClient, defaults to the shared pooled client

    Raises:
        ChatCancelledError: The signal fired before or during the request.
        ChatError: HTTP, NETWORK or RESPONSE_FORMAT failures.
    """
    config.ensure_ready()
    if signal is not None and signal.is_set():
        raise ChatCancelledError()

    http = client or await get_async_client()
    request = http.build_request(
        "POST",
        config.completions_url,
        headers={
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        },
        json=build_request_body(config, messages, options),
    )

    start_time = perf_counter()
    try:
        response = await _until_cancelled(http.send(request, stream=True), signal)
        try:
            if response.is_error:
                body = await _until_cancelled(response.aread(), signal)
                message = _error_message(body, response.status_code)
                logger.warning(
                    "chat completion rejected",
                    extra={"status": response.status_code, "model": config.model},
                )
                raise ChatError(ErrorKind.HTTP, message, http_status=response.status_code)

            if options.stream:
                async with aclosing(_iter_chunks(response, signal)) as chunks:
                    return await read_event_stream(chunks)

            body = await _until_cancelled(response.aread(), signal)
            return _parse_completion_body(body)
        finally:
            await response.aclose()
    except httpx.RequestError as exc:
        raise ChatError(ErrorKind.NETWORK, f"Network error: {exc}") from exc
    finally:
        elapsed_ms = int((perf_counter() - start_time) * 1000)
        logger.info(
            "chat completion request finished",
            extra={"model": config.model, "stream": options.stream, "elapsed_ms": elapsed_ms},
        )
