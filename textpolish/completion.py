"""Retry and continuation around a single chat-completion request."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

import httpx

from .config import MAX_CONTINUATION_ROUNDS, RETRY_BACKOFF_BASE, RETRY_TIMES
from .models import ChatCompletionResult, ChatConfig, ChatMessage, ChatRequestOptions
from .transport import request_chat_completion
from .utils import retry_with_backoff

logger = logging.getLogger(__name__)


async def request_with_retry(
    config: ChatConfig,
    messages: Sequence[ChatMessage],
    options: ChatRequestOptions,
    signal: Optional[asyncio.Event] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> ChatCompletionResult:
    """Run one request, retrying transient HTTP statuses with linear backoff."""
    return await retry_with_backoff(
        lambda: request_chat_completion(config, messages, options, signal, client=client),
        retries=RETRY_TIMES,
        base_delay=RETRY_BACKOFF_BASE,
        operation_name=f"chat_completion:{config.model}",
    )


async def request_with_continuation(
    config: ChatConfig,
    messages: Sequence[ChatMessage],
    options: ChatRequestOptions,
    continuation_message: ChatMessage,
    signal: Optional[asyncio.Event] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Keep requesting until the model stops for a reason other than `length`.

    Each truncated round is echoed back as an assistant turn followed by
    `continuation_message`. After MAX_CONTINUATION_ROUNDS extra rounds the
    text gathered so far is returned even if it is still truncated.

    Returns:
        The concatenated content of every round, trimmed.
    """
    request_messages: List[ChatMessage] = list(messages)
    output: List[str] = []

    for round_index in range(MAX_CONTINUATION_ROUNDS + 1):
        result = await request_with_retry(config, request_messages, options, signal, client=client)
        output.append(result.content)
        if not result.truncated:
            return "".join(output).strip()

        if round_index < MAX_CONTINUATION_ROUNDS:
            logger.info(
                "output truncated, requesting continuation",
                extra={"round": round_index + 1, "model": config.model},
            )
        request_messages = [
            *request_messages,
            ChatMessage.assistant(result.content),
            continuation_message,
        ]

    logger.warning(
        "continuation rounds exhausted, returning partial output",
        extra={"rounds": MAX_CONTINUATION_ROUNDS, "model": config.model},
    )
    return "".join(output).strip()
