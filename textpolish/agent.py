"""Refine and translate entry points composing the request layers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter
from typing import List, Optional, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULTS, MAX_TOKENS, REQUEST_LIMITS, TRANSLATE_LANGUAGE
from .completion import request_with_continuation
from .envelopes import (
    build_continuation_message,
    build_refine_messages,
    build_translation_continuation_message,
    build_translation_message,
)
from .errors import ChatError, ErrorKind
from .models import AgentOption, AgentResponse, ChatConfig, ChatMessage, ChatRequestOptions
from .parsing import parse_agent_response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamingFallbackStrategy:
    """
    Try a streaming continuation flow, then a non-streaming one.

    The second step only runs when the first failed because the stream could
    not be decoded. HTTP failures, network failures and cancellation are
    re-raised as they are.
    """

    primary: ChatRequestOptions = field(
        default_factory=lambda: ChatRequestOptions(
            stream=True,
            temperature=REQUEST_LIMITS.refine_temperature,
            max_tokens=MAX_TOKENS,
        )
    )
    fallback: ChatRequestOptions = field(
        default_factory=lambda: ChatRequestOptions(
            stream=False,
            temperature=REQUEST_LIMITS.refine_temperature,
            max_tokens=MAX_TOKENS,
        )
    )

    @staticmethod
    def should_fall_back(error: ChatError) -> bool:
        return error.kind is ErrorKind.RESPONSE_FORMAT

    async def run(
        self,
        config: ChatConfig,
        messages: Sequence[ChatMessage],
        continuation_message: ChatMessage,
        signal: Optional[asyncio.Event] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> str:
        try:
            return await request_with_continuation(
                config, messages, self.primary, continuation_message, signal, client=client
            )
        except ChatError as exc:
            if not self.should_fall_back(exc):
                raise
            logger.warning(
                "streaming response unusable, retrying without streaming",
                extra={"model": config.model, "error": exc.message},
            )

        return await request_with_continuation(
            config, messages, self.fallback, continuation_message, signal, client=client
        )


async def refine(
    config: ChatConfig,
    messages: Sequence[ChatMessage],
    signal: Optional[asyncio.Event] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    strategy: Optional[StreamingFallbackStrategy] = None,
) -> str:
    """
    Ask the model to refine the conversation's text.

    Args:
        config: Endpoint, key, model and system prompt
        messages: Conversation so far, oldest first
        signal: Optional cancellation event

    Returns:
        Raw completion text; pass it to parse_agent_response.
    """
    config.ensure_ready()
    start_time = perf_counter()
    request_messages = build_refine_messages(config.system_prompt, messages)
    content = await (strategy or StreamingFallbackStrategy()).run(
        config,
        request_messages,
        build_continuation_message(),
        signal,
        client=client,
    )
    logger.info(
        "refine_complete",
        extra={"elapsed_ms": int((perf_counter() - start_time) * 1000), "chars": len(content)},
    )
    return content


async def translate(
    config: ChatConfig,
    text: str,
    signal: Optional[asyncio.Event] = None,
    *,
    language: str = TRANSLATE_LANGUAGE,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Translate `text` into `language`; plain text comes back, no JSON contract."""
    config.ensure_ready()
    options = ChatRequestOptions(
        stream=False,
        temperature=REQUEST_LIMITS.translate_temperature,
        max_tokens=MAX_TOKENS,
    )
    return await request_with_continuation(
        config,
        [build_translation_message(text, language)],
        options,
        build_translation_continuation_message(),
        signal,
        client=client,
    )


class RefinementStage(str, Enum):
    INPUT = "input"
    REFINING = "refining"
    CONFIRMING = "confirming"
    TRANSLATING = "translating"
    RESULT = "result"


class RefinementOutcome(BaseModel):
    """What the UI should show after one refine action."""

    model_config = ConfigDict(frozen=True)

    stage: RefinementStage
    response: AgentResponse
    optimized_text: str = ""
    options: List[AgentOption] = Field(default_factory=list)
    no_change: bool = False
    no_change_reason: str = ""
    translated_text: Optional[str] = None


def first_user_text(messages: Sequence[ChatMessage]) -> str:
    return next((message.content for message in messages if message.role == "user"), "")


def is_no_change(response: AgentResponse, baseline: str) -> bool:
    """
    Whether the agent decided the text needs no edits.

    An optimized text equal to the baseline (after trimming) also counts.
    """
    if response.need_more_info or not baseline:
        return False
    return (
        response.no_change
        or bool(response.no_change_reason)
        or response.optimized_text.strip() == baseline.strip()
    )


async def run_refinement(
    config: ChatConfig,
    messages: Sequence[ChatMessage],
    baseline_text: Optional[str] = None,
    signal: Optional[asyncio.Event] = None,
    *,
    language: str = TRANSLATE_LANGUAGE,
    client: Optional[httpx.AsyncClient] = None,
) -> RefinementOutcome:
    """
    Refine, normalize, and translate straight away when nothing needs changing.

    Args:
        baseline_text: The current best text; defaults to the first user turn.
    """
    content = await refine(config, messages, signal, client=client)
    response = parse_agent_response(content)
    baseline = baseline_text or first_user_text(messages)
    optimized = response.optimized_text.strip()

    if is_no_change(response, baseline):
        source_text = optimized or baseline
        logger.info("no_change_detected", extra={"has_reason": bool(response.no_change_reason)})
        translated = await translate(config, source_text, signal, language=language, client=client)
        return RefinementOutcome(
            stage=RefinementStage.RESULT,
            response=response,
            optimized_text=source_text,
            options=[],
            no_change=True,
            no_change_reason=response.no_change_reason or DEFAULTS.no_change_reason,
            translated_text=translated,
        )

    return RefinementOutcome(
        stage=RefinementStage.REFINING if response.need_more_info else RefinementStage.CONFIRMING,
        response=response,
        optimized_text=response.optimized_text or baseline,
        options=list(response.options),
        no_change=False,
    )
