"""Shared constants and defaults for the TextPolish core."""

from dataclasses import dataclass
from typing import FrozenSet

DEFAULT_SYSTEM_PROMPT = """You are a professional writing assistant. Your job is to help the user polish and improve their text.

When the user provides a piece of text:
1. Analyse its content and intent
2. Offer 3-4 concise directions the user can choose from
3. If the user picks "Other", ask how exactly they want it adjusted

Reply in JSON using this shape:
{
  "analysis": "A short analysis of the user's text",
  "optimized_text": "A preview of the improved text (when there is enough information)",
  "options": [
    { "id": "1", "label": "More formal tone", "description": "Use more professional, formal wording" },
    { "id": "2", "label": "More concise", "description": "Tighten the text and remove redundancy" },
    { "id": "3", "label": "More persuasive", "description": "Strengthen the argument" },
    { "id": "other", "label": "Other (type your own)", "description": "Describe the adjustment you want" }
  ],
  "need_more_info": false
}

If the user's choice is already specific enough, return the improved text directly and set "need_more_info": false."""


@dataclass(frozen=True)
class ChatDefaults:
    """Immutable defaults for the chat-completions endpoint and prompts."""

    api_endpoint: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    translate_language: str = "English"
    no_change_reason: str = "The original text is already clear enough and needs no further changes."


@dataclass(frozen=True)
class RequestLimits:
    """Tunables for retries, continuation rounds, sampling and timeouts."""

    retry_times: int = 2
    retry_backoff_base: float = 0.3
    max_continuation_rounds: int = 3
    refine_temperature: float = 0.7
    translate_temperature: float = 0.3
    max_tokens: int = 2000
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    write_timeout: float = 10.0
    pool_timeout: float = 5.0
    max_keepalive_connections: int = 10
    max_connections: int = 20


# The only HTTP statuses eligible for an automatic retry.
RETRYABLE_STATUS: FrozenSet[int] = frozenset({408, 409, 429, 500, 502, 503, 504})
