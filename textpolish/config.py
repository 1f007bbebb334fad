"""Configuration for TextPolish."""

import logging
import os
from typing import List

from dotenv import load_dotenv

from .constants import ChatDefaults, RequestLimits
from .models import ChatConfig

load_dotenv()

DEFAULTS = ChatDefaults()
REQUEST_LIMITS = RequestLimits()

# OpenAI-compatible endpoint; requests go to {API_ENDPOINT}/chat/completions
API_ENDPOINT: str = os.getenv("TEXTPOLISH_API_ENDPOINT", DEFAULTS.api_endpoint)

API_KEY: str = os.getenv("TEXTPOLISH_API_KEY", "")

MODEL: str = os.getenv("TEXTPOLISH_MODEL", DEFAULTS.model)

SYSTEM_PROMPT: str = os.getenv("TEXTPOLISH_SYSTEM_PROMPT") or DEFAULTS.system_prompt

# Target language for the translation step
TRANSLATE_LANGUAGE: str = os.getenv("TEXTPOLISH_TRANSLATE_LANGUAGE") or DEFAULTS.translate_language

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")

# Retry/continuation limits
RETRY_TIMES: int = REQUEST_LIMITS.retry_times
RETRY_BACKOFF_BASE: float = REQUEST_LIMITS.retry_backoff_base
MAX_CONTINUATION_ROUNDS: int = REQUEST_LIMITS.max_continuation_rounds
MAX_TOKENS: int = REQUEST_LIMITS.max_tokens


def cors_origins() -> List[str]:
    raw_origins = os.getenv("CORS_ORIGINS")
    if not raw_origins:
        return ["*"]
    return [origin.strip() for origin in raw_origins.split(",") if origin.strip()]


def load_chat_config() -> ChatConfig:
    """Build a ChatConfig from the current environment, falling back to defaults."""
    return ChatConfig(
        api_endpoint=os.getenv("TEXTPOLISH_API_ENDPOINT", API_ENDPOINT),
        api_key=os.getenv("TEXTPOLISH_API_KEY", API_KEY),
        model=os.getenv("TEXTPOLISH_MODEL") or MODEL,
        system_prompt=os.getenv("TEXTPOLISH_SYSTEM_PROMPT") or SYSTEM_PROMPT,
    )


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # httpx logs every request line at INFO; keep it out of the way.
    logging.getLogger("httpx").setLevel(logging.WARNING)
