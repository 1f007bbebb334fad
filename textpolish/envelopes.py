"""Structured JSON envelopes separating instructions from user text."""

from __future__ import annotations

import json
from typing import Any, Dict, Sequence

from .models import AgentOption, ChatMessage

OPTION_PROMPT_TEMPLATE = "Please optimize the text with this direction: {label}\n\nOriginal: {text}"

NO_CHANGE_RULE = (
    "If the content needs no changes, explain why in no_change_reason, keep "
    "optimized_text identical to the original text and set need_more_info to false."
)

CONTINUE_INSTRUCTION = (
    "Continue the previous output and return only the part not yet written. "
    "Do not repeat anything already output."
)

TRANSLATE_CONTINUE_INSTRUCTION = (
    "Continue the previous translation and return only the unfinished part. Do not repeat."
)


def _dump(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


def build_system_prompt_envelope(system_prompt: str) -> str:
    return _dump(
        {
            "prompt_type": "text_polish_core_instructions",
            "core_guidelines": system_prompt,
            "output_contract": {
                "format": "json",
                "required_fields": ["analysis", "optimized_text", "options", "need_more_info"],
                "optional_fields": ["no_change_reason"],
            },
            "no_change_rule": NO_CHANGE_RULE,
        }
    )


def build_user_message_envelope(content: str) -> str:
    return _dump({"task": "optimize_text", "text_to_optimize": content})


def build_continuation_envelope() -> str:
    return _dump({"task": "continue_output", "instruction": CONTINUE_INSTRUCTION})


def build_refine_messages(system_prompt: str, messages: Sequence[ChatMessage]) -> list[ChatMessage]:
    """
    Prepend the system envelope and wrap every user turn in a task envelope.

    Assistant and system turns from the caller are passed through unchanged.
    """
    wrapped = [
        ChatMessage.user(build_user_message_envelope(message.content))
        if message.role == "user"
        else message
        for message in messages
    ]
    return [ChatMessage.system(build_system_prompt_envelope(system_prompt)), *wrapped]


def build_continuation_message() -> ChatMessage:
    return ChatMessage.user(build_continuation_envelope())


def build_translation_message(text: str, language: str) -> ChatMessage:
    return ChatMessage.user(
        f"Translate the following text into {language}. Return only the translation, "
        f"without any explanation or notes:\n\n{text}"
    )


def build_translation_continuation_message() -> ChatMessage:
    return ChatMessage.user(TRANSLATE_CONTINUE_INSTRUCTION)


def build_option_prompt(option: AgentOption, base_text: str) -> str:
    """User turn asking the model to apply a chosen refinement direction."""
    return OPTION_PROMPT_TEMPLATE.format(label=option.label, text=base_text)
