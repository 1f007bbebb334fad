"""Data types shared by the orchestration layers and the HTTP surface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ChatError, ErrorKind

CUSTOM_OPTION_ID = "other"


@dataclass(frozen=True)
class ChatConfig:
    """Per-call settings for one OpenAI-compatible endpoint."""

    api_endpoint: str
    api_key: str
    model: str
    system_prompt: str = ""

    @property
    def completions_url(self) -> str:
        return f"{self.api_endpoint.strip().rstrip('/')}/chat/completions"

    def ensure_ready(self) -> None:
        """Raise a CONFIG ChatError unless a network call can be attempted."""
        if not self.api_endpoint.strip():
            raise ChatError(ErrorKind.CONFIG, "API endpoint is not configured")
        if not self.api_key.strip():
            raise ChatError(ErrorKind.CONFIG, "API key is not configured")

    def __repr__(self) -> str:
        return (
            f"ChatConfig(api_endpoint={self.api_endpoint!r}, api_key='***', "
            f"model={self.model!r})"
        )


@dataclass(frozen=True)
class ChatRequestOptions:
    stream: bool = False
    temperature: float = 0.7
    max_tokens: int = 2000


@dataclass(frozen=True)
class ChatCompletionResult:
    """Text and finish reason produced by one HTTP call."""

    content: str
    finish_reason: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return self.finish_reason == "length"


class ChatMessage(BaseModel):
    """One conversation turn."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    content: str

    @classmethod
    def user(cls, content: str) -> ChatMessage:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> ChatMessage:
        return cls(role="assistant", content=content)

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(role="system", content=content)


class AgentOption(BaseModel):
    """A refinement direction proposed by the model."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    description: str = ""

    @property
    def is_custom(self) -> bool:
        """The reserved option that asks the user to type their own direction."""
        return self.id == CUSTOM_OPTION_ID


class AgentResponse(BaseModel):
    """Normalized agent decision; every field is always populated."""

    model_config = ConfigDict(frozen=True)

    analysis: str = ""
    optimized_text: str = ""
    options: List[AgentOption] = Field(default_factory=list)
    need_more_info: bool = False
    no_change: bool = False
    no_change_reason: str = ""
