"""Structured failures raised by the chat-completion layers."""

from __future__ import annotations

from enum import Enum

from .constants import RETRYABLE_STATUS


class ErrorKind(str, Enum):
    """Classification used by retry and fallback decisions."""

    CANCELLED = "cancelled"
    CONFIG = "config"
    HTTP = "http"
    NETWORK = "network"
    RESPONSE_FORMAT = "response_format"


class ChatError(Exception):
    """A failed chat-completion call.

    Attributes:
        kind: What went wrong, see ErrorKind.
        http_status: Status code for HTTP failures, otherwise None.
        message: Human-readable text suitable for showing to the user.
    """

    def __init__(self, kind: ErrorKind, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.http_status = http_status

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.HTTP and self.http_status in RETRYABLE_STATUS

    @property
    def cancelled(self) -> bool:
        return self.kind is ErrorKind.CANCELLED

    def __repr__(self) -> str:
        return f"ChatError(kind={self.kind.value!r}, http_status={self.http_status!r}, message={self.message!r})"


class ChatCancelledError(ChatError):
    """The caller's cancellation signal fired before the call finished."""

    def __init__(self, message: str = "Request aborted") -> None:
        super().__init__(ErrorKind.CANCELLED, message)
