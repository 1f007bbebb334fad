from __future__ import annotations

import pytest

from textpolish import completion
from textpolish.models import ChatConfig


@pytest.fixture
def config() -> ChatConfig:
    return ChatConfig(
        api_endpoint="https://example.com/v1",
        api_key="sk-test",
        model="gpt-4o-mini",
        system_prompt="system prompt",
    )


@pytest.fixture(autouse=True)
def _no_retry_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(completion, "RETRY_BACKOFF_BASE", 0.0)
