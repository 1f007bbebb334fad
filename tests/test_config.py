from __future__ import annotations

import pytest

from textpolish.config import DEFAULTS, cors_origins, load_chat_config
from textpolish.constants import RETRYABLE_STATUS


def test_load_chat_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEXTPOLISH_API_ENDPOINT", "https://llm.internal/v1/")
    monkeypatch.setenv("TEXTPOLISH_API_KEY", "sk-env")
    monkeypatch.setenv("TEXTPOLISH_MODEL", "local-model")
    monkeypatch.setenv("TEXTPOLISH_SYSTEM_PROMPT", "Be terse")

    config = load_chat_config()

    assert config.api_key == "sk-env"
    assert config.model == "local-model"
    assert config.system_prompt == "Be terse"
    assert config.completions_url == "https://llm.internal/v1/chat/completions"


def test_load_chat_config_falls_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEXTPOLISH_MODEL", "")
    monkeypatch.setenv("TEXTPOLISH_SYSTEM_PROMPT", "")

    config = load_chat_config()

    assert config.model == DEFAULTS.model
    assert config.system_prompt == DEFAULTS.system_prompt


def test_cors_origins_parses_comma_list(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, ,http://b.test")

    assert cors_origins() == ["http://a.test", "http://b.test"]


def test_cors_origins_defaults_to_wildcard(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CORS_ORIGINS", raising=False)

    assert cors_origins() == ["*"]


def test_retryable_status_set() -> None:
    assert RETRYABLE_STATUS == {408, 409, 429, 500, 502, 503, 504}
