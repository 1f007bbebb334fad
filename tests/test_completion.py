from __future__ import annotations

import pytest

from chat_fakes import FakeChatServer, error_response, json_response
from textpolish import completion
from textpolish.errors import ChatCancelledError, ChatError, ErrorKind
from textpolish.models import ChatConfig, ChatMessage, ChatRequestOptions
from textpolish.utils import retry_with_backoff

MESSAGES = [ChatMessage.user("hello")]
CONTINUE = ChatMessage.user("continue please")


@pytest.mark.asyncio
async def test_permanent_status_is_not_retried(config: ChatConfig) -> None:
    server = FakeChatServer(error_response(401, "Invalid API key"), json_response("never"))

    async with server.client() as client:
        with pytest.raises(ChatError, match="Invalid API key"):
            await completion.request_with_retry(config, MESSAGES, ChatRequestOptions(), client=client)

    assert server.calls == 1


@pytest.mark.asyncio
async def test_transient_status_then_success_takes_two_calls(config: ChatConfig) -> None:
    server = FakeChatServer(error_response(503), json_response("recovered"))

    async with server.client() as client:
        result = await completion.request_with_retry(config, MESSAGES, ChatRequestOptions(), client=client)

    assert server.calls == 2
    assert result.content == "recovered"


@pytest.mark.asyncio
async def test_retry_budget_is_three_attempts(config: ChatConfig) -> None:
    server = FakeChatServer(error_response(429), error_response(502), error_response(500, "overloaded"))

    async with server.client() as client:
        with pytest.raises(ChatError) as excinfo:
            await completion.request_with_retry(config, MESSAGES, ChatRequestOptions(), client=client)

    assert server.calls == 3
    assert excinfo.value.message == "overloaded"
    assert excinfo.value.http_status == 500


@pytest.mark.asyncio
async def test_retry_with_backoff_sleeps_linearly() -> None:
    delays: list[float] = []
    attempts = 0

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    async def flaky() -> str:
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise ChatError(ErrorKind.HTTP, "API request failed: 504", http_status=504)
        return "ok"

    result = await retry_with_backoff(flaky, retries=2, base_delay=0.3, sleep=fake_sleep)

    assert result == "ok"
    assert delays == pytest.approx([0.3, 0.6])


@pytest.mark.asyncio
async def test_retry_with_backoff_does_not_count_cancellation() -> None:
    attempts = 0

    async def cancelled() -> str:
        nonlocal attempts
        attempts += 1
        raise ChatCancelledError()

    with pytest.raises(ChatCancelledError):
        await retry_with_backoff(cancelled, retries=2, base_delay=0.0)

    assert attempts == 1


@pytest.mark.asyncio
async def test_continuation_concatenates_rounds_in_order(config: ChatConfig) -> None:
    server = FakeChatServer(
        json_response("first", finish_reason="length"),
        json_response(" second", finish_reason="stop"),
    )

    async with server.client() as client:
        text = await completion.request_with_continuation(
            config, MESSAGES, ChatRequestOptions(), CONTINUE, client=client
        )

    assert text == "first second"
    second_round = server.bodies[1]["messages"]
    assert second_round == [
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "first"},
        {"role": "user", "content": "continue please"},
    ]


@pytest.mark.asyncio
async def test_continuation_returns_partial_text_when_rounds_run_out(config: ChatConfig) -> None:
    server = FakeChatServer(*(json_response(f"part{i} ", finish_reason="length") for i in range(4)))

    async with server.client() as client:
        text = await completion.request_with_continuation(
            config, MESSAGES, ChatRequestOptions(), CONTINUE, client=client
        )

    assert server.calls == 4
    assert text == "part0 part1 part2 part3"
    assert len(server.bodies[-1]["messages"]) == 7


@pytest.mark.asyncio
async def test_continuation_retries_each_round(config: ChatConfig) -> None:
    server = FakeChatServer(
        json_response("a", finish_reason="length"),
        error_response(502),
        json_response("b", finish_reason="stop"),
    )

    async with server.client() as client:
        text = await completion.request_with_continuation(
            config, MESSAGES, ChatRequestOptions(), CONTINUE, client=client
        )

    assert text == "ab"
    assert server.calls == 3
