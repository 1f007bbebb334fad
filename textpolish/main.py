"""FastAPI service exposing refine and translate to a UI."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .agent import (
    RefinementOutcome,
    RefinementStage,
    first_user_text,
    refine,
    run_refinement,
    translate,
)
from .config import configure_logging, cors_origins, load_chat_config
from .envelopes import build_option_prompt
from .errors import ChatError, ErrorKind
from .models import AgentOption, ChatConfig, ChatMessage
from .transport import close_async_client

configure_logging()
logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.5

app = FastAPI(title="TextPolish API")

allow_origins = cors_origins()
# Browsers refuse credentialed requests against a wildcard origin.
allow_credentials = False if "*" in allow_origins else True

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_KIND = {
    ErrorKind.CONFIG: 400,
    ErrorKind.HTTP: 502,
    ErrorKind.NETWORK: 502,
    ErrorKind.RESPONSE_FORMAT: 502,
    ErrorKind.CANCELLED: 499,
}


class RefineRequest(BaseModel):
    """Conversation to refine."""
    messages: List[ChatMessage] = Field(min_length=1)
    baseline_text: Optional[str] = Field(
        default=None,
        description="Current best text; defaults to the first user message.",
    )


class RawCompletionResponse(BaseModel):
    content: str


class TranslateRequest(BaseModel):
    text: str


class TranslateResponse(BaseModel):
    translated_text: str


class SelectOptionRequest(BaseModel):
    """Apply one of the agent's proposed directions."""
    option: AgentOption
    messages: List[ChatMessage] = Field(default_factory=list)
    base_text: Optional[str] = None


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Ensure outbound HTTP clients are cleaned up."""
    await close_async_client()


def _to_http_error(exc: ChatError) -> HTTPException:
    status_code = _STATUS_BY_KIND.get(exc.kind, 500)
    if exc.kind is not ErrorKind.CANCELLED:
        logger.warning(
            "request failed",
            extra={"kind": exc.kind.value, "http_status": exc.http_status},
        )
    return HTTPException(status_code=status_code, detail=exc.message)


def _chat_config() -> ChatConfig:
    config = load_chat_config()
    try:
        config.ensure_ready()
    except ChatError as exc:
        raise _to_http_error(exc)
    return config


@asynccontextmanager
async def _disconnect_signal(request: Request) -> AsyncIterator[asyncio.Event]:
    """Yield an event that is set once the HTTP client goes away."""
    signal = asyncio.Event()

    async def watch() -> None:
        while not signal.is_set():
            if await request.is_disconnected():
                logger.info("client disconnected, cancelling request")
                signal.set()
                return
            await asyncio.sleep(DISCONNECT_POLL_SECONDS)

    watcher = asyncio.create_task(watch())
    try:
        yield signal
    finally:
        watcher.cancel()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "TextPolish API"}


@app.post("/api/refine", response_model=RefinementOutcome)
async def refine_text(payload: RefineRequest, request: Request):
    """Run one refinement turn and decide the next stage."""
    config = _chat_config()
    async with _disconnect_signal(request) as signal:
        try:
            return await run_refinement(config, payload.messages, payload.baseline_text, signal)
        except ChatError as exc:
            raise _to_http_error(exc)


@app.post("/api/refine/raw", response_model=RawCompletionResponse)
async def refine_raw(payload: RefineRequest, request: Request):
    """Return the model's completion text without normalizing it."""
    config = _chat_config()
    async with _disconnect_signal(request) as signal:
        try:
            content = await refine(config, payload.messages, signal)
        except ChatError as exc:
            raise _to_http_error(exc)
    return RawCompletionResponse(content=content)


@app.post("/api/translate", response_model=TranslateResponse)
async def translate_text(payload: TranslateRequest, request: Request):
    """Translate confirmed text."""
    text = payload.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="No text to translate")
    config = _chat_config()
    async with _disconnect_signal(request) as signal:
        try:
            translated = await translate(config, text, signal)
        except ChatError as exc:
            raise _to_http_error(exc)
    return TranslateResponse(translated_text=translated)


@app.post("/api/options/select", response_model=RefinementOutcome)
async def select_option(payload: SelectOptionRequest, request: Request):
    """
    Refine the text along a chosen option. The custom "other" option needs the
    user to type a direction, so it is rejected here.
    """
    if payload.option.is_custom:
        raise HTTPException(status_code=400, detail="Custom direction requires user input")

    base_text = payload.base_text or first_user_text(payload.messages)
    if not base_text:
        raise HTTPException(status_code=400, detail="No text to refine")

    config = _chat_config()
    messages = [*payload.messages, ChatMessage.user(build_option_prompt(payload.option, base_text))]
    async with _disconnect_signal(request) as signal:
        try:
            return await run_refinement(config, messages, base_text, signal)
        except ChatError as exc:
            raise _to_http_error(exc)


@app.post("/api/refine/stream")
async def refine_stream(payload: RefineRequest):
    """
    Run a refinement turn and report progress as Server-Sent Events.
    """
    config = _chat_config()

    async def event_generator():
        try:
            yield f"data: {json.dumps({'type': 'refine_start'})}\n\n"
            outcome = await run_refinement(config, payload.messages, payload.baseline_text)
            yield f"data: {json.dumps({'type': 'refine_complete', 'data': outcome.model_dump(mode='json')})}\n\n"
            if outcome.stage is RefinementStage.RESULT:
                yield f"data: {json.dumps({'type': 'translate_complete', 'data': {'translated_text': outcome.translated_text}})}\n\n"
            yield f"data: {json.dumps({'type': 'complete'})}\n\n"
        except ChatError as exc:
            yield f"data: {json.dumps({'type': 'error', 'kind': exc.kind.value, 'message': exc.message})}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
