"""
HTTP surface: POST /api/chat streams the data-stream protocol back to the
chat client; GET /health is a probe.

The orchestrator runs in a producer task that feeds a queue. The response
generator drains the queue against a single deadline (``max_duration``); on
expiry or client disconnect the producer is cancelled and in-flight tools are
abandoned. Remote browser sessions are not torn down here.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Callable, Literal

from fastapi import FastAPI
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .client import LLMClient
from .config import AppConfig, load_config
from .orchestrator import Orchestrator
from .state import convert_client_messages
from .stream import DATA_STREAM_HEADERS, ErrorEvent, StreamEvent, encode_event
from .tools.manager import ToolManager

log = logging.getLogger("browsechat.server")

_DONE = object()


class ClientToolInvocation(BaseModel):
    toolCallId: str
    toolName: str
    args: dict[str, Any] = Field(default_factory=dict)
    state: str = "call"
    result: Any = None


class ClientMessage(BaseModel):
    role: Literal["system", "user", "assistant", "tool"]
    content: Any = ""
    toolInvocations: list[ClientToolInvocation] | None = None


class ChatRequest(BaseModel):
    messages: list[ClientMessage] = Field(min_length=1)


def build_orchestrator(config: AppConfig) -> Orchestrator:
    client = LLMClient(config.model_base_url, config.model_api_key)
    tools = ToolManager(config, client)
    return Orchestrator(
        client,
        tools,
        model=config.model,
        max_steps=config.max_steps,
        tool_concurrency=config.tool_concurrency,
        tool_timeout=config.tool_timeout,
    )


def _client_payload(message: ClientMessage) -> dict[str, Any]:
    payload = message.model_dump(exclude_none=True)
    for raw, inv in zip(payload.get("toolInvocations") or [], message.toolInvocations or []):
        # a finished invocation keeps its result even when it is null
        if inv.state == "result" and "result" not in raw:
            raw["result"] = None
    return payload


async def stream_with_deadline(
    events: AsyncIterator[StreamEvent],
    max_duration: float,
) -> AsyncIterator[str]:
    queue: asyncio.Queue[object] = asyncio.Queue()

    async def _produce() -> None:
        try:
            async for event in events:
                await queue.put(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            log.exception("orchestration failed")
            await queue.put(ErrorEvent(f"Internal error: {exc}"))
        finally:
            queue.put_nowait(_DONE)

    producer = asyncio.create_task(_produce())
    deadline = time.monotonic() + max_duration
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise asyncio.TimeoutError
            item = await asyncio.wait_for(queue.get(), timeout=remaining)
            if item is _DONE:
                break
            yield encode_event(item)  # type: ignore[arg-type]
    except asyncio.TimeoutError:
        log.warning("request exceeded max duration of %gs", max_duration)
        yield encode_event(ErrorEvent(f"Request exceeded the maximum duration of {max_duration:g} seconds"))
    finally:
        if not producer.done():
            producer.cancel()
        await asyncio.gather(producer, return_exceptions=True)


def create_app(
    config: AppConfig | None = None,
    orchestrator_factory: Callable[[AppConfig], Orchestrator] = build_orchestrator,
) -> FastAPI:
    config = config or load_config()
    missing = config.missing_secrets()
    if missing:
        log.warning("missing secrets: %s; browser tools will fail", ", ".join(missing))

    app = FastAPI(title="browsechat")

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "missing_secrets": config.missing_secrets()}

    @app.post("/api/chat")
    async def chat(req: ChatRequest) -> StreamingResponse:
        messages = convert_client_messages([_client_payload(m) for m in req.messages])
        orchestrator = orchestrator_factory(config)
        body = stream_with_deadline(orchestrator.run(messages), config.max_duration)
        return StreamingResponse(body, media_type="text/plain; charset=utf-8", headers=DATA_STREAM_HEADERS)

    return app
