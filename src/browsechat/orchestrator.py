from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from .client import LLMClient, LLMClientError
from .state import SYSTEM_PROMPT, Message, function_call, tool_message
from .stream import (
    ErrorEvent,
    Finish,
    StepFinish,
    StreamEvent,
    TextDelta,
    ToolCallDelta,
    ToolCallEvent,
    ToolCallStart,
    ToolResultEvent,
)
from .tool_args import parse_tool_args
from .tool_scheduler import ToolCall, ToolResult, ToolScheduler
from .tools.errors import ToolValidationError
from .tools.manager import ToolManager

log = logging.getLogger("browsechat.orchestrator")

_FINISH_REASONS = {
    "stop": "stop",
    "tool_calls": "tool-calls",
    "function_call": "tool-calls",
    "length": "length",
    "content_filter": "content-filter",
}


@dataclass
class _PendingCall:
    call_id: str
    name: str = ""
    arguments: str = ""
    started: bool = False


@dataclass
class _Usage:
    totals: dict[str, int] = field(default_factory=dict)

    def add(self, usage: dict[str, Any]) -> None:
        for key in ("prompt_tokens", "completion_tokens"):
            value = usage.get(key)
            if isinstance(value, int):
                self.totals[key] = self.totals.get(key, 0) + value


class Orchestrator:
    """Drives one request: model stream, tool calls, results, and resumption.

    :meth:`run` yields stream events in the order the client must see them.
    Text deltas are forwarded as they arrive. Each tool call is announced with
    a :class:`ToolCallEvent` before it runs and answered by a
    :class:`ToolResultEvent` with the same call id. The only exception is a
    confirmation-only tool, whose answer comes from the client in the next
    request. Tool failures become results; model-provider failures and
    protocol violations end the stream with an :class:`ErrorEvent`.
    """

    def __init__(
        self,
        client: LLMClient,
        tools: ToolManager,
        *,
        model: str,
        max_steps: int = 5,
        tool_concurrency: int = 1,
        tool_timeout: float | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.client = client
        self.tools = tools
        self.model = model
        self.max_steps = max(1, max_steps)
        self.tool_concurrency = tool_concurrency
        self.tool_timeout = tool_timeout
        self.system_prompt = system_prompt

    def _llm_messages(self, history: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [{"role": "system", "content": self.system_prompt}, *history]

    async def run(self, messages: list[Message]) -> AsyncIterator[StreamEvent]:
        history = [m.as_chat_dict() for m in messages]
        definitions = self.tools.tool_definitions()
        usage = _Usage()

        for step in range(self.max_steps):
            content = ""
            pending: dict[int, _PendingCall] = {}
            finish_reason = "stop"
            step_usage: dict[str, Any] = {}
            try:
                async for event in self.client.chat_stream_events(
                    self.model,
                    self._llm_messages(history),
                    tools=definitions,
                ):
                    kind = event.get("type")
                    if kind == "content":
                        chunk = str(event.get("value") or "")
                        if chunk:
                            content += chunk
                            yield TextDelta(chunk)
                    elif kind == "tool_calls":
                        deltas = event.get("value")
                        if isinstance(deltas, list):
                            for streamed in self._merge_tool_call_deltas(pending, deltas):
                                yield streamed
                    elif kind == "finish":
                        finish_reason = _FINISH_REASONS.get(str(event.get("value")), "other")
                    elif kind == "usage" and isinstance(event.get("value"), dict):
                        step_usage = event["value"]
            except LLMClientError as exc:
                log.error("model stream failed at step %d: %s", step, exc)
                yield ErrorEvent(f"Model provider error: {exc}")
                return
            usage.add(step_usage)

            if not pending:
                yield StepFinish(finish_reason, step_usage)
                yield Finish(finish_reason, usage.totals)
                return

            ordered = [pending[idx] for idx in sorted(pending)]
            nameless = [p for p in ordered if not p.name]
            if nameless:
                log.error("model emitted %d tool call(s) without a name", len(nameless))
                yield ErrorEvent("Malformed model output: tool call without a name")
                return

            calls: list[ToolCall] = []
            immediate: list[ToolResult] = []
            for index, entry in enumerate(ordered):
                args, error = parse_tool_args(entry.name, entry.arguments)
                call = ToolCall(
                    index=index,
                    name=entry.name,
                    args=args,
                    call_id=entry.call_id,
                    label=self.tools.label_for(entry.name),
                )
                calls.append(call)
                if error:
                    immediate.append(ToolResult.failed(call, error))
                elif call.name in self.tools.catalog:
                    # confirmations never reach ToolManager.run, so check every call here
                    try:
                        self.tools.catalog.get(call.name).validate(call.args)
                    except ToolValidationError as exc:
                        immediate.append(ToolResult.failed(call, str(exc)))

            history.append(
                Message(
                    "assistant",
                    content,
                    tool_calls=tuple(function_call(p.call_id, p.name, p.arguments or "{}") for p in ordered),
                ).as_chat_dict()
            )
            for call in calls:
                yield ToolCallEvent(call.call_id, call.name, dict(call.args))

            unknown = [call for call in calls if call.name not in self.tools.catalog]
            if unknown:
                # Fail closed: answer every announced call, then stop.
                names = ", ".join(sorted({call.name for call in unknown}))
                log.error("model requested unknown tool(s): %s", names)
                for call in calls:
                    if call in unknown:
                        result = ToolResult.failed(call, f"Unknown tool '{call.name}'")
                    else:
                        result = ToolResult.failed(call, "Not executed: request aborted on an unknown tool call")
                    yield ToolResultEvent(call.call_id, call.name, result.payload, ok=False)
                yield ErrorEvent(f"Model requested unknown tool(s): {names}")
                return

            failed_ids = {result.call.call_id for result in immediate}
            confirmations = [
                call for call in calls
                if call.call_id not in failed_ids and self.tools.catalog.get(call.name).confirmation_only
            ]
            runnable = [
                call for call in calls
                if call.call_id not in failed_ids and call not in confirmations
            ]
            scheduler = ToolScheduler(
                self.tools.run,
                concurrency=self.tool_concurrency,
                timeout=self.tool_timeout,
            )
            results = await scheduler.run_batch(runnable)
            results = sorted(results + immediate, key=lambda r: r.call.index)
            for result in results:
                yield ToolResultEvent(result.call.call_id, result.call.name, result.payload, ok=result.ok)
                history.append(tool_message(result.call.call_id, result.payload).as_chat_dict())

            if confirmations:
                # Suspended until the client sends the user's decision back.
                log.info("awaiting confirmation for %s", ", ".join(c.call_id for c in confirmations))
                yield StepFinish("tool-calls", step_usage)
                yield Finish("tool-calls", usage.totals)
                return
            yield StepFinish("tool-calls", step_usage)

        log.warning("stopping after %d model steps", self.max_steps)
        yield Finish("tool-calls", usage.totals)

    def _merge_tool_call_deltas(
        self,
        state: dict[int, _PendingCall],
        deltas: list[dict[str, Any]],
    ) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for call in deltas:
            if not isinstance(call, dict):
                continue
            index = int(call.get("index", 0) or 0)
            entry = state.get(index)
            if entry is None:
                entry = _PendingCall(call_id=str(call.get("id") or f"call_{uuid.uuid4().hex[:24]}"))
                state[index] = entry
            func = call.get("function")
            if not isinstance(func, dict):
                continue
            if func.get("name"):
                entry.name = str(func["name"])
            if entry.name and not entry.started:
                entry.started = True
                events.append(ToolCallStart(entry.call_id, entry.name))
            if func.get("arguments"):
                chunk = str(func["arguments"])
                entry.arguments += chunk
                if entry.started:
                    events.append(ToolCallDelta(entry.call_id, chunk))
        return events
