"""
Stream events and their data-stream wire encoding.

One line per event, ``<code>:<json>\\n``, as read by the chat client library:

  0  text delta            b  tool-call streaming start
  c  tool-call args delta  9  tool call (complete)
  a  tool result           3  error
  e  step finish           d  message finish (completion marker)
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

DATA_STREAM_HEADERS = {
    "x-vercel-ai-data-stream": "v1",
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallStart:
    call_id: str
    name: str


@dataclass(frozen=True)
class ToolCallDelta:
    call_id: str
    args_text: str


@dataclass(frozen=True)
class ToolCallEvent:
    call_id: str
    name: str
    args: dict[str, Any]


@dataclass(frozen=True)
class ToolResultEvent:
    call_id: str
    name: str
    result: dict[str, Any]
    ok: bool = True


@dataclass(frozen=True)
class ErrorEvent:
    message: str


@dataclass(frozen=True)
class StepFinish:
    reason: str
    usage: dict[str, int] = field(default_factory=dict)
    continued: bool = False


@dataclass(frozen=True)
class Finish:
    reason: str
    usage: dict[str, int] = field(default_factory=dict)


StreamEvent = Union[
    TextDelta, ToolCallStart, ToolCallDelta, ToolCallEvent, ToolResultEvent, ErrorEvent, StepFinish, Finish
]


def _usage(usage: dict[str, int]) -> dict[str, int]:
    return {
        "promptTokens": int(usage.get("prompt_tokens", 0) or 0),
        "completionTokens": int(usage.get("completion_tokens", 0) or 0),
    }


def _line(code: str, value: object) -> str:
    return f"{code}:{json.dumps(value, ensure_ascii=False, separators=(',', ':'))}\n"


def encode_event(event: StreamEvent) -> str:
    if isinstance(event, TextDelta):
        return _line("0", event.text)
    if isinstance(event, ToolCallStart):
        return _line("b", {"toolCallId": event.call_id, "toolName": event.name})
    if isinstance(event, ToolCallDelta):
        return _line("c", {"toolCallId": event.call_id, "argsTextDelta": event.args_text})
    if isinstance(event, ToolCallEvent):
        return _line("9", {"toolCallId": event.call_id, "toolName": event.name, "args": event.args})
    if isinstance(event, ToolResultEvent):
        return _line("a", {"toolCallId": event.call_id, "result": event.result})
    if isinstance(event, ErrorEvent):
        return _line("3", event.message)
    if isinstance(event, StepFinish):
        return _line(
            "e",
            {"finishReason": event.reason, "usage": _usage(event.usage), "isContinued": event.continued},
        )
    if isinstance(event, Finish):
        return _line("d", {"finishReason": event.reason, "usage": _usage(event.usage)})
    raise TypeError(f"unsupported stream event: {type(event).__name__}")
