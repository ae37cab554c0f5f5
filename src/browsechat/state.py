from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

SYSTEM_PROMPT = (
    "You are a research assistant that can operate a remote web browser. "
    "Before using googleSearch or getPageContent you need a browser session: call "
    "createSession once, then pass the returned sessionId and debugUrl (as "
    "debuggerFullscreenUrl) into every later browser tool call in this conversation. "
    "Reuse the same session instead of creating new ones. "
    "Use askForConfirmation before actions the user has not clearly requested. "
    "If a tool reports an error, explain it briefly and adapt."
)

ROLES = ("system", "user", "assistant", "tool")


@dataclass(frozen=True, slots=True)
class Message:
    role: str
    content: str
    tool_calls: tuple[dict[str, Any], ...] = ()
    tool_call_id: str | None = None

    def as_chat_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.role == "assistant" and self.tool_calls:
            payload["tool_calls"] = [dict(call) for call in self.tool_calls]
            if not self.content:
                payload["content"] = None
        if self.role == "tool" and self.tool_call_id:
            payload["tool_call_id"] = self.tool_call_id
        return payload


def function_call(call_id: str, name: str, args: dict[str, Any] | str) -> dict[str, Any]:
    arguments = args if isinstance(args, str) else json.dumps(args, ensure_ascii=False)
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


def tool_message(call_id: str, result: object) -> Message:
    content = result if isinstance(result, str) else json.dumps(result, ensure_ascii=False)
    return Message("tool", content, tool_call_id=call_id)


def convert_client_messages(raw: list[dict[str, Any]]) -> list[Message]:
    """Turn client-side chat messages into model context messages.

    Assistant messages may carry ``toolInvocations``; each invocation becomes a
    ``tool_calls`` entry and, when it has a ``result`` (executed server-side
    earlier, or answered by the user for a confirmation), a following ``tool``
    message. Invocations still waiting for a result are left out entirely so the
    model never sees a call without its answer.
    """
    messages: list[Message] = []
    for item in raw:
        role = str(item.get("role", ""))
        if role not in ROLES:
            continue
        content = item.get("content") or ""
        if not isinstance(content, str):
            content = json.dumps(content, ensure_ascii=False)
        invocations = item.get("toolInvocations") or []
        answered = [
            inv for inv in invocations
            if isinstance(inv, dict) and inv.get("toolCallId") and "result" in inv
        ]
        if role != "assistant" or not answered:
            if role == "tool":
                # bare tool messages have no call to attach to
                continue
            messages.append(Message(role, content))
            continue
        calls = tuple(
            function_call(str(inv["toolCallId"]), str(inv.get("toolName", "")), inv.get("args") or {})
            for inv in answered
        )
        messages.append(Message("assistant", content, tool_calls=calls))
        for inv in answered:
            messages.append(tool_message(str(inv["toolCallId"]), inv["result"]))
    return messages
