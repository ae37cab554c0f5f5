from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Iterator

import httpx


class LLMClientError(RuntimeError):
    pass


# No read timeout while streaming: the model may pause between tokens, and the
# server bounds the whole request instead.
_STREAM_TIMEOUT = httpx.Timeout(connect=15.0, read=None, write=15.0, pool=5.0)


def _completion_payload(
    model: str,
    messages: list[dict[str, Any]],
    *,
    stream: bool,
    tools: list[dict[str, object]] | None,
    tool_choice: str | None,
    max_tokens: int | None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"model": model, "messages": messages, "stream": stream}
    if stream:
        payload["stream_options"] = {"include_usage": True}
    if tools:
        payload["tools"] = tools
        payload["tool_choice"] = tool_choice or "auto"
    if max_tokens:
        payload["max_tokens"] = max_tokens
    return payload


def _sse_data(line: str) -> dict[str, Any] | None:
    """The JSON object carried by one ``data:`` line, or None to skip it."""
    if not line.startswith("data:"):
        return None
    data = line[5:].strip()
    if not data or data == "[DONE]":
        return None
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _chunk_events(chunk: dict[str, Any]) -> Iterator[dict[str, Any]]:
    if chunk.get("error"):
        raise LLMClientError(f"Provider error: {chunk['error']}")
    if isinstance(chunk.get("usage"), dict):
        yield {"type": "usage", "value": chunk["usage"]}
    for choice in (chunk.get("choices") or [])[:1]:
        delta = choice.get("delta") or {}
        if delta.get("content"):
            yield {"type": "content", "value": delta["content"]}
        if delta.get("tool_calls"):
            yield {"type": "tool_calls", "value": delta["tool_calls"]}
        if choice.get("finish_reason"):
            yield {"type": "finish", "value": choice["finish_reason"]}


class LLMClient:
    """Chat-completions client for any OpenAI-compatible provider.

    :meth:`chat_stream_events` yields dicts with a ``type`` (``content``,
    ``tool_calls``, ``finish`` or ``usage``) and a ``value``. Failures are
    raised as :class:`LLMClientError`; nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _client(self, timeout: httpx.Timeout | float) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return httpx.AsyncClient(timeout=timeout, headers=headers, transport=self._transport)

    async def chat_once(self, model: str, messages: list[dict[str, Any]], max_tokens: int | None = None) -> str:
        message = await self.complete(model, messages, max_tokens=max_tokens)
        return message.get("content") or ""

    async def complete(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, object]] | None = None,
        tool_choice: str | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """One non-streaming completion; returns the assistant message dict."""
        payload = _completion_payload(
            model, messages, stream=False, tools=tools, tool_choice=tool_choice, max_tokens=max_tokens
        )
        try:
            async with self._client(self.timeout) as client:
                response = await client.post(self.completions_url, json=payload)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise LLMClientError("Completion request timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise LLMClientError(
                f"Completion failed with HTTP {exc.response.status_code}: {exc.response.text[:300]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise LLMClientError(f"Completion network error: {exc}") from exc
        try:
            message = response.json()["choices"][0]["message"]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise LLMClientError("Malformed chat response") from exc
        if not isinstance(message, dict):
            raise LLMClientError("Malformed chat response")
        return message

    async def chat_stream_events(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, object]] | None = None,
        tool_choice: str | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        payload = _completion_payload(
            model, messages, stream=True, tools=tools, tool_choice=tool_choice, max_tokens=max_tokens
        )
        try:
            async with self._client(_STREAM_TIMEOUT) as client:
                async with client.stream("POST", self.completions_url, json=payload) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode(errors="replace")[:300]
                        raise LLMClientError(f"Streaming failed with HTTP {response.status_code}: {body}")
                    async for line in response.aiter_lines():
                        if line.startswith("data:") and line[5:].strip() == "[DONE]":
                            return
                        chunk = _sse_data(line)
                        if chunk is None:
                            continue
                        for event in _chunk_events(chunk):
                            yield event
        except httpx.TimeoutException as exc:
            raise LLMClientError("Streaming timed out") from exc
        except asyncio.CancelledError:
            raise
        except httpx.HTTPError as exc:
            raise LLMClientError(f"Streaming network error: {exc}") from exc
