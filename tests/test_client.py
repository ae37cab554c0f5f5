import json
import sys
import unittest
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from browsechat.client import LLMClient, LLMClientError


def _sse(*chunks: object) -> bytes:
    lines = [": keepalive", ""]
    for chunk in chunks:
        data = chunk if isinstance(chunk, str) else json.dumps(chunk)
        lines.append(f"data: {data}")
        lines.append("")
    return ("\n".join(lines) + "\n").encode()


class TestChatStreamEvents(unittest.IsolatedAsyncioTestCase):
    async def _collect(self, client: LLMClient, **kwargs) -> list[dict]:
        return [event async for event in client.chat_stream_events("m", [{"role": "user", "content": "hi"}], **kwargs)]

    async def test_content_tool_calls_finish_and_usage(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            body = _sse(
                {"choices": [{"delta": {"content": "Hel"}}]},
                {"choices": [{"delta": {"content": "lo"}}]},
                "not json",
                {"choices": [{"delta": {"tool_calls": [{"index": 0, "id": "c1", "function": {"name": "createSession", "arguments": ""}}]}}]},
                {"choices": [{"delta": {}, "finish_reason": "tool_calls"}]},
                {"choices": [], "usage": {"prompt_tokens": 5, "completion_tokens": 2}},
                "[DONE]",
            )
            return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

        client = LLMClient("https://llm.test/v1", "sk-test", transport=httpx.MockTransport(handler))
        events = await self._collect(client, tools=[{"type": "function"}])
        self.assertEqual(seen["auth"], "Bearer sk-test")
        self.assertTrue(seen["body"]["stream"])
        self.assertEqual(seen["body"]["tool_choice"], "auto")
        self.assertEqual(
            [e["type"] for e in events],
            ["content", "content", "tool_calls", "finish", "usage"],
        )
        self.assertEqual(events[3]["value"], "tool_calls")
        self.assertEqual(events[4]["value"]["prompt_tokens"], 5)

    async def test_http_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": "bad key"})

        client = LLMClient("https://llm.test/v1", transport=httpx.MockTransport(handler))
        with self.assertRaises(LLMClientError) as ctx:
            await self._collect(client)
        self.assertIn("401", str(ctx.exception))

    async def test_network_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = LLMClient("https://llm.test/v1", transport=httpx.MockTransport(handler))
        with self.assertRaises(LLMClientError):
            await self._collect(client)

    async def test_provider_error_chunk_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=_sse({"error": {"message": "overloaded"}}))

        client = LLMClient("https://llm.test/v1", transport=httpx.MockTransport(handler))
        with self.assertRaises(LLMClientError):
            await self._collect(client)


class TestChatOnce(unittest.IsolatedAsyncioTestCase):
    async def test_chat_once_returns_content(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertFalse(json.loads(request.content)["stream"])
            return httpx.Response(200, json={"choices": [{"message": {"content": "A summary."}}]})

        client = LLMClient("https://llm.test/v1", transport=httpx.MockTransport(handler))
        self.assertEqual(await client.chat_once("m", [{"role": "user", "content": "x"}]), "A summary.")

    async def test_malformed_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        client = LLMClient("https://llm.test/v1", transport=httpx.MockTransport(handler))
        with self.assertRaises(LLMClientError):
            await client.chat_once("m", [])
