import sys
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from browsechat.tools.errors import FetchError
from browsechat.tools.fetch import FetchTool
from browsechat.tools.summarize import Summarizer


class TestFetchTool(unittest.IsolatedAsyncioTestCase):
    async def test_returns_body_even_on_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertIn("Mozilla", request.headers["user-agent"])
            return httpx.Response(503, text="<html><body>busy</body></html>")

        html = await FetchTool(transport=httpx.MockTransport(handler)).fetch_html("https://search.test/?q=x")
        self.assertIn("busy", html)

    async def test_network_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("dns failure", request=request)

        with self.assertRaises(FetchError):
            await FetchTool(transport=httpx.MockTransport(handler)).fetch_html("https://search.test/")


class TestSummarizer(unittest.IsolatedAsyncioTestCase):
    async def test_prompt_wraps_text(self) -> None:
        client = MagicMock()
        client.chat_once = AsyncMock(return_value="Looks fine.")
        summary = await Summarizer(client, "small-model").summarize("Some page")
        self.assertEqual(summary, "Looks fine.")
        client.chat_once.assert_awaited_once_with(
            "small-model",
            [{"role": "user", "content": "Evaluate the following web page content: Some page"}],
        )

    async def test_long_text_is_truncated(self) -> None:
        client = MagicMock()
        client.chat_once = AsyncMock(return_value="ok")
        await Summarizer(client, "m", max_chars=10).summarize("x" * 50)
        prompt = client.chat_once.await_args.args[1][0]["content"]
        self.assertTrue(prompt.endswith("x" * 10 + " ...[truncated]"))
