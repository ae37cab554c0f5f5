"""
BrowserTool drives an already-running remote Chromium over the Chrome
DevTools Protocol with Playwright.

Each call attaches to the session named by the caller, uses the session's
default page, and detaches again. Detaching does not end a keep-alive
session, so the next tool call can attach to the same browser.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .errors import BrowserError, SessionError
from .search import ResultsParser, SearchResult
from .sessions import SessionManager

log = logging.getLogger("browsechat.browser")

Attach = Callable[[str], AsyncContextManager[Any]]


class BrowserTool:
    def __init__(
        self,
        sessions: SessionManager,
        *,
        page_timeout: float = 10.0,
        attach: Attach | None = None,
    ) -> None:
        self.sessions = sessions
        self.page_timeout = page_timeout
        self._attach = attach or self._attach_over_cdp

    @asynccontextmanager
    async def _attach_over_cdp(self, session_id: str) -> AsyncIterator[Any]:
        endpoint = self.sessions.connect_url(session_id)
        async with async_playwright() as pw:
            browser = await pw.chromium.connect_over_cdp(endpoint, timeout=self.page_timeout * 1000)
            try:
                context = browser.contexts[0] if browser.contexts else await browser.new_context()
                page = context.pages[0] if context.pages else await context.new_page()
                yield page
            finally:
                await browser.close()

    @asynccontextmanager
    async def page(self, session_id: str) -> AsyncIterator[Any]:
        """Attach to ``session_id`` and yield its page, mapping driver errors."""
        if not session_id or not session_id.strip():
            raise SessionError("sessionId is required; call createSession first")
        try:
            async with self._attach(session_id) as page:
                yield page
        except PlaywrightTimeoutError as exc:
            raise BrowserError(f"browser timed out after {self.page_timeout:g}s: {exc}") from exc
        except PlaywrightError as exc:
            raise BrowserError(f"browser session {session_id} failed: {exc}") from exc

    async def search(self, session_id: str, query: str, parser: ResultsParser) -> list[SearchResult]:
        """Run ``query`` in the remote browser and scrape the result list.

        Waiting for the results selector is bounded by ``page_timeout``; if the
        markup no longer matches, the wait times out and a BrowserError is
        raised rather than returning an empty page.
        """
        timeout_ms = self.page_timeout * 1000
        async with self.page(session_id) as page:
            await page.goto(parser.url_for(query), timeout=timeout_ms)
            await page.wait_for_load_state("load", timeout=timeout_ms)
            await page.wait_for_selector(parser.wait_selector, timeout=timeout_ms)
            html = await page.content()
        results = parser.parse(html)
        log.info("search %r returned %d results", query, len(results))
        return results

    async def page_html(self, session_id: str, url: str) -> tuple[int | None, str]:
        """Navigate to ``url`` and return (HTTP status, rendered HTML)."""
        async with self.page(session_id) as page:
            response = await page.goto(url, timeout=self.page_timeout * 1000)
            html = await page.content()
        status = response.status if response is not None else None
        if status and status >= 400:
            log.warning("page %s answered HTTP %s", url, status)
        return status, html
