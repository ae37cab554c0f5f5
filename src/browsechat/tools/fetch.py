from __future__ import annotations

import httpx

from .errors import FetchError

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class FetchTool:
    """Unauthenticated, unscripted HTTP GET. Error statuses still return their body."""

    def __init__(self, timeout: float = 20.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.timeout = timeout
        self._transport = transport

    async def fetch_html(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                headers=_HEADERS,
                follow_redirects=True,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchError(f"request to {url} timed out") from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"request to {url} failed: {exc}") from exc
        return response.text
