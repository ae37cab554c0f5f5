"""
Remote browser sessions hosted by Browserbase.

The manager keeps no session table: every call is a stateless request keyed
by the identifier the caller hands in. The model carries the identifier from
``createSession`` forward into later tool calls itself.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from .errors import SessionError

log = logging.getLogger("browsechat.sessions")


@dataclass(frozen=True)
class BrowserSession:
    id: str
    debug_url: str = ""


class SessionManager:
    def __init__(
        self,
        api_key: str,
        project_id: str,
        *,
        api_url: str = "https://api.browserbase.com/v1",
        connect_url: str = "wss://connect.browserbase.com",
        session_timeout: int = 0,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.project_id = project_id
        self.api_url = api_url.rstrip("/")
        self.connect_base = connect_url.rstrip("/")
        self.session_timeout = session_timeout
        self.timeout = timeout
        self._transport = transport

    def _require_credentials(self) -> None:
        if not self.api_key or not self.project_id:
            raise SessionError("BROWSERBASE_API_KEY and BROWSERBASE_PROJECT_ID must be set")

    async def _request(self, method: str, path: str, **kwargs: object) -> dict:
        self._require_credentials()
        headers = {"X-BB-API-Key": self.api_key, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, headers=headers, transport=self._transport) as client:
                response = await client.request(method, f"{self.api_url}{path}", **kwargs)
                response.raise_for_status()
                if not response.content:
                    return {}
                data = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise SessionError(
                f"Browserbase request failed for {path}: HTTP {status} {exc.response.text[:200]}",
                status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            raise SessionError(f"Browserbase request failed for {path}: {exc}") from exc
        except ValueError as exc:
            raise SessionError(f"Browserbase returned invalid JSON for {path}") from exc
        if not isinstance(data, dict):
            raise SessionError(f"Browserbase returned an unexpected payload for {path}")
        return data

    async def create_session(self) -> BrowserSession:
        """Allocate a keep-alive session so it survives across tool calls."""
        body: dict[str, object] = {"projectId": self.project_id, "keepAlive": True}
        if self.session_timeout:
            body["timeout"] = self.session_timeout
        data = await self._request("POST", "/sessions", json=body)
        session_id = data.get("id")
        if not isinstance(session_id, str) or not session_id:
            raise SessionError("Browserbase did not return a session id")
        log.info("created browser session %s", session_id)
        return BrowserSession(id=session_id, debug_url=str(data.get("debugUrl") or ""))

    async def get_debug_url(self, session_id: str) -> str:
        """Fullscreen inspection URL, or "" when it cannot be fetched."""
        try:
            data = await self._request("GET", f"/sessions/{session_id}/debug")
        except SessionError as exc:
            log.warning("debug url unavailable for %s: %s", session_id, exc)
            return ""
        return str(data.get("debuggerFullscreenUrl") or data.get("debuggerUrl") or "")

    async def close_session(self, session_id: str) -> bool:
        """Ask the provider to release a session instead of waiting for its TTL."""
        try:
            await self._request(
                "POST",
                f"/sessions/{session_id}",
                json={"projectId": self.project_id, "status": "REQUEST_RELEASE"},
            )
        except SessionError as exc:
            log.warning("failed to close session %s: %s", session_id, exc)
            return False
        log.info("released browser session %s", session_id)
        return True

    def connect_url(self, session_id: str) -> str:
        """Remote-debugging endpoint used to attach an automation client."""
        self._require_credentials()
        if not session_id:
            raise SessionError("sessionId is required; call createSession first")
        query = urlencode({"apiKey": self.api_key, "sessionId": session_id})
        return f"{self.connect_base}?{query}"
