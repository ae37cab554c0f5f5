from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

log = logging.getLogger("browsechat.scheduler")


@dataclass(frozen=True)
class ToolCall:
    index: int
    name: str
    args: dict[str, object]
    call_id: str
    label: str


@dataclass(frozen=True)
class ToolResult:
    call: ToolCall
    ok: bool
    output: dict[str, Any] = field(default_factory=dict)
    duration: float = 0.0
    error: str | None = None

    @property
    def payload(self) -> dict[str, Any]:
        """The mapping handed back to the model and the client."""
        if self.ok:
            return self.output
        return {"toolName": self.call.label, "content": self.error or "Tool failed", "isError": True}

    @classmethod
    def failed(cls, call: ToolCall, error: str) -> "ToolResult":
        return cls(call=call, ok=False, error=error)


class ToolScheduler:
    """Run a batch of tool calls and return one result per call, in call order.

    The runner may raise; any exception (including a timeout) becomes a failed
    :class:`ToolResult` so the stream always gets an answer for every call.
    """

    def __init__(
        self,
        runner: Callable[[ToolCall], Awaitable[dict[str, Any]]],
        *,
        concurrency: int = 1,
        timeout: float | None = None,
    ) -> None:
        self.runner = runner
        self.concurrency = max(1, min(concurrency, 4))
        self.timeout = timeout

    async def run_batch(self, calls: list[ToolCall]) -> list[ToolResult]:
        if not calls:
            return []
        queue: asyncio.Queue[ToolCall] = asyncio.Queue()
        results: dict[int, ToolResult] = {}
        for call in calls:
            queue.put_nowait(call)
            log.info("queued [%s] %s", call.name, self._format_args(call.args))

        workers = [asyncio.create_task(self._worker(queue, results)) for _ in range(self.concurrency)]
        try:
            await queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
        return [results[call.index] for call in calls if call.index in results]

    async def _worker(self, queue: asyncio.Queue[ToolCall], results: dict[int, ToolResult]) -> None:
        while True:
            call = await queue.get()
            try:
                results[call.index] = await self._run(call)
            finally:
                queue.task_done()

    async def _run(self, call: ToolCall) -> ToolResult:
        start = time.monotonic()
        log.info("running [%s] %s", call.name, call.call_id)
        try:
            if self.timeout:
                output = await asyncio.wait_for(self.runner(call), timeout=self.timeout)
            else:
                output = await self.runner(call)
        except asyncio.TimeoutError:
            duration = time.monotonic() - start
            log.warning("timeout [%s] %.2fs", call.name, duration)
            return ToolResult(
                call=call,
                ok=False,
                duration=duration,
                error=f"{call.label}: timed out after {self.timeout:g}s",
            )
        except Exception as exc:  # noqa: BLE001
            duration = time.monotonic() - start
            log.warning("fail [%s] %.2fs (%s)", call.name, duration, type(exc).__name__)
            return ToolResult(call=call, ok=False, duration=duration, error=str(exc) or type(exc).__name__)
        duration = time.monotonic() - start
        log.info("success [%s] %.2fs", call.name, duration)
        return ToolResult(call=call, ok=True, output=output, duration=duration)

    def _format_args(self, args: dict[str, object]) -> str:
        try:
            return json.dumps(args, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(args)
