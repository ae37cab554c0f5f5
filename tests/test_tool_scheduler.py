import asyncio
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from browsechat.tool_scheduler import ToolCall, ToolResult, ToolScheduler
from browsechat.tools.errors import ToolError


def _call(index: int, name: str = "googleSearch") -> ToolCall:
    return ToolCall(index=index, name=name, args={}, call_id=f"c{index}", label=name)


class TestToolScheduler(unittest.IsolatedAsyncioTestCase):
    async def test_results_follow_call_order(self) -> None:
        async def runner(call: ToolCall) -> dict:
            # later calls finish first
            await asyncio.sleep(0.02 * (3 - call.index))
            return {"content": call.call_id}

        scheduler = ToolScheduler(runner, concurrency=3)
        results = await scheduler.run_batch([_call(0), _call(1), _call(2)])
        self.assertEqual([r.call.call_id for r in results], ["c0", "c1", "c2"])
        self.assertTrue(all(r.ok for r in results))

    async def test_exception_becomes_failed_result(self) -> None:
        async def runner(call: ToolCall) -> dict:
            raise ToolError("Error cloning repository: exit 128")

        results = await ToolScheduler(runner).run_batch([_call(0, "pullRepo")])
        self.assertFalse(results[0].ok)
        self.assertEqual(results[0].payload["content"], "Error cloning repository: exit 128")
        self.assertTrue(results[0].payload["isError"])
        self.assertEqual(results[0].payload["toolName"], "pullRepo")

    async def test_timeout_becomes_failed_result(self) -> None:
        async def runner(call: ToolCall) -> dict:
            await asyncio.sleep(5)
            return {}

        results = await ToolScheduler(runner, timeout=0.05).run_batch([_call(0)])
        self.assertFalse(results[0].ok)
        self.assertIn("timed out", results[0].error or "")

    async def test_one_failure_does_not_affect_others(self) -> None:
        async def runner(call: ToolCall) -> dict:
            if call.index == 1:
                raise RuntimeError("boom")
            return {"content": "fine"}

        results = await ToolScheduler(runner, concurrency=2).run_batch([_call(0), _call(1), _call(2)])
        self.assertEqual([r.ok for r in results], [True, False, True])

    async def test_empty_batch(self) -> None:
        async def runner(call: ToolCall) -> dict:
            return {}

        self.assertEqual(await ToolScheduler(runner).run_batch([]), [])

    def test_ok_payload_is_output(self) -> None:
        result = ToolResult(call=_call(0), ok=True, output={"content": "x"})
        self.assertEqual(result.payload, {"content": "x"})
