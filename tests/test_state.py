import json
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from browsechat.state import Message, convert_client_messages


class TestMessage(unittest.TestCase):
    def test_assistant_with_tool_calls(self) -> None:
        call = {"id": "c1", "type": "function", "function": {"name": "createSession", "arguments": "{}"}}
        payload = Message("assistant", "", tool_calls=(call,)).as_chat_dict()
        self.assertIsNone(payload["content"])
        self.assertEqual(payload["tool_calls"][0]["id"], "c1")

    def test_tool_message_carries_call_id(self) -> None:
        payload = Message("tool", "{}", tool_call_id="c1").as_chat_dict()
        self.assertEqual(payload, {"role": "tool", "content": "{}", "tool_call_id": "c1"})


class TestConvertClientMessages(unittest.TestCase):
    def test_plain_messages_keep_order(self) -> None:
        messages = convert_client_messages([
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "search for rust async runtimes"},
        ])
        self.assertEqual([m.role for m in messages], ["user", "assistant", "user"])
        self.assertEqual(messages[-1].content, "search for rust async runtimes")

    def test_answered_invocations_become_call_and_result(self) -> None:
        messages = convert_client_messages([
            {"role": "user", "content": "clone it"},
            {
                "role": "assistant",
                "content": "",
                "toolInvocations": [
                    {
                        "toolCallId": "c1",
                        "toolName": "askForConfirmation",
                        "args": {"message": "Clone the repo?"},
                        "state": "result",
                        "result": "Yes, confirmed.",
                    }
                ],
            },
        ])
        self.assertEqual([m.role for m in messages], ["user", "assistant", "tool"])
        call = messages[1].tool_calls[0]
        self.assertEqual(call["function"]["name"], "askForConfirmation")
        self.assertEqual(json.loads(call["function"]["arguments"]), {"message": "Clone the repo?"})
        self.assertEqual(messages[2].tool_call_id, "c1")
        self.assertEqual(messages[2].content, "Yes, confirmed.")

    def test_structured_result_is_json_encoded(self) -> None:
        messages = convert_client_messages([
            {
                "role": "assistant",
                "content": "Session ready.",
                "toolInvocations": [
                    {"toolCallId": "c9", "toolName": "createSession", "args": {}, "result": {"sessionId": "s1"}}
                ],
            }
        ])
        self.assertEqual(json.loads(messages[1].content), {"sessionId": "s1"})

    def test_unanswered_invocations_are_dropped(self) -> None:
        messages = convert_client_messages([
            {
                "role": "assistant",
                "content": "Let me check.",
                "toolInvocations": [{"toolCallId": "c1", "toolName": "askForConfirmation", "args": {}}],
            }
        ])
        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0].tool_calls, ())

    def test_unknown_roles_are_skipped(self) -> None:
        messages = convert_client_messages([{"role": "data", "content": "x"}, {"role": "user", "content": "y"}])
        self.assertEqual([m.content for m in messages], ["y"])


class TestMessageShape(unittest.TestCase):
    def test_chat_dict_has_only_wire_fields(self) -> None:
        payload = Message("user", "hi").as_chat_dict()
        self.assertEqual(payload, {"role": "user", "content": "hi"})
        self.assertFalse(hasattr(Message("user", "hi"), "metadata"))
