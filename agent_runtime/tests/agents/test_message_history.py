# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from src.agents import MessageHistory
from src.agents.message_history import CANCELLED_RESULT_ERROR
from src.tool_call_engine import NativeToolCallEngine, PromptEngineeringToolCallEngine
from src.types.event_types import EventType


def publish(stream, event_type, content="", **metadata):
    stream.send_event(stream.create_event(event_type, content, **metadata))


def assistant(stream, content, tool_calls=()):
    publish(
        stream,
        EventType.ASSISTANT_MESSAGE,
        content,
        message_id="m",
        tool_calls=[{"id": cid, "name": name, "arguments": {}} for cid, name in tool_calls],
    )


def tool_result(stream, call_id, name, output):
    publish(
        stream,
        EventType.TOOL_RESULT,
        output,
        tool_call_id=call_id,
        name=name,
        elapsed_ms=1,
        output=output,
        error=None,
    )


def test_only_conversation_events_are_folded(event_stream):
    publish(event_stream, EventType.AGENT_RUN_START, session_id="s")
    publish(event_stream, EventType.USER_MESSAGE, "hi")
    publish(event_stream, EventType.SYSTEM, "retrying", level="warning")
    publish(event_stream, EventType.ASSISTANT_STREAMING_MESSAGE, "he", message_id="m", is_complete=False)
    assistant(event_stream, "hello")

    messages = MessageHistory(event_stream, NativeToolCallEngine()).to_messages("sys")
    assert messages == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]


def test_missing_results_get_cancelled_placeholders(event_stream):
    publish(event_stream, EventType.USER_MESSAGE, "go")
    assistant(event_stream, "", [("a", "fast"), ("b", "slow")])
    tool_result(event_stream, "a", "fast", "done")
    publish(event_stream, EventType.USER_MESSAGE, "next")

    messages = MessageHistory(event_stream, NativeToolCallEngine()).to_messages()
    assert [m["role"] for m in messages] == ["user", "assistant", "tool", "tool", "user"]
    assert messages[2] == {"role": "tool", "tool_call_id": "a", "content": "done"}
    assert messages[3]["tool_call_id"] == "b"
    assert messages[3]["content"] == f"Error: {CANCELLED_RESULT_ERROR}"


def test_engine_decides_result_rendering(event_stream):
    publish(event_stream, EventType.USER_MESSAGE, "go")
    assistant(event_stream, "Working", [("a", "calculate")])
    tool_result(event_stream, "a", "calculate", "4")

    messages = MessageHistory(event_stream, PromptEngineeringToolCallEngine()).to_messages()
    assert messages[1] == {"role": "assistant", "content": "Working"}
    assert messages[2] == {"role": "user", "content": "Tool: calculate\nResult:\n4"}
