# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from src.events.event_stream_utils import (
    called_tool_names,
    get_current_run_events,
    get_latest_user_input,
    get_run_status,
    get_tool_call_result_pairs,
    log_to_stdout,
    unmatched_tool_calls,
)
from src.types.event_types import EventType


def publish(stream, event_type, content="", **metadata):
    stream.send_event(stream.create_event(event_type, content, **metadata))


def call(stream, call_id, name):
    publish(stream, EventType.TOOL_CALL, tool_call_id=call_id, name=name, arguments={})


def result(stream, call_id, name):
    publish(stream, EventType.TOOL_RESULT, "ok", tool_call_id=call_id, name=name, elapsed_ms=3)


def test_latest_user_input_joins_text_parts(event_stream):
    assert get_latest_user_input(event_stream) == ""
    publish(event_stream, EventType.USER_MESSAGE, "first")
    publish(
        event_stream,
        EventType.USER_MESSAGE,
        [
            {"type": "text", "text": "describe"},
            {"type": "image_url", "image_url": {"url": "data:..."}},
            {"type": "text", "text": "this"},
        ],
    )
    assert get_latest_user_input(event_stream) == "describe\nthis"


def test_tool_call_pairs_and_unmatched(event_stream):
    call(event_stream, "c1", "calculator")
    call(event_stream, "c2", "final_answer")
    result(event_stream, "c1", "calculator")

    pairs = get_tool_call_result_pairs(event_stream)
    assert [(c.metadata["tool_call_id"], r is not None) for c, r in pairs] == [
        ("c1", True),
        ("c2", False),
    ]
    assert [e.metadata["tool_call_id"] for e in unmatched_tool_calls(event_stream)] == ["c2"]


def test_called_tool_names_is_scoped_to_current_run(event_stream):
    publish(event_stream, EventType.AGENT_RUN_START, session_id="s")
    call(event_stream, "c1", "final_answer")
    publish(event_stream, EventType.AGENT_RUN_START, session_id="s")
    call(event_stream, "c2", "calculator")

    assert called_tool_names(event_stream) == {"calculator"}
    assert get_current_run_events(event_stream)[0].type == EventType.AGENT_RUN_START
    assert len(get_current_run_events(event_stream)) == 2


def test_run_status(event_stream):
    assert get_run_status(event_stream) is None
    publish(
        event_stream,
        EventType.AGENT_RUN_END,
        session_id="s",
        iterations=1,
        elapsed_ms=10,
        status="success",
    )
    assert get_run_status(event_stream) == "success"


def test_log_to_stdout_skips_deltas(event_stream, capsys):
    event_stream.subscribe(log_to_stdout)
    publish(
        event_stream,
        EventType.ASSISTANT_STREAMING_MESSAGE,
        "partial",
        message_id="m",
        is_complete=False,
    )
    call(event_stream, "c1", "calculator")
    result(event_stream, "c1", "calculator")

    out = capsys.readouterr().out
    assert "partial" not in out
    assert "tool_call" in out
    assert "calculator, ok, 3ms" in out
