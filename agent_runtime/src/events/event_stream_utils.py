# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Utility functions for working with an event stream.

Note: these are un-optimised folds over the event list that reconstruct
'views' on the session. Sessions hold at most a few thousand events, so this
is not important.
"""

from typing import Optional

from .event_stream import EventStream
from ..types.event_types import EventType, Event


def log_to_stdout(event: Event):
    """Print important events to stdout with clear formatting."""

    max_content_len = 60
    prefix_width = 22

    def truncate(text: str, length: int = max_content_len) -> str:
        """Helper to truncate text and handle newlines"""
        text = text.replace("\n", " ")
        return f"{text[:length]}..." if len(text) > length else text

    def format_output(prefix: str, content: str, metadata: str = "") -> None:
        print(
            f"{prefix:<{prefix_width}s} => {content}{' | ' + metadata if metadata else ''}"
        )

    # Deltas are too noisy for a log; the final messages follow anyway
    if event.type in (
        EventType.ASSISTANT_STREAMING_MESSAGE,
        EventType.ASSISTANT_STREAMING_THINKING_MESSAGE,
        EventType.FINAL_ANSWER_STREAMING,
    ):
        return

    event_content = truncate(str(event.content))
    meta = event.metadata

    if event.type == EventType.TOOL_CALL:
        args = truncate(str(meta.get("arguments", {})))
        format_output(event.type.value, f"{meta.get('name')}, {args}")
    elif event.type == EventType.TOOL_RESULT:
        status = "error" if meta.get("error") else "ok"
        content = f"{meta.get('name')}, {status}, {meta.get('elapsed_ms', 0)}ms, {event_content}"
        format_output(event.type.value, content)
    elif event.type == EventType.SYSTEM:
        format_output(f"system[{meta.get('level')}]", event_content)
    elif event.type == EventType.AGENT_RUN_END:
        content = f"status: {meta.get('status')}, iterations: {meta.get('iterations')}"
        format_output(event.type.value, content, f"{meta.get('elapsed_ms')}ms")
    elif event.type == EventType.PLAN_UPDATE:
        steps = meta.get("steps", [])
        done = sum(1 for s in steps if s.get("done"))
        format_output(event.type.value, f"{done}/{len(steps)} steps done")
    elif event.type == EventType.PLAN_FINISH:
        format_output(event.type.value, truncate(str(meta.get("summary", ""))))
    else:
        format_output(event.type.value, event_content)


def get_latest_user_input(stream: EventStream) -> str:
    """Text of the latest user message, or an empty string."""
    events = stream.get_events([EventType.USER_MESSAGE], limit=1)
    if not events:
        return ""
    content = events[0].content
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            part.get("text", "") for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


def get_tool_call_result_pairs(stream: EventStream) -> list[tuple[Event, Optional[Event]]]:
    """Pair every tool call with its result (None if it has none yet)."""
    results = {
        e.metadata["tool_call_id"]: e
        for e in stream.get_events([EventType.TOOL_RESULT])
    }
    return [
        (call, results.get(call.metadata["tool_call_id"]))
        for call in stream.get_events([EventType.TOOL_CALL])
    ]


def unmatched_tool_calls(stream: EventStream) -> list[Event]:
    """Tool calls that have not (yet) received a result."""
    return [call for call, result in get_tool_call_result_pairs(stream) if result is None]


def get_run_status(stream: EventStream) -> Optional[str]:
    """Status recorded by the latest run-end event, if a run has ended."""
    ends = stream.get_events([EventType.AGENT_RUN_END], limit=1)
    return ends[0].metadata["status"] if ends else None


def get_current_run_events(stream: EventStream) -> list[Event]:
    """Events published since the latest run start (all events if none)."""
    events = stream.get_events()
    for i in range(len(events) - 1, -1, -1):
        if events[i].type == EventType.AGENT_RUN_START:
            return events[i:]
    return events


def called_tool_names(stream: EventStream) -> set[str]:
    """Names of the tools called during the current run."""
    return {
        e.metadata["name"]
        for e in get_current_run_events(stream)
        if e.type == EventType.TOOL_CALL
    }
