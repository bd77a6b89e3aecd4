# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Reconstruction of the chat message history from the event log.

The history is a pure fold over the events, so it never drifts from the
journal. How assistant turns and tool results are rendered depends on the
tool-call engine in use.
"""

import logging

from typing import Any

from ..events import EventStream
from ..tool_call_engine import ToolCallEngine
from ..types.event_types import Event, EventType
from ..types.llm_types import ParsedModelResponse, ToolCall
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)

CANCELLED_RESULT_ERROR = "Tool call was cancelled before it produced a result."


def _tool_result_from_event(event: Event) -> ToolResult:
    error = event.metadata.get("error")
    return ToolResult(
        tool_call_id=event.metadata["tool_call_id"],
        tool_name=event.metadata["name"],
        success=error is None,
        output=event.metadata.get("output", event.content),
        error=error,
        elapsed_ms=event.metadata.get("elapsed_ms", 0),
    )


def _response_from_event(event: Event) -> ParsedModelResponse:
    tool_calls = [
        ToolCall(id=c["id"], name=c["name"], arguments=c.get("arguments") or {})
        for c in event.metadata.get("tool_calls") or []
    ]
    content = event.content if isinstance(event.content, str) else str(event.content)
    return ParsedModelResponse(
        content=content,
        tool_calls=tool_calls or None,
        finish_reason=event.metadata.get("finish_reason") or "stop",
    )


class MessageHistory:

    def __init__(self, event_stream: EventStream, engine: ToolCallEngine):
        self.event_stream = event_stream
        self.engine = engine

    def to_messages(self, system_prompt: str | None = None) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})

        pending_calls: list[ToolCall] = []
        results: list[ToolResult] = []

        def flush_results() -> None:
            nonlocal pending_calls, results
            answered = {r.tool_call_id for r in results}
            for call in pending_calls:
                if call.id not in answered:
                    # Calls interrupted by an abort still need an answer in the history
                    results.append(
                        ToolResult(
                            tool_call_id=call.id,
                            tool_name=call.name,
                            success=False,
                            error=CANCELLED_RESULT_ERROR,
                        )
                    )
            if results:
                messages.extend(self.engine.build_tool_result_messages(results))
            pending_calls, results = [], []

        for event in self.event_stream.get_events():
            if event.type == EventType.TOOL_RESULT:
                results.append(_tool_result_from_event(event))
                continue

            if event.type not in (
                EventType.USER_MESSAGE,
                EventType.ASSISTANT_MESSAGE,
                EventType.ENVIRONMENT_INPUT,
            ):
                continue

            flush_results()
            if event.type == EventType.ASSISTANT_MESSAGE:
                response = _response_from_event(event)
                messages.append(self.engine.build_assistant_message(response))
                pending_calls = list(response.tool_calls or [])
            else:
                messages.append({"role": "user", "content": event.content})

        flush_results()
        return messages
