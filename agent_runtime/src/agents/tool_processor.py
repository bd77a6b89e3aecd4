# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Dispatch of the tool calls of one model turn.

All tool_call events are published first, the calls then run concurrently,
and the tool_result events are published in call order once every call has
settled, including when the run is aborted mid-dispatch.
"""

from __future__ import annotations

import time
import asyncio
import logging

from typing import TYPE_CHECKING, Optional

from .cancellation import CancellationToken, RunCancelled
from ..tools.base_tool import Tool, execute_tool_call
from ..types.event_types import EventType
from ..types.llm_types import ToolCall
from ..types.tool_types import ToolResult

if TYPE_CHECKING:
    from .base_agent import Agent

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _publish_call(agent: Agent, call: ToolCall, tool: Optional[Tool]) -> None:
    metadata = {
        "tool_call_id": call.id,
        "name": call.name,
        "arguments": call.arguments,
        "start_time": int(time.time() * 1000),
    }
    if tool is not None:
        metadata["tool"] = tool.to_definition()
    agent.event_stream.send_event(
        agent.event_stream.create_event(EventType.TOOL_CALL, **metadata)
    )


def _publish_result(agent: Agent, result: ToolResult) -> None:
    agent.event_stream.send_event(
        agent.event_stream.create_event(
            EventType.TOOL_RESULT,
            result.to_plain_string(),
            tool_call_id=result.tool_call_id,
            name=result.tool_name,
            elapsed_ms=result.elapsed_ms,
            output=result.output_json(),
            error=result.error,
        )
    )


async def _apply_after_hooks(agent: Agent, call: ToolCall, result: ToolResult) -> ToolResult:
    for hook in agent.hooks:
        try:
            replacement = await hook.after_tool_call(agent, call, result)
        except Exception as e:
            logger.error(f"after_tool_call hook {type(hook).__name__} failed: {e}")
            continue
        if isinstance(replacement, ToolResult):
            result = replacement
    return result


async def process_tool_calls(
    agent: Agent,
    calls: list[ToolCall],
    tools: dict[str, Tool],
    token: CancellationToken,
    timeout: Optional[float] = None,
) -> list[ToolResult]:
    """
    Execute the calls of one turn and publish their events.

    An abort does not interrupt calls that are already running: tools that
    honour the cancel token can return early, the rest run to completion.

    Raises:
        RunCancelled: if the run was aborted during dispatch. The results of
            every call are published first, so no model request follows.
    """
    for call in calls:
        _publish_call(agent, call, tools.get(call.name))

    tasks = [
        asyncio.ensure_future(execute_tool_call(tools.get(call.name), call, token, timeout))
        for call in calls
    ]
    try:
        await asyncio.wait(tasks)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.wait(tasks)
        raise

    results = []
    for call, task in zip(calls, tasks):
        result = await _apply_after_hooks(agent, call, task.result())
        _publish_result(agent, result)
        results.append(result)

    if token.cancelled:
        logger.info(f"Run aborted during tool dispatch; {len(calls)} calls allowed to settle")
        raise RunCancelled(token.reason)
    return results
