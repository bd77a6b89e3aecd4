# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Agent lifecycle hooks.

Hooks are plain objects with async callbacks, registered on an agent and
awaited in registration order. Every callback has a no-op default so a hook
only overrides what it needs.
"""

from __future__ import annotations

import logging

from typing import TYPE_CHECKING, Optional

from .cancellation import CancellationToken, RunCancelled, iterate_with_cancellation
from ..events.event_stream_utils import called_tool_names, get_latest_user_input
from ..schemas import repair_json_object
from ..types.agent_types import LoopTerminationCheckResult
from ..types.event_types import Event
from ..types.llm_types import ToolCall
from ..types.tool_types import ToolResult

if TYPE_CHECKING:
    from .base_agent import Agent

logger = logging.getLogger(__name__)


class AgentHook:

    async def before_loop_start(self, agent: Agent, iteration: int) -> None:
        pass

    async def after_tool_call(
        self, agent: Agent, call: ToolCall, result: ToolResult
    ) -> Optional[ToolResult]:
        """Return a ToolResult to replace the one that will be published."""
        return None

    async def before_loop_termination(
        self, agent: Agent, final_event: Event
    ) -> LoopTerminationCheckResult:
        """Veto termination by returning finished=False with a message for the model."""
        return LoopTerminationCheckResult(finished=True)

    async def loop_end(self, agent: Agent) -> None:
        pass


class RequireToolCallHook(AgentHook):
    """Refuse to let the run finish until a given tool has been called."""

    def __init__(self, tool_name: str, message: Optional[str] = None):
        self.tool_name = tool_name
        self.message = message or (
            f"You must call the `{tool_name}` tool before finishing. "
            f"Please call it now with your complete answer."
        )

    async def before_loop_termination(
        self, agent: Agent, final_event: Event
    ) -> LoopTerminationCheckResult:
        if self.tool_name in called_tool_names(agent.event_stream):
            return LoopTerminationCheckResult(finished=True)
        logger.info(f"Termination vetoed: {self.tool_name} has not been called")
        return LoopTerminationCheckResult(finished=False, message=self.message)


REFLECTION_SYSTEM_PROMPT = """You are a reflection engine that evaluates whether an assistant's response properly addresses the user's query. Your task is to analyze:
1. If the assistant's message clearly indicates that MORE WORK NEEDS TO BE DONE but the conversation is about to end
2. If the assistant mentions "I'll", "I will", "I need to", "Let me", followed by a task that wasn't completed
3. If the assistant mentions using tools or performing actions that weren't executed

Respond ONLY with a JSON object with these fields:
- "shouldContinue": boolean (true if the loop should continue, false if it can terminate)
- "reason": brief explanation of your decision
- "analysis": detailed analysis of why the response is incomplete or complete

Focus specifically on whether the assistant indicates pending tasks in its LAST response."""


class ReflectionHook(AgentHook):
    """
    Ask the model whether a would-be final answer actually finishes the task.

    When the answer announces work that was never done ("Let me check the
    file..."), the hook vetoes termination and the reflection's reason is fed
    back to the agent. Any failure of the reflection request itself lets the
    run terminate.
    """

    def __init__(self, temperature: float = 0.2, max_tokens: int = 500):
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_messages(self, user_content: str, assistant_content: str) -> list[dict]:
        return [
            {"role": "system", "content": REFLECTION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f"USER QUERY:\n{user_content}\n\n"
                    f"ASSISTANT'S FINAL RESPONSE:\n{assistant_content}\n\n"
                    "Should the agent conversation continue or is this a complete response?"
                ),
            },
        ]

    async def before_loop_termination(
        self, agent: Agent, final_event: Event
    ) -> LoopTerminationCheckResult:
        user_content = get_latest_user_input(agent.event_stream)
        if not user_content:
            logger.warning("No user message found for reflection, allowing termination")
            return LoopTerminationCheckResult(finished=True)

        params = {
            "model": agent.model,
            "messages": self.build_messages(user_content, str(final_event.content or "")),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }
        token = agent.cancel_token or CancellationToken()

        logger.info(f"[{agent.session_id}] Performing reflection check")
        try:
            text = ""
            stream = agent.provider.create_streaming_completion(params)
            async for chunk in iterate_with_cancellation(stream, token):
                text += chunk.content
        except RunCancelled:
            logger.info("Reflection aborted")
            return LoopTerminationCheckResult(finished=True)
        except Exception as e:
            logger.error(f"Reflection error: {e}")
            return LoopTerminationCheckResult(finished=True, message=f"Error during reflection: {e}")

        verdict = repair_json_object(text)
        if verdict is None:
            logger.error(f"Failed to parse reflection response: {text!r}")
            return LoopTerminationCheckResult(finished=True, message="Error in reflection process")

        should_continue = verdict.get("shouldContinue") is True
        reason = verdict.get("reason")
        analysis = verdict.get("analysis")
        logger.info(
            f"[{agent.session_id}] Reflection result: "
            f"{'should continue' if should_continue else 'should terminate'}, reason: {reason or 'none given'}"
        )
        return LoopTerminationCheckResult(
            finished=not should_continue,
            message=str(reason) if reason is not None else None,
            analysis=str(analysis) if analysis is not None else None,
        )
