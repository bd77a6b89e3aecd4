# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The tool-call engine interface.

An engine owns everything that depends on the tool calling convention: how
tools are advertised in the prompt, how the request is shaped, how streamed
chunks are turned into content and tool calls, and how turns are written back
into the message history.
"""

import logging

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional
from dataclasses import dataclass, field

from ..llm.base import CompletionChunk
from ..tools.base_tool import Tool
from ..types.llm_types import (
    ParsedModelResponse,
    StopReason,
    StreamChunkResult,
    StreamProcessingState,
    ToolCallEngineType,
)
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


@dataclass
class PrepareRequestContext:
    """Inputs for building one provider request."""

    model: str
    messages: list[dict[str, Any]]
    tools: list[Tool] = field(default_factory=list)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class ToolCallEngine(ABC):

    ENGINE_TYPE: ClassVar[ToolCallEngineType]

    @abstractmethod
    def prepare_prompt(self, instructions: str, tools: list[Tool]) -> str:
        """Augment the system instructions with whatever the convention needs."""
        pass

    @abstractmethod
    def prepare_request(self, context: PrepareRequestContext) -> dict[str, Any]:
        pass

    def init_stream_state(self) -> StreamProcessingState:
        return StreamProcessingState()

    @abstractmethod
    def process_chunk(
        self, chunk: CompletionChunk, state: StreamProcessingState
    ) -> StreamChunkResult:
        """Fold one chunk into the state and return the user-visible deltas.

        Must not raise on malformed model output.
        """
        pass

    @abstractmethod
    def finalize(self, state: StreamProcessingState) -> ParsedModelResponse:
        """Turn the accumulated buffers into the final parsed response.

        Raises:
            ToolCallEngineError: only when the buffer cannot be recovered at
                all; the loop then keeps the raw text as a content-only turn.
        """
        pass

    def build_assistant_message(self, response: ParsedModelResponse) -> dict[str, Any]:
        return {"role": "assistant", "content": response.content or ""}

    def build_tool_result_messages(self, results: list[ToolResult]) -> list[dict[str, Any]]:
        """Results as plain user messages, for engines without a tool role."""
        return [
            {
                "role": "user",
                "content": f"Tool: {result.tool_name}\nResult:\n{result.to_plain_string()}",
            }
            for result in results
        ]

    # Shared helpers ==========================================================

    @staticmethod
    def consume_common(chunk: CompletionChunk, state: StreamProcessingState) -> str:
        """Record the finish reason and reasoning delta of a chunk.

        Returns the reasoning delta, which every engine forwards unchanged.
        """
        if chunk.finish_reason:
            state.finish_reason = chunk.finish_reason
        if chunk.reasoning_content:
            state.reasoning_buffer += chunk.reasoning_content
        return chunk.reasoning_content

    @staticmethod
    def final_finish_reason(state: StreamProcessingState, has_tool_calls: bool) -> str:
        if has_tool_calls:
            return StopReason.TOOL_CALLS.value
        return state.finish_reason or StopReason.STOP.value

    @staticmethod
    def base_request(context: PrepareRequestContext, default_temperature: float | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": context.model,
            "messages": context.messages,
            "stream": True,
        }
        temperature = context.temperature if context.temperature is not None else default_temperature
        if temperature is not None:
            params["temperature"] = temperature
        if context.max_tokens is not None:
            params["max_tokens"] = context.max_tokens
        return params
