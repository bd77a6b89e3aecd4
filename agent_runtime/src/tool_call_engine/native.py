# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Engine for providers with first-class function calling."""

import json
import logging

from typing import Any

from .base import PrepareRequestContext, ToolCallEngine
from ..llm.base import CompletionChunk
from ..schemas import parse_tool_arguments
from ..tools.base_tool import Tool
from ..types.llm_types import (
    ParsedModelResponse,
    StreamChunkResult,
    StreamProcessingState,
    ToolCall,
    ToolCallAccumulator,
    ToolCallEngineType,
    generate_tool_call_id,
)
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class NativeToolCallEngine(ToolCallEngine):

    ENGINE_TYPE = ToolCallEngineType.NATIVE

    def prepare_prompt(self, instructions: str, tools: list[Tool]) -> str:
        # Tools travel in the request body, not the prompt
        return instructions

    def prepare_request(self, context: PrepareRequestContext) -> dict[str, Any]:
        params = self.base_request(context)
        if context.tools:
            params["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.json_schema(),
                    },
                }
                for tool in context.tools
            ]
        return params

    def process_chunk(
        self, chunk: CompletionChunk, state: StreamProcessingState
    ) -> StreamChunkResult:
        reasoning = self.consume_common(chunk, state)
        state.content_buffer += chunk.content

        has_update = False
        for delta in chunk.tool_calls:
            acc = next(
                (a for a in state.tool_calls if isinstance(a, ToolCallAccumulator) and a.index == delta.index),
                None,
            )
            if acc is None:
                acc = ToolCallAccumulator(index=delta.index)
                state.tool_calls.append(acc)
            if delta.id and not acc.id:
                acc.id = delta.id
            if delta.name and not acc.name:
                acc.name = delta.name
            acc.arguments += delta.arguments
            has_update = True

        return StreamChunkResult(
            content=chunk.content,
            reasoning_content=reasoning,
            has_tool_call_update=has_update,
        )

    def finalize(self, state: StreamProcessingState) -> ParsedModelResponse:
        tool_calls = []
        accumulators = sorted(
            (a for a in state.tool_calls if isinstance(a, ToolCallAccumulator)),
            key=lambda a: a.index,
        )
        for acc in accumulators:
            arguments, error = parse_tool_arguments(acc.arguments)
            if error:
                logger.warning(f"Could not parse arguments for {acc.name}: {error}")
            tool_calls.append(
                ToolCall(
                    id=acc.id or generate_tool_call_id(),
                    name=acc.name,
                    arguments=arguments,
                    parse_error=error,
                )
            )

        return ParsedModelResponse(
            content=state.content_buffer,
            reasoning_content=state.reasoning_buffer or None,
            tool_calls=tool_calls or None,
            finish_reason=self.final_finish_reason(state, bool(tool_calls)),
        )

    def build_assistant_message(self, response: ParsedModelResponse) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "assistant", "content": response.content or ""}
        if response.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments, ensure_ascii=False),
                    },
                }
                for call in response.tool_calls
            ]
        return message

    def build_tool_result_messages(self, results: list[ToolResult]) -> list[dict[str, Any]]:
        return [
            {"role": "tool", "tool_call_id": result.tool_call_id, "content": result.to_plain_string()}
            for result in results
        ]
