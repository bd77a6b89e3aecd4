# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Engine that asks the model for one JSON object per turn.

The model answers with either

    {"content": "...", "toolCall": {"name": "...", "args": {...}}}

or

    {"finalAnswer": "..."}

The object is repaired and re-parsed as it streams in, so the user sees the
`content` / `finalAnswer` text grow incrementally rather than raw JSON.
"""

import json
import logging

from typing import Any, Optional

from .base import PrepareRequestContext, ToolCallEngine
from ..llm.base import CompletionChunk
from ..schemas import extract_outermost_json, repair_json_object
from ..tools.base_tool import Tool
from ..types.llm_types import (
    ParsedModelResponse,
    StreamChunkResult,
    StreamProcessingState,
    ToolCall,
    ToolCallEngineType,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_TEMPERATURE = 0.7

STRUCTURED_OUTPUT_INSTRUCTIONS = """When you need to use a tool:
1. Respond with a structured JSON object with the following format:
{
  "content": "Always include a brief, concise message about what you're doing or what information you're providing. Avoid lengthy explanations.",
  "toolCall": {
    "name": "the_exact_tool_name",
    "args": {
      // The arguments as required by the tool's parameter schema
    }
  }
}
IMPORTANT: Always include both "content" and "toolCall" when using a tool. The "content" should be brief but informative.

BAD EXAMPLE - DO NOT DO THIS:
{
  "content": "I'll search for information about recent climate agreements."
}
This is incorrect because it only has "content" without a "toolCall", so I won't know which tool to use or what arguments to pass.

If you want to provide a final answer without calling a tool:
{
  "finalAnswer": "Your complete and helpful response to the user"
}"""


def _visible_text(parsed: dict) -> Optional[str]:
    text = parsed.get("finalAnswer")
    if not isinstance(text, str) or not text:
        text = parsed.get("content")
    return text if isinstance(text, str) else None


def _tool_call_from(parsed: dict, previous: Optional[ToolCall] = None) -> Optional[ToolCall]:
    call = parsed.get("toolCall")
    if not isinstance(call, dict):
        return None
    name = call.get("name")
    if not isinstance(name, str) or not name:
        return None

    args = call.get("args", {})
    parse_error = None
    if args is None:
        args = {}
    elif not isinstance(args, dict):
        parse_error = f"toolCall.args must be an object, got {type(args).__name__}"
        args = {}

    if previous is not None and previous.name == name:
        return previous.model_copy(update={"arguments": args, "parse_error": parse_error})
    return ToolCall(name=name, arguments=args, parse_error=parse_error)


class StructuredOutputsToolCallEngine(ToolCallEngine):

    ENGINE_TYPE = ToolCallEngineType.STRUCTURED_OUTPUTS

    def prepare_prompt(self, instructions: str, tools: list[Tool]) -> str:
        if not tools:
            return instructions

        tools_section = "\n\n".join(
            f"Tool name: {tool.name}\n"
            f"Description: {tool.description}\n"
            f"Parameters: {json.dumps(tool.json_schema(), indent=2)}"
            for tool in tools
        )
        return f"{instructions}\n\nAVAILABLE TOOLS:\n{tools_section}\n\n{STRUCTURED_OUTPUT_INSTRUCTIONS}"

    def prepare_request(self, context: PrepareRequestContext) -> dict[str, Any]:
        params = self.base_request(context, default_temperature=DEFAULT_TEMPERATURE)
        if context.tools:
            params["response_format"] = {"type": "json_object"}
        return params

    def process_chunk(
        self, chunk: CompletionChunk, state: StreamProcessingState
    ) -> StreamChunkResult:
        reasoning = self.consume_common(chunk, state)
        if not chunk.content:
            return StreamChunkResult(reasoning_content=reasoning)

        had_json = "{" in state.content_buffer
        state.content_buffer += chunk.content

        if "{" not in state.content_buffer:
            return StreamChunkResult(content=chunk.content, reasoning_content=reasoning)

        content = ""
        if not had_json:
            # Forward whatever preceded the opening brace in this chunk
            content = chunk.content[: chunk.content.find("{")]

        has_update = False
        parsed = repair_json_object(extract_outermost_json(state.content_buffer) or "")
        if parsed is not None:
            text = _visible_text(parsed)
            if text and text.startswith(state.last_parsed_content):
                content += text[len(state.last_parsed_content) :]
                state.last_parsed_content = text
            elif text:
                # The repaired prefix changed shape; resynchronise without repeating text
                logger.debug("Structured output content diverged from forwarded prefix")
                state.last_parsed_content = text

            previous = state.tool_calls[0] if state.tool_calls else None
            call = _tool_call_from(parsed, previous if isinstance(previous, ToolCall) else None)
            if call is not None and call != previous:
                state.tool_calls = [call]
                has_update = True

        return StreamChunkResult(
            content=content,
            reasoning_content=reasoning,
            tool_calls=[c for c in state.tool_calls if isinstance(c, ToolCall)],
            has_tool_call_update=has_update,
        )

    def finalize(self, state: StreamProcessingState) -> ParsedModelResponse:
        content = state.content_buffer
        tool_calls: list[ToolCall] = []

        json_text = extract_outermost_json(state.content_buffer)
        parsed = repair_json_object(json_text) if json_text else None
        if parsed is None:
            if json_text:
                logger.warning("Failed to parse JSON in final processing, using raw text")
        else:
            previous = state.tool_calls[0] if state.tool_calls else None
            call = _tool_call_from(parsed, previous if isinstance(previous, ToolCall) else None)
            if call is not None:
                tool_calls = [call]
                text = parsed.get("content")
                content = text if isinstance(text, str) else ""
            else:
                text = _visible_text(parsed)
                if text is not None:
                    content = text

        return ParsedModelResponse(
            content=content,
            reasoning_content=state.reasoning_buffer or None,
            tool_calls=tool_calls or None,
            finish_reason=self.final_finish_reason(state, bool(tool_calls)),
        )
