# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Engine for models without function calling or JSON mode.

Tools are described in the system prompt in pseudo-function form and the
model invokes them by writing marker lines such as

    Action: search(query='weather in Paris')

Markers are detected across chunk boundaries. The text shown to the user
never contains a marker: a trailing line that may still turn into one is
held back until it is resolved.
"""

import re
import logging

from typing import Any, Optional

from .action_parser import ACTION_PREFIX, DEFAULT_FACTORS, parse_action
from .base import PrepareRequestContext, ToolCallEngine
from ..llm.base import CompletionChunk
from ..schemas import format_call_signature, format_parameters
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

_MARKER_RE = re.compile(r"^[ \t]*" + re.escape(ACTION_PREFIX) + r"[ \t]*", re.MULTILINE)
_NAME_RE = re.compile(r"([A-Za-z_][\w.]*)\s*\(")
_PARTIAL_NAME_RE = re.compile(r"[A-Za-z_][\w.]*\s*")


class PromptEngineeringToolCallEngine(ToolCallEngine):

    ENGINE_TYPE = ToolCallEngineType.PROMPT_ENGINEERING

    def __init__(self, factors: tuple[float, float] = DEFAULT_FACTORS):
        self.factors = factors
        self._tool_names: set[str] = set()

    def prepare_prompt(self, instructions: str, tools: list[Tool]) -> str:
        self._tool_names = {tool.name for tool in tools}
        if not tools:
            return instructions

        tool_docs = []
        for tool in tools:
            schema = tool.json_schema()
            tool_docs.append(
                f"## {tool.name}\n"
                f"{tool.description}\n\n"
                f"Parameters:\n{format_parameters(schema)}\n\n"
                f"Usage: {format_call_signature(tool.name, schema)}"
            )

        return f"""{instructions}

You have access to the following tools:

{chr(10).join(tool_docs)}

To call a tool, write a line of the form:
{ACTION_PREFIX} tool_name(param='value', other_param='value')

Rules for tool calls:
- Put each call on its own line, starting with "{ACTION_PREFIX}".
- Quote every value with single quotes. Write newlines inside values as \\n and escape quotes as \\'.
- Only call the tools listed above, with their exact names.
- Stop writing after your last {ACTION_PREFIX} line and wait for the results.
- When you have the final answer, reply normally without any {ACTION_PREFIX} line."""

    def prepare_request(self, context: PrepareRequestContext) -> dict[str, Any]:
        if context.tools:
            self._tool_names = {tool.name for tool in context.tools}
        return self.base_request(context)

    def _is_known(self, name: str) -> bool:
        return not self._tool_names or name in self._tool_names

    def _scan(self, text: str) -> tuple[list[tuple[int, str]], Optional[int]]:
        """
        Find the complete markers in the text, and the position from which
        text must be held back because it may still become a marker.
        """
        markers: list[tuple[int, str]] = []
        for match in _MARKER_RE.finditer(text):
            rest = text[match.end() :]
            name_match = _NAME_RE.match(rest)
            if name_match:
                if self._is_known(name_match.group(1)):
                    markers.append((match.start(), name_match.group(1)))
                continue
            if "\n" not in rest and (not rest or _PARTIAL_NAME_RE.fullmatch(rest)):
                return markers, match.start()

        last_line_start = text.rfind("\n") + 1
        last_line = text[last_line_start:].lstrip()
        if last_line and ACTION_PREFIX.startswith(last_line):
            return markers, last_line_start
        return markers, None

    def process_chunk(
        self, chunk: CompletionChunk, state: StreamProcessingState
    ) -> StreamChunkResult:
        reasoning = self.consume_common(chunk, state)
        if not chunk.content:
            return StreamChunkResult(reasoning_content=reasoning)

        state.content_buffer += chunk.content
        markers, hold_from = self._scan(state.content_buffer)

        visible_end = len(state.content_buffer)
        if markers:
            visible_end = markers[0][0]
        elif hold_from is not None:
            visible_end = hold_from

        content = ""
        if visible_end > state.forwarded_length:
            content = state.content_buffer[state.forwarded_length : visible_end]
            state.forwarded_length = visible_end

        has_update = False
        if markers and len(markers) > len(state.tool_calls):
            for _, name in markers[len(state.tool_calls) :]:
                state.tool_calls.append(ToolCall(name=name))
            has_update = True

        return StreamChunkResult(
            content=content,
            reasoning_content=reasoning,
            tool_calls=[c for c in state.tool_calls if isinstance(c, ToolCall)],
            has_tool_call_update=has_update,
        )

    def finalize(self, state: StreamProcessingState) -> ParsedModelResponse:
        text = state.content_buffer
        markers, _ = self._scan(text)
        if not markers:
            return ParsedModelResponse(
                content=text.strip(),
                reasoning_content=state.reasoning_buffer or None,
                finish_reason=self.final_finish_reason(state, False),
            )

        placeholders = [c for c in state.tool_calls if isinstance(c, ToolCall)]
        tool_calls = []
        for i, (start, name) in enumerate(markers):
            end = markers[i + 1][0] if i + 1 < len(markers) else len(text)
            parsed = parse_action(text[start:end], self.factors)
            call_id = placeholders[i].id if i < len(placeholders) else None
            if parsed is None:
                call = ToolCall(name=name, parse_error=f"Could not parse action for {name}")
            else:
                call = ToolCall(name=parsed["action_type"], arguments=parsed["action_inputs"])
            if call_id:
                call = call.model_copy(update={"id": call_id})
            tool_calls.append(call)

        logger.info(f"Parsed {len(tool_calls)} action(s): {', '.join(c.name for c in tool_calls)}")
        return ParsedModelResponse(
            content=text[: markers[0][0]].strip(),
            reasoning_content=state.reasoning_buffer or None,
            tool_calls=tool_calls,
            finish_reason=self.final_finish_reason(state, True),
        )
