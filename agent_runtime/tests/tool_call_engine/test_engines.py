# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the native, structured-outputs and prompt-engineering engines."""
import pytest
from pydantic import BaseModel, Field

from src.llm.base import CompletionChunk
from src.tool_call_engine import (
    NativeToolCallEngine,
    PrepareRequestContext,
    PromptEngineeringToolCallEngine,
    StructuredOutputsToolCallEngine,
    ToolCallEngine,
    create_tool_call_engine,
    register_tool_call_engine,
    engine_registry,
)
from src.tools.base_tool import Tool
from src.types.llm_types import ParsedModelResponse, ToolCall, ToolCallEngineType
from src.types.tool_types import ToolResult


class ClickArgs(BaseModel):
    point: str = Field(..., description="Where to click")


@pytest.fixture
def click_tool():
    return Tool(name="click", description="Click the screen", parameters=ClickArgs, function=lambda point: "ok")


def stream(engine: ToolCallEngine, pieces: list[str | CompletionChunk]):
    """Feed chunks to an engine; returns the forwarded text and the final response."""
    state = engine.init_stream_state()
    forwarded = []
    for piece in pieces:
        chunk = piece if isinstance(piece, CompletionChunk) else CompletionChunk(content=piece)
        forwarded.append(engine.process_chunk(chunk, state).content)
    return "".join(forwarded), engine.finalize(state)


class TestNativeEngine:
    def test_request_carries_function_tools(self, click_tool):
        params = NativeToolCallEngine().prepare_request(
            PrepareRequestContext(model="m", messages=[], tools=[click_tool], max_tokens=100)
        )
        assert params["stream"] is True
        assert params["max_tokens"] == 100
        assert "temperature" not in params
        function = params["tools"][0]["function"]
        assert function["name"] == "click"
        assert function["parameters"]["required"] == ["point"]

    def test_no_tools_key_without_tools(self):
        params = NativeToolCallEngine().prepare_request(PrepareRequestContext(model="m", messages=[]))
        assert "tools" not in params

    def test_fragments_accumulate_by_index(self, make_tool_call_chunks):
        engine = NativeToolCallEngine()
        chunks = [CompletionChunk(content="Checking. ")]
        # Two interleaved calls
        first = make_tool_call_chunks("click", '{"point": "1 2"}', call_id="a", index=0)
        second = make_tool_call_chunks("click", '{"point": "3 4"}', call_id="b", index=1)
        for a, b in zip(first[:-1], second[:-1]):
            chunks += [b, a]
        chunks.append(first[-1])

        text, response = stream(engine, chunks)
        assert text == "Checking. "
        assert [c.id for c in response.tool_calls] == ["a", "b"]
        assert [c.arguments for c in response.tool_calls] == [{"point": "1 2"}, {"point": "3 4"}]
        assert response.finish_reason == "tool_calls"

    def test_unparseable_arguments_become_parse_error(self, make_tool_call_chunks):
        _, response = stream(NativeToolCallEngine(), make_tool_call_chunks("click", "[1, 2"))
        call = response.tool_calls[0]
        assert call.arguments == {}
        assert call.parse_error

    def test_reasoning_is_forwarded(self):
        engine = NativeToolCallEngine()
        state = engine.init_stream_state()
        result = engine.process_chunk(CompletionChunk(reasoning_content="hmm"), state)
        assert result.reasoning_content == "hmm"
        engine.process_chunk(CompletionChunk(content="done", finish_reason="stop"), state)
        response = engine.finalize(state)
        assert response.reasoning_content == "hmm"
        assert response.content == "done"
        assert response.tool_calls is None
        assert response.finish_reason == "stop"

    def test_history_messages(self):
        engine = NativeToolCallEngine()
        message = engine.build_assistant_message(
            ParsedModelResponse(content="", tool_calls=[ToolCall(id="c1", name="click", arguments={"point": "1 2"})])
        )
        assert message["tool_calls"][0]["function"]["arguments"] == '{"point": "1 2"}'

        results = engine.build_tool_result_messages(
            [ToolResult(tool_call_id="c1", tool_name="click", success=False, error="bad point")]
        )
        assert results == [{"role": "tool", "tool_call_id": "c1", "content": "Error: bad point"}]


class TestStructuredOutputsEngine:
    def test_prompt_and_request(self, click_tool):
        engine = StructuredOutputsToolCallEngine()
        prompt = engine.prepare_prompt("Be helpful.", [click_tool])
        assert prompt.startswith("Be helpful.")
        assert "AVAILABLE TOOLS:" in prompt
        assert "Tool name: click" in prompt

        params = engine.prepare_request(PrepareRequestContext(model="m", messages=[], tools=[click_tool]))
        assert params["response_format"] == {"type": "json_object"}
        assert params["temperature"] == 0.7

        assert engine.prepare_prompt("Be helpful.", []) == "Be helpful."

    def test_content_split_across_chunks(self):
        text, response = stream(StructuredOutputsToolCallEngine(), ['{"con', 'tent":"hi"}'])
        assert text == "hi"
        assert response.content == "hi"
        assert response.tool_calls is None

    def test_final_answer_streams_incrementally(self):
        engine = StructuredOutputsToolCallEngine()
        state = engine.init_stream_state()
        deltas = [
            engine.process_chunk(CompletionChunk(content=piece), state).content
            for piece in ['{"finalAnswer": "Par', 'is is the', ' capital"}']
        ]
        assert "".join(deltas) == "Paris is the capital"
        assert deltas[0] == "Par"
        assert engine.finalize(state).content == "Paris is the capital"

    def test_tool_call_keeps_its_id_while_streaming(self):
        engine = StructuredOutputsToolCallEngine()
        state = engine.init_stream_state()
        engine.process_chunk(
            CompletionChunk(content='{"content": "Clicking", "toolCall": {"name": "click", "args": {"point": "1'),
            state,
        )
        first_id = state.tool_calls[0].id
        engine.process_chunk(CompletionChunk(content=' 2"}}}'), state)
        response = engine.finalize(state)

        assert response.content == "Clicking"
        assert response.tool_calls[0].id == first_id
        assert response.tool_calls[0].arguments == {"point": "1 2"}
        assert response.finish_reason == "tool_calls"

    def test_text_before_json_is_forwarded(self):
        text, response = stream(StructuredOutputsToolCallEngine(), ['Sure. {"finalAnswer": "42"}'])
        assert text == "Sure. 42"
        assert response.content == "42"

    def test_plain_text_falls_back(self):
        text, response = stream(StructuredOutputsToolCallEngine(), ["no json ", "at all"])
        assert text == "no json at all"
        assert response.content == "no json at all"
        assert response.tool_calls is None

    def test_non_object_args_become_parse_error(self):
        _, response = stream(
            StructuredOutputsToolCallEngine(),
            ['{"content": "x", "toolCall": {"name": "click", "args": "oops"}}'],
        )
        assert response.tool_calls[0].parse_error


class TestPromptEngineeringEngine:
    def test_prompt_documents_tools(self, click_tool):
        prompt = PromptEngineeringToolCallEngine().prepare_prompt("Base.", [click_tool])
        assert "## click" in prompt
        assert "- point (string, required): Where to click" in prompt
        assert "Usage: click(point='...')" in prompt
        assert "Action: tool_name(" in prompt

    def test_marker_is_never_forwarded(self, click_tool):
        engine = PromptEngineeringToolCallEngine()
        engine.prepare_prompt("Base.", [click_tool])
        text, response = stream(
            engine,
            ["I will click the button.\nAct", "ion: cli", "ck(point='<point>892 351</point>')"],
        )
        assert text == "I will click the button.\n"
        assert "Action" not in text
        assert response.content == "I will click the button."
        assert response.tool_calls[0].name == "click"
        assert response.tool_calls[0].arguments == {"start_box": "[0.892,0.351]"}

    def test_held_back_text_released_when_not_a_marker(self, click_tool):
        engine = PromptEngineeringToolCallEngine()
        engine.prepare_prompt("Base.", [click_tool])
        text, response = stream(engine, ["Done.\nAct", "ually, nothing to do."])
        assert text == "Done.\nActually, nothing to do."
        assert response.tool_calls is None

    def test_unknown_tool_name_is_plain_text(self, click_tool):
        engine = PromptEngineeringToolCallEngine()
        engine.prepare_prompt("Base.", [click_tool])
        text, response = stream(engine, ["Action: dance(style='waltz')"])
        assert text == "Action: dance(style='waltz')"
        assert response.tool_calls is None

    def test_marker_must_start_a_line(self, click_tool):
        engine = PromptEngineeringToolCallEngine()
        engine.prepare_prompt("Base.", [click_tool])
        _, response = stream(engine, ["Next Action: click(point='1 1') maybe"])
        assert response.tool_calls is None

    def test_multiple_markers_keep_placeholder_ids(self, click_tool):
        engine = PromptEngineeringToolCallEngine()
        engine.prepare_prompt("Base.", [click_tool])
        state = engine.init_stream_state()
        result = engine.process_chunk(
            CompletionChunk(content="Action: click(point='1 1')\nAction: click(point='2 2')"), state
        )
        ids = [c.id for c in result.tool_calls]
        response = engine.finalize(state)
        assert [c.id for c in response.tool_calls] == ids
        assert [c.arguments["start_box"] for c in response.tool_calls] == ["[0.001,0.001]", "[0.002,0.002]"]

    def test_results_are_user_messages(self):
        messages = PromptEngineeringToolCallEngine().build_tool_result_messages(
            [ToolResult(tool_call_id="c1", tool_name="click", success=True, output="clicked")]
        )
        assert messages == [{"role": "user", "content": "Tool: click\nResult:\nclicked"}]


class TestEngineFactory:
    def test_resolution(self):
        assert isinstance(create_tool_call_engine(None), NativeToolCallEngine)
        assert isinstance(
            create_tool_call_engine(ToolCallEngineType.STRUCTURED_OUTPUTS), StructuredOutputsToolCallEngine
        )
        assert isinstance(create_tool_call_engine("prompt_engineering"), PromptEngineeringToolCallEngine)
        engine = NativeToolCallEngine()
        assert create_tool_call_engine(engine) is engine

    def test_unknown_falls_back_to_native(self, caplog):
        engine = create_tool_call_engine("telepathy")
        assert isinstance(engine, NativeToolCallEngine)
        assert "telepathy" in caplog.text

    def test_register_custom_engine(self):
        class Custom(NativeToolCallEngine):
            pass

        register_tool_call_engine("custom", Custom)
        try:
            assert isinstance(create_tool_call_engine("custom"), Custom)
        finally:
            engine_registry.pop("custom")
