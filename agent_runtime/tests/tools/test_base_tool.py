# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for tool definitions, the registry and tool execution."""
import asyncio

import pytest
from pydantic import BaseModel, Field

from src.agents.cancellation import CancellationToken
from src.tools.base_tool import Tool, ToolArgumentError, ToolRegistry, execute_tool_call
from src.types.errors import DuplicateToolError, RegistryFrozenError
from src.types.llm_types import ToolCall


class GreetArgs(BaseModel):
    name: str = Field(..., description="Who to greet")
    times: int = Field(default=1, ge=1)


def greet(name: str, times: int = 1) -> str:
    """Greet someone."""
    return " ".join([f"hello {name}"] * times)


@pytest.fixture
def greet_tool():
    return Tool.from_function(greet, parameters=GreetArgs)


class TestTool:
    def test_from_function_defaults(self, greet_tool):
        assert greet_tool.name == "greet"
        assert greet_tool.description == "Greet someone."

    def test_definition_contains_schema(self, greet_tool):
        definition = greet_tool.to_definition()
        assert definition["name"] == "greet"
        schema = definition["schema"]
        assert schema["type"] == "object"
        assert "name" in schema["properties"]
        assert schema["required"] == ["name"]

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            Tool(name="  ", function=greet)

    def test_model_validation(self, greet_tool):
        assert greet_tool.validate_arguments({"name": "bob"}) == {"name": "bob", "times": 1}
        with pytest.raises(ToolArgumentError):
            greet_tool.validate_arguments({"times": 2})

    def test_dict_schema_coerces_strings(self):
        tool = Tool(
            name="repeat",
            parameters={
                "type": "object",
                "properties": {"text": {"type": "string"}, "count": {"type": "integer"}},
                "required": ["text"],
            },
            function=lambda text, count=1: text * count,
        )
        assert tool.validate_arguments({"text": "ab", "count": "3"}) == {"text": "ab", "count": 3}
        with pytest.raises(ToolArgumentError):
            tool.validate_arguments({"count": 2})

    @pytest.mark.asyncio
    async def test_run_sync_and_async_functions(self, greet_tool):
        assert await greet_tool.run({"name": "ann", "times": 2}) == "hello ann hello ann"

        async def shout(text: str) -> str:
            return text.upper()

        tool = Tool.from_function(
            shout,
            parameters={"type": "object", "properties": {"text": {"type": "string"}}},
        )
        assert await tool.run({"text": "hey"}) == "HEY"

    @pytest.mark.asyncio
    async def test_cancel_token_is_passed_when_declared(self):
        received = []

        def watcher(cancel_token=None):
            received.append(cancel_token)
            return "ok"

        token = CancellationToken()
        tool = Tool.from_function(watcher)
        await tool.run({}, cancel_token=token)
        assert received == [token]


class TestToolRegistry:
    def test_duplicate_names_rejected(self, greet_tool):
        registry = ToolRegistry([greet_tool])
        with pytest.raises(DuplicateToolError):
            registry.register(Tool.from_function(greet))
        assert registry.names() == ["greet"]

    def test_frozen_registry_rejects_changes(self, greet_tool):
        registry = ToolRegistry()
        with registry.frozen():
            assert registry.is_frozen
            with pytest.raises(RegistryFrozenError):
                registry.register(greet_tool)
            with pytest.raises(RegistryFrozenError):
                registry.unregister("greet")
        assert not registry.is_frozen
        registry.register(greet_tool)
        assert "greet" in registry
        registry.unregister("greet")
        assert len(registry) == 0


class TestExecuteToolCall:
    @pytest.mark.asyncio
    async def test_success(self, greet_tool):
        call = ToolCall(id="c1", name="greet", arguments={"name": "zoe"})
        result = await execute_tool_call(greet_tool, call)
        assert result.success
        assert result.output == "hello zoe"
        assert result.tool_call_id == "c1"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        call = ToolCall(id="c1", name="missing", arguments={})
        result = await execute_tool_call(None, call)
        assert not result.success
        assert "missing" in result.error
        assert result.to_plain_string().startswith("Error: ")

    @pytest.mark.asyncio
    async def test_parse_error_is_reported_without_running(self, greet_tool):
        call = ToolCall(id="c1", name="greet", parse_error="Unterminated string")
        result = await execute_tool_call(greet_tool, call)
        assert not result.success
        assert "Unterminated string" in result.error

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, greet_tool):
        call = ToolCall(id="c1", name="greet", arguments={"times": 0})
        result = await execute_tool_call(greet_tool, call)
        assert not result.success
        assert "Invalid arguments for greet" in result.error

    @pytest.mark.asyncio
    async def test_exception_is_captured(self):
        def explode():
            raise KeyError("nope")

        result = await execute_tool_call(Tool.from_function(explode), ToolCall(name="explode"))
        assert not result.success
        assert result.error.startswith("Tool execution failed: KeyError")

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow():
            await asyncio.sleep(5)

        result = await execute_tool_call(Tool.from_function(slow), ToolCall(name="slow"), timeout=0.05)
        assert not result.success
        assert "timed out" in result.error
