# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import time
import asyncio
import inspect
import logging

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Type, Union
from pydantic import BaseModel, Field, PrivateAttr, ValidationError, field_validator

from ..schemas import model_to_json_schema, coerce_value
from ..types.errors import DuplicateToolError, RegistryFrozenError
from ..types.llm_types import ToolCall
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _empty_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


class ToolArgumentError(ValueError):
    """Raised when tool arguments do not satisfy the tool's parameters."""


class Tool(BaseModel):
    """
    A tool the model may call.

    The parameters are either a pydantic model class, in which case arguments
    are validated against it, or a plain JSON-schema dict, in which case only
    required keys are checked and string values are coerced to the declared
    types. The function may be sync or async, and receives the validated
    arguments as keyword arguments. If it declares a `cancel_token` parameter
    it is also handed the run's cancellation token.
    """

    name: str
    description: str = ""
    parameters: Union[Type[BaseModel], dict[str, Any]] = Field(default_factory=_empty_schema)
    function: Callable[..., Any]

    _accepts_cancel_token: bool = PrivateAttr(default=False)

    class Config:
        arbitrary_types_allowed = True

    def model_post_init(self, __context: Any) -> None:
        try:
            params = inspect.signature(self.function).parameters
            self._accepts_cancel_token = "cancel_token" in params
        except (TypeError, ValueError):
            self._accepts_cancel_token = False

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Tool name must be a non-empty string")
        return v

    @classmethod
    def from_function(
        cls,
        function: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
        parameters: Type[BaseModel] | dict[str, Any] | None = None,
    ) -> "Tool":
        """Build a tool from a callable, defaulting name and description from it."""
        return cls(
            name=name or function.__name__,
            description=description or inspect.getdoc(function) or "",
            parameters=parameters if parameters is not None else _empty_schema(),
            function=function,
        )

    def json_schema(self) -> dict[str, Any]:
        """The JSON schema of the tool's parameters."""
        if isinstance(self.parameters, type) and issubclass(self.parameters, BaseModel):
            return model_to_json_schema(self.parameters)
        return dict(self.parameters)

    def to_definition(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "schema": self.json_schema()}

    def validate_arguments(self, args: dict[str, Any]) -> dict[str, Any]:
        if isinstance(self.parameters, type) and issubclass(self.parameters, BaseModel):
            try:
                return self.parameters.model_validate(args).model_dump()
            except ValidationError as e:
                raise ToolArgumentError(f"Invalid arguments for {self.name}: {e}") from e

        schema = self.parameters
        properties = schema.get("properties") or {}
        missing = [k for k in schema.get("required") or [] if k not in args]
        if missing:
            raise ToolArgumentError(
                f"Missing required arguments for {self.name}: {', '.join(missing)}"
            )
        return {k: coerce_value(v, properties.get(k)) for k, v in args.items()}

    async def run(self, args: dict[str, Any], cancel_token: Any = None) -> Any:
        validated = self.validate_arguments(args)
        if self._accepts_cancel_token:
            validated["cancel_token"] = cancel_token
        result = self.function(**validated)
        if inspect.isawaitable(result):
            result = await result
        return result


class ToolRegistry:
    """Name-keyed tool registry.

    Registration rejects duplicates. The registry is frozen for the duration
    of a run; mutating it while frozen raises RegistryFrozenError.
    """

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        self._frozen = 0
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> Tool:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register {tool.name}: registry is frozen")
        if tool.name in self._tools:
            raise DuplicateToolError(f"A tool named {tool.name!r} is already registered")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool {tool.name}")
        return tool

    def unregister(self, name: str) -> None:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot unregister {name}: registry is frozen")
        self._tools.pop(name, None)

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    @property
    def is_frozen(self) -> bool:
        return self._frozen > 0

    @contextmanager
    def frozen(self) -> Iterator["ToolRegistry"]:
        self._frozen += 1
        try:
            yield self
        finally:
            self._frozen -= 1

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self.tools())


# Process-wide registry, shared (read-only during runs) by every session
tool_registry = ToolRegistry()


async def execute_tool_call(
    tool: Tool | None,
    call: ToolCall,
    cancel_token: Any = None,
    timeout: float | None = None,
) -> ToolResult:
    """Run a tool call and capture every failure in the ToolResult.

    Nothing but task cancellation propagates out of this function.
    """
    if tool is None:
        return ToolResult(
            tool_call_id=call.id,
            tool_name=call.name,
            success=False,
            error=f"Tool {call.name} is not available in your current tool set.",
        )

    if call.parse_error:
        logger.error(f"Tool parse error: {call.parse_error}")
        return ToolResult(
            tool_call_id=call.id,
            tool_name=call.name,
            success=False,
            error=f"This tool call could not be parsed: {call.parse_error}",
        )

    start_time = time.perf_counter()
    try:
        async with asyncio.timeout(timeout):
            output = await tool.run(call.arguments, cancel_token=cancel_token)
        return ToolResult(
            tool_call_id=call.id,
            tool_name=call.name,
            success=True,
            output=output,
            elapsed_ms=int((time.perf_counter() - start_time) * 1000),
        )
    except TimeoutError:
        error = f"Tool {call.name} timed out after {timeout}s"
    except ToolArgumentError as e:
        error = str(e)
    except Exception as e:
        logger.info(f"Tool {call.name} failed: {e}")
        error = f"Tool execution failed: {type(e).__name__}: {e}"

    return ToolResult(
        tool_call_id=call.id,
        tool_name=call.name,
        success=False,
        error=error,
        elapsed_ms=int((time.perf_counter() - start_time) * 1000),
    )
