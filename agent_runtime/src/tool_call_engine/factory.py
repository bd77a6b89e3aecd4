# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from typing import Callable

from .base import ToolCallEngine
from .native import NativeToolCallEngine
from .prompt_engineering import PromptEngineeringToolCallEngine
from .structured_outputs import StructuredOutputsToolCallEngine
from ..types.llm_types import ToolCallEngineType

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], ToolCallEngine]

# Name -> factory. Custom engines may be added with register_tool_call_engine.
engine_registry: dict[str, EngineFactory] = {
    ToolCallEngineType.NATIVE.value: NativeToolCallEngine,
    ToolCallEngineType.STRUCTURED_OUTPUTS.value: StructuredOutputsToolCallEngine,
    ToolCallEngineType.PROMPT_ENGINEERING.value: PromptEngineeringToolCallEngine,
}


def register_tool_call_engine(name: str, factory: EngineFactory) -> None:
    if name in engine_registry:
        logger.warning(f"Replacing tool call engine {name}")
    engine_registry[name] = factory


def create_tool_call_engine(
    kind: ToolCallEngineType | str | ToolCallEngine | None = None,
) -> ToolCallEngine:
    """Resolve an engine by type or name, falling back to native."""
    if isinstance(kind, ToolCallEngine):
        return kind
    if kind is None:
        return NativeToolCallEngine()

    name = kind.value if isinstance(kind, ToolCallEngineType) else str(kind)
    factory = engine_registry.get(name)
    if factory is None:
        logger.warning(f"Unknown tool call engine {name!r}, falling back to native")
        return NativeToolCallEngine()
    return factory()
