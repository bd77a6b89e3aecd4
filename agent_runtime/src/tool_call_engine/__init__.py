# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .base import PrepareRequestContext, ToolCallEngine
from .native import NativeToolCallEngine
from .structured_outputs import StructuredOutputsToolCallEngine
from .prompt_engineering import PromptEngineeringToolCallEngine
from .action_parser import parse_action
from .factory import create_tool_call_engine, register_tool_call_engine, engine_registry

__all__ = [
    "PrepareRequestContext",
    "ToolCallEngine",
    "NativeToolCallEngine",
    "StructuredOutputsToolCallEngine",
    "PromptEngineeringToolCallEngine",
    "parse_action",
    "create_tool_call_engine",
    "register_tool_call_engine",
    "engine_registry",
]
