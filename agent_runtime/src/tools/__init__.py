# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Tool definitions, the tool registry and tool execution.
"""

from .base_tool import (
    Tool,
    ToolRegistry,
    ToolArgumentError,
    tool_registry,
    execute_tool_call,
)
from .calculator import calculator_tool
from .final_answer import final_answer_tool, FINAL_ANSWER_TOOL_NAME

__all__ = [
    "Tool",
    "ToolRegistry",
    "ToolArgumentError",
    "tool_registry",
    "execute_tool_call",
    "calculator_tool",
    "final_answer_tool",
    "FINAL_ANSWER_TOOL_NAME",
]
