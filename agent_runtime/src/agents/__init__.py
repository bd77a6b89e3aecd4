# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .base_agent import Agent
from .hooks import AgentHook, ReflectionHook, RequireToolCallHook
from .cancellation import CancellationToken, RunCancelled, iterate_with_cancellation
from .message_history import MessageHistory
from .llm_processor import LLMProcessor
from .tool_processor import process_tool_calls

__all__ = [
    "Agent",
    "AgentHook",
    "ReflectionHook",
    "RequireToolCallHook",
    "CancellationToken",
    "RunCancelled",
    "iterate_with_cancellation",
    "MessageHistory",
    "LLMProcessor",
    "process_tool_calls",
]
