# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import time
import random
import string

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field
from dataclasses import dataclass, field


class ToolCallEngineType(str, Enum):
    """The tool calling convention a provider is driven with.

    NATIVE uses the provider's own tool-call field. STRUCTURED_OUTPUTS asks
    for a single JSON object per turn. PROMPT_ENGINEERING asks for
    pseudo-function call markers embedded in free text.
    """

    NATIVE = "native"
    STRUCTURED_OUTPUTS = "structured_outputs"
    PROMPT_ENGINEERING = "prompt_engineering"


class StopReason(str, Enum):
    """Normalised finish reasons (OpenAI vocabulary)."""

    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


def _random_suffix(n: int = 5) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=n))


def generate_tool_call_id() -> str:
    return f"call_{int(time.time() * 1000)}_{_random_suffix()}"


def generate_message_id() -> str:
    return f"msg_{int(time.time() * 1000)}_{_random_suffix()}"


class ToolCallDelta(BaseModel):
    """A fragment of a native tool call, as found in one streamed chunk."""

    index: int = 0
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: str = ""


class ToolCall(BaseModel):
    """A fully parsed tool invocation requested by the model."""

    id: str = Field(default_factory=generate_tool_call_id)
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    parse_error: Optional[str] = None

    def to_event_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}


class ParsedModelResponse(BaseModel):
    """The normalised result of one model turn, whatever the engine."""

    content: str = ""
    reasoning_content: Optional[str] = None
    tool_calls: Optional[list[ToolCall]] = None
    finish_reason: str = StopReason.STOP.value

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class StreamChunkResult(BaseModel):
    """What an engine extracted from a single streamed chunk."""

    content: str = ""
    reasoning_content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    has_tool_call_update: bool = False


@dataclass
class ToolCallAccumulator:
    """Native tool call fragments collected for one tool-call index."""

    index: int
    id: Optional[str] = None
    name: str = ""
    arguments: str = ""


@dataclass
class StreamProcessingState:
    """Per-response accumulator, created when a stream starts and discarded
    after finalize."""

    content_buffer: str = ""
    reasoning_buffer: str = ""
    tool_calls: list[ToolCallAccumulator | ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None

    # structured outputs: the content value already forwarded to the user
    last_parsed_content: str = ""
    # prompt engineering: how much of content_buffer has been forwarded
    forwarded_length: int = 0
