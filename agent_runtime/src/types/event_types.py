# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import copy

from enum import Enum
from uuid import uuid4
from types import MappingProxyType
from datetime import datetime
from dataclasses import field, dataclass
from typing import Any, Mapping


class EventType(str, Enum):
    USER_MESSAGE = "user_message"
    ASSISTANT_MESSAGE = "assistant_message"
    ASSISTANT_THINKING_MESSAGE = "assistant_thinking_message"
    ASSISTANT_STREAMING_MESSAGE = "assistant_streaming_message"
    ASSISTANT_STREAMING_THINKING_MESSAGE = "assistant_streaming_thinking_message"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    SYSTEM = "system"
    AGENT_RUN_START = "agent_run_start"
    AGENT_RUN_END = "agent_run_end"
    ENVIRONMENT_INPUT = "environment_input"  # context injected by the runtime or a hook
    PLAN_START = "plan_start"
    PLAN_UPDATE = "plan_update"
    PLAN_FINISH = "plan_finish"
    FINAL_ANSWER = "final_answer"
    FINAL_ANSWER_STREAMING = "final_answer_streaming"


STREAMING_EVENT_TYPES: frozenset[EventType] = frozenset(
    {
        EventType.ASSISTANT_STREAMING_MESSAGE,
        EventType.ASSISTANT_STREAMING_THINKING_MESSAGE,
        EventType.FINAL_ANSWER_STREAMING,
    }
)

# Metadata keys that must be present before an event may be published
REQUIRED_METADATA: dict[EventType, tuple[str, ...]] = {
    EventType.ASSISTANT_MESSAGE: ("message_id",),
    EventType.ASSISTANT_THINKING_MESSAGE: ("message_id",),
    EventType.ASSISTANT_STREAMING_MESSAGE: ("message_id", "is_complete"),
    EventType.ASSISTANT_STREAMING_THINKING_MESSAGE: ("message_id", "is_complete"),
    EventType.TOOL_CALL: ("tool_call_id", "name", "arguments"),
    EventType.TOOL_RESULT: ("tool_call_id", "name", "elapsed_ms"),
    EventType.SYSTEM: ("level",),
    EventType.AGENT_RUN_START: ("session_id",),
    EventType.AGENT_RUN_END: ("session_id", "iterations", "elapsed_ms", "status"),
    EventType.PLAN_START: ("session_id",),
    EventType.PLAN_UPDATE: ("session_id", "steps"),
    EventType.PLAN_FINISH: ("session_id", "summary"),
    EventType.FINAL_ANSWER_STREAMING: ("message_id", "is_complete"),
}

SYSTEM_LEVELS = ("info", "warning", "error")


@dataclass(frozen=True)
class Event:
    """Base class for all events in the stream"""

    type: EventType
    content: Any = ""  # str for text events, list/dict for multimodal input
    metadata: Mapping[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        # Copied on creation and exposed read-only, so the journal cannot be edited in place
        object.__setattr__(self, "metadata", MappingProxyType(copy.deepcopy(dict(self.metadata))))

    def missing_fields(self) -> list[str]:
        """Names of required metadata keys absent from this event."""
        required = REQUIRED_METADATA.get(self.type, ())
        return [key for key in required if key not in self.metadata]
