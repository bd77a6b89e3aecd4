# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Provider-agnostic models for streamed LLM output."""

from typing import Optional
from pydantic import BaseModel, Field

from ..types.llm_types import ToolCallDelta


class CompletionChunk(BaseModel):
    """A streaming chunk of a completion response."""

    id: str = ""
    model: str = ""
    content: str = ""
    reasoning_content: str = ""  # from providers exposing a separate reasoning channel
    tool_calls: list[ToolCallDelta] = Field(default_factory=list)
    finish_reason: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.finish_reason is not None
