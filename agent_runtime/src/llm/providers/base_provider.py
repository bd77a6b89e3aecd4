# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Base provider interface for LLM interactions."""

import logging

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, ClassVar, Optional

from ..base import CompletionChunk
from ...types.llm_types import StopReason

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Abstract base class for LLM providers.

    A provider only has to stream chunks for already-prepared request
    parameters; building those parameters is the job of the tool-call engine.
    Failures must be raised as ProviderError, flagged transient when a retry
    could succeed.
    """

    PROVIDER_NAME: ClassVar[str] = "base"

    def map_stop_reason(self, finish_reason: Optional[str]) -> Optional[str]:
        """Map provider-specific finish reasons to the OpenAI vocabulary."""
        if finish_reason is None:
            return None
        if finish_reason in ("length", "insufficient_system_resource", "max_tokens"):
            return StopReason.LENGTH.value
        if finish_reason in ("tool_calls", "function_call", "tool_use"):
            return StopReason.TOOL_CALLS.value
        if finish_reason in ("content_filter", "error"):
            return finish_reason
        return StopReason.STOP.value

    @abstractmethod
    def create_streaming_completion(
        self, params: dict[str, Any]
    ) -> AsyncIterator[CompletionChunk]:
        """Stream a completion for the given request parameters.

        Implementations are async generators. Closing the generator must
        release the underlying connection.
        """
        pass
