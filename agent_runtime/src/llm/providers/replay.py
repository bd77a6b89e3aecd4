# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""A provider that replays pre-recorded chunk sequences.

Useful for offline runs of the CLI and for exercising the agent loop without
network access. Each call to `create_streaming_completion` consumes the next
scripted response; a scripted response may also be an exception, which is
raised instead of streaming.
"""

import asyncio
import logging

from typing import Any, AsyncIterator, Sequence

from ..base import CompletionChunk
from .base_provider import BaseProvider

logger = logging.getLogger(__name__)

ScriptedResponse = Sequence[CompletionChunk] | BaseException


def text_chunks(text: str, size: int = 8, finish_reason: str = "stop") -> list[CompletionChunk]:
    """Split text into content chunks, the last one carrying the finish reason."""
    pieces = [text[i : i + size] for i in range(0, len(text), size)] or [""]
    chunks = [CompletionChunk(content=p) for p in pieces]
    chunks[-1] = chunks[-1].model_copy(update={"finish_reason": finish_reason})
    return chunks


class ReplayProvider(BaseProvider):
    PROVIDER_NAME = "replay"

    def __init__(self, responses: Sequence[ScriptedResponse], chunk_delay: float = 0.0):
        self.responses = list(responses)
        self.chunk_delay = chunk_delay
        self.requests: list[dict[str, Any]] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def create_streaming_completion(
        self, params: dict[str, Any]
    ) -> AsyncIterator[CompletionChunk]:
        self.requests.append(params)
        if not self.responses:
            raise RuntimeError("ReplayProvider has no scripted responses left")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        for chunk in response:
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)
            yield chunk
