# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""OpenAI-compatible (chat completions) streaming provider."""

import logging

import openai

from typing import Any, AsyncIterator, Optional
from openai import AsyncOpenAI

from ..base import CompletionChunk
from .base_provider import BaseProvider
from ...types.errors import ProviderError
from ...types.llm_types import ToolCallDelta

logger = logging.getLogger(__name__)

# Quieten LLM API call logs to make stdout more useful
logging.getLogger("httpx").setLevel(logging.WARNING)


class OpenAIProvider(BaseProvider):
    """Provider for OpenAI and any server exposing the same chat API
    (DeepSeek, vLLM, Ollama, ...)."""

    PROVIDER_NAME = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        # Retries are owned by the agent loop, so the client must not retry
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    @staticmethod
    def map_error(e: Exception) -> ProviderError:
        """Classify an openai exception as transient or fatal."""
        if isinstance(e, (openai.APITimeoutError, openai.APIConnectionError)):
            return ProviderError(f"Connection to provider failed: {e}", transient=True)
        if isinstance(e, openai.RateLimitError):
            return ProviderError(f"Rate limited by provider: {e}", transient=True)
        if isinstance(e, openai.APIStatusError):
            transient = e.status_code >= 500 or e.status_code in (408, 409)
            return ProviderError(
                f"Provider returned HTTP {e.status_code}: {e.message}", transient=transient
            )
        return ProviderError(f"Provider error: {e}", transient=False)

    async def create_streaming_completion(
        self, params: dict[str, Any]
    ) -> AsyncIterator[CompletionChunk]:
        """Create a streaming completion."""
        try:
            stream = await self.client.chat.completions.create(**{**params, "stream": True})
        except openai.OpenAIError as e:
            raise self.map_error(e) from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta

                tool_calls = []
                for tc in delta.tool_calls or []:
                    function = tc.function
                    tool_calls.append(
                        ToolCallDelta(
                            index=tc.index,
                            id=tc.id,
                            name=function.name if function else None,
                            arguments=(function.arguments or "") if function else "",
                        )
                    )

                yield CompletionChunk(
                    id=chunk.id,
                    model=chunk.model,
                    content=delta.content or "",
                    # DeepSeek and other compatible servers add this field
                    reasoning_content=getattr(delta, "reasoning_content", None) or "",
                    tool_calls=tool_calls,
                    finish_reason=self.map_stop_reason(choice.finish_reason),
                )
        except openai.OpenAIError as e:
            raise self.map_error(e) from e
        finally:
            await stream.close()
