# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
One model step of the agent loop: build the request, stream the response
through the tool-call engine, and publish the resulting events.
"""

import asyncio
import logging

from typing import Optional

from .cancellation import CancellationToken, RunCancelled, iterate_with_cancellation
from .message_history import MessageHistory
from ..events import EventStream
from ..llm.providers.base_provider import BaseProvider
from ..tool_call_engine import PrepareRequestContext, ToolCallEngine
from ..tools.base_tool import Tool
from ..types.agent_types import AgentMetrics
from ..types.errors import EventValidationError, ProviderError, ToolCallEngineError
from ..types.event_types import EventType
from ..types.llm_types import (
    ParsedModelResponse,
    StreamProcessingState,
    generate_message_id,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class LLMProcessor:

    def __init__(
        self,
        provider: BaseProvider,
        engine: ToolCallEngine,
        event_stream: EventStream,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        max_retries: int = 2,
        retry_backoff: float = 1.0,
    ):
        self.provider = provider
        self.engine = engine
        self.event_stream = event_stream
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.history = MessageHistory(event_stream, engine)

    def _publish(self, event_type: EventType, content="", **metadata) -> None:
        self.event_stream.send_event(self.event_stream.create_event(event_type, content, **metadata))

    async def step(
        self,
        instructions: str,
        tools: list[Tool],
        token: CancellationToken,
        metrics: AgentMetrics,
    ) -> ParsedModelResponse:
        """
        Run one model turn.

        Raises:
            ProviderError: when the provider fails permanently, or keeps
                failing transiently after all retries.
            RunCancelled: when the run is aborted.
        """
        system_prompt = self.engine.prepare_prompt(instructions, tools)
        messages = self.history.to_messages(system_prompt)
        params = self.engine.prepare_request(
            PrepareRequestContext(
                model=self.model,
                messages=messages,
                tools=tools,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        )

        attempt = 0
        while True:
            token.raise_if_cancelled()
            state = self.engine.init_stream_state()
            message_id = generate_message_id()
            metrics.provider_requests += 1
            logger.info(f"Awaiting completion ({len(messages)} messages, {len(tools)} tools, attempt {attempt + 1})...")
            try:
                await self._stream_response(params, state, message_id, token)
                break
            except ProviderError as e:
                if not e.transient or attempt >= self.max_retries:
                    raise
                delay = self.retry_backoff * 2**attempt
                attempt += 1
                metrics.provider_retries += 1
                logger.warning(f"Transient provider error, retry {attempt}/{self.max_retries} in {delay}s: {e}")
                self._publish(
                    EventType.SYSTEM,
                    f"Provider request failed ({e}). Retrying in {delay:g}s "
                    f"(attempt {attempt}/{self.max_retries}).",
                    level="warning",
                    attempt=attempt,
                )
                try:
                    async with asyncio.timeout(delay):
                        await token.wait()
                except TimeoutError:
                    pass

        try:
            response = self.engine.finalize(state)
        except ToolCallEngineError as e:
            logger.error(f"Tool call engine failed to finalize response: {e}")
            self._publish(
                EventType.SYSTEM,
                f"Could not parse the model response ({e}); treating it as plain text.",
                level="warning",
            )
            response = ParsedModelResponse(
                content=state.content_buffer,
                reasoning_content=state.reasoning_buffer or None,
                finish_reason=state.finish_reason or "stop",
            )

        if response.reasoning_content:
            self._publish(
                EventType.ASSISTANT_THINKING_MESSAGE,
                response.reasoning_content,
                message_id=message_id,
            )
        self._publish(
            EventType.ASSISTANT_MESSAGE,
            response.content,
            message_id=message_id,
            tool_calls=[c.to_event_dict() for c in response.tool_calls or []],
            finish_reason=response.finish_reason,
        )
        return response

    async def _stream_response(
        self,
        params: dict,
        state: StreamProcessingState,
        message_id: str,
        token: CancellationToken,
    ) -> None:
        try:
            stream = self.provider.create_streaming_completion(params)
            async for chunk in iterate_with_cancellation(stream, token):
                result = self.engine.process_chunk(chunk, state)
                if result.reasoning_content:
                    self._publish(
                        EventType.ASSISTANT_STREAMING_THINKING_MESSAGE,
                        result.reasoning_content,
                        message_id=message_id,
                        is_complete=chunk.is_finished,
                    )
                if result.content:
                    self._publish(
                        EventType.ASSISTANT_STREAMING_MESSAGE,
                        result.content,
                        message_id=message_id,
                        is_complete=chunk.is_finished,
                    )
        except (ProviderError, RunCancelled, EventValidationError):
            raise
        except Exception as e:
            # Providers that do not map their own errors
            raise ProviderError(f"Provider error: {type(e).__name__}: {e}", transient=False) from e
