# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from __future__ import annotations

import time
import asyncio
import logging

from uuid import uuid4
from typing import Any, AsyncIterator, ClassVar, Coroutine, Iterable, Optional
from datetime import datetime

from .cancellation import CancellationToken, RunCancelled
from .hooks import AgentHook
from .llm_processor import LLMProcessor
from .tool_processor import process_tool_calls
from ..config import settings
from ..events import EventStream
from ..llm.providers.base_provider import BaseProvider
from ..planner import PlannerManager, PlannerOptions
from ..tool_call_engine import ToolCallEngine, create_tool_call_engine
from ..tools.base_tool import Tool, ToolRegistry
from ..types.agent_types import (
    AgentLoopState,
    AgentMetrics,
    AgentResult,
    AgentStatus,
    LoopTerminationCheckResult,
)
from ..types.errors import ProviderError
from ..types.event_types import Event, EventType
from ..types.llm_types import ToolCallEngineType

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class _RunState:
    """Book-keeping for the run in flight."""

    def __init__(self, token: CancellationToken, planner: Optional[PlannerManager]):
        self.token = token
        self.planner = planner
        self.metrics = AgentMetrics(start_time=datetime.now())
        self.iterations = 0
        self.errors: list[str] = []


class Agent:
    """
    The agent loop orchestrator.

    Repeatedly asks the model for the next step, dispatches any tool calls it
    makes and feeds the results back, until the model answers without calling
    a tool (and no hook vetoes that), the iteration cap is hit, the provider
    fails, or the run is aborted. Every step is recorded in the event stream,
    which is also the source of the conversation history.
    """

    DEFAULT_INSTRUCTIONS: ClassVar[str] = (
        "You are a helpful assistant. Use the tools available to you when they help "
        "answer the user's request, then reply with your final answer."
    )

    def __init__(
        self,
        provider: BaseProvider,
        instructions: Optional[str] = None,
        tools: Optional[Iterable[Tool]] = None,
        tool_call_engine: ToolCallEngineType | str | ToolCallEngine | None = None,
        planner: Optional[PlannerOptions] = None,
        hooks: Optional[Iterable[AgentHook]] = None,
        max_iterations: Optional[int] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        event_stream: Optional[EventStream] = None,
        max_events: Optional[int] = None,
        session_id: Optional[str] = None,
        tool_timeout: Optional[float] = None,
    ):
        self.provider = provider
        self.instructions = instructions or self.DEFAULT_INSTRUCTIONS
        self.session_id = session_id or f"session_{uuid4().hex[:8]}"
        self.event_stream = event_stream if event_stream is not None else EventStream(
            max_events=max_events if max_events is not None else settings.MAX_EVENTS
        )
        self.tool_registry = ToolRegistry(list(tools or []))
        self.engine = create_tool_call_engine(
            tool_call_engine if tool_call_engine is not None else settings.TOOL_CALL_ENGINE
        )
        self.planner_options = planner
        self.hooks: list[AgentHook] = list(hooks or [])

        self.max_iterations = max_iterations if max_iterations is not None else settings.MAX_ITERATIONS
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.model = model or settings.MODEL
        self.tool_timeout = tool_timeout if tool_timeout is not None else settings.TOOL_TIMEOUT

        self.llm = LLMProcessor(
            provider=provider,
            engine=self.engine,
            event_stream=self.event_stream,
            model=self.model,
            temperature=temperature if temperature is not None else settings.TEMPERATURE,
            max_tokens=max_tokens,
            max_retries=max_retries if max_retries is not None else settings.PROVIDER_MAX_RETRIES,
            retry_backoff=retry_backoff if retry_backoff is not None else settings.PROVIDER_RETRY_BACKOFF,
        )

        self.loop_state = AgentLoopState.IDLE
        self.planner: Optional[PlannerManager] = None
        self.last_result: Optional[AgentResult] = None
        self._run_state: Optional[_RunState] = None

    # Configuration ===========================================================

    def register_tool(self, tool: Tool) -> Tool:
        """Add a tool. Not allowed while a run is in progress."""
        return self.tool_registry.register(tool)

    def add_hook(self, hook: AgentHook) -> None:
        self.hooks.append(hook)

    @property
    def cancel_token(self) -> Optional[CancellationToken]:
        """Token of the run in flight, None while idle."""
        return self._run_state.token if self._run_state is not None else None

    def abort(self, reason: str = "Run aborted by user") -> bool:
        """Cancel the active run. Returns False if nothing is running."""
        if self._run_state is None:
            return False
        logger.info(f"Aborting run of {self.session_id}: {reason}")
        self.loop_state = AgentLoopState.ABORTED
        self._run_state.token.cancel(reason)
        return True

    # Event helpers ===========================================================

    def _publish(self, event_type: EventType, content: Any = "", **metadata) -> Event:
        event = self.event_stream.create_event(event_type, content, **metadata)
        self.event_stream.send_event(event)
        return event

    def _system(self, level: str, message: str) -> None:
        self._publish(EventType.SYSTEM, message, level=level)

    # Hooks ===================================================================

    async def _before_loop_start(self, iteration: int) -> None:
        for hook in self.hooks:
            try:
                await hook.before_loop_start(self, iteration)
            except Exception as e:
                logger.error(f"before_loop_start hook {type(hook).__name__} failed: {e}")

    async def _check_termination(self, final_event: Event) -> LoopTerminationCheckResult:
        for hook in self.hooks:
            try:
                verdict = await hook.before_loop_termination(self, final_event)
            except Exception as e:
                logger.error(f"before_loop_termination hook {type(hook).__name__} failed: {e}")
                continue
            if verdict is not None and not verdict.finished:
                return verdict
        return LoopTerminationCheckResult(finished=True)

    async def _loop_end(self) -> None:
        for hook in self.hooks:
            try:
                await hook.loop_end(self)
            except Exception as e:
                logger.error(f"loop_end hook {type(hook).__name__} failed: {e}")

    # The loop ================================================================

    def _resolve_tools(self) -> tuple[list[Tool], str]:
        tools = self.tool_registry.tools()
        instructions = self.instructions
        if self.planner is not None:
            filtered = self.planner.build_tools(tools)
            tools = filtered.tools
            instructions = f"{instructions}\n{self.planner.get_system_instruction()}"
            if filtered.system_prompt_addition:
                instructions = f"{instructions}\n{filtered.system_prompt_addition}"
        return tools, instructions

    async def _loop(self, run: _RunState) -> tuple[AgentStatus, str]:
        for iteration in range(1, self.max_iterations + 1):
            run.token.raise_if_cancelled()
            run.iterations = iteration
            run.metrics.iterations = iteration
            self.loop_state = AgentLoopState.RUNNING

            await self._before_loop_start(iteration)
            if self.planner is not None:
                self.planner.on_each_agent_loop_start(iteration)

            tools, instructions = self._resolve_tools()

            try:
                response = await self.llm.step(instructions, tools, run.token, run.metrics)
            except ProviderError as e:
                message = f"Provider request failed: {e}"
                logger.error(message)
                run.errors.append(message)
                self._system("error", message)
                return AgentStatus.ERROR, ""

            if response.tool_calls:
                self.loop_state = AgentLoopState.TOOL_DISPATCH
                run.metrics.tool_calls += len(response.tool_calls)
                await process_tool_calls(
                    self,
                    response.tool_calls,
                    {t.name: t for t in tools},
                    run.token,
                    timeout=self.tool_timeout,
                )
                continue

            self.loop_state = AgentLoopState.TERMINATING
            final_event = self.event_stream.get_latest_assistant_response()
            verdict = await self._check_termination(final_event)
            if not verdict.finished:
                self._publish(
                    EventType.ENVIRONMENT_INPUT,
                    verdict.message or "Please continue working on the task.",
                    description="Termination check requested another iteration",
                    analysis=verdict.analysis,
                )
                continue

            return AgentStatus.SUCCESS, response.content

        message = f"Reached the maximum of {self.max_iterations} iterations without a final answer"
        logger.warning(message)
        self._system("warning", message)
        latest = self.event_stream.get_latest_assistant_response()
        return AgentStatus.MAX_ITERATIONS, str(latest.content) if latest else ""

    async def _execute(self, input: Any, contexts: Optional[list[Any]] = None) -> AgentResult:
        if self._run_state is not None:
            raise RuntimeError(f"Agent {self.session_id} is already running")

        run = _RunState(
            CancellationToken(),
            PlannerManager(self.planner_options, self.event_stream, self.session_id)
            if self.planner_options is not None
            else None,
        )
        self._run_state = run
        self.planner = run.planner
        self.loop_state = AgentLoopState.RUNNING
        start = time.perf_counter()
        status, content = AgentStatus.RUNNING, ""

        try:
            with self.tool_registry.frozen():
                try:
                    self._publish(
                        EventType.AGENT_RUN_START,
                        session_id=self.session_id,
                        provider=self.provider.PROVIDER_NAME,
                        model=self.model,
                        run_options={
                            "max_iterations": self.max_iterations,
                            "tool_call_engine": self.engine.ENGINE_TYPE.value,
                            "planner": self.planner_options.strategy if self.planner_options else None,
                            "tools": self.tool_registry.names(),
                        },
                    )
                    self._publish(EventType.USER_MESSAGE, input)
                    for context in contexts or []:
                        self._publish(
                            EventType.ENVIRONMENT_INPUT, context, description="Context provided with the run"
                        )

                    status, content = await self._loop(run)
                except RunCancelled as e:
                    logger.info(f"Run of {self.session_id} aborted: {e}")
                    status = AgentStatus.ABORTED
                except asyncio.CancelledError:
                    run.token.cancel("Run task cancelled")
                    raise
                except Exception as e:
                    message = f"Run failed: {type(e).__name__}: {e}"
                    logger.exception(message)
                    run.errors.append(message)
                    status, content = AgentStatus.ERROR, ""
                    self._report_failure(message)

            run.metrics.end_time = datetime.now()
            elapsed_ms = int((time.perf_counter() - start) * 1000)

            await self._loop_end()
            if status != AgentStatus.ABORTED:
                self._publish(
                    EventType.AGENT_RUN_END,
                    content,
                    session_id=self.session_id,
                    iterations=run.iterations,
                    elapsed_ms=elapsed_ms,
                    status=status.value,
                )
        finally:
            self.loop_state = AgentLoopState.IDLE
            self._run_state = None

        self.last_result = AgentResult(
            session_id=self.session_id,
            status=status,
            content=content,
            iterations=run.iterations,
            elapsed_ms=elapsed_ms,
            metrics=run.metrics,
            errors="\n".join(run.errors) or None,
        )
        logger.info(f"Run of {self.session_id} finished: {status.value} after {run.iterations} iterations")
        return self.last_result

    def _report_failure(self, message: str) -> None:
        """Publish the error event of a failed run; the journal may itself be the failure."""
        try:
            self._system("error", message)
        except Exception as e:
            logger.error(f"Could not publish run failure: {e}")

    async def _execute_streaming(
        self, input: Any, contexts: Optional[list[Any]] = None
    ) -> AsyncIterator[Event]:
        queue: asyncio.Queue[Event] = asyncio.Queue()
        unsubscribe = self.event_stream.subscribe(queue.put_nowait)
        task = asyncio.ensure_future(self._execute(input, contexts))
        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter not in done:
                    getter.cancel()
                    while not queue.empty():
                        yield queue.get_nowait()
                    break
                event = getter.result()
                yield event
                if event.type == EventType.AGENT_RUN_END:
                    break
            await task
        finally:
            unsubscribe()
            if not task.done():
                # Consumer stopped iterating early
                self.abort("Event stream consumer closed")
                await asyncio.wait({task})

    def run(
        self,
        input: Any,
        stream: bool = False,
        contexts: Optional[list[Any]] = None,
    ) -> Coroutine[Any, Any, AgentResult] | AsyncIterator[Event]:
        """
        Run the agent on a user input.

        Args:
            input: the user message; a string, or a list of content parts
            stream: when True, return an async iterator over the events of
                the run instead of a coroutine resolving to an AgentResult
            contexts: extra environment inputs published after the user message

        Returns:
            `await agent.run(...)` gives an AgentResult, while
            `async for event in agent.run(..., stream=True)` yields events as
            they are published. The iterator ends after the run-end event (or
            when an aborted run stops); closing it early aborts the run.
        """
        if stream:
            return self._execute_streaming(input, contexts)
        return self._execute(input, contexts)
