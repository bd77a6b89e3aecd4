# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The main entrypoint to the system.
"""

import json
import signal
import asyncio
import logging

from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .src.agents import Agent, RequireToolCallHook
from .src.config import settings
from .src.events import EventStream
from .src.events.event_stream_utils import log_to_stdout
from .src.llm.base import CompletionChunk
from .src.llm.providers import BaseProvider, OpenAIProvider, ReplayProvider, text_chunks
from .src.planner import PlannerOptions
from .src.tools import calculator_tool, final_answer_tool, FINAL_ANSWER_TOOL_NAME
from .src.types.agent_types import AgentResult
from .src.types.errors import ProviderError
from .src.types.event_types import EventType

load_dotenv()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


def load_replay_provider(path: Path | str) -> ReplayProvider:
    """
    Build a ReplayProvider from a JSON file holding a list of responses.

    Each response is one of:
        {"text": "...", "finish_reason": "stop"}
        {"chunks": [{"content": "...", "tool_calls": [...], ...}, ...]}
        {"error": "...", "transient": true}
    """
    raw = json.loads(Path(path).read_text())
    if not isinstance(raw, list):
        raise ValueError(f"Replay file {path} must contain a JSON list")

    responses: list[Any] = []
    for i, entry in enumerate(raw):
        if "error" in entry:
            responses.append(ProviderError(entry["error"], transient=bool(entry.get("transient"))))
        elif "chunks" in entry:
            responses.append([CompletionChunk.model_validate(c) for c in entry["chunks"]])
        elif "text" in entry:
            responses.append(text_chunks(entry["text"], finish_reason=entry.get("finish_reason", "stop")))
        else:
            raise ValueError(f"Replay entry {i} has none of 'text', 'chunks' or 'error'")
    return ReplayProvider(responses)


def build_provider(replay: Optional[Path | str] = None) -> BaseProvider:
    if replay is not None:
        return load_replay_provider(replay)
    return OpenAIProvider(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        timeout=settings.PROVIDER_TIMEOUT,
    )


class AgentRunner:
    """
    Runs one agent session from the command line: wires up the default tools,
    mirrors events to stdout, aborts the run on SIGINT/SIGTERM and optionally
    saves the event log afterwards.
    """

    def __init__(
        self,
        provider: BaseProvider,
        engine: Optional[str] = None,
        planner: Optional[str] = None,
        max_iterations: Optional[int] = None,
        model: Optional[str] = None,
        require_final_answer: bool = False,
        quiet: bool = False,
    ):
        self.event_stream = EventStream(max_events=settings.MAX_EVENTS)
        hooks = [RequireToolCallHook(FINAL_ANSWER_TOOL_NAME)] if require_final_answer else []

        strategy = planner or settings.PLANNER_STRATEGY
        self.agent = Agent(
            provider=provider,
            tools=[calculator_tool(), final_answer_tool(self.event_stream)],
            tool_call_engine=engine,
            planner=PlannerOptions(strategy=strategy, max_steps=settings.PLANNER_MAX_STEPS)
            if strategy
            else None,
            hooks=hooks,
            max_iterations=max_iterations,
            model=model,
            event_stream=self.event_stream,
        )
        if not quiet:
            self.event_stream.subscribe(log_to_stdout)

    def _register_signal_handlers(self) -> None:
        """Register signal handlers for graceful shutdown"""
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._signal_handler, sig)
        except (NotImplementedError, RuntimeError) as e:
            logger.error(f"Error registering signal handlers: {e}")

    def _signal_handler(self, sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, aborting the run...")
        self.agent.abort(f"Received {sig.name}")

    async def exec(self, prompt: str, stream: bool = False) -> AgentResult:
        """
        Run the agent on a prompt.

        With stream=True the streamed content deltas are echoed to stdout as
        they arrive, in addition to the event log.
        """
        self._register_signal_handlers()
        if not stream:
            return await self.agent.run(prompt)

        async for event in self.agent.run(prompt, stream=True):
            if event.type == EventType.ASSISTANT_STREAMING_MESSAGE:
                print(event.content, end="", flush=True)
            elif event.type == EventType.ASSISTANT_MESSAGE:
                print()
        return self.agent.last_result

    def save_events(self, path: Path | str) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.event_stream.save(path)
        logger.info(f"Saved {len(self.event_stream)} events to {path}")
