# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Central manager for planning functionality.

Holds the planning state of one session and asks the configured strategy
which tools the model may see at the current stage.
"""

import logging

from .strategies import create_strategy
from .types import PlannerContext, PlannerOptions, PlannerState, ToolFilterResult
from ..events import EventStream
from ..tools.base_tool import Tool
from ..types.event_types import EventType

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class PlannerManager:

    def __init__(self, options: PlannerOptions, event_stream: EventStream, session_id: str = ""):
        self.options = options
        self.event_stream = event_stream
        self.strategy = create_strategy(options.strategy, event_stream, options)
        self.state = PlannerState(session_id=session_id)
        logger.info(f"Planner initialized with strategy: {self.strategy.STRATEGY_NAME}")

    def on_each_agent_loop_start(self, iteration: int) -> None:
        self.state.iteration = iteration
        logger.info(
            f"[Plan] Starting iteration {iteration}: stage={self.state.stage.value}, "
            f"steps={len(self.state.steps)}, completed={self.state.completed}"
        )

    def _latest_user_input(self) -> str:
        events = self.event_stream.get_events([EventType.USER_MESSAGE], limit=1)
        if events and isinstance(events[0].content, str):
            return events[0].content
        return ""

    def build_tools(self, available_tools: list[Tool]) -> ToolFilterResult:
        """Filter the tools the model sees for the current planning state."""
        context = PlannerContext(
            user_input=self._latest_user_input(),
            available_tools=available_tools,
            state=self.state,
            session_id=self.state.session_id,
        )

        if self.state.completed:
            # Planning completed - every tool, plus any the strategy keeps alive
            tools = list(available_tools)
            names = {t.name for t in tools}
            tools.extend(t for t in self.strategy.persistent_tools(context) if t.name not in names)
            return ToolFilterResult(tools=tools)

        return self.strategy.filter_tools_for_stage(context)

    def get_system_instruction(self) -> str:
        return self.strategy.get_system_instruction()

    def get_current_state(self) -> PlannerState:
        return self.state.model_copy(deep=True)

    def is_completed(self) -> bool:
        return self.state.completed
