# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from abc import ABC, abstractmethod
from typing import Literal

from ..types import PlannerContext, PlannerOptions, PlanStep, ToolFilterResult
from ...events import EventStream
from ...tools.base_tool import Tool
from ...types.event_types import EventType

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

PLAN_COMPLETED_NOTE = """
<current_plan_status>
Your planning phase has been completed. You can now use all available tools to provide the final answer.
</current_plan_status>"""


def format_step_list(steps: list[PlanStep]) -> str:
    return "\n".join(
        f"{i + 1}. {'✅' if step.done else '⏳'} {step.content}" for i, step in enumerate(steps)
    )


def format_progress(steps: list[PlanStep]) -> str:
    done = sum(1 for s in steps if s.done)
    return f"Progress: {done}/{len(steps)} steps completed"


class BasePlannerStrategy(ABC):
    """
    Abstract base class for planner strategies.

    A strategy decides which tools the model sees at each planning stage and
    provides the planning tools themselves. Planning tools mutate the shared
    PlannerState held in the context and report progress as plan events.
    """

    STRATEGY_NAME: str = "base"

    def __init__(self, event_stream: EventStream, options: PlannerOptions):
        self.event_stream = event_stream
        self.options = options

    @abstractmethod
    def get_system_instruction(self) -> str:
        pass

    @abstractmethod
    def create_planning_tools(self, context: PlannerContext) -> list[Tool]:
        pass

    @abstractmethod
    def create_plan_update_tools(self, context: PlannerContext) -> list[Tool]:
        pass

    @abstractmethod
    def filter_tools_for_stage(self, context: PlannerContext) -> ToolFilterResult:
        pass

    def persistent_tools(self, context: PlannerContext) -> list[Tool]:
        """Tools that stay visible even once planning has completed."""
        return []

    def is_planning_completed(self, steps: list[PlanStep]) -> bool:
        return len(steps) > 0 and all(step.done for step in steps)

    def send_plan_events(
        self,
        session_id: str,
        steps: list[PlanStep],
        kind: Literal["start", "update", "finish"],
    ) -> None:
        if kind == "start":
            event = self.event_stream.create_event(EventType.PLAN_START, session_id=session_id)
        elif kind == "update":
            event = self.event_stream.create_event(
                EventType.PLAN_UPDATE,
                session_id=session_id,
                steps=[s.model_dump() for s in steps],
            )
        else:
            done = sum(1 for s in steps if s.done)
            summary = f"Completed {done} out of {len(steps)} planned steps"
            event = self.event_stream.create_event(
                EventType.PLAN_FINISH, content=summary, session_id=session_id, summary=summary
            )
        self.event_stream.send_event(event)

    def format_current_plan_for_prompt(self, steps: list[PlanStep]) -> str:
        if not steps:
            return ""
        return f"""
<current_plan>
You are working on the following plan:
{format_step_list(steps)}

{format_progress(steps)}
</current_plan>"""

    def _planning_prompt_section(self) -> str:
        if not self.options.planning_prompt:
            return ""
        return f"\n<planning_instructions>\n{self.options.planning_prompt}\n</planning_instructions>\n"
