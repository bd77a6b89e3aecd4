# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Sequential thinking strategy.

The model reasons through numbered thoughts with the `sequential_thinking`
tool. When it signals that no more thoughts are needed, action-oriented
sentences from the thought history become the plan steps.
"""

import re
import logging

from typing import Optional
from pydantic import BaseModel, Field

from .base import BasePlannerStrategy, format_progress, format_step_list
from ..types import PlannerContext, PlannerStage, PlanStep, ToolFilterResult
from ...tools.base_tool import Tool

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SEQUENTIAL_THINKING_TOOL_NAME = "sequential_thinking"
SEARCH_TOOL_NAME = "web_search"
MAX_DERIVED_STEPS = 3
FALLBACK_STEP = "Execute the solution based on the sequential thinking analysis"
ACTION_CUES = ("need to", "should", "will")


class SequentialThinkingArgs(BaseModel):
    thought: str = Field(..., description="Your current thinking step or analysis")
    thought_number: int = Field(..., ge=1, description="Current thought number in sequence")
    total_thoughts: int = Field(
        ..., ge=1, description="Estimated total thoughts needed (can be adjusted)"
    )
    next_thought_needed: bool = Field(..., description="Whether another thought step is needed")
    is_revision: Optional[bool] = Field(
        default=None, description="Whether this revises previous thinking"
    )
    needs_more_thoughts: Optional[bool] = Field(
        default=None, description="If more thoughts are needed beyond initial estimate"
    )


class UpdatePlanWithThinkingArgs(BaseModel):
    thought: str = Field(..., description="Your thinking about the current progress")
    steps: list[PlanStep] = Field(..., description="Updated list of plan steps")
    completed: Optional[bool] = Field(
        default=None, description="Whether the entire plan is now completed"
    )
    next_thought_needed: bool = Field(..., description="Whether more thinking is needed")


def extract_action_from_thought(thought: str) -> Optional[str]:
    for sentence in re.split(r"[.!?]+", thought):
        trimmed = sentence.strip()
        if any(cue in trimmed.lower() for cue in ACTION_CUES):
            return trimmed[:1].upper() + trimmed[1:]
    return None


class SequentialThinkingStrategy(BasePlannerStrategy):

    STRATEGY_NAME = "sequentialThinking"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.thought_history: list[dict] = []

    def get_system_instruction(self) -> str:
        return f"""
<sequential_thinking_approach>
You use a sequential thinking approach to break down complex problems:
1. Start with an initial analysis and estimate the number of thinking steps needed
2. Progress through each thought step systematically
3. Adjust your approach as understanding deepens
4. Convert your thinking process into actionable plan steps
5. Execute the plan while maintaining the thinking process
</sequential_thinking_approach>
{self._planning_prompt_section()}"""

    def convert_thinking_to_plan(self) -> list[PlanStep]:
        steps = []
        for entry in self.thought_history:
            content = extract_action_from_thought(entry["thought"])
            if content:
                steps.append(PlanStep(content=content))
        if not steps:
            steps.append(PlanStep(content=FALLBACK_STEP))
        return steps[:MAX_DERIVED_STEPS]

    def create_planning_tools(self, context: PlannerContext) -> list[Tool]:
        state = context.state

        def sequential_thinking(
            thought: str,
            thought_number: int,
            total_thoughts: int,
            next_thought_needed: bool,
            is_revision: Optional[bool] = None,
            needs_more_thoughts: Optional[bool] = None,
        ) -> dict:
            self.thought_history.append(
                {
                    "thought": thought,
                    "thought_number": thought_number,
                    "total_thoughts": total_thoughts,
                    "next_thought_needed": next_thought_needed,
                }
            )
            logger.debug(f"Sequential thinking step {thought_number}/{total_thoughts}: {thought[:100]}...")

            if not next_thought_needed or thought_number >= total_thoughts:
                plan = self.convert_thinking_to_plan()
                state.steps = plan
                state.stage = PlannerStage.EXECUTE

                self.send_plan_events(context.session_id, plan, "start")
                self.send_plan_events(context.session_id, plan, "update")

                # Fresh history for the next planning session
                self.thought_history = []
                return {
                    "status": "plan_generated",
                    "plan": [s.model_dump() for s in plan],
                    "message": f"Sequential thinking completed. Generated {len(plan)} actionable steps.",
                    "thoughts_summary": f"Processed {thought_number} thoughts to create the plan.",
                }

            return {
                "status": "thinking",
                "message": f"Completed thought {thought_number}/{total_thoughts}. Continue thinking...",
                "next_step": f"Proceed with thought {thought_number + 1}",
            }

        return [
            Tool(
                name=SEQUENTIAL_THINKING_TOOL_NAME,
                description=(
                    "Process complex problems through sequential thinking steps, analyzing and "
                    "planning systematically."
                ),
                parameters=SequentialThinkingArgs,
                function=sequential_thinking,
            )
        ]

    def create_plan_update_tools(self, context: PlannerContext) -> list[Tool]:
        state = context.state

        def update_plan_with_thinking(
            thought: str,
            steps: list[dict],
            next_thought_needed: bool,
            completed: Optional[bool] = None,
        ) -> dict:
            logger.debug(f"Plan update thinking: {thought[:100]}...")
            plan = [PlanStep.model_validate(s) for s in steps]
            state.steps = plan
            done = sum(1 for s in plan if s.done)

            if completed or self.is_planning_completed(plan):
                state.completed = True
                self.send_plan_events(context.session_id, plan, "finish")
                return {
                    "status": "completed",
                    "message": "Plan completed successfully through sequential thinking approach!",
                    "completed_steps": done,
                    "total_steps": len(plan),
                    "final_thought": thought,
                }

            state.stage = PlannerStage.PLAN if next_thought_needed else PlannerStage.EXECUTE
            self.send_plan_events(context.session_id, plan, "update")
            return {
                "status": "updated",
                "message": "Plan updated with sequential thinking analysis.",
                "completed_steps": done,
                "total_steps": len(plan),
                "next_action": "Continue thinking and planning" if next_thought_needed else "Execute next steps",
            }

        return [
            Tool(
                name="update_plan_with_thinking",
                description=(
                    "Update the plan while using sequential thinking to analyze progress and "
                    "next steps."
                ),
                parameters=UpdatePlanWithThinkingArgs,
                function=update_plan_with_thinking,
            )
        ]

    def persistent_tools(self, context: PlannerContext) -> list[Tool]:
        return self.create_planning_tools(context)

    def _with_thinking_tool(self, tools: list[Tool], context: PlannerContext) -> list[Tool]:
        if any(t.name == SEQUENTIAL_THINKING_TOOL_NAME for t in tools):
            return tools
        return [*tools, *self.persistent_tools(context)]

    def filter_tools_for_stage(self, context: PlannerContext) -> ToolFilterResult:
        state = context.state

        if state.completed:
            return ToolFilterResult(
                tools=self._with_thinking_tool(list(context.available_tools), context),
                system_prompt_addition="""
<sequential_thinking_status>
Your sequential thinking and planning phase is completed. Use all available tools to provide the final answer.
</sequential_thinking_status>""",
            )

        if state.stage == PlannerStage.PLAN:
            tools = (
                self.create_planning_tools(context)
                if not state.steps
                else self.create_plan_update_tools(context)
            )
            search_tool = next(
                (t for t in context.available_tools if t.name == SEARCH_TOOL_NAME), None
            )
            if search_tool is not None:
                tools.append(search_tool)
            return ToolFilterResult(
                tools=self._with_thinking_tool(tools, context),
                system_prompt_addition=self._format_plan(state.steps, planning=True),
            )

        return ToolFilterResult(
            tools=self._with_thinking_tool(list(context.available_tools), context),
            system_prompt_addition=self._format_plan(state.steps, planning=False),
        )

    def _format_plan(self, steps: list[PlanStep], planning: bool) -> str:
        if planning:
            progress = f"\nCurrent plan progress:\n{format_step_list(steps)}" if steps else ""
            return f"""
<sequential_thinking_context>
You are in sequential thinking mode. Use the sequential_thinking tool to analyze the problem step by step.{progress}
</sequential_thinking_context>"""

        if not steps:
            return ""
        return f"""
<current_plan_from_sequential_thinking>
Plan derived from sequential thinking:
{format_step_list(steps)}

{format_progress(steps)}
</current_plan_from_sequential_thinking>"""
