# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Default planner strategy: a short step-by-step plan, updated as a whole."""

import logging

from typing import Optional
from pydantic import BaseModel, Field, create_model

from .base import PLAN_COMPLETED_NOTE, BasePlannerStrategy
from ..types import PlannerContext, PlannerStage, PlanStep, ToolFilterResult
from ...tools.base_tool import Tool

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class UpdatePlanArgs(BaseModel):
    steps: list[PlanStep] = Field(..., description="Updated list of plan steps")
    completed: Optional[bool] = Field(
        default=None, description="Whether the entire plan is now completed"
    )


def generate_plan_args(max_steps: int) -> type[BaseModel]:
    """Arguments of generate_plan, with the step cap baked into the schema."""
    return create_model(
        "GeneratePlanArgs",
        steps=(
            list[PlanStep],
            Field(..., max_length=max_steps, description="List of plan steps"),
        ),
        needs_planning=(
            bool,
            Field(
                ...,
                description="Whether this task actually needs planning or can be answered directly",
            ),
        ),
    )


class DefaultPlannerStrategy(BasePlannerStrategy):

    STRATEGY_NAME = "default"

    def get_system_instruction(self) -> str:
        max_steps = self.options.max_steps
        return f"""
<planning_approach>
You are a methodical agent that follows a plan-and-solve approach for complex tasks. Your workflow:

1. **Planning Phase** (when no plan exists):
   - Analyze if the task requires a multi-step plan
   - For complex research, analysis, or multi-part tasks, create a plan using generate_plan
   - For simple questions or tasks, skip planning and answer directly
   - Create AT MOST {max_steps} key steps focusing on information gathering and research

2. **Execution Phase** (when plan exists):
   - Execute plan steps using the available tools
   - When you complete steps, use update_plan to record your progress
   - Continue working toward completing all planned steps
</planning_approach>

<planning_constraints>
PLANNING CONSTRAINTS:
- Create AT MOST {max_steps} key steps in your plan
- For simple questions, you can skip planning entirely by setting needs_planning=false
</planning_constraints>
{self._planning_prompt_section()}"""

    def create_planning_tools(self, context: PlannerContext) -> list[Tool]:
        state = context.state

        def generate_plan(steps: list[dict], needs_planning: bool) -> dict:
            if not needs_planning:
                # Task is simple, mark planning as completed
                state.completed = True
                state.stage = PlannerStage.EXECUTE
                return {
                    "status": "skipped",
                    "message": "Task is simple enough to handle directly without planning",
                }

            plan = [PlanStep.model_validate(s) for s in steps]
            state.steps = plan
            state.stage = PlannerStage.EXECUTE

            self.send_plan_events(context.session_id, plan, "start")
            self.send_plan_events(context.session_id, plan, "update")

            logger.info(f"Generated plan with {len(plan)} steps for session {context.session_id}")
            return {
                "status": "success",
                "plan": [s.model_dump() for s in plan],
                "message": f"Created a {len(plan)}-step plan. Now proceeding with execution.",
            }

        return [
            Tool(
                name="generate_plan",
                description=(
                    "Generate a step-by-step plan for completing the user's task. Use this when "
                    "you need to break down complex tasks into manageable steps."
                ),
                parameters=generate_plan_args(self.options.max_steps),
                function=generate_plan,
            )
        ]

    def create_plan_update_tools(self, context: PlannerContext) -> list[Tool]:
        state = context.state

        def update_plan(steps: list[dict], completed: Optional[bool] = None) -> dict:
            plan = [PlanStep.model_validate(s) for s in steps]
            state.steps = plan
            state.stage = PlannerStage.EXECUTE
            done = sum(1 for s in plan if s.done)

            if completed or self.is_planning_completed(plan):
                state.completed = True
                self.send_plan_events(context.session_id, plan, "finish")
                return {
                    "status": "completed",
                    "message": "Plan completed successfully! All steps have been executed.",
                    "completed_steps": done,
                    "total_steps": len(plan),
                }

            self.send_plan_events(context.session_id, plan, "update")
            return {
                "status": "updated",
                "message": "Plan updated. Continuing with execution.",
                "completed_steps": done,
                "total_steps": len(plan),
            }

        return [
            Tool(
                name="update_plan",
                description=(
                    "Update the current plan by marking steps as completed or modifying the "
                    "plan based on new information."
                ),
                parameters=UpdatePlanArgs,
                function=update_plan,
            )
        ]

    def filter_tools_for_stage(self, context: PlannerContext) -> ToolFilterResult:
        state = context.state

        if state.completed:
            return ToolFilterResult(
                tools=context.available_tools, system_prompt_addition=PLAN_COMPLETED_NOTE
            )

        if state.stage == PlannerStage.PLAN:
            tools = (
                self.create_planning_tools(context)
                if not state.steps
                else self.create_plan_update_tools(context)
            )
            return ToolFilterResult(
                tools=tools,
                system_prompt_addition=self.format_current_plan_for_prompt(state.steps),
            )

        return ToolFilterResult(
            tools=[*context.available_tools, *self.create_plan_update_tools(context)],
            system_prompt_addition=self.format_current_plan_for_prompt(state.steps),
        )
