# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Structured planner strategy.

Like the default strategy, but progress is tracked with fine-grained tools:
`mark_step_completed` flips individual steps by index and `revise_plan` is
reserved for structural changes to the plan.
"""

import logging

from typing import Optional
from pydantic import BaseModel, Field, create_model

from .default import DefaultPlannerStrategy
from ..types import PlannerContext, PlannerStage, PlanStep
from ...tools.base_tool import Tool

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class MarkStepCompletedArgs(BaseModel):
    step_indices: list[int] = Field(
        ...,
        description=(
            "Array of step indices (0-based) to mark as completed. For example, [0, 2] marks "
            "the 1st and 3rd steps as done."
        ),
    )
    summary: Optional[str] = Field(
        default=None, description="Brief summary of what was accomplished in the completed steps"
    )


def revise_plan_args(max_steps: int) -> type[BaseModel]:
    return create_model(
        "RevisePlanArgs",
        revised_steps=(
            list[PlanStep],
            Field(..., max_length=max_steps, description="The revised plan with new structure"),
        ),
        reason=(str, Field(..., description="Explanation for why the plan needs to be revised")),
    )


def _normalised(steps: list[PlanStep]) -> list[tuple[str, bool]]:
    return [(s.content.strip(), s.done) for s in steps]


class StructuredPlannerStrategy(DefaultPlannerStrategy):

    STRATEGY_NAME = "structured"

    def get_system_instruction(self) -> str:
        max_steps = self.options.max_steps
        return f"""
<structured_planning_approach>
You are a methodical agent that follows a structured plan-and-solve approach for complex tasks. Your workflow:

1. **Planning Phase** (when no plan exists):
   - Analyze if the task requires a multi-step plan
   - For complex research, analysis, or multi-part tasks, create a plan using generate_plan
   - For simple questions or tasks, skip planning and answer directly
   - Create AT MOST {max_steps} key steps focusing on information gathering and research

2. **Execution Phase** (when plan exists):
   - Execute plan steps using the available tools
   - When you complete work, use mark_step_completed to track progress
   - Only use revise_plan if the plan structure itself needs to change (NOT for marking completion)

3. **Progress Management Guidelines**:
   - Use mark_step_completed when you finish tasks, providing specific step indices
   - Don't call tools repeatedly with identical parameters
</structured_planning_approach>

<planning_constraints>
PLANNING CONSTRAINTS:
- Create AT MOST {max_steps} key steps in your plan
- For simple questions, you can skip planning entirely by setting needs_planning=false
</planning_constraints>
{self._planning_prompt_section()}"""

    def create_plan_update_tools(self, context: PlannerContext) -> list[Tool]:
        state = context.state

        def mark_step_completed(step_indices: list[int], summary: Optional[str] = None) -> dict:
            if not state.steps:
                return {
                    "status": "error",
                    "message": "No plan exists to update. Please create a plan first.",
                }

            invalid = [i for i in step_indices if i < 0 or i >= len(state.steps)]
            if invalid:
                return {
                    "status": "error",
                    "message": (
                        f"Invalid step indices: {', '.join(map(str, invalid))}. Plan has "
                        f"{len(state.steps)} steps (indices 0-{len(state.steps) - 1})."
                    ),
                }

            already = [i for i in step_indices if state.steps[i].done]
            if already:
                return {
                    "status": "warning",
                    "message": f"Steps {', '.join(map(str, already))} are already marked as completed.",
                    "completed_steps": state.completed_count,
                    "total_steps": len(state.steps),
                }

            for i in step_indices:
                state.steps[i].done = True

            if self.is_planning_completed(state.steps):
                state.completed = True
                state.stage = PlannerStage.EXECUTE
                self.send_plan_events(context.session_id, state.steps, "finish")
                return {
                    "status": "completed",
                    "message": "All plan steps completed! The plan is now finished.",
                    "completed_steps": len(state.steps),
                    "total_steps": len(state.steps),
                    "summary": summary,
                }

            self.send_plan_events(context.session_id, state.steps, "update")
            return {
                "status": "updated",
                "message": (
                    f"Marked {len(step_indices)} step(s) as completed. Progress: "
                    f"{state.completed_count}/{len(state.steps)} steps done."
                ),
                "completed_steps": state.completed_count,
                "total_steps": len(state.steps),
                "marked_indices": step_indices,
                "summary": summary,
            }

        def revise_plan(revised_steps: list[dict], reason: str) -> dict:
            if not state.steps:
                return {
                    "status": "error",
                    "message": "No plan exists to revise. Please create a plan first.",
                }

            revised = [PlanStep.model_validate(s) for s in revised_steps]
            if _normalised(revised) == _normalised(state.steps):
                return {
                    "status": "error",
                    "message": (
                        "The revised plan is identical to the current plan. If you want to mark "
                        "steps as completed, use mark_step_completed instead."
                    ),
                    "current_plan": [s.model_dump() for s in state.steps],
                }

            old_count = len(state.steps)
            state.steps = revised

            all_done = self.is_planning_completed(revised)
            if all_done:
                state.completed = True
                state.stage = PlannerStage.EXECUTE
                self.send_plan_events(context.session_id, revised, "finish")
            else:
                self.send_plan_events(context.session_id, revised, "update")

            logger.info(f"Plan revised for session {context.session_id}: {old_count} -> {len(revised)} steps")
            return {
                "status": "completed" if all_done else "revised",
                "message": (
                    "Plan revised and all steps are completed!"
                    if all_done
                    else f"Plan successfully revised. Updated from {old_count} to {len(revised)} steps."
                ),
                "reason": reason,
                "completed_steps": sum(1 for s in revised if s.done),
                "total_steps": len(revised),
            }

        return [
            Tool(
                name="mark_step_completed",
                description=(
                    "Mark specific steps as completed when you have finished the work described "
                    "in those steps. Use this to track your progress through the plan."
                ),
                parameters=MarkStepCompletedArgs,
                function=mark_step_completed,
            ),
            Tool(
                name="revise_plan",
                description=(
                    "Revise the plan structure when the original plan needs changes (add, remove, "
                    "or modify steps). Only use this for structural changes, NOT for marking steps "
                    "as completed."
                ),
                parameters=revise_plan_args(self.options.max_steps),
                function=revise_plan,
            ),
        ]

    def format_current_plan_for_prompt(self, steps: list[PlanStep]) -> str:
        if not steps:
            return ""
        indexed = "\n".join(
            f"{i}. {'✅' if s.done else '⏳'} {s.content}" for i, s in enumerate(steps)
        )
        done = sum(1 for s in steps if s.done)
        return f"""
<current_plan>
## Current Plan (0-based step indices)

{indexed}

Progress: {done}/{len(steps)} steps completed

Use mark_step_completed when you finish work and revise_plan only when the plan structure needs changes.
</current_plan>"""

