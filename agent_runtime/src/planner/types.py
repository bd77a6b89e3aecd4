# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from ..tools.base_tool import Tool


class PlannerStage(str, Enum):
    PLAN = "plan"
    EXECUTE = "execute"


class PlanStep(BaseModel):
    content: str = Field(..., description="Description of what needs to be done in this step")
    done: bool = Field(default=False, description="Whether this step has been completed")


class PlannerState(BaseModel):
    """Mutable planning state of one session, owned by the PlannerManager."""

    stage: PlannerStage = PlannerStage.PLAN
    steps: list[PlanStep] = Field(default_factory=list)
    completed: bool = False
    session_id: str = ""
    iteration: int = 0

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.steps if s.done)


class PlannerOptions(BaseModel):
    strategy: str = "default"
    max_steps: int = Field(default=3, ge=1)
    planning_prompt: Optional[str] = None


class PlannerContext(BaseModel):
    """What a strategy sees when choosing the tools for an iteration."""

    user_input: str
    available_tools: list[Tool]
    state: PlannerState
    session_id: str

    class Config:
        arbitrary_types_allowed = True


class ToolFilterResult(BaseModel):
    tools: list[Tool]
    system_prompt_addition: Optional[str] = None

    class Config:
        arbitrary_types_allowed = True
