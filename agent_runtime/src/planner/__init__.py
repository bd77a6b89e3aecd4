# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .types import (
    PlanStep,
    PlannerStage,
    PlannerState,
    PlannerContext,
    PlannerOptions,
    ToolFilterResult,
)
from .manager import PlannerManager
from .strategies import (
    BasePlannerStrategy,
    DefaultPlannerStrategy,
    SequentialThinkingStrategy,
    StructuredPlannerStrategy,
    register_planner_strategy,
)

__all__ = [
    "PlanStep",
    "PlannerStage",
    "PlannerState",
    "PlannerContext",
    "PlannerOptions",
    "ToolFilterResult",
    "PlannerManager",
    "BasePlannerStrategy",
    "DefaultPlannerStrategy",
    "SequentialThinkingStrategy",
    "StructuredPlannerStrategy",
    "register_planner_strategy",
]
