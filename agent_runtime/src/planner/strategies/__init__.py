# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from .base import BasePlannerStrategy
from .default import DefaultPlannerStrategy
from .sequential_thinking import SequentialThinkingStrategy
from .structured import StructuredPlannerStrategy
from .factory import create_strategy, register_planner_strategy, strategy_registry

__all__ = [
    "BasePlannerStrategy",
    "DefaultPlannerStrategy",
    "SequentialThinkingStrategy",
    "StructuredPlannerStrategy",
    "create_strategy",
    "register_planner_strategy",
    "strategy_registry",
]
