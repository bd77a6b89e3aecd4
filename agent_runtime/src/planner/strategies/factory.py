# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from typing import Callable

from .base import BasePlannerStrategy
from .default import DefaultPlannerStrategy
from .sequential_thinking import SequentialThinkingStrategy
from .structured import StructuredPlannerStrategy
from ..types import PlannerOptions
from ...events import EventStream

logger = logging.getLogger(__name__)

StrategyFactory = Callable[[EventStream, PlannerOptions], BasePlannerStrategy]

strategy_registry: dict[str, StrategyFactory] = {
    DefaultPlannerStrategy.STRATEGY_NAME: DefaultPlannerStrategy,
    SequentialThinkingStrategy.STRATEGY_NAME: SequentialThinkingStrategy,
    StructuredPlannerStrategy.STRATEGY_NAME: StructuredPlannerStrategy,
}


def register_planner_strategy(name: str, factory: StrategyFactory) -> None:
    if name in strategy_registry:
        logger.warning(f"Replacing planner strategy {name}")
    strategy_registry[name] = factory


def create_strategy(
    name: str, event_stream: EventStream, options: PlannerOptions
) -> BasePlannerStrategy:
    factory = strategy_registry.get(name)
    if factory is None:
        logger.warning(f"Unknown planner strategy: {name}, falling back to default")
        factory = DefaultPlannerStrategy
    return factory(event_stream, options)
