"""
Condition evaluation for decision nodes.

Every function here is total: a malformed condition or an unknown operator
evaluates to False with a warning, never an exception.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from .models import (
    CapacityCondition,
    CounterCondition,
    Pallet,
    ProbabilityCondition,
    RandomChoiceCondition,
    TimeCondition,
)
from .rng import RandomSource

logger = logging.getLogger("palletflow.engine.conditions")


@dataclass
class ConditionContext:
    """Runtime state a condition may read"""
    simulation_time: float
    random: RandomSource
    counters: Dict[str, float] = field(default_factory=dict)
    # element id -> pallets currently at that element
    element_capacities: Dict[str, int] = field(default_factory=dict)


def compare_values(left: float, operator: str, right: float) -> bool:
    if operator == "<":
        return left < right
    if operator == ">":
        return left > right
    if operator == "==":
        return left == right
    logger.warning(f"Unknown comparison operator {operator!r}, evaluating to False")
    return False


def evaluate_condition(condition, pallet: Optional[Pallet], context: ConditionContext) -> bool:
    """Evaluate a binary condition for a pallet standing at a decision node.

    ``RandomChoiceCondition`` is not binary; the engine resolves it with
    :func:`select_weighted_index` and it evaluates to False here.
    """
    if isinstance(condition, ProbabilityCondition):
        return context.random() < condition.chance

    if isinstance(condition, CapacityCondition):
        current = context.element_capacities.get(condition.element_id, 0)
        return compare_values(current, condition.operator, condition.value)

    if isinstance(condition, TimeCondition):
        return compare_values(context.simulation_time, condition.operator, condition.value)

    if isinstance(condition, CounterCondition):
        count = context.counters.get(condition.name, 0)
        return compare_values(count, condition.operator, condition.value)

    if isinstance(condition, RandomChoiceCondition):
        return False

    logger.warning(f"Unknown condition {condition!r}, evaluating to False")
    return False


def select_weighted_index(weights: Sequence[float], random_value: float) -> int:
    """Index picked by a cumulative-weight draw.

    ``random_value`` is a uniform draw in [0, 1). Zero total weight picks 0;
    a draw past the end (rounding) picks the last index.
    """
    if not weights:
        return 0

    total = sum(weights)
    if total <= 0:
        return 0

    target = random_value * total
    accumulated = 0.0
    for i, weight in enumerate(weights):
        accumulated += weight
        if target <= accumulated:
            return i

    return len(weights) - 1
