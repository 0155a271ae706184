#!/usr/bin/env python3
"""
Unit tests for decision node condition evaluation

Run with: pytest tests/unit/test_conditions.py -v
Or: pytest -m unit
"""

import pytest

from flowsim.conditions import (
    ConditionContext,
    compare_values,
    evaluate_condition,
    select_weighted_index,
)
from flowsim.models import (
    CapacityCondition,
    CounterCondition,
    ProbabilityCondition,
    RandomChoiceCondition,
    TimeCondition,
)
from flowsim.rng import create_seeded_random, sequence_random


def make_context(**kwargs):
    kwargs.setdefault("simulation_time", 0.0)
    kwargs.setdefault("random", sequence_random([0.5]))
    return ConditionContext(**kwargs)


@pytest.mark.unit
class TestCompareValues:
    """Unit tests for compare_values"""

    def test_operators(self):
        """Should apply <, > and =="""
        assert compare_values(1, "<", 2)
        assert not compare_values(2, "<", 2)
        assert compare_values(3, ">", 2)
        assert compare_values(2, "==", 2.0)

    def test_unknown_operator(self):
        """Should evaluate to False for unsupported operators"""
        assert compare_values(1, "<=", 2) is False


@pytest.mark.unit
class TestEvaluateCondition:
    """Unit tests for evaluate_condition"""

    def test_probability_below_chance(self):
        """Draw below chance should be true"""
        context = make_context(random=sequence_random([0.69]))
        assert evaluate_condition(ProbabilityCondition(chance=0.7), None, context)

    def test_probability_at_chance(self):
        """Draw equal to chance should be false"""
        context = make_context(random=sequence_random([0.7]))
        assert not evaluate_condition(ProbabilityCondition(chance=0.7), None, context)

    def test_probability_extremes(self):
        """Chance 0 is never true and chance 1 is always true"""
        rng = create_seeded_random(5)
        context = make_context(random=rng)
        assert not any(evaluate_condition(ProbabilityCondition(chance=0), None, context) for _ in range(1000))
        assert all(evaluate_condition(ProbabilityCondition(chance=1), None, context) for _ in range(1000))

    def test_probability_convergence(self):
        """True fraction over many draws should approach the chance"""
        context = make_context(random=create_seeded_random(12345))
        condition = ProbabilityCondition(chance=0.7)
        trues = sum(evaluate_condition(condition, None, context) for _ in range(100_000))
        assert abs(trues / 100_000 - 0.7) <= 0.01

    def test_capacity(self):
        """Should compare current occupancy of the element"""
        context = make_context(element_capacities={"rack-1": 3})
        assert evaluate_condition(
            CapacityCondition(element_id="rack-1", operator=">", value=2), None, context
        )
        assert evaluate_condition(
            CapacityCondition(element_id="rack-2", operator="==", value=0), None, context
        )

    def test_time(self):
        """Should compare the simulation clock"""
        context = make_context(simulation_time=5000)
        assert evaluate_condition(TimeCondition(operator=">", value=4000), None, context)
        assert not evaluate_condition(TimeCondition(operator="<", value=4000), None, context)

    def test_counter(self):
        """Missing counters should read as zero"""
        context = make_context(counters={"picked": 4})
        assert evaluate_condition(CounterCondition(name="picked", operator="==", value=4), None, context)
        assert evaluate_condition(CounterCondition(name="missing", operator="<", value=1), None, context)

    def test_random_choice_is_not_binary(self):
        """Random-choice should evaluate to False without drawing"""
        def rng():
            raise AssertionError("random source should not be used")

        context = make_context(random=rng)
        assert evaluate_condition(RandomChoiceCondition(weights=[1, 1]), None, context) is False

    def test_unknown_condition(self):
        """Unknown condition objects should evaluate to False"""
        assert evaluate_condition(object(), None, make_context()) is False


@pytest.mark.unit
class TestWeightedIndex:
    """Unit tests for select_weighted_index"""

    def test_cumulative_selection(self):
        """Should pick the first bucket whose cumulative weight covers the draw"""
        weights = [1, 2, 1]
        assert select_weighted_index(weights, 0.0) == 0
        assert select_weighted_index(weights, 0.25) == 0
        assert select_weighted_index(weights, 0.5) == 1
        assert select_weighted_index(weights, 0.9) == 2

    def test_empty_and_zero_weights(self):
        """Degenerate weights should pick index 0"""
        assert select_weighted_index([], 0.5) == 0
        assert select_weighted_index([0, 0], 0.5) == 0

    def test_zero_weight_bucket_skipped(self):
        """A zero-weight bucket after the draw is never chosen"""
        assert select_weighted_index([0, 1], 0.5) == 1
