#!/usr/bin/env python3
"""
Unit tests for flow graph validation

Run with: pytest tests/unit/test_validation.py -v
Or: pytest -m unit
"""

import pytest

from flowsim.models import (
    DecisionNode,
    ExitNode,
    FixedDwell,
    FixedTarget,
    FlowDefinition,
    FlowEdge,
    LocationNode,
    NodeAction,
    ProbabilityCondition,
    RandomChoiceCondition,
    RandomTarget,
    ScenarioDefinition,
    ZoneTarget,
)
from flowsim.validation import ERROR, WARNING, has_errors, validate_definition, validate_flow


def loc(node_id, target=None):
    return LocationNode(
        id=node_id,
        target=target or FixedTarget(element_id="dock-1"),
        action=NodeAction(dwell=FixedDwell(duration=0)),
    )


def make_flow(nodes, edges, entry="a", flow_id="f"):
    return FlowDefinition(
        id=flow_id,
        name=flow_id,
        entry_node=entry,
        nodes=nodes,
        edges=[FlowEdge(id=f"e{i}", from_=s, to=t, condition=c) for i, (s, t, c) in enumerate(edges)],
        spawning={"mode": "manual"},
    )


def messages(issues, severity=None):
    return [i.message for i in issues if severity is None or i.severity == severity]


@pytest.mark.unit
class TestValidateFlow:
    """Unit tests for validate_flow"""

    def test_clean_flow(self, dock_scenario, layout_elements):
        """The reference scenario should have no issues"""
        assert validate_flow(dock_scenario.flows[0], layout_elements) == []

    def test_missing_entry(self):
        """An entry id that is not a node is an error"""
        issues = validate_flow(make_flow([loc("a")], [], entry="zzz"))
        assert has_errors(issues)
        assert any("entry node 'zzz'" in m for m in messages(issues, ERROR))

    def test_non_location_entry(self):
        """Pallets cannot spawn at a decision or exit"""
        issues = validate_flow(make_flow([ExitNode(id="a")], []))
        assert any("only spawn at a location" in m for m in messages(issues, ERROR))

    def test_dangling_edges(self):
        """Edges referencing unknown nodes are errors"""
        issues = validate_flow(make_flow([loc("a")], [("a", "ghost", None)]))
        assert any("unknown node 'ghost'" in m for m in messages(issues, ERROR))

    def test_decision_without_edges(self):
        """A decision with no outgoing edges is an error"""
        flow = make_flow(
            [loc("a"), DecisionNode(id="d", condition=ProbabilityCondition(chance=0.5))],
            [("a", "d", None)],
        )
        issues = validate_flow(flow)
        assert [i.node_id for i in issues if i.severity == ERROR] == ["d"]

    def test_decision_missing_false_edge(self):
        """A missing outcome edge is a stall warning"""
        flow = make_flow(
            [loc("a"), DecisionNode(id="d", condition=ProbabilityCondition(chance=0.5)), ExitNode(id="x")],
            [("a", "d", None), ("d", "x", "true")],
        )
        issues = validate_flow(flow)
        assert not has_errors(issues)
        assert messages(issues, WARNING) == ["no 'false' edge; pallets stall on that outcome"]

    def test_duplicate_outcome_edges(self):
        """Two edges for the same outcome are an error"""
        flow = make_flow(
            [loc("a"), DecisionNode(id="d", condition=ProbabilityCondition(chance=0.5)),
             ExitNode(id="x"), ExitNode(id="y")],
            [("a", "d", None), ("d", "x", "true"), ("d", "y", "true"), ("d", "x", "false")],
        )
        assert "more than one 'true' edge" in messages(validate_flow(flow), ERROR)

    def test_random_choice_weight_mismatch(self):
        """Weights should match the number of outgoing edges"""
        flow = make_flow(
            [loc("a"), DecisionNode(id="d", condition=RandomChoiceCondition(weights=[1, 2, 3])),
             ExitNode(id="x"), ExitNode(id="y")],
            [("a", "d", None), ("d", "x", None), ("d", "y", None)],
        )
        warnings = messages(validate_flow(flow), WARNING)
        assert "random-choice has 3 weights for 2 outgoing edges" in warnings

    def test_unreachable_node(self):
        """Nodes not reachable from entry are reported"""
        flow = make_flow([loc("a"), loc("island"), ExitNode(id="x")], [("a", "x", None)])
        issues = validate_flow(flow)
        assert [i.node_id for i in issues] == ["island"]

    def test_exit_with_outgoing_edges(self):
        """Edges leaving an exit are never taken"""
        flow = make_flow([loc("a"), ExitNode(id="x")], [("a", "x", None), ("x", "a", None)])
        assert any("exit node has outgoing edges" in m for m in messages(validate_flow(flow), WARNING))

    def test_element_checks(self, layout_elements):
        """Element references are checked against the layout when given"""
        flow = make_flow(
            [
                loc("a"),
                loc("b", FixedTarget(element_id="ghost")),
                loc("c", RandomTarget(pool=[])),
                loc("d", ZoneTarget(zone="mezzanine")),
            ],
            [("a", "b", None), ("b", "c", None), ("c", "d", None)],
        )
        errors = messages(validate_flow(flow, layout_elements), ERROR)
        assert "element 'ghost' is not placed in the layout" in errors
        assert "random target has an empty pool" in errors
        assert "no placed element matches zone target" in errors
        # Without a layout only structure is checked
        assert not has_errors(validate_flow(flow))


@pytest.mark.unit
class TestValidateDefinition:
    """Unit tests for validate_definition"""

    def test_duplicate_flow_ids(self):
        """Flow ids must be unique within a definition"""
        flow = make_flow([loc("a")], [])
        definition = ScenarioDefinition(flows=[flow, flow.model_copy()])
        issues = validate_definition(definition)
        assert "duplicate flow id" in messages(issues, ERROR)

    def test_issue_rendering(self):
        """Issues render with severity and location"""
        issues = validate_flow(make_flow([loc("a")], [], entry="zzz"))
        assert str(issues[0]).startswith("[error] f:")
        assert issues[0].to_dict()["severity"] == "error"
