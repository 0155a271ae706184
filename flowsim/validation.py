"""
Structural checks for flow graphs.

The engine tolerates every problem reported here (it skips, stalls or
treats dead ends as exits); validation exists so editors and the API can
surface them before a run. Nothing in this module raises.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from .models import (
    CategoryTarget,
    DecisionNode,
    ExitNode,
    FixedTarget,
    FlowDefinition,
    LocationNode,
    PlacedElementInfo,
    RandomChoiceCondition,
    RandomTarget,
    ScenarioDefinition,
    ZoneTarget,
)
from .selection import candidate_pool

ERROR = "error"
WARNING = "warning"


@dataclass
class ValidationIssue:
    severity: str
    flow_id: str
    message: str
    node_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "severity": self.severity,
            "flow_id": self.flow_id,
            "node_id": self.node_id,
            "message": self.message,
        }

    def __str__(self) -> str:
        where = f"{self.flow_id}/{self.node_id}" if self.node_id else self.flow_id
        return f"[{self.severity}] {where}: {self.message}"


def _reachable(flow: FlowDefinition, node_ids: Set[str]) -> Set[str]:
    outgoing: Dict[str, List[str]] = {}
    for edge in flow.edges:
        outgoing.setdefault(edge.from_, []).append(edge.to)

    seen: Set[str] = set()
    stack = [flow.entry_node] if flow.entry_node in node_ids else []
    while stack:
        node_id = stack.pop()
        if node_id in seen:
            continue
        seen.add(node_id)
        stack.extend(n for n in outgoing.get(node_id, []) if n in node_ids)
    return seen


def validate_flow(
    flow: FlowDefinition,
    elements: Optional[Iterable[PlacedElementInfo]] = None,
) -> List[ValidationIssue]:
    """Report structural problems of a single flow.

    Element references are only checked when ``elements`` is given.
    """
    issues: List[ValidationIssue] = []

    def add(severity: str, message: str, node_id: Optional[str] = None):
        issues.append(ValidationIssue(severity, flow.id, message, node_id))

    nodes = {}
    for node in flow.nodes:
        if node.id in nodes:
            add(ERROR, "duplicate node id", node.id)
        nodes[node.id] = node

    entry = nodes.get(flow.entry_node)
    if entry is None:
        add(ERROR, f"entry node '{flow.entry_node}' is not part of the flow")
    elif not isinstance(entry, LocationNode):
        add(ERROR, f"entry node is a {entry.type} node; pallets can only spawn at a location", entry.id)

    edges_from: Dict[str, list] = {}
    for edge in flow.edges:
        if edge.from_ not in nodes:
            add(ERROR, f"edge '{edge.id}' starts at unknown node '{edge.from_}'")
        if edge.to not in nodes:
            add(ERROR, f"edge '{edge.id}' ends at unknown node '{edge.to}'")
        edges_from.setdefault(edge.from_, []).append(edge)

    for node_id, node in nodes.items():
        edges = edges_from.get(node_id, [])

        if isinstance(node, ExitNode) and edges:
            add(WARNING, "exit node has outgoing edges; they are never taken", node_id)

        if isinstance(node, LocationNode):
            if any(e.condition is not None for e in edges):
                add(WARNING, "condition tags on edges leaving a location are ignored", node_id)

        if isinstance(node, DecisionNode):
            if not edges:
                add(ERROR, "decision node has no outgoing edges; pallets will stall", node_id)
            elif isinstance(node.condition, RandomChoiceCondition):
                if len(node.condition.weights) != len(edges):
                    add(
                        WARNING,
                        f"random-choice has {len(node.condition.weights)} weights "
                        f"for {len(edges)} outgoing edges",
                        node_id,
                    )
            else:
                for tag in ("true", "false"):
                    tagged = [e for e in edges if e.condition == tag]
                    if len(tagged) > 1:
                        add(ERROR, f"more than one '{tag}' edge", node_id)
                    elif not tagged:
                        add(WARNING, f"no '{tag}' edge; pallets stall on that outcome", node_id)

    if entry is not None:
        reachable = _reachable(flow, set(nodes))
        for node_id in nodes:
            if node_id not in reachable:
                add(WARNING, "node is unreachable from the entry node", node_id)

    if elements is not None:
        elements = list(elements)
        known = {e.id for e in elements}
        for node_id, node in nodes.items():
            if not isinstance(node, LocationNode):
                continue
            target = node.target
            if isinstance(target, FixedTarget) and target.element_id not in known:
                add(ERROR, f"element '{target.element_id}' is not placed in the layout", node_id)
            elif isinstance(target, RandomTarget):
                if not target.pool:
                    add(ERROR, "random target has an empty pool", node_id)
                missing = [e for e in target.pool if e not in known]
                if missing:
                    add(WARNING, f"pool references unplaced elements {missing}", node_id)
            elif isinstance(target, (CategoryTarget, ZoneTarget)):
                if not candidate_pool(target, elements):
                    add(ERROR, f"no placed element matches {target.type} target", node_id)

    return issues


def validate_definition(
    definition: ScenarioDefinition,
    elements: Optional[Iterable[PlacedElementInfo]] = None,
) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    elements = list(elements) if elements is not None else None

    seen: Set[str] = set()
    for flow in definition.flows:
        if flow.id in seen:
            issues.append(ValidationIssue(ERROR, flow.id, "duplicate flow id"))
        seen.add(flow.id)
        issues.extend(validate_flow(flow, elements))

    return issues


def has_errors(issues: Iterable[ValidationIssue]) -> bool:
    return any(issue.severity == ERROR for issue in issues)
