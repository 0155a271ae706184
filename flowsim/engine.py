"""ScenarioEngine: tick-driven flow simulation.

Architecture
------------
The engine is the sole owner of every pallet and of all mutable run state
(clock, spawn bookkeeping, counters, occupancy, visit counts, round-robin
cursors, random stream). An external driver calls ``tick(delta_time)``
repeatedly; each tick:

  1. advances the clock by ``delta_time * speed_multiplier``,
  2. asks the SpawnScheduler whether each active flow is due a pallet,
  3. advances every live pallet's state machine once, in spawn order.

Pallet state machine:

    dwelling --(dwell elapsed)--> transition --(edge found)--> moving
    moving   --(path done)-----> arrive --> dwelling | completed
    waiting  --(every tick)----> transition
    (exit node or dead end) ----> completed, removed from the live set

Decision and exit nodes have no position of their own: a pallet steps onto
them in place, and a decision is evaluated on the tick after arrival.

Determinism:
  One random stream feeds spawn jitter, dwell sampling, target selection,
  branch conditions and weighted edges. Same scenario, same seed and the
  same sequence of calls give identical trajectories; the draw order in
  this module is part of that contract.

Malformed scenario data never raises here. Unresolvable references are
logged and the affected spawn or transition is skipped (and retried on the
next tick where that makes sense).
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Tuple

from pydantic.alias_generators import to_camel

from .conditions import ConditionContext, evaluate_condition, select_weighted_index
from .config import BASE_SPEED, MS_PER_SECOND, PALLET_ID_PREFIX
from .models import (
    DecisionNode,
    DistributionDwell,
    ExitNode,
    FixedDwell,
    FixedTarget,
    FlowDefinition,
    FlowEdge,
    LocationNode,
    Pallet,
    PalletState,
    PlacedElementInfo,
    Point,
    RandomChoiceCondition,
    RangeDwell,
    Scenario,
    ScenarioSettings,
)
from .pathfinding import generate_path, get_path_length, get_position_along_path
from .rng import RandomSource, create_seeded_random, sample_normal, sample_uniform
from .selection import SelectionContext, resolve_target
from .spawning import FlowSpawnState, SpawnScheduler
from .validation import validate_flow

logger = logging.getLogger("palletflow.engine")


@dataclass
class EngineEvents:
    """Optional synchronous callbacks fired inside the triggering call"""
    on_pallet_spawned: Optional[Callable[[Pallet], None]] = None
    on_pallet_moved: Optional[Callable[[Pallet], None]] = None
    on_pallet_state_changed: Optional[Callable[[Pallet, PalletState], None]] = None
    on_pallet_completed: Optional[Callable[[Pallet], None]] = None


@dataclass
class EngineConfig:
    elements: List[PlacedElementInfo] = field(default_factory=list)
    events: Optional[EngineEvents] = None
    # Called with the scenario seed at construction and on every reset()
    random_factory: Callable[[Optional[int]], RandomSource] = create_seeded_random


class ScenarioEngine:
    """Runs every active flow of a scenario over a placed warehouse layout."""

    def __init__(self, scenario: Scenario, config: Optional[EngineConfig] = None) -> None:
        self.scenario = scenario
        self.config = config or EngineConfig()
        self.events = self.config.events or EngineEvents()

        self._random: RandomSource = self.config.random_factory(scenario.settings.seed)
        self._clock = 0.0
        self._pallet_sequence = 0
        self._pallets: Dict[str, Pallet] = {}

        # Condition / selection context
        self._counters: Dict[str, float] = {}
        self._element_capacities: Dict[str, int] = {}
        self._element_visits: Dict[str, int] = {}
        self._node_visits: Dict[str, int] = {}
        self._round_robin_state: Dict[str, int] = {}
        # pallet id -> element it is currently counted at
        self._occupied: Dict[str, str] = {}
        # pallet id -> element it is travelling to; counted against block_when_full
        self._reserved: Dict[str, str] = {}
        self._element_reservations: Dict[str, int] = {}

        # Lookup tables keyed by stable ids
        self._flows: Dict[str, FlowDefinition] = {}
        self._nodes: Dict[str, Dict[str, object]] = {}
        self._edges: Dict[str, Dict[str, List[FlowEdge]]] = {}
        self._element_map: Dict[str, PlacedElementInfo] = {}
        self._max_capacities: Dict[str, int] = {}
        self._build_caches()

        self._scheduler = SpawnScheduler(scenario.flows)

        for flow in scenario.flows:
            for issue in validate_flow(flow, self.config.elements):
                logger.warning(f"Scenario {scenario.id}: {issue}")

    def _build_caches(self) -> None:
        for flow in self.scenario.flows:
            self._flows[flow.id] = flow
            nodes = self._nodes.setdefault(flow.id, {})
            for node in flow.nodes:
                nodes[node.id] = node
                if isinstance(node, LocationNode) and node.action.capacity is not None:
                    if isinstance(node.target, FixedTarget):
                        element_id = node.target.element_id
                        limit = node.action.capacity.max
                        current = self._max_capacities.get(element_id)
                        self._max_capacities[element_id] = limit if current is None else min(current, limit)

            edges = self._edges.setdefault(flow.id, {})
            for edge in flow.edges:
                edges.setdefault(edge.from_, []).append(edge)

        for element in self.config.elements:
            self._element_map[element.id] = element

    # ==========================================================================
    # Tick loop
    # ==========================================================================

    def tick(self, delta_time: float) -> None:
        """Advance the simulation by ``delta_time`` ms of driver time"""
        if delta_time < 0:
            logger.warning(f"Ignoring negative tick delta {delta_time}")
            return
        if self.is_finished():
            return

        adjusted_delta = delta_time * self._speed_multiplier()
        self._clock += adjusted_delta

        self._check_spawns()

        for pallet in list(self._pallets.values()):
            self._update_pallet(pallet, adjusted_delta)

    def is_finished(self) -> bool:
        """True once the clock reached the scenario's duration cap"""
        duration = self.scenario.settings.duration
        return bool(duration) and self._clock >= duration

    def _speed_multiplier(self) -> float:
        return self.scenario.settings.speed_multiplier or 1.0

    def _check_spawns(self) -> None:
        for flow in self.scenario.flows:
            if not flow.is_active:
                continue
            if not self._scheduler.is_due(flow, self._clock, self._random):
                continue
            self.spawn_pallet(flow)
            self._scheduler.mark_attempt(flow.id, self._clock)

    # ==========================================================================
    # Spawning
    # ==========================================================================

    def spawn_pallet(self, flow: FlowDefinition) -> Optional[Pallet]:
        """Create a pallet at the flow's entry node.

        Returns None (after logging a warning) when the entry node is missing
        or its location cannot be resolved to a placed element.
        """
        entry = self._get_node(flow.id, flow.entry_node)
        if entry is None:
            logger.warning(f"Entry node {flow.entry_node} not found in flow {flow.id}")
            return None
        if not isinstance(entry, LocationNode):
            logger.warning(f"Entry node {entry.id} of flow {flow.id} has no position ({entry.type} node)")
            return None

        resolved = self._resolve_location(flow.id, entry, None)
        if resolved is None:
            logger.debug(f"Could not determine position for entry node {entry.id} of flow {flow.id}")
            return None
        element_id, position = resolved

        self._pallet_sequence += 1
        pallet = Pallet(
            id=f"{PALLET_ID_PREFIX}-{self._pallet_sequence}",
            flow_id=flow.id,
            state=PalletState.DWELLING,
            current_node_id=entry.id,
            position=position,
            state_start_time=self._clock,
            spawn_time=self._clock,
            dwell_remaining=self._calculate_dwell_time(entry),
            visited_nodes=[entry.id],
            current_element_id=element_id,
        )

        self._pallets[pallet.id] = pallet
        self._increment_node_visit(flow.id, entry.id)
        self._occupy(pallet, element_id)

        self._scheduler.record_spawn(flow.id)
        self.increment_counter("spawned")
        self.increment_counter(f"spawned:{flow.id}")

        self._emit("on_pallet_spawned", pallet)
        return pallet

    def trigger_spawn(self, flow_id: str) -> Optional[Pallet]:
        """Manual spawn entry point.

        Active flows are held to their max_active and total_limit gates.
        Inactive flows have no spawn bookkeeping, so a manual spawn for one
        is never gated and does not show up in get_flow_stats().
        """
        flow = self._flows.get(flow_id)
        if flow is None:
            return None
        if flow.is_active and self._scheduler.is_gated(flow):
            logger.info(f"Spawn for flow {flow_id} refused: limits reached")
            return None
        return self.spawn_pallet(flow)

    # ==========================================================================
    # Pallet state machine
    # ==========================================================================

    def _update_pallet(self, pallet: Pallet, delta_time: float) -> None:
        if pallet.state == PalletState.DWELLING:
            self._update_dwelling(pallet, delta_time)
        elif pallet.state == PalletState.MOVING:
            self._update_moving(pallet, delta_time)
        elif pallet.state == PalletState.WAITING:
            self._transition_to_next_node(pallet)

    def _update_dwelling(self, pallet: Pallet, delta_time: float) -> None:
        if pallet.dwell_remaining is None:
            self._transition_to_next_node(pallet)
            return

        pallet.dwell_remaining -= delta_time
        if pallet.dwell_remaining <= 0:
            pallet.dwell_remaining = None
            self._transition_to_next_node(pallet)

    def _update_moving(self, pallet: Pallet, delta_time: float) -> None:
        if not pallet.current_path:
            self._arrive_at_node(pallet)
            return

        path_length = get_path_length(pallet.current_path)
        if path_length == 0:
            pallet.path_progress = 1.0
        else:
            speed = BASE_SPEED * pallet.speed_factor * self._speed_multiplier()
            distance = speed * delta_time / MS_PER_SECOND
            pallet.path_progress += distance / path_length

        pallet.position = get_position_along_path(pallet.current_path, pallet.path_progress)
        self._emit("on_pallet_moved", pallet)

        if pallet.path_progress >= 1:
            self._arrive_at_node(pallet)

    def _transition_to_next_node(self, pallet: Pallet) -> None:
        node = self._get_node(pallet.flow_id, pallet.current_node_id)
        if node is None:
            logger.debug(f"Pallet {pallet.id} sits on unknown node {pallet.current_node_id}")
            return

        if isinstance(node, ExitNode):
            self._complete_pallet(pallet)
            return

        if isinstance(node, DecisionNode):
            edge = self._select_decision_edge(pallet, node)
            # No edge for this outcome: stay put and re-evaluate next tick
            if edge is not None:
                self._start_moving_to_node(pallet, edge.to)
            return

        edges = self._outgoing_edges(pallet.flow_id, node.id)
        if not edges:
            # Dead end behaves as an exit
            self._complete_pallet(pallet)
            return

        edge = self._select_edge(edges)
        self._start_moving_to_node(pallet, edge.to)

    def _select_decision_edge(self, pallet: Pallet, node: DecisionNode) -> Optional[FlowEdge]:
        edges = self._outgoing_edges(pallet.flow_id, node.id)

        if isinstance(node.condition, RandomChoiceCondition):
            index = select_weighted_index(node.condition.weights, self._random())
            if index < len(edges):
                return edges[index]
            logger.debug(f"Decision {node.id}: random choice {index} has no matching edge")
            return None

        context = ConditionContext(
            simulation_time=self._clock,
            random=self._random,
            counters=self._counters,
            element_capacities=self._element_capacities,
        )
        outcome = "true" if evaluate_condition(node.condition, pallet, context) else "false"
        for edge in edges:
            if edge.condition == outcome:
                return edge
        return None

    def _select_edge(self, edges: List[FlowEdge]) -> FlowEdge:
        """One edge out of a location: weighted draw if any weight is set, else the first"""
        if len(edges) == 1:
            return edges[0]

        if any(edge.weight is not None for edge in edges):
            weights = [1.0 if edge.weight is None else edge.weight for edge in edges]
            remaining = self._random() * sum(weights)
            for edge, weight in zip(edges, weights):
                remaining -= weight
                if remaining <= 0:
                    return edge
            return edges[-1]

        return edges[0]

    def _start_moving_to_node(self, pallet: Pallet, node_id: str) -> None:
        target = self._get_node(pallet.flow_id, node_id)
        if target is None:
            logger.warning(f"Node {node_id} not found in flow {pallet.flow_id}")
            return

        if not isinstance(target, LocationNode):
            # Decision and exit nodes are entered in place
            pallet.next_node_id = node_id
            self._arrive_at_node(pallet)
            return

        resolved = self._resolve_location(pallet.flow_id, target, pallet)
        if resolved is None:
            logger.debug(f"Could not get position for node {node_id} in flow {pallet.flow_id}")
            return
        element_id, position = resolved

        if self._is_blocked(target, element_id):
            if pallet.state != PalletState.WAITING:
                old_state = pallet.state
                pallet.state = PalletState.WAITING
                pallet.state_start_time = self._clock
                self._emit("on_pallet_state_changed", pallet, old_state)
            return

        self._vacate(pallet)
        self._reserve(pallet, element_id)

        old_state = pallet.state
        pallet.state = PalletState.MOVING
        pallet.next_node_id = node_id
        pallet.current_path = generate_path(pallet.position, position)
        pallet.path_progress = 0.0
        pallet.state_start_time = self._clock
        pallet.current_element_id = element_id
        pallet.speed_factor = target.action.speed_factor or 1.0

        if old_state != PalletState.MOVING:
            self._emit("on_pallet_state_changed", pallet, old_state)

    def _arrive_at_node(self, pallet: Pallet) -> None:
        if pallet.next_node_id is None:
            return
        node = self._get_node(pallet.flow_id, pallet.next_node_id)
        if node is None:
            return

        old_state = pallet.state
        pallet.current_node_id = pallet.next_node_id
        pallet.next_node_id = None
        pallet.current_path = None
        pallet.path_progress = 0.0
        pallet.visited_nodes.append(pallet.current_node_id)
        self._increment_node_visit(pallet.flow_id, pallet.current_node_id)

        if isinstance(node, ExitNode):
            self._complete_pallet(pallet)
            return

        pallet.state = PalletState.DWELLING
        pallet.state_start_time = self._clock
        if isinstance(node, DecisionNode):
            pallet.dwell_remaining = 0.0
        else:
            pallet.dwell_remaining = self._calculate_dwell_time(node)
            self._release(pallet)
            self._occupy(pallet, pallet.current_element_id)

        if old_state != pallet.state:
            self._emit("on_pallet_state_changed", pallet, old_state)

    def _complete_pallet(self, pallet: Pallet) -> None:
        if pallet.id not in self._pallets:
            return

        old_state = pallet.state
        pallet.state = PalletState.COMPLETED
        pallet.state_start_time = self._clock
        if old_state != PalletState.COMPLETED:
            self._emit("on_pallet_state_changed", pallet, old_state)

        self._emit("on_pallet_completed", pallet)

        self._vacate(pallet)
        self._release(pallet)
        self._scheduler.record_completion(pallet.flow_id)
        self.increment_counter("completed")
        self.increment_counter(f"completed:{pallet.flow_id}")
        del self._pallets[pallet.id]

    # ==========================================================================
    # Locations, dwell and occupancy
    # ==========================================================================

    def _resolve_location(
        self, flow_id: str, node: LocationNode, pallet: Optional[Pallet]
    ) -> Optional[Tuple[str, Point]]:
        """Element id and world position for a location node"""
        element_id = resolve_target(
            node.target,
            self._selection_context(),
            pallet=pallet,
            key=f"{flow_id}/{node.id}",
        )
        if element_id is None:
            logger.warning(f"Could not resolve location target of node {node.id}: {node.target!r}")
            return None

        element = self._element_map.get(element_id)
        if element is None:
            logger.warning(
                f"Element {element_id} not found. Available: {sorted(self._element_map)}"
            )
            return None

        return element_id, element.center

    def _selection_context(self) -> SelectionContext:
        return SelectionContext(
            elements=self.config.elements,
            random=self._random,
            element_map=self._element_map,
            visit_counts=self._element_visits,
            capacities=self._element_capacities,
            max_capacities=self._max_capacities,
            round_robin_state=self._round_robin_state,
        )

    def _calculate_dwell_time(self, node) -> float:
        if not isinstance(node, LocationNode):
            return 0.0

        dwell = node.action.dwell
        if isinstance(dwell, FixedDwell):
            return max(0.0, dwell.duration)
        if isinstance(dwell, RangeDwell):
            return sample_uniform(self._random, dwell.min, dwell.max)
        if isinstance(dwell, DistributionDwell):
            return max(0.0, sample_normal(self._random, dwell.mean, dwell.std_dev))

        logger.warning(f"Unknown dwell config on node {node.id}: {dwell!r}")
        return 0.0

    def _is_blocked(self, node: LocationNode, element_id: str) -> bool:
        capacity = node.action.capacity
        if capacity is None or not capacity.block_when_full:
            return False
        held = self._element_capacities.get(element_id, 0) + self._element_reservations.get(element_id, 0)
        return held >= capacity.max

    def _occupy(self, pallet: Pallet, element_id: Optional[str]) -> None:
        if element_id is None:
            return
        self._vacate(pallet)
        self._occupied[pallet.id] = element_id
        self._element_capacities[element_id] = self._element_capacities.get(element_id, 0) + 1
        self._element_visits[element_id] = self._element_visits.get(element_id, 0) + 1

    def _vacate(self, pallet: Pallet) -> None:
        element_id = self._occupied.pop(pallet.id, None)
        if element_id is None:
            return
        self._element_capacities[element_id] = max(0, self._element_capacities.get(element_id, 0) - 1)

    def _reserve(self, pallet: Pallet, element_id: str) -> None:
        self._release(pallet)
        self._reserved[pallet.id] = element_id
        self._element_reservations[element_id] = self._element_reservations.get(element_id, 0) + 1

    def _release(self, pallet: Pallet) -> None:
        element_id = self._reserved.pop(pallet.id, None)
        if element_id is None:
            return
        remaining = self._element_reservations.get(element_id, 0) - 1
        if remaining > 0:
            self._element_reservations[element_id] = remaining
        else:
            self._element_reservations.pop(element_id, None)

    def _increment_node_visit(self, flow_id: str, node_id: str) -> None:
        key = f"{flow_id}/{node_id}"
        self._node_visits[key] = self._node_visits.get(key, 0) + 1

    def _get_node(self, flow_id: str, node_id: str):
        return self._nodes.get(flow_id, {}).get(node_id)

    def _outgoing_edges(self, flow_id: str, node_id: str) -> List[FlowEdge]:
        return self._edges.get(flow_id, {}).get(node_id, [])

    def _emit(self, name: str, *args) -> None:
        callback = getattr(self.events, name, None)
        if callback is not None:
            callback(*args)

    # ==========================================================================
    # Public API
    # ==========================================================================

    def get_pallets(self) -> List[Pallet]:
        """Live pallets in spawn order"""
        return list(self._pallets.values())

    def get_simulation_time(self) -> float:
        return self._clock

    def get_scenario(self) -> Scenario:
        return self.scenario

    def get_flow_stats(self, flow_id: str) -> Optional[FlowSpawnState]:
        """Copy of a flow's spawn bookkeeping, None for unknown or inactive flows"""
        state = self._scheduler.state(flow_id)
        return replace(state) if state is not None else None

    def get_counters(self) -> Dict[str, float]:
        return dict(self._counters)

    def get_element_occupancy(self) -> Dict[str, int]:
        return {k: v for k, v in self._element_capacities.items() if v > 0}

    def get_node_visits(self) -> Dict[str, int]:
        """Visit counts keyed by "<flow id>/<node id>" """
        return dict(self._node_visits)

    def set_counter(self, name: str, value: float) -> None:
        self._counters[name] = value

    def increment_counter(self, name: str, amount: float = 1) -> None:
        self._counters[name] = self._counters.get(name, 0) + amount

    def reset(self) -> None:
        """Restore initial conditions, including the random stream"""
        self._pallets.clear()
        self._clock = 0.0
        self._pallet_sequence = 0
        self._counters.clear()
        self._element_capacities.clear()
        self._element_visits.clear()
        self._node_visits.clear()
        self._round_robin_state.clear()
        self._occupied.clear()
        self._reserved.clear()
        self._element_reservations.clear()
        self._scheduler.reset(self.scenario.flows)
        self._random = self.config.random_factory(self.scenario.settings.seed)

    def update_settings(self, **changes) -> None:
        """Shallow-merge settings; keys may be field names or camelCase aliases.

        Paths already in flight keep their geometry; only later ticks see
        the new values.
        """
        fields = ScenarioSettings.model_fields
        aliases = {to_camel(name): name for name in fields}

        update = {}
        for key, value in changes.items():
            name = aliases.get(key, key)
            if name not in fields:
                logger.warning(f"Ignoring unknown scenario setting {key!r}")
                continue
            update[name] = value

        self.scenario.settings = self.scenario.settings.model_copy(update=update)
