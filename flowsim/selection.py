"""
Location Selection Rules
========================
Resolve a location target (fixed, random pool, category or zone) to one
concrete element id.

Resolution may draw from the shared random source and advances round-robin
cursors, so call order matters for replay determinism.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .models import (
    CategoryTarget,
    FixedTarget,
    Pallet,
    PlacedElementInfo,
    RandomTarget,
    SelectionRule,
    ZoneTarget,
)
from .pathfinding import euclidean_distance
from .rng import RandomSource

logger = logging.getLogger("palletflow.engine.selection")

# Rules that need a pallet and fall back to random without one
_PALLET_RULES = {
    SelectionRule.NEAREST,
    SelectionRule.FURTHEST,
    SelectionRule.LEAST_VISITED,
}


@dataclass
class SelectionContext:
    """Everything a selection rule may consult or update"""
    elements: List[PlacedElementInfo]
    random: RandomSource
    element_map: Dict[str, PlacedElementInfo] = field(default_factory=dict)
    # element id -> pallets that arrived there so far
    visit_counts: Dict[str, int] = field(default_factory=dict)
    # element id -> pallets currently there
    capacities: Dict[str, int] = field(default_factory=dict)
    # element id -> configured maximum; absent means unbounded
    max_capacities: Dict[str, int] = field(default_factory=dict)
    # target key -> index of the last pick
    round_robin_state: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        if not self.element_map:
            self.element_map = {element.id: element for element in self.elements}


def candidate_pool(target, elements: Sequence[PlacedElementInfo]) -> List[str]:
    """Element ids a target may resolve to, in layout order"""
    if isinstance(target, FixedTarget):
        return [target.element_id]
    if isinstance(target, RandomTarget):
        return list(target.pool)
    if isinstance(target, CategoryTarget):
        return [e.id for e in elements if e.category_id == target.category_id]
    if isinstance(target, ZoneTarget):
        return [e.id for e in elements if e.zone == target.zone]
    return []


def target_key(target) -> str:
    """Default round-robin key when the caller supplies none"""
    if isinstance(target, CategoryTarget):
        return f"category:{target.category_id}"
    if isinstance(target, ZoneTarget):
        return f"zone:{target.zone}"
    return f"{getattr(target, 'type', 'unknown')}"


def resolve_target(
    target,
    context: SelectionContext,
    pallet: Optional[Pallet] = None,
    key: Optional[str] = None,
) -> Optional[str]:
    """Resolve a location target to an element id, or None if impossible.

    Without a pallet (initial spawn) the position- and visit-based rules
    degrade to a uniform random pick.
    """
    if isinstance(target, FixedTarget):
        return target.element_id

    if isinstance(target, RandomTarget):
        return select_from_pool(target.pool, SelectionRule.RANDOM, context, pallet, key)

    if isinstance(target, (CategoryTarget, ZoneTarget)):
        pool = candidate_pool(target, context.elements)
        rule = target.rule
        if pallet is None and rule in _PALLET_RULES:
            rule = SelectionRule.RANDOM
        return select_from_pool(pool, rule, context, pallet, key or target_key(target))

    logger.warning(f"Unknown location target {target!r}")
    return None


def select_from_pool(
    pool: Sequence[str],
    rule: SelectionRule,
    context: SelectionContext,
    pallet: Optional[Pallet] = None,
    key: Optional[str] = None,
) -> Optional[str]:
    if not pool:
        return None
    if len(pool) == 1:
        return pool[0]

    if rule == SelectionRule.RANDOM:
        return select_random(pool, context.random)

    if rule == SelectionRule.NEAREST and pallet is not None:
        return select_by_distance(pool, pallet, context.element_map, nearest=True)

    if rule == SelectionRule.FURTHEST and pallet is not None:
        return select_by_distance(pool, pallet, context.element_map, nearest=False)

    if rule == SelectionRule.LEAST_VISITED:
        return select_least_visited(pool, context.visit_counts)

    if rule == SelectionRule.MOST_AVAILABLE:
        return select_most_available(pool, context.capacities, context.max_capacities)

    if rule == SelectionRule.ROUND_ROBIN:
        return select_round_robin(pool, key or "default", context.round_robin_state)

    return select_random(pool, context.random)


def select_random(pool: Sequence[str], random: RandomSource) -> Optional[str]:
    if not pool:
        return None
    index = min(int(random() * len(pool)), len(pool) - 1)
    return pool[index]


def select_by_distance(
    pool: Sequence[str],
    pallet: Pallet,
    element_map: Dict[str, PlacedElementInfo],
    nearest: bool = True,
) -> Optional[str]:
    """Closest (or furthest) element center; the first one wins ties"""
    best: Optional[str] = None
    best_distance = math.inf if nearest else -math.inf

    for element_id in pool:
        element = element_map.get(element_id)
        if element is None:
            continue
        distance = euclidean_distance(pallet.position, element.center)
        if (nearest and distance < best_distance) or (not nearest and distance > best_distance):
            best = element_id
            best_distance = distance

    return best


def select_least_visited(pool: Sequence[str], visit_counts: Dict[str, int]) -> Optional[str]:
    best: Optional[str] = None
    fewest = math.inf
    for element_id in pool:
        visits = visit_counts.get(element_id, 0)
        if visits < fewest:
            best = element_id
            fewest = visits
    return best


def select_most_available(
    pool: Sequence[str],
    capacities: Dict[str, int],
    max_capacities: Dict[str, int],
) -> Optional[str]:
    """Element with the most free slots; full elements are never picked"""
    best: Optional[str] = None
    most_free = 0.0
    for element_id in pool:
        limit = max_capacities.get(element_id, math.inf)
        available = limit - capacities.get(element_id, 0)
        if available > most_free:
            best = element_id
            most_free = available
    return best


def select_round_robin(pool: Sequence[str], key: str, state: Dict[str, int]) -> Optional[str]:
    last_index = state.get(key, -1)
    next_index = (last_index + 1) % len(pool)
    state[key] = next_index
    return pool[next_index]
