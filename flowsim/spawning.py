"""
Spawn Scheduling
================
Per-flow bookkeeping that decides, tick by tick, when a flow creates a new
pallet. The scheduler only answers "is a spawn due"; the engine performs the
spawn and reports back through ``record_spawn`` / ``record_completion``.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from .models import BatchSpawn, FlowDefinition, IntervalSpawn, ManualSpawn
from .rng import RandomSource

logger = logging.getLogger("palletflow.engine.spawning")


@dataclass
class FlowSpawnState:
    """Spawn counters for one flow"""
    last_spawn_time: float = 0.0
    total_spawned: int = 0
    batch_progress: int = 0
    last_batch_spawn_time: float = 0.0
    active_count: int = 0
    completed_count: int = 0

    def to_dict(self) -> dict:
        return {
            "last_spawn_time": self.last_spawn_time,
            "total_spawned": self.total_spawned,
            "batch_progress": self.batch_progress,
            "last_batch_spawn_time": self.last_batch_spawn_time,
            "active_count": self.active_count,
            "completed_count": self.completed_count,
        }


class SpawnScheduler:
    """Tracks spawn state for every active flow of a scenario"""

    def __init__(self, flows: Iterable[FlowDefinition] = ()):
        self._states: Dict[str, FlowSpawnState] = {}
        self.reset(flows)

    def reset(self, flows: Iterable[FlowDefinition]):
        self._states = {flow.id: FlowSpawnState() for flow in flows if flow.is_active}

    def state(self, flow_id: str) -> Optional[FlowSpawnState]:
        return self._states.get(flow_id)

    def states(self) -> Dict[str, FlowSpawnState]:
        return dict(self._states)

    def is_gated(self, flow: FlowDefinition) -> bool:
        """True when active or total limits forbid another pallet"""
        state = self._states.get(flow.id)
        if state is None:
            return True

        spawning = flow.spawning
        if spawning.max_active is not None and state.active_count >= spawning.max_active:
            return True
        if spawning.total_limit is not None and state.total_spawned >= spawning.total_limit:
            return True
        return False

    def is_due(self, flow: FlowDefinition, clock: float, random: RandomSource) -> bool:
        """Whether the flow's automatic policy wants a spawn at this clock.

        Advances batch bookkeeping as a side effect, and interval mode draws
        its jitter on every call, so call exactly once per flow per tick.
        """
        state = self._states.get(flow.id)
        if state is None or self.is_gated(flow):
            return False

        spawning = flow.spawning

        if isinstance(spawning, IntervalSpawn):
            variance = spawning.variance or 0.0
            jitter = variance * (random() - 0.5) * 2
            return clock - state.last_spawn_time >= spawning.duration + jitter

        if isinstance(spawning, BatchSpawn):
            if state.batch_progress < spawning.size:
                if clock - state.last_spawn_time >= spawning.spacing:
                    state.batch_progress += 1
                    return True
                return False

            if clock - state.last_batch_spawn_time >= spawning.batch_interval:
                state.batch_progress = 1
                state.last_batch_spawn_time = clock
                return True
            return False

        if isinstance(spawning, ManualSpawn):
            return False

        logger.warning(f"Flow {flow.id} has unknown spawn config {spawning!r}")
        return False

    def mark_attempt(self, flow_id: str, clock: float):
        """Restart the spacing timer after an automatic spawn attempt"""
        state = self._states.get(flow_id)
        if state is not None:
            state.last_spawn_time = clock

    def record_spawn(self, flow_id: str):
        state = self._states.get(flow_id)
        if state is not None:
            state.total_spawned += 1
            state.active_count += 1

    def record_completion(self, flow_id: str):
        state = self._states.get(flow_id)
        if state is not None:
            state.active_count -= 1
            state.completed_count += 1
