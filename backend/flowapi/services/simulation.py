"""
Simulation Service
==================
Hosts scenario engines as in-memory sessions and drives them on request.

Each session owns one ScenarioEngine. FastAPI runs sync handlers in a
thread pool, so every engine call goes through the session's lock; the
engine itself is never shared between threads without it.
"""
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flowsim.engine import EngineConfig, EngineEvents, ScenarioEngine
from flowsim.models import Pallet, PalletState, Scenario
from flowsim.validation import has_errors, validate_definition

from .base import BaseService
from ..core import (
    Settings,
    ResourceNotFoundError,
    SimulationError,
    ValidationError,
)
from ..schemas import SettingsUpdate, SimulationCreate


@dataclass
class SimulationSession:
    """One hosted engine plus the events it emitted since the last drain"""
    id: str
    engine: ScenarioEngine
    created_at: datetime
    lock: threading.Lock = field(default_factory=threading.Lock)
    events: List[Dict[str, Any]] = field(default_factory=list)
    capture_moves: bool = False

    def drain_events(self) -> List[Dict[str, Any]]:
        events, self.events = self.events, []
        return events


class SessionRegistry:
    """Thread-safe map of session id -> SimulationSession"""

    def __init__(self):
        self._sessions: Dict[str, SimulationSession] = {}
        self._lock = threading.Lock()

    def add(self, session: SimulationSession, limit: int):
        with self._lock:
            if len(self._sessions) >= limit:
                raise SimulationError(
                    f"Session limit reached ({limit}); delete a simulation first",
                    details={"max_sessions": limit}
                )
            self._sessions[session.id] = session

    def get(self, session_id: str) -> SimulationSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise ResourceNotFoundError("Simulation", session_id)
        return session

    def remove(self, session_id: str) -> SimulationSession:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise ResourceNotFoundError("Simulation", session_id)
        return session

    def all(self) -> List[SimulationSession]:
        with self._lock:
            return list(self._sessions.values())

    def clear(self):
        with self._lock:
            self._sessions.clear()


def _session_events(session: SimulationSession) -> EngineEvents:
    """Engine callbacks that queue events on the session"""

    def record(kind: str, pallet: Pallet, old_state: Optional[PalletState] = None):
        session.events.append({
            "type": kind,
            "time": session.engine.get_simulation_time(),
            "pallet_id": pallet.id,
            "flow_id": pallet.flow_id,
            "node_id": pallet.current_node_id,
            "state": pallet.state.value,
            "old_state": old_state.value if old_state is not None else None,
        })

    def moved(pallet: Pallet):
        if session.capture_moves:
            record("moved", pallet)

    return EngineEvents(
        on_pallet_spawned=lambda pallet: record("spawned", pallet),
        on_pallet_moved=moved,
        on_pallet_state_changed=lambda pallet, old: record("state_changed", pallet, old),
        on_pallet_completed=lambda pallet: record("completed", pallet),
    )


class SimulationService(BaseService):
    """
    Service for hosted simulation sessions.

    Handles:
    - Creating sessions from a scenario definition and an element layout
    - Advancing, resetting and reconfiguring running engines
    - Manual spawns
    - Reporting session state and emitted events
    """

    def __init__(self, registry: SessionRegistry, settings: Optional[Settings] = None):
        super().__init__(settings)
        self.registry = registry

    def create_session(self, request: SimulationCreate) -> Dict[str, Any]:
        """
        Create a session and its engine.

        Raises:
            ValidationError: If strict and the scenario has validation errors
            SimulationError: If the session limit is reached
        """
        issues = validate_definition(request.scenario, request.elements)
        issue_dicts = [issue.to_dict() for issue in issues]

        if request.strict and has_errors(issues):
            raise ValidationError("Scenario has validation errors", details=issue_dicts)

        session_id = uuid.uuid4().hex[:12]
        scenario = Scenario.from_definition(
            request.scenario,
            scenario_id=request.scenario_id or session_id,
            name=request.name or f"Simulation {session_id}",
            warehouse_id=request.warehouse_id,
            description=request.description,
        )

        session = SimulationSession(id=session_id, engine=None, created_at=datetime.now(timezone.utc))
        session.engine = ScenarioEngine(
            scenario,
            EngineConfig(elements=list(request.elements), events=_session_events(session)),
        )
        self.registry.add(session, self.settings.max_sessions)

        self._log_operation("create_session", {
            "session_id": session_id,
            "flows": len(scenario.flows),
            "elements": len(request.elements),
            "issues": len(issues)
        })

        state = self.get_state(session_id)
        state["issues"] = issue_dicts
        return state

    def list_sessions(self) -> List[Dict[str, Any]]:
        summaries = []
        for session in self.registry.all():
            with session.lock:
                summaries.append(self._summary(session))
        return summaries

    def get_state(self, session_id: str) -> Dict[str, Any]:
        session = self.registry.get(session_id)
        with session.lock:
            return self._state(session)

    def tick(
        self,
        session_id: str,
        delta_time: float,
        steps: int = 1,
        include_moves: bool = False
    ) -> Dict[str, Any]:
        """
        Advance a session by ``steps`` ticks of ``delta_time`` ms each.

        Stops early once the scenario duration is reached.

        Raises:
            ValidationError: If delta_time or steps exceed the configured limits
        """
        self._validate_positive(delta_time, "delta_time")
        self._validate_positive(steps, "steps")
        self._validate_at_most(delta_time, self.settings.max_tick_delta_ms, "delta_time")
        self._validate_at_most(steps, self.settings.max_steps_per_request, "steps")

        session = self.registry.get(session_id)
        with session.lock:
            engine = session.engine
            session.capture_moves = include_moves
            steps_run = 0
            try:
                for _ in range(steps):
                    if engine.is_finished():
                        break
                    engine.tick(delta_time)
                    steps_run += 1
            finally:
                session.capture_moves = False

            return {
                "simulation_time": engine.get_simulation_time(),
                "finished": engine.is_finished(),
                "steps_run": steps_run,
                "pallets": [pallet.to_dict() for pallet in engine.get_pallets()],
                "events": session.drain_events(),
            }

    def spawn(self, session_id: str, flow_id: str) -> Dict[str, Any]:
        """
        Manually spawn a pallet for a flow.

        Raises:
            ResourceNotFoundError: If the session or flow does not exist
            SimulationError: If the flow's limits or layout refuse the spawn
        """
        session = self.registry.get(session_id)
        with session.lock:
            engine = session.engine
            flow_ids = [flow.id for flow in engine.get_scenario().flows]
            if flow_id not in flow_ids:
                raise ResourceNotFoundError("Flow", flow_id)

            pallet = engine.trigger_spawn(flow_id)
            if pallet is None:
                session.drain_events()
                raise SimulationError(
                    f"Flow '{flow_id}' refused the spawn",
                    details={"flow_stats": self._flow_stats(engine).get(flow_id)}
                )

            self._log_operation("spawn", {"session_id": session_id, "pallet_id": pallet.id})
            return {"pallet": pallet.to_dict(), "events": session.drain_events()}

    def update_settings(self, session_id: str, update: SettingsUpdate) -> Dict[str, Any]:
        changes = update.model_dump(exclude_unset=True)
        session = self.registry.get(session_id)
        with session.lock:
            session.engine.update_settings(**changes)
            self._log_operation("update_settings", {"session_id": session_id, **changes})
            return self._state(session)

    def reset(self, session_id: str) -> Dict[str, Any]:
        session = self.registry.get(session_id)
        with session.lock:
            session.engine.reset()
            session.events.clear()
            self._log_operation("reset", {"session_id": session_id})
            return self._state(session)

    def delete_session(self, session_id: str):
        self.registry.remove(session_id)
        self._log_operation("delete_session", {"session_id": session_id})

    def _summary(self, session: SimulationSession) -> Dict[str, Any]:
        engine = session.engine
        scenario = engine.get_scenario()
        return {
            "id": session.id,
            "scenario_id": scenario.id,
            "name": scenario.name,
            "simulation_time": engine.get_simulation_time(),
            "finished": engine.is_finished(),
            "pallet_count": len(engine.get_pallets()),
            "created_at": session.created_at.isoformat(),
        }

    def _state(self, session: SimulationSession) -> Dict[str, Any]:
        engine = session.engine
        state = self._summary(session)
        state.update({
            "settings": engine.get_scenario().settings.model_dump(),
            "pallets": [pallet.to_dict() for pallet in engine.get_pallets()],
            "flow_stats": self._flow_stats(engine),
            "counters": engine.get_counters(),
            "occupancy": engine.get_element_occupancy(),
        })
        return state

    @staticmethod
    def _flow_stats(engine: ScenarioEngine) -> Dict[str, Dict[str, Any]]:
        stats = {}
        for flow in engine.get_scenario().flows:
            flow_state = engine.get_flow_stats(flow.id)
            if flow_state is not None:
                stats[flow.id] = flow_state.to_dict()
        return stats


# Sessions live for the lifetime of the process
session_registry = SessionRegistry()


def get_simulation_service() -> SimulationService:
    """FastAPI dependency"""
    return SimulationService(session_registry)
