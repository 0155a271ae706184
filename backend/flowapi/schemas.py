from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any

from flowsim.models import PlacedElementInfo, ScenarioDefinition


# Scenario schemas
class ScenarioValidateRequest(BaseModel):
    scenario: ScenarioDefinition
    elements: Optional[List[PlacedElementInfo]] = None  # Element references checked only when given

class ValidationIssueResponse(BaseModel):
    severity: str  # "error" or "warning"
    flow_id: str
    node_id: Optional[str] = None
    message: str

class ScenarioValidateResponse(BaseModel):
    valid: bool
    flow_count: int
    issues: List[ValidationIssueResponse]


# Simulation session schemas
class SimulationCreate(BaseModel):
    scenario: ScenarioDefinition
    elements: List[PlacedElementInfo] = Field(default_factory=list)
    name: Optional[str] = None
    scenario_id: Optional[str] = None
    warehouse_id: str = "default"
    description: Optional[str] = None
    strict: bool = False  # Reject scenarios with validation errors

class SettingsUpdate(BaseModel):
    duration: Optional[float] = Field(default=None, ge=0)
    speed_multiplier: Optional[float] = Field(default=None, ge=0.1, le=10)
    seed: Optional[int] = None

class TickRequest(BaseModel):
    delta_time: float = Field(default=100.0, gt=0, description="ms per step")
    steps: int = Field(default=1, ge=1)
    include_moves: bool = False  # Movement events are emitted on every tick

class PalletResponse(BaseModel):
    id: str
    flow_id: str
    state: str
    current_node_id: str
    next_node_id: Optional[str] = None
    x: float
    y: float
    state_start_time: float
    dwell_remaining: Optional[float] = None
    path_progress: float
    visited_nodes: List[str]
    current_element_id: Optional[str] = None
    spawn_time: float

class FlowStatsResponse(BaseModel):
    last_spawn_time: float
    total_spawned: int
    batch_progress: int
    last_batch_spawn_time: float
    active_count: int
    completed_count: int

class SimulationEvent(BaseModel):
    type: str  # spawned, moved, state_changed, completed
    time: float
    pallet_id: str
    flow_id: str
    node_id: Optional[str] = None
    state: str
    old_state: Optional[str] = None

class SimulationSummary(BaseModel):
    id: str
    scenario_id: str
    name: str
    simulation_time: float
    finished: bool
    pallet_count: int
    created_at: str

class SimulationState(SimulationSummary):
    settings: Dict[str, Any]
    pallets: List[PalletResponse]
    flow_stats: Dict[str, FlowStatsResponse]
    counters: Dict[str, float]
    occupancy: Dict[str, int]

class SimulationCreateResponse(SimulationState):
    issues: List[ValidationIssueResponse]

class TickResponse(BaseModel):
    simulation_time: float
    finished: bool
    steps_run: int
    pallets: List[PalletResponse]
    events: List[SimulationEvent]

class SpawnResponse(BaseModel):
    pallet: PalletResponse
    events: List[SimulationEvent]
