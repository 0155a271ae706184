"""
Scenario Data Model
===================
Pydantic models for the persisted scenario definition and the runtime
dataclasses owned by the engine.

Persisted models serialize with the camelCase keys used by the layout
editor (``entryNode``, ``speedMultiplier``, ``stdDev`` ...) and accept
snake_case field names from Python callers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Point(NamedTuple):
    """World position in layout units"""
    x: float
    y: float


class FlowModel(BaseModel):
    """Base for all persisted scenario models"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Location targeting
# =============================================================================

class SelectionRule(str, Enum):
    """Policy for choosing among candidate locations"""
    RANDOM = "random"
    NEAREST = "nearest"
    FURTHEST = "furthest"
    LEAST_VISITED = "least-visited"
    MOST_AVAILABLE = "most-available"
    ROUND_ROBIN = "round-robin"


class FixedTarget(FlowModel):
    type: Literal["fixed"] = "fixed"
    element_id: str


class RandomTarget(FlowModel):
    type: Literal["random"] = "random"
    pool: List[str] = Field(default_factory=list)


class CategoryTarget(FlowModel):
    type: Literal["category"] = "category"
    category_id: str
    rule: SelectionRule = SelectionRule.RANDOM


class ZoneTarget(FlowModel):
    type: Literal["zone"] = "zone"
    zone: str
    rule: SelectionRule = SelectionRule.RANDOM


LocationTarget = Annotated[
    Union[FixedTarget, RandomTarget, CategoryTarget, ZoneTarget],
    Field(discriminator="type"),
]


# =============================================================================
# Node actions
# =============================================================================

class FixedDwell(FlowModel):
    type: Literal["fixed"] = "fixed"
    duration: float = Field(ge=0, description="Dwell in ms")


class RangeDwell(FlowModel):
    """Uniform dwell; min > max is normalized by the engine"""
    type: Literal["range"] = "range"
    min: float = Field(ge=0)
    max: float = Field(ge=0)


class DistributionDwell(FlowModel):
    """Normal dwell, clamped at zero"""
    type: Literal["distribution"] = "distribution"
    mean: float = Field(ge=0)
    std_dev: float = Field(ge=0)


DwellConfig = Annotated[
    Union[FixedDwell, RangeDwell, DistributionDwell],
    Field(discriminator="type"),
]


class OperationType(str, Enum):
    """Analytics tag for what happens at a location"""
    RECEIVE = "receive"
    STORE = "store"
    PICK = "pick"
    PACK = "pack"
    SHIP = "ship"
    INSPECT = "inspect"


class CapacityConfig(FlowModel):
    max: int = Field(ge=1)
    block_when_full: bool = False


class NodeAction(FlowModel):
    dwell: DwellConfig
    operation: Optional[OperationType] = None
    capacity: Optional[CapacityConfig] = None
    # Multiplies pallet speed on the way to this node
    speed_factor: Optional[float] = Field(default=None, gt=0)


# =============================================================================
# Conditions
# =============================================================================

class ProbabilityCondition(FlowModel):
    type: Literal["probability"] = "probability"
    chance: float = Field(ge=0, le=1)


class CapacityCondition(FlowModel):
    type: Literal["capacity"] = "capacity"
    element_id: str
    operator: Literal["<", ">", "=="]
    value: float


class TimeCondition(FlowModel):
    type: Literal["time"] = "time"
    operator: Literal["<", ">"]
    value: float


class CounterCondition(FlowModel):
    type: Literal["counter"] = "counter"
    name: str
    operator: Literal["<", ">", "=="]
    value: float


class RandomChoiceCondition(FlowModel):
    """N-way branch; weights index the decision's outgoing edges in order"""
    type: Literal["random-choice"] = "random-choice"
    weights: List[float] = Field(default_factory=list)


Condition = Annotated[
    Union[
        ProbabilityCondition,
        CapacityCondition,
        TimeCondition,
        CounterCondition,
        RandomChoiceCondition,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# Flow graph
# =============================================================================

class LocationNode(FlowModel):
    """Physical location in the warehouse"""
    type: Literal["location"] = "location"
    id: str
    target: LocationTarget
    action: NodeAction


class DecisionNode(FlowModel):
    """Conditional branching point"""
    type: Literal["decision"] = "decision"
    id: str
    condition: Condition


class ExitNode(FlowModel):
    """Flow termination point"""
    type: Literal["exit"] = "exit"
    id: str


FlowNode = Annotated[
    Union[LocationNode, DecisionNode, ExitNode],
    Field(discriminator="type"),
]


class FlowEdge(FlowModel):
    id: str
    from_: str = Field(alias="from")
    to: str
    # Only meaningful when leaving a decision node
    condition: Optional[Literal["true", "false"]] = None
    weight: Optional[float] = None


# =============================================================================
# Spawning
# =============================================================================

class IntervalSpawn(FlowModel):
    mode: Literal["interval"] = "interval"
    duration: float = Field(ge=100, description="ms between spawns")
    variance: Optional[float] = Field(default=None, ge=0)
    max_active: Optional[int] = Field(default=None, ge=1)
    total_limit: Optional[int] = Field(default=None, ge=1)


class BatchSpawn(FlowModel):
    mode: Literal["batch"] = "batch"
    size: int = Field(ge=1)
    spacing: float = Field(ge=0, description="ms between pallets in a batch")
    batch_interval: float = Field(ge=100, description="ms between batches")
    max_active: Optional[int] = Field(default=None, ge=1)
    total_limit: Optional[int] = Field(default=None, ge=1)


class ManualSpawn(FlowModel):
    mode: Literal["manual"] = "manual"
    max_active: Optional[int] = Field(default=None, ge=1)
    total_limit: Optional[int] = Field(default=None, ge=1)


SpawnConfig = Annotated[
    Union[IntervalSpawn, BatchSpawn, ManualSpawn],
    Field(discriminator="mode"),
]


class FlowDefinition(FlowModel):
    id: str
    name: str = Field(min_length=1, max_length=100)
    color: str = Field(default="#3b82f6", pattern=r"^#[0-9A-Fa-f]{6}$")
    is_active: bool = True
    entry_node: str
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    spawning: SpawnConfig


# =============================================================================
# Scenario
# =============================================================================

class ScenarioSettings(FlowModel):
    # Max simulation time in ms; None runs forever
    duration: Optional[float] = Field(default=None, ge=0)
    speed_multiplier: float = Field(default=1.0, ge=0.1, le=10)
    seed: Optional[int] = None


class ScenarioDefinition(FlowModel):
    """The durable JSON artifact exchanged with the layout editor"""
    flows: List[FlowDefinition] = Field(default_factory=list)
    settings: ScenarioSettings = Field(default_factory=ScenarioSettings)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "ScenarioDefinition":
        return cls.model_validate_json(data)


class Scenario(FlowModel):
    id: str
    name: str
    warehouse_id: str
    description: Optional[str] = None
    flows: List[FlowDefinition] = Field(default_factory=list)
    settings: ScenarioSettings = Field(default_factory=ScenarioSettings)

    @classmethod
    def from_definition(
        cls,
        definition: ScenarioDefinition,
        scenario_id: str,
        name: str,
        warehouse_id: str,
        description: Optional[str] = None,
    ) -> "Scenario":
        return cls(
            id=scenario_id,
            name=name,
            warehouse_id=warehouse_id,
            description=description,
            flows=[flow.model_copy(deep=True) for flow in definition.flows],
            settings=definition.settings.model_copy(),
        )

    def to_definition(self) -> ScenarioDefinition:
        return ScenarioDefinition(flows=self.flows, settings=self.settings)


# =============================================================================
# Layout reference data
# =============================================================================

class PlacedElementInfo(FlowModel):
    """Read-only element placement handed in by the layout layer"""
    id: str
    category_id: Optional[str] = None
    position_x: float
    position_y: float
    width: float = 0
    height: float = 0
    metadata: Optional[Dict[str, Any]] = None

    @property
    def center(self) -> Point:
        return Point(
            self.position_x + self.width / 2,
            self.position_y + self.height / 2,
        )

    @property
    def zone(self) -> Optional[Any]:
        if not self.metadata:
            return None
        return self.metadata.get("zone")


# =============================================================================
# Runtime state
# =============================================================================

class PalletState(str, Enum):
    MOVING = "moving"
    DWELLING = "dwelling"
    WAITING = "waiting"
    COMPLETED = "completed"


@dataclass
class Pallet:
    """Mobile unit traversing a flow graph; owned by the engine"""
    id: str
    flow_id: str
    state: PalletState
    current_node_id: str
    position: Point
    state_start_time: float
    spawn_time: float
    next_node_id: Optional[str] = None
    dwell_remaining: Optional[float] = None
    current_path: Optional[List[Point]] = None
    path_progress: float = 0.0
    visited_nodes: List[str] = field(default_factory=list)
    # Element occupied while dwelling, or headed for while moving
    current_element_id: Optional[str] = None
    speed_factor: float = 1.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "flow_id": self.flow_id,
            "state": self.state.value,
            "current_node_id": self.current_node_id,
            "next_node_id": self.next_node_id,
            "x": self.position.x,
            "y": self.position.y,
            "state_start_time": self.state_start_time,
            "dwell_remaining": self.dwell_remaining,
            "path_progress": self.path_progress,
            "visited_nodes": list(self.visited_nodes),
            "current_element_id": self.current_element_id,
            "spawn_time": self.spawn_time,
        }
