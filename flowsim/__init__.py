"""
PalletFlow Simulation Package
=============================
Deterministic, tick-driven simulation of pallets moving through warehouse
flow graphs.

Modules:
- config: Engine constants and headless runner parameters
- models: Scenario definition models and runtime pallet state
- rng: Seeded random source and sampling helpers
- pathfinding: Manhattan path generation and interpolation
- conditions: Decision node condition evaluation
- selection: Location target resolution rules
- spawning: Per-flow spawn scheduling
- validation: Structural checks for flow graphs
- engine: ScenarioEngine, the tick loop and pallet state machine
- main: CLI entry point
"""

from .engine import EngineConfig, EngineEvents, ScenarioEngine
from .models import (
    FlowDefinition,
    Pallet,
    PalletState,
    PlacedElementInfo,
    Scenario,
    ScenarioDefinition,
    ScenarioSettings,
)

__version__ = "1.0.0"

__all__ = [
    "EngineConfig",
    "EngineEvents",
    "ScenarioEngine",
    "FlowDefinition",
    "Pallet",
    "PalletState",
    "PlacedElementInfo",
    "Scenario",
    "ScenarioDefinition",
    "ScenarioSettings",
]
