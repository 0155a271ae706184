"""Service layer for the PalletFlow service"""
from .scenario_service import ScenarioService, get_scenario_service
from .simulation import (
    SessionRegistry,
    SimulationService,
    SimulationSession,
    get_simulation_service,
    session_registry
)

__all__ = [
    "ScenarioService",
    "get_scenario_service",
    "SessionRegistry",
    "SimulationService",
    "SimulationSession",
    "get_simulation_service",
    "session_registry"
]
