"""Simulation session router"""
from fastapi import APIRouter, Depends
from typing import List

from ..schemas import (
    SettingsUpdate,
    SimulationCreate,
    SimulationCreateResponse,
    SimulationState,
    SimulationSummary,
    SpawnResponse,
    TickRequest,
    TickResponse,
)
from ..services import SimulationService, get_simulation_service

router = APIRouter(
    prefix="/simulations",
    tags=["simulations"],
    responses={
        404: {"description": "Simulation not found"}
    }
)


@router.post("", response_model=SimulationCreateResponse, status_code=201)
def create_simulation(
    request: SimulationCreate,
    service: SimulationService = Depends(get_simulation_service)
):
    """Create a simulation session from a scenario definition and element layout"""
    return service.create_session(request)


@router.get("", response_model=List[SimulationSummary])
def list_simulations(service: SimulationService = Depends(get_simulation_service)):
    """List all hosted simulation sessions"""
    return service.list_sessions()


@router.get("/{simulation_id}", response_model=SimulationState)
def get_simulation(
    simulation_id: str,
    service: SimulationService = Depends(get_simulation_service)
):
    """Current clock, pallets, flow statistics and counters of a session"""
    return service.get_state(simulation_id)


@router.post("/{simulation_id}/tick", response_model=TickResponse)
def tick_simulation(
    simulation_id: str,
    request: TickRequest,
    service: SimulationService = Depends(get_simulation_service)
):
    """Advance a session by steps x delta_time ms and return the events emitted"""
    return service.tick(
        simulation_id,
        delta_time=request.delta_time,
        steps=request.steps,
        include_moves=request.include_moves
    )


@router.post("/{simulation_id}/flows/{flow_id}/spawn", response_model=SpawnResponse, status_code=201)
def spawn_pallet(
    simulation_id: str,
    flow_id: str,
    service: SimulationService = Depends(get_simulation_service)
):
    """Manually spawn a pallet at a flow's entry node"""
    return service.spawn(simulation_id, flow_id)


@router.patch("/{simulation_id}/settings", response_model=SimulationState)
def update_settings(
    simulation_id: str,
    update: SettingsUpdate,
    service: SimulationService = Depends(get_simulation_service)
):
    """Change speed, duration cap or seed of a running session"""
    return service.update_settings(simulation_id, update)


@router.post("/{simulation_id}/reset", response_model=SimulationState)
def reset_simulation(
    simulation_id: str,
    service: SimulationService = Depends(get_simulation_service)
):
    """Restore a session to time zero with the scenario seed"""
    return service.reset(simulation_id)


@router.delete("/{simulation_id}", status_code=204)
def delete_simulation(
    simulation_id: str,
    service: SimulationService = Depends(get_simulation_service)
):
    """Discard a session"""
    service.delete_session(simulation_id)
