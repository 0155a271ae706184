"""Scenario validation router"""
from fastapi import APIRouter, Depends

from ..schemas import ScenarioValidateRequest, ScenarioValidateResponse
from ..services import ScenarioService, get_scenario_service

router = APIRouter(prefix="/scenarios", tags=["scenarios"])


@router.post("/validate", response_model=ScenarioValidateResponse)
def validate_scenario(
    request: ScenarioValidateRequest,
    service: ScenarioService = Depends(get_scenario_service)
):
    """Check a scenario definition for structural problems without running it"""
    return service.validate(request.scenario, request.elements)
