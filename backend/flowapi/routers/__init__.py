"""API Routers"""
from .scenarios import router as scenarios_router
from .simulation import router as simulation_router

__all__ = [
    "scenarios_router",
    "simulation_router"
]
