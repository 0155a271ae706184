"""Core application modules"""
from .logging import logger
from .settings import Settings, settings, get_settings
from .exceptions import (
    PalletFlowException,
    ResourceNotFoundError,
    ValidationError,
    SimulationError
)

__all__ = [
    "logger",
    "Settings",
    "settings",
    "get_settings",
    "PalletFlowException",
    "ResourceNotFoundError",
    "ValidationError",
    "SimulationError"
]
