"""Custom exceptions for the PalletFlow service"""
from typing import Optional, Any


class PalletFlowException(Exception):
    """Base exception for all PalletFlow service errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Any] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ResourceNotFoundError(PalletFlowException):
    """Raised when a session, flow or other resource does not exist"""

    def __init__(self, resource_type: str, resource_id: Any, details: Optional[Any] = None):
        message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(message=message, status_code=404, details=details)


class ValidationError(PalletFlowException):
    """Raised when a request is well-formed but semantically invalid"""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message=message, status_code=422, details=details)


class SimulationError(PalletFlowException):
    """Raised when the engine refuses an operation"""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message=message, status_code=400, details=details)
