"""
Base Service
============
Abstract base class for all services.
Provides common validation and logging helpers.
"""
from abc import ABC
from typing import Optional
from ..core import logger, Settings, get_settings, ValidationError


class BaseService(ABC):
    """
    Base service class with common functionality.

    Attributes:
        settings: Service settings
        logger: Service-specific logger
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize base service.

        Args:
            settings: Settings override, the cached settings when omitted
        """
        self.settings = settings or get_settings()
        self.logger = logger

    def _validate_required(self, value: any, field_name: str):
        """
        Validate that a required field is not None.

        Raises:
            ValidationError: If value is None
        """
        if value is None:
            raise ValidationError(f"{field_name} is required")

    def _validate_positive(self, value: int | float, field_name: str):
        """
        Validate that a number is positive.

        Raises:
            ValidationError: If value is not positive
        """
        if value is not None and value <= 0:
            raise ValidationError(f"{field_name} must be positive")

    def _validate_at_most(self, value: int | float, limit: int | float, field_name: str):
        """
        Validate that a number does not exceed a configured limit.

        Raises:
            ValidationError: If value is above the limit
        """
        if value is not None and value > limit:
            raise ValidationError(
                f"{field_name} must be at most {limit}",
                details={"field": field_name, "value": value, "limit": limit}
            )

    def _log_operation(self, operation: str, details: Optional[dict] = None):
        """
        Log service operation.

        Args:
            operation: Operation name
            details: Additional operation details
        """
        log_msg = f"{self.__class__.__name__}: {operation}"
        if details:
            log_msg += f" - {details}"
        self.logger.info(log_msg)

    def _log_error(self, operation: str, error: Exception):
        """
        Log service error.

        Args:
            operation: Operation that failed
            error: Exception that occurred
        """
        self.logger.error(
            f"{self.__class__.__name__}: {operation} failed - {str(error)}",
            exc_info=True
        )
