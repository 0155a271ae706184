"""
Scenario Service
================
Stateless checks on scenario definitions before they are simulated.
"""
from typing import Any, Dict, Iterable, Optional

from flowsim.models import PlacedElementInfo, ScenarioDefinition
from flowsim.validation import has_errors, validate_definition

from .base import BaseService


class ScenarioService(BaseService):
    """Service for validating scenario definitions"""

    def validate(
        self,
        definition: ScenarioDefinition,
        elements: Optional[Iterable[PlacedElementInfo]] = None
    ) -> Dict[str, Any]:
        """
        Run structural validation on a definition.

        Args:
            definition: Parsed scenario definition
            elements: Placed elements; element references are skipped when None

        Returns:
            Dict with the overall verdict and every issue found
        """
        issues = validate_definition(definition, elements)
        self._log_operation("validate", {
            "flows": len(definition.flows),
            "issues": len(issues)
        })
        return {
            "valid": not has_errors(issues),
            "flow_count": len(definition.flows),
            "issues": [issue.to_dict() for issue in issues],
        }


def get_scenario_service() -> ScenarioService:
    """FastAPI dependency"""
    return ScenarioService()
