"""
Pytest configuration and shared fixtures for PalletFlow tests
"""

import pytest
import json
import sys
from pathlib import Path

# Make flowsim and the backend package importable without installing
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "backend"))

from flowsim.models import PlacedElementInfo, Scenario, ScenarioDefinition


@pytest.fixture(scope="session")
def fixtures_dir():
    """Return path to fixtures directory"""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def dock_definition_data(fixtures_dir):
    """Raw camelCase JSON of the dock -> storage -> exit scenario"""
    with open(fixtures_dir / "dock_to_storage.json") as f:
        return json.load(f)


@pytest.fixture
def layout_elements_data(fixtures_dir):
    """Raw camelCase JSON of the test layout"""
    with open(fixtures_dir / "layout_elements.json") as f:
        return json.load(f)


@pytest.fixture
def layout_elements(layout_elements_data):
    return [PlacedElementInfo.model_validate(item) for item in layout_elements_data]


@pytest.fixture
def dock_scenario(dock_definition_data):
    """Scenario wrapping the dock -> storage -> exit definition"""
    definition = ScenarioDefinition.model_validate(dock_definition_data)
    return Scenario.from_definition(
        definition,
        scenario_id="scn-dock",
        name="Dock to storage",
        warehouse_id="wh-1",
    )


@pytest.fixture
def api_base_url():
    """Base URL for API integration tests"""
    return "http://localhost:8000"


# Markers for different test types
def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (require running services)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow running tests"
    )
