#!/usr/bin/env python3
"""
Unit tests for the headless scenario runner

Run with: pytest tests/unit/test_cli.py -v
Or: pytest -m unit
"""

import json
import pytest

from flowsim.config import RunnerConfig
from flowsim.main import load_elements, load_scenario, main


@pytest.mark.unit
class TestRunnerConfig:
    """Unit tests for RunnerConfig"""

    def test_total_ticks(self):
        """Should cover the duration in whole ticks"""
        assert RunnerConfig(tick_ms=100, duration_ms=10_000).total_ticks == 100
        assert RunnerConfig(tick_ms=300, duration_ms=1000).total_ticks == 3

    def test_invalid_tick(self):
        """Should reject non-positive tick sizes"""
        with pytest.raises(ValueError):
            RunnerConfig(tick_ms=0)


@pytest.mark.unit
class TestLoaders:
    """Unit tests for JSON loading"""

    def test_load_definition(self, fixtures_dir):
        """A bare definition is wrapped in a scenario named after the file"""
        scenario = load_scenario(fixtures_dir / "dock_to_storage.json")
        assert scenario.id == "dock_to_storage"
        assert scenario.flows[0].id == "inbound"

    def test_load_full_scenario(self, tmp_path, dock_definition_data):
        """A full scenario keeps its own id and name"""
        data = dict(dock_definition_data, id="scn-9", name="Night shift", warehouseId="wh-2")
        path = tmp_path / "scenario.json"
        path.write_text(json.dumps(data))
        scenario = load_scenario(path)
        assert (scenario.id, scenario.name, scenario.warehouse_id) == ("scn-9", "Night shift", "wh-2")

    def test_load_elements_wrapped(self, tmp_path, layout_elements_data):
        """Elements may be wrapped in an object"""
        path = tmp_path / "layout.json"
        path.write_text(json.dumps({"elements": layout_elements_data}))
        elements = load_elements(path)
        assert [e.id for e in elements][:2] == ["dock-1", "rack-1"]


@pytest.mark.unit
class TestMain:
    """Unit tests for the CLI entry point"""

    def test_summary(self, fixtures_dir, capsys):
        """Should run the scenario and print per-flow totals"""
        code = main([
            str(fixtures_dir / "dock_to_storage.json"),
            "--elements", str(fixtures_dir / "layout_elements.json"),
            "--tick", "100",
            "--duration", "10000",
        ])
        out = capsys.readouterr().out
        assert code == 0
        assert "Ticks run: 100" in out
        assert "Pallets spawned: 5" in out
        assert "Inbound receiving (inbound): spawned 5, completed 3, active 2" in out

    def test_trace(self, fixtures_dir, capsys):
        """--trace should print spawn and completion lines"""
        main([
            str(fixtures_dir / "dock_to_storage.json"),
            "--elements", str(fixtures_dir / "layout_elements.json"),
            "--duration", "5000",
            "--trace",
        ])
        out = capsys.readouterr().out
        assert "pallet-1 spawned in inbound at dock" in out
        assert "pallet-1 completed: dock -> storage -> done" in out

    def test_speed_override(self, fixtures_dir, capsys):
        """--speed should scale the simulated clock"""
        main([
            str(fixtures_dir / "dock_to_storage.json"),
            "--elements", str(fixtures_dir / "layout_elements.json"),
            "--duration", "1000",
            "--speed", "2",
        ])
        assert "Simulated time: 2000 ms" in capsys.readouterr().out

    def test_missing_file(self, fixtures_dir, tmp_path, capsys):
        """A missing scenario file should return a non-zero exit code"""
        code = main([
            str(tmp_path / "nope.json"),
            "--elements", str(fixtures_dir / "layout_elements.json"),
        ])
        assert code == 1
        assert "File not found" in capsys.readouterr().out
