"""
PalletFlow Simulator - Main Entry Point
=======================================
Headless runner: loads a scenario and a placed-element layout from JSON,
drives the engine for a fixed simulated duration and prints a summary.

Usage:
    python -m flowsim.main scenario.json --elements layout.json
    python -m flowsim.main scenario.json --elements layout.json --duration 120000 --seed 42 --trace
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config import RunnerConfig
from .engine import EngineConfig, EngineEvents, ScenarioEngine
from .models import Pallet, PalletState, PlacedElementInfo, Scenario, ScenarioDefinition

logger = logging.getLogger("palletflow.runner")


def load_scenario(path: Path) -> Scenario:
    """Load either a full scenario or a bare ``{flows, settings}`` definition"""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "id" in data and ("warehouseId" in data or "warehouse_id" in data):
        return Scenario.model_validate(data)

    definition = ScenarioDefinition.model_validate(data)
    return Scenario.from_definition(
        definition,
        scenario_id=path.stem,
        name=path.stem,
        warehouse_id="local",
    )


def load_elements(path: Path) -> List[PlacedElementInfo]:
    """Element list, either a bare JSON array or ``{"elements": [...]}``"""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("elements", [])
    return [PlacedElementInfo.model_validate(item) for item in data]


def build_trace_events(engine_time) -> EngineEvents:
    """Events that print one line per engine event"""

    def stamp() -> str:
        return f"[{engine_time():>10.0f} ms]"

    def spawned(pallet: Pallet):
        print(f"{stamp()} 📦 {pallet.id} spawned in {pallet.flow_id} at {pallet.current_node_id}")

    def state_changed(pallet: Pallet, old_state: PalletState):
        where = pallet.next_node_id or pallet.current_node_id
        print(f"{stamp()} 🔄 {pallet.id} {old_state.value} -> {pallet.state.value} ({where})")

    def completed(pallet: Pallet):
        route = " -> ".join(pallet.visited_nodes)
        print(f"{stamp()} ✅ {pallet.id} completed: {route}")

    return EngineEvents(
        on_pallet_spawned=spawned,
        on_pallet_state_changed=state_changed,
        on_pallet_completed=completed,
    )


def run(engine: ScenarioEngine, config: RunnerConfig) -> int:
    """Drive the engine; returns the number of ticks actually executed"""
    ticks = 0
    for _ in range(config.total_ticks):
        if engine.is_finished():
            break
        engine.tick(config.tick_ms)
        ticks += 1
    return ticks


def print_summary(engine: ScenarioEngine, ticks: int):
    scenario = engine.get_scenario()
    counters = engine.get_counters()

    print("\n" + "=" * 60)
    print(f"📊 Summary: {scenario.name}")
    print("=" * 60)
    print(f"Ticks run: {ticks}")
    print(f"Simulated time: {engine.get_simulation_time():.0f} ms")
    print(f"Pallets spawned: {int(counters.get('spawned', 0))}")
    print(f"Pallets completed: {int(counters.get('completed', 0))}")
    print(f"Pallets in flight: {len(engine.get_pallets())}")

    for flow in scenario.flows:
        stats = engine.get_flow_stats(flow.id)
        if stats is None:
            print(f"   {flow.name} ({flow.id}): inactive")
            continue
        print(
            f"   {flow.name} ({flow.id}): spawned {stats.total_spawned}, "
            f"completed {stats.completed_count}, active {stats.active_count}"
        )
    print("=" * 60 + "\n")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="PalletFlow headless scenario runner")
    parser.add_argument("scenario", type=Path, help="Scenario or scenario definition JSON file")
    parser.add_argument("--elements", type=Path, required=True,
                        help="JSON file with the placed elements of the layout")
    parser.add_argument("--tick", type=float, default=100.0,
                        help="Tick size in ms (default: 100)")
    parser.add_argument("--duration", type=float, default=60_000.0,
                        help="Simulated time to drive in ms (default: 60000)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Override the scenario seed")
    parser.add_argument("--speed", type=float, default=None,
                        help="Override the scenario speed multiplier (0.1-10)")
    parser.add_argument("--trace", action="store_true",
                        help="Print every spawn, state change and completion")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.trace else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        config = RunnerConfig(
            tick_ms=args.tick,
            duration_ms=args.duration,
            seed=args.seed,
            speed_multiplier=args.speed,
            trace=args.trace,
        )
    except ValueError as e:
        print(f"❌ Invalid runner configuration: {e}")
        return 2

    try:
        scenario = load_scenario(args.scenario)
        elements = load_elements(args.elements)
    except FileNotFoundError as e:
        print(f"❌ File not found: {e.filename}")
        return 1
    except (json.JSONDecodeError, ValidationError) as e:
        print(f"❌ Could not load scenario: {e}")
        return 1

    overrides = {}
    if config.seed is not None:
        overrides["seed"] = config.seed
    if config.speed_multiplier is not None:
        overrides["speed_multiplier"] = max(0.1, min(10.0, config.speed_multiplier))
    if overrides:
        scenario.settings = scenario.settings.model_copy(update=overrides)

    print("\n" + "=" * 60)
    print("🚀 PalletFlow Scenario Runner")
    print("=" * 60)
    print(f"Scenario: {scenario.name} ({len(scenario.flows)} flows)")
    print(f"Elements: {len(elements)}")
    print(f"Tick: {config.tick_ms:.0f} ms x {config.total_ticks}")
    print(f"Speed: {scenario.settings.speed_multiplier}x")
    print(f"Seed: {scenario.settings.seed if scenario.settings.seed is not None else 'time-based'}")
    print("=" * 60 + "\n")

    engine_ref = []
    events = None
    if config.trace:
        events = build_trace_events(lambda: engine_ref[0].get_simulation_time())

    engine = ScenarioEngine(scenario, EngineConfig(elements=elements, events=events))
    engine_ref.append(engine)

    try:
        ticks = run(engine, config)
    except KeyboardInterrupt:
        print("\n\n⏹️  Stopped")
        ticks = None

    print_summary(engine, ticks if ticks is not None else 0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
