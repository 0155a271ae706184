#!/usr/bin/env python3
"""
Unit tests for per-flow spawn scheduling

Run with: pytest tests/unit/test_spawning.py -v
Or: pytest -m unit
"""

import pytest

from flowsim.models import BatchSpawn, FlowDefinition, IntervalSpawn, ManualSpawn
from flowsim.rng import sequence_random
from flowsim.spawning import SpawnScheduler


def flow(spawning, flow_id="f1", is_active=True):
    return FlowDefinition(
        id=flow_id,
        name=flow_id,
        entry_node="entry",
        is_active=is_active,
        spawning=spawning,
    )


@pytest.mark.unit
class TestIntervalSpawning:
    """Unit tests for interval mode"""

    def setup_method(self):
        self.flow = flow(IntervalSpawn(duration=1000))
        self.scheduler = SpawnScheduler([self.flow])
        self.random = sequence_random([0.5])

    def test_not_due_before_interval(self):
        """Should wait a full interval from time zero"""
        assert not self.scheduler.is_due(self.flow, 999, self.random)

    def test_due_at_interval(self):
        """Should be due once the interval has elapsed"""
        assert self.scheduler.is_due(self.flow, 1000, self.random)

    def test_interval_restarts_after_attempt(self):
        """mark_attempt should restart the interval"""
        self.scheduler.mark_attempt(self.flow.id, 1000)
        assert not self.scheduler.is_due(self.flow, 1500, self.random)
        assert self.scheduler.is_due(self.flow, 2000, self.random)

    def test_variance_jitter(self):
        """Jitter should shift the threshold by variance * (draw - 0.5) * 2"""
        jittered = flow(IntervalSpawn(duration=1000, variance=200))
        scheduler = SpawnScheduler([jittered])
        # draw 0 -> -200 ms, draw 0.75 -> +100 ms
        assert scheduler.is_due(jittered, 800, sequence_random([0.0]))
        assert not scheduler.is_due(jittered, 1050, sequence_random([0.75]))

    def test_jitter_drawn_on_every_check(self):
        """Each ungated check should consume one draw"""
        calls = []

        def rng():
            calls.append(1)
            return 0.5

        for clock in (100, 200, 300):
            self.scheduler.is_due(self.flow, clock, rng)
        assert len(calls) == 3


@pytest.mark.unit
class TestBatchSpawning:
    """Unit tests for batch mode"""

    def test_first_batch_spacing(self):
        """Pallets of the first batch should follow the spacing"""
        batch_flow = flow(BatchSpawn(size=3, spacing=200, batch_interval=5000))
        scheduler = SpawnScheduler([batch_flow])
        rng = sequence_random([0.5])

        spawned_at = []
        for clock in range(100, 10_001, 100):
            if scheduler.is_due(batch_flow, clock, rng):
                spawned_at.append(clock)
                scheduler.mark_attempt(batch_flow.id, clock)

        assert spawned_at[:3] == [200, 400, 600]

    def test_new_batch_after_interval(self):
        """A new batch should start once batch_interval has passed"""
        batch_flow = flow(BatchSpawn(size=2, spacing=0, batch_interval=1000))
        scheduler = SpawnScheduler([batch_flow])
        rng = sequence_random([0.5])

        due = [scheduler.is_due(batch_flow, clock, rng) for clock in (0, 0, 500, 1000)]
        assert due == [True, True, False, True]
        assert scheduler.state(batch_flow.id).batch_progress == 1
        assert scheduler.state(batch_flow.id).last_batch_spawn_time == 1000


@pytest.mark.unit
class TestGates:
    """Unit tests for active and total limits"""

    def test_manual_never_due(self):
        """Manual flows never spawn on their own"""
        manual = flow(ManualSpawn())
        scheduler = SpawnScheduler([manual])
        assert not scheduler.is_due(manual, 1_000_000, sequence_random([0.5]))
        assert not scheduler.is_gated(manual)

    def test_max_active_gate(self):
        """Should gate when max_active pallets are live"""
        limited = flow(IntervalSpawn(duration=100, max_active=2))
        scheduler = SpawnScheduler([limited])
        scheduler.record_spawn(limited.id)
        scheduler.record_spawn(limited.id)
        assert scheduler.is_gated(limited)
        assert not scheduler.is_due(limited, 10_000, sequence_random([0.5]))

        scheduler.record_completion(limited.id)
        assert not scheduler.is_gated(limited)

    def test_total_limit_gate(self):
        """Should gate forever once total_limit pallets were spawned"""
        limited = flow(ManualSpawn(total_limit=1))
        scheduler = SpawnScheduler([limited])
        scheduler.record_spawn(limited.id)
        scheduler.record_completion(limited.id)
        assert scheduler.is_gated(limited)

    def test_gated_check_consumes_no_draw(self):
        """A gated flow should not draw jitter"""
        limited = flow(IntervalSpawn(duration=100, total_limit=1))
        scheduler = SpawnScheduler([limited])
        scheduler.record_spawn(limited.id)

        def rng():
            raise AssertionError("random source should not be used")

        assert not scheduler.is_due(limited, 500, rng)

    def test_inactive_flows_have_no_state(self):
        """Inactive flows get no spawn state and are always gated"""
        inactive = flow(IntervalSpawn(duration=100), is_active=False)
        scheduler = SpawnScheduler([inactive])
        assert scheduler.state(inactive.id) is None
        assert scheduler.is_gated(inactive)

    def test_counters_balance(self):
        """total_spawned - completed_count should equal active_count"""
        f = flow(ManualSpawn())
        scheduler = SpawnScheduler([f])
        for _ in range(5):
            scheduler.record_spawn(f.id)
        for _ in range(3):
            scheduler.record_completion(f.id)
        state = scheduler.state(f.id)
        assert (state.total_spawned, state.completed_count, state.active_count) == (5, 3, 2)

    def test_reset(self):
        """reset should restore fresh state"""
        f = flow(ManualSpawn())
        scheduler = SpawnScheduler([f])
        scheduler.record_spawn(f.id)
        scheduler.reset([f])
        assert scheduler.state(f.id).to_dict() == {
            "last_spawn_time": 0.0,
            "total_spawned": 0,
            "batch_progress": 0,
            "last_batch_spawn_time": 0.0,
            "active_count": 0,
            "completed_count": 0,
        }
