"""
Simulation Configuration
========================
Engine constants and headless runner parameters.
"""

from dataclasses import dataclass
from typing import Optional


# Base movement speed in world units (pixels) per second
BASE_SPEED = 100.0

# Grid cell size in world units; layouts are rectilinear grids of these cells
GRID_CELL_SIZE = 40

MS_PER_SECOND = 1000.0

# Pallet ids are "<prefix>-<n>"
PALLET_ID_PREFIX = "pallet"


@dataclass
class RunnerConfig:
    """Headless run configuration"""
    tick_ms: float = 100.0           # Simulated step handed to tick()
    duration_ms: float = 60_000.0    # Total simulated wall time to drive
    seed: Optional[int] = None       # Overrides the scenario seed when set
    speed_multiplier: Optional[float] = None  # Overrides scenario speed when set
    trace: bool = False              # Print every engine event

    def __post_init__(self):
        if self.tick_ms <= 0:
            raise ValueError(f"tick_ms must be positive, got {self.tick_ms}")
        if self.duration_ms < 0:
            raise ValueError(f"duration_ms must not be negative, got {self.duration_ms}")

    @property
    def total_ticks(self) -> int:
        """Number of tick() calls needed to cover duration_ms"""
        return int(self.duration_ms // self.tick_ms)
