"""
Deterministic random source for replayable simulations.

Everything random in the engine draws from a single ``RandomSource``: a
zero-argument callable returning floats in [0, 1). Tests may inject any
such callable (for example a fixed sequence) in place of the seeded one.
"""

import math
import sys
import time
from typing import Callable, Iterable, Optional

RandomSource = Callable[[], float]

_UINT32_MASK = 0xFFFFFFFF
_UINT32_RANGE = 4294967296.0


class SeededRandom:
    """xorshift32 generator; the same seed always yields the same stream"""

    def __init__(self, seed: Optional[int] = None):
        if seed is None:
            seed = time.time_ns() // 1_000_000
        self.seed = seed
        self._state = int(seed) & _UINT32_MASK
        # xorshift never leaves the all-zero state
        if self._state == 0:
            self._state = 1

    def __call__(self) -> float:
        x = self._state
        x ^= (x << 13) & _UINT32_MASK
        x ^= x >> 17
        x ^= (x << 5) & _UINT32_MASK
        self._state = x
        return x / _UINT32_RANGE


def create_seeded_random(seed: Optional[int] = None) -> RandomSource:
    """Create a seeded generator; no seed falls back to the current time"""
    return SeededRandom(seed)


def sample_normal(random: RandomSource, mean: float, std_dev: float) -> float:
    """Box-Muller transform; consumes exactly two draws"""
    # log(0) is -inf, keep u1 strictly positive
    u1 = max(sys.float_info.epsilon, random())
    u2 = random()
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + z * std_dev


def sample_uniform(random: RandomSource, low: float, high: float) -> float:
    """Uniform draw between the two bounds, in whichever order they come"""
    lo, hi = min(low, high), max(low, high)
    return lo + random() * (hi - lo)


def sequence_random(values: Iterable[float]) -> RandomSource:
    """Random source replaying a fixed sequence, cycling when exhausted"""
    values = list(values)
    if not values:
        raise ValueError("sequence_random needs at least one value")
    index = [0]

    def draw() -> float:
        value = values[index[0] % len(values)]
        index[0] += 1
        return value

    return draw
