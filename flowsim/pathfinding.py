"""Manhattan path generation and interpolation.

Layouts are rectilinear grids (``GRID_CELL_SIZE`` units per cell), so pallets
only ever travel horizontally or vertically. A route between two points is an
L: horizontal first, then vertical.
"""

import math
from typing import List, Sequence

from .config import BASE_SPEED, GRID_CELL_SIZE, MS_PER_SECOND
from .models import Point


def manhattan_distance(a: Point, b: Point) -> float:
    return abs(b.x - a.x) + abs(b.y - a.y)


def euclidean_distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def generate_path(start: Point, end: Point) -> List[Point]:
    """Route from start to end using only cardinal moves.

    Returns one point when start and end coincide, two when they share an
    axis, otherwise three with the corner at (end.x, start.y).
    """
    start = Point(start.x, start.y)
    end = Point(end.x, end.y)

    if start == end:
        return [start]

    if start.x == end.x or start.y == end.y:
        return [start, end]

    return [start, Point(end.x, start.y), end]


def generate_multi_path(points: Sequence[Point]) -> List[Point]:
    """Chain generate_path over consecutive points, sharing segment joints"""
    if not points:
        return []
    if len(points) == 1:
        return [Point(points[0].x, points[0].y)]

    full_path: List[Point] = []
    for i in range(len(points) - 1):
        segment = generate_path(points[i], points[i + 1])
        if i == 0:
            full_path.extend(segment)
        else:
            full_path.extend(segment[1:])
    return full_path


def _segment_lengths(path: Sequence[Point]) -> List[float]:
    return [manhattan_distance(path[i], path[i + 1]) for i in range(len(path) - 1)]


def get_path_length(path: Sequence[Point]) -> float:
    if len(path) <= 1:
        return 0.0
    return sum(_segment_lengths(path))


def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t


def get_position_along_path(path: Sequence[Point], progress: float) -> Point:
    """Point at a normalized distance along the path.

    Progress is clamped to [0, 1] and spread over segments in proportion to
    their lengths. A path of zero total length yields its first point.
    """
    if not path:
        return Point(0.0, 0.0)

    first = Point(path[0].x, path[0].y)
    if len(path) == 1 or progress <= 0:
        return first

    last = Point(path[-1].x, path[-1].y)
    if progress >= 1:
        return last

    lengths = _segment_lengths(path)
    total = sum(lengths)
    if total == 0:
        return first

    target = progress * total
    travelled = 0.0
    for i, length in enumerate(lengths):
        if travelled + length >= target:
            t = (target - travelled) / length if length > 0 else 0.0
            current, nxt = path[i], path[i + 1]
            return Point(lerp(current.x, nxt.x, t), lerp(current.y, nxt.y, t))
        travelled += length

    return last


def get_path_duration(path: Sequence[Point], speed_multiplier: float = 1.0) -> float:
    """Travel time in ms at BASE_SPEED scaled by the multiplier"""
    speed = BASE_SPEED * speed_multiplier
    if speed <= 0:
        return math.inf
    return get_path_length(path) / speed * MS_PER_SECOND


# =============================================================================
# Grid helpers
# =============================================================================

def world_to_grid(x: float, y: float) -> tuple:
    """(col, row) of the cell containing a world point"""
    return (math.floor(x / GRID_CELL_SIZE), math.floor(y / GRID_CELL_SIZE))


def grid_to_world(col: int, row: int) -> Point:
    """Center of a grid cell"""
    half = GRID_CELL_SIZE / 2
    return Point(col * GRID_CELL_SIZE + half, row * GRID_CELL_SIZE + half)


def snap_to_grid(x: float, y: float) -> Point:
    return grid_to_world(*world_to_grid(x, y))

