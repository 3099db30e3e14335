"""Loop quality signals: distance fit, backtracking, self-crossing, roundness."""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from math import floor
from typing import Dict, List, Sequence, Tuple

import numpy as np

from step_loop.contracts.route_contract import LatLon
from step_loop.core.geometry import haversine_m

DISTANCE_TOLERANCE = 0.10

# Backtracking ("cul-de-sac") detection
CUL_DE_SAC_THRESHOLD_M = 10.0
_GRID_CELL_DEG = 0.000045  # ~5 m, half the threshold so a 3x3 neighbourhood suffices
_MIN_SEQ_GAP = 15
_CLOSURE_FRACTION = 0.05
_MIN_POINTS_BACKTRACK = 20

# Self-intersection detection
_TARGET_SAMPLES = 200
_MIN_POINTS_CROSSING = 40

# Circularity
_DEGENERATE_SIDE_M = 50.0
_DEGENERATE_SCORE = 10.0
_MIN_POINTS_CIRCULARITY = 10
CIRCULARITY_ACCEPT = 1.5

# Composite score weights
_W_DISTANCE = 1.0
_W_BACKTRACK = 5.0
_W_CROSSING = 4.0


def target_distance_m(target_steps: int, step_length_m: float = 0.75) -> float:
    return target_steps * step_length_m


def distance_ok(distance_m: float, target_m: float, tolerance: float = DISTANCE_TOLERANCE) -> bool:
    return target_m * (1 - tolerance) <= distance_m <= target_m * (1 + tolerance)


def has_backtracking(geometry: Sequence[LatLon]) -> bool:
    """
    Detect out-and-back spurs: two points closer than 10 m on the ground but
    at least 15 positions apart in the sequence.

    Points are bucketed into a ~5 m grid so only the 3x3 neighbourhood of each
    point is compared. The first/last 5 % of points are left out, since a loop
    naturally comes back to its start there.
    """
    total = len(geometry)
    if total < _MIN_POINTS_BACKTRACK:
        return False

    zone_start = floor(total * _CLOSURE_FRACTION)
    zone_end = total - floor(total * _CLOSURE_FRACTION)

    def cell(i: int) -> Tuple[int, int]:
        lat, lon = geometry[i]
        return floor(lon / _GRID_CELL_DEG), floor(lat / _GRID_CELL_DEG)

    grid: Dict[Tuple[int, int], List[int]] = defaultdict(list)
    for i in range(zone_start, zone_end):
        grid[cell(i)].append(i)

    for i in range(zone_start, zone_end):
        cx, cy = cell(i)
        lat_i, lon_i = geometry[i]
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for j in grid.get((cx + dx, cy + dy), ()):
                    if abs(j - i) < _MIN_SEQ_GAP:
                        continue
                    lat_j, lon_j = geometry[j]
                    if haversine_m(lat_i, lon_i, lat_j, lon_j) < CUL_DE_SAC_THRESHOLD_M:
                        return True
    return False


def _cross(ax: float, ay: float, bx: float, by: float, cx: float, cy: float) -> float:
    return (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)


def has_self_intersection(geometry: Sequence[LatLon]) -> bool:
    """True if two non-adjacent segments of the (downsampled) path cross."""
    total = len(geometry)
    if total < _MIN_POINTS_CROSSING:
        return False

    stride = max(1, total // _TARGET_SAMPLES)
    sampled = [geometry[i] for i in range(0, total, stride)]
    sampled.append(geometry[-1])

    n = len(sampled)
    zone_skip = max(2, floor(n * _CLOSURE_FRACTION))

    for i in range(n - 1):
        ay, ax = sampled[i]
        by, bx = sampled[i + 1]
        for j in range(i + 2, n - 1):
            # both segments inside the loop-closure zone
            if i < zone_skip and j >= n - 1 - zone_skip:
                continue
            if j < zone_skip and i >= n - 1 - zone_skip:
                continue

            cy, cx = sampled[j]
            dy, dx = sampled[j + 1]

            d1 = _cross(ax, ay, bx, by, cx, cy)
            d2 = _cross(ax, ay, bx, by, dx, dy)
            d3 = _cross(cx, cy, dx, dy, ax, ay)
            d4 = _cross(cx, cy, dx, dy, bx, by)

            if d1 * d2 < 0 and d3 * d4 < 0:
                return True
    return False


def circularity_score(geometry: Sequence[LatLon]) -> float:
    """
    Roundness of a loop; 0 is ideal, lower is better, < 1.5 is acceptable.

    Score = (bbox aspect ratio - 1) + fill penalty, where the fill ratio is
    the shoelace area over the bbox area. Both areas stay in raw degree units
    since only their ratio is used. A bbox side under 50 m scores 10.
    """
    if len(geometry) < _MIN_POINTS_CIRCULARITY:
        return 0.0

    pts = np.asarray(geometry, dtype=float)
    lats, lons = pts[:, 0], pts[:, 1]
    min_lat, max_lat = float(lats.min()), float(lats.max())
    min_lon, max_lon = float(lons.min()), float(lons.max())

    mid_lat = (min_lat + max_lat) / 2
    mid_lon = (min_lon + max_lon) / 2
    width_m = haversine_m(mid_lat, min_lon, mid_lat, max_lon)
    height_m = haversine_m(min_lat, mid_lon, max_lat, mid_lon)

    if width_m < _DEGENERATE_SIDE_M or height_m < _DEGENERATE_SIDE_M:
        return _DEGENERATE_SCORE

    aspect = max(width_m, height_m) / min(width_m, height_m)

    area = abs(float(np.sum(lons[:-1] * lats[1:] - lons[1:] * lats[:-1]))) / 2
    bbox_area = (max_lon - min_lon) * (max_lat - min_lat)
    fill_ratio = area / bbox_area if bbox_area > 0 else 0.0

    if fill_ratio < 0.2:
        fill_penalty = 3.0
    elif fill_ratio < 0.3:
        fill_penalty = 1.0
    else:
        fill_penalty = 0.0

    return (aspect - 1) + fill_penalty


@dataclass(frozen=True)
class QualityReport:
    distance_ok: bool
    backtracking: bool
    self_intersecting: bool
    circularity: float

    @property
    def score(self) -> float:
        return (
            (0.0 if self.distance_ok else _W_DISTANCE)
            + (_W_BACKTRACK if self.backtracking else 0.0)
            + (_W_CROSSING if self.self_intersecting else 0.0)
            + self.circularity
        )

    @property
    def acceptable(self) -> bool:
        return (
            self.distance_ok
            and not self.backtracking
            and not self.self_intersecting
            and self.circularity < CIRCULARITY_ACCEPT
        )


def evaluate(distance_m: float, geometry: Sequence[LatLon], target_m: float) -> QualityReport:
    return QualityReport(
        distance_ok=distance_ok(distance_m, target_m),
        backtracking=has_backtracking(geometry),
        self_intersecting=has_self_intersection(geometry),
        circularity=circularity_score(geometry),
    )
