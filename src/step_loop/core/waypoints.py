"""Waypoint ring placement around a loop center."""
from __future__ import annotations

import logging
from math import pi
from typing import List, Optional

import numpy as np

from step_loop.contracts.route_contract import LatLon
from step_loop.core.geometry import project
from step_loop.geo.zones import ZoneClassifier

log = logging.getLogger(__name__)

MAX_WAYPOINT_RETRIES = 3
FALLBACK_ANGLE_OFFSET_RAD = 0.5

# (radial scale half-width, angular jitter half-width in rad)
_TIGHT = (0.05, 0.025)
_WIDE = (0.10, 0.05)


class WaypointGenerator:
    """
    Places *count* waypoints evenly around a center at a given radius.

    One random base rotation is shared by the whole ring; each point then gets
    a small radial scale and angular jitter. Points landing in an unsafe
    region are redrawn up to ``MAX_WAYPOINT_RETRIES`` times, after which a
    point at ``angle + 0.5`` rad is accepted without checking. Zone avoidance
    is therefore best-effort.
    """

    def __init__(
        self,
        zones: ZoneClassifier,
        rng: Optional[np.random.Generator] = None,
        wide: bool = False,
    ):
        self.zones = zones
        self.rng = rng if rng is not None else np.random.default_rng()
        self.wide = wide

    def _single(self, center: LatLon, radius_km: float, angle: float) -> LatLon:
        scale_w, jitter_w = _WIDE if self.wide else _TIGHT
        r = radius_km * (1.0 - scale_w + self.rng.random() * 2 * scale_w)
        jitter = (self.rng.random() - 0.5) * 2 * jitter_w
        return project(center[0], center[1], r, angle + jitter)

    def generate(self, center: LatLon, radius_km: float, count: int) -> List[LatLon]:
        base_offset = self.rng.random() * 2 * pi
        waypoints: List[LatLon] = []

        for i in range(count):
            angle = base_offset + i * (2 * pi / count)

            waypoint: Optional[LatLon] = None
            for _ in range(MAX_WAYPOINT_RETRIES):
                candidate = self._single(center, radius_km, angle)
                if not self.zones.contains(candidate):
                    waypoint = candidate
                    break

            if waypoint is None:
                log.debug("Waypoint %d kept hitting unsafe regions; shifting by %.1f rad", i, FALLBACK_ANGLE_OFFSET_RAD)
                waypoint = self._single(center, radius_km, angle + FALLBACK_ANGLE_OFFSET_RAD)

            waypoints.append(waypoint)

        return waypoints
