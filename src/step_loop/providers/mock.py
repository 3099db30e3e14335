from __future__ import annotations

from math import pi, tau
from typing import List, Optional, Sequence

from step_loop.contracts.route_contract import LatLon, RoutedPath
from step_loop.core.geometry import haversine_m, project
from step_loop.providers.base import RoutingProvider


def circle_geometry(center: LatLon, circumference_m: float, points: int = 100) -> List[LatLon]:
    """Closed metric circle around *center* with the given circumference."""
    radius_km = circumference_m / (2 * pi) / 1000.0
    ring = [project(center[0], center[1], radius_km, tau * i / points) for i in range(points)]
    ring.append(ring[0])
    return ring


class MockRoutingProvider(RoutingProvider):
    """
    Deterministic offline router so the pipeline runs end-to-end without OSRM.

    The returned loop is a circle around the start whose length is
    ``2π × (largest start→waypoint distance)``, i.e. it scales with the
    radius the engine asked for. ``fixed_distance_m`` pins the length
    instead, and ``scale`` multiplies whichever length is used.
    """

    def __init__(
        self,
        fixed_distance_m: Optional[float] = None,
        scale: float = 1.0,
        walking_speed_kmh: float = 5.0,
    ):
        self.fixed_distance_m = fixed_distance_m
        self.scale = scale
        self.walking_speed_kmh = walking_speed_kmh
        # Largest start→waypoint distance (m) of every request, in call order
        self.requested_radii_m: List[float] = []

    def route(self, coordinates: Sequence[LatLon]) -> RoutedPath:
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required to compute a route.")

        start = coordinates[0]
        inner = coordinates[1:-1] or coordinates[1:]
        max_radius_m = max(haversine_m(start[0], start[1], p[0], p[1]) for p in inner)
        self.requested_radii_m.append(max_radius_m)

        base = self.fixed_distance_m if self.fixed_distance_m is not None else max_radius_m * 2 * pi
        distance = base * self.scale

        return RoutedPath(
            distance_m=distance,
            duration_s=distance / (self.walking_speed_kmh / 3.6),
            geometry=circle_geometry(start, distance),
            maneuvers=[],
        )
