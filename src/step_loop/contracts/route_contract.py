# path: step-loop/src/step_loop/contracts/route_contract.py

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Literal, Tuple

# Internal coordinate type: (lat, lon) in degrees
LatLon = Tuple[float, float]

ManeuverType = Literal["left", "right", "slight_left", "slight_right", "uturn"]


@dataclass(frozen=True)
class TurnManeuver:
    lat: float
    lon: float
    instruction: str
    type: ManeuverType


@dataclass(frozen=True)
class RoutedPath:
    """Normalized output of a routing provider for one request."""
    distance_m: float
    duration_s: float
    geometry: List[LatLon]  # ordered (lat, lon), first ≈ last for a loop
    maneuvers: List[TurnManeuver]


@dataclass(frozen=True)
class CandidateRoute:
    """One scored attempt of the loop search."""
    distance_m: float
    geometry: List[LatLon]
    waypoints: List[LatLon]
    maneuvers: List[TurnManeuver]
    score: float  # 0 = ideal
