from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

QualityStatus = Literal["accepted", "best_effort", "unscored"]


class ManeuverOut(BaseModel):
    lat: float
    lng: float
    instruction: str
    type: Literal["left", "right", "slight_left", "slight_right", "uturn"]


class RouteResult(BaseModel):
    distance: int                    # metres, rounded
    duration: int                    # seconds at walking speed
    geometry: Dict[str, Any]         # GeoJSON LineString, [lng, lat] order
    waypoints: List[List[float]]     # [[lat, lng], ...]
    steps_estimate: int
    maneuvers: List[ManeuverOut] = []

    # "accepted": met every quality bar
    # "best_effort": lowest-scoring candidate after the attempt budget
    # "unscored": unguarded fallback call, no quality signal at all
    quality: QualityStatus = "accepted"
    score: Optional[float] = Field(default=None, description="Composite score, 0 = ideal")
    attempts: int = 0
