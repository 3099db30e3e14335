"""OSRM foot-routing adapter.

Converts internal (lat, lon) to OSRM's ``lon,lat;lon,lat`` path, requests the
full GeoJSON geometry plus turn-by-turn steps, and normalizes the first route
into a :class:`RoutedPath`. Errors surface as :class:`TransportFailure` or
:class:`NoRouteFound`; retry policy belongs to the caller.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from step_loop.config import settings
from step_loop.contracts.route_contract import LatLon, RoutedPath, TurnManeuver
from step_loop.errors import NoRouteFound, TransportFailure
from step_loop.providers.base import RoutingProvider
from step_loop.providers.http import HTTPClient

log = logging.getLogger(__name__)

# OSRM maneuver kinds that represent a real change of direction
TURN_TYPES = frozenset({"turn", "end of road", "fork", "roundabout turn"})

INSTRUCTIONS: Dict[str, Dict[str, str]] = {
    "fr": {
        "left": "Tournez à gauche",
        "slight_left": "Légèrement à gauche",
        "right": "Tournez à droite",
        "slight_right": "Légèrement à droite",
        "uturn": "Faites demi-tour",
    },
    "en": {
        "left": "Turn left",
        "slight_left": "Bear left",
        "right": "Turn right",
        "slight_right": "Bear right",
        "uturn": "Make a U-turn",
    },
}


def format_coordinates(coords: Sequence[LatLon]) -> str:
    """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
    return ";".join(f"{lon},{lat}" for lat, lon in coords)


def classify_modifier(modifier: str) -> Optional[str]:
    """Map an OSRM maneuver modifier onto a turn type, or None to drop it."""
    if "left" in modifier:
        return "slight_left" if modifier == "slight left" else "left"
    if "right" in modifier:
        return "slight_right" if modifier == "slight right" else "right"
    if modifier == "uturn":
        return "uturn"
    return None


def extract_maneuvers(route: Dict[str, Any], locale: str = "fr") -> List[TurnManeuver]:
    texts = INSTRUCTIONS.get(locale, INSTRUCTIONS["fr"])
    out: List[TurnManeuver] = []
    for leg in route.get("legs") or []:
        for step in leg.get("steps") or []:
            m = step.get("maneuver") or {}
            if m.get("type") not in TURN_TYPES:
                continue
            kind = classify_modifier(m.get("modifier") or "")
            if kind is None:
                continue
            lon, lat = m["location"][0], m["location"][1]
            out.append(TurnManeuver(lat=float(lat), lon=float(lon), instruction=texts[kind], type=kind))
    return out


def parse_route_response(data: Dict[str, Any], locale: str = "fr") -> RoutedPath:
    if not isinstance(data, dict):
        raise TransportFailure(f"Malformed OSRM response: expected an object, got {type(data).__name__}")
    if data.get("code") != "Ok" or not data.get("routes"):
        raise NoRouteFound(f"OSRM returned no route: {data.get('code')} {data.get('message', '')}".strip())

    try:
        route = data["routes"][0]
        coords = route["geometry"]["coordinates"]
        geometry = [(float(c[1]), float(c[0])) for c in coords]
        distance = float(route["distance"])
        duration = float(route["duration"])
        maneuvers = extract_maneuvers(route, locale)
    except (KeyError, TypeError, IndexError, ValueError, AttributeError) as e:
        raise TransportFailure(f"Malformed OSRM route payload: {e}") from e

    if len(geometry) < 2:
        raise NoRouteFound("OSRM route geometry has fewer than two points")

    return RoutedPath(
        distance_m=distance,
        duration_s=duration,
        geometry=geometry,
        maneuvers=maneuvers,
    )


class OSRMRoutingClient(RoutingProvider):
    def __init__(
        self,
        base_url: Optional[str] = None,
        profile: Optional[str] = None,
        locale: Optional[str] = None,
        http: Optional[HTTPClient] = None,
    ):
        self.base_url = (base_url or settings.osrm_base_url).rstrip("/")
        self.profile = profile or settings.osrm_profile
        self.locale = locale or settings.instruction_locale
        self.http = http or HTTPClient(
            user_agent=settings.user_agent,
            timeout_s=settings.osrm_timeout_s,
            tries=settings.osrm_tries,
        )

        if not self.base_url:
            raise ValueError("OSRM base URL not set (STEP_LOOP_OSRM_BASE_URL).")

    def route(self, coordinates: Sequence[LatLon]) -> RoutedPath:
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required to compute a route.")

        url = f"{self.base_url}/route/v1/{self.profile}/{format_coordinates(coordinates)}"
        data = self.http.get_json(
            url,
            params={
                "overview": "full",
                "geometries": "geojson",
                "continue_straight": "true",
                "steps": "true",
            },
        )
        path = parse_route_response(data, self.locale)
        log.debug("OSRM route: %d points, %.0f m", len(path.geometry), path.distance_m)
        return path
