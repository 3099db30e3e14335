"""Loop search: generate waypoints → route → evaluate → adapt radius."""
from __future__ import annotations

import logging
import math
import threading
from typing import List, Optional, Sequence

import numpy as np

from step_loop.config import settings
from step_loop.contracts.route_contract import CandidateRoute, LatLon, TurnManeuver
from step_loop.core.geometry import MAX_ABS_LATITUDE
from step_loop.core.models import ManeuverOut, QualityStatus, RouteResult
from step_loop.core.quality import evaluate, target_distance_m
from step_loop.core.waypoints import WaypointGenerator
from step_loop.errors import GenerationCancelled, InvalidInput, RoutingError
from step_loop.geo.zones import ZoneClassifier
from step_loop.providers.base import RoutingProvider

log = logging.getLogger(__name__)

MIN_RADIUS_KM = 0.3
MAX_RADIUS_KM = 3.0
BASE_RADIUS_KM = 1.2           # radius for a 7.5 km loop
BASE_DISTANCE_M = 7500.0
METERS_PER_WAYPOINT = 1500.0
MIN_WAYPOINTS = 3
MAX_WAYPOINTS = 8


def initial_radius_km(target_m: float) -> float:
    return max(MIN_RADIUS_KM, min(MAX_RADIUS_KM, BASE_RADIUS_KM * (target_m / BASE_DISTANCE_M)))


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def waypoint_count(target_m: float) -> int:
    return max(MIN_WAYPOINTS, min(MAX_WAYPOINTS, _round_half_up(target_m / METERS_PER_WAYPOINT)))


def adapt_radius(radius_km: float, target_m: float, actual_m: float) -> float:
    """Proportional correction toward the target distance, clamped."""
    ratio = target_m / actual_m if actual_m > 0 else math.inf
    return max(MIN_RADIUS_KM, min(MAX_RADIUS_KM, radius_km * ratio))


def validate_request(lat: float, lng: float, target_steps: int) -> None:
    if not all(math.isfinite(v) for v in (lat, lng)):
        raise InvalidInput("lat and lng must be finite numbers")
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
        raise InvalidInput("Coordinates out of range")
    if abs(lat) > MAX_ABS_LATITUDE:
        raise InvalidInput(f"Latitude beyond ±{MAX_ABS_LATITUDE:g}° is not supported")
    if target_steps <= 0:
        raise InvalidInput("target_steps must be positive")


class RouteEngine:
    """
    Bounded search for a closed walking loop of roughly the requested length.

    Each attempt places a waypoint ring at the current radius, routes
    ``[start, *waypoints, start]``, drops the attempt on a routing failure or
    an unsafe-region crossing, and scores the rest. The first candidate that
    passes every check is returned; otherwise the lowest score wins once the
    budget is spent. If nothing could be scored at all, one last unguarded
    routing call is made and its result (or error) goes to the caller.
    """

    def __init__(
        self,
        router: RoutingProvider,
        zones: ZoneClassifier,
        *,
        max_attempts: Optional[int] = None,
        step_length_m: Optional[float] = None,
        walking_speed_kmh: Optional[float] = None,
        wide_loops: bool = False,
    ):
        self.router = router
        self.zones = zones
        self.max_attempts = max_attempts if max_attempts is not None else settings.max_attempts
        self.step_length_m = step_length_m or settings.step_length_m
        self.walking_speed_kmh = walking_speed_kmh or settings.walking_speed_kmh
        self.wide_loops = wide_loops

    def generate(
        self,
        lat: float,
        lng: float,
        target_steps: int = 10000,
        *,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        cancel: Optional[threading.Event] = None,
    ) -> RouteResult:
        validate_request(lat, lng, target_steps)

        start: LatLon = (lat, lng)
        target_m = target_distance_m(target_steps, self.step_length_m)
        count = waypoint_count(target_m)
        radius_km = initial_radius_km(target_m)
        generator = WaypointGenerator(
            self.zones,
            rng=rng if rng is not None else np.random.default_rng(seed),
            wide=self.wide_loops,
        )

        best: Optional[CandidateRoute] = None

        for attempt in range(1, self.max_attempts + 1):
            self._check_cancelled(cancel)

            waypoints = generator.generate(start, radius_km, count)
            try:
                path = self.router.route([start, *waypoints, start])
            except RoutingError as e:
                log.info("Attempt %d: routing failed (%s)", attempt, e)
                continue

            if self.zones.crosses(path.geometry):
                log.info("Attempt %d: route crosses an unsafe region, discarded", attempt)
                continue

            report = evaluate(path.distance_m, path.geometry, target_m)
            log.debug(
                "Attempt %d: radius=%.3f km distance=%.0f m (target %.0f) "
                "distance_ok=%s backtracking=%s crossing=%s circularity=%.2f score=%.2f",
                attempt, radius_km, path.distance_m, target_m, report.distance_ok,
                report.backtracking, report.self_intersecting, report.circularity, report.score,
            )

            candidate = CandidateRoute(
                distance_m=path.distance_m,
                geometry=path.geometry,
                waypoints=waypoints,
                maneuvers=path.maneuvers,
                score=report.score,
            )

            if report.acceptable:
                log.info("Accepted loop on attempt %d: %.0f m", attempt, path.distance_m)
                return self._build_result(candidate, "accepted", attempt)

            if best is None or candidate.score < best.score:
                best = candidate

            if not report.distance_ok:
                radius_km = adapt_radius(radius_km, target_m, path.distance_m)

        if best is not None:
            log.info("No loop met every check; returning best (score %.2f)", best.score)
            return self._build_result(best, "best_effort", self.max_attempts)

        # Nothing was scorable: one unguarded call, errors propagate
        self._check_cancelled(cancel)
        log.warning("All %d attempts failed or crossed unsafe regions; unscored fallback", self.max_attempts)
        waypoints = generator.generate(start, radius_km, count)
        path = self.router.route([start, *waypoints, start])
        fallback = CandidateRoute(
            distance_m=path.distance_m,
            geometry=path.geometry,
            waypoints=waypoints,
            maneuvers=path.maneuvers,
            score=math.nan,
        )
        return self._build_result(fallback, "unscored", self.max_attempts + 1)

    @staticmethod
    def _check_cancelled(cancel: Optional[threading.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise GenerationCancelled("Route generation cancelled")

    def _build_result(self, c: CandidateRoute, quality: QualityStatus, attempts: int) -> RouteResult:
        walking_mps = self.walking_speed_kmh / 3.6
        return RouteResult(
            distance=_round_half_up(c.distance_m),
            duration=_round_half_up(c.distance_m / walking_mps),
            geometry={
                "type": "LineString",
                "coordinates": [[lon, lat] for lat, lon in c.geometry],
            },
            waypoints=[[lat, lon] for lat, lon in c.waypoints],
            steps_estimate=_round_half_up(c.distance_m / self.step_length_m),
            maneuvers=_maneuvers_out(c.maneuvers),
            quality=quality,
            score=None if math.isnan(c.score) else float(round(c.score, 3)),
            attempts=attempts,
        )


def _maneuvers_out(maneuvers: Sequence[TurnManeuver]) -> List[ManeuverOut]:
    return [ManeuverOut(lat=m.lat, lng=m.lon, instruction=m.instruction, type=m.type) for m in maneuvers]


def build_engine(
    router: Optional[RoutingProvider] = None,
    zones: Optional[ZoneClassifier] = None,
) -> RouteEngine:
    """Engine wired to OSRM and the configured unsafe-region file by default."""
    if router is None:
        from step_loop.providers.osrm import OSRMRoutingClient

        router = OSRMRoutingClient()
    if zones is None:
        zones = ZoneClassifier.from_geojson(settings.unsafe_regions_path or None)
    return RouteEngine(router, zones)


def generate_route(
    latitude: float,
    longitude: float,
    target_steps: int = 10000,
    *,
    engine: Optional[RouteEngine] = None,
    seed: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> RouteResult:
    engine = engine or build_engine()
    return engine.generate(latitude, longitude, target_steps, seed=seed, cancel=cancel)
