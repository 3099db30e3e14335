import threading

import pytest

from step_loop.contracts.route_contract import RoutedPath
from step_loop.core.engine import (
    MAX_RADIUS_KM,
    MIN_RADIUS_KM,
    RouteEngine,
    adapt_radius,
    generate_route,
    initial_radius_km,
    waypoint_count,
)
from step_loop.errors import GenerationCancelled, InvalidInput, NoRouteFound, TransportFailure
from step_loop.providers.base import RoutingProvider
from step_loop.providers.mock import MockRoutingProvider, circle_geometry

from conftest import PARIS, line


class _ScriptedRouter(RoutingProvider):
    """Plays back a list of outcomes: RoutedPath or an exception instance."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def route(self, coordinates):
        self.calls.append(list(coordinates))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _circle_path(distance_m, center=PARIS):
    return RoutedPath(distance_m=distance_m, duration_s=distance_m / 1.4, geometry=circle_geometry(center, distance_m), maneuvers=[])


# ---------- Search parameters


@pytest.mark.parametrize(
    "target_m, expected",
    [(2250, 3), (4500, 3), (7500, 5), (11250, 8), (15000, 8)],
)
def test_waypoint_count_clamped(target_m, expected):
    assert waypoint_count(target_m) == expected


def test_initial_radius_scales_with_target():
    assert initial_radius_km(7500) == pytest.approx(1.2)
    assert initial_radius_km(3750) == pytest.approx(0.6)


def test_adapt_radius_proportional_and_clamped():
    assert adapt_radius(1.0, 7500, 15000) == pytest.approx(0.5)
    assert adapt_radius(0.4, 7500, 15000) == MIN_RADIUS_KM
    assert adapt_radius(2.0, 7500, 3750) == MAX_RADIUS_KM
    assert adapt_radius(1.0, 7500, 0) == MAX_RADIUS_KM


# ---------- Convergence


class _MidpointRng:
    """Every draw lands mid-range: no jitter, no base rotation randomness."""

    def random(self):
        return 0.5


@pytest.mark.parametrize("target_steps", [3000, 6000, 10000, 15000])
def test_steps_estimate_converges_with_proportional_router(no_zones, target_steps):
    engine = RouteEngine(MockRoutingProvider(), no_zones)
    result = engine.generate(*PARIS, target_steps, rng=_MidpointRng())
    assert abs(result.steps_estimate - target_steps) <= 500
    assert result.quality == "accepted"


def test_exact_first_attempt_returns_immediately(no_zones):
    router = MockRoutingProvider(fixed_distance_m=7500)
    engine = RouteEngine(router, no_zones)

    result = engine.generate(48.8566, 2.3522, 10000, seed=5)

    assert result.attempts == 1
    assert len(router.requested_radii_m) == 1
    assert result.steps_estimate == 10000
    assert result.distance == 7500
    assert result.duration == 5400  # 7.5 km at 5 km/h
    assert result.quality == "accepted"
    assert result.score < 0.1
    assert len(result.waypoints) == 5
    assert result.geometry["type"] == "LineString"
    lng, lat = result.geometry["coordinates"][0]
    assert abs(lat - 48.8566) < 0.02 and abs(lng - 2.3522) < 0.02


def test_radius_shrinks_toward_radius_over_k(no_zones):
    # Router always answers twice the target: never accepted, radius halves until clamped
    router = MockRoutingProvider(fixed_distance_m=15000)
    engine = RouteEngine(router, no_zones)

    result = engine.generate(*PARIS, 10000, seed=3)

    radii_km = [r / 1000 for r in router.requested_radii_m]
    assert len(radii_km) == 20
    expected = [1.2, 0.6, 0.3] + [0.3] * 17
    for got, want in zip(radii_km, expected):
        assert got == pytest.approx(want, rel=0.07)
    assert result.quality == "best_effort"
    assert result.distance == 15000


def test_waypoints_sent_as_closed_loop(no_zones):
    router = _ScriptedRouter([_circle_path(7500)])
    RouteEngine(router, no_zones).generate(*PARIS, 10000, seed=1)
    coords = router.calls[0]
    assert coords[0] == PARIS and coords[-1] == PARIS
    assert len(coords) == 5 + 2


# ---------- Failure absorption and fallbacks


def test_routing_failures_are_absorbed(no_zones):
    router = _ScriptedRouter([TransportFailure("down"), NoRouteFound("none"), _circle_path(7500)])
    result = RouteEngine(router, no_zones).generate(*PARIS, 10000, seed=1)
    assert len(router.calls) == 3
    assert result.attempts == 3
    assert result.quality == "accepted"


def test_best_candidate_returned_after_budget(no_zones):
    bad_shape = RoutedPath(distance_m=7500, duration_s=1.0, geometry=line(n=100), maneuvers=[])
    slightly_long = _circle_path(9000)
    router = _ScriptedRouter([bad_shape, slightly_long, bad_shape])
    result = RouteEngine(router, no_zones, max_attempts=5).generate(*PARIS, 10000, seed=1)
    assert len(router.calls) == 5
    assert result.quality == "best_effort"
    assert result.distance == 9000


def test_unsafe_crossings_are_discarded():
    from step_loop.geo.zones import ZoneClassifier
    from conftest import square_region

    # Zone on the circle's eastern edge
    geom = circle_geometry(PARIS, 7500)
    lat, lon = geom[0]
    zones = ZoneClassifier([square_region(lat - 0.001, lat + 0.001, lon - 0.001, lon + 0.001)])
    crossing = RoutedPath(distance_m=7500, duration_s=1.0, geometry=geom, maneuvers=[])
    router = _ScriptedRouter([crossing, crossing, _circle_path(7500, center=(48.80, 2.30))])

    result = RouteEngine(router, zones, max_attempts=5).generate(*PARIS, 10000, seed=1)
    assert len(router.calls) == 3
    assert result.quality == "accepted"


def test_unscored_fallback_after_all_failures(no_zones):
    router = _ScriptedRouter([TransportFailure("down")] * 4 + [_circle_path(7400)])
    result = RouteEngine(router, no_zones, max_attempts=4).generate(*PARIS, 10000, seed=1)
    assert len(router.calls) == 5
    assert result.quality == "unscored"
    assert result.score is None
    assert result.distance == 7400


def test_fallback_failure_propagates(no_zones):
    router = _ScriptedRouter([NoRouteFound("nothing here")])
    with pytest.raises(NoRouteFound):
        RouteEngine(router, no_zones, max_attempts=3).generate(*PARIS, 10000, seed=1)
    assert len(router.calls) == 4


# ---------- Inputs and cancellation


@pytest.mark.parametrize(
    "lat, lng, steps",
    [(91.0, 2.0, 10000), (48.0, 181.0, 10000), (89.0, 0.0, 10000), (float("nan"), 2.0, 10000), (48.0, 2.0, 0)],
)
def test_invalid_input(no_zones, lat, lng, steps):
    with pytest.raises(InvalidInput):
        RouteEngine(MockRoutingProvider(), no_zones).generate(lat, lng, steps)


def test_cancelled_before_first_attempt(no_zones):
    router = MockRoutingProvider()
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(GenerationCancelled):
        RouteEngine(router, no_zones).generate(*PARIS, 10000, cancel=cancel)
    assert router.requested_radii_m == []


def test_generate_route_entry_point(no_zones):
    engine = RouteEngine(MockRoutingProvider(fixed_distance_m=7500), no_zones)
    result = generate_route(48.8566, 2.3522, engine=engine, seed=2)
    assert result.steps_estimate == 10000
    assert set(result.model_dump()) >= {"distance", "duration", "geometry", "waypoints", "steps_estimate", "maneuvers"}


def test_seeded_runs_are_reproducible(no_zones):
    a = RouteEngine(MockRoutingProvider(), no_zones).generate(*PARIS, 8000, seed=99)
    b = RouteEngine(MockRoutingProvider(), no_zones).generate(*PARIS, 8000, seed=99)
    assert a.waypoints == b.waypoints
    assert a.distance == b.distance


@pytest.mark.parametrize(
    "target_steps, expected_km",
    [(500, MIN_RADIUS_KM), (40000, MAX_RADIUS_KM), (60000, MAX_RADIUS_KM)],
)
def test_first_radius_clamped_for_extreme_targets(no_zones, target_steps, expected_km):
    router = MockRoutingProvider(fixed_distance_m=target_steps * 0.75)
    RouteEngine(router, no_zones).generate(*PARIS, target_steps, seed=8)
    assert router.requested_radii_m[0] / 1000 == pytest.approx(expected_km, rel=0.07)
    assert initial_radius_km(target_steps * 0.75) == expected_km


class _MalformedOsrmRouter(RoutingProvider):
    """Answers with an OSRM payload whose turn maneuver has no location."""

    def __init__(self):
        self.calls = 0

    def route(self, coordinates):
        from step_loop.providers.osrm import parse_route_response

        self.calls += 1
        return parse_route_response(
            {
                "code": "Ok",
                "routes": [
                    {
                        "distance": 7500.0,
                        "duration": 5400.0,
                        "geometry": {"coordinates": [[2.35, 48.85], [2.36, 48.86]]},
                        "legs": [{"steps": [{"maneuver": {"type": "turn", "modifier": "left"}}]}],
                    }
                ],
            }
        )


def test_malformed_payload_is_absorbed_per_attempt(no_zones):
    router = _MalformedOsrmRouter()
    with pytest.raises(TransportFailure):
        RouteEngine(router, no_zones, max_attempts=3).generate(*PARIS, 10000, seed=1)
    # three budgeted attempts plus the unguarded fallback
    assert router.calls == 4
