from math import tau

import pytest
from shapely.geometry import Polygon

from step_loop.core.geometry import project
from step_loop.geo.zones import ZoneClassifier

PARIS = (48.8566, 2.3522)


def ring(center=PARIS, radius_km=1.0, points=120, sides=None):
    """Closed ring of points; *sides* makes a regular polygon instead of a circle."""
    if sides is None:
        pts = [project(center[0], center[1], radius_km, tau * i / points) for i in range(points)]
    else:
        corners = [project(center[0], center[1], radius_km, tau * k / sides) for k in range(sides + 1)]
        per_side = max(1, points // sides)
        pts = []
        for k in range(sides):
            (a_lat, a_lon), (b_lat, b_lon) = corners[k], corners[k + 1]
            for s in range(per_side):
                u = s / per_side
                pts.append((a_lat + u * (b_lat - a_lat), a_lon + u * (b_lon - a_lon)))
    pts.append(pts[0])
    return pts


def line(start=PARIS, n=100, spacing_m=20.0, angle=0.0):
    """Straight path of *n* points spaced *spacing_m* apart."""
    return [project(start[0], start[1], i * spacing_m / 1000.0, angle) for i in range(n)]


def square_region(lat_min, lat_max, lon_min, lon_max):
    return Polygon([(lon_min, lat_min), (lon_max, lat_min), (lon_max, lat_max), (lon_min, lat_max)])


@pytest.fixture
def no_zones():
    return ZoneClassifier(())


@pytest.fixture
def north_zone():
    # Band north of Paris center, well outside a 1.2 km loop
    return ZoneClassifier([square_region(48.89, 48.90, 2.34, 2.37)])
