"""Geo helpers shared by waypoint placement and quality evaluation."""
from __future__ import annotations

from math import atan2, cos, radians, sin, sqrt
from typing import Tuple

KM_PER_DEG_LAT = 111.32

# Flat-earth projection breaks down near the poles
MAX_ABS_LATITUDE = 85.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS-84 points."""
    R = 6_371_000.0  # Earth radius in metres
    lat1r, lon1r, lat2r, lon2r = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2r - lat1r
    dlon = lon2r - lon1r
    a = sin(dlat / 2) ** 2 + cos(lat1r) * cos(lat2r) * sin(dlon / 2) ** 2
    return R * 2 * atan2(sqrt(a), sqrt(1 - a))


def deg_per_km(center_lat: float) -> Tuple[float, float]:
    """(lat degrees per km, lon degrees per km) around *center_lat*."""
    lat_deg = 1.0 / KM_PER_DEG_LAT
    lon_deg = 1.0 / (KM_PER_DEG_LAT * cos(radians(center_lat)))
    return lat_deg, lon_deg


def project(
    center_lat: float, center_lon: float, distance_km: float, angle_rad: float
) -> Tuple[float, float]:
    """Offset a point by *distance_km* along *angle_rad* (0 = east, CCW)."""
    lat_deg, lon_deg = deg_per_km(center_lat)
    lat = center_lat + distance_km * lat_deg * sin(angle_rad)
    lon = center_lon + distance_km * lon_deg * cos(angle_rad)
    return lat, lon
