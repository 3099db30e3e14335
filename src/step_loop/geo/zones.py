"""Unsafe-region registry: point containment and route-crossing queries."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import shapely
from shapely.geometry import MultiPolygon, Polygon, mapping, shape

from step_loop.contracts.route_contract import LatLon

log = logging.getLogger(__name__)

_BUNDLED_REGIONS = Path(__file__).resolve().parent.parent / "data" / "unsafe_regions.geojson"

# A route is checked at roughly this many evenly spaced points
_CROSSING_SAMPLES = 50


def _polygons_from_geojson(data: dict) -> List[Polygon]:
    if data.get("type") == "FeatureCollection":
        geoms = [f.get("geometry") for f in data.get("features", [])]
    elif data.get("type") == "Feature":
        geoms = [data.get("geometry")]
    else:
        geoms = [data]

    out: List[Polygon] = []
    for g in geoms:
        if not g:
            continue
        geom = shape(g)
        if isinstance(geom, Polygon):
            out.append(geom)
        elif isinstance(geom, MultiPolygon):
            out.extend(geom.geoms)
        else:
            log.warning("Ignoring non-polygon unsafe region geometry: %s", geom.geom_type)
    return out


def load_regions(path: Optional[str | Path] = None) -> Tuple[Polygon, ...]:
    """Read unsafe regions from a GeoJSON file (lon/lat order).

    An empty or missing *path* loads the bundled dataset.
    """
    p = Path(path) if path else _BUNDLED_REGIONS
    data = json.loads(p.read_text(encoding="utf-8"))
    regions = tuple(_polygons_from_geojson(data))
    log.info("Loaded %d unsafe regions from %s", len(regions), p)
    return regions


class ZoneClassifier:
    """Read-only containment queries against a fixed set of polygons.

    Polygons are in (x=lon, y=lat) order, as in GeoJSON. Points on a region
    boundary count as inside. Instances hold no mutable state after
    construction and are safe to share between concurrent requests.
    """

    def __init__(self, regions: Iterable[Polygon] = ()):
        self._regions: Tuple[Polygon, ...] = tuple(regions)
        for poly in self._regions:
            shapely.prepare(poly)

    @classmethod
    def from_geojson(cls, path: Optional[str | Path] = None) -> ZoneClassifier:
        return cls(load_regions(path))

    @property
    def regions(self) -> Tuple[Polygon, ...]:
        return self._regions

    def contains(self, point: LatLon) -> bool:
        lat, lon = point
        return any(bool(shapely.intersects_xy(poly, lon, lat)) for poly in self._regions)

    def crosses(self, geometry: Sequence[LatLon]) -> bool:
        """True if any sampled point of *geometry* lies in an unsafe region."""
        if not self._regions or not geometry:
            return False
        stride = max(1, len(geometry) // _CROSSING_SAMPLES)
        for i in range(0, len(geometry), stride):
            if self.contains(geometry[i]):
                return True
        return False

    def to_geojson(self) -> dict:
        """Read-only GeoJSON FeatureCollection of the regions (lon/lat order)."""
        return {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "properties": {}, "geometry": mapping(poly)}
                for poly in self._regions
            ],
        }

    def filter_safe(self, points: Sequence[LatLon]) -> List[LatLon]:
        """Keep only the points outside every unsafe region."""
        return [p for p in points if not self.contains(p)]
