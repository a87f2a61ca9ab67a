"""Geospatial helper functions."""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Iterable, Sequence

from pyproj import CRS, Geod, Transformer
from shapely.geometry import LineString, Point, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform

from ..models.domain import Bounds, Coordinate, Territory, TerritoryMembership

EARTH_RADIUS_M = 6_371_000.0
WGS84 = CRS.from_epsg(4326)

_GEOD = Geod(ellps="WGS84")


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance in metres between two (lon, lat) points."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def geodesic_area_sqm(geometry: BaseGeometry) -> float:
    """Area of a lon/lat geometry on the WGS84 ellipsoid, in square metres."""

    if geometry is None or geometry.is_empty:
        return 0.0
    area, _ = _GEOD.geometry_area_perimeter(geometry)
    return abs(area)


@lru_cache(maxsize=256)
def _local_transformers(lon_0: float, lat_0: float) -> tuple[Transformer, Transformer]:
    local = CRS.from_proj4(
        f"+proj=aeqd +lat_0={lat_0} +lon_0={lon_0} +datum=WGS84 +units=m +no_defs"
    )
    forward = Transformer.from_crs(WGS84, local, always_xy=True)
    inverse = Transformer.from_crs(local, WGS84, always_xy=True)
    return forward, inverse


def local_transformers(geometry: BaseGeometry) -> tuple[Transformer, Transformer]:
    """Forward/inverse transformers for a metric projection centred on *geometry*.

    The centre is rounded to ~100 m so nearby geometries share cached
    transformers.
    """

    centroid = geometry.centroid
    return _local_transformers(round(centroid.x, 3), round(centroid.y, 3))


def to_local(geometry: BaseGeometry, forward: Transformer) -> BaseGeometry:
    return transform(forward.transform, geometry)


def from_local(geometry: BaseGeometry, inverse: Transformer) -> BaseGeometry:
    return transform(inverse.transform, geometry)


def bounds_of(geometry: BaseGeometry | Sequence[Coordinate]) -> Bounds:
    """Bounding box of a route (coordinate sequence or LineString) or polygon."""

    if not isinstance(geometry, BaseGeometry):
        coords = list(geometry)
        if not coords:
            raise ValueError("Cannot compute bounds of an empty coordinate sequence.")
        geometry = LineString(coords) if len(coords) > 1 else Point(coords[0])
    if geometry.is_empty:
        raise ValueError("Cannot compute bounds of an empty geometry.")
    min_lng, min_lat, max_lng, max_lat = geometry.bounds
    return Bounds(min_lng=min_lng, min_lat=min_lat, max_lng=max_lng, max_lat=max_lat)


def point_in_territory(point: Coordinate, territories: Iterable[Territory]) -> TerritoryMembership:
    """Return the first territory (in scan order) whose polygon covers the (lon, lat) point."""

    candidate = Point(point[0], point[1])
    for territory in territories:
        geometry: Polygon = territory.geometry
        if geometry is None or geometry.is_empty:
            continue
        if geometry.covers(candidate):
            return TerritoryMembership(
                in_territory=True,
                owner_id=territory.owner_id,
                territory_id=territory.territory_id,
            )
    return TerritoryMembership(in_territory=False)


def route_bounds(encoded: str) -> Bounds:
    """Bounding box of an encoded activity route."""

    from .decoder import decode_route

    return bounds_of(decode_route(encoded))
