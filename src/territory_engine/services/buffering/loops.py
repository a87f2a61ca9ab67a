"""Closed-loop detection and loop extraction for activity routes."""

from __future__ import annotations

from typing import Sequence

from shapely.geometry import LinearRing, LineString, Polygon
from shapely.ops import polygonize, unary_union

from ...models.domain import Coordinate
from ..geospatial import geodesic_area_sqm, haversine_m


def endpoint_gap_m(coordinates: Sequence[Coordinate]) -> float:
    (lng1, lat1), (lng2, lat2) = coordinates[0], coordinates[-1]
    return haversine_m(lng1, lat1, lng2, lat2)


def is_closed_route(coordinates: Sequence[Coordinate], tolerance_m: float) -> bool:
    """True when the route has at least three points and ends within *tolerance_m* of its start."""

    if len(coordinates) < 3:
        return False
    return endpoint_gap_m(coordinates) <= tolerance_m


def closed_polygon(coordinates: Sequence[Coordinate]) -> Polygon | None:
    """Polygon enclosed by the route closed back onto its start, if that ring is simple."""

    ring = list(coordinates)
    if ring[0] != ring[-1]:
        ring.append(ring[0])
    if len(set(ring)) < 3:
        return None

    linear_ring = LinearRing(ring)
    if not linear_ring.is_simple:
        return None
    polygon = Polygon(linear_ring)
    if polygon.is_empty or not polygon.is_valid:
        return None
    return polygon


def largest_loop(coordinates: Sequence[Coordinate], *, closed: bool = False) -> Polygon | None:
    """Largest simple loop enclosed by a self-intersecting route.

    The route is noded at every self-crossing and polygonized; each face is
    bounded by a non-self-intersecting piece of the route. Holes left by
    spurs into the interior are filled since the surrounding ring is itself a
    loop the route travelled.
    """
    path = list(coordinates)
    if closed and path[0] != path[-1]:
        path.append(path[0])
    if len(set(path)) < 3:
        return None

    noded = unary_union(LineString(path))
    faces = [Polygon(face.exterior) for face in polygonize(noded)]
    faces = [face for face in faces if not face.is_empty and face.is_valid]
    if not faces:
        return None
    return max(faces, key=geodesic_area_sqm)
