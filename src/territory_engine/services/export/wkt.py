"""Well-Known-Text conversion at the storage boundary.

WKT uses x y order, so coordinates are written longitude first and rings are
always closed.
"""

from __future__ import annotations

from typing import List, Sequence

from shapely import wkt
from shapely.errors import GEOSException
from shapely.geometry import LineString, Polygon

from ...exceptions import InputInvariantViolation
from ...models.domain import Coordinate


def _format_coords(coordinates: Sequence[Sequence[float]]) -> str:
    return ", ".join(f"{lng} {lat}" for lng, lat, *_ in coordinates)


def _closed(coordinates: Sequence[Sequence[float]]) -> List[Sequence[float]]:
    ring = list(coordinates)
    if tuple(ring[0]) != tuple(ring[-1]):
        ring.append(ring[0])
    return ring


def polygon_to_wkt(polygon: Polygon | Sequence[Coordinate]) -> str:
    """Convert a polygon, or a ring of (lon, lat) pairs, to a WKT POLYGON string.

    Interior rings are written after the exterior ring.
    """
    if isinstance(polygon, Polygon):
        if polygon.is_empty:
            raise ValueError("Cannot serialize an empty polygon")
        rings = [list(polygon.exterior.coords)] + [list(ring.coords) for ring in polygon.interiors]
    else:
        rings = [list(polygon)]

    parts = []
    for ring in rings:
        if len(ring) < 3:
            raise ValueError("Polygon must have at least 3 coordinates")
        parts.append(f"({_format_coords(_closed(ring))})")
    return f"POLYGON({', '.join(parts)})"


def route_to_wkt(route: LineString | Sequence[Coordinate]) -> str:
    """Convert a route to a WKT LINESTRING string."""

    coordinates = list(route.coords) if isinstance(route, LineString) else list(route)
    if len(coordinates) < 2:
        raise ValueError("LineString must have at least 2 coordinates")
    return f"LINESTRING({_format_coords(coordinates)})"


def polygon_from_wkt(text: str) -> Polygon:
    """Parse a WKT POLYGON coming back from storage."""

    try:
        geometry = wkt.loads(text)
    except GEOSException as exc:
        raise InputInvariantViolation(f"Unreadable WKT: {exc}") from exc
    if not isinstance(geometry, Polygon) or geometry.is_empty:
        raise InputInvariantViolation(f"Expected a POLYGON, got {geometry.geom_type}")
    return geometry


def polygon_coordinates(polygon: Polygon) -> List[List[float]]:
    """Exterior ring as [lng, lat] pairs, closed."""

    return [[lng, lat] for lng, lat, *_ in polygon.exterior.coords]
