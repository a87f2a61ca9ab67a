"""Boolean operations and area for territory polygons.

All operations run planar in lon/lat degree space; areas are geodesic square
metres. Results whose area falls under the configured minimum are reported as
``None`` rather than as near-empty polygons.
"""

from __future__ import annotations

from typing import Iterator, List, Union

from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import explain_validity

from ..config import settings
from ..exceptions import DegenerateGeometryError
from .geospatial import geodesic_area_sqm

Areal = Union[Polygon, MultiPolygon]


def _polygon_parts(geometry: BaseGeometry) -> Iterator[Polygon]:
    if geometry is None or geometry.is_empty:
        return
    if isinstance(geometry, Polygon):
        yield geometry
    elif hasattr(geometry, "geoms"):
        for part in geometry.geoms:
            yield from _polygon_parts(part)


def polygon_parts(geometry: BaseGeometry | None) -> List[Polygon]:
    """Polygon parts of *geometry*, largest first."""

    return sorted(_polygon_parts(geometry), key=lambda part: part.area, reverse=True)


def _areal(parts: List[Polygon]) -> Areal | None:
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return MultiPolygon(parts)


def _min_area(min_area_sqm: float | None) -> float:
    return min_area_sqm if min_area_sqm is not None else settings.min_area_sqm


def ensure_valid(geometry: BaseGeometry, label: str = "geometry") -> Areal:
    """Raise DegenerateGeometryError unless *geometry* is a valid, non-empty areal shape."""

    if not isinstance(geometry, (Polygon, MultiPolygon)):
        raise DegenerateGeometryError(f"{label} is not a polygon: {getattr(geometry, 'geom_type', type(geometry).__name__)}")
    if geometry.is_empty:
        raise DegenerateGeometryError(f"{label} is empty")
    if not geometry.is_valid:
        raise DegenerateGeometryError(f"{label} is invalid: {explain_validity(geometry)}")
    return geometry


def area(geometry: BaseGeometry | None) -> float:
    """Area in square metres; 0 for missing or empty geometry."""

    if geometry is None:
        return 0.0
    return geodesic_area_sqm(geometry)


def intersect(a: Areal, b: Areal, *, min_area_sqm: float | None = None) -> Areal | None:
    """Overlap of *a* and *b*, or None when there is no meaningful overlap.

    A genuinely disjoint overlap (for example a corridor crossing a C-shaped
    territory twice) is kept as a MultiPolygon so that every overlapping part
    can be removed from both sides. Parts below the minimum area are dropped.
    """
    ensure_valid(a, "left operand")
    ensure_valid(b, "right operand")
    threshold = _min_area(min_area_sqm)
    if not a.intersects(b):
        return None
    try:
        result = a.intersection(b)
    except GEOSException as exc:
        raise DegenerateGeometryError(f"intersection failed: {exc}") from exc

    return _areal([part for part in _polygon_parts(result) if area(part) >= threshold])


def union(a: Areal, b: Areal) -> Polygon:
    """Union of two overlapping polygons as a single polygon."""

    ensure_valid(a, "left operand")
    ensure_valid(b, "right operand")
    try:
        result = unary_union([a, b])
    except GEOSException as exc:
        raise DegenerateGeometryError(f"union failed: {exc}") from exc

    if isinstance(result, Polygon) and not result.is_empty:
        return result
    raise DegenerateGeometryError(f"union did not produce a single polygon ({result.geom_type})")


def difference(a: Areal, b: Areal, *, min_area_sqm: float | None = None) -> Areal | None:
    """Part of *a* outside *b*, or None when nothing meaningful is left.

    When *b* cuts *a* in two the result is a MultiPolygon holding every part
    at or above the minimum area; smaller slivers are dropped.
    """
    ensure_valid(a, "left operand")
    ensure_valid(b, "right operand")
    threshold = _min_area(min_area_sqm)
    try:
        result = a.difference(b)
    except GEOSException as exc:
        raise DegenerateGeometryError(f"difference failed: {exc}") from exc

    return _areal([part for part in polygon_parts(result) if area(part) >= threshold])


def largest_polygon(geometry: BaseGeometry) -> Polygon | None:
    parts = polygon_parts(geometry)
    return parts[0] if parts else None
