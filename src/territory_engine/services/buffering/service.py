"""Route buffering and the territory-kind policy for one activity."""

from __future__ import annotations

import logging
from typing import Sequence

from shapely.errors import GEOSException
from shapely.geometry import LineString

from ...config import Settings, settings
from ...exceptions import DecodeError, DegenerateGeometryError
from ...models.domain import CandidateClaim, Coordinate
from ..algebra import largest_polygon
from ..decoder import decode_route
from ..geospatial import from_local, geodesic_area_sqm, local_transformers, to_local
from .loops import closed_polygon, is_closed_route, largest_loop

logger = logging.getLogger(__name__)


def buffer_meters_for(activity_type: str | None, *, config: Settings | None = None) -> float:
    """Corridor half-width for an activity type; anything that is not a ride uses the run width."""

    config = config or settings
    if activity_type and activity_type.strip().lower() == "ride":
        return config.ride_buffer_meters
    return config.run_buffer_meters


def buffer_route(
    coordinates: Sequence[Coordinate],
    activity_type: str = "Run",
    *,
    config: Settings | None = None,
) -> CandidateClaim:
    """Expand a route into a corridor polygon on both sides of the track.

    Buffering happens in a local metric projection with rounded joins
    quantized to ``buffer_quad_segs`` arc steps; the result is simplified with
    a tolerance proportional to the half-width.
    """
    config = config or settings
    if len(coordinates) < 2:
        raise DecodeError("Route must contain at least 2 points.")

    half_width = buffer_meters_for(activity_type, config=config)
    line = LineString(coordinates)
    forward, inverse = local_transformers(line)

    try:
        local_line = to_local(line, forward)
        buffered = local_line.buffer(
            half_width,
            quad_segs=config.buffer_quad_segs,
            cap_style="round",
            join_style="round",
        )
        simplified = buffered.simplify(half_width * config.simplify_ratio, preserve_topology=True)
        polygon = largest_polygon(from_local(simplified, inverse))
    except GEOSException as exc:
        raise DegenerateGeometryError(f"buffering failed: {exc}") from exc

    if polygon is None or not polygon.is_valid:
        raise DegenerateGeometryError("buffering produced no usable polygon")

    return CandidateClaim(
        polygon=polygon,
        area_sqm=geodesic_area_sqm(polygon),
        buffer_meters=half_width,
        kind="corridor",
        route=line,
    )


def build_candidate(
    coordinates: Sequence[Coordinate],
    activity_type: str = "Run",
    *,
    config: Settings | None = None,
) -> CandidateClaim:
    """Choose the claimable shape for a route.

    Preference order: the full enclosed area of a closed simple route
    (``polygon``), the largest loop of a self-intersecting route (``loop``),
    then the buffered corridor (``corridor``).
    """
    config = config or settings
    if len(coordinates) < 2:
        raise DecodeError("Route must contain at least 2 points.")

    half_width = buffer_meters_for(activity_type, config=config)
    line = LineString(coordinates)
    closed = is_closed_route(coordinates, config.loop_closure_tolerance_meters)

    if closed:
        polygon = closed_polygon(coordinates)
        if polygon is not None:
            polygon_area = geodesic_area_sqm(polygon)
            if polygon_area >= config.min_area_sqm:
                logger.debug(f"Route forms a closed loop of {polygon_area:.0f} sqm")
                return CandidateClaim(polygon, polygon_area, half_width, "polygon", line)

    loop = largest_loop(coordinates, closed=closed)
    if loop is not None:
        loop_area = geodesic_area_sqm(loop)
        if loop_area >= config.min_area_sqm:
            logger.debug(f"Extracted loop of {loop_area:.0f} sqm from self-intersecting route")
            return CandidateClaim(loop, loop_area, half_width, "loop", line)

    return buffer_route(coordinates, activity_type, config=config)


def candidate_from_encoded(
    encoded: str,
    activity_type: str = "Run",
    *,
    config: Settings | None = None,
) -> CandidateClaim:
    config = config or settings
    coordinates = decode_route(encoded, precision=config.polyline_precision)
    return build_candidate(coordinates, activity_type, config=config)
