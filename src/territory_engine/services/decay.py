"""Time-based decay of undefended territories."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from shapely.errors import GEOSException
from shapely.geometry import Polygon

from ..config import Settings, settings
from ..exceptions import DegenerateGeometryError, InputInvariantViolation
from ..models.domain import DecayResult, Territory
from .algebra import largest_polygon
from .geospatial import from_local, geodesic_area_sqm, local_transformers, to_local

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400.0
_BISECTION_STEPS = 40
_AREA_TOLERANCE = 0.001


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def days_since(moment: datetime, now: datetime) -> float:
    return (_as_utc(now) - _as_utc(moment)).total_seconds() / SECONDS_PER_DAY


def decay_factor(days_undefended: float, rate_per_day: float, grace_days: float) -> float:
    """Fraction of the original area that survives after *days_undefended*."""

    if days_undefended < grace_days:
        return 1.0
    return 1.0 - rate_per_day * (days_undefended - grace_days)


def shrink_distance_m(area_sqm: float, factor: float) -> float:
    """Inward offset derived from the square root of the area to be lost."""

    return math.sqrt(max(area_sqm - area_sqm * factor, 0.0)) / 2


def _shrink(local: Polygon, distance: float, quad_segs: int) -> Polygon | None:
    try:
        return largest_polygon(local.buffer(-distance, quad_segs=quad_segs))
    except GEOSException as exc:
        raise DegenerateGeometryError(f"inward offset failed: {exc}") from exc


def _shrink_to_ratio(
    local: Polygon, ratio: float, max_distance: float, quad_segs: int
) -> tuple[Polygon | None, float]:
    """Inward offset of *local* whose area is close to ``ratio`` of the original.

    Returns the shrunk polygon and the offset in metres that produced it.
    *max_distance* bounds the search: for any realistic shape it removes at
    least the target area.
    """
    target = local.area * ratio
    candidate = _shrink(local, max_distance, quad_segs)
    if candidate is not None and candidate.area >= target:
        return candidate, max_distance

    low, high = 0.0, max_distance
    best = candidate, max_distance
    for _ in range(_BISECTION_STEPS):
        middle = (low + high) / 2
        shrunk = _shrink(local, middle, quad_segs)
        shrunk_area = shrunk.area if shrunk is not None else 0.0
        best = shrunk, middle
        if shrunk_area and abs(shrunk_area - target) / target <= _AREA_TOLERANCE:
            break
        if shrunk_area > target:
            low = middle
        else:
            high = middle
    return best


def apply_decay(
    territory: Territory,
    *,
    decay_rate_per_day: float | None = None,
    now: datetime | None = None,
    config: Settings | None = None,
) -> DecayResult:
    """Shrink or delete a territory that has not been defended recently.

    No change inside the grace period. Past it the territory keeps
    ``1 - rate * (days - grace)`` of its area, and is deleted once that
    factor reaches the decay floor.
    """
    config = config or settings
    rate = decay_rate_per_day if decay_rate_per_day is not None else config.decay_rate_per_day
    now = now or datetime.now(timezone.utc)

    defended_at = territory.last_defended_at or territory.captured_at
    if defended_at is None:
        raise InputInvariantViolation(
            f"territory {territory.territory_id} has no defended or captured timestamp",
            territory_id=territory.territory_id,
        )

    days = days_since(defended_at, now)
    if days < config.decay_grace_days:
        return DecayResult(
            territory_id=territory.territory_id,
            action="unchanged",
            decay_factor=1.0,
            geometry=territory.geometry,
            area_sqm=territory.area_sqm,
        )

    factor = decay_factor(days, rate, config.decay_grace_days)
    if factor <= config.decay_floor:
        logger.info(f"Territory {territory.territory_id} decayed past the floor (factor {factor:.3f})")
        return DecayResult(territory_id=territory.territory_id, action="deleted", decay_factor=factor)

    original_area = geodesic_area_sqm(territory.geometry)
    max_distance = shrink_distance_m(original_area, factor)

    forward, inverse = local_transformers(territory.geometry)
    local = to_local(territory.geometry, forward)
    shrunk_local, distance = _shrink_to_ratio(local, factor, max_distance, config.buffer_quad_segs)
    shrunk = largest_polygon(from_local(shrunk_local, inverse)) if shrunk_local is not None else None

    if shrunk is None or geodesic_area_sqm(shrunk) < config.min_area_sqm:
        logger.info(f"Territory {territory.territory_id} collapsed while decaying")
        return DecayResult(
            territory_id=territory.territory_id,
            action="deleted",
            decay_factor=factor,
            shrink_distance_m=distance,
        )

    return DecayResult(
        territory_id=territory.territory_id,
        action="shrunk",
        decay_factor=factor,
        geometry=shrunk,
        area_sqm=geodesic_area_sqm(shrunk),
        shrink_distance_m=distance,
    )
