import math
from datetime import datetime, timedelta, timezone

import pytest
from shapely.geometry import Polygon, box

from territory_engine.config import Settings
from territory_engine.exceptions import InputInvariantViolation
from territory_engine.models.domain import Territory
from territory_engine.services.decay import apply_decay, days_since, decay_factor, shrink_distance_m
from territory_engine.services.geospatial import geodesic_area_sqm

from metric_grid import MetricGrid

ORIGIN_LNG = -3.70
ORIGIN_LAT = 40.42
NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)

GRID = MetricGrid(ORIGIN_LNG, ORIGIN_LAT)


def _territory(days_undefended: float, geometry: Polygon | None = None) -> Territory:
    defended = NOW - timedelta(days=days_undefended)
    return Territory(
        territory_id="T1",
        owner_id="alice",
        geometry=geometry if geometry is not None else GRID.rect(0, 0, 1000, 1000),
        kind="polygon",
        captured_at=defended,
        last_defended_at=defended,
    )


def test_decay_factor_formula():
    assert decay_factor(3, 0.01, 7) == 1.0
    assert decay_factor(10, 0.01, 7) == pytest.approx(0.97)
    assert decay_factor(57, 0.01, 7) == pytest.approx(0.5)


def test_shrink_distance_formula():
    assert shrink_distance_m(1_000_000, 0.97) == pytest.approx(math.sqrt(30_000) / 2)
    assert shrink_distance_m(1_000, 1.0) == 0.0


def test_days_since_treats_naive_datetimes_as_utc():
    assert days_since(datetime(2026, 9, 30, 12, 0), NOW) == pytest.approx(1.0)


def test_no_decay_during_grace_period():
    territory = _territory(3)

    result = apply_decay(territory, now=NOW)

    assert result.action == "unchanged"
    assert result.decay_factor == 1.0
    assert result.geometry is territory.geometry


def test_ten_days_undefended_shrinks_to_ninety_seven_percent():
    territory = _territory(10)
    original = geodesic_area_sqm(territory.geometry)

    result = apply_decay(territory, now=NOW)

    assert result.action == "shrunk"
    assert result.decay_factor == pytest.approx(0.97)
    assert result.area_sqm == pytest.approx(0.97 * original, rel=0.01)
    assert result.geometry.within(territory.geometry)
    # A 1 km square keeping 97% of its area loses (1000 - sqrt(970000)) / 2 metres on every side.
    assert result.shrink_distance_m == pytest.approx((1000 - math.sqrt(970_000)) / 2, abs=0.5)
    assert result.shrink_distance_m < shrink_distance_m(original, 0.97)


def test_custom_decay_rate():
    territory = _territory(10)
    original = geodesic_area_sqm(territory.geometry)

    result = apply_decay(territory, decay_rate_per_day=0.02, now=NOW)

    assert result.decay_factor == pytest.approx(0.94)
    assert result.area_sqm == pytest.approx(0.94 * original, rel=0.01)


@pytest.mark.parametrize("days", [57, 60, 400])
def test_decay_past_floor_deletes(days):
    result = apply_decay(_territory(days), now=NOW)

    assert result.action == "deleted"
    assert result.geometry is None


def test_decay_settings_are_configurable():
    config = Settings(decay_grace_days=14, decay_floor=0.9)

    assert apply_decay(_territory(10), now=NOW, config=config).action == "unchanged"
    assert apply_decay(_territory(30), now=NOW, config=config).action == "deleted"


def test_tiny_territory_collapsing_below_minimum_is_deleted():
    territory = _territory(17, geometry=GRID.rect(0, 0, 10.5, 10.5))

    result = apply_decay(territory, now=NOW)

    assert result.action == "deleted"
    assert result.decay_factor == pytest.approx(0.9)


def test_falls_back_to_capture_time():
    territory = _territory(10)
    territory.last_defended_at = None

    assert apply_decay(territory, now=NOW).action == "shrunk"


def test_missing_timestamps_raise():
    territory = Territory(territory_id="T1", owner_id="alice", geometry=box(0, 0, 0.01, 0.01))

    with pytest.raises(InputInvariantViolation):
        apply_decay(territory, now=NOW)
