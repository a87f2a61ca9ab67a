import math

import pytest
from shapely.geometry import Polygon

from territory_engine.config import Settings
from territory_engine.exceptions import DecodeError
from territory_engine.services.buffering.loops import closed_polygon, is_closed_route, largest_loop
from territory_engine.services.buffering.service import (
    buffer_meters_for,
    buffer_route,
    build_candidate,
    candidate_from_encoded,
)
from territory_engine.services.decoder import encode_route

from metric_grid import MetricGrid

ORIGIN_LNG = 2.35
ORIGIN_LAT = 48.85

GRID = MetricGrid(ORIGIN_LNG, ORIGIN_LAT)


def test_buffer_width_by_activity_type():
    assert buffer_meters_for("Run") == 50
    assert buffer_meters_for("Ride") == 100
    assert buffer_meters_for("Hike") == 50
    assert buffer_meters_for(None) == 50


def test_buffer_width_follows_configuration():
    config = Settings(run_buffer_meters=30, ride_buffer_meters=70)

    assert buffer_meters_for("Run", config=config) == 30
    assert buffer_meters_for("Ride", config=config) == 70


def test_straight_run_becomes_corridor():
    route = GRID.route((0, 0), (1000, 0))

    candidate = build_candidate(route, "Run")

    assert candidate.kind == "corridor"
    assert candidate.buffer_meters == 50
    assert isinstance(candidate.polygon, Polygon)
    assert candidate.polygon.is_valid
    # Rectangle plus two half-disc caps.
    expected = 2 * 50 * 1000 + math.pi * 50**2
    assert candidate.area_sqm == pytest.approx(expected, rel=0.03)


def test_ride_corridor_is_wider():
    route = GRID.route((0, 0), (1000, 0))

    run = buffer_route(route, "Run")
    ride = buffer_route(route, "Ride")

    assert ride.buffer_meters == 100
    assert ride.area_sqm == pytest.approx(2 * 100 * 1000 + math.pi * 100**2, rel=0.03)
    assert ride.area_sqm > run.area_sqm


def test_simplification_reduces_vertex_count():
    route = GRID.route(*[(x * 10, 30 * math.sin(x / 5)) for x in range(200)])

    simplified = buffer_route(route, "Run")
    raw = buffer_route(route, "Run", config=Settings(simplify_ratio=0))

    assert simplified.polygon.is_valid
    assert len(simplified.polygon.exterior.coords) <= len(raw.polygon.exterior.coords)
    assert simplified.area_sqm == pytest.approx(raw.area_sqm, rel=0.02)


def test_closed_loop_claims_enclosed_area():
    # 500 m square, finishing 20 m from the start.
    route = GRID.route((0, 0), (500, 0), (500, 500), (0, 500), (0, 20))

    candidate = build_candidate(route, "Run")

    assert candidate.kind == "polygon"
    assert candidate.area_sqm == pytest.approx(250_000, rel=0.01)


def test_self_intersecting_route_extracts_largest_loop():
    # The stem is crossed by the last leg, closing a 300 m x 200 m loop.
    route = GRID.route((0, -500), (0, 300), (300, 300), (300, 100), (-200, 100))

    candidate = build_candidate(route, "Run")

    assert candidate.kind == "loop"
    assert candidate.area_sqm == pytest.approx(60_000, rel=0.01)


def test_figure_eight_keeps_the_bigger_lobe():
    # Lobes of roughly 91,400 sqm and 51,400 sqm meeting where the legs cross.
    route = GRID.route((0, 0), (800, 400), (800, 100), (0, 400), (0, 0))

    assert closed_polygon(route) is None
    loop = largest_loop(route, closed=True)
    candidate = build_candidate(route, "Run")

    assert loop is not None
    assert candidate.kind == "loop"
    assert candidate.area_sqm == pytest.approx(91_429, rel=0.01)


def test_out_and_back_falls_back_to_corridor():
    route = GRID.route((0, 0), (500, 0), (1000, 0), (500, 0), (0, 0))

    candidate = build_candidate(route, "Run")

    assert candidate.kind == "corridor"


def test_tiny_loop_falls_back_to_corridor():
    route = GRID.route((0, 0), (5, 0), (5, 5), (0, 5), (0, 0))

    candidate = build_candidate(route, "Run")

    assert candidate.kind == "corridor"


def test_loop_closure_tolerance_is_configurable():
    route = GRID.route((0, 0), (500, 0), (500, 500), (0, 500), (0, 80))

    assert build_candidate(route, "Run").kind == "polygon"
    strict = Settings(loop_closure_tolerance_meters=50)
    assert build_candidate(route, "Run", config=strict).kind == "corridor"


def test_is_closed_route_needs_three_points():
    assert not is_closed_route(GRID.route((0, 0), (10, 0)), 100)
    assert is_closed_route(GRID.route((0, 0), (300, 0), (0, 50)), 100)


def test_closed_polygon_rejects_self_crossing_ring():
    bowtie = GRID.route((0, 0), (500, 500), (500, 0), (0, 500), (0, 0))

    assert closed_polygon(bowtie) is None


def test_single_point_route_is_rejected():
    with pytest.raises(DecodeError):
        build_candidate(GRID.route((0, 0)), "Run")


def test_candidate_from_encoded_route():
    encoded = encode_route(GRID.route((0, 0), (500, 0), (500, 500), (0, 500), (0, 10)))

    candidate = candidate_from_encoded(encoded, "Ride")

    assert candidate.kind == "polygon"
    assert candidate.buffer_meters == 100
    assert candidate.area_sqm == pytest.approx(250_000, rel=0.01)
