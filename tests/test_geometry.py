from __future__ import annotations

import math

import pytest

from backend.processing.geometry import (
    CONE_MAX_RADIUS_DEG,
    CONE_SEGMENTS,
    WIND_RADII_VISUAL_SCALE,
    calculate_uncertainty_cone,
    circle_ring,
    cone_radius_degrees,
    forecast_track,
    storm_geometry,
    wind_radii_display,
)
from backend.processing.records import ForecastPoint, QuadrantRadii, WindRadii

from conftest import make_forecast, make_record


def max_distance(ring, center):
    return max(math.hypot(x - center[0], y - center[1]) for x, y in ring)


def test_empty_forecast_has_no_cone():
    assert calculate_uncertainty_cone([]) == []
    assert calculate_uncertainty_cone(()) == []


def test_cone_ring_shape():
    forecast = make_forecast((138.0, 13.5), (135.0, 15.0))
    cone = calculate_uncertainty_cone(forecast)

    assert len(cone) == 2
    for ring in cone:
        assert len(ring) == CONE_SEGMENTS + 1
        assert ring[0] == ring[-1]
    assert max_distance(cone[0], (138.0, 13.5)) == pytest.approx(50 / 60)
    assert max_distance(cone[1], (135.0, 15.0)) == pytest.approx(100 / 60)


def test_nan_point_is_skipped():
    forecast = (
        ForecastPoint("2024-09-02T00:00:00+00:00", (math.nan, 10.0), 65, "Cat1"),
        ForecastPoint("2024-09-03T00:00:00+00:00", (135.0, 15.0), 65, "Cat1"),
    )
    cone = calculate_uncertainty_cone(forecast)

    assert len(cone) == 1
    # The surviving point keeps its own horizon radius
    assert max_distance(cone[0], (135.0, 15.0)) == pytest.approx(100 / 60)


def test_cone_radius_is_capped():
    assert cone_radius_degrees(0) == pytest.approx(50 / 60)
    assert cone_radius_degrees(5) == pytest.approx(CONE_MAX_RADIUS_DEG)
    assert cone_radius_degrees(1000) == CONE_MAX_RADIUS_DEG

    forecast = make_forecast(*[(120.0 + i * 0.1, 10.0) for i in range(25)])
    for point, ring in zip(forecast, calculate_uncertainty_cone(forecast)):
        assert max_distance(ring, point.coordinates) <= CONE_MAX_RADIUS_DEG + 1e-9


def test_ring_near_pole_drops_invalid_vertices():
    ring = circle_ring(0.0, 89.5, 50 / 60)
    assert 3 < len(ring) < CONE_SEGMENTS + 1
    assert all(-90 <= lat <= 90 for _, lat in ring)


def test_ring_with_too_few_vertices_is_discarded():
    assert circle_ring(180.0, 90.0, 1.0, segments=4) == []


def test_wind_radii_display():
    radii = WindRadii(
        radius34kt=QuadrantRadii(ne=80, se=60, sw=50, nw=70),
        radius64kt=QuadrantRadii(ne=20, se=15, sw=10, nw=18),
    )
    display = wind_radii_display(radii)

    assert display[34] == pytest.approx(80 * 1.852 * WIND_RADII_VISUAL_SCALE)
    assert display[50] == 30
    assert display[64] == pytest.approx(20 * 1.852 * WIND_RADII_VISUAL_SCALE)
    assert wind_radii_display(None) == {34: 50, 50: 30, 64: 15}


def test_forecast_track():
    record = make_record(forecast=make_forecast((124.0, 16.0), (123.0, 17.0)))
    assert forecast_track(record) == [(125.0, 15.0), (124.0, 16.0), (123.0, 17.0)]
    assert forecast_track(make_record()) == []


def test_storm_geometry_feature_collection():
    record = make_record(forecast=make_forecast((124.0, 16.0), (123.0, 17.0)))
    geometry = storm_geometry(record)

    layers = [f["properties"]["layer"] for f in geometry["features"]]
    assert geometry["type"] == "FeatureCollection"
    assert layers == [
        "uncertainty_cone", "uncertainty_cone",
        "forecast_track",
        "forecast_point", "forecast_point",
        "center",
    ]
    assert [f["properties"]["hour"] for f in geometry["features"][:2]] == [24, 48]
    center = geometry["features"][-1]["properties"]
    assert center["windRadiiKm"] == {"34": 50, "50": 30, "64": 15}
    assert center["hasWindRadii"] is False


def test_storm_geometry_without_forecast_is_center_only():
    geometry = storm_geometry(make_record())
    assert [f["properties"]["layer"] for f in geometry["features"]] == ["center"]
