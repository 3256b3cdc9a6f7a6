"""
Forecast Geometry Module

Derives map geometry from normalized storm records:

- Uncertainty cone: one circle per forecast point whose radius grows with
  the forecast horizon. This is a circular simplification of official
  cone-of-uncertainty products and is not an authoritative track error
  envelope.
- Forecast track line and forecast point features.
- Wind radii display sizes for the 34/50/64 knot thresholds.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .records import ForecastPoint, StormRecord, WindRadii
from .units import KNOTS_TO_KPH, color_for_category, is_valid_coordinate

Ring = List[Tuple[float, float]]

# Cone error radius: 50 nm at 24h, growing 50 nm per day, capped at 300 nm
CONE_BASE_RADIUS_NM = 50
CONE_RADIUS_STEP_NM = 50
CONE_MAX_RADIUS_NM = 300
CONE_MAX_RADIUS_DEG = 5.0
CONE_SEGMENTS = 16
NM_PER_DEGREE = 60.0
FORECAST_STEP_HOURS = 24

# Presentation choice, not a unit conversion: shrinks km radii to map pixels
WIND_RADII_VISUAL_SCALE = 0.15
WIND_RADII_FALLBACK_KM = {34: 50, 50: 30, 64: 15}
WIND_RADII_COLORS = {34: '#F59E0B', 50: '#F97316', 64: '#EF4444'}


def cone_radius_degrees(index: int) -> float:
    """Error radius in degrees for the forecast point at index"""
    radius_nm = min(CONE_BASE_RADIUS_NM + CONE_RADIUS_STEP_NM * index, CONE_MAX_RADIUS_NM)
    return min(radius_nm / NM_PER_DEGREE, CONE_MAX_RADIUS_DEG)


def circle_ring(lon: float, lat: float, radius_deg: float, segments: int = CONE_SEGMENTS) -> Ring:
    """
    Approximate a circle with a closed polygon ring.

    Vertices that fall outside valid lon/lat bounds are dropped; fewer than
    3 survivors gives an empty ring.
    """
    angles = np.linspace(0.0, 2.0 * np.pi, segments, endpoint=False)
    xs = lon + radius_deg * np.cos(angles)
    ys = lat + radius_deg * np.sin(angles)

    ring = [
        (float(x), float(y))
        for x, y in zip(xs, ys)
        if is_valid_coordinate(x, y)
    ]
    if len(ring) < 3:
        return []
    ring.append(ring[0])
    return ring


def calculate_uncertainty_cone(forecast: Sequence[ForecastPoint]) -> List[Ring]:
    """
    Build the uncertainty cone for a forecast.

    Point i (about (i+1)*24 hours out) gets a 16-segment circle whose
    radius is min(50 + 50*i, 300) nm, converted at 60 nm per degree and
    capped at 5 degrees.

    Args:
        forecast: Ordered forecast points

    Returns:
        One closed ring per usable forecast point. Points with invalid
        coordinates and rings with fewer than 3 valid vertices are skipped.
    """
    cone: List[Ring] = []
    for index, point in enumerate(forecast or ()):
        try:
            lon, lat = point.coordinates
        except (TypeError, ValueError):
            continue
        if not is_valid_coordinate(lon, lat):
            continue

        ring = circle_ring(float(lon), float(lat), cone_radius_degrees(index))
        if not ring:
            continue
        cone.append(ring)
    return cone


def wind_radii_display(wind_radii: Optional[WindRadii]) -> Dict[int, float]:
    """
    Display radius (km, visually scaled) per wind threshold.

    Uses the largest quadrant extent converted from nm; thresholds without
    radii fall back to WIND_RADII_FALLBACK_KM.
    """
    display = {}
    for threshold, fallback in WIND_RADII_FALLBACK_KM.items():
        radii = wind_radii.for_threshold(threshold) if wind_radii is not None else None
        if radii is None:
            display[threshold] = float(fallback)
        else:
            display[threshold] = radii.max_extent() * KNOTS_TO_KPH * WIND_RADII_VISUAL_SCALE
    return display


def forecast_track(record: StormRecord) -> List[Tuple[float, float]]:
    """Track line from the current position through each forecast point"""
    if not record.forecast:
        return []
    track = [tuple(record.coordinates)]
    for point in record.forecast:
        if is_valid_coordinate(*point.coordinates):
            track.append(tuple(point.coordinates))
    return track if len(track) >= 2 else []


def storm_geometry(record: StormRecord) -> Dict[str, Any]:
    """
    GeoJSON FeatureCollection with everything the map draws for one storm.

    Contains the cone polygons, the forecast track line, the forecast
    points and a center point carrying the wind radii display sizes.
    Storms without a forecast only get the center point.
    """
    color = color_for_category(record.category)
    features = []

    for index, ring in enumerate(calculate_uncertainty_cone(record.forecast)):
        features.append({
            "type": "Feature",
            "geometry": {"type": "Polygon", "coordinates": [[list(v) for v in ring]]},
            "properties": {
                "layer": "uncertainty_cone",
                "hour": (index + 1) * FORECAST_STEP_HOURS,
                "color": color,
            },
        })

    track = forecast_track(record)
    if track:
        features.append({
            "type": "Feature",
            "geometry": {"type": "LineString", "coordinates": [list(v) for v in track]},
            "properties": {
                "layer": "forecast_track",
                "name": record.name,
                "category": record.category,
                "color": color,
            },
        })

    for index, point in enumerate(record.forecast):
        features.append({
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": list(point.coordinates)},
            "properties": {
                "layer": "forecast_point",
                "hour": (index + 1) * FORECAST_STEP_HOURS,
                "category": point.category,
                "windSpeed": point.wind_speed,
                "color": color_for_category(point.category),
            },
        })

    radii_km = wind_radii_display(record.wind_radii)
    features.append({
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": list(record.coordinates)},
        "properties": {
            "layer": "center",
            "id": record.id,
            "name": record.name,
            "category": record.category,
            "color": color,
            "windRadiiKm": {str(threshold): round(km, 2) for threshold, km in radii_km.items()},
            "windRadiiColors": {str(threshold): c for threshold, c in WIND_RADII_COLORS.items()},
            "hasWindRadii": record.wind_radii is not None and not record.wind_radii.is_empty(),
        },
    })

    return {"type": "FeatureCollection", "features": features}
