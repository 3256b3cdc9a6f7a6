"""
Coordinate and Unit Utilities

Pure conversion helpers shared by the source parsers and the geometry
engine: fixed-format ATCF coordinates, wind speed units, compass
directions and the tropical cyclone intensity scale.
"""

import math
import re
from typing import Dict, Optional

KNOTS_TO_KPH = 1.852
MPH_TO_KNOTS = 0.868976

# Sea level standard pressure, used when a source omits pressure
DEFAULT_PRESSURE_MB = 1013

# Unknown compass labels resolve to North without raising
UNKNOWN_DIRECTION_DEGREES = 0.0

COMPASS_POINTS = [
    'N', 'NNE', 'NE', 'ENE', 'E', 'ESE', 'SE', 'SSE',
    'S', 'SSW', 'SW', 'WSW', 'W', 'WNW', 'NW', 'NNW',
]
COMPASS_DEGREES: Dict[str, float] = {
    label: index * 22.5 for index, label in enumerate(COMPASS_POINTS)
}

# Upper bounds (exclusive, knots) for each category; Cat5 has none
CATEGORY_THRESHOLDS = [
    (34, 'TD'),
    (64, 'TS'),
    (83, 'Cat1'),
    (96, 'Cat2'),
    (113, 'Cat3'),
    (137, 'Cat4'),
]
CATEGORIES = [name for _, name in CATEGORY_THRESHOLDS] + ['Cat5']

CATEGORY_COLORS = {
    'TD': '#3B82F6',    # blue
    'TS': '#10B981',    # green
    'Cat1': '#F59E0B',  # amber
    'Cat2': '#F97316',  # orange
    'Cat3': '#EF4444',  # red
    'Cat4': '#DC2626',  # dark red
    'Cat5': '#991B1B',  # very dark red
}
UNKNOWN_CATEGORY_COLOR = '#6B7280'

INTENSITY_LABELS = {
    'TD': 'Tropical Depression',
    'TS': 'Tropical Storm',
    'Cat1': 'Category 1 Typhoon',
    'Cat2': 'Category 2 Typhoon',
    'Cat3': 'Category 3 Typhoon (Major)',
    'Cat4': 'Category 4 Typhoon (Major)',
    'Cat5': 'Category 5 Typhoon (Catastrophic)',
}
UNKNOWN_INTENSITY_LABEL = 'Unknown'

_FIXED_COORDINATE = re.compile(r'^(\d+)([NSEW])$')


def parse_fixed_format_coordinate(token: Optional[str]) -> float:
    """
    Parse an ATCF coordinate token such as "125N" or "1400E".

    Digits are tenths of a degree; South and West are negative.

    Args:
        token: Raw token from a track line

    Returns:
        Decimal degrees, or NaN when the token is malformed
    """
    if not token:
        return math.nan
    match = _FIXED_COORDINATE.match(token.strip().upper())
    if not match:
        return math.nan
    value = int(match.group(1)) / 10.0
    if match.group(2) in ('S', 'W'):
        value = -value
    return value


def degrees_from_compass(label: Optional[str]) -> float:
    """Map a 16-point compass label to degrees (N = 0, clockwise)"""
    if not label:
        return UNKNOWN_DIRECTION_DEGREES
    return COMPASS_DEGREES.get(label.strip().upper(), UNKNOWN_DIRECTION_DEGREES)


def compass_from_degrees(degrees: float) -> str:
    """Format a heading in degrees as the nearest 16-point compass label"""
    index = int(round(degrees / 22.5)) % 16
    return COMPASS_POINTS[index]


def knots_to_kph(knots: float) -> int:
    return int(round(knots * KNOTS_TO_KPH))


def mph_to_knots(mph: float) -> int:
    return int(round(mph * MPH_TO_KNOTS))


def category_from_wind_speed(knots: float) -> str:
    """Classify sustained wind (knots) as TD, TS or Cat1..Cat5"""
    for upper, name in CATEGORY_THRESHOLDS:
        if knots < upper:
            return name
    return 'Cat5'


def color_for_category(category: str) -> str:
    return CATEGORY_COLORS.get(category, UNKNOWN_CATEGORY_COLOR)


def intensity_label(category: str) -> str:
    return INTENSITY_LABELS.get(category, UNKNOWN_INTENSITY_LABEL)


def is_valid_coordinate(lon: float, lat: float) -> bool:
    """Check that a lon/lat pair is finite and inside WGS84 bounds"""
    try:
        lon = float(lon)
        lat = float(lat)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return False
    return -180 <= lon <= 180 and -90 <= lat <= 90


def basin_from_position(lon: float, lat: float) -> str:
    """
    Approximate the ocean basin for a position.

    Used for sources that report a location but no basin.
    """
    if lat < 0:
        if 20 <= lon < 135:
            return 'South Indian'
        if lon >= 135 or lon < -70:
            return 'South Pacific'
        return 'South Atlantic'
    if lon >= 100 or lon <= -180:
        return 'Western Pacific'
    if lon >= 40:
        return 'North Indian'
    if lon < -140:
        return 'Central Pacific'
    # Pacific side of Mexico and Central America
    if lon < -100 or (lon < -90 and lat < 16):
        return 'Eastern Pacific'
    return 'Atlantic'
