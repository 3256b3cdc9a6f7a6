"""
Storm Records

Normalized schema shared by every typhoon source. Records are built fresh
on each aggregation pass and never mutated afterwards.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .units import (
    DEFAULT_PRESSURE_MB,
    category_from_wind_speed,
    is_valid_coordinate,
    knots_to_kph,
)

Coordinates = Tuple[float, float]  # (longitude, latitude)


@dataclass(frozen=True)
class QuadrantRadii:
    """Wind extent per quadrant in nautical miles"""
    ne: float = 0
    se: float = 0
    sw: float = 0
    nw: float = 0

    def max_extent(self) -> float:
        return max(self.ne or 0, self.se or 0, self.sw or 0, self.nw or 0)

    def to_dict(self) -> Dict[str, float]:
        return {"ne": self.ne, "se": self.se, "sw": self.sw, "nw": self.nw}


@dataclass(frozen=True)
class WindRadii:
    """34/50/64 knot wind radii"""
    radius34kt: Optional[QuadrantRadii] = None
    radius50kt: Optional[QuadrantRadii] = None
    radius64kt: Optional[QuadrantRadii] = None

    def for_threshold(self, threshold: int) -> Optional[QuadrantRadii]:
        return getattr(self, f"radius{threshold}kt", None)

    def is_empty(self) -> bool:
        return self.radius34kt is None and self.radius50kt is None and self.radius64kt is None

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        result = {}
        for threshold in (34, 50, 64):
            radii = self.for_threshold(threshold)
            if radii is not None:
                result[f"radius{threshold}kt"] = radii.to_dict()
        return result


@dataclass(frozen=True)
class ForecastPoint:
    """A single forecast position"""
    timestamp: str
    coordinates: Coordinates
    wind_speed: float
    category: str
    pressure: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "timestamp": self.timestamp,
            "coordinates": list(self.coordinates),
            "windSpeed": self.wind_speed,
            "category": self.category,
        }
        if self.pressure is not None:
            result["pressure"] = self.pressure
        return result


@dataclass(frozen=True)
class StormRecord:
    """A normalized active tropical cyclone"""
    id: str
    name: str
    basin: str
    category: str
    coordinates: Coordinates
    timestamp: str
    wind_speed: float
    wind_speed_kph: int
    pressure: float = DEFAULT_PRESSURE_MB
    movement_speed: float = 0
    movement_direction: float = 0
    forecast: Tuple[ForecastPoint, ...] = ()
    wind_radii: Optional[WindRadii] = None
    warnings: Tuple[str, ...] = ()
    status: str = "Active"
    jtwc_url: str = ""
    source: str = ""

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase JSON shape served to the dashboard"""
        result = {
            "id": self.id,
            "type": "typhoon",
            "name": self.name,
            "basin": self.basin,
            "category": self.category,
            "coordinates": list(self.coordinates),
            "timestamp": self.timestamp,
            "windSpeed": self.wind_speed,
            "windSpeedKph": self.wind_speed_kph,
            "pressure": self.pressure,
            "movementSpeed": self.movement_speed,
            "movementDirection": self.movement_direction,
            "forecast": [point.to_dict() for point in self.forecast],
            "warnings": list(self.warnings),
            "status": self.status,
            "jtwcUrl": self.jtwc_url,
            "source": self.source,
        }
        if self.wind_radii is not None and not self.wind_radii.is_empty():
            result["windRadii"] = self.wind_radii.to_dict()
        return result


def build_record(
    id: str,
    name: str,
    basin: str,
    coordinates: Coordinates,
    timestamp: str,
    wind_speed: float,
    **kwargs: Any,
) -> StormRecord:
    """
    Build a StormRecord, deriving category and km/h wind from knots.

    Args:
        id: Record identifier
        name: Storm name
        basin: Provider-reported basin name
        coordinates: (longitude, latitude)
        timestamp: ISO-8601 observation time
        wind_speed: Sustained wind in knots
        **kwargs: Any other StormRecord field

    Returns:
        A StormRecord whose category is consistent with its wind speed
    """
    return StormRecord(
        id=id,
        name=name,
        basin=basin,
        category=category_from_wind_speed(wind_speed),
        coordinates=(float(coordinates[0]), float(coordinates[1])),
        timestamp=timestamp,
        wind_speed=wind_speed,
        wind_speed_kph=knots_to_kph(wind_speed),
        **kwargs,
    )


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        return None


def _is_finite(value: Any) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def _radii_are_finite(wind_radii: Optional[WindRadii]) -> bool:
    if wind_radii is None:
        return True
    for radii in (wind_radii.radius34kt, wind_radii.radius50kt, wind_radii.radius64kt):
        if radii is not None and not all(_is_finite(v) for v in (radii.ne, radii.se, radii.sw, radii.nw)):
            return False
    return True


def is_valid_record(record: StormRecord) -> bool:
    """
    Check a record against the schema invariants.

    Every number must be finite and wind non-negative, the category must
    match the wind speed, every position must be a valid coordinate and
    forecast times must strictly increase.
    """
    if not _is_finite(record.wind_speed):
        return False
    wind = float(record.wind_speed)
    if wind < 0:
        return False
    scalars = (record.wind_speed_kph, record.pressure, record.movement_speed, record.movement_direction)
    if not all(_is_finite(value) for value in scalars):
        return False
    if not _radii_are_finite(record.wind_radii):
        return False
    if record.category != category_from_wind_speed(wind):
        return False
    if len(record.coordinates) != 2 or not is_valid_coordinate(*record.coordinates):
        return False

    previous = None
    for point in record.forecast:
        if not _is_finite(point.wind_speed):
            return False
        if point.pressure is not None and not _is_finite(point.pressure):
            return False
        if len(point.coordinates) != 2 or not is_valid_coordinate(*point.coordinates):
            return False
        current = _parse_timestamp(point.timestamp)
        if current is None:
            return False
        try:
            if previous is not None and current <= previous:
                return False
        except TypeError:
            # naive and aware timestamps mixed in one forecast
            return False
        previous = current
    return True
