"""
Typhoon Processing Module

Contains the storm record schema, unit utilities, source parsers and
forecast geometry for active tropical cyclone data.
"""

from .geometry import (
    calculate_uncertainty_cone,
    storm_geometry,
    wind_radii_display,
)
from .parsers import (
    ATCFParser,
    AlertGeoJSONParser,
    DigitalTyphoonParser,
    NHCRSSParser,
    SourceParser,
)
from .records import ForecastPoint, StormRecord, WindRadii, is_valid_record
from .units import (
    category_from_wind_speed,
    color_for_category,
    intensity_label,
)

__all__ = [
    "calculate_uncertainty_cone",
    "storm_geometry",
    "wind_radii_display",
    "ATCFParser",
    "AlertGeoJSONParser",
    "DigitalTyphoonParser",
    "NHCRSSParser",
    "SourceParser",
    "ForecastPoint",
    "StormRecord",
    "WindRadii",
    "is_valid_record",
    "category_from_wind_speed",
    "color_for_category",
    "intensity_label",
]
