"""
Typhoon Tracker configuration

All settings come from environment variables with development defaults.
"""

import os


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


VERSION = "0.3.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Timeouts (seconds)
AGGREGATE_TIMEOUT = _env_float("TYPHOON_AGGREGATE_TIMEOUT", 5.0)
SOURCE_TIMEOUT = _env_float("TYPHOON_SOURCE_TIMEOUT", 4.0)
# Archive hosts are slow and only ever serve the same basin
ATCF_TIMEOUT = _env_float("ATCF_TIMEOUT", 1.0)

# ATCF archive probing
ATCF_BASIN = os.getenv("ATCF_BASIN", "wp").lower()
ATCF_MAX_STORM_NUMBER = _env_int("ATCF_MAX_STORM_NUMBER", 30)
ATCF_MAX_AGE_DAYS = _env_int("ATCF_MAX_AGE_DAYS", 7)
ATCF_FORECAST_TECHNIQUE = os.getenv("ATCF_FORECAST_TECHNIQUE", "OFCL").upper()

# Provider URLs
NHC_ATLANTIC_URL = os.getenv("NHC_ATLANTIC_URL", "https://www.nhc.noaa.gov/index-at.xml")
NHC_EAST_PACIFIC_URL = os.getenv("NHC_EAST_PACIFIC_URL", "https://www.nhc.noaa.gov/index-ep.xml")
DIGITAL_TYPHOON_URL = os.getenv(
    "DIGITAL_TYPHOON_URL",
    "http://agora.ex.nii.ac.jp/digital-typhoon/atom/typhoon.xml",
)
NOAA_ALERTS_URL = os.getenv(
    "NOAA_ALERTS_URL",
    "https://api.weather.gov/alerts/active?status=actual&message_type=alert",
)
# {basin} {number:02d} {year} are filled per probe
ATCF_BEST_TRACK_URL = os.getenv(
    "ATCF_BEST_TRACK_URL",
    "https://hurricanes.ral.ucar.edu/repository/data/bdecks_open/{year}/b{basin}{number:02d}{year}.dat",
)
ATCF_FORECAST_URL = os.getenv(
    "ATCF_FORECAST_URL",
    "https://hurricanes.ral.ucar.edu/repository/data/adecks_open/{year}/a{basin}{number:02d}{year}.dat",
)

JTWC_URL = "https://www.metoc.navy.mil/jtwc/jtwc.html"
NHC_URL = "https://www.nhc.noaa.gov/"

# Get allowed origins from environment, with safe defaults for development
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
