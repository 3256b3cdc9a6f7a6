"""
Typhoon Source Parsers

One parser per upstream wire format, all behind the SourceParser interface:

- NHCRSSParser: NHC RSS feeds with <nhc:Cyclone> blocks
- DigitalTyphoonParser: Digital Typhoon Atom feed with geo tags
- ATCFParser: ATCF best-track (b-deck) and forecast (a-deck) text
- AlertGeoJSONParser: NOAA weather alerts GeoJSON

Parsers never raise on malformed input. A bad item, entry, line or feature
is skipped and the rest of the payload is still processed.
"""

import html
import json
import logging
import math
import re
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Tuple

from ..config import ATCF_FORECAST_TECHNIQUE, ATCF_MAX_AGE_DAYS, JTWC_URL, NHC_URL
from .records import (
    Coordinates,
    ForecastPoint,
    QuadrantRadii,
    StormRecord,
    WindRadii,
    build_record,
    is_valid_record,
)
from .units import (
    DEFAULT_PRESSURE_MB,
    basin_from_position,
    category_from_wind_speed,
    degrees_from_compass,
    intensity_label,
    is_valid_coordinate,
    mph_to_knots,
    parse_fixed_format_coordinate,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _slug(text: str) -> str:
    return re.sub(r'[^a-z0-9]+', '_', text.strip().lower()).strip('_')


class SourceParser(ABC):
    """Turns the raw text of one provider into normalized storm records"""

    name = "source"

    @abstractmethod
    def parse(self, raw: str) -> List[StormRecord]:
        """Parse a raw payload; must return a list and never raise"""

    def _keep(self, record: Optional[StormRecord], records: List[StormRecord]) -> None:
        if record is None:
            return
        if not is_valid_record(record):
            logger.debug(f"[{self.name}] Dropping invalid record {record.id}")
            return
        records.append(record)


# =============================================================================
# NHC RSS
# =============================================================================

ITEM_PATTERN = re.compile(r'<item\b[^>]*>([\s\S]*?)</item>')
CYCLONE_PATTERN = re.compile(r'<nhc:Cyclone>([\s\S]*?)</nhc:Cyclone>')
SPEED_PATTERN = re.compile(r'(\d+)\s*(mph|kt)', re.IGNORECASE)
PRESSURE_PATTERN = re.compile(r'(\d+)\s*mb', re.IGNORECASE)
MOVEMENT_PATTERN = re.compile(r'(\w+)\s+at\s+(\d+)\s*(mph|kt)', re.IGNORECASE)


def extract_tag(block: str, tag: str) -> Optional[str]:
    """Text content of the first <tag> in block, or None when absent or empty"""
    match = re.search(rf'<{re.escape(tag)}>([\s\S]*?)</{re.escape(tag)}>', block)
    if not match:
        return None
    text = html.unescape(match.group(1)).strip()
    return text or None


def _to_knots(value: str, unit: str) -> int:
    if unit.lower() == 'mph':
        return mph_to_knots(int(value))
    return int(value)


def extract_center(block: str) -> Optional[Coordinates]:
    """Parse <nhc:center> ("lat, lon") into (lon, lat)"""
    text = extract_tag(block, 'nhc:center')
    if text is None:
        return None
    parts = [part.strip() for part in text.split(',')]
    if len(parts) != 2:
        return None
    try:
        lat = float(parts[0])
        lon = float(parts[1])
    except ValueError:
        return None
    if not is_valid_coordinate(lon, lat):
        return None
    return (lon, lat)


def extract_wind_knots(block: str) -> Optional[int]:
    text = extract_tag(block, 'nhc:wind')
    if text is None:
        return None
    match = SPEED_PATTERN.search(text)
    if not match:
        return None
    return _to_knots(match.group(1), match.group(2))


def extract_pressure_mb(block: str) -> Optional[int]:
    text = extract_tag(block, 'nhc:pressure')
    if text is None:
        return None
    match = PRESSURE_PATTERN.search(text)
    return int(match.group(1)) if match else None


def extract_movement(block: str) -> Optional[Tuple[int, float]]:
    """Parse "NNW at 12 mph" into (speed in knots, heading in degrees)"""
    text = extract_tag(block, 'nhc:movement')
    if text is None:
        return None
    match = MOVEMENT_PATTERN.search(text)
    if not match:
        return None
    speed = _to_knots(match.group(2), match.group(3))
    return speed, degrees_from_compass(match.group(1))


def extract_pub_date(item: str) -> Optional[str]:
    text = extract_tag(item, 'pubDate')
    if text is None:
        return None
    try:
        published = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published.isoformat()


class NHCRSSParser(SourceParser):
    """Parser for NHC basin RSS feeds (index-at.xml, index-ep.xml)"""

    name = "nhc_rss"

    def __init__(self, basin: str):
        self.basin = basin

    def parse(self, raw: str) -> List[StormRecord]:
        records: List[StormRecord] = []
        for item_match in ITEM_PATTERN.finditer(raw or ''):
            item = item_match.group(1)
            cyclone = CYCLONE_PATTERN.search(item)
            if not cyclone:
                continue
            try:
                record = self._parse_cyclone(cyclone.group(1), item)
            except Exception as e:
                logger.debug(f"[{self.name}] Skipping malformed cyclone: {e}")
                continue
            self._keep(record, records)
        return records

    def _parse_cyclone(self, block: str, item: str) -> Optional[StormRecord]:
        name = extract_tag(block, 'nhc:name')
        storm_type = extract_tag(block, 'nhc:type')
        center = extract_center(block)
        if name is None or storm_type is None or center is None:
            return None

        wind = extract_wind_knots(block) or 0
        pressure = extract_pressure_mb(block) or DEFAULT_PRESSURE_MB
        movement_speed, movement_direction = extract_movement(block) or (0, 0.0)

        atcf = extract_tag(block, 'nhc:atcf')
        storm_id = atcf.lower() if atcf else f"typhoon_{_slug(name)}"

        return build_record(
            id=storm_id,
            name=name,
            basin=self.basin,
            coordinates=center,
            timestamp=extract_pub_date(item) or _utc_now().isoformat(),
            wind_speed=wind,
            pressure=pressure,
            movement_speed=movement_speed,
            movement_direction=movement_direction,
            warnings=(f"{storm_type} {name} in {self.basin}",),
            status="Active",
            jtwc_url=NHC_URL,
            source=self.name,
        )


# =============================================================================
# Digital Typhoon Atom
# =============================================================================

ENTRY_PATTERN = re.compile(r'<entry\b[^>]*>([\s\S]*?)</entry>')
LINK_PATTERN = re.compile(r'<link\b[^>]*\bhref="([^"]+)"')
TYPHOON_KEYWORDS = re.compile(r'typhoon|tropical|storm|depression|cyclone', re.IGNORECASE)
PAREN_NAME_PATTERN = re.compile(r'\(([^)]+)\)')

# The Atom feed carries positions only; these stand in for real kinematics
PLACEHOLDER_WIND_KNOTS = 35
PLACEHOLDER_PRESSURE_MB = DEFAULT_PRESSURE_MB


class DigitalTyphoonParser(SourceParser):
    """
    Parser for the Digital Typhoon Atom feed.

    Entries need a <geo:lat>/<geo:long> pair and a typhoon-like title.
    Wind and pressure are placeholders since the feed does not carry them.
    """

    name = "digital_typhoon"

    def __init__(self, basin: str = "Western Pacific"):
        self.basin = basin

    def parse(self, raw: str) -> List[StormRecord]:
        records: List[StormRecord] = []
        for entry_match in ENTRY_PATTERN.finditer(raw or ''):
            try:
                record = self._parse_entry(entry_match.group(1))
            except Exception as e:
                logger.debug(f"[{self.name}] Skipping malformed entry: {e}")
                continue
            self._keep(record, records)
        return records

    def _parse_entry(self, entry: str) -> Optional[StormRecord]:
        title = extract_tag(entry, 'title')
        lat_text = extract_tag(entry, 'geo:lat')
        lon_text = extract_tag(entry, 'geo:long')
        if title is None or lat_text is None or lon_text is None:
            return None
        if not TYPHOON_KEYWORDS.search(title):
            return None
        try:
            lat = float(lat_text)
            lon = float(lon_text)
        except ValueError:
            return None
        if not is_valid_coordinate(lon, lat):
            return None

        paren = PAREN_NAME_PATTERN.search(title)
        name = paren.group(1).strip() if paren else title
        entry_id = extract_tag(entry, 'id')
        link = LINK_PATTERN.search(entry)

        timestamp = _utc_now().isoformat()
        updated = extract_tag(entry, 'updated')
        if updated:
            try:
                timestamp = datetime.fromisoformat(updated.replace('Z', '+00:00')).isoformat()
            except ValueError:
                pass

        return build_record(
            id=f"dt_{_slug(entry_id or name)}",
            name=name,
            basin=self.basin,
            coordinates=(lon, lat),
            timestamp=timestamp,
            wind_speed=PLACEHOLDER_WIND_KNOTS,
            pressure=PLACEHOLDER_PRESSURE_MB,
            warnings=(title,),
            status="Active",
            jtwc_url=link.group(1) if link else JTWC_URL,
            source=self.name,
        )


# =============================================================================
# ATCF best track / forecast
# =============================================================================

ATCF_BASIN_NAMES = {
    'WP': 'Western Pacific',
    'AL': 'Atlantic',
    'EP': 'Eastern Pacific',
    'CP': 'Central Pacific',
    'IO': 'North Indian',
    'SH': 'Southern Hemisphere',
    'SL': 'South Atlantic',
}
RADII_THRESHOLDS = (34, 50, 64)
MIN_ATCF_FIELDS = 10
BEST_TRACK_TECHNIQUE = 'BEST'


@dataclass
class ATCFRow:
    """One parsed ATCF line"""
    basin: str
    number: str
    time: datetime
    technique: str
    tau: int
    lon: float
    lat: float
    wind: float
    pressure: float
    rad: Optional[int] = None
    radii: Optional[QuadrantRadii] = None
    direction: float = 0
    speed: float = 0
    name: str = ""

    @property
    def storm_key(self) -> Tuple[str, str]:
        return (self.basin, self.number)


def _field(fields: List[str], index: int) -> str:
    return fields[index] if index < len(fields) else ''


def _float_field(fields: List[str], index: int, default: float = 0, finite_only: bool = True) -> float:
    try:
        value = float(_field(fields, index))
    except ValueError:
        return default
    if finite_only and not math.isfinite(value):
        return default
    return value


def parse_atcf_line(line: str) -> Optional[ATCFRow]:
    """
    Parse one comma-separated ATCF line.

    Returns None for lines with fewer than 10 fields, bad timestamps,
    non-finite wind or pressure, or out-of-range positions. Other
    non-finite numbers fall back to their defaults.
    """
    fields = [part.strip() for part in line.split(',')]
    if len(fields) < MIN_ATCF_FIELDS:
        return None
    try:
        time = datetime.strptime(fields[2], '%Y%m%d%H').replace(tzinfo=timezone.utc)
        tau = int(fields[5] or 0)
        wind = float(fields[8])
    except ValueError:
        return None
    if not math.isfinite(wind) or wind < 0:
        return None
    pressure = _float_field(fields, 9, DEFAULT_PRESSURE_MB, finite_only=False)
    if not math.isfinite(pressure):
        return None

    lat = parse_fixed_format_coordinate(fields[6])
    lon = parse_fixed_format_coordinate(fields[7])
    if not is_valid_coordinate(lon, lat):
        return None

    # 0 marks missing pressure in ATCF
    pressure = pressure or DEFAULT_PRESSURE_MB

    rad = int(_float_field(fields, 11, 0)) or None
    radii = None
    if rad in RADII_THRESHOLDS and len(fields) >= 17:
        quadrants = [_float_field(fields, index) for index in range(13, 17)]
        if _field(fields, 12).upper() == 'AAA':
            quadrants = [quadrants[0]] * 4
        if any(quadrants):
            radii = QuadrantRadii(*quadrants)

    return ATCFRow(
        basin=fields[0].upper(),
        number=fields[1].zfill(2),
        time=time,
        technique=fields[4].upper(),
        tau=tau,
        lon=lon,
        lat=lat,
        wind=wind,
        pressure=pressure,
        rad=rad,
        radii=radii,
        direction=_float_field(fields, 25),
        speed=_float_field(fields, 26),
        name=_field(fields, 27).upper(),
    )


def _collect_wind_radii(rows: List[ATCFRow]) -> Optional[WindRadii]:
    by_threshold: Dict[int, QuadrantRadii] = {}
    for row in rows:
        if row.radii is not None and row.rad not in by_threshold:
            by_threshold[row.rad] = row.radii
    if not by_threshold:
        return None
    return WindRadii(
        radius34kt=by_threshold.get(34),
        radius50kt=by_threshold.get(50),
        radius64kt=by_threshold.get(64),
    )


class ATCFParser(SourceParser):
    """
    Parser for ATCF b-deck (best track) and a-deck (forecast) files.

    The best variant keeps BEST lines and reports each storm at its latest
    fix. The forecast variant keeps one technique (OFCL by default), takes
    the newest forecast cycle per storm, uses tau 0 as the current position
    and tau > 0 rows as the forecast. Rows older than max_age are ignored
    so archived storms never come back as active.
    """

    def __init__(
        self,
        variant: str = "best",
        technique: Optional[str] = None,
        max_age: timedelta = timedelta(days=ATCF_MAX_AGE_DAYS),
        now: Optional[datetime] = None,
    ):
        if variant not in ("best", "forecast"):
            raise ValueError(f"Unknown ATCF variant: {variant}")
        self.variant = variant
        self.technique = (technique or (
            BEST_TRACK_TECHNIQUE if variant == "best" else ATCF_FORECAST_TECHNIQUE
        )).upper()
        self.max_age = max_age
        self.now = now
        self.name = f"atcf_{variant}"

    def parse(self, raw: str) -> List[StormRecord]:
        now = self.now or _utc_now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        cutoff = now - self.max_age
        storms: Dict[Tuple[str, str], List[ATCFRow]] = defaultdict(list)
        # Storms keep the year of their first fix when they cross New Year
        seasons: Dict[Tuple[str, str], int] = {}

        for line in (raw or '').splitlines():
            if not line.strip():
                continue
            try:
                row = parse_atcf_line(line)
            except Exception as e:
                logger.debug(f"[{self.name}] Skipping malformed line: {e}")
                continue
            if row is None:
                continue
            seasons[row.storm_key] = min(seasons.get(row.storm_key, row.time.year), row.time.year)
            if row.technique != self.technique:
                continue
            if row.time < cutoff:
                continue
            storms[row.storm_key].append(row)

        records: List[StormRecord] = []
        for key, rows in storms.items():
            try:
                if self.variant == "best":
                    record = self._best_track_record(rows, seasons[key])
                else:
                    record = self._forecast_record(rows, seasons[key])
            except Exception as e:
                logger.debug(f"[{self.name}] Skipping storm: {e}")
                continue
            self._keep(record, records)
        return records

    def _record_from_rows(
        self,
        current: List[ATCFRow],
        season: int,
        forecast: Tuple[ForecastPoint, ...] = (),
    ) -> StormRecord:
        row = current[0]
        basin = ATCF_BASIN_NAMES.get(row.basin, row.basin)
        storm_id = f"{row.basin.lower()}{row.number}{season}"
        name = next((r.name for r in current if r.name), '') or storm_id.upper()
        category = category_from_wind_speed(row.wind)

        return build_record(
            id=storm_id,
            name=name,
            basin=basin,
            coordinates=(row.lon, row.lat),
            timestamp=row.time.isoformat(),
            wind_speed=row.wind,
            pressure=row.pressure,
            movement_speed=row.speed,
            movement_direction=row.direction % 360,
            forecast=forecast,
            wind_radii=_collect_wind_radii(current),
            warnings=(f"{intensity_label(category)} {name} in {basin}",),
            status="Active",
            jtwc_url=JTWC_URL,
            source=self.name,
        )

    def _best_track_record(self, rows: List[ATCFRow], season: int) -> StormRecord:
        latest = max(row.time for row in rows)
        return self._record_from_rows([row for row in rows if row.time == latest], season)

    def _forecast_record(self, rows: List[ATCFRow], season: int) -> Optional[StormRecord]:
        cycle = max(row.time for row in rows)
        by_tau: Dict[int, List[ATCFRow]] = defaultdict(list)
        for row in rows:
            if row.time == cycle:
                by_tau[row.tau].append(row)

        if 0 not in by_tau:
            return None

        forecast = []
        for tau in sorted(t for t in by_tau if t > 0):
            point = by_tau[tau][0]
            forecast.append(ForecastPoint(
                timestamp=(cycle + timedelta(hours=tau)).isoformat(),
                coordinates=(point.lon, point.lat),
                wind_speed=point.wind,
                category=category_from_wind_speed(point.wind),
                pressure=point.pressure,
            ))
        return self._record_from_rows(by_tau[0], season, tuple(forecast))


# =============================================================================
# NOAA alerts GeoJSON
# =============================================================================

NOAA_ALERTS_URL_FALLBACK = "https://alerts.weather.gov"


def feature_position(geometry: Optional[Dict[str, Any]]) -> Optional[Coordinates]:
    """
    Representative (lon, lat) for a GeoJSON geometry.

    Points are used as is, polygons by the vertex average of their outer
    ring (closing vertex excluded). Other geometry types return None.
    """
    if not isinstance(geometry, dict):
        return None
    geometry_type = geometry.get('type')
    coordinates = geometry.get('coordinates')
    if geometry_type == 'Point':
        ring = [coordinates]
    elif geometry_type == 'Polygon' and coordinates:
        ring = coordinates[0]
    elif geometry_type == 'MultiPolygon' and coordinates and coordinates[0]:
        ring = coordinates[0][0]
    else:
        return None

    if len(ring) > 1 and list(ring[0]) == list(ring[-1]):
        ring = ring[:-1]
    if not ring:
        return None
    lon = sum(float(vertex[0]) for vertex in ring) / len(ring)
    lat = sum(float(vertex[1]) for vertex in ring) / len(ring)
    if not is_valid_coordinate(lon, lat):
        return None
    return (lon, lat)


def extract_description_wind(description: str) -> Optional[int]:
    match = SPEED_PATTERN.search(description or '')
    if not match:
        return None
    return _to_knots(match.group(1), match.group(2))


class AlertGeoJSONParser(SourceParser):
    """Parser for NOAA alerts: tropical events become zero-forecast records"""

    name = "noaa_alerts"

    def parse(self, raw: str) -> List[StormRecord]:
        try:
            data = json.loads(raw or '')
        except (TypeError, ValueError) as e:
            logger.debug(f"[{self.name}] Invalid JSON: {e}")
            return []
        if not isinstance(data, dict) or not isinstance(data.get('features'), list):
            return []

        records: List[StormRecord] = []
        for index, feature in enumerate(data['features']):
            try:
                record = self._parse_feature(feature, index)
            except Exception as e:
                logger.debug(f"[{self.name}] Skipping malformed feature: {e}")
                continue
            self._keep(record, records)
        return records

    def _parse_feature(self, feature: Any, index: int) -> Optional[StormRecord]:
        if not isinstance(feature, dict):
            return None
        properties = feature.get('properties') or {}
        event = str(properties.get('event') or '')
        if 'tropical' not in event.lower():
            return None

        position = feature_position(feature.get('geometry'))
        if position is None:
            return None

        wind = extract_description_wind(str(properties.get('description') or '')) or 0
        alert_id = str(properties.get('id') or feature.get('id') or f"alert_{index}")
        headline = properties.get('headline')
        timestamp = (
            properties.get('sent')
            or properties.get('effective')
            or properties.get('onset')
            or _utc_now().isoformat()
        )

        return build_record(
            id=f"noaa_{_slug(alert_id.rsplit('/', 1)[-1])}",
            name=event,
            basin=basin_from_position(*position),
            coordinates=position,
            timestamp=str(timestamp),
            wind_speed=wind,
            pressure=DEFAULT_PRESSURE_MB,
            warnings=(str(headline),) if headline else (event,),
            status="Active",
            jtwc_url=str(properties.get('@id') or feature.get('id') or NOAA_ALERTS_URL_FALLBACK),
            source=self.name,
        )
