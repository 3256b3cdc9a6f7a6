from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple, Union

import pytest

from backend.api.sources import TyphoonSource
from backend.processing.records import ForecastPoint, StormRecord, build_record


NHC_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:nhc="https://www.nhc.noaa.gov">
<channel>
<title>National Hurricane Center (Atlantic)</title>
<item>
<title>Summary for Hurricane Milton (AT4/AL142024)</title>
<pubDate>Wed, 09 Oct 2024 21:00:00 GMT</pubDate>
<nhc:Cyclone>
<nhc:center>27.3, -82.9</nhc:center>
<nhc:type>Hurricane</nhc:type>
<nhc:name>Milton</nhc:name>
<nhc:wallet>AT4</nhc:wallet>
<nhc:atcf>AL142024</nhc:atcf>
<nhc:datetime>5:00 PM EDT Wed Oct 09</nhc:datetime>
<nhc:movement>NE at 16 mph</nhc:movement>
<nhc:pressure>947 mb</nhc:pressure>
<nhc:wind>120 mph</nhc:wind>
</nhc:Cyclone>
</item>
<item>
<title>Tropical Weather Outlook</title>
<description>No tropical cyclones at this time.</description>
</item>
</channel>
</rss>
"""

DIGITAL_TYPHOON_ATOM = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:geo="http://www.w3.org/2003/01/geo/wgs84_pos#">
<title>Digital Typhoon</title>
<entry>
<title>Typhoon 202415 (YINXING)</title>
<id>tag:digital-typhoon,2024:202415</id>
<updated>2024-11-07T06:00:00Z</updated>
<link href="http://agora.ex.nii.ac.jp/digital-typhoon/summary/wnp/s/202415.html.en"/>
<geo:lat>18.9</geo:lat>
<geo:long>120.1</geo:long>
</entry>
<entry>
<title>Site maintenance notice</title>
<geo:lat>35.0</geo:lat>
<geo:long>139.0</geo:long>
</entry>
<entry>
<title>Typhoon 202416 (TORAJI)</title>
<updated>2024-11-07T06:00:00Z</updated>
</entry>
</feed>
"""

NOAA_ALERTS = {
    "type": "FeatureCollection",
    "features": [
        {
            "id": "https://api.weather.gov/alerts/urn:oid:2.49.0.1.840.0.tsw1",
            "type": "Feature",
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-80.0, 25.0], [-78.0, 25.0], [-78.0, 27.0], [-80.0, 27.0], [-80.0, 25.0]]],
            },
            "properties": {
                "@id": "https://api.weather.gov/alerts/urn:oid:2.49.0.1.840.0.tsw1",
                "id": "urn:oid:2.49.0.1.840.0.tsw1",
                "event": "Tropical Storm Warning",
                "headline": "Tropical Storm Warning issued for coastal Broward",
                "description": "Maximum sustained winds near 60 mph with higher gusts.",
                "sent": "2024-10-09T11:00:00-04:00",
            },
        },
        {
            "id": "https://api.weather.gov/alerts/flood1",
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [-90.0, 30.0]},
            "properties": {"event": "Flood Warning", "description": "Flooding 2 ft"},
        },
        {
            "id": "https://api.weather.gov/alerts/tsa1",
            "type": "Feature",
            "geometry": None,
            "properties": {"event": "Tropical Storm Watch", "description": "Winds 45 kt"},
        },
        {
            "id": "https://api.weather.gov/alerts/guam1",
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [144.8, 13.5]},
            "properties": {
                "id": "guam1",
                "event": "Tropical Storm Warning",
                "description": "Sustained winds of 45 kt expected.",
                "sent": "2024-10-09T12:00:00+10:00",
            },
        },
    ],
}


def atcf_line(
    dtg: str,
    technique: str = "BEST",
    tau: int = 0,
    lat: str = "125N",
    lon: str = "1400E",
    wind: int = 65,
    pressure: int = 985,
    rad: int = 34,
    radii: Tuple[int, int, int, int] = (0, 0, 0, 0),
    direction: int = 0,
    speed: int = 0,
    name: str = "",
    basin: str = "WP",
    number: str = "01",
) -> str:
    """Build a full 28-field ATCF line"""
    fields = [
        basin, number, dtg, "03", technique, str(tau), lat, lon, str(wind), str(pressure),
        "TY", str(rad), "NEQ", *(str(r) for r in radii),
        "1004", "180", "20", "80", "15", "W", "0", "", str(direction), str(speed), name,
    ]
    return ", ".join(fields)


def make_record(
    storm_id: str = "wp012024",
    basin: str = "Western Pacific",
    wind: float = 50,
    coordinates: Tuple[float, float] = (125.0, 15.0),
    forecast: Tuple[ForecastPoint, ...] = (),
    name: str = "TEST",
) -> StormRecord:
    return build_record(
        id=storm_id,
        name=name,
        basin=basin,
        coordinates=coordinates,
        timestamp="2024-09-01T00:00:00+00:00",
        wind_speed=wind,
        forecast=forecast,
        source="test",
    )


def make_forecast(*coordinates: Tuple[float, float]) -> Tuple[ForecastPoint, ...]:
    return tuple(
        ForecastPoint(
            timestamp=f"2024-09-{2 + index:02d}T00:00:00+00:00",
            coordinates=coords,
            wind_speed=65,
            category="Cat1",
            pressure=980,
        )
        for index, coords in enumerate(coordinates)
    )


class FakeResponse:
    def __init__(self, status: int = 200, body: str = "", delay: float = 0.0) -> None:
        self.status = status
        self._body = body
        self._delay = delay

    async def text(self) -> str:
        return self._body

    async def __aenter__(self) -> "FakeResponse":
        if self._delay:
            await asyncio.sleep(self._delay)
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


Route = Union[Tuple[int, str], Exception]


class FakeSession:
    """Stands in for aiohttp.ClientSession; unknown URLs answer 404"""

    def __init__(self, routes: Optional[Dict[str, Route]] = None, delay: float = 0.0) -> None:
        self.routes = routes or {}
        self.delay = delay
        self.requested: List[str] = []

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.requested.append(url)
        route = self.routes.get(url, (404, ""))
        if isinstance(route, Exception):
            raise route
        status, body = route
        return FakeResponse(status, body, self.delay)

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


class StubSource(TyphoonSource):
    """Source returning canned records after an optional delay"""

    def __init__(
        self,
        name: str,
        records: Optional[List[StormRecord]] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ) -> None:
        super().__init__(name, f"stub://{name}", parser=None)
        self.records = records or []
        self.delay = delay
        self.error = error

    async def fetch(self, session) -> List[StormRecord]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.records)


@pytest.fixture
def nhc_rss() -> str:
    return NHC_RSS


@pytest.fixture
def digital_typhoon_atom() -> str:
    return DIGITAL_TYPHOON_ATOM


@pytest.fixture
def noaa_alerts() -> dict:
    return NOAA_ALERTS
