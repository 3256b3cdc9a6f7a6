"""
Typhoon Data Sources

Each source pairs one provider endpoint with the parser for its format.
Fetching never raises: transport errors, bad statuses, timeouts and parser
bugs are logged and the source simply contributes no records.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

import aiohttp

from ..config import (
    ATCF_BASIN,
    ATCF_BEST_TRACK_URL,
    ATCF_FORECAST_TECHNIQUE,
    ATCF_FORECAST_URL,
    ATCF_MAX_STORM_NUMBER,
    ATCF_TIMEOUT,
    DIGITAL_TYPHOON_URL,
    NHC_ATLANTIC_URL,
    NHC_EAST_PACIFIC_URL,
    NOAA_ALERTS_URL,
    SOURCE_TIMEOUT,
    VERSION,
)
from ..processing.parsers import (
    ATCFParser,
    AlertGeoJSONParser,
    DigitalTyphoonParser,
    NHCRSSParser,
    SourceParser,
)
from ..processing.records import StormRecord

logger = logging.getLogger(__name__)

REQUEST_HEADERS = {
    "User-Agent": f"typhoon-tracker/{VERSION}",
    # Upstream feeds refresh every few minutes
    "Cache-Control": "max-age=300",
}


class TyphoonSource:
    """A single provider feed"""

    def __init__(self, name: str, url: str, parser: SourceParser, timeout: float = SOURCE_TIMEOUT):
        self.name = name
        self.url = url
        self.parser = parser
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"

    async def fetch(self, session: aiohttp.ClientSession) -> List[StormRecord]:
        """Fetch and parse this source, returning [] on any failure"""
        try:
            records = await asyncio.wait_for(self._fetch_records(session), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[{self.name}] Timed out after {self.timeout}s")
            return []
        except Exception as e:
            logger.error(f"[{self.name}] Fetch error: {e}")
            return []
        logger.info(f"[{self.name}] {len(records)} storm(s)")
        return records

    async def _fetch_records(self, session: aiohttp.ClientSession) -> List[StormRecord]:
        text = await self._fetch_text(session, self.url)
        if text is None:
            return []
        return self.parser.parse(text)

    async def _fetch_text(self, session: aiohttp.ClientSession, url: str) -> Optional[str]:
        async with session.get(
            url,
            headers=REQUEST_HEADERS,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            if response.status == 200:
                return await response.text()
            if response.status == 404:
                logger.debug(f"[{self.name}] Not found: {url}")
            else:
                logger.warning(f"[{self.name}] HTTP {response.status} from {url}")
            return None


class ATCFArchiveSource(TyphoonSource):
    """
    ATCF deck archive addressed by basin, storm number and year.

    The archive has no index of active storms, so storm numbers
    1..max_storm_number are probed concurrently, each under its own timeout.
    """

    def __init__(
        self,
        name: str,
        url_template: str,
        parser: SourceParser,
        basin: str = ATCF_BASIN,
        max_storm_number: int = ATCF_MAX_STORM_NUMBER,
        timeout: float = ATCF_TIMEOUT,
        year: Optional[int] = None,
    ):
        super().__init__(name, url_template, parser, timeout)
        self.basin = basin.lower()
        self.max_storm_number = max_storm_number
        self.year = year

    def storm_urls(self) -> List[str]:
        year = self.year or datetime.now(timezone.utc).year
        return [
            self.url.format(basin=self.basin, number=number, year=year)
            for number in range(1, self.max_storm_number + 1)
        ]

    async def fetch(self, session: aiohttp.ClientSession) -> List[StormRecord]:
        results = await asyncio.gather(
            *(self._fetch_storm(session, url) for url in self.storm_urls())
        )
        records = [record for storm_records in results for record in storm_records]
        logger.info(f"[{self.name}] {len(records)} storm(s)")
        return records

    async def _fetch_storm(self, session: aiohttp.ClientSession, url: str) -> List[StormRecord]:
        try:
            text = await asyncio.wait_for(self._fetch_text(session, url), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.debug(f"[{self.name}] Timed out: {url}")
            return []
        except Exception as e:
            logger.debug(f"[{self.name}] Fetch error for {url}: {e}")
            return []
        if text is None:
            return []
        try:
            return self.parser.parse(text)
        except Exception as e:
            logger.error(f"[{self.name}] Parser error for {url}: {e}")
            return []


def default_sources() -> List[TyphoonSource]:
    """
    Provider list in priority order.

    Western Pacific sources come first since the dashboard is centred on
    the Philippines; NHC and NOAA cover the other basins.
    """
    return [
        ATCFArchiveSource("atcf_best_track", ATCF_BEST_TRACK_URL, ATCFParser("best")),
        ATCFArchiveSource(
            "atcf_forecast",
            ATCF_FORECAST_URL,
            ATCFParser("forecast", technique=ATCF_FORECAST_TECHNIQUE),
        ),
        TyphoonSource("digital_typhoon", DIGITAL_TYPHOON_URL, DigitalTyphoonParser()),
        TyphoonSource("nhc_atlantic", NHC_ATLANTIC_URL, NHCRSSParser("Atlantic")),
        TyphoonSource("nhc_east_pacific", NHC_EAST_PACIFIC_URL, NHCRSSParser("Eastern Pacific")),
        TyphoonSource("noaa_alerts", NOAA_ALERTS_URL, AlertGeoJSONParser()),
    ]
