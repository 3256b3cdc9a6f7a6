"""
Active Typhoon Aggregation Module
Fans out to every typhoon source and merges the results

Sources run concurrently inside one HTTP session. Each source is bounded by
its own timeout and the whole pass by a global timeout; sources that miss
the deadline are cancelled and contribute nothing. Results keep source
priority order and are never padded with placeholder storms: no data is an
empty list.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

import aiohttp

from ..config import AGGREGATE_TIMEOUT
from ..processing.records import StormRecord, is_valid_record
from .sources import TyphoonSource, default_sources

logger = logging.getLogger(__name__)

# Default dashboard view: storms that can affect the Philippines region
WESTERN_PACIFIC_VIEW = frozenset({"Western Pacific", "Eastern Pacific"})

SOURCE_DESCRIPTIONS = {
    "atcf_best_track": "JTWC ATCF Best Track (Primary - Official)",
    "atcf_forecast": "ATCF Official Forecasts",
    "digital_typhoon": "Digital Typhoon (Japan) - Atom Feed",
    "nhc_atlantic": "NOAA National Hurricane Center - Atlantic",
    "nhc_east_pacific": "NOAA National Hurricane Center - Eastern Pacific",
    "noaa_alerts": "NOAA Weather Alerts API",
}


class TyphoonAggregator:
    """Runs all sources for one request and concatenates their records"""

    def __init__(
        self,
        sources: Optional[List[TyphoonSource]] = None,
        timeout: float = AGGREGATE_TIMEOUT,
        session_factory: Optional[Callable[[], Any]] = None,
    ):
        self.sources = default_sources() if sources is None else list(sources)
        self.timeout = timeout
        self._session_factory = session_factory or aiohttp.ClientSession

    @property
    def source_names(self) -> List[str]:
        return [source.name for source in self.sources]

    async def fetch_all(self) -> List[StormRecord]:
        """
        Fetch every source concurrently.

        Returns:
            Valid records in source priority order, with colliding ids
            suffixed by source name. Empty when no source has data.
        """
        if not self.sources:
            return []

        async with self._session_factory() as session:
            tasks = [asyncio.ensure_future(source.fetch(session)) for source in self.sources]
            done, pending = await asyncio.wait(tasks, timeout=self.timeout)
            for task in pending:
                task.cancel()
            if pending:
                # Let cancelled fetches unwind before the session closes
                await asyncio.gather(*pending, return_exceptions=True)

        records: List[StormRecord] = []
        seen_ids = set()
        for source, task in zip(self.sources, tasks):
            if task not in done:
                logger.warning(f"[{source.name}] Exceeded aggregate timeout of {self.timeout}s")
                continue
            if task.cancelled():
                continue
            if task.exception() is not None:
                logger.error(f"[{source.name}] Unexpected error: {task.exception()}")
                continue

            for record in task.result():
                if not is_valid_record(record):
                    logger.debug(f"[{source.name}] Dropping invalid record {record.id}")
                    continue
                records.append(self._unique(record, source.name, seen_ids))

        logger.info(f"Aggregated {len(records)} typhoon(s) from {len(self.sources)} source(s)")
        return records

    @staticmethod
    def _unique(record: StormRecord, source_name: str, seen_ids: set) -> StormRecord:
        """Suffix the id when another source already used it; no merging"""
        storm_id = record.id
        if storm_id in seen_ids:
            storm_id = f"{record.id}-{source_name}"
            counter = 2
            while storm_id in seen_ids:
                storm_id = f"{record.id}-{source_name}-{counter}"
                counter += 1
            record = replace(record, id=storm_id)
        seen_ids.add(storm_id)
        return record


def filter_by_basin(records: Iterable[StormRecord], basin_names: Iterable[str]) -> List[StormRecord]:
    """Keep records whose basin exactly matches one of basin_names"""
    if isinstance(basin_names, str):
        basin_names = [basin_names]
    names = set(basin_names)
    return [record for record in records if record.basin in names]


def find_typhoon(records: Iterable[StormRecord], typhoon_id: str) -> Optional[StormRecord]:
    for record in records:
        if record.id == typhoon_id:
            return record
    return None


# Global instance
typhoon_aggregator = TyphoonAggregator()


async def fetch_all_typhoons(aggregator: Optional[TyphoonAggregator] = None) -> List[StormRecord]:
    """Full aggregation across all configured sources"""
    return await (aggregator or typhoon_aggregator).fetch_all()


async def fetch_typhoons_for_basin(
    basin_names: Iterable[str],
    aggregator: Optional[TyphoonAggregator] = None,
) -> List[StormRecord]:
    """Aggregation followed by an exact-match basin filter"""
    records = await fetch_all_typhoons(aggregator)
    return filter_by_basin(records, basin_names)


async def fetch_western_pacific_typhoons(
    aggregator: Optional[TyphoonAggregator] = None,
) -> List[StormRecord]:
    return await fetch_typhoons_for_basin(WESTERN_PACIFIC_VIEW, aggregator)


def build_snapshot(
    records: List[StormRecord],
    basin: Optional[str],
    source_names: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Serialize records with the metadata block served to the dashboard"""
    if source_names is None:
        source_names = typhoon_aggregator.source_names
    return {
        "typhoons": [record.to_dict() for record in records],
        "metadata": {
            "source": "Active Tropical Cyclones Only",
            "basin": basin,
            "generated": datetime.now(timezone.utc).isoformat(),
            "count": len(records),
            "updateFrequency": "5 minutes (real-time)",
            "mode": "live",
            "dataSources": [SOURCE_DESCRIPTIONS.get(name, name) for name in source_names],
            "note": (
                "No active tropical cyclones at this time"
                if not records
                else "Showing active tropical cyclones only"
            ),
        },
    }
