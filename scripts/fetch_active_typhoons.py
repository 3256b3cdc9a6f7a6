#!/usr/bin/env python3
"""
Fetch Active Typhoons Script for the Typhoon Tracker

Runs one aggregation pass over every configured source and writes the
result as a JSON snapshot, in the same shape the /api/typhoons endpoint
serves.

Usage:
    python scripts/fetch_active_typhoons.py [--basin NAME ...] [--output PATH]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from backend.api.typhoons import (
    TyphoonAggregator,
    build_snapshot,
    fetch_all_typhoons,
    filter_by_basin,
)
from backend.config import AGGREGATE_TIMEOUT
from backend.processing.units import compass_from_degrees, intensity_label

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_PATH = Path(__file__).parent.parent / "data" / "typhoons" / "active_typhoons.json"


async def collect_snapshot(basins: Optional[List[str]], timeout: float) -> Dict[str, Any]:
    """Aggregate all sources and optionally filter by basin"""
    aggregator = TyphoonAggregator(timeout=timeout)
    records = await fetch_all_typhoons(aggregator)
    if basins:
        records = filter_by_basin(records, basins)
    basin_label = ", ".join(basins) if basins else None
    return build_snapshot(records, basin_label, aggregator.source_names)


def write_snapshot(snapshot: Dict[str, Any], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(snapshot, f, indent=2)
    logger.info(f"Wrote snapshot to {output_path}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Fetch active tropical cyclones and write a JSON snapshot"
    )
    parser.add_argument(
        "--basin",
        action="append",
        default=None,
        help="Basin name to keep (exact match); repeat for several basins"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT_PATH,
        help="Path for the snapshot JSON"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=AGGREGATE_TIMEOUT,
        help="Global aggregation timeout in seconds"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.info("=" * 60)
    logger.info("Typhoon Tracker Snapshot")
    logger.info("=" * 60)
    logger.info(f"Basins: {', '.join(args.basin) if args.basin else 'all'}")

    try:
        snapshot = asyncio.run(collect_snapshot(args.basin, args.timeout))
    except Exception as e:
        logger.error(f"Aggregation failed: {e}")
        return 1

    write_snapshot(snapshot, args.output)

    # Summary
    typhoons = snapshot["typhoons"]
    if not typhoons:
        logger.info("No active tropical cyclones at this time")
    for typhoon in typhoons:
        logger.info(
            f"  - {typhoon['name']} ({intensity_label(typhoon['category'])}) "
            f"{typhoon['windSpeed']} kt, moving {compass_from_degrees(typhoon['movementDirection'])} "
            f"[{typhoon['basin']}, {typhoon['source']}]"
        )
    logger.info("\nDone!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
