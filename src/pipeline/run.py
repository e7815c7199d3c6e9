"""
GFS Layer Update

Downloads GFS products for a window of cycles, extracts the configured
layers with grib2json, publishes them to S3, then refreshes the "current"
layer aliases.

Usage:
    gfs-update <grib_home> <layer_home> <start> [end] [forecast ...]

Dates:
    now, now-6, now+3   current time, optionally shifted by hours
    T-48                relative to the start date (end only)
    2013-11-26T00:00Z   ISO-8601
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from pprint import pformat
from typing import List, Optional

from gfs.cycles import parse_timestamp
from storage.s3 import S3LayerStore

from .config import PipelineSettings
from .context import PipelineContext
from .current import copy_current
from .fetch import HttpDownloader
from .grib2json import Grib2Json
from .scheduler import process_cycles
from .utils import ensure_directory

logger = logging.getLogger(__name__)


def interpret_date_argument(value: Optional[str], base: Optional[datetime] = None, now: Optional[datetime] = None) -> datetime:
    """
    Turn a command line date into an aware UTC datetime.

    Args:
        value: "now[±hours]", "T±hours" (relative to base) or an ISO-8601 timestamp.
               None or empty returns base.
        base: Reference date for "T" offsets and the default
        now: Current time (defaults to the wall clock)

    Raises:
        ValueError: If the value cannot be interpreted
    """
    if not value:
        if base is None:
            raise ValueError("A date is required")
        return base

    now = now or datetime.now(timezone.utc)

    try:
        if value.startswith("now"):
            offset = value[3:]
            return now + timedelta(hours=float(offset) if offset else 0)
        if value.startswith("T"):
            if base is None:
                raise ValueError(f"'{value}' needs a base date")
            return base + timedelta(hours=float(value[1:]))
        return parse_timestamp(value)
    except ValueError as e:
        raise ValueError(f"Invalid date argument '{value}': {e}") from e


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gfs-update",
        description="Download GFS products, extract layers and publish them to S3",
    )
    parser.add_argument("grib_home", help="Directory for downloaded GRIB2 files")
    parser.add_argument("layer_home", help="Directory for extracted JSON layers")
    parser.add_argument("start", help="Newest date of the window (e.g. now, 2013-11-26T00:00Z)")
    parser.add_argument("end", nargs="?", default=None, help="Oldest date of the window (default: start)")
    parser.add_argument("forecasts", nargs="*", type=int, help="Forecast hours (default: 0 3)")
    parser.add_argument("--skip-current", action="store_true", help="Do not refresh the current layers")
    return parser.parse_args(argv)


def build_context(settings: PipelineSettings) -> PipelineContext:
    return PipelineContext(
        settings=settings,
        downloader=HttpDownloader(
            timeout=settings.download_timeout,
            max_retries=settings.max_retries,
            chunk_size=settings.download_chunk_size,
        ),
        decoder=Grib2Json(settings.grib2json_command, settings.grib2json_flags),
        store=S3LayerStore(settings.s3_bucket, settings.s3_region, settings.aws_profile),
    )


async def run_pipeline(ctx: PipelineContext, start: datetime, end: datetime, skip_current: bool = False) -> None:
    await process_cycles(ctx, start, end)
    if not skip_current:
        await copy_current(ctx)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the complete layer update pipeline."""
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger.info("=" * 60)
    logger.info("Starting GFS layer update")
    logger.info("=" * 60)

    args = parse_args(argv)

    try:
        start = interpret_date_argument(args.start)
        end = interpret_date_argument(args.end, start)
        settings = PipelineSettings.from_env(
            grib_home=args.grib_home,
            layer_home=args.layer_home,
            forecast_hours=args.forecasts or None,
        )
    except ValueError as e:
        logger.error(f"✗ {e}")
        return 2

    logger.info("arguments:\n" + pformat({
        'gribHome': str(settings.grib_home),
        'layerHome': str(settings.layer_home),
        'startDate': start.isoformat(),
        'endDate': end.isoformat(),
        'forecasts': settings.forecast_hours,
    }))

    ensure_directory(settings.grib_home)
    ensure_directory(settings.layer_home)

    ctx = build_context(settings)
    try:
        asyncio.run(run_pipeline(ctx, start, end, args.skip_current))
    except Exception:
        logger.exception("✗ GFS layer update failed")
        ctx.summary.log()
        return 1

    ctx.summary.log()
    logger.info("=" * 60)
    logger.info("GFS layer update complete")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
