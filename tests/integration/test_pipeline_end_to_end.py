"""
End-to-End Pipeline Test

Runs the complete pipeline against the fake downloader, decoder and store:
1. Fetch every product in a two-cycle window
2. Extract every recipe layer
3. Publish dated layers
4. Refresh and publish the current aliases
5. Rerun the window and verify nothing is repeated
"""

import asyncio
import json
import logging
from datetime import datetime, timezone

from gfs.cycles import Cycle
from gfs.recipes import LAYER_RECIPES
from pipeline.context import PipelineContext
from pipeline.current import copy_current
from pipeline.scheduler import process_cycles

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

UTC = timezone.utc
START = datetime(2013, 11, 26, 6, tzinfo=UTC)
END = datetime(2013, 11, 26, 0, tzinfo=UTC)
NOW = datetime(2013, 11, 26, 10, 0, tzinfo=UTC)


def test_end_to_end(ctx, settings, downloader, decoder, store):
    """Complete pipeline run followed by an idempotent rerun"""

    logger.info("=" * 60)
    logger.info("End-to-End Pipeline Test")
    logger.info("=" * 60)

    async def first_run():
        cycles = await process_cycles(ctx, START, END)
        await copy_current(ctx, NOW)
        return cycles

    cycles = asyncio.run(first_run())

    products = len(cycles) * len(settings.forecast_hours)
    layers = products * len(LAYER_RECIPES)
    assert cycles == [Cycle(START), Cycle(END)]
    assert len(downloader.calls) == products == 4
    assert len(decoder.calls) == layers
    assert ctx.summary.failed == 0

    dated = [key for key in store.uploads if "/current/" not in key]
    current = [key for key in store.uploads if "/current/" in key]
    assert len(dated) == len(set(dated)) == layers
    assert len(current) == len(LAYER_RECIPES)

    # newest layer valid before 10Z is the 06Z cycle's f003
    for key in current:
        assert store.objects[key]["metadata"]["reference-time"] == "2013-11-26T06:00:00.000Z"
        records = json.loads(store.objects[key]["body"])
        assert records[0]["meta"]["date"] == "2013-11-26T09:00:00.000Z"

    # no temp files or leases left behind
    assert list(settings.partial_dir.iterdir()) == []
    assert list((settings.layer_home / ".partial").iterdir()) == []
    assert list(settings.lease_dir.iterdir()) == []

    logger.info("✓ first run complete")

    # Rerun: everything is already on disk and published
    rerun = PipelineContext(settings=settings, downloader=downloader, decoder=decoder, store=store)
    asyncio.run(process_cycles(rerun, START, END))

    assert len(downloader.calls) == products
    assert len(decoder.calls) == layers
    assert len(store.uploads) == layers + len(LAYER_RECIPES)
    assert rerun.summary.count("fetch", "skipped") == products
    assert rerun.summary.count("extract", "skipped") == layers
    assert rerun.summary.count("publish", "skipped") == layers

    logger.info("✓ rerun was a no-op")
