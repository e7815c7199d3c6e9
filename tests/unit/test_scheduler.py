"""
Unit Tests for the Cycle Scheduler

Tests verify:
1. Window enumeration across the cycle grid
2. A single-cycle run touches each product and layer exactly once
3. Cycles run concurrently under the shared throttles
4. A failing product does not stop its siblings
"""

import asyncio
from datetime import datetime, timezone

from gfs.cycles import Cycle, Product
from gfs.recipes import LAYER_RECIPES
from pipeline.context import PipelineContext
from pipeline.scheduler import cycle_products, cycles_in_window, process_cycle, process_cycles


UTC = timezone.utc


def at(day, hour=0, minute=0):
    return datetime(2013, 11, day, hour, minute, tzinfo=UTC)


# Test Cases: Window enumeration

def test_single_cycle_window():
    cycles = cycles_in_window(at(26), at(26))
    assert [c.date() for c in cycles] == [at(26)]


def test_window_walks_backward_newest_first():
    cycles = cycles_in_window(at(26, 12), at(25, 18))
    assert [c.date() for c in cycles] == [at(26, 12), at(26, 6), at(26, 0), at(25, 18)]


def test_window_start_rounds_up_and_until_rounds_down():
    cycles = cycles_in_window(at(26, 7), at(25, 23))
    assert [c.date() for c in cycles] == [at(26, 12), at(26, 6), at(26, 0), at(25, 18)]


def test_empty_window_when_until_after_start():
    assert cycles_in_window(at(25), at(26)) == []


def test_cycle_products(ctx):
    ctx.settings.product_types = ["1.0", "0.5"]
    cycle = Cycle(at(26))
    products = cycle_products(ctx, cycle)
    assert products == [
        Product("1.0", cycle, 0), Product("1.0", cycle, 3),
        Product("0.5", cycle, 0), Product("0.5", cycle, 3),
    ]


# Test Cases: Processing

def test_single_cycle_scenario(ctx, downloader, decoder, store):
    ctx.settings.forecast_hours = [0]

    cycles = asyncio.run(process_cycles(ctx, at(26), at(26)))

    assert cycles == [Cycle(at(26))]
    assert len(downloader.calls) == 1
    assert downloader.calls[0].endswith("gfs.20131126/00/atmos/gfs.t00z.pgrb2.1p00.f000")
    assert len(decoder.calls) == len(LAYER_RECIPES)
    assert len(set(decoder.calls)) == len(LAYER_RECIPES)
    assert len(store.uploads) == len(LAYER_RECIPES)
    assert len(set(store.uploads)) == len(LAYER_RECIPES)
    assert all(key.startswith("data/weather/2013/11/26/0000-") for key in store.uploads)


def test_rerun_is_idempotent(ctx, settings, downloader, decoder, store):
    settings.forecast_hours = [0]
    asyncio.run(process_cycles(ctx, at(26), at(26)))

    # a second run gets its own context, like a second process would
    rerun = PipelineContext(settings=settings, downloader=downloader, decoder=decoder, store=store)
    asyncio.run(process_cycles(rerun, at(26), at(26)))

    assert len(downloader.calls) == 1
    assert len(decoder.calls) == len(LAYER_RECIPES)
    assert len(store.uploads) == len(LAYER_RECIPES)
    assert rerun.summary.count("fetch", "skipped") == 1
    assert rerun.summary.count("extract", "skipped") == len(LAYER_RECIPES)
    assert rerun.summary.count("publish", "skipped") == len(LAYER_RECIPES)


def test_cycles_are_not_serialized(ctx, downloader):
    downloader.delay = 0.05
    ctx.settings.forecast_hours = [0]

    asyncio.run(process_cycles(ctx, at(26, 12), at(26, 0)))

    assert len(downloader.calls) == 3
    # fetches from different cycles overlapped, bounded by the pool size
    assert downloader.peak == ctx.pool.size
    assert ctx.throttles.fetch.peak == ctx.pool.size


def test_failed_fetch_does_not_stop_siblings(ctx, downloader, decoder, store):
    cycle = Cycle(at(26))
    failing = Product("1.0", cycle, 3)
    for server in ctx.settings.servers:
        downloader.statuses[failing.url(server)] = 503

    asyncio.run(process_cycle(ctx, cycle))

    assert ctx.summary.count("fetch", "failed") == 1
    assert ctx.summary.count("fetch", "success") == 1
    assert all("f000" in path for _, path in decoder.calls)
    assert len(store.uploads) == len(LAYER_RECIPES)


def test_decoder_failure_does_not_stop_other_cycles(ctx, decoder, store):
    decoder.failing_filters.add(LAYER_RECIPES["wi10"].filter)
    ctx.settings.forecast_hours = [0]

    asyncio.run(process_cycles(ctx, at(26, 6), at(26, 0)))

    assert ctx.summary.count("extract", "failed") == 2
    assert len(store.uploads) == 2 * (len(LAYER_RECIPES) - 1)


def test_product_level_error_is_not_counted_as_fetch(ctx, monkeypatch):
    async def broken_extract(ctx, product):
        raise RuntimeError("extract setup failed")

    monkeypatch.setattr("pipeline.scheduler.extract_layers", broken_extract)
    ctx.settings.forecast_hours = [0]

    asyncio.run(process_cycle(ctx, Cycle(at(26))))

    assert ctx.summary.count("product", "failed") == 1
    assert ctx.summary.count("fetch", "failed") == 0
    assert ctx.summary.count("fetch", "success") == 1
