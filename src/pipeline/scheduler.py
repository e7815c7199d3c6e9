"""
Cycle Scheduler

Drives fetch -> extract -> publish for every product of every cycle in a
time window. All cycles are started at once; only the shared stage
throttles limit how much work is in flight.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from gfs.cycles import Cycle, Product

from .extract import extract_layers
from .fetch import fetch_product
from .publish import publish_layers

logger = logging.getLogger(__name__)


def cycle_products(ctx, cycle: Cycle) -> List[Product]:
    """One product per configured type and forecast hour."""
    return [
        Product(product_type, cycle, forecast_hour)
        for product_type in ctx.settings.product_types
        for forecast_hour in ctx.settings.forecast_hours
    ]


def cycles_in_window(start: datetime, until: datetime) -> List[Cycle]:
    """
    Cycles from the one at or after `start` back to the one containing `until`.

    Returns newest first; empty when `until` is after `start`.
    """
    stop = Cycle.containing(until)
    cycle = Cycle.at_or_after(start)
    cycles = []
    while cycle.date() >= stop.date():
        cycles.append(cycle)
        cycle = cycle.previous()
    return cycles


async def process_product(ctx, product: Product) -> List[Optional[dict]]:
    """Fetch one product, extract all of its layers, then publish them."""
    product = await ctx.throttles.fetch.run(fetch_product, ctx, product)
    layers = await extract_layers(ctx, product)
    return await publish_layers(ctx, layers)


async def process_cycle(ctx, cycle: Cycle) -> None:
    logger.info(f"Processing cycle {cycle}")
    products = cycle_products(ctx, cycle)

    results = await asyncio.gather(
        *(process_product(ctx, product) for product in products),
        return_exceptions=True,
    )

    for product, result in zip(products, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.error(f"✗ {product} failed: {result}")
            ctx.summary.record("product", "failed")

    logger.info(f"batch complete: {cycle}")


async def process_cycles(ctx, start: datetime, until: datetime) -> List[Cycle]:
    """
    Process every cycle in the window, newest first, concurrently.

    Args:
        ctx: Pipeline context
        start: Newest end of the window
        until: Oldest end of the window (at or before start)

    Returns:
        The cycles that were processed
    """
    cycles = cycles_in_window(start, until)
    if not cycles:
        logger.warning(f"No cycles between {start} and {until}")
        return cycles

    logger.info(f"Scheduling {len(cycles)} cycle(s): {cycles[0]} back to {cycles[-1]}")
    tasks = [asyncio.create_task(process_cycle(ctx, cycle)) for cycle in cycles]
    await asyncio.gather(*tasks)
    return cycles
