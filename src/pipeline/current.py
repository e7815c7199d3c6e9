"""
Current Layer Resolver

Finds the newest layer set that is valid now, copies it to the stable
"current" aliases and publishes those aliases.

The set of current layers is determined by the current time. The naive
guess (latest product valid before now) is often not on disk yet, so the
search walks backward until a layer actually exists, then trusts that
layer's own header over the guess.
"""

import asyncio
import logging
import os
import shutil
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from gfs.cycles import Cycle, Layer, Product, to_utc
from gfs.recipes import reference_recipe
from gfs.schemas import read_layer_header

from .publish import publish_layers
from .utils import ensure_directory, temp_path

logger = logging.getLogger(__name__)


def find_most_recent_layer(ctx, now: datetime) -> Optional[Layer]:
    """
    Newest reference-recipe layer on disk whose product is valid at or before `now`.

    Returns None when nothing newer than the configured maximum age exists.
    """
    settings = ctx.settings
    oldest = now - timedelta(hours=settings.current_max_age_hours)
    recipe = reference_recipe(ctx.recipes)

    # Start from the next cycle in the future and search backwards.
    layer = Layer(recipe, Product(settings.product_types[0], Cycle.containing(now).next(), 0))
    while layer.product.date() > now:
        layer = layer.previous()

    while not layer.path(settings.layer_home).exists():
        layer = layer.previous()
        if layer.product.date() < oldest:
            return None

    return layer


def copy_to_alias(ctx, source: Layer, alias: Layer) -> Optional[Layer]:
    """Replace the alias file with a copy of the dated layer."""
    layer_home = ctx.settings.layer_home
    source_path = source.path(layer_home)
    alias_path = alias.path(layer_home)

    if not source_path.exists():
        logger.warning(f"Layer missing for current set, skipping: {source_path}")
        return None

    ensure_directory(alias.dir(layer_home))
    tmp = temp_path(alias.dir(layer_home), suffix=".tmp")
    try:
        shutil.copyfile(source_path, tmp)
        os.replace(tmp, alias_path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise

    logger.info(f"current: {alias_path} -> {source_path}")
    return alias


async def copy_current(ctx, now: Optional[datetime] = None) -> Optional[List[Optional[dict]]]:
    """
    Publish the best layers available right now under the current aliases.

    Args:
        ctx: Pipeline context
        now: Wall-clock time to resolve against (defaults to the current UTC time)

    Returns:
        Publish results per recipe, or None when no recent layer exists
    """
    now = to_utc(now) if now else datetime.now(timezone.utc)
    settings = ctx.settings

    found = await asyncio.to_thread(find_most_recent_layer, ctx, now)
    if found is None:
        logger.info("No recent layers found.")
        return None

    # The layer we found belongs to a cycle/product. Crack it open to find out which one.
    header = await asyncio.to_thread(read_layer_header, found.path(settings.layer_home))
    product = Product(found.product.type, Cycle.containing(header.refTime), header.forecastTime)
    logger.info(f"Current layers: {product} (valid {product.date():%Y-%m-%d %H:%M}Z)")

    aliases = []
    for recipe in ctx.recipes.values():
        source = Layer(recipe, product, False)
        alias = Layer(recipe, product, True)
        aliases.append(await asyncio.to_thread(copy_to_alias, ctx, source, alias))

    return await publish_layers(ctx, aliases)
