"""
Extract Stage

Builds JSON layers from downloaded GRIB2 products with grib2json.

Design Principles:
- A missing product or an empty decode is "no layer", not an error
- A layer built from the same or a newer cycle is never rebuilt
- A grib2json failure fails that layer only
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from gfs.cycles import Layer, Product
from gfs.schemas import LayerMeta, read_layer_header, read_records

from .grib2json import DecoderError
from .utils import temp_path, write_atomic

logger = logging.getLogger(__name__)


def is_layer_current(layer_path: Path, reference_time: datetime) -> bool:
    """True when the layer file exists and was built from `reference_time` or later."""
    if not layer_path.exists():
        return False
    try:
        header = read_layer_header(layer_path)
    except (OSError, ValueError) as e:
        logger.warning(f"unreadable layer, rebuilding: {layer_path} ({e})")
        return False
    return header.refTime >= reference_time


def build_layer_records(layer: Layer, decoded_path: Path) -> Optional[List[Dict[str, Any]]]:
    """Attach the meta block to each decoded record. Returns None when there are no records."""
    data = read_records(decoded_path)
    if len(data) == 0:
        return None

    meta = LayerMeta.for_layer(layer).model_dump()
    for record in data:
        record["meta"] = dict(meta)
    return data


async def extract_layer(ctx, layer: Layer) -> Optional[Layer]:
    """
    Build one layer file.

    Returns:
        The layer when its file is up to date, or None when there is no layer

    Raises:
        DecoderError: If grib2json exits with a non-zero code
    """
    settings = ctx.settings
    product_path = layer.product.path(settings.grib_home)
    layer_path = layer.path(settings.layer_home)
    reference_time = layer.reference_time()

    if not product_path.exists():
        logger.info(f"product file not found, skipping: {product_path}")
        ctx.summary.record("extract", "skipped")
        return None

    if is_layer_current(layer_path, reference_time):
        logger.info(f"newer layer already exists for: {layer_path}")
        ctx.summary.record("extract", "skipped")
        return layer

    # Products of one run can share a layer path (00Z f006 and 06Z f000)
    artifact = f"extract/{layer.relative_path()}"
    async with ctx.artifact_lock(artifact):
        return await _build_layer(ctx, layer, artifact)


async def _build_layer(ctx, layer: Layer, artifact: str) -> Optional[Layer]:
    settings = ctx.settings
    product_path = layer.product.path(settings.grib_home)
    layer_path = layer.path(settings.layer_home)
    reference_time = layer.reference_time()

    if is_layer_current(layer_path, reference_time):
        logger.info(f"newer layer already exists for: {layer_path}")
        ctx.summary.record("extract", "skipped")
        return layer

    lease = ctx.lease(artifact)
    if not lease.acquire():
        logger.info(f"layer is being built by another run, skipping: {layer_path}")
        ctx.summary.record("extract", "skipped")
        return None

    try:
        # Another run may have finished this layer before our lease was taken
        if is_layer_current(layer_path, reference_time):
            logger.info(f"newer layer already exists for: {layer_path}")
            ctx.summary.record("extract", "skipped")
            return layer

        if layer_path.exists():
            logger.info(f"replacing obsolete layer: {layer_path}")

        tmp = temp_path(settings.layer_home / ".partial", suffix=".json")
        try:
            returncode = await ctx.decoder.run(layer.recipe.filter, tmp, product_path)
            if returncode != 0:
                logger.error(f"✗ grib2json failed ({returncode}): {product_path}")
                raise DecoderError(returncode, product_path)

            logger.info(f"processing: {layer_path}")
            data = await asyncio.to_thread(build_layer_records, layer, tmp)
            if not data:
                logger.info(f"no layer data, skipping: {layer_path}")
                ctx.summary.record("extract", "skipped")
                return None

            await asyncio.to_thread(write_atomic, layer_path, json.dumps(data))
        finally:
            tmp.unlink(missing_ok=True)
    finally:
        lease.release()

    logger.info(f"✓ successfully built: {layer_path}")
    ctx.summary.record("extract", "success")
    return layer


async def extract_layers(ctx, product: Product) -> List[Optional[Layer]]:
    """
    Extract every recipe's layer from one product, through the extract throttle.

    A failing recipe yields None for that layer and leaves its siblings alone.
    """
    layers = [Layer(recipe, product) for recipe in ctx.recipes.values()]
    results = await asyncio.gather(
        *(ctx.throttles.extract.run(extract_layer, ctx, layer) for layer in layers),
        return_exceptions=True,
    )

    extracted = []
    for layer, result in zip(layers, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.error(f"✗ extract failed for {layer}: {result}")
            ctx.summary.record("extract", "failed")
            extracted.append(None)
        else:
            extracted.append(result)
    return extracted
