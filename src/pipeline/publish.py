"""
Publish Stage

Uploads built layers to the remote store without overwriting layers that
were published from the same or a newer cycle.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from gfs.cycles import Layer, cache_control_for, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

REFERENCE_TIME_KEY = "reference-time"
PUBLISHED_TIME_KEY = "published-time"


def should_replace(layer: Layer, existing_metadata: Dict[str, str]) -> bool:
    """
    Decide whether `layer` may overwrite the remote object.

    True when the remote object has no reference time, its reference time is
    older than the layer's, or the layer is a current alias.
    """
    if layer.is_current:
        return True
    ref_time = (existing_metadata or {}).get(REFERENCE_TIME_KEY)
    if not ref_time:
        return True
    try:
        return parse_timestamp(ref_time) < layer.reference_time()
    except ValueError:
        logger.warning(f"unparseable remote {REFERENCE_TIME_KEY} '{ref_time}', replacing")
        return True


def layer_metadata(layer: Layer) -> Dict[str, str]:
    metadata = {REFERENCE_TIME_KEY: format_timestamp(layer.reference_time())}
    if layer.is_current:
        metadata[PUBLISHED_TIME_KEY] = format_timestamp(datetime.now(timezone.utc))
    return metadata


async def publish_layer(ctx, layer: Optional[Layer]) -> Optional[dict]:
    """
    Publish one layer.

    Returns:
        The store's upload result, or None when there is nothing to publish
    """
    if layer is None:
        return None  # no layer, so nothing to do

    settings = ctx.settings
    layer_path = layer.path(settings.layer_home)
    if not layer_path.exists():
        logger.info(f"Layer file not found, skipping: {layer_path}")
        ctx.summary.record("publish", "skipped")
        return None

    key = layer.key(settings.s3_layer_prefix)
    artifact = f"publish/{key}"

    # Same-run uploads of one key take turns; the remote reference time decides
    async with ctx.artifact_lock(artifact):
        lease = ctx.lease(artifact)
        if not lease.acquire():
            logger.info(f"{key} is being published by another run, skipping")
            ctx.summary.record("publish", "skipped")
            return None

        try:
            result = await asyncio.to_thread(
                ctx.store.upload_file,
                layer_path,
                key,
                layer_metadata(layer),
                lambda existing: should_replace(layer, existing),
                cache_control_for(layer),
            )
        finally:
            lease.release()

    logger.info(f"{key}: {result}")
    ctx.summary.record("publish", "success" if result.get('uploaded') else "skipped")
    return result


async def publish_layers(ctx, layers: Iterable[Optional[Layer]]) -> List[Optional[dict]]:
    """Publish layers through the publish throttle; a failed upload affects only its layer."""
    layers = list(layers)
    results = await asyncio.gather(
        *(ctx.throttles.publish.run(publish_layer, ctx, layer) for layer in layers),
        return_exceptions=True,
    )

    published = []
    for layer, result in zip(layers, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.error(f"✗ publish failed for {layer}: {result}")
            ctx.summary.record("publish", "failed")
            published.append(None)
        else:
            published.append(result)
    return published
