"""
GFS Layer Pipeline

Fetch, extract and publish stages, the cycle scheduler and the current
layer resolver.

Modules:
    config: Pipeline settings from the environment
    server_pool: Upstream host pool
    throttle: Per-stage concurrency limits
    lease: Per-artifact lock files
    fetch: Download GRIB2 products
    grib2json: Decoder invocation
    extract: Build JSON layers
    publish: Conditional S3 upload
    scheduler: Cycle window processing
    current: Current layer aliases
    run: Command line entry point
"""

from .config import PipelineSettings
from .context import PipelineContext, RunSummary
from .server_pool import ServerPool
from .throttle import StageThrottle, StageThrottles
from .lease import ArtifactLease
from .fetch import HttpDownloader, DownloadResult, fetch_product
from .grib2json import Grib2Json, DecoderError
from .extract import extract_layer, extract_layers
from .publish import publish_layer, publish_layers
from .scheduler import process_cycle, process_cycles
from .current import copy_current

__all__ = [
    'PipelineSettings',
    'PipelineContext',
    'RunSummary',
    'ServerPool',
    'StageThrottle',
    'StageThrottles',
    'ArtifactLease',
    'HttpDownloader',
    'DownloadResult',
    'fetch_product',
    'Grib2Json',
    'DecoderError',
    'extract_layer',
    'extract_layers',
    'publish_layer',
    'publish_layers',
    'process_cycle',
    'process_cycles',
    'copy_current',
]
