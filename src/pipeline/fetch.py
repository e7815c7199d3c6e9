"""
Fetch Stage

Downloads GFS GRIB2 products from the upstream server pool.

Design Principles:
- A product already on disk is never downloaded again
- Downloads land in a temp file and are moved into place atomically
- A failed download does not fail the batch: extraction finds no file and skips
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from gfs.cycles import Product

from .utils import ensure_directory, temp_path

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class DownloadResult:
    """Outcome of one HTTP transfer."""
    status_code: int
    received: int
    duration: float  # seconds

    def kbps(self) -> int:
        if self.duration <= 0:
            return 0
        return round(self.received / 1024 / self.duration)


class HttpDownloader:
    """Streaming HTTP downloader with retry on transient upstream errors."""

    def __init__(self, timeout: int = 300, max_retries: int = 3, chunk_size: int = 64 * 1024):
        """
        Args:
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
            chunk_size: Bytes per streamed chunk
        """
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.session = self._create_session(max_retries)

    def _create_session(self, max_retries: int) -> requests.Session:
        """Create requests session with retry logic."""
        session = requests.Session()

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    def download(
        self,
        url: str,
        destination: BinaryIO,
        on_progress: Optional[Callable[[int], None]] = None
    ) -> DownloadResult:
        """
        Stream `url` into `destination`.

        Only a 2xx body is written. Non-2xx responses are returned with their
        status code and nothing received.

        Raises:
            requests.RequestException: On transport failure
        """
        start = time.monotonic()
        received = 0

        with self.session.get(url, stream=True, timeout=self.timeout) as response:
            if response.status_code < 300:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        destination.write(chunk)
                        received += len(chunk)
                        if on_progress:
                            on_progress(received)

            return DownloadResult(response.status_code, received, time.monotonic() - start)


async def fetch_product(ctx, product: Product) -> Product:
    """
    Make sure a product is on local disk.

    Always resolves with the product; whether the file exists afterwards is
    what downstream stages check.
    """
    settings = ctx.settings
    local_path = product.path(settings.grib_home)

    if local_path.exists():
        logger.info(f"already exists: {local_path}")
        ctx.summary.record("fetch", "skipped")
        return product

    server = ctx.pool.acquire()
    url = product.url(server)
    tmp = temp_path(settings.partial_dir, suffix=".grib2")
    progress = {"mb": 0}

    def on_progress(received: int):
        current = received // MB
        if current > progress["mb"]:
            progress["mb"] = current
            logger.info(f"{current}M {url}")

    def transfer() -> DownloadResult:
        with open(tmp, 'wb') as f:
            return ctx.downloader.download(url, f, on_progress)

    logger.info(f"GET: {url}")
    try:
        await asyncio.sleep(settings.fetch_delay_seconds)
        result = await asyncio.to_thread(transfer)
    except requests.RequestException as e:
        ctx.pool.release(server)
        tmp.unlink(missing_ok=True)
        logger.warning(f"✗ download failed: {url}: {e}")
        ctx.summary.record("fetch", "failed")
        return product
    except BaseException:
        ctx.pool.release(server)
        tmp.unlink(missing_ok=True)
        raise

    ctx.pool.release(server)

    if result.status_code >= settings.failure_status:
        tmp.unlink(missing_ok=True)
        logger.warning(f"✗ download failed ({result.status_code}): {url}")
        ctx.summary.record("fetch", "failed")
        return product

    ensure_directory(product.dir(settings.grib_home))
    os.replace(tmp, local_path)
    logger.info(f"✓ download complete: {result.kbps()}Kps {url}")
    ctx.summary.record("fetch", "success")
    return product
