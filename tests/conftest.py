"""
Shared fixtures: fake downloader, decoder and store, and a pipeline context
rooted in a temp directory.
"""

import asyncio
import json
import re
import sys
import threading
import time
from pathlib import Path

import pytest

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from gfs.recipes import LAYER_RECIPES
from pipeline.config import PipelineSettings
from pipeline.context import PipelineContext
from pipeline.fetch import DownloadResult

PRODUCT_PATTERN = re.compile(r"gfs\.(\d{8})/(\d{2})/atmos/gfs\.t\d{2}z\.pgrb2\.\w+\.f(\d{3})")

SERVERS = ["http://server-a/gfs/prod", "http://server-b/gfs/prod"]


class FakeDownloader:
    """Writes a small body for every URL; status and failures configurable per URL."""

    def __init__(self, status=200, body=b"GRIB" * 512, delay=0.0):
        self.status = status
        self.body = body
        self.delay = delay
        self.calls = []
        self.statuses = {}
        self.errors = {}
        self.in_flight = 0
        self.peak = 0
        self._lock = threading.Lock()

    def download(self, url, destination, on_progress=None):
        with self._lock:
            self.calls.append(url)
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if url in self.errors:
                raise self.errors[url]
            status = self.statuses.get(url, self.status)
            if status >= 300:
                return DownloadResult(status, 0, 0.01)
            destination.write(self.body)
            if on_progress:
                on_progress(len(self.body))
            return DownloadResult(status, len(self.body), 0.01)
        finally:
            with self._lock:
                self.in_flight -= 1


class FakeDecoder:
    """
    Stands in for grib2json: writes one record whose header is derived from
    the product file name.
    """

    def __init__(self, returncode=0, records=1, delay=0.0, ref_time=None):
        self.returncode = returncode
        self.records = records
        self.delay = delay
        self.ref_time = ref_time
        self.calls = []
        self.failing_filters = set()
        self.in_flight = 0
        self.peak = 0

    async def run(self, recipe_filter, output_path, input_path):
        self.calls.append((recipe_filter, str(input_path)))
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

        if recipe_filter in self.failing_filters or self.returncode != 0:
            return self.returncode or 1

        match = PRODUCT_PATTERN.search(str(input_path))
        date, hour, forecast = match.groups()
        ref_time = self.ref_time or f"{date[:4]}-{date[4:6]}-{date[6:]}T{hour}:00:00.000Z"
        records = [
            {
                "header": {"refTime": ref_time, "forecastTime": int(forecast), "filter": recipe_filter},
                "data": [1.0, 2.0, 3.0],
            }
            for _ in range(self.records)
        ]
        Path(output_path).write_text(json.dumps(records))
        return 0


class FakeStore:
    """In-memory object store with the S3LayerStore upload contract."""

    def __init__(self, delay=0.0):
        self.objects = {}
        self.uploads = []
        self.delay = delay
        self.failing_keys = set()
        self.in_flight = 0
        self.peak = 0
        self._lock = threading.Lock()

    def upload_file(self, file_path, key, metadata, should_upload, cache_control):
        with self._lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if key in self.failing_keys:
                raise RuntimeError(f"upload refused: {key}")
            existing = self.objects.get(key)
            if not should_upload(existing["metadata"] if existing else {}):
                return {'key': key, 'uploaded': False, 'reason': 'remote is up to date'}
            with self._lock:
                self.objects[key] = {
                    "metadata": dict(metadata),
                    "cache_control": cache_control,
                    "body": Path(file_path).read_text(),
                }
                self.uploads.append(key)
            return {'key': key, 'uploaded': True, 'reason': 'new' if existing is None else 'replaced'}
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def settings(tmp_path):
    return PipelineSettings(
        grib_home=tmp_path / "grib",
        layer_home=tmp_path / "layers",
        servers=list(SERVERS),
        forecast_hours=[0, 3],
        recipes=dict(LAYER_RECIPES),
        fetch_delay_seconds=0,
        s3_layer_prefix="data/weather",
    )


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def decoder():
    return FakeDecoder()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def ctx(settings, downloader, decoder, store):
    return PipelineContext(settings=settings, downloader=downloader, decoder=decoder, store=store)


def write_layer(path, ref_time, forecast_time=0):
    """Write a minimal layer file with the given header."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps([
        {"header": {"refTime": ref_time, "forecastTime": forecast_time}, "data": [0.0]}
    ]))
