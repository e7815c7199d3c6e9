"""
GFS Cycle, Product and Layer Identifiers

Encodes the identity of a model run (cycle), a raw GRIB2 file (product) and a
derived JSON layer into deterministic paths, URLs and S3 keys.

Design Principles:
- Paths are pure functions of identity (no hidden state)
- All timestamps are timezone-aware UTC
- Navigation (next/previous) returns new immutable values
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Union

from .recipes import Recipe


CYCLE_PERIOD_HOURS = 6
PRODUCT_STEP_HOURS = 3

# Upstream hosts serving the GFS production directory
SERVERS = {
    "NOMADS": "https://nomads.ncep.noaa.gov/pub/data/nccf/com/gfs/prod",
    "NCEP": "https://ftpprd.ncep.noaa.gov/data/nccf/com/gfs/prod",
}

PRODUCT_TYPES = ["1.0"]

RESOLUTIONS = {
    "1.0": "1p00",
    "0.5": "0p50",
    "0.25": "0p25",
}

CURRENT_CACHE_CONTROL = "no-cache, max-age=0"
DATED_CACHE_CONTROL = "public, max-age=31536000, immutable"


def to_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision, e.g. 2013-11-26T00:00:00.000Z"""
    value = to_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing 'Z', explicit offsets, and naive values (taken as UTC).

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if isinstance(value, datetime):
        return to_utc(value)
    text = str(value).strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


@dataclass(frozen=True)
class Cycle:
    """A GFS model run on the 6-hour UTC grid (00, 06, 12, 18Z)."""

    timestamp: datetime

    def __post_init__(self):
        ts = to_utc(self.timestamp)
        if ts.hour % CYCLE_PERIOD_HOURS or ts.minute or ts.second or ts.microsecond:
            raise ValueError(f"{ts.isoformat()} is not on the {CYCLE_PERIOD_HOURS}-hour cycle grid")
        object.__setattr__(self, "timestamp", ts)

    @classmethod
    def containing(cls, value: Union[str, datetime]) -> "Cycle":
        """Cycle at or before the given time."""
        ts = parse_timestamp(value)
        floored = ts.replace(
            hour=ts.hour - ts.hour % CYCLE_PERIOD_HOURS,
            minute=0,
            second=0,
            microsecond=0,
        )
        return cls(floored)

    @classmethod
    def at_or_after(cls, value: Union[str, datetime]) -> "Cycle":
        """Cycle at or after the given time."""
        ts = parse_timestamp(value)
        cycle = cls.containing(ts)
        if cycle.date() < ts:
            cycle = cycle.next()
        return cycle

    def date(self) -> datetime:
        return self.timestamp

    def next(self) -> "Cycle":
        return Cycle(self.timestamp + timedelta(hours=CYCLE_PERIOD_HOURS))

    def previous(self) -> "Cycle":
        return Cycle(self.timestamp - timedelta(hours=CYCLE_PERIOD_HOURS))

    def hour(self) -> int:
        return self.timestamp.hour

    def __str__(self):
        return f"{self.timestamp:%Y%m%d} {self.timestamp:%H}Z"


@dataclass(frozen=True)
class Product:
    """A raw GRIB2 file: product type + cycle + forecast hour."""

    type: str
    cycle: Cycle
    forecast_hour: int

    def __post_init__(self):
        if self.type not in RESOLUTIONS:
            raise ValueError(
                f"Invalid product type '{self.type}'. "
                f"Must be one of: {list(RESOLUTIONS.keys())}"
            )
        if self.forecast_hour < 0:
            raise ValueError(f"Forecast hour must be >= 0, got {self.forecast_hour}")

    def date(self) -> datetime:
        """Validity time: cycle time plus forecast offset."""
        return self.cycle.date() + timedelta(hours=self.forecast_hour)

    def resolution(self) -> str:
        return RESOLUTIONS[self.type]

    def relative_path(self) -> str:
        ref = self.cycle.date()
        return (
            f"gfs.{ref:%Y%m%d}/{ref:%H}/atmos/"
            f"gfs.t{ref:%H}z.pgrb2.{self.resolution()}.f{self.forecast_hour:03d}"
        )

    def path(self, root: Union[str, Path]) -> Path:
        return Path(root) / self.relative_path()

    def dir(self, root: Union[str, Path]) -> Path:
        return self.path(root).parent

    def url(self, server: str) -> str:
        return f"{server.rstrip('/')}/{self.relative_path()}"

    def previous(self) -> "Product":
        """
        Step back one product interval in validity time.

        Prefers the same cycle's shorter forecast; crosses into the previous
        cycle once the forecast offset would go negative.
        """
        forecast_hour = self.forecast_hour - PRODUCT_STEP_HOURS
        if forecast_hour >= 0:
            return Product(self.type, self.cycle, forecast_hour)
        return Product(self.type, self.cycle.previous(), forecast_hour + CYCLE_PERIOD_HOURS)

    def __str__(self):
        return f"gfs {self.type} {self.cycle} f{self.forecast_hour:03d}"


@dataclass(frozen=True)
class Layer:
    """A JSON layer derived from one product by one recipe."""

    recipe: Recipe
    product: Product
    is_current: bool = False

    def relative_path(self) -> str:
        suffix = f"{self.recipe.name}-gfs-{self.product.type}.json"
        if self.is_current:
            return f"current/current-{suffix}"
        valid = self.product.date()
        return f"{valid:%Y/%m/%d}/{valid:%H%M}-{suffix}"

    def path(self, root: Union[str, Path]) -> Path:
        return Path(root) / self.relative_path()

    def dir(self, root: Union[str, Path]) -> Path:
        return self.path(root).parent

    def key(self, prefix: str = "") -> str:
        """S3 object key under the given prefix."""
        prefix = prefix.strip("/")
        return f"{prefix}/{self.relative_path()}" if prefix else self.relative_path()

    def reference_time(self) -> datetime:
        return self.product.cycle.date()

    def previous(self) -> "Layer":
        return Layer(self.recipe, self.product.previous(), self.is_current)

    def __str__(self):
        return self.relative_path()


def cache_control_for(layer: Layer) -> str:
    """Cache-Control header for a layer: current aliases are not cached."""
    return CURRENT_CACHE_CONTROL if layer.is_current else DATED_CACHE_CONTROL
