"""
Pipeline Configuration

Centralized settings for servers, concurrency limits, timeouts, the decoder
and the S3 destination. Values come from the environment (optionally a .env
file) and can be overridden per run.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from gfs.cycles import PRODUCT_TYPES, SERVERS
from gfs.recipes import LAYER_RECIPES, Recipe, load_recipes

DEFAULT_FORECAST_HOURS = [0, 3]


def _env_list(name: str) -> Optional[List[str]]:
    value = os.getenv(name)
    if not value:
        return None
    return [item.strip() for item in value.split(',') if item.strip()]


class PipelineSettings(BaseModel):
    """Runtime settings for one pipeline run."""

    grib_home: Path = Field(Path("data/raw/gfs"), description="Root of downloaded GRIB2 files")
    layer_home: Path = Field(Path("data/layers"), description="Root of extracted JSON layers")

    servers: List[str] = Field(default_factory=lambda: list(SERVERS.values()))
    product_types: List[str] = Field(default_factory=lambda: list(PRODUCT_TYPES))
    forecast_hours: List[int] = Field(default_factory=lambda: list(DEFAULT_FORECAST_HOURS))
    recipes: Dict[str, Recipe] = Field(default_factory=lambda: dict(LAYER_RECIPES))

    # Fetch
    fetch_delay_seconds: float = 10.0
    download_timeout: int = 300
    download_chunk_size: int = 64 * 1024
    max_retries: int = 3
    failure_status: int = 300

    # Throttles (fetch concurrency is the server pool size)
    extract_concurrency: int = 2
    publish_concurrency: int = 8

    # Decoder
    grib2json_command: str = "grib2json"
    grib2json_flags: str = "-c -d -n"

    # S3
    s3_bucket: str = "gfs-layers"
    s3_region: str = "us-east-1"
    s3_layer_prefix: str = "data/weather"
    aws_profile: Optional[str] = None

    # Current resolver
    current_max_age_hours: int = 72

    # Artifact leases
    lease_stale_seconds: int = 3600

    @field_validator('servers', 'product_types', 'recipes')
    @classmethod
    def must_not_be_empty(cls, v):
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator('forecast_hours')
    @classmethod
    def forecast_hours_non_negative(cls, v):
        if not v:
            raise ValueError("must not be empty")
        if any(hour < 0 for hour in v):
            raise ValueError(f"forecast hours must be >= 0, got {v}")
        return v

    @field_validator('extract_concurrency', 'publish_concurrency', 'max_retries')
    @classmethod
    def must_be_positive(cls, v):
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @property
    def lease_dir(self) -> Path:
        return self.layer_home / ".leases"

    @property
    def partial_dir(self) -> Path:
        return self.grib_home / ".partial"

    @classmethod
    def from_env(cls, **overrides) -> "PipelineSettings":
        """
        Build settings from environment variables, then apply overrides.

        Args:
            **overrides: Explicit values (e.g. from the command line); None values are ignored

        Returns:
            PipelineSettings instance

        Raises:
            ValueError: If any setting is invalid
        """
        load_dotenv()

        values = {
            'servers': _env_list('GFS_SERVERS'),
            'product_types': _env_list('GFS_PRODUCT_TYPES'),
            'forecast_hours': _env_list('GFS_FORECAST_HOURS'),
            'fetch_delay_seconds': os.getenv('GFS_FETCH_DELAY_SECONDS'),
            'download_timeout': os.getenv('GFS_DOWNLOAD_TIMEOUT'),
            'max_retries': os.getenv('GFS_MAX_RETRIES'),
            'extract_concurrency': os.getenv('GFS_EXTRACT_CONCURRENCY'),
            'publish_concurrency': os.getenv('GFS_PUBLISH_CONCURRENCY'),
            'grib2json_command': os.getenv('GRIB2JSON_COMMAND'),
            'grib2json_flags': os.getenv('GRIB2JSON_FLAGS'),
            's3_bucket': os.getenv('GFS_S3_BUCKET'),
            's3_region': os.getenv('GFS_S3_REGION'),
            's3_layer_prefix': os.getenv('GFS_S3_PREFIX'),
            'aws_profile': os.getenv('AWS_PROFILE'),
            'current_max_age_hours': os.getenv('GFS_CURRENT_MAX_AGE_HOURS'),
            'lease_stale_seconds': os.getenv('GFS_LEASE_STALE_SECONDS'),
        }

        recipes_file = os.getenv('GFS_RECIPES_FILE')
        if recipes_file:
            values['recipes'] = load_recipes(recipes_file)

        values.update(overrides)
        values = {k: v for k, v in values.items() if v is not None}

        try:
            return cls(**values)
        except ValidationError as e:
            raise ValueError(f"Invalid pipeline settings: {e}") from e
