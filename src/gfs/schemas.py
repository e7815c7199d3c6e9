"""
Layer Record Schemas

grib2json emits a JSON array of records, each with a "header" block and a
"data" array. Layers keep that structure and add a "meta" block per record.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .cycles import format_timestamp, parse_timestamp


class RecordHeader(BaseModel):
    """The parts of a grib2json record header the pipeline relies on."""

    model_config = ConfigDict(extra="allow")

    refTime: datetime = Field(..., description="Reference (cycle) time of the source product")
    forecastTime: int = Field(0, description="Forecast offset in hours")

    @field_validator('refTime', mode='before')
    @classmethod
    def ref_time_as_utc(cls, v):
        return parse_timestamp(v)


class LayerMeta(BaseModel):
    """Meta block attached to every record of a built layer."""

    date: str = Field(..., description="Validity time of the layer")
    refTime: str = Field(..., description="Reference time of the originating cycle")
    forecastTime: int = Field(..., description="Forecast offset in hours")

    @classmethod
    def for_layer(cls, layer) -> "LayerMeta":
        product = layer.product
        return cls(
            date=format_timestamp(product.date()),
            refTime=format_timestamp(product.cycle.date()),
            forecastTime=product.forecast_hour,
        )


def read_records(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read a grib2json output or layer file."""
    with open(path, 'r') as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of records in {path}")
    return data


def read_layer_header(path: Union[str, Path]) -> RecordHeader:
    """
    Read the header of the first record in a layer file.

    Raises:
        ValueError: If the file holds no records or the header is malformed
    """
    try:
        records = read_records(path)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed layer file {path}: {e}") from e

    if not records:
        raise ValueError(f"Layer file has no records: {path}")

    try:
        return RecordHeader(**records[0]["header"])
    except (KeyError, TypeError, ValidationError) as e:
        raise ValueError(f"Malformed layer header in {path}: {e}") from e
