"""
GFS Identifiers and Layer Schemas

This module defines how GFS cycles, products and derived layers are named,
located and described.
"""

from .recipes import Recipe, LAYER_RECIPES, load_recipes, reference_recipe
from .cycles import (
    Cycle,
    Product,
    Layer,
    SERVERS,
    PRODUCT_TYPES,
    cache_control_for,
    format_timestamp,
    parse_timestamp,
)
from .schemas import RecordHeader, LayerMeta, read_layer_header, read_records

__all__ = [
    'Recipe',
    'LAYER_RECIPES',
    'load_recipes',
    'reference_recipe',
    'Cycle',
    'Product',
    'Layer',
    'SERVERS',
    'PRODUCT_TYPES',
    'cache_control_for',
    'format_timestamp',
    'parse_timestamp',
    'RecordHeader',
    'LayerMeta',
    'read_layer_header',
    'read_records',
]
