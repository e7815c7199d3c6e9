"""
Layer Recipes

A recipe names one extraction from a GFS product: the grib2json filter
arguments that select a single parameter/surface, plus descriptive text.
"""

from pathlib import Path
from typing import Dict, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError


class Recipe(BaseModel):
    """Named grib2json extraction configuration."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Name used in layer file names, e.g. wind-isobaric-10hPa")
    filter: str = Field(..., description="grib2json filter arguments")
    description: str = Field("", description="Human readable description")


def _wind(level_hpa: int) -> Recipe:
    return Recipe(
        name=f"wind-isobaric-{level_hpa}hPa",
        filter=f"--fc 2 --fp wind --fs 100 --fv {level_hpa * 100}",
        description=f"Wind Velocity @ {level_hpa} hPa",
    )


LAYER_RECIPES: Dict[str, Recipe] = {
    "wi10": _wind(10),
    "wi70": _wind(70),
    "wi250": _wind(250),
    "wi500": _wind(500),
    "wi700": _wind(700),
    "wi850": _wind(850),
    "wi1000": _wind(1000),
}

# Recipe probed by the current resolver to find the newest complete layer set
REFERENCE_RECIPE_ID = "wi1000"


def load_recipes(config_path: Union[str, Path]) -> Dict[str, Recipe]:
    """
    Load a recipe set from a YAML file.

    Expected layout:

        recipes:
          wi10:
            name: wind-isobaric-10hPa
            filter: --fc 2 --fp wind --fs 100 --fv 1000
            description: Wind Velocity @ 10 hPa

    Args:
        config_path: Path to the recipes YAML file

    Returns:
        Mapping of recipe id to Recipe

    Raises:
        ValueError: If the file is empty or a recipe is invalid
    """
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    entries = config.get('recipes') or {}
    if not entries:
        raise ValueError(f"No recipes defined in {config_path}")

    recipes = {}
    for recipe_id, entry in entries.items():
        try:
            recipes[str(recipe_id)] = Recipe(**entry)
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid recipe '{recipe_id}' in {config_path}: {e}") from e

    return recipes


def reference_recipe(recipes: Dict[str, Recipe]) -> Recipe:
    """Recipe used to probe for existing layers; falls back to the first defined."""
    if REFERENCE_RECIPE_ID in recipes:
        return recipes[REFERENCE_RECIPE_ID]
    return next(iter(recipes.values()))
