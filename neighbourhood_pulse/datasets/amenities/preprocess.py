"""
Neighbourhood Pulse - Amenity Data Preprocessor

Cleans point datasets of everyday amenities: grocery stores, restaurants and
cafes, parks, schools, libraries and recreation facilities.

The same preprocessor handles all six tables; the amenity category is fixed
per instance and written into the `category` column.

Transformations:
    - Column renaming to standardized names (City of Ottawa open data,
      Overpass tags)
    - Coordinate validation
    - Polygon sources (e.g. park outlines) kept as rings
    - Duplicate removal by feature id

Usage:
    from neighbourhood_pulse.datasets.amenities.preprocess import AmenityPreprocessor

    preprocessor = AmenityPreprocessor(AmenityCategory.PARK)
    result = preprocessor.run(raw_df, execution_date="2024-01-15")
    processed_df = preprocessor.get_data()
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BasePreprocessor
from neighbourhood_pulse.datasets.base.sources import row_geometry
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)


class AmenityCategory(StrEnum):
    """Amenity categories; values match the walk score component names."""

    GROCERY = "grocery"
    RESTAURANT = "restaurant"
    RECREATION = "recreation"
    PARK = "park"
    SCHOOL = "school"
    LIBRARY = "library"


# Dataset name (and paths config key) per category
DATASET_NAMES = {
    AmenityCategory.GROCERY: "grocery_stores",
    AmenityCategory.RESTAURANT: "restaurants",
    AmenityCategory.RECREATION: "recreation",
    AmenityCategory.PARK: "parks",
    AmenityCategory.SCHOOL: "schools",
    AmenityCategory.LIBRARY: "libraries",
}


class AmenityPreprocessor(BasePreprocessor):
    """
    Preprocessor for amenity point datasets.
    """

    # Column mapping from raw source names to standardized names
    COLUMN_MAPPINGS = {
        "OBJECTID": "feature_id",
        "osm_id": "feature_id",
        "LATITUDE": "lat",
        "LONGITUDE": "lon",
        "Latitude": "lat",
        "Longitude": "lon",
        "latitude": "lat",
        "longitude": "lon",
        "LAT": "lat",
        "LON": "lon",
        "LONG": "lon",
        "long": "lon",
        "NAME": "name",
        "Name": "name",
        "ADDRESS": "address",
        "Address": "address",
        "addr:street": "address",
        "amenity": "amenity_type",
        "shop": "amenity_type",
        "leisure": "amenity_type",
        "TYPE": "amenity_type",
    }

    # Data type mappings
    DTYPE_MAPPINGS = {
        "feature_id": "string",
        "name": "string",
        "address": "string",
        "amenity_type": "string",
    }

    # Required output columns
    REQUIRED_COLUMNS = ["feature_id", "category", "magnitude"]

    OUTPUT_COLUMNS = [
        "feature_id",
        "category",
        "magnitude",
        "name",
        "address",
        "amenity_type",
        "lat",
        "lon",
        "rings",
    ]

    def __init__(self, category: AmenityCategory | str, config: Settings | None = None):
        """Initialize amenity preprocessor for one category."""
        super().__init__(config)
        self.category = AmenityCategory(category)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return DATASET_NAMES[self.category]

    def get_required_columns(self) -> list[str]:
        """Return required output columns."""
        return self.REQUIRED_COLUMNS

    def get_input_columns(self) -> list[list[str]]:
        """A location is required: point coordinates or polygon rings."""
        return [["lat", "rings"], ["lon", "rings"]]

    def get_column_mappings(self) -> dict[str, str]:
        """Return column name mappings."""
        return self.COLUMN_MAPPINGS

    def get_dtype_mappings(self) -> dict[str, str]:
        """Return data type mappings."""
        return self.DTYPE_MAPPINGS

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply amenity-specific transformations."""
        df = df.copy()

        if df.empty:
            return self.ensure_columns(df, self.OUTPUT_COLUMNS)[self.OUTPUT_COLUMNS]

        if "lat" in df.columns and "lon" in df.columns:
            df = self._process_points(df)
        else:
            df = self._process_polygons(df)

        df["category"] = self.category.value
        df["magnitude"] = 1.0
        self.log_transformation(f"set_category_{self.category.value}")

        if "feature_id" in df.columns:
            df = self.drop_duplicates(df, subset=["feature_id"], keep="first")
        else:
            df["feature_id"] = [f"{self.category.value}-{i}" for i in range(len(df))]

        df = self.ensure_columns(df, self.OUTPUT_COLUMNS)
        return df[self.OUTPUT_COLUMNS].reset_index(drop=True)

    def _process_points(self, df: pd.DataFrame) -> pd.DataFrame:
        """Validate point coordinates, keeping rows that carry rings instead."""
        if "rings" not in df.columns:
            return self.standardize_coordinates(df)

        has_rings = df["rings"].notna()
        points = self.standardize_coordinates(df[~has_rings].copy())
        polygons = self._process_polygons(df[has_rings].copy())
        return pd.concat([points, polygons])

    def _process_polygons(self, df: pd.DataFrame) -> pd.DataFrame:
        """Drop polygon rows with no usable ring."""
        usable = df.apply(lambda row: row_geometry(row.to_dict())[1] is not None, axis=1)
        if len(df) and (~usable).sum() > 0:
            self.log_dropped_rows("invalid_geometry", int((~usable).sum()))
        self.log_transformation("validate_polygons")
        return df[usable].copy() if len(df) else df


def preprocess_amenities(
    df: pd.DataFrame,
    category: AmenityCategory | str,
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for preprocessing one amenity dataset."""
    preprocessor = AmenityPreprocessor(category, config)
    result = preprocessor.run(df, execution_date)
    return result.to_dict()
