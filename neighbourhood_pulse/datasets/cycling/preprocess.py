"""
Neighbourhood Pulse - Cycling Network Preprocessor

Cleans cycling infrastructure segments (City of Ottawa CyclingMap layer).

Each segment is a line with a facility type and a length in metres. Sources
either carry the full vertex path or a pre-computed midpoint (LAT/LON); both
are assigned by the midpoint vertex of the path.
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BasePreprocessor
from neighbourhood_pulse.datasets.base.sources import row_geometry
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)

UNKNOWN_TYPE = "Unknown"


class CyclingPreprocessor(BasePreprocessor):
    """
    Preprocessor for cycling network segments.
    """

    # Column mapping from raw API names to standardized names
    COLUMN_MAPPINGS = {
        "OBJECTID": "feature_id",
        "TYPE": "category",
        "FACILITY_TYPE": "category",
        "LENGTH": "magnitude",
        "LENGTH_M": "magnitude",
        "Shape__Length": "magnitude",
        "LAT": "lat",
        "LON": "lon",
        "LATITUDE": "lat",
        "LONGITUDE": "lon",
        "NAME": "name",
    }

    # Data type mappings
    DTYPE_MAPPINGS = {
        "feature_id": "string",
        "category": "string",
        "magnitude": "float",
        "name": "string",
    }

    # Required output columns
    REQUIRED_COLUMNS = ["feature_id", "category", "magnitude"]

    OUTPUT_COLUMNS = ["feature_id", "category", "magnitude", "name", "lat", "lon", "path"]

    def __init__(self, config: Settings | None = None):
        """Initialize cycling preprocessor."""
        super().__init__(config)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "cycling_network"

    def get_required_columns(self) -> list[str]:
        """Return required output columns."""
        return self.REQUIRED_COLUMNS

    def get_input_columns(self) -> list[list[str]]:
        """Segments need a length and a location."""
        return [["magnitude"], ["lat", "path"]]

    def get_column_mappings(self) -> dict[str, str]:
        """Return column name mappings."""
        return self.COLUMN_MAPPINGS

    def get_dtype_mappings(self) -> dict[str, str]:
        """Return data type mappings."""
        return self.DTYPE_MAPPINGS

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply cycling-specific transformations."""
        df = df.copy()
        df = self.ensure_columns(df, self.OUTPUT_COLUMNS)

        if df.empty:
            return df[self.OUTPUT_COLUMNS]

        df = self._standardize_types(df)
        df = self._validate_lengths(df)
        df = self._validate_geometry(df)

        if df["feature_id"].notna().all():
            df = self.drop_duplicates(df, subset=["feature_id"], keep="first")

        return df[self.OUTPUT_COLUMNS].reset_index(drop=True)

    def _standardize_types(self, df: pd.DataFrame) -> pd.DataFrame:
        """Blank facility types become Unknown."""
        df["category"] = df["category"].astype("string").str.strip()
        df["category"] = df["category"].replace("", pd.NA)
        df = self.fill_missing(df, "category", UNKNOWN_TYPE)
        self.log_transformation("standardize_facility_type")
        return df

    def _validate_lengths(self, df: pd.DataFrame) -> pd.DataFrame:
        """Drop segments without a usable, non-negative length."""
        df["magnitude"] = pd.to_numeric(df["magnitude"], errors="coerce")
        invalid = df["magnitude"].isna() | (df["magnitude"] < 0)
        if invalid.sum() > 0:
            self.log_dropped_rows("invalid_length", int(invalid.sum()))
        return df[~invalid].copy()

    def _validate_geometry(self, df: pd.DataFrame) -> pd.DataFrame:
        """Segments need a parsable path or a valid midpoint."""
        if df.empty:
            return df
        usable = df.apply(lambda row: row_geometry(row.to_dict())[1] is not None, axis=1)
        dropped = int((~usable).sum())
        if dropped > 0:
            self.log_dropped_rows("invalid_geometry", dropped)
        self.log_transformation("validate_geometry")
        return df[usable].copy()


def preprocess_cycling_data(
    df: pd.DataFrame,
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for preprocessing cycling network data."""
    preprocessor = CyclingPreprocessor(config)
    result = preprocessor.run(df, execution_date)
    return result.to_dict()
