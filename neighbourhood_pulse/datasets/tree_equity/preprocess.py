"""
Neighbourhood Pulse - Tree Equity Preprocessor

Cleans census tract polygons from the Tree Equity Score dataset (American
Forests, Canada), each with canopy cover %, tree equity score, a priority
area flag and an urban transect label.
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BasePreprocessor
from neighbourhood_pulse.datasets.base.sources import row_geometry
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)


class TreeEquityPreprocessor(BasePreprocessor):
    """
    Preprocessor for tree equity census tracts.
    """

    # Column mapping from raw names to standardized names
    COLUMN_MAPPINGS = {
        "GEOID": "feature_id",
        "geoid": "feature_id",
        "id": "feature_id",
        "canopyCover": "canopy_cover",
        "treecanopy": "canopy_cover",
        "treeEquityScore": "tree_equity_score",
        "tes": "tree_equity_score",
        "isPriorityArea": "is_priority_area",
        "priority": "is_priority_area",
    }

    # Data type mappings
    DTYPE_MAPPINGS = {
        "feature_id": "string",
        "name": "string",
        "canopy_cover": "float",
        "tree_equity_score": "float",
        "transect": "string",
    }

    # Required output columns
    REQUIRED_COLUMNS = ["feature_id", "category", "magnitude", "rings"]

    OUTPUT_COLUMNS = [
        "feature_id",
        "category",
        "magnitude",
        "name",
        "canopy_cover",
        "tree_equity_score",
        "is_priority_area",
        "transect",
        "rings",
    ]

    def __init__(self, config: Settings | None = None):
        """Initialize tree equity preprocessor."""
        super().__init__(config)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "tree_equity"

    def get_required_columns(self) -> list[str]:
        """Return required output columns."""
        return self.REQUIRED_COLUMNS

    def get_input_columns(self) -> list[list[str]]:
        """Tracts need their polygon rings."""
        return [["rings"]]

    def get_column_mappings(self) -> dict[str, str]:
        """Return column name mappings."""
        return self.COLUMN_MAPPINGS

    def get_dtype_mappings(self) -> dict[str, str]:
        """Return data type mappings."""
        return self.DTYPE_MAPPINGS

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply tree-equity-specific transformations."""
        df = df.copy()
        df = self.ensure_columns(df, self.OUTPUT_COLUMNS)

        if df.empty:
            return df[self.OUTPUT_COLUMNS]

        usable = df.apply(lambda row: row_geometry(row.to_dict())[1] is not None, axis=1)
        dropped = int((~usable).sum())
        if dropped > 0:
            self.log_dropped_rows("invalid_geometry", dropped)
        df = df[usable].copy()

        df["category"] = "census_tract"
        df["magnitude"] = 1.0
        if df["feature_id"].isna().any():
            df["feature_id"] = df["feature_id"].fillna(
                pd.Series([f"tract-{i}" for i in range(len(df))], index=df.index)
            )
        self.log_transformation("validate_tracts")

        return df[self.OUTPUT_COLUMNS].reset_index(drop=True)


def preprocess_tree_equity(
    df: pd.DataFrame,
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for preprocessing tree equity tracts."""
    preprocessor = TreeEquityPreprocessor(config)
    result = preprocessor.run(df, execution_date)
    return result.to_dict()
