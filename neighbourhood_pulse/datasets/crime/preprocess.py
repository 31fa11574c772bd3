"""
Neighbourhood Pulse - Crime Preprocessor

Cleans Ottawa Police Service criminal offence records. The open data export
carries no usable coordinates; each offence names the ONS neighbourhood it
occurred in (NB_NAME_EN) and its offence category (OFF_CATEG). Placement is
by that name, so rows without one are dropped.
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BasePreprocessor
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "Unknown"


class CrimePreprocessor(BasePreprocessor):
    """
    Preprocessor for police-reported offences.
    """

    # Column mapping from raw names to standardized names
    COLUMN_MAPPINGS = {
        "ID": "feature_id",
        "OBJECTID": "feature_id",
        "NB_NAME_EN": "area_name",
        "OFF_CATEG": "offence_category",
        "OFF_SUMM": "offence_summary",
        "REP_YEAR": "year",
        "OCC_YEAR": "year",
    }

    # Data type mappings
    DTYPE_MAPPINGS = {
        "area_name": "string",
        "offence_category": "string",
        "offence_summary": "string",
    }

    # Required output columns
    REQUIRED_COLUMNS = ["feature_id", "category", "magnitude", "area_name"]

    OUTPUT_COLUMNS = [
        "feature_id",
        "category",
        "magnitude",
        "area_name",
        "offence_summary",
        "year",
    ]

    def __init__(self, config: Settings | None = None):
        """Initialize crime preprocessor."""
        super().__init__(config)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "crime"

    def get_required_columns(self) -> list[str]:
        """Return required output columns."""
        return self.REQUIRED_COLUMNS

    def get_input_columns(self) -> list[list[str]]:
        """Offences are placed by neighbourhood name."""
        return [["area_name"]]

    def get_column_mappings(self) -> dict[str, str]:
        """Return column name mappings."""
        return self.COLUMN_MAPPINGS

    def get_dtype_mappings(self) -> dict[str, str]:
        """Return data type mappings."""
        return self.DTYPE_MAPPINGS

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply crime-specific transformations."""
        df = df.copy()
        df = self.ensure_columns(df, self.OUTPUT_COLUMNS + ["offence_category"])

        if df.empty:
            return df[self.OUTPUT_COLUMNS]

        names = df["area_name"].astype("string").str.strip().fillna("").astype(object)
        unnamed = names == ""
        if unnamed.sum() > 0:
            self.log_dropped_rows("no_area_name", int(unnamed.sum()))
        df = df[~unnamed].copy()
        df["area_name"] = names[~unnamed]

        categories = df["offence_category"].astype("string").str.strip().fillna("").astype(object)
        df["category"] = categories.where(categories != "", UNKNOWN_CATEGORY)
        self.log_transformation("standardize_categories")

        df["year"] = pd.to_numeric(df["year"], errors="coerce").astype("Int64")
        df["magnitude"] = 1.0

        missing_id = df["feature_id"].isna()
        if missing_id.any():
            synthetic = pd.Series([f"offence-{i}" for i in range(len(df))], index=df.index)
            df["feature_id"] = df["feature_id"].astype(object).where(~missing_id, synthetic)
            self.log_transformation("fill_missing_ids")

        return df[self.OUTPUT_COLUMNS].reset_index(drop=True)


def preprocess_crime(
    df: pd.DataFrame,
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for preprocessing offences."""
    preprocessor = CrimePreprocessor(config)
    result = preprocessor.run(df, execution_date)
    return result.to_dict()
