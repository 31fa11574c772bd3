"""
Neighbourhood Pulse - Collisions Preprocessor

Cleans traffic collision records from Ottawa Open Data
(Collisions FeatureServer), one point per collision.

Severity is derived from the collision classification:
- "Non-fatal injury" -> injury
- anything mentioning "fatal", or a positive fatality count -> fatal
- anything mentioning "injury" -> injury
- everything else (P.D. only) -> property_damage
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BasePreprocessor
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)


class Severity(StrEnum):
    """Collision severity classes."""

    FATAL = "fatal"
    INJURY = "injury"
    PROPERTY_DAMAGE = "property_damage"


COUNT_COLUMNS = [
    "pedestrians",
    "bicycles",
    "motorcycles",
    "injuries",
    "fatalities",
    "major_injuries",
    "minor_injuries",
]


def classify_severity(classification: Any, fatalities: float = 0) -> Severity:
    """Severity class of one collision."""
    text = "" if classification is None or pd.isna(classification) else str(classification)
    text = text.lower()
    if "non-fatal" in text:
        return Severity.INJURY
    if "fatal" in text or (fatalities or 0) > 0:
        return Severity.FATAL
    if "injury" in text:
        return Severity.INJURY
    return Severity.PROPERTY_DAMAGE


class CollisionsPreprocessor(BasePreprocessor):
    """
    Preprocessor for traffic collisions.
    """

    # Column mapping from raw names to standardized names
    COLUMN_MAPPINGS = {
        "LATITUDE": "lat",
        "LONGITUDE": "lon",
        "Lat": "lat",
        "Long": "lon",
        "YEAR": "year",
        "Accident_Year": "year",
        "DATE": "date",
        "Accident_Date": "date",
        "CLASSIFICATION": "classification",
        "Classification_Of_Accident": "classification",
        "IMPACT_TYPE": "impact_type",
        "ROAD_CONDITION": "road_condition",
        "ENVIRONMENT": "environment",
        "LIGHT": "light",
        "PEDESTRIANS": "pedestrians",
        "BICYCLES": "bicycles",
        "MOTORCYCLES": "motorcycles",
        "INJURIES": "injuries",
        "FATAL": "fatalities",
        "MAJOR": "major_injuries",
        "MINOR": "minor_injuries",
    }

    # Data type mappings
    DTYPE_MAPPINGS = {
        "classification": "string",
        "impact_type": "string",
        "road_condition": "string",
        "environment": "string",
        "light": "string",
    }

    # Required output columns
    REQUIRED_COLUMNS = ["feature_id", "category", "magnitude", "lat", "lon"]

    OUTPUT_COLUMNS = [
        "feature_id",
        "category",
        "magnitude",
        "lat",
        "lon",
        "year",
        "date",
        "classification",
        "impact_type",
        "road_condition",
        "environment",
        "light",
        *COUNT_COLUMNS,
    ]

    def __init__(self, config: Settings | None = None):
        """Initialize collisions preprocessor."""
        super().__init__(config)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "collisions"

    def get_required_columns(self) -> list[str]:
        """Return required output columns."""
        return self.REQUIRED_COLUMNS

    def get_input_columns(self) -> list[list[str]]:
        """Collisions need coordinates."""
        return [["lat"], ["lon"]]

    def get_column_mappings(self) -> dict[str, str]:
        """Return column name mappings."""
        return self.COLUMN_MAPPINGS

    def get_dtype_mappings(self) -> dict[str, str]:
        """Return data type mappings."""
        return self.DTYPE_MAPPINGS

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply collision-specific transformations."""
        df = df.copy()
        df = self.ensure_columns(df, self.OUTPUT_COLUMNS)

        if df.empty:
            return df[self.OUTPUT_COLUMNS]

        df = self.standardize_coordinates(df)
        df = self._standardize_counts(df)
        df = self._parse_dates(df)

        df["category"] = [
            classify_severity(c, f).value
            for c, f in zip(df["classification"], df["fatalities"], strict=True)
        ]
        self.log_transformation("classify_severity")

        df["magnitude"] = 1.0
        df["feature_id"] = [f"collision-{i}" for i in range(len(df))]

        return df[self.OUTPUT_COLUMNS].reset_index(drop=True)

    def _standardize_counts(self, df: pd.DataFrame) -> pd.DataFrame:
        """Involvement counts are non-negative integers; blanks are 0."""
        for col in COUNT_COLUMNS:
            values = pd.to_numeric(df[col], errors="coerce").fillna(0)
            df[col] = values.clip(lower=0).astype(int)
        self.log_transformation("standardize_counts")
        return df

    def _parse_dates(self, df: pd.DataFrame) -> pd.DataFrame:
        """Parse the collision date; fill the year from it when absent."""
        dates = pd.to_datetime(df["date"], errors="coerce")
        df["year"] = pd.to_numeric(df["year"], errors="coerce").fillna(dates.dt.year)
        df["year"] = df["year"].astype("Int64")
        df["date"] = dates.dt.strftime("%Y-%m-%d")
        self.log_transformation("parse_dates")
        return df


def preprocess_collisions(
    df: pd.DataFrame,
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for preprocessing collisions."""
    preprocessor = CollisionsPreprocessor(config)
    result = preprocessor.run(df, execution_date)
    return result.to_dict()
