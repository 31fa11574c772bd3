"""
Neighbourhood Pulse - 311 Service Requests Preprocessor

Cleans City of Ottawa 311 service requests. Each request gets a service
category, road-quality and noise complaint flags, and its ward.

Requests keep their row even without usable coordinates: those are placed
through their ward later, so invalid coordinates are blanked, not dropped.

The open data CSVs carry bilingual headers ("Type | Type", ...). When none
of the known column names are present the fixed column order of the export
is used instead.
"""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BasePreprocessor
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)

OTHER_CATEGORY = "Other"

# Request type prefix -> display category
SERVICE_TYPES = {
    "Roads and Transportation": "Roads & Transportation",
    "Garbage and Recycling": "Garbage & Recycling",
    "Bylaw Services": "Bylaw Services",
    "Water and the Environment": "Water & Environment",
    "Recreation and Culture": "Recreation & Culture",
    "Miscellaneous": "Miscellaneous",
    "Social Community Service": "Social Services",
    "City Hall": "City Hall",
    "Licenses and Permits": "Licenses & Permits",
    "Health and Safety": "Health & Safety",
    "Corp Complaints": "Corporate Complaints",
    "Knowledge Management": "Knowledge Management",
}

# Column positions in the 311 open data export
POSITIONAL_COLUMNS = {
    0: "feature_id",
    2: "request_type",
    3: "description",
    7: "lat",
    8: "lon",
    9: "ward",
}


def service_category(request_type: Any) -> str:
    """Display category of a request type; Other when no prefix matches."""
    if request_type is None or pd.isna(request_type):
        return OTHER_CATEGORY
    text = str(request_type)
    for key, category in SERVICE_TYPES.items():
        if key in text:
            return category
    return OTHER_CATEGORY


def matches_any(keywords: list[str], *texts: Any) -> bool:
    """True when any keyword is a substring of any of the texts."""
    values = [str(t) for t in texts if t is not None and not pd.isna(t)]
    return any(keyword in value for keyword in keywords for value in values)


def normalize_ward(value: Any) -> str | None:
    """Ward as a bare number string ("12", not "12.0" or " 12 ")."""
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return text
    return str(int(number)) if number.is_integer() else text


class ServiceRequestsPreprocessor(BasePreprocessor):
    """
    Preprocessor for 311 service requests.
    """

    # Column mapping from raw names to standardized names
    COLUMN_MAPPINGS = {
        "Service Request ID": "feature_id",
        "Type": "request_type",
        "TYPE": "request_type",
        "Description": "description",
        "DESCRIPTION": "description",
        "Latitude": "lat",
        "LATITUDE": "lat",
        "Longitude": "lon",
        "LONGITUDE": "lon",
        "Ward": "ward",
        "WARD": "ward",
    }

    # Data type mappings
    DTYPE_MAPPINGS = {
        "request_type": "string",
        "description": "string",
    }

    # Required output columns
    REQUIRED_COLUMNS = ["feature_id", "category", "magnitude", "lat", "lon", "ward"]

    OUTPUT_COLUMNS = [
        "feature_id",
        "category",
        "magnitude",
        "lat",
        "lon",
        "ward",
        "request_type",
        "description",
        "is_road_complaint",
        "is_noise_complaint",
    ]

    def __init__(self, config: Settings | None = None):
        """Initialize 311 preprocessor."""
        super().__init__(config)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "service_requests"

    def get_required_columns(self) -> list[str]:
        """Return required output columns."""
        return self.REQUIRED_COLUMNS

    def get_input_columns(self) -> list[list[str]]:
        """Requests need a type and a way to be placed."""
        return [["request_type", "description"], ["lat", "ward"]]

    def get_column_mappings(self) -> dict[str, str]:
        """Return column name mappings."""
        return self.COLUMN_MAPPINGS

    def get_dtype_mappings(self) -> dict[str, str]:
        """Return data type mappings."""
        return self.DTYPE_MAPPINGS

    def _apply_column_mappings(self, df: pd.DataFrame) -> pd.DataFrame:
        """Named mappings first, then the export's column order."""
        df = super()._apply_column_mappings(df)
        if "request_type" in df.columns or len(df.columns) <= max(POSITIONAL_COLUMNS):
            return df

        renames = {
            df.columns[position]: name
            for position, name in POSITIONAL_COLUMNS.items()
            if name not in df.columns
        }
        df = df.rename(columns=renames)
        self._transformations.append("renamed_columns_by_position")
        return df

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply 311-specific transformations."""
        df = df.copy()
        df = self.ensure_columns(df, self.OUTPUT_COLUMNS)

        if df.empty:
            return df[self.OUTPUT_COLUMNS]

        df = self.standardize_coordinates(df, drop_invalid=False)
        df["ward"] = df["ward"].map(normalize_ward)
        self.log_transformation("normalize_ward")

        df = self._classify_requests(df)
        df["magnitude"] = 1.0
        missing_id = df["feature_id"].isna()
        if missing_id.any():
            synthetic = pd.Series([f"request-{i}" for i in range(len(df))], index=df.index)
            df["feature_id"] = df["feature_id"].astype(object).where(~missing_id, synthetic)
            self.log_transformation("fill_missing_ids")

        unplaceable = df["lat"].isna() & df["ward"].isna()
        if unplaceable.sum() > 0:
            self.log_dropped_rows("no_location", int(unplaceable.sum()))
        df = df[~unplaceable]

        return df[self.OUTPUT_COLUMNS].reset_index(drop=True)

    def _classify_requests(self, df: pd.DataFrame) -> pd.DataFrame:
        """Service category plus road and noise complaint flags."""
        settings = self.config.service_requests
        df["category"] = df["request_type"].map(service_category)
        df["is_road_complaint"] = [
            matches_any(settings.road_keywords, description, request_type)
            for description, request_type in zip(
                df["description"], df["request_type"], strict=True
            )
        ]
        df["is_noise_complaint"] = [
            matches_any(settings.noise_keywords, description, request_type)
            for description, request_type in zip(
                df["description"], df["request_type"], strict=True
            )
        ]
        self.log_transformation("classify_requests")
        logger.info(
            f"Classified {int(df['is_road_complaint'].sum())} road and "
            f"{int(df['is_noise_complaint'].sum())} noise complaints"
        )
        return df


def preprocess_service_requests(
    df: pd.DataFrame,
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for preprocessing 311 requests."""
    preprocessor = ServiceRequestsPreprocessor(config)
    result = preprocessor.run(df, execution_date)
    return result.to_dict()
