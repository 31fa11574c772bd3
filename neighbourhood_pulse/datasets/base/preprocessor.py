"""
Neighbourhood Pulse - Base Preprocessor

Abstract base class for all dataset preprocessors. Turns a raw upstream table
into the standardized feature table spatial assignment consumes:
- Column standardization
- Data type conversion
- Coordinate validation
- Malformed row accounting

Standardized output columns:
    feature_id, category, magnitude, and geometry as lat/lon, path or rings,
    plus any dataset-specific attribute columns.

Usage:
    class ParksPreprocessor(BasePreprocessor):
        def transform(self, df: pd.DataFrame) -> pd.DataFrame:
            ...
        def get_column_mappings(self) -> dict[str, str]:
            return {"LATITUDE": "lat", "LONGITUDE": "lon"}
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from neighbourhood_pulse.shared.config import Settings, get_config
from neighbourhood_pulse.shared.errors import MissingInputError

logger = logging.getLogger(__name__)


@dataclass
class PreprocessingResult:
    """Result of a preprocessing operation."""

    dataset: str
    execution_date: str
    rows_input: int
    rows_output: int
    rows_dropped: int
    columns_input: int
    columns_output: int
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None
    transformations_applied: list[str] = field(default_factory=list)
    drop_reasons: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "dataset": self.dataset,
            "execution_date": self.execution_date,
            "rows_input": self.rows_input,
            "rows_output": self.rows_output,
            "rows_dropped": self.rows_dropped,
            "columns_input": self.columns_input,
            "columns_output": self.columns_output,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "transformations_applied": self.transformations_applied,
            "drop_reasons": self.drop_reasons,
        }


class BasePreprocessor(ABC):
    """
    Abstract base class for dataset preprocessing.

    Subclasses must implement:
    - transform(): Apply dataset-specific transformations
    - get_dataset_name(): Return the dataset name
    - get_required_columns(): Return list of required output columns

    A missing required input column is fatal and raises MissingInputError;
    any other failure is reported through an unsuccessful result.
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize the preprocessor.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self._transformations: list[str] = []
        self._drop_reasons: dict[str, int] = {}

    @abstractmethod
    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply dataset-specific transformations.

        Args:
            df: Raw DataFrame with mapped column names

        Returns:
            Standardized DataFrame
        """
        pass

    @abstractmethod
    def get_dataset_name(self) -> str:
        """
        Get the dataset name.

        Returns:
            Dataset name (e.g., "parks", "cycling_network")
        """
        pass

    @abstractmethod
    def get_required_columns(self) -> list[str]:
        """
        Get list of required columns in the output.

        Returns:
            List of column names that must be present after preprocessing
        """
        pass

    def get_input_columns(self) -> list[list[str]]:
        """
        Get the input columns the raw table must provide (after mapping).

        Each entry is a group of alternatives; at least one column of every
        group must be present.
        """
        return []

    def get_column_mappings(self) -> dict[str, str]:
        """
        Get column name mappings (old -> new).

        Override this method to rename columns during preprocessing.
        """
        return {}

    def get_dtype_mappings(self) -> dict[str, str]:
        """
        Get data type mappings for columns.

        Override this method to specify target data types.
        """
        return {}

    def run(
        self,
        df: pd.DataFrame,
        execution_date: str,
    ) -> PreprocessingResult:
        """
        Run the preprocessing pipeline.

        Args:
            df: Raw DataFrame to preprocess
            execution_date: Run date in YYYY-MM-DD format

        Returns:
            PreprocessingResult with details about the preprocessing

        Raises:
            MissingInputError: If a required input column is absent
        """
        start_time = time.time()
        dataset_name = self.get_dataset_name()
        rows_input = len(df)
        columns_input = len(df.columns)

        logger.info(
            f"Starting preprocessing for {dataset_name}",
            extra={
                "dataset": dataset_name,
                "execution_date": execution_date,
                "rows_input": rows_input,
            },
        )

        # Reset tracking
        self._transformations = []
        self._drop_reasons = {}

        # Apply column mappings
        df = self._apply_column_mappings(df)
        self._validate_input_columns(df)

        try:
            # Apply data type conversions
            df = self._apply_dtype_conversions(df)

            # Apply dataset-specific transformations
            df = self.transform(df)

            # Validate required columns
            self._validate_required_columns(df)

            duration = time.time() - start_time
            rows_output = len(df)

            result = PreprocessingResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_input=rows_input,
                rows_output=rows_output,
                rows_dropped=rows_input - rows_output,
                columns_input=columns_input,
                columns_output=len(df.columns),
                duration_seconds=duration,
                success=True,
                transformations_applied=self._transformations,
                drop_reasons=self._drop_reasons,
            )

            logger.info(
                f"Preprocessing complete for {dataset_name}: {rows_input} -> {rows_output} rows",
                extra=result.to_dict(),
            )

            # Store processed data
            self._data = df

            return result

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Preprocessing failed for {dataset_name}: {e}",
                extra={"dataset": dataset_name, "error": str(e)},
                exc_info=True,
            )

            return PreprocessingResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_input=rows_input,
                rows_output=0,
                rows_dropped=rows_input,
                columns_input=columns_input,
                columns_output=0,
                duration_seconds=duration,
                success=False,
                error_message=str(e),
                drop_reasons=self._drop_reasons,
            )

    def get_data(self) -> pd.DataFrame | None:
        """Get the most recently processed data."""
        return getattr(self, "_data", None)

    def _apply_column_mappings(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply column name mappings for the columns present.

        When several source columns map to the same name, the first one
        present wins and the others keep their original names.
        """
        mappings: dict[str, str] = {}
        taken = set(df.columns)
        for old, new in self.get_column_mappings().items():
            if old not in df.columns or old == new:
                continue
            if new in taken:
                continue
            mappings[old] = new
            taken.add(new)
        if mappings:
            df = df.rename(columns=mappings)
            self._transformations.append(f"renamed_columns: {list(mappings.keys())}")
        return df

    def _apply_dtype_conversions(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply data type conversions."""
        dtype_mappings = self.get_dtype_mappings()
        for col, dtype in dtype_mappings.items():
            if col in df.columns:
                try:
                    if dtype == "int":
                        df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")
                    elif dtype == "float":
                        df[col] = pd.to_numeric(df[col], errors="coerce")
                    elif dtype == "string":
                        df[col] = df[col].astype("string").str.strip()
                    else:
                        df[col] = df[col].astype(dtype)
                    self._transformations.append(f"converted_{col}_to_{dtype}")
                except (TypeError, ValueError) as e:
                    logger.warning(f"Failed to convert {col} to {dtype}: {e}")
        return df

    def _validate_input_columns(self, df: pd.DataFrame) -> None:
        """Fail fast when the raw table lacks a required column."""
        present = set(df.columns)
        for group in self.get_input_columns():
            if not present.intersection(group):
                raise MissingInputError.for_columns(group, self.get_dataset_name())

    def _validate_required_columns(self, df: pd.DataFrame) -> None:
        """Validate that all required columns are present."""
        required = set(self.get_required_columns())
        missing = required - set(df.columns)

        if missing:
            raise ValueError(f"Missing required columns: {missing}")

    def log_transformation(self, name: str) -> None:
        """Log a transformation that was applied."""
        self._transformations.append(name)

    def log_dropped_rows(self, reason: str, count: int) -> None:
        """Log rows that were dropped."""
        self._drop_reasons[reason] = self._drop_reasons.get(reason, 0) + count

    # ==========================================================================
    # Common Preprocessing Utilities
    # ==========================================================================

    def standardize_coordinates(
        self,
        df: pd.DataFrame,
        lat_col: str = "lat",
        lon_col: str = "lon",
        drop_invalid: bool = True,
    ) -> pd.DataFrame:
        """
        Standardize point coordinates.

        - Converts to numeric
        - Treats (0, 0) and out-of-bounds positions as missing
        - Drops invalid rows, or blanks their coordinates when drop_invalid
          is False so other columns can still place them
        """
        df[lat_col] = pd.to_numeric(df[lat_col], errors="coerce")
        df[lon_col] = pd.to_numeric(df[lon_col], errors="coerce")

        invalid_mask = (
            df[lat_col].isna()
            | df[lon_col].isna()
            | ~np.isfinite(df[lat_col])
            | ~np.isfinite(df[lon_col])
            | ((df[lat_col] == 0) & (df[lon_col] == 0))
        )

        bounds = self.config.geometry.bounds
        if bounds is not None:
            invalid_mask |= (
                (df[lat_col] < bounds.min_lat)
                | (df[lat_col] > bounds.max_lat)
                | (df[lon_col] < bounds.min_lon)
                | (df[lon_col] > bounds.max_lon)
            )

        invalid_count = int(invalid_mask.sum())
        if drop_invalid:
            if invalid_count > 0:
                self.log_dropped_rows("invalid_coordinates", invalid_count)
            df = df[~invalid_mask].copy()
        else:
            df.loc[invalid_mask, [lat_col, lon_col]] = np.nan

        self.log_transformation("standardize_coordinates")
        return df

    def drop_duplicates(
        self,
        df: pd.DataFrame,
        subset: list[str] | None = None,
        keep: str = "last",
    ) -> pd.DataFrame:
        """Drop duplicate rows."""
        before_count = len(df)
        df = df.drop_duplicates(subset=subset, keep=keep)
        dropped = before_count - len(df)

        if dropped > 0:
            self.log_dropped_rows("duplicates", dropped)
            self.log_transformation("drop_duplicates")

        return df

    def fill_missing(
        self,
        df: pd.DataFrame,
        col: str,
        value: Any,
    ) -> pd.DataFrame:
        """Fill missing values in a column."""
        missing_count = df[col].isna().sum()
        if missing_count > 0:
            df[col] = df[col].fillna(value)
            self.log_transformation(f"fill_missing_{col}")
        return df

    def ensure_columns(self, df: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
        """Add any missing columns as empty, so an empty input still has a schema."""
        for col in columns:
            if col not in df.columns:
                df[col] = pd.Series(dtype="object", index=df.index)
        return df
