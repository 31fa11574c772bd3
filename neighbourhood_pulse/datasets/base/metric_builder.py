"""
Neighbourhood Pulse - Base Metric Builder

Abstract base class for all per-neighbourhood metric builders. Provides a
consistent interface for turning a standardized feature table into one row
per neighbourhood with:
- Spatial assignment of features
- Percentile thresholds (recorded for the run summary)
- Metric statistics and range validation

Usage:
    class TransitMetricBuilder(BaseMetricBuilder):
        def build_metrics(self, df, neighbourhoods) -> pd.DataFrame:
            ...
        def get_metric_definitions(self) -> list[MetricDefinition]:
            ...
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base.sources import frame_to_features
from neighbourhood_pulse.geo.assignment import AssignmentResult, assign_features
from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.scoring.percentile import MetricDistribution, percentile_threshold
from neighbourhood_pulse.scoring.rounding import round_series
from neighbourhood_pulse.shared.config import Settings, get_config
from neighbourhood_pulse.shared.errors import MissingInputError

logger = logging.getLogger(__name__)


@dataclass
class MetricDefinition:
    """Definition of a computed per-neighbourhood metric."""

    name: str
    description: str
    dtype: str
    source_columns: list[str]
    aggregation: str | None = None  # count, sum, density, weighted_mean, score
    nullable: bool = False
    min_value: float | None = None
    max_value: float | None = None


@dataclass
class MetricBuildResult:
    """Result of a metric building operation."""

    dataset: str
    execution_date: str
    rows_input: int
    rows_output: int
    metrics_computed: int
    duration_seconds: float = 0.0
    success: bool = True
    error_message: str | None = None
    metric_stats: dict[str, dict[str, Any]] = field(default_factory=dict)
    thresholds: dict[str, float] = field(default_factory=dict)
    assignment: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for logging."""
        return {
            "dataset": self.dataset,
            "execution_date": self.execution_date,
            "rows_input": self.rows_input,
            "rows_output": self.rows_output,
            "metrics_computed": self.metrics_computed,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "metric_stats": self.metric_stats,
            "thresholds": self.thresholds,
            "assignment": self.assignment,
        }


class BaseMetricBuilder(ABC):
    """
    Abstract base class for metric building.

    Subclasses must implement:
    - build_metrics(): Compute one row per neighbourhood
    - get_dataset_name(): Return the dataset name
    - get_metric_definitions(): Return list of metric definitions
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize the metric builder.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self._metric_stats: dict[str, dict[str, Any]] = {}
        self._thresholds: dict[str, float] = {}
        self._assignment: dict[str, Any] = {}

    @abstractmethod
    def build_metrics(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> pd.DataFrame:
        """
        Build per-neighbourhood metrics from a standardized feature table.

        Args:
            df: Preprocessed DataFrame
            neighbourhoods: The run's neighbourhood set

        Returns:
            DataFrame with exactly one row per neighbourhood
        """
        pass

    @abstractmethod
    def get_dataset_name(self) -> str:
        """
        Get the dataset name.

        Returns:
            Dataset name (e.g., "walk", "transit")
        """
        pass

    @abstractmethod
    def get_metric_definitions(self) -> list[MetricDefinition]:
        """
        Get list of metric definitions.

        Returns:
            List of MetricDefinition objects describing each output column
        """
        pass

    def get_entity_key(self) -> str:
        """Column holding the neighbourhood id."""
        return "id"

    def run(
        self,
        df: pd.DataFrame,
        neighbourhoods: Sequence[Neighbourhood],
        execution_date: str,
    ) -> MetricBuildResult:
        """
        Run the metric building pipeline.

        Args:
            df: Preprocessed DataFrame
            neighbourhoods: The run's neighbourhood set
            execution_date: Run date in YYYY-MM-DD format

        Returns:
            MetricBuildResult with details about the build

        Raises:
            MissingInputError: If a required related input is absent
        """
        start_time = time.time()
        dataset_name = self.get_dataset_name()
        rows_input = len(df)

        logger.info(
            f"Starting metric building for {dataset_name}",
            extra={
                "dataset": dataset_name,
                "execution_date": execution_date,
                "rows_input": rows_input,
            },
        )

        try:
            # Reset tracking
            self._metric_stats = {}
            self._thresholds = {}
            self._assignment = {}

            metrics_df = self.build_metrics(df, neighbourhoods)

            # Compute metric statistics
            self._compute_metric_stats(metrics_df)

            # Validate metrics
            self._validate_metrics(metrics_df, neighbourhoods)

            duration = time.time() - start_time

            result = MetricBuildResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_input=rows_input,
                rows_output=len(metrics_df),
                metrics_computed=len(metrics_df.columns),
                duration_seconds=duration,
                success=True,
                metric_stats=self._metric_stats,
                thresholds=self._thresholds,
                assignment=self._assignment,
            )

            logger.info(
                f"Metric building complete for {dataset_name}: "
                f"{len(metrics_df)} neighbourhoods, {len(metrics_df.columns)} columns",
                extra=result.to_dict(),
            )

            # Store metrics
            self._data = metrics_df

            return result

        except MissingInputError:
            raise
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Metric building failed for {dataset_name}: {e}",
                extra={"dataset": dataset_name, "error": str(e)},
                exc_info=True,
            )

            return MetricBuildResult(
                dataset=dataset_name,
                execution_date=execution_date,
                rows_input=rows_input,
                rows_output=0,
                metrics_computed=0,
                duration_seconds=duration,
                success=False,
                error_message=str(e),
            )

    def get_data(self) -> pd.DataFrame | None:
        """Get the most recently built metrics."""
        return getattr(self, "_data", None)

    def _compute_metric_stats(self, df: pd.DataFrame) -> None:
        """Compute statistics for each metric."""
        for col in df.columns:
            stats: dict[str, Any] = {
                "dtype": str(df[col].dtype),
                "null_count": int(df[col].isna().sum()),
                "null_ratio": float(df[col].isna().mean()) if len(df) else 0.0,
            }

            if pd.api.types.is_numeric_dtype(df[col]):
                non_null = df[col].dropna()
                if len(non_null) > 0:
                    stats.update(
                        {
                            "mean": float(non_null.mean()),
                            "std": float(non_null.std()) if len(non_null) > 1 else 0.0,
                            "min": float(non_null.min()),
                            "max": float(non_null.max()),
                            "median": float(non_null.median()),
                        }
                    )
            else:
                stats["unique_count"] = int(df[col].nunique())

            self._metric_stats[col] = stats

    def _validate_metrics(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> None:
        """Validate metrics against definitions and the neighbourhood set."""
        key = self.get_entity_key()
        expected = {n.id for n in neighbourhoods}
        actual = set(df[key]) if key in df.columns else set()
        if actual != expected or len(df) != len(expected):
            raise ValueError(
                f"{self.get_dataset_name()} metrics must have one row per neighbourhood "
                f"(expected {len(expected)}, got {len(df)})"
            )

        definitions = {d.name: d for d in self.get_metric_definitions()}

        for col in df.columns:
            if col not in definitions:
                continue

            defn = definitions[col]

            # Check for nulls if not nullable
            if not defn.nullable and df[col].isna().any():
                logger.warning(f"Metric '{col}' has null values but is marked as non-nullable")

            # Check value ranges for numeric metrics
            if pd.api.types.is_numeric_dtype(df[col]):
                if defn.min_value is not None and (df[col] < defn.min_value).any():
                    logger.warning(f"Metric '{col}' has values below minimum {defn.min_value}")
                if defn.max_value is not None and (df[col] > defn.max_value).any():
                    logger.warning(f"Metric '{col}' has values above maximum {defn.max_value}")

    # ==========================================================================
    # Common Metric Building Utilities
    # ==========================================================================

    def base_frame(self, neighbourhoods: Sequence[Neighbourhood]) -> pd.DataFrame:
        """One row per neighbourhood with its id, name, area and population."""
        return pd.DataFrame(
            {
                "id": [n.id for n in neighbourhoods],
                "name": [n.name for n in neighbourhoods],
                "area_km2": [n.area_km2 for n in neighbourhoods],
                "population": [n.population for n in neighbourhoods],
            }
        )

    def assign(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> AssignmentResult:
        """Convert the standardized frame to features and assign them."""
        features = frame_to_features(df, source=self.get_dataset_name())
        result = assign_features(features, neighbourhoods, dataset=self.get_dataset_name())
        self.record_assignment(result)
        return result

    def record_assignment(self, result: AssignmentResult) -> None:
        """Keep an assignment summary for the build result."""
        self._assignment = result.to_dict()

    def threshold(
        self,
        name: str,
        values: Mapping[str, float],
        fallback: float | None = None,
    ) -> float:
        """Percentile threshold of a metric, recorded for the run summary."""
        if fallback is None:
            fallback = self.config.normalization.default_threshold
        distribution = MetricDistribution(name=name, values=values)
        value = percentile_threshold(
            distribution, p=self.config.normalization.percentile, fallback=fallback
        )
        self._thresholds[name] = value
        logger.info(
            f"{self.config.normalization.percentile:.0%} threshold for {name}: {value:.2f}",
            extra=distribution.describe(),
        )
        return value

    def density(self, counts: pd.Series, areas: pd.Series) -> pd.Series:
        """counts / area, 0 where the area is 0."""
        areas = areas.astype(float)
        result = counts.astype(float) / areas.where(areas > 0)
        return result.fillna(0.0)

    def round_columns(self, df: pd.DataFrame, columns: Mapping[str, int]) -> pd.DataFrame:
        """Round display columns half away from zero."""
        for col, digits in columns.items():
            if col in df.columns:
                df[col] = round_series(df[col], digits)
        return df
