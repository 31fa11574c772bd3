"""
Neighbourhood Pulse - 311 Service Request Metrics Builder

Per-neighbourhood request volume, road-quality and noise complaints, and two
rank-based scores where fewer complaints score higher:
- road_quality_score ranks road complaints per km²
- quiet_score ranks noise complaints per 1000 residents

Requests without a location inside any boundary are shared across their
ward's neighbourhoods by population, so counts are fractional until rounded.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BaseMetricBuilder, MetricDefinition
from neighbourhood_pulse.datasets.base.sources import frame_to_features
from neighbourhood_pulse.geo.assignment import assign_with_fallback
from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.scoring.percentile import MetricDistribution, inverse_rank_scores
from neighbourhood_pulse.scoring.rounding import round_half_up
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


class ServiceRequestMetricsBuilder(BaseMetricBuilder):
    """
    Metric builder for 311 service requests.
    """

    def __init__(self, config: Settings | None = None):
        """Initialize 311 metrics builder."""
        super().__init__(config)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "service_requests"

    def get_metric_definitions(self) -> list[MetricDefinition]:
        """Return metric definitions."""
        return [
            MetricDefinition(
                name="requests_total",
                description="311 requests, including ward-distributed shares",
                dtype="int",
                source_columns=["feature_id", "ward"],
                aggregation="count",
                min_value=0,
            ),
            MetricDefinition(
                name="requests_per_1000",
                description="311 requests per 1000 residents",
                dtype="float",
                source_columns=["feature_id", "population"],
                aggregation="rate",
                min_value=0,
            ),
            MetricDefinition(
                name="top_category",
                description="Most common service category",
                dtype="string",
                source_columns=["category"],
                nullable=True,
            ),
            MetricDefinition(
                name="road_complaints",
                description="Road and sidewalk surface complaints",
                dtype="int",
                source_columns=["is_road_complaint"],
                aggregation="count",
                min_value=0,
            ),
            MetricDefinition(
                name="road_complaints_per_km2",
                description="Road complaints per km²",
                dtype="float",
                source_columns=["is_road_complaint", "area_km2"],
                aggregation="density",
                min_value=0,
            ),
            MetricDefinition(
                name="road_complaints_per_1000",
                description="Road complaints per 1000 residents",
                dtype="float",
                source_columns=["is_road_complaint", "population"],
                aggregation="rate",
                min_value=0,
            ),
            MetricDefinition(
                name="road_quality_score",
                description="Inverse rank of road complaints per km²",
                dtype="int",
                source_columns=["road_complaints_per_km2"],
                aggregation="score",
                min_value=0,
                max_value=100,
            ),
            MetricDefinition(
                name="noise_complaints",
                description="Noise complaints",
                dtype="int",
                source_columns=["is_noise_complaint"],
                aggregation="count",
                min_value=0,
            ),
            MetricDefinition(
                name="noise_complaints_per_1000",
                description="Noise complaints per 1000 residents",
                dtype="float",
                source_columns=["is_noise_complaint", "population"],
                aggregation="rate",
                min_value=0,
            ),
            MetricDefinition(
                name="quiet_score",
                description="Inverse rank of noise complaints per 1000 residents",
                dtype="int",
                source_columns=["noise_complaints_per_1000"],
                aggregation="score",
                min_value=0,
                max_value=100,
            ),
        ]

    def build_metrics(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> pd.DataFrame:
        """Build 311 metrics from classified requests."""
        logger.info(f"Building 311 metrics from {len(df)} requests")

        metrics = self.base_frame(neighbourhoods)
        requests = frame_to_features(df, source=self.get_dataset_name())
        assignment = assign_with_fallback(
            requests,
            neighbourhoods,
            key_attribute="ward",
            key_lookup=self.config.service_requests.ward_mapping,
            dataset=self.get_dataset_name(),
        )
        self.record_assignment(assignment)

        rows = []
        for neighbourhood in neighbourhoods:
            total = road = noise = 0.0
            by_category: dict[str, float] = defaultdict(float)
            for item in assignment.assignments_for(neighbourhood.id):
                total += item.weight
                by_category[item.feature.category] += item.weight
                if _flag(item.feature.get("is_road_complaint")):
                    road += item.weight
                if _flag(item.feature.get("is_noise_complaint")):
                    noise += item.weight

            top_category = None
            if by_category:
                top_category = min(by_category.items(), key=lambda kv: (-kv[1], kv[0]))[0]

            rows.append(
                {
                    "requests_total": int(round_half_up(total)),
                    "road_complaints": int(round_half_up(road)),
                    "noise_complaints": int(round_half_up(noise)),
                    "top_category": top_category,
                }
            )
        counts = pd.DataFrame(
            rows,
            index=metrics.index,
            columns=["requests_total", "road_complaints", "noise_complaints", "top_category"],
        )
        metrics = pd.concat([metrics, counts], axis=1)

        # Rates use the rounded counts
        metrics["requests_per_1000"] = (
            self.density(metrics["requests_total"], metrics["population"]) * 1000
        )
        metrics["road_complaints_per_km2"] = self.density(
            metrics["road_complaints"], metrics["area_km2"]
        )
        metrics["road_complaints_per_1000"] = (
            self.density(metrics["road_complaints"], metrics["population"]) * 1000
        )
        metrics["noise_complaints_per_1000"] = (
            self.density(metrics["noise_complaints"], metrics["population"]) * 1000
        )

        metrics["road_quality_score"] = self._inverse_rank(
            metrics, "road_complaints", "road_complaints_per_km2"
        )
        metrics["quiet_score"] = self._inverse_rank(
            metrics, "noise_complaints", "noise_complaints_per_1000"
        )

        metrics = self.round_columns(
            metrics,
            {
                "requests_per_1000": 1,
                "road_complaints_per_km2": 1,
                "road_complaints_per_1000": 1,
                "noise_complaints_per_1000": 1,
                "area_km2": 2,
            },
        )

        return metrics[
            [
                "id",
                "name",
                "requests_total",
                "requests_per_1000",
                "top_category",
                "road_complaints",
                "road_complaints_per_km2",
                "road_complaints_per_1000",
                "road_quality_score",
                "noise_complaints",
                "noise_complaints_per_1000",
                "quiet_score",
            ]
        ]

    def _inverse_rank(self, metrics: pd.DataFrame, count_column: str, rate_column: str) -> list[int]:
        """Rank neighbourhoods with complaints by rate; none at all scores 100."""
        values = {
            row["id"]: (row[rate_column] if row[count_column] > 0 else 0.0)
            for row in metrics.to_dict("records")
        }
        distribution = MetricDistribution(name=rate_column, values=values)
        logger.info(f"Ranking {rate_column}", extra=distribution.describe())
        scores = inverse_rank_scores(distribution)
        return [scores[i] for i in metrics["id"]]


def build_service_request_metrics(
    df: pd.DataFrame,
    neighbourhoods: Sequence[Neighbourhood],
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for building 311 metrics."""
    builder = ServiceRequestMetricsBuilder(config)
    result = builder.run(df, neighbourhoods, execution_date)
    return result.to_dict()
