"""
Neighbourhood Pulse - Collision Metrics Builder

Per-neighbourhood collision counts by severity and road user, collision
density and a per-capita safety level.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BaseMetricBuilder, MetricDefinition
from neighbourhood_pulse.datasets.collisions.preprocess import Severity
from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)

LEVEL_LOW = "Low"
LEVEL_MODERATE = "Moderate"
LEVEL_HIGH = "High"


class CollisionMetricsBuilder(BaseMetricBuilder):
    """
    Metric builder for traffic collisions.
    """

    def __init__(self, config: Settings | None = None):
        """Initialize collision metrics builder."""
        super().__init__(config)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "collisions"

    def get_metric_definitions(self) -> list[MetricDefinition]:
        """Return metric definitions."""
        counts = [
            ("collisions", "All collisions", ["category"]),
            ("collisions_fatal", "Collisions with at least one fatality", ["category"]),
            ("collisions_injury", "Non-fatal injury collisions", ["category"]),
            ("collisions_pedestrian", "Collisions involving pedestrians", ["pedestrians"]),
            ("collisions_bicycle", "Collisions involving bicycles", ["bicycles"]),
        ]
        definitions = [
            MetricDefinition(
                name=name,
                description=description,
                dtype="int",
                source_columns=source_columns,
                aggregation="count",
                min_value=0,
            )
            for name, description, source_columns in counts
        ]
        definitions += [
            MetricDefinition(
                name="collisions_per_km2",
                description="Collisions per km²",
                dtype="float",
                source_columns=["category", "area_km2"],
                aggregation="density",
                min_value=0,
            ),
            MetricDefinition(
                name="collisions_per_1000",
                description="Collisions per 1000 residents",
                dtype="float",
                source_columns=["category", "population"],
                aggregation="rate",
                min_value=0,
            ),
            MetricDefinition(
                name="collision_level",
                description="Low / Moderate / High by collisions per 1000 residents",
                dtype="string",
                source_columns=["collisions_per_1000"],
            ),
        ]
        return definitions

    def collision_level(self, per_1000: float) -> str:
        """Safety level for a per-capita collision rate."""
        levels = self.config.collisions
        if per_1000 < levels.moderate_per_1000:
            return LEVEL_LOW
        if per_1000 < levels.high_per_1000:
            return LEVEL_MODERATE
        return LEVEL_HIGH

    def build_metrics(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> pd.DataFrame:
        """Build collision metrics from classified collision points."""
        logger.info(f"Building collision metrics from {len(df)} collisions")

        metrics = self.base_frame(neighbourhoods)
        assignment = self.assign(df, neighbourhoods)

        rows = []
        for neighbourhood in neighbourhoods:
            collisions = assignment.features_for(neighbourhood.id)
            rows.append(
                {
                    "collisions": len(collisions),
                    "collisions_fatal": sum(1 for c in collisions if c.category == Severity.FATAL),
                    "collisions_injury": sum(
                        1 for c in collisions if c.category == Severity.INJURY
                    ),
                    "collisions_pedestrian": sum(
                        1 for c in collisions if (c.get("pedestrians") or 0) > 0
                    ),
                    "collisions_bicycle": sum(
                        1 for c in collisions if (c.get("bicycles") or 0) > 0
                    ),
                }
            )
        counts = pd.DataFrame(
            rows,
            index=metrics.index,
            columns=[
                "collisions",
                "collisions_fatal",
                "collisions_injury",
                "collisions_pedestrian",
                "collisions_bicycle",
            ],
        )
        metrics = pd.concat([metrics, counts.astype(int)], axis=1)

        metrics["collisions_per_km2"] = self.density(metrics["collisions"], metrics["area_km2"])
        metrics["collisions_per_1000"] = (
            self.density(metrics["collisions"], metrics["population"]) * 1000
        )
        metrics["collision_level"] = [
            self.collision_level(rate) for rate in metrics["collisions_per_1000"]
        ]

        metrics = self.round_columns(
            metrics, {"collisions_per_km2": 1, "collisions_per_1000": 1, "area_km2": 2}
        )

        return metrics[
            [
                "id",
                "name",
                "collisions",
                "collisions_fatal",
                "collisions_injury",
                "collisions_pedestrian",
                "collisions_bicycle",
                "collisions_per_km2",
                "collisions_per_1000",
                "collision_level",
                "population",
                "area_km2",
            ]
        ]


def build_collision_metrics(
    df: pd.DataFrame,
    neighbourhoods: Sequence[Neighbourhood],
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for building collision metrics."""
    builder = CollisionMetricsBuilder(config)
    result = builder.run(df, neighbourhoods, execution_date)
    return result.to_dict()
