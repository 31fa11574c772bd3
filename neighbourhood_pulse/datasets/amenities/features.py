"""
Neighbourhood Pulse - Walk Score Builder

Builds per-neighbourhood amenity counts, densities and the walk score.

Methodology:
    Each amenity category's density (per km²) is normalized against the
    90th percentile density across neighbourhoods and weighted:
    grocery 30, restaurant 25, recreation 15, park 15, school 10, library 5.
    Missing groceries (x0.7) and restaurants (x0.85) are penalized, as are
    large sparsely populated areas (x0.5).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BaseMetricBuilder, MetricDefinition
from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.scoring.composite import CompositeScorer
from neighbourhood_pulse.scoring.percentile import normalize
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)


class WalkScoreBuilder(BaseMetricBuilder):
    """
    Metric builder for amenity access.

    Takes the concatenated output of the amenity preprocessors (one
    `category` per amenity type) and produces one row per neighbourhood.
    """

    def __init__(self, config: Settings | None = None):
        """Initialize walk score builder."""
        super().__init__(config)
        self.scorer = CompositeScorer(self.config.scores.walk, name="walk")

    @property
    def components(self) -> list[str]:
        return list(self.config.scores.walk.components)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "walk"

    def get_metric_definitions(self) -> list[MetricDefinition]:
        """Return metric definitions."""
        definitions = [
            MetricDefinition(
                name="walk_score",
                description="Composite amenity access score",
                dtype="int",
                source_columns=[f"{c}_density" for c in self.components],
                aggregation="score",
                min_value=0,
                max_value=100,
            ),
            MetricDefinition(
                name="population_density",
                description="Residents per km²",
                dtype="float",
                source_columns=["population", "area_km2"],
                min_value=0,
            ),
        ]
        for component in self.components:
            definitions.append(
                MetricDefinition(
                    name=f"{component}_count",
                    description=f"Number of {component} amenities in the neighbourhood",
                    dtype="int",
                    source_columns=["category"],
                    aggregation="count",
                    min_value=0,
                )
            )
            definitions.append(
                MetricDefinition(
                    name=f"{component}_density",
                    description=f"{component} amenities per km²",
                    dtype="float",
                    source_columns=["category", "area_km2"],
                    aggregation="density",
                    min_value=0,
                )
            )
        return definitions

    def build_metrics(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> pd.DataFrame:
        """Build walk score metrics from amenity features."""
        logger.info(f"Building walk score metrics from {len(df)} amenities")

        metrics = self.base_frame(neighbourhoods)
        metrics["population_density"] = self.density(metrics["population"], metrics["area_km2"])

        assignment = self.assign(df, neighbourhoods)

        normalized: dict[str, pd.Series] = {}
        for component in self.components:
            counts = pd.Series(
                [int(assignment.count(n.id, component)) for n in neighbourhoods],
                index=metrics.index,
            )
            metrics[f"{component}_count"] = counts
            metrics[f"{component}_density"] = self.density(counts, metrics["area_km2"])

            threshold = self.threshold(
                f"{component}_density",
                dict(zip(metrics["id"], metrics[f"{component}_density"], strict=True)),
            )
            normalized[component] = metrics[f"{component}_density"].apply(
                lambda v, t=threshold: normalize(v, t)
            )

        scores = []
        penalties = []
        for i, row in metrics.iterrows():
            context: dict[str, Any] = {
                f"{c}_count": row[f"{c}_count"] for c in self.components
            }
            context["area_km2"] = row["area_km2"]
            context["density"] = row["population_density"]

            result = self.scorer.score(
                row["id"],
                {c: normalized[c].loc[i] for c in self.components},
                context=context,
            )
            scores.append(result.score)
            penalties.append(";".join(result.penalties_applied))

        metrics["walk_score"] = scores
        metrics["penalties"] = penalties

        metrics = self.round_columns(
            metrics,
            {
                "area_km2": 2,
                "population_density": 1,
                **{f"{c}_density": 2 for c in self.components},
            },
        )

        columns = (
            ["id", "name", "walk_score"]
            + [f"{c}_count" for c in self.components]
            + [f"{c}_density" for c in self.components]
            + ["area_km2", "population_density", "penalties"]
        )
        return metrics[columns]


def build_walk_scores(
    df: pd.DataFrame,
    neighbourhoods: Sequence[Neighbourhood],
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for building walk score metrics."""
    builder = WalkScoreBuilder(config)
    result = builder.run(df, neighbourhoods, execution_date)
    return result.to_dict()
