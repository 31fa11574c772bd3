"""
Neighbourhood Pulse - Bike Score Builder

Builds per-neighbourhood cycling infrastructure metrics and the bike score.

Score components (total = 100):
    1. Infrastructure density (50): type-weighted km per km², normalized by
       the 90th percentile density (fallback 5 km/km²)
    2. Protected infrastructure (20): km of cycle tracks and segregated lanes,
       full marks at 5 km
    3. Centrality (15): max(0, (60 - commute minutes) / 60)
    4. Transit integration (15): transit score / 100

The transit scores come from the transit family's output. Commute times are
estimated from each neighbourhood's distance to downtown, with entries from
an optional commute time table taking precedence.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BaseMetricBuilder, MetricDefinition
from neighbourhood_pulse.datasets.cycling.commute import commute_times
from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.scoring.composite import CompositeScorer
from neighbourhood_pulse.scoring.percentile import normalize
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)

BIKE_LANE_TYPES = ("Bike Lane", "Cycle Track", "Segregated Bike Lane")
PATH_TYPES = ("Path",)


class BikeScoreBuilder(BaseMetricBuilder):
    """
    Metric builder for cycling infrastructure.
    """

    def __init__(
        self,
        config: Settings | None = None,
        transit_scores: Mapping[str, float] | None = None,
        commute_times: Mapping[str, float] | None = None,
    ):
        """
        Initialize bike score builder.

        Args:
            config: Configuration object
            transit_scores: Neighbourhood id -> transit score (0-100)
            commute_times: Neighbourhood id -> minutes to downtown, overriding
                the distance-based estimate
        """
        super().__init__(config)
        self.transit_scores = dict(transit_scores or {})
        self.commute_overrides = dict(commute_times or {})
        self.scorer = CompositeScorer(self.config.scores.bike, name="bike")

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "bike"

    def get_metric_definitions(self) -> list[MetricDefinition]:
        """Return metric definitions."""
        return [
            MetricDefinition(
                name="bike_score",
                description="Composite cycling infrastructure score",
                dtype="int",
                source_columns=["magnitude", "category"],
                aggregation="score",
                min_value=0,
                max_value=100,
            ),
            MetricDefinition(
                name="total_cycling_km",
                description="Total length of cycling infrastructure",
                dtype="float",
                source_columns=["magnitude"],
                aggregation="sum",
                min_value=0,
            ),
            MetricDefinition(
                name="bike_lanes_km",
                description="Length of bike lanes, cycle tracks and segregated lanes",
                dtype="float",
                source_columns=["magnitude", "category"],
                aggregation="sum",
                min_value=0,
            ),
            MetricDefinition(
                name="paths_km",
                description="Length of multi-use paths",
                dtype="float",
                source_columns=["magnitude", "category"],
                aggregation="sum",
                min_value=0,
            ),
            MetricDefinition(
                name="protected_km",
                description="Length of physically protected infrastructure",
                dtype="float",
                source_columns=["magnitude", "category"],
                aggregation="sum",
                min_value=0,
            ),
            MetricDefinition(
                name="density_per_km2",
                description="Type-weighted km of infrastructure per km²",
                dtype="float",
                source_columns=["magnitude", "category", "area_km2"],
                aggregation="density",
                min_value=0,
            ),
            MetricDefinition(
                name="transit_score",
                description="Transit score used for the integration component",
                dtype="float",
                source_columns=["transit_score"],
                min_value=0,
                max_value=100,
            ),
            MetricDefinition(
                name="commute_minutes",
                description="Commute time to downtown used for centrality",
                dtype="float",
                source_columns=["commute_minutes"],
                min_value=0,
            ),
        ]

    def type_weight(self, facility_type: str) -> float:
        """Weight of a facility type; unlisted types get the unknown weight."""
        return self.config.cycling.type_weights.get(
            facility_type, self.config.cycling.unknown_weight
        )

    def build_metrics(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> pd.DataFrame:
        """Build bike score metrics from cycling segments."""
        logger.info(f"Building bike score metrics from {len(df)} segments")
        cycling = self.config.cycling

        metrics = self.base_frame(neighbourhoods)
        assignment = self.assign(df, neighbourhoods)

        rows = []
        for neighbourhood in neighbourhoods:
            by_type: dict[str, float] = {}
            weighted_m = 0.0
            for item in assignment.assignments_for(neighbourhood.id):
                segment = item.feature
                by_type[segment.category] = by_type.get(segment.category, 0.0) + segment.magnitude
                weighted_m += segment.magnitude * self.type_weight(segment.category)

            rows.append(
                {
                    "total_m": sum(by_type.values()),
                    "weighted_m": weighted_m,
                    "bike_lanes_m": sum(by_type.get(t, 0.0) for t in BIKE_LANE_TYPES),
                    "paths_m": sum(by_type.get(t, 0.0) for t in PATH_TYPES),
                    "protected_m": sum(by_type.get(t, 0.0) for t in cycling.protected_types),
                }
            )
        lengths = pd.DataFrame(
            rows,
            index=metrics.index,
            columns=["total_m", "weighted_m", "bike_lanes_m", "paths_m", "protected_m"],
        )

        metrics["total_cycling_km"] = lengths["total_m"] / 1000
        metrics["bike_lanes_km"] = lengths["bike_lanes_m"] / 1000
        metrics["paths_km"] = lengths["paths_m"] / 1000
        metrics["protected_km"] = lengths["protected_m"] / 1000
        metrics["density_per_km2"] = self.density(lengths["weighted_m"] / 1000, metrics["area_km2"])
        metrics["transit_score"] = [float(self.transit_scores.get(i, 0) or 0) for i in metrics["id"]]
        minutes = commute_times(neighbourhoods, self.commute_overrides, self.config)
        metrics["commute_minutes"] = [minutes[i] for i in metrics["id"]]

        threshold = self.threshold(
            "cycling_density",
            dict(zip(metrics["id"], metrics["density_per_km2"], strict=True)),
            fallback=self.config.normalization.cycling_density_fallback,
        )

        scores = []
        for row in metrics.to_dict("records"):
            components = {
                "density": normalize(row["density_per_km2"], threshold),
                "protected": min(1.0, row["protected_km"] / cycling.protected_km_for_full_score),
                "centrality": max(
                    0.0,
                    (cycling.max_commute_minutes - row["commute_minutes"])
                    / cycling.max_commute_minutes,
                ),
                "transit_integration": row["transit_score"] / 100,
            }
            scores.append(self.scorer.score(row["id"], components).score)
        metrics["bike_score"] = scores

        metrics = self.round_columns(
            metrics,
            {
                "total_cycling_km": 1,
                "bike_lanes_km": 1,
                "paths_km": 1,
                "protected_km": 1,
                "density_per_km2": 2,
                "area_km2": 2,
            },
        )

        return metrics[
            [
                "id",
                "name",
                "bike_score",
                "total_cycling_km",
                "bike_lanes_km",
                "paths_km",
                "protected_km",
                "density_per_km2",
                "transit_score",
                "commute_minutes",
                "area_km2",
            ]
        ]


def build_bike_scores(
    df: pd.DataFrame,
    neighbourhoods: Sequence[Neighbourhood],
    execution_date: str,
    transit_scores: Mapping[str, float] | None = None,
    commute_times: Mapping[str, float] | None = None,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for building bike score metrics."""
    builder = BikeScoreBuilder(config, transit_scores=transit_scores, commute_times=commute_times)
    result = builder.run(df, neighbourhoods, execution_date)
    return result.to_dict()
