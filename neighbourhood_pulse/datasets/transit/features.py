"""
Neighbourhood Pulse - Transit Score Builder

Builds per-neighbourhood stop counts and the transit score.

Score components (total = 100):
    1. Rail access (40): with rail stops inside, min(40, 25 + 5 per stop);
       otherwise by distance from the neighbourhood centroid to the nearest
       rail stop: under 1 km 20, under 2 km 10, under 5 km 5
    2. Bus stop density (40): min(40, 2 x stops per km²)
    3. Bus coverage (20): min(20, stops / 5)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BaseMetricBuilder, MetricDefinition
from neighbourhood_pulse.datasets.transit.preprocess import BUS, RAIL
from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.geo.features import RawFeature
from neighbourhood_pulse.geo.geometry import haversine_km
from neighbourhood_pulse.scoring.composite import CompositeScorer
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)


class TransitScoreBuilder(BaseMetricBuilder):
    """
    Metric builder for transit access.
    """

    def __init__(self, config: Settings | None = None):
        """Initialize transit score builder."""
        super().__init__(config)
        self.scorer = CompositeScorer(self.config.scores.transit, name="transit")

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "transit"

    def get_metric_definitions(self) -> list[MetricDefinition]:
        """Return metric definitions."""
        return [
            MetricDefinition(
                name="transit_score",
                description="Composite transit access score",
                dtype="int",
                source_columns=["category"],
                aggregation="score",
                min_value=0,
                max_value=100,
            ),
            MetricDefinition(
                name="rail_stops",
                description="Rail stops inside the neighbourhood",
                dtype="int",
                source_columns=["category"],
                aggregation="count",
                min_value=0,
            ),
            MetricDefinition(
                name="bus_stops",
                description="Bus stops inside the neighbourhood",
                dtype="int",
                source_columns=["category"],
                aggregation="count",
                min_value=0,
            ),
            MetricDefinition(
                name="bus_stop_density",
                description="Bus stops per km²",
                dtype="float",
                source_columns=["category", "area_km2"],
                aggregation="density",
                min_value=0,
            ),
            MetricDefinition(
                name="distance_to_rail_km",
                description="Distance from the centroid to the nearest rail stop",
                dtype="float",
                source_columns=["lat", "lon"],
                nullable=True,
                min_value=0,
            ),
        ]

    def rail_points(self, rail_count: float, distance_km: float | None) -> float:
        """Rail access points before weighting."""
        transit = self.config.transit
        max_points = self.config.scores.transit.components.get("rail_access", 40.0)
        if rail_count > 0:
            return min(max_points, transit.rail_base_points + transit.rail_points_per_stop * rail_count)
        if distance_km is None:
            return 0.0
        for limit_km in sorted(transit.rail_distance_points):
            if distance_km < limit_km:
                return transit.rail_distance_points[limit_km]
        return 0.0

    def nearest_rail_km(
        self, neighbourhood: Neighbourhood, rail_stops: list[RawFeature]
    ) -> float | None:
        """Haversine distance from the neighbourhood centroid to the closest rail stop."""
        centroid = neighbourhood.centroid
        if centroid is None or not rail_stops:
            return None
        radius = self.config.geometry.earth_radius_km
        return min(
            haversine_km(centroid[1], centroid[0], stop.coordinates[1], stop.coordinates[0], radius)
            for stop in rail_stops
        )

    def build_metrics(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> pd.DataFrame:
        """Build transit metrics from classified stops."""
        logger.info(f"Building transit metrics from {len(df)} stops")
        transit = self.config.transit
        rail_weight = self.config.scores.transit.components.get("rail_access", 40.0)

        metrics = self.base_frame(neighbourhoods)
        assignment = self.assign(df, neighbourhoods)

        # Distances use every rail stop, including ones outside all boundaries
        rail_stops = [
            item.feature
            for items in assignment.by_neighbourhood.values()
            for item in items
            if item.feature.category == RAIL
        ] + [f for f in assignment.unassigned if f.category == RAIL]

        metrics["rail_stops"] = [int(assignment.count(n.id, RAIL)) for n in neighbourhoods]
        metrics["bus_stops"] = [int(assignment.count(n.id, BUS)) for n in neighbourhoods]
        metrics["bus_stop_density"] = self.density(metrics["bus_stops"], metrics["area_km2"])
        metrics["distance_to_rail_km"] = [
            self.nearest_rail_km(n, rail_stops) for n in neighbourhoods
        ]

        scores = []
        for row in metrics.to_dict("records"):
            distance = row["distance_to_rail_km"]
            if distance is not None and math.isnan(distance):
                distance = None
            components = {
                "rail_access": self.rail_points(row["rail_stops"], distance) / rail_weight,
                "bus_density": min(
                    1.0, row["bus_stop_density"] / transit.bus_density_for_full_score
                ),
                "coverage": min(1.0, row["bus_stops"] / transit.bus_stops_for_full_coverage),
            }
            scores.append(self.scorer.score(row["id"], components).score)
        metrics["transit_score"] = scores

        metrics = self.round_columns(
            metrics, {"bus_stop_density": 1, "distance_to_rail_km": 1, "area_km2": 2}
        )

        return metrics[
            [
                "id",
                "name",
                "transit_score",
                "rail_stops",
                "bus_stops",
                "bus_stop_density",
                "distance_to_rail_km",
                "area_km2",
            ]
        ]


def build_transit_scores(
    df: pd.DataFrame,
    neighbourhoods: Sequence[Neighbourhood],
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for building transit metrics."""
    builder = TransitScoreBuilder(config)
    result = builder.run(df, neighbourhoods, execution_date)
    return result.to_dict()
