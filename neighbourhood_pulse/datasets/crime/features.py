"""
Neighbourhood Pulse - Crime Metrics Builder

Per-neighbourhood offence totals and counts by offence category. Offences
are matched to neighbourhoods through the upstream zone names of their
boundaries: exact name first, then the part of the name before " - "
("Glebe - Dows Lake" matches "Glebe").
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from collections.abc import Sequence
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BaseMetricBuilder, MetricDefinition
from neighbourhood_pulse.datasets.base.sources import frame_to_features
from neighbourhood_pulse.geo.assignment import assign_by_name
from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)


class CrimeMetricsBuilder(BaseMetricBuilder):
    """
    Metric builder for police-reported offences.
    """

    def __init__(self, config: Settings | None = None):
        """Initialize crime metrics builder."""
        super().__init__(config)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "crime"

    def get_metric_definitions(self) -> list[MetricDefinition]:
        """Return metric definitions."""
        return [
            MetricDefinition(
                name="crime_total",
                description="Offences matched to the neighbourhood by name",
                dtype="int",
                source_columns=["area_name"],
                aggregation="count",
                min_value=0,
            ),
            MetricDefinition(
                name="crime_per_1000",
                description="Offences per 1000 residents",
                dtype="float",
                source_columns=["area_name", "population"],
                aggregation="rate",
                min_value=0,
            ),
            MetricDefinition(
                name="top_crime_category",
                description="Most frequent offence category",
                dtype="string",
                source_columns=["category"],
                nullable=True,
            ),
            MetricDefinition(
                name="crime_by_category",
                description="Offence counts by category as a JSON object",
                dtype="string",
                source_columns=["category"],
            ),
        ]

    def build_metrics(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> pd.DataFrame:
        """Build crime metrics from named offences."""
        logger.info(f"Building crime metrics from {len(df)} offences")

        metrics = self.base_frame(neighbourhoods)
        offences = frame_to_features(df, source=self.get_dataset_name())
        assignment = assign_by_name(
            offences, neighbourhoods, name_attribute="area_name", dataset=self.get_dataset_name()
        )
        self.record_assignment(assignment)

        totals = []
        top_categories = []
        by_category = []
        for neighbourhood in neighbourhoods:
            counts = Counter(f.category for f in assignment.features_for(neighbourhood.id))
            totals.append(sum(counts.values()))
            top = min(counts.items(), key=lambda kv: (-kv[1], kv[0]))[0] if counts else None
            top_categories.append(top)
            by_category.append(json.dumps(dict(sorted(counts.items()))))

        metrics["crime_total"] = pd.Series(totals, index=metrics.index, dtype=int)
        metrics["crime_per_1000"] = (
            self.density(metrics["crime_total"], metrics["population"]) * 1000
        )
        metrics["top_crime_category"] = top_categories
        metrics["crime_by_category"] = by_category

        metrics = self.round_columns(metrics, {"crime_per_1000": 1})

        return metrics[
            ["id", "name", "crime_total", "crime_per_1000", "top_crime_category", "crime_by_category"]
        ]


def build_crime_metrics(
    df: pd.DataFrame,
    neighbourhoods: Sequence[Neighbourhood],
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for building crime metrics."""
    builder = CrimeMetricsBuilder(config)
    result = builder.run(df, neighbourhoods, execution_date)
    return result.to_dict()
