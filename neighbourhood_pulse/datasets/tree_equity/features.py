"""
Neighbourhood Pulse - Tree Equity Builder

Area-weighted canopy cover and tree equity score per neighbourhood from
census tracts matched by centroid. Neighbourhoods without a matched tract get
empty values rather than 0.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import pandas as pd

from neighbourhood_pulse.datasets.base import BaseMetricBuilder, MetricDefinition
from neighbourhood_pulse.datasets.base.sources import frame_to_features
from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.scoring.aggregation import aggregate_area_weighted
from neighbourhood_pulse.scoring.rounding import round_series
from neighbourhood_pulse.shared.config import Settings

logger = logging.getLogger(__name__)


class TreeEquityBuilder(BaseMetricBuilder):
    """
    Metric builder for tree canopy and tree equity.
    """

    def __init__(self, config: Settings | None = None):
        """Initialize tree equity builder."""
        super().__init__(config)

    @property
    def attributes(self) -> list[str]:
        return list(self.config.aggregation.attributes)

    def get_dataset_name(self) -> str:
        """Return dataset name."""
        return "tree_equity"

    def get_metric_definitions(self) -> list[MetricDefinition]:
        """Return metric definitions."""
        definitions = [
            MetricDefinition(
                name=attribute,
                description=f"Area-weighted mean {attribute} of matched census tracts",
                dtype="float",
                source_columns=[attribute, "rings"],
                aggregation="weighted_mean",
                nullable=True,
                min_value=0,
            )
            for attribute in self.attributes
        ]
        definitions += [
            MetricDefinition(
                name="census_tract_count",
                description="Census tracts whose centroid lies in the neighbourhood",
                dtype="int",
                source_columns=["rings"],
                aggregation="count",
                min_value=0,
            ),
            MetricDefinition(
                name="priority_areas",
                description="Matched tracts flagged as priority areas",
                dtype="int",
                source_columns=["is_priority_area"],
                aggregation="count",
                min_value=0,
            ),
            MetricDefinition(
                name="transects",
                description="Distinct urban transect labels of matched tracts",
                dtype="string",
                source_columns=["transect"],
                nullable=True,
            ),
        ]
        return definitions

    def build_metrics(
        self, df: pd.DataFrame, neighbourhoods: Sequence[Neighbourhood]
    ) -> pd.DataFrame:
        """Build tree equity metrics from census tracts."""
        logger.info(f"Building tree equity metrics from {len(df)} census tracts")

        metrics = self.base_frame(neighbourhoods)
        tracts = frame_to_features(df, source=self.get_dataset_name())
        aggregation = aggregate_area_weighted(neighbourhoods, tracts, self.attributes)
        self._assignment = aggregation.to_dict()

        for attribute in self.attributes:
            values = pd.Series(
                [aggregation.get(n.id, attribute) for n in neighbourhoods],
                index=metrics.index,
                dtype="float",
            )
            if self.config.aggregation.round_results:
                values = round_series(values).astype("Int64")
            metrics[attribute] = values

        aggregates = [aggregation.by_neighbourhood[n.id] for n in neighbourhoods]
        metrics["census_tract_count"] = [a.tract_count for a in aggregates]
        metrics["priority_areas"] = [a.priority_areas for a in aggregates]
        metrics["transects"] = [", ".join(a.labels) for a in aggregates]

        if aggregation.unmatched:
            logger.warning(
                f"{aggregation.unmatched} census tracts matched no neighbourhood",
                extra={"unmatched": aggregation.unmatched},
            )

        return metrics[
            ["id", "name", *self.attributes, "census_tract_count", "priority_areas", "transects"]
        ]


def build_tree_equity(
    df: pd.DataFrame,
    neighbourhoods: Sequence[Neighbourhood],
    execution_date: str,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Convenience function for building tree equity metrics."""
    builder = TreeEquityBuilder(config)
    result = builder.run(df, neighbourhoods, execution_date)
    return result.to_dict()
