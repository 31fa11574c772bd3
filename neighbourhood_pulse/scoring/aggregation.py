"""
Neighbourhood Pulse - Area-Weighted Aggregation

Rolls attributes of finer polygons (census tracts) up to neighbourhoods.

A tract belongs to the neighbourhood containing the vertex-mean centroid of
its exterior ring; tracts are never split. Each neighbourhood's value is
sum(value_i * area_i) / sum(area_i) over its matched tracts, where area_i is
the tract's own unprojected shoelace area. A neighbourhood with no matched
tract gets None for every attribute, which is not the same as 0.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from neighbourhood_pulse.geo.assignment import assign_features
from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.geo.features import GeometryType, RawFeature
from neighbourhood_pulse.geo.geometry import polygon_area

logger = logging.getLogger(__name__)


def _finite(value: Any) -> float | None:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "y"}
    if value is None:
        return False
    try:
        return bool(value) and not math.isnan(float(value))
    except (TypeError, ValueError):
        return bool(value)


@dataclass
class TractAggregate:
    """Aggregated tract attributes for one neighbourhood."""

    neighbourhood_id: str
    tract_count: int = 0
    total_area: float = 0.0
    values: dict[str, float | None] = field(default_factory=dict)
    priority_areas: int = 0
    labels: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "neighbourhood_id": self.neighbourhood_id,
            "tract_count": self.tract_count,
            "total_area": self.total_area,
            "values": self.values,
            "priority_areas": self.priority_areas,
            "labels": self.labels,
        }


@dataclass
class AggregationResult:
    """Per-neighbourhood aggregates plus match totals."""

    by_neighbourhood: dict[str, TractAggregate]
    matched: int = 0
    unmatched: int = 0

    def get(self, neighbourhood_id: str, attribute: str) -> float | None:
        aggregate = self.by_neighbourhood.get(neighbourhood_id)
        if aggregate is None:
            return None
        return aggregate.values.get(attribute)

    def to_dict(self) -> dict[str, Any]:
        return {
            "matched": self.matched,
            "unmatched": self.unmatched,
            "neighbourhoods_with_data": sum(
                1 for a in self.by_neighbourhood.values() if a.tract_count > 0
            ),
        }


def aggregate_area_weighted(
    neighbourhoods: Iterable[Neighbourhood],
    tracts: Iterable[RawFeature],
    attributes: list[str],
    priority_attribute: str | None = "is_priority_area",
    label_attribute: str | None = "transect",
) -> AggregationResult:
    """
    Area-weighted mean of tract attributes per neighbourhood.

    Args:
        neighbourhoods: Target neighbourhoods
        tracts: Polygon features carrying the attributes
        attributes: Attribute names to aggregate
        priority_attribute: Boolean attribute counted per neighbourhood
        label_attribute: Categorical attribute collected as distinct labels

    Returns:
        AggregationResult with an entry for every neighbourhood
    """
    tracts = [t for t in tracts if t.geometry_type == GeometryType.POLYGON]
    assignment = assign_features(tracts, neighbourhoods, dataset="census tracts")

    result = AggregationResult(
        by_neighbourhood={},
        matched=assignment.assigned_count,
        unmatched=assignment.unassigned_count + assignment.missing_geometry,
    )

    for neighbourhood_id, assignments in assignment.by_neighbourhood.items():
        weighted_sums = dict.fromkeys(attributes, 0.0)
        weight_totals = dict.fromkeys(attributes, 0.0)
        aggregate = TractAggregate(neighbourhood_id=neighbourhood_id)

        for item in assignments:
            tract = item.feature
            area = polygon_area(tract.coordinates[0])
            aggregate.tract_count += 1
            aggregate.total_area += area

            for attribute in attributes:
                value = _finite(tract.get(attribute))
                if value is None:
                    continue
                weighted_sums[attribute] += value * area
                weight_totals[attribute] += area

            if priority_attribute and _truthy(tract.get(priority_attribute)):
                aggregate.priority_areas += 1

            if label_attribute:
                label = tract.get(label_attribute)
                if label is not None and str(label) and str(label) not in aggregate.labels:
                    aggregate.labels.append(str(label))

        aggregate.values = {
            attribute: (
                weighted_sums[attribute] / weight_totals[attribute]
                if weight_totals[attribute] > 0
                else None
            )
            for attribute in attributes
        }
        result.by_neighbourhood[neighbourhood_id] = aggregate

    logger.info("Aggregated tract attributes", extra=result.to_dict())
    return result
