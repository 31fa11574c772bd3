"""
Neighbourhood Pulse - Spatial Assignment

Assigns raw features to the neighbourhood whose boundary contains the
feature's representative point.

Rules:
- Neighbourhoods are tried in ascending id order; the first match wins and
  no feature is ever assigned twice, even where boundaries overlap
- Features without a usable representative point are counted as missing
  geometry and excluded
- Features that match nothing land in an explicit unassigned bucket. A growing
  unassigned count usually means the boundary data is stale.

Tables without coordinates are placed by ward (`assign_with_fallback`) or by
zone name (`assign_by_name`).

Usage:
    result = assign_features(features, boundary_set.neighbourhoods, dataset="parks")
    result.count("the-glebe")
    result.unassigned_count
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.geo.features import RawFeature
from neighbourhood_pulse.geo.geometry import Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assignment:
    """A (feature, neighbourhood) pairing with an optional fractional weight."""

    feature: RawFeature
    neighbourhood_id: str
    weight: float = 1.0


@dataclass
class AssignmentResult:
    """Neighbourhood -> assignments map plus the unassigned bucket."""

    dataset: str
    by_neighbourhood: dict[str, list[Assignment]]
    unassigned: list[RawFeature] = field(default_factory=list)
    missing_geometry: int = 0
    fallback_assigned: int = 0
    unresolved_ids: list[str] = field(default_factory=list)

    def assignments_for(self, neighbourhood_id: str) -> list[Assignment]:
        return self.by_neighbourhood.get(neighbourhood_id, [])

    def features_for(self, neighbourhood_id: str) -> list[RawFeature]:
        return [a.feature for a in self.assignments_for(neighbourhood_id)]

    def count(self, neighbourhood_id: str, category: str | None = None) -> float:
        """Weighted feature count, optionally restricted to one category."""
        return sum(
            a.weight
            for a in self.assignments_for(neighbourhood_id)
            if category is None or a.feature.category == category
        )

    def total(self, neighbourhood_id: str, category: str | None = None) -> float:
        """Weighted sum of feature magnitudes."""
        return sum(
            a.weight * a.feature.magnitude
            for a in self.assignments_for(neighbourhood_id)
            if category is None or a.feature.category == category
        )

    @property
    def assigned_count(self) -> int:
        """Number of distinct features assigned to at least one neighbourhood."""
        seen = set()
        for assignments in self.by_neighbourhood.values():
            for a in assignments:
                seen.add(id(a.feature))
        return len(seen)

    @property
    def unassigned_count(self) -> int:
        return len(self.unassigned)

    def to_dict(self) -> dict[str, Any]:
        """Summary for logging."""
        return {
            "dataset": self.dataset,
            "assigned": self.assigned_count,
            "unassigned": self.unassigned_count,
            "missing_geometry": self.missing_geometry,
            "fallback_assigned": self.fallback_assigned,
            "unresolved_ids": len(self.unresolved_ids),
            "neighbourhoods_with_features": sum(1 for v in self.by_neighbourhood.values() if v),
        }


def order_neighbourhoods(neighbourhoods: Iterable[Neighbourhood]) -> list[Neighbourhood]:
    """The assignment order: ascending neighbourhood id."""
    return sorted(neighbourhoods, key=lambda n: n.id)


def find_neighbourhood(point: Point, neighbourhoods: Sequence[Neighbourhood]) -> str | None:
    """Id of the first neighbourhood (in the given order) containing the point."""
    for neighbourhood in neighbourhoods:
        if neighbourhood.contains(point):
            return neighbourhood.id
    return None


def assign_features(
    features: Iterable[RawFeature],
    neighbourhoods: Iterable[Neighbourhood],
    dataset: str = "",
) -> AssignmentResult:
    """
    Assign each feature to at most one neighbourhood.

    Args:
        features: Raw features to place
        neighbourhoods: The neighbourhood set (any order; sorted by id here)
        dataset: Dataset name for logging

    Returns:
        AssignmentResult with an entry (possibly empty) for every neighbourhood
    """
    ordered = order_neighbourhoods(neighbourhoods)
    result = AssignmentResult(
        dataset=dataset,
        by_neighbourhood={n.id: [] for n in ordered},
    )

    for feature in features:
        point = feature.representative_point
        if point is None:
            result.missing_geometry += 1
            continue

        neighbourhood_id = find_neighbourhood(point, ordered)
        if neighbourhood_id is None:
            result.unassigned.append(feature)
        else:
            result.by_neighbourhood[neighbourhood_id].append(Assignment(feature, neighbourhood_id))

    _log_result(result)
    return result


def assign_with_fallback(
    features: Iterable[RawFeature],
    neighbourhoods: Iterable[Neighbourhood],
    key_attribute: str,
    key_lookup: dict[str, list[str]],
    dataset: str = "",
) -> AssignmentResult:
    """
    Spatial assignment with a keyed fallback (e.g. 311 requests by ward).

    Features that have no usable point, or whose point matches no boundary,
    are spread across the neighbourhoods listed for their key, weighted by
    each neighbourhood's share of the listed population. Features whose key
    is unknown, or whose listed neighbourhoods have no population, stay
    unassigned. Listed ids that name no neighbourhood are skipped and
    reported in `unresolved_ids`.
    """
    ordered = order_neighbourhoods(neighbourhoods)
    by_id = {n.id: n for n in ordered}
    result = AssignmentResult(
        dataset=dataset,
        by_neighbourhood={n.id: [] for n in ordered},
        unresolved_ids=sorted(
            {nid for ids in key_lookup.values() for nid in ids if nid not in by_id}
        ),
    )
    if result.unresolved_ids:
        logger.warning(
            f"{len(result.unresolved_ids)} {key_attribute} fallback ids match no neighbourhood",
            extra={"dataset": dataset, "unresolved_ids": result.unresolved_ids},
        )

    for feature in features:
        point = feature.representative_point
        neighbourhood_id = None
        if point is None:
            result.missing_geometry += 1
        else:
            neighbourhood_id = find_neighbourhood(point, ordered)

        if neighbourhood_id is not None:
            result.by_neighbourhood[neighbourhood_id].append(Assignment(feature, neighbourhood_id))
            continue

        key = feature.get(key_attribute)
        candidates = [by_id[nid] for nid in key_lookup.get(str(key), []) if nid in by_id]
        total_population = sum(n.population for n in candidates)
        if key is None or total_population <= 0:
            result.unassigned.append(feature)
            continue

        for neighbourhood in candidates:
            if neighbourhood.population <= 0:
                continue
            weight = neighbourhood.population / total_population
            result.by_neighbourhood[neighbourhood.id].append(
                Assignment(feature, neighbourhood.id, weight)
            )
        result.fallback_assigned += 1

    _log_result(result)
    return result


# =============================================================================
# Name Matching
# =============================================================================


def _name_key(name: Any) -> str:
    return " ".join(str(name).split()).casefold()


def _name_base(name: Any) -> str:
    """Part of a zone name before " - " ("Glebe - Dows Lake" -> "glebe")."""
    return _name_key(str(name).split(" - ")[0])


@dataclass
class NameIndex:
    """
    Zone name -> neighbourhood id lookup.

    Built from each boundary's upstream zone name, then the neighbourhood's
    display name. Names compare case-insensitively with whitespace collapsed.
    When two neighbourhoods share a name the smaller id keeps it.
    """

    exact: dict[str, str] = field(default_factory=dict)
    bases: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def from_neighbourhoods(cls, neighbourhoods: Iterable[Neighbourhood]) -> NameIndex:
        index = cls()
        for neighbourhood in order_neighbourhoods(neighbourhoods):
            names = [b.name for b in neighbourhood.boundaries if b.name]
            names.append(neighbourhood.name)
            for name in names:
                index.exact.setdefault(_name_key(name), neighbourhood.id)
                index.bases.append((_name_base(name), neighbourhood.id))
        return index

    def find(self, name: Any) -> str | None:
        """Exact name first, then the first entry with the same base name."""
        if name is None or not str(name).strip():
            return None
        neighbourhood_id = self.exact.get(_name_key(name))
        if neighbourhood_id is not None:
            return neighbourhood_id
        base = _name_base(name)
        for candidate, neighbourhood_id in self.bases:
            if candidate == base:
                return neighbourhood_id
        return None


def assign_by_name(
    features: Iterable[RawFeature],
    neighbourhoods: Iterable[Neighbourhood],
    name_attribute: str,
    dataset: str = "",
) -> AssignmentResult:
    """
    Assign features that carry a zone name instead of a location.

    Police reports, for example, are published with the neighbourhood name
    of the offence rather than its coordinates. Features whose name is
    missing or matches nothing land in the unassigned bucket.
    """
    ordered = order_neighbourhoods(neighbourhoods)
    index = NameIndex.from_neighbourhoods(ordered)
    result = AssignmentResult(
        dataset=dataset,
        by_neighbourhood={n.id: [] for n in ordered},
    )

    for feature in features:
        neighbourhood_id = index.find(feature.get(name_attribute))
        if neighbourhood_id is None:
            result.unassigned.append(feature)
        else:
            result.by_neighbourhood[neighbourhood_id].append(Assignment(feature, neighbourhood_id))

    logger.info(
        f"Matched {result.assigned_count} {dataset or 'features'} to neighbourhoods by name",
        extra=result.to_dict(),
    )
    if result.unassigned_count > 0:
        unmatched = sorted({str(f.get(name_attribute)) for f in result.unassigned})
        logger.warning(
            f"{result.unassigned_count} {dataset or 'features'} matched no neighbourhood name",
            extra={"dataset": dataset, "unassigned": result.unassigned_count, "names": unmatched[:20]},
        )
    return result


def _log_result(result: AssignmentResult) -> None:
    logger.info(
        f"Assigned {result.assigned_count} {result.dataset or 'features'} to neighbourhoods",
        extra=result.to_dict(),
    )
    if result.unassigned_count > 0:
        logger.warning(
            f"{result.unassigned_count} {result.dataset or 'features'} fell outside every boundary",
            extra={"dataset": result.dataset, "unassigned": result.unassigned_count},
        )
    if result.missing_geometry > 0:
        logger.warning(
            f"{result.missing_geometry} {result.dataset or 'features'} have no usable geometry",
            extra={"dataset": result.dataset, "missing_geometry": result.missing_geometry},
        )
