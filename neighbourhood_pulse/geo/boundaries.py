"""
Neighbourhood Pulse - Neighbourhood Boundaries

Builds the immutable neighbourhood set a run is scored against:
- Groups upstream zone polygons (e.g. City of Ottawa ONS areas) into curated
  neighbourhoods using the neighbourhood mapping configuration
- Splits ArcGIS ring lists into exterior rings and holes
- Derives area, population and density per neighbourhood

Neighbourhoods are returned sorted by id. That order is the order spatial
assignment tries them in, so overlapping boundaries resolve the same way on
every run.

Usage:
    mapping = load_neighbourhood_mapping("configs/neighbourhoods.yaml")
    boundary_set = load_boundary_set("data/raw/boundaries.json", mapping)
    for neighbourhood in boundary_set.neighbourhoods:
        print(neighbourhood.id, neighbourhood.area_km2)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from functools import cached_property
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from neighbourhood_pulse.geo.geometry import (
    EARTH_RADIUS_KM,
    Boundary,
    Point,
    boundary_area_km2,
    centroid,
    clean_ring,
    point_in_multipolygon,
    point_in_polygon,
)
from neighbourhood_pulse.shared.errors import MissingInputError

logger = logging.getLogger(__name__)


# =============================================================================
# Neighbourhood Mapping
# =============================================================================


class NeighbourhoodSpec(BaseModel):
    """One curated neighbourhood and the upstream zones it unions."""

    model_config = ConfigDict(frozen=True)

    name: str
    zone_ids: tuple[str, ...] = ()

    @field_validator("zone_ids", mode="before")
    @classmethod
    def coerce_zone_ids(cls, v: Any) -> tuple[str, ...]:
        """Zone ids are compared as strings whatever the YAML type."""
        if v is None:
            return ()
        return tuple(str(zone_id) for zone_id in v)


class NeighbourhoodMapping(BaseModel):
    """Curated neighbourhood id -> spec. Loaded once per run."""

    model_config = ConfigDict(frozen=True)

    neighbourhoods: dict[str, NeighbourhoodSpec]

    def zone_to_neighbourhood(self) -> dict[str, str]:
        """Reverse lookup; a zone claimed twice goes to the smaller id."""
        lookup: dict[str, str] = {}
        for neighbourhood_id in sorted(self.neighbourhoods):
            for zone_id in self.neighbourhoods[neighbourhood_id].zone_ids:
                if zone_id in lookup:
                    logger.warning(
                        f"Zone {zone_id} mapped to both {lookup[zone_id]} and "
                        f"{neighbourhood_id}; keeping {lookup[zone_id]}"
                    )
                    continue
                lookup[zone_id] = neighbourhood_id
        return lookup


def load_neighbourhood_mapping(path: str | Path) -> NeighbourhoodMapping:
    """
    Load the neighbourhood mapping YAML.

    Raises:
        MissingInputError: If the file does not exist or defines nothing
    """
    path = Path(path)
    if not path.exists():
        raise MissingInputError.for_file(str(path), "neighbourhood mapping")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    mapping = NeighbourhoodMapping(neighbourhoods=raw.get("neighbourhoods") or {})
    if not mapping.neighbourhoods:
        raise MissingInputError(f"Neighbourhood mapping {path} defines no neighbourhoods")

    logger.info(
        f"Loaded mapping for {len(mapping.neighbourhoods)} neighbourhoods",
        extra={"path": str(path)},
    )
    return mapping


# =============================================================================
# Neighbourhood
# =============================================================================


@dataclass(frozen=True)
class Neighbourhood:
    """
    A curated neighbourhood: one display identity over one or more boundaries.

    Area and population come from the boundary zones when the source supplies
    them; area otherwise falls back to the geodesic area of the polygons.
    """

    id: str
    name: str
    boundaries: tuple[Boundary, ...] = ()
    radius_km: float = field(default=EARTH_RADIUS_KM, repr=False)

    @cached_property
    def area_km2(self) -> float:
        if not self.boundaries:
            return 0.0
        # Zones with a published area cover all of their parts
        published = {
            b.source_id for b in self.boundaries if b.source_id is not None and b.area_km2
        }
        total = 0.0
        for boundary in self.boundaries:
            if boundary.area_km2 is not None and boundary.area_km2 > 0:
                total += boundary.area_km2
            elif boundary.source_id not in published:
                total += boundary_area_km2(boundary, self.radius_km)
        return total

    @cached_property
    def population(self) -> float:
        return float(sum(b.population or 0 for b in self.boundaries))

    @property
    def density(self) -> float:
        """Residents per km²; 0 when the area is 0."""
        if self.area_km2 <= 0:
            return 0.0
        return self.population / self.area_km2

    @cached_property
    def centroid(self) -> Point | None:
        """Vertex mean of the first boundary's exterior ring."""
        if not self.boundaries:
            return None
        return centroid(self.boundaries[0].exterior)

    @property
    def has_geometry(self) -> bool:
        return bool(self.boundaries)

    @property
    def zone_ids(self) -> tuple[str, ...]:
        return tuple(b.source_id for b in self.boundaries if b.source_id is not None)

    def contains(self, point: Point) -> bool:
        """True if any boundary of this neighbourhood contains the point."""
        return point_in_multipolygon(point, self.boundaries)


@dataclass(frozen=True)
class BoundarySet:
    """The loaded, ordered neighbourhood set plus load diagnostics."""

    neighbourhoods: tuple[Neighbourhood, ...]
    missing_geometry: int = 0
    unmapped_zones: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.neighbourhoods)

    def __iter__(self):
        return iter(self.neighbourhoods)

    def get(self, neighbourhood_id: str) -> Neighbourhood | None:
        for neighbourhood in self.neighbourhoods:
            if neighbourhood.id == neighbourhood_id:
                return neighbourhood
        return None

    @property
    def ids(self) -> list[str]:
        return [n.id for n in self.neighbourhoods]


# =============================================================================
# Ring Grouping
# =============================================================================


def rings_to_boundaries(
    rings: list[Any] | None,
    source_id: str | None = None,
    name: str | None = None,
    population: float | None = None,
    area_km2: float | None = None,
) -> tuple[Boundary, ...]:
    """
    Group an ArcGIS-style ring list into boundaries.

    The first usable ring is an exterior. Each later ring whose first vertex
    lies inside an exterior already collected, and outside that exterior's
    holes, becomes a hole of that exterior; otherwise it starts a new exterior
    (a disjoint part, or an island inside a hole). Unusable rings are dropped.

    Zone population and area are attached to the first boundary only, so
    summing over boundaries never double counts them.
    """
    if not rings:
        return ()

    groups: list[tuple[tuple[Point, ...], list[tuple[Point, ...]]]] = []
    for raw_ring in rings:
        ring = clean_ring(raw_ring)
        if ring is None:
            continue

        parent = None
        for exterior, holes in groups:
            if point_in_polygon(ring[0], exterior) and not any(
                point_in_polygon(ring[0], hole) for hole in holes
            ):
                parent = holes
                break

        if parent is None:
            groups.append((ring, []))
        else:
            parent.append(ring)

    return tuple(
        Boundary(
            exterior=exterior,
            holes=tuple(holes),
            source_id=source_id,
            name=name,
            population=population if index == 0 else None,
            area_km2=area_km2 if index == 0 else None,
        )
        for index, (exterior, holes) in enumerate(groups)
    )


# =============================================================================
# Loading
# =============================================================================


def _as_float(value: Any) -> float | None:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result


def _zones_from_arcgis(
    payload: dict[str, Any],
    id_field: str,
    name_field: str,
    population_field: str,
    area_field: str | None,
) -> tuple[list[tuple[str, str, tuple[Boundary, ...]]], int]:
    """Parse an ArcGIS FeatureSet into (zone_id, name, boundaries) triples."""
    zones = []
    missing = 0
    for feature in payload.get("features") or []:
        attributes = feature.get("attributes") or {}
        zone_id = attributes.get(id_field)
        if zone_id is None:
            missing += 1
            continue

        geometry = feature.get("geometry") or {}
        boundaries = rings_to_boundaries(
            geometry.get("rings"),
            source_id=str(zone_id),
            name=attributes.get(name_field),
            population=_as_float(attributes.get(population_field)),
            area_km2=_as_float(attributes.get(area_field)) if area_field else None,
        )
        if not boundaries:
            missing += 1
            logger.warning(f"Zone {zone_id} has no usable geometry; excluded")
            continue

        zones.append((str(zone_id), attributes.get(name_field) or str(zone_id), boundaries))

    return zones, missing


def _neighbourhoods_from_processed(
    payload: dict[str, Any], radius_km: float
) -> tuple[list[Neighbourhood], int]:
    """Parse the processed `{"neighbourhoods": [...]}` form."""
    raw = payload.get("neighbourhoods") or []
    if isinstance(raw, dict):
        raw = list(raw.values())

    neighbourhoods = []
    missing = 0
    for entry in raw:
        neighbourhood_id = entry.get("id")
        if neighbourhood_id is None:
            missing += 1
            continue

        boundaries: list[Boundary] = []
        entry_boundaries = entry.get("boundaries") or []
        for boundary in entry_boundaries:
            parts = rings_to_boundaries(
                boundary.get("rings"),
                source_id=str(boundary["id"]) if boundary.get("id") is not None else None,
                name=boundary.get("name"),
                population=_as_float(boundary.get("population")),
                area_km2=_as_float(boundary.get("area_km2")),
            )
            if not parts:
                missing += 1
            boundaries.extend(parts)

        # Neighbourhood-level figures apply when the boundaries carry none
        population = _as_float(entry.get("population"))
        area = _as_float(entry.get("area_km2"))
        if boundaries and population is not None and all(b.population is None for b in boundaries):
            boundaries[0] = replace(boundaries[0], population=population)
        if boundaries and area is not None and all(b.area_km2 is None for b in boundaries):
            boundaries[0] = replace(boundaries[0], area_km2=area)

        neighbourhoods.append(
            Neighbourhood(
                id=str(neighbourhood_id),
                name=entry.get("name") or str(neighbourhood_id),
                boundaries=tuple(boundaries),
                radius_km=radius_km,
            )
        )

    return neighbourhoods, missing


def build_neighbourhoods(
    zones: list[tuple[str, str, tuple[Boundary, ...]]],
    mapping: NeighbourhoodMapping | None,
    radius_km: float = EARTH_RADIUS_KM,
) -> tuple[list[Neighbourhood], list[str]]:
    """
    Group zones into neighbourhoods.

    Without a mapping every zone becomes its own neighbourhood. With one,
    every configured neighbourhood is returned, even if none of its zones were
    found, and zones no neighbourhood claims are reported back.
    """
    if mapping is None:
        return [
            Neighbourhood(id=zone_id, name=name, boundaries=boundaries, radius_km=radius_km)
            for zone_id, name, boundaries in zones
        ], []

    zone_lookup = mapping.zone_to_neighbourhood()
    grouped: dict[str, list[Boundary]] = {nid: [] for nid in mapping.neighbourhoods}
    unmapped = []

    for zone_id, _name, boundaries in zones:
        neighbourhood_id = zone_lookup.get(zone_id)
        if neighbourhood_id is None:
            unmapped.append(zone_id)
            continue
        grouped[neighbourhood_id].extend(boundaries)

    neighbourhoods = []
    for neighbourhood_id, spec in mapping.neighbourhoods.items():
        boundaries = grouped[neighbourhood_id]
        # Keep the configured zone order regardless of file order
        order = {zone_id: i for i, zone_id in enumerate(spec.zone_ids)}
        boundaries.sort(key=lambda b: order.get(b.source_id or "", len(order)))
        if not boundaries:
            logger.warning(f"No boundary found for neighbourhood {neighbourhood_id}")
        neighbourhoods.append(
            Neighbourhood(
                id=neighbourhood_id,
                name=spec.name,
                boundaries=tuple(boundaries),
                radius_km=radius_km,
            )
        )

    return neighbourhoods, unmapped


def load_boundary_set(
    path: str | Path,
    mapping: NeighbourhoodMapping | None = None,
    id_field: str = "ONS_ID",
    name_field: str = "NAME",
    population_field: str = "POPEST",
    area_field: str | None = None,
    radius_km: float = EARTH_RADIUS_KM,
) -> BoundarySet:
    """
    Load the boundary source and build the ordered neighbourhood set.

    Accepts an ArcGIS FeatureSet of zones (grouped through `mapping`) or the
    processed `{"neighbourhoods": [...]}` form.

    Raises:
        MissingInputError: If the file is absent or yields no neighbourhoods
    """
    path = Path(path)
    if not path.exists():
        raise MissingInputError.for_file(str(path), "boundary set")

    with open(path) as f:
        payload = json.load(f)

    unmapped: list[str] = []
    if "features" in payload:
        zones, missing = _zones_from_arcgis(
            payload, id_field, name_field, population_field, area_field
        )
        neighbourhoods, unmapped = build_neighbourhoods(zones, mapping, radius_km)
    else:
        neighbourhoods, missing = _neighbourhoods_from_processed(payload, radius_km)

    if not neighbourhoods:
        raise MissingInputError(f"Boundary set {path} contains no neighbourhoods", path=str(path))

    neighbourhoods.sort(key=lambda n: n.id)

    if unmapped:
        logger.warning(
            f"{len(unmapped)} boundary zones are not mapped to any neighbourhood",
            extra={"unmapped_zones": sorted(unmapped)},
        )

    logger.info(
        f"Loaded {len(neighbourhoods)} neighbourhoods from {path}",
        extra={
            "with_geometry": sum(1 for n in neighbourhoods if n.has_geometry),
            "missing_geometry": missing,
        },
    )

    return BoundarySet(
        neighbourhoods=tuple(neighbourhoods),
        missing_geometry=missing,
        unmapped_zones=tuple(sorted(unmapped)),
    )
