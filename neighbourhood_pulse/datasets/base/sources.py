"""
Neighbourhood Pulse - Source Adapters

Upstream data arrives in a handful of shapes. Each is parsed into a tagged
record type and flattened into one table row with standard geometry columns:

- lat / lon   point coordinates
- path        list of [lon, lat] vertices (lines)
- rings       list of rings of [lon, lat] vertices (polygons)

Known shapes:
- ArcGIS FeatureSet: {"features": [{"attributes": {...}, "geometry": {...}}]}
  with x/y, paths or rings geometry
- Overpass API: {"elements": [{"type": "node", "lat": .., "lon": .., "tags": {...}}]}
- Tabular: CSV files, or JSON lists of flat objects (optionally with a nested
  "geometry" object in ArcGIS form)

Preprocessors take the flattened table; `frame_to_features` turns their
standardized output into RawFeature objects for spatial assignment.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

import pandas as pd

from neighbourhood_pulse.geo.features import GeometryType, RawFeature
from neighbourhood_pulse.geo.geometry import clean_ring, to_point
from neighbourhood_pulse.shared.errors import MissingInputError

logger = logging.getLogger(__name__)

GEOMETRY_COLUMNS = ("lat", "lon", "path", "rings")
FEATURE_COLUMNS = ("feature_id", "category", "magnitude")


class SourceKind(StrEnum):
    """Upstream payload shape."""

    ARCGIS = "arcgis"
    OVERPASS = "overpass"
    TABULAR = "tabular"


def _geometry_fields(geometry: Mapping[str, Any] | None) -> dict[str, Any]:
    """Flatten an ArcGIS-style geometry object."""
    if not geometry:
        return {}
    if geometry.get("rings"):
        return {"rings": geometry["rings"]}
    if geometry.get("paths"):
        # Multi-part polylines are joined end to end
        return {"path": [vertex for part in geometry["paths"] if part for vertex in part]}
    if "x" in geometry and "y" in geometry:
        return {"lon": geometry.get("x"), "lat": geometry.get("y")}
    return {}


@dataclass(frozen=True)
class ArcGISFeature:
    """One feature of an ArcGIS FeatureSet."""

    attributes: Mapping[str, Any]
    geometry: Mapping[str, Any] | None = None
    kind: SourceKind = field(default=SourceKind.ARCGIS, init=False)

    def to_record(self) -> dict[str, Any]:
        record = dict(self.attributes)
        record.update(_geometry_fields(self.geometry))
        return record


@dataclass(frozen=True)
class OverpassElement:
    """One element of an Overpass API response."""

    element_type: str
    element_id: Any
    tags: Mapping[str, Any] = field(default_factory=dict)
    lat: float | None = None
    lon: float | None = None
    center: Mapping[str, Any] | None = None
    geometry: list[Mapping[str, Any]] | None = None
    kind: SourceKind = field(default=SourceKind.OVERPASS, init=False)

    def to_record(self) -> dict[str, Any]:
        record = dict(self.tags)
        record["osm_type"] = self.element_type
        record["osm_id"] = self.element_id

        if self.lat is not None and self.lon is not None:
            record["lat"] = self.lat
            record["lon"] = self.lon
        elif self.center:
            record["lat"] = self.center.get("lat")
            record["lon"] = self.center.get("lon")
        elif self.geometry:
            record["path"] = [[vertex.get("lon"), vertex.get("lat")] for vertex in self.geometry]
        return record


@dataclass(frozen=True)
class TabularRow:
    """A flat row from a CSV file or a JSON list."""

    values: Mapping[str, Any]
    kind: SourceKind = field(default=SourceKind.TABULAR, init=False)

    def to_record(self) -> dict[str, Any]:
        record = {k: v for k, v in self.values.items() if k != "geometry"}
        geometry = self.values.get("geometry")
        if isinstance(geometry, Mapping):
            record.update(_geometry_fields(geometry))
        return record


SourceRecord = ArcGISFeature | OverpassElement | TabularRow


# =============================================================================
# Parsing
# =============================================================================


def detect_kind(payload: Any) -> SourceKind:
    """Work out which upstream shape a decoded JSON payload has."""
    if isinstance(payload, Mapping):
        if "features" in payload:
            return SourceKind.ARCGIS
        if "elements" in payload:
            return SourceKind.OVERPASS
    if isinstance(payload, list):
        return SourceKind.TABULAR
    raise ValueError(f"Unrecognised payload shape: {type(payload).__name__}")


def parse_payload(payload: Any) -> list[SourceRecord]:
    """Parse a decoded JSON payload into source records."""
    kind = detect_kind(payload)

    if kind == SourceKind.ARCGIS:
        return [
            ArcGISFeature(
                attributes=feature.get("attributes") or {},
                geometry=feature.get("geometry"),
            )
            for feature in payload.get("features") or []
        ]

    if kind == SourceKind.OVERPASS:
        return [
            OverpassElement(
                element_type=element.get("type", "node"),
                element_id=element.get("id"),
                tags=element.get("tags") or {},
                lat=element.get("lat"),
                lon=element.get("lon"),
                center=element.get("center"),
                geometry=element.get("geometry"),
            )
            for element in payload.get("elements") or []
        ]

    return [TabularRow(values=row) for row in payload if isinstance(row, Mapping)]


def records_to_frame(records: list[SourceRecord]) -> pd.DataFrame:
    """Flatten source records into a DataFrame."""
    return pd.DataFrame([record.to_record() for record in records])


def load_table(path: str | Path, description: str = "input file") -> pd.DataFrame:
    """
    Load a raw input file as a DataFrame.

    CSV files are read directly; JSON files are parsed by shape.

    Raises:
        MissingInputError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise MissingInputError.for_file(str(path), description)

    if path.suffix.lower() == ".json":
        with open(path) as f:
            payload = json.load(f)
        df = records_to_frame(parse_payload(payload))
    else:
        df = pd.read_csv(path)

    logger.info(
        f"Loaded {len(df)} rows from {path}",
        extra={"path": str(path), "rows": len(df), "columns": len(df.columns)},
    )
    return df


# =============================================================================
# RawFeature Conversion
# =============================================================================


def _is_missing(value: Any) -> bool:
    if isinstance(value, list | tuple | dict):
        return False
    if isinstance(value, str):
        return not value.strip()
    return bool(pd.isna(value))


def _decode(value: Any) -> Any:
    """Vertex lists may have been serialized to JSON strings in a CSV."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None
    return value


def _parse_path(value: Any) -> tuple | None:
    value = _decode(value)
    if not isinstance(value, list | tuple) or not value:
        return None
    path = []
    for vertex in value:
        point = to_point(vertex)
        if point is None:
            return None
        path.append(point)
    return tuple(path)


def _parse_rings(value: Any) -> tuple | None:
    value = _decode(value)
    if not isinstance(value, list | tuple) or not value:
        return None
    rings = tuple(ring for ring in (clean_ring(raw) for raw in value) if ring is not None)
    return rings or None


def row_geometry(row: Mapping[str, Any]) -> tuple[GeometryType, Any]:
    """
    Geometry of one standardized row: polygon, then line, then point.

    Returns the point type with None coordinates when nothing is usable.
    """
    if not _is_missing(row.get("rings")):
        rings = _parse_rings(row.get("rings"))
        if rings is not None:
            return GeometryType.POLYGON, rings

    if not _is_missing(row.get("path")):
        path = _parse_path(row.get("path"))
        if path is not None:
            return GeometryType.LINE, path

    if not _is_missing(row.get("lat")) and not _is_missing(row.get("lon")):
        point = to_point((row.get("lon"), row.get("lat")))
        if point is not None:
            return GeometryType.POINT, point

    return GeometryType.POINT, None


def frame_to_features(df: pd.DataFrame, source: str = "") -> list[RawFeature]:
    """
    Convert a standardized frame into RawFeatures.

    Rows without usable geometry are kept with empty coordinates; spatial
    assignment counts them as missing geometry.
    """
    features = []
    for index, row in enumerate(df.to_dict("records")):
        geometry_type, coordinates = row_geometry(row)

        magnitude = row.get("magnitude")
        try:
            magnitude = float(magnitude)
        except (TypeError, ValueError):
            magnitude = 0.0
        if not math.isfinite(magnitude):
            magnitude = 0.0

        feature_id = row.get("feature_id")
        category = row.get("category")
        attributes = {
            key: (None if _is_missing(value) else value)
            for key, value in row.items()
            if key not in GEOMETRY_COLUMNS and key not in FEATURE_COLUMNS
        }

        features.append(
            RawFeature(
                feature_id=str(index) if _is_missing(feature_id) else str(feature_id),
                geometry_type=geometry_type,
                coordinates=coordinates,
                category="" if _is_missing(category) else str(category),
                magnitude=magnitude,
                source=source,
                attributes=attributes,
            )
        )
    return features
