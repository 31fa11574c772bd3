"""
Neighbourhood Pulse - Raw Features

The common shape every upstream dataset is normalized into before spatial
assignment: a point, line or polygon with a category and a magnitude.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from neighbourhood_pulse.geo.geometry import Point, centroid, line_midpoint


class GeometryType(StrEnum):
    """Geometry kind of a raw feature."""

    POINT = "point"
    LINE = "line"
    POLYGON = "polygon"


@dataclass(frozen=True)
class RawFeature:
    """
    One feature from an upstream dataset.

    `coordinates` holds a Point for points, a tuple of Points (the path) for
    lines, and a tuple of rings (exterior first) for polygons.
    """

    feature_id: str
    geometry_type: GeometryType
    coordinates: Any
    category: str = ""
    magnitude: float = 0.0
    source: str = ""
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def representative_point(self) -> Point | None:
        """
        The single point used for containment tests.

        The point itself, the midpoint vertex of a line, or the vertex-mean
        centroid of a polygon's exterior ring.
        """
        if not self.coordinates:
            return None
        if self.geometry_type == GeometryType.POINT:
            return self.coordinates
        if self.geometry_type == GeometryType.LINE:
            return line_midpoint(self.coordinates)
        return centroid(self.coordinates[0])

    def get(self, key: str, default: Any = None) -> Any:
        """Look up an extra source attribute."""
        return self.attributes.get(key, default)
