"""
Neighbourhood Pulse - Geometry Primitives

Planar geometry on (lon, lat) coordinate pairs:
- Ray-casting point-in-polygon with holes and multi-part boundaries
- Vertex-mean centroid and shoelace area
- Approximate geodesic ring area and haversine distance

None of these functions raise on empty or degenerate input. A missing ring
contains nothing, has zero area and no centroid.

Usage:
    from neighbourhood_pulse.geo.geometry import Boundary, point_in_boundary

    square = Boundary(exterior=((0, 0), (0, 10), (10, 10), (10, 0)))
    point_in_boundary((1, 1), square)  # True
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import cached_property
from typing import Any

Point = tuple[float, float]
Ring = Sequence[Point]
BBox = tuple[float, float, float, float]

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Boundary:
    """
    One polygon: an exterior ring and zero or more hole rings.

    Rings are tuples of (lon, lat) pairs and may be open or closed.
    The optional source fields describe the upstream zone the polygon
    came from (e.g. an ONS id with its own population estimate).
    """

    exterior: tuple[Point, ...]
    holes: tuple[tuple[Point, ...], ...] = ()
    source_id: str | None = None
    name: str | None = None
    population: float | None = None
    area_km2: float | None = None

    @cached_property
    def bbox(self) -> BBox | None:
        """Bounding box of the exterior ring."""
        return bounding_box(self.exterior)

    @property
    def is_degenerate(self) -> bool:
        """True when the exterior cannot enclose any point."""
        return len(set(self.exterior)) < 3

    def contains(self, point: Point) -> bool:
        """Point-in-boundary test (outer ring minus holes)."""
        return point_in_boundary(point, self)


# =============================================================================
# Coordinate Cleaning
# =============================================================================


def to_point(value: Any) -> Point | None:
    """
    Convert a [lon, lat] pair to a Point.

    Returns None for anything that is not two finite numbers.
    """
    try:
        x, y = float(value[0]), float(value[1])
    except (TypeError, ValueError, IndexError, KeyError):
        return None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return (x, y)


def clean_ring(coords: Iterable[Any] | None) -> tuple[Point, ...] | None:
    """
    Convert raw vertex arrays into a ring.

    Returns None if any vertex is unusable or fewer than 3 distinct
    vertices remain.
    """
    if not coords:
        return None

    ring = []
    for vertex in coords:
        point = to_point(vertex)
        if point is None:
            return None
        ring.append(point)

    if len(set(ring)) < 3:
        return None
    return tuple(ring)


# =============================================================================
# Containment
# =============================================================================


def point_in_polygon(point: Point, ring: Ring | None) -> bool:
    """
    Ray-casting test using the even-odd rule.

    An edge is counted when exactly one endpoint lies strictly above the
    point (half-open), so a point on a shared horizontal edge is claimed by
    one polygon only.
    """
    if not ring or len(ring) < 3:
        return False

    x, y = point[0], point[1]
    if not (math.isfinite(x) and math.isfinite(y)):
        return False

    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i

    return inside


def point_in_boundary(point: Point, boundary: Boundary | None) -> bool:
    """True iff the point is inside the exterior ring and outside every hole."""
    if boundary is None or not boundary.exterior:
        return False

    bbox = boundary.bbox
    if bbox is not None and not bbox_contains(bbox, point):
        return False

    if not point_in_polygon(point, boundary.exterior):
        return False

    return not any(point_in_polygon(point, hole) for hole in boundary.holes)


def point_in_multipolygon(point: Point, geometry: Iterable[Boundary] | None) -> bool:
    """True if any of the disjoint boundary parts contains the point."""
    if not geometry:
        return False
    return any(point_in_boundary(point, part) for part in geometry)


# =============================================================================
# Measures
# =============================================================================


def centroid(ring: Ring | None) -> Point | None:
    """
    Arithmetic mean of the ring's vertices.

    This is not the area centroid; it is skewed towards densely digitised
    stretches of a ring. A closing vertex that repeats the first one is
    counted like any other.
    """
    if not ring:
        return None

    sum_x = 0.0
    sum_y = 0.0
    for vertex in ring:
        sum_x += vertex[0]
        sum_y += vertex[1]

    n = len(ring)
    return (sum_x / n, sum_y / n)


def signed_area(ring: Ring | None) -> float:
    """
    Shoelace area in squared coordinate units.

    Positive for counter-clockwise rings. No projection correction is applied,
    so the value is only comparable to other areas in the same frame.
    """
    if not ring or len(ring) < 3:
        return 0.0

    area = 0.0
    n = len(ring)
    for i in range(n):
        j = (i + 1) % n
        area += ring[i][0] * ring[j][1]
        area -= ring[j][0] * ring[i][1]

    return area / 2.0


def polygon_area(ring: Ring | None) -> float:
    """Unsigned shoelace area."""
    return abs(signed_area(ring))


def ring_area_km2(ring: Ring | None, radius_km: float = EARTH_RADIUS_KM) -> float:
    """
    Approximate area of a (lon, lat) ring on a sphere, in km².

    Uses the spherical excess approximation
    sum((lon2 - lon1) * (2 + sin(lat1) + sin(lat2))) * R^2 / 2.
    """
    if not ring or len(ring) < 3:
        return 0.0

    total = 0.0
    n = len(ring)
    for i in range(n):
        lon1, lat1 = ring[i][0], ring[i][1]
        lon2, lat2 = ring[(i + 1) % n][0], ring[(i + 1) % n][1]
        total += math.radians(lon2 - lon1) * (
            2 + math.sin(math.radians(lat1)) + math.sin(math.radians(lat2))
        )

    return abs(total * radius_km * radius_km / 2.0)


def boundary_area_km2(boundary: Boundary, radius_km: float = EARTH_RADIUS_KM) -> float:
    """Geodesic area of the exterior minus its holes, never negative."""
    area = ring_area_km2(boundary.exterior, radius_km)
    area -= sum(ring_area_km2(hole, radius_km) for hole in boundary.holes)
    return max(0.0, area)


def haversine_km(
    lat1: float, lon1: float, lat2: float, lon2: float, radius_km: float = EARTH_RADIUS_KM
) -> float:
    """Great-circle distance between two points in kilometers."""
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return radius_km * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def line_midpoint(path: Sequence[Point] | None) -> Point | None:
    """The vertex at index floor(n / 2) of a line's path."""
    if not path:
        return None
    return path[len(path) // 2]


def bounding_box(ring: Ring | None) -> BBox | None:
    """(min_x, min_y, max_x, max_y) of a ring."""
    if not ring:
        return None
    xs = [vertex[0] for vertex in ring]
    ys = [vertex[1] for vertex in ring]
    return (min(xs), min(ys), max(xs), max(ys))


def bbox_contains(bbox: BBox, point: Point) -> bool:
    """Inclusive bounding box test."""
    min_x, min_y, max_x, max_y = bbox
    return min_x <= point[0] <= max_x and min_y <= point[1] <= max_y
