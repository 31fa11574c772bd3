"""
Neighbourhood Pulse - Geo

Geometry primitives, the neighbourhood boundary model and spatial
assignment of raw features to neighbourhoods.
"""

from neighbourhood_pulse.geo.assignment import (
    Assignment,
    AssignmentResult,
    NameIndex,
    assign_by_name,
    assign_features,
    assign_with_fallback,
)
from neighbourhood_pulse.geo.boundaries import (
    BoundarySet,
    Neighbourhood,
    NeighbourhoodMapping,
    load_boundary_set,
    load_neighbourhood_mapping,
    rings_to_boundaries,
)
from neighbourhood_pulse.geo.features import GeometryType, RawFeature
from neighbourhood_pulse.geo.geometry import (
    Boundary,
    centroid,
    haversine_km,
    point_in_boundary,
    point_in_multipolygon,
    point_in_polygon,
    polygon_area,
    signed_area,
)

__all__ = [
    "Assignment",
    "AssignmentResult",
    "NameIndex",
    "assign_by_name",
    "assign_features",
    "assign_with_fallback",
    "Boundary",
    "BoundarySet",
    "Neighbourhood",
    "NeighbourhoodMapping",
    "load_boundary_set",
    "load_neighbourhood_mapping",
    "rings_to_boundaries",
    "GeometryType",
    "RawFeature",
    "centroid",
    "haversine_km",
    "point_in_boundary",
    "point_in_multipolygon",
    "point_in_polygon",
    "polygon_area",
    "signed_area",
]
