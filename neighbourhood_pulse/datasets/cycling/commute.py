"""
Neighbourhood Pulse - Commute Estimates

Estimated drive time to downtown per neighbourhood, used by the bike score's
centrality component.

The distance is the great-circle distance from the vertex mean of every
boundary ring to downtown. Minutes are distance / band speed, rounded, plus
the band's parking and walking overhead. Entries from a commute time table
override the estimate.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from neighbourhood_pulse.geo.boundaries import Neighbourhood
from neighbourhood_pulse.geo.geometry import Point, centroid, haversine_km
from neighbourhood_pulse.scoring.rounding import round_half_up
from neighbourhood_pulse.shared.config import CommuteBand, CommuteConfig, Settings, get_config

logger = logging.getLogger(__name__)


def vertex_centroid(neighbourhood: Neighbourhood) -> Point | None:
    """Mean of all exterior and hole vertices across the neighbourhood's boundaries."""
    vertices = [
        vertex
        for boundary in neighbourhood.boundaries
        for ring in (boundary.exterior, *boundary.holes)
        for vertex in ring
    ]
    return centroid(vertices)


def commute_band(distance_km: float, config: CommuteConfig) -> CommuteBand:
    """The first band whose max_km exceeds the distance."""
    for band in config.bands:
        if band.max_km is None or distance_km < band.max_km:
            return band
    return config.bands[-1]


def distance_to_downtown(
    neighbourhood: Neighbourhood, config: Settings
) -> float | None:
    point = vertex_centroid(neighbourhood)
    if point is None:
        return None
    lon, lat = point
    return haversine_km(
        lat,
        lon,
        config.commute.downtown_lat,
        config.commute.downtown_lon,
        radius_km=config.geometry.earth_radius_km,
    )


def estimate_commute_minutes(distance_km: float, config: CommuteConfig) -> float:
    """Drive minutes for a distance: rounded travel time plus overhead."""
    band = commute_band(distance_km, config)
    return round_half_up(distance_km / band.speed_kmh * 60) + band.overhead_minutes


def commute_times(
    neighbourhoods: Sequence[Neighbourhood],
    overrides: Mapping[str, float] | None = None,
    config: Settings | None = None,
) -> dict[str, float]:
    """
    Commute minutes per neighbourhood id.

    Args:
        neighbourhoods: Neighbourhoods to estimate
        overrides: Id -> minutes from a commute time table; wins over the estimate
        config: Configuration object (uses default if not provided)

    Returns:
        Minutes for every neighbourhood; the configured default commute when a
        neighbourhood has neither geometry nor an override
    """
    config = config or get_config()
    overrides = overrides or {}

    minutes: dict[str, float] = {}
    defaulted = []
    for neighbourhood in neighbourhoods:
        if neighbourhood.id in overrides:
            minutes[neighbourhood.id] = float(overrides[neighbourhood.id])
            continue

        distance = distance_to_downtown(neighbourhood, config)
        if distance is None:
            minutes[neighbourhood.id] = config.cycling.default_commute_minutes
            defaulted.append(neighbourhood.id)
        else:
            minutes[neighbourhood.id] = estimate_commute_minutes(distance, config.commute)

    if defaulted:
        logger.warning(
            f"{len(defaulted)} neighbourhoods without geometry use the default commute",
            extra={"neighbourhoods": defaulted},
        )
    logger.info(
        f"Commute times for {len(minutes)} neighbourhoods",
        extra={"overridden": sum(1 for n in neighbourhoods if n.id in overrides)},
    )
    return minutes
