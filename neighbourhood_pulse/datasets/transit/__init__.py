"""
Neighbourhood Pulse - Transit Dataset

GTFS stops classified as rail or bus, and the transit score built from them.

Components:
    - TransitStopPreprocessor: Cleans and classifies GTFS stops
    - TransitScoreBuilder: Per-neighbourhood stop counts and transit score
    - identify_rail_stops: Rail stop ids from GTFS routes/trips/stop_times

Data Source:
    OC Transpo GTFS export
"""

from neighbourhood_pulse.datasets.transit.features import (
    TransitScoreBuilder,
    build_transit_scores,
)
from neighbourhood_pulse.datasets.transit.preprocess import (
    BUS,
    RAIL,
    TransitStopPreprocessor,
    identify_rail_stops,
    preprocess_transit_stops,
)

__all__ = [
    "BUS",
    "RAIL",
    "TransitStopPreprocessor",
    "TransitScoreBuilder",
    "identify_rail_stops",
    "preprocess_transit_stops",
    "build_transit_scores",
]
