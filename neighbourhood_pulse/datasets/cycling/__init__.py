"""
Neighbourhood Pulse - Cycling Dataset

Cycling infrastructure segments and the bike score built from them.

Components:
    - CyclingPreprocessor: Cleans cycling network segments
    - BikeScoreBuilder: Per-neighbourhood infrastructure lengths and bike score
    - commute_times: Estimated minutes to downtown for the centrality component

Data Source:
    City of Ottawa CyclingMap
    https://maps.ottawa.ca/arcgis/rest/services/CyclingMap/MapServer/3
"""

from neighbourhood_pulse.datasets.cycling.commute import commute_times, estimate_commute_minutes
from neighbourhood_pulse.datasets.cycling.features import BikeScoreBuilder, build_bike_scores
from neighbourhood_pulse.datasets.cycling.preprocess import (
    CyclingPreprocessor,
    preprocess_cycling_data,
)

__all__ = [
    "CyclingPreprocessor",
    "BikeScoreBuilder",
    "commute_times",
    "estimate_commute_minutes",
    "preprocess_cycling_data",
    "build_bike_scores",
]
