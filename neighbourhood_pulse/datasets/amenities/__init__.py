"""
Neighbourhood Pulse - Amenities Dataset

Everyday amenities (groceries, restaurants and cafes, parks, schools,
libraries, recreation facilities) and the walk score built from them.

Components:
    - AmenityPreprocessor: Cleans one amenity point dataset
    - WalkScoreBuilder: Per-neighbourhood counts, densities and walk score

Data Sources:
    City of Ottawa Open Data and OpenStreetMap (Overpass API)

Usage:
    from neighbourhood_pulse.datasets.amenities import AmenityPreprocessor, WalkScoreBuilder

    preprocessor = AmenityPreprocessor("park")
    result = preprocessor.run(raw_df, execution_date="2024-01-15")
    parks_df = preprocessor.get_data()

    builder = WalkScoreBuilder()
    result = builder.run(amenities_df, boundary_set.neighbourhoods, execution_date="2024-01-15")
    walk_df = builder.get_data()
"""

from neighbourhood_pulse.datasets.amenities.features import WalkScoreBuilder, build_walk_scores
from neighbourhood_pulse.datasets.amenities.preprocess import (
    DATASET_NAMES,
    AmenityCategory,
    AmenityPreprocessor,
    preprocess_amenities,
)

__all__ = [
    "AmenityCategory",
    "AmenityPreprocessor",
    "WalkScoreBuilder",
    "DATASET_NAMES",
    "preprocess_amenities",
    "build_walk_scores",
]
