"""
Neighbourhood Pulse - Collisions Dataset

Traffic collisions, classified by severity and counted per neighbourhood.

Components:
    - CollisionsPreprocessor: Cleans collision points and derives severity
    - CollisionMetricsBuilder: Per-neighbourhood counts, rates and safety level

Data Source:
    City of Ottawa Open Data - Traffic Collision Data
"""

from neighbourhood_pulse.datasets.collisions.features import (
    CollisionMetricsBuilder,
    build_collision_metrics,
)
from neighbourhood_pulse.datasets.collisions.preprocess import (
    CollisionsPreprocessor,
    Severity,
    classify_severity,
    preprocess_collisions,
)

__all__ = [
    "Severity",
    "CollisionsPreprocessor",
    "CollisionMetricsBuilder",
    "classify_severity",
    "preprocess_collisions",
    "build_collision_metrics",
]
