"""
Neighbourhood Pulse - Crime Dataset

Police-reported offences counted per neighbourhood and offence category.

Components:
    - CrimePreprocessor: Cleans offence records, keeps the neighbourhood name
    - CrimeMetricsBuilder: Name-matched totals, rates and category counts

Data Source:
    Ottawa Police Service Criminal Offences (Open Ottawa)
"""

from neighbourhood_pulse.datasets.crime.features import (
    CrimeMetricsBuilder,
    build_crime_metrics,
)
from neighbourhood_pulse.datasets.crime.preprocess import (
    CrimePreprocessor,
    preprocess_crime,
)

__all__ = [
    "CrimePreprocessor",
    "CrimeMetricsBuilder",
    "preprocess_crime",
    "build_crime_metrics",
]
